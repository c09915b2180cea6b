"""
Bidirectional external <-> internal value mapping for one fixed-width field.

A field's *internal* value is what the raw RaptorQ engine expects; its
*external* value is what appears on the wire (possibly remapped into fewer
bits, or omitted entirely and derived on decode).
"""

from dataclasses import dataclass
from typing import Callable, Optional

from .errors import PayloadError


FIELD_KINDS = ("identity", "omitted", "custom")


def _identity(value):
    return value


@dataclass(frozen=True)
class FieldSpec:
    """
    Wire description of one field.

    Attributes:
        external_bits: Width on the wire; 0 means the field is never carried
        to_internal: external (or None when omitted) -> internal value
        to_external: internal -> external value, or None when the internal
                     value is not representable; required when external_bits > 0
        kind: 'identity', 'omitted' or 'custom'
    """

    external_bits: int
    to_internal: Callable[[Optional[int]], int]
    to_external: Optional[Callable[[int], Optional[int]]] = None
    kind: str = "custom"

    @classmethod
    def identity(cls, external_bits: int) -> "FieldSpec":
        return cls(external_bits, _identity, _identity, "identity")

    @classmethod
    def omitted(cls, value: int) -> "FieldSpec":
        """Field carried nowhere; decode always yields `value`."""
        return cls(0, lambda _external: value, None, "omitted")

    @classmethod
    def custom(
        cls,
        external_bits: int,
        to_internal: Callable[[Optional[int]], int],
        to_external: Optional[Callable[[int], Optional[int]]] = None,
    ) -> "FieldSpec":
        return cls(external_bits, to_internal, to_external, "custom")


def max_value(bits: int) -> int:
    """Largest unsigned value representable in `bits` bits (0 for 0 bits)."""
    return (1 << bits) - 1 if bits > 0 else 0


def _is_uint(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


class FieldCodec:
    """
    Round-trip checked wrapper around a FieldSpec.

    Every conversion recomputes the opposite direction and compares, so a
    remap pair that is not a bijection on the values actually used fails
    loudly instead of corrupting data.

    Parameters:
        spec (FieldSpec): Field description
        max_internal_bits (int): Width of the legal internal range
        name (str): Field path used in error messages
    """

    def __init__(self, spec: FieldSpec, max_internal_bits: int, name: str = "field"):
        self.spec = spec
        self.name = name
        self.external_bits = spec.external_bits
        self.max_internal_value = max_value(max_internal_bits)
        self.max_external_value = max_value(spec.external_bits)

    @property
    def omitted(self) -> bool:
        return self.external_bits == 0

    def _not_representable(self, internal_value: int) -> PayloadError:
        return PayloadError(
            f"{self.name}: internal value {internal_value} cannot be represented externally "
            f"(to_external returned None)."
        )

    def to_internal_safe(self, external_value: Optional[int]) -> int:
        """
        Map an external value (None when omitted) to its internal value.

        Raises:
            PayloadError: If the result is out of range, not representable
                          externally, or inconsistent with to_external
        """
        internal_value = self.spec.to_internal(external_value)

        if not _is_uint(internal_value) or internal_value > self.max_internal_value:
            raise PayloadError(
                f"{self.name}: to_internal returned invalid value {internal_value!r}. "
                f"Must be int between 0 and {self.max_internal_value}."
            )

        if self.external_bits > 0:
            round_trip_external = self.spec.to_external(internal_value)

            if round_trip_external is None:
                raise self._not_representable(internal_value)

            if round_trip_external != external_value:
                raise PayloadError(
                    f"{self.name}: to_internal/to_external are not consistent. "
                    f"{external_value} -> {internal_value} -> {round_trip_external}"
                )

        return internal_value

    def to_external_safe(self, internal_value: int) -> Optional[int]:
        """
        Map an internal value to its wire value, or None when the field is omitted.

        Raises:
            PayloadError: If the value is not representable, out of the
                          external range, or inconsistent with to_internal
        """
        if self.external_bits == 0:
            return None

        external_value = self.spec.to_external(internal_value)

        if external_value is None:
            raise self._not_representable(internal_value)

        if not _is_uint(external_value) or external_value > self.max_external_value:
            raise PayloadError(
                f"{self.name}: to_external returned invalid value {external_value!r}. "
                f"Must be int between 0 and {self.max_external_value}."
            )

        round_trip_internal = self.spec.to_internal(external_value)
        if round_trip_internal != internal_value:
            raise PayloadError(
                f"{self.name}: to_internal/to_external are not consistent. "
                f"{internal_value} -> {external_value} -> {round_trip_internal}"
            )

        return external_value
