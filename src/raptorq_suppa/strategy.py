"""
Strategy resolution: partial user configuration -> frozen, validated Strategy.

A partial strategy is a nested dict (or None) mirroring the Strategy tree:

    {
        "oti": {
            "placement": "negotiation" | "encoding_packet",
            "transfer_length": {"external_bits": 24, "remap": {...}},
            "fec_encoding_id": {"external_bits": 0},
            "symbol_size": {"external_bits": 0, "value": 256},
            ...
        },
        "encoding_packet": {
            "sbn": {"external_bits": 4, "remap": {"to_internal": f, "to_external": g}},
            "esi": {"external_bits": 12},
            "ecc": {"external_bits": 8, "generate_ecc": crc8},
        },
        "payload": {
            "transfer_length_trim": {"external_bits": 8, "pump_transfer_length": h},
        },
    }

Every missing entry takes its default. Field entries may also be FieldSpec
instances. Both encode and decode resolve through resolve_strategy() before
any bit is packed.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple

from .errors import StrategyConfigurationError
from .field_codec import FieldCodec, FieldSpec
from .oti import FEC_ENCODING_ID_RAPTORQ, OTI_FIELDS


PLACEMENT_NEGOTIATION = "negotiation"
PLACEMENT_ENCODING_PACKET = "encoding_packet"
PLACEMENTS = (PLACEMENT_NEGOTIATION, PLACEMENT_ENCODING_PACKET)

SBN_BITS = 8
ESI_BITS = 24
ESI_MIN_BITS = 2
ECC_MAX_BITS = 1024
TRIM_MAX_BITS = 40


def _identity(value):
    return value


def _trim_identity(value, context):
    return value


@dataclass(frozen=True)
class OTIStrategy:
    placement: str = PLACEMENT_NEGOTIATION
    transfer_length: FieldSpec = field(default_factory=lambda: FieldSpec.identity(40))
    fec_encoding_id: FieldSpec = field(default_factory=lambda: FieldSpec.identity(8))
    symbol_size: FieldSpec = field(default_factory=lambda: FieldSpec.identity(16))
    num_source_blocks: FieldSpec = field(default_factory=lambda: FieldSpec.identity(8))
    num_sub_blocks: FieldSpec = field(default_factory=lambda: FieldSpec.identity(16))
    symbol_alignment: FieldSpec = field(default_factory=lambda: FieldSpec.identity(8))

    @property
    def total_bits(self) -> int:
        return sum(getattr(self, name).external_bits for name, _ in OTI_FIELDS)

    def codecs(self) -> Tuple[Tuple[str, FieldCodec], ...]:
        """FieldCodecs for the six OTI fields, in wire order."""
        return tuple(
            (name, FieldCodec(getattr(self, name), bits, f"strategy.oti.{name}"))
            for name, bits in OTI_FIELDS
        )


@dataclass(frozen=True)
class ECCSpec:
    external_bits: int = 0
    generate_ecc: Optional[Callable[[bytes, bytes], int]] = None

    @property
    def byte_length(self) -> int:
        return (self.external_bits + 7) // 8


@dataclass(frozen=True)
class EncodingPacketStrategy:
    sbn: FieldSpec = field(default_factory=lambda: FieldSpec.identity(SBN_BITS))
    esi: FieldSpec = field(default_factory=lambda: FieldSpec.identity(ESI_BITS))
    ecc: ECCSpec = field(default_factory=ECCSpec)

    def sbn_codec(self) -> FieldCodec:
        return FieldCodec(self.sbn, SBN_BITS, "strategy.encoding_packet.sbn")

    def esi_codec(self) -> FieldCodec:
        return FieldCodec(self.esi, ESI_BITS, "strategy.encoding_packet.esi")


@dataclass(frozen=True)
class TrimContext:
    """Context handed to trim remaps: the raw engine's transfer length."""

    transfer_length: int


@dataclass(frozen=True)
class TransferLengthTrim:
    external_bits: int = 0
    to_internal: Callable[[int, TrimContext], int] = _trim_identity
    to_external: Callable[[int, TrimContext], Optional[int]] = _trim_identity
    pump_transfer_length: Callable[[int], int] = _identity

    @property
    def enabled(self) -> bool:
        return self.external_bits > 0

    @property
    def prefix_bytes(self) -> int:
        return (self.external_bits + 7) // 8

    def codec(self, transfer_length: int) -> FieldCodec:
        """FieldCodec for the trim value, bound to the raw transfer length."""
        context = TrimContext(transfer_length)
        spec = FieldSpec.custom(
            self.external_bits,
            lambda external: self.to_internal(external, context),
            lambda internal: self.to_external(internal, context),
        )
        return FieldCodec(spec, TRIM_MAX_BITS, "strategy.payload.transfer_length_trim")


@dataclass(frozen=True)
class PayloadStrategy:
    transfer_length_trim: TransferLengthTrim = field(default_factory=TransferLengthTrim)


@dataclass(frozen=True)
class Strategy:
    oti: OTIStrategy = field(default_factory=OTIStrategy)
    encoding_packet: EncodingPacketStrategy = field(default_factory=EncodingPacketStrategy)
    payload: PayloadStrategy = field(default_factory=PayloadStrategy)

    @property
    def oti_in_packets(self) -> bool:
        return self.oti.placement == PLACEMENT_ENCODING_PACKET


# =============================================================================
# DICT -> STRATEGY
# =============================================================================

def _fail(message: str) -> None:
    raise StrategyConfigurationError(message)


def _section(path: str, value: Any, allowed_keys: Tuple[str, ...]) -> Dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        _fail(f"Provided {path} must be dict or None.")

    unknown = sorted(set(value) - set(allowed_keys))
    if unknown:
        _fail(f"Provided {path} has unknown keys: {', '.join(map(str, unknown))}.")

    return value


def _field_from_config(
    path: str,
    entry: Any,
    default_bits: int,
    zero_width_value: Optional[int] = None,
) -> FieldSpec:
    if isinstance(entry, FieldSpec):
        spec = entry
    else:
        entry = _section(path, entry, ("external_bits", "remap", "value"))
        external_bits = entry.get("external_bits", default_bits)

        if "value" in entry:
            if "remap" in entry:
                _fail(f"Provided {path} cannot combine value with remap.")
            if external_bits != 0:
                _fail(f"Provided {path}.value requires external_bits to be 0.")
            return FieldSpec.omitted(entry["value"])

        if "remap" in entry:
            remap = _section(f"{path}.remap", entry["remap"], ("to_internal", "to_external"))
            spec = FieldSpec.custom(
                external_bits,
                remap.get("to_internal", _identity),
                remap.get("to_external", _identity),
            )
        else:
            spec = FieldSpec.identity(external_bits)

    if spec.kind == "identity" and spec.external_bits == 0:
        if zero_width_value is None:
            _fail(
                f"Provided {path} must provide a value or remap.to_internal "
                f"when external_bits is 0."
            )
        return FieldSpec.omitted(zero_width_value)

    return spec


def _fec_from_config(path: str, entry: Any) -> FieldSpec:
    if isinstance(entry, FieldSpec):
        return entry

    entry = _section(path, entry, ("external_bits", "remap", "value"))
    if "remap" in entry or "value" in entry:
        _fail(f"Provided {path} does not support remap.")

    external_bits = entry.get("external_bits", 8)
    if external_bits == 0 and not isinstance(external_bits, bool):
        return FieldSpec.omitted(FEC_ENCODING_ID_RAPTORQ)
    return FieldSpec.identity(external_bits)


def _ecc_from_config(path: str, entry: Any) -> ECCSpec:
    if isinstance(entry, ECCSpec):
        return entry

    entry = _section(path, entry, ("external_bits", "generate_ecc"))
    return ECCSpec(
        external_bits=entry.get("external_bits", 0),
        generate_ecc=entry.get("generate_ecc"),
    )


def _trim_from_config(path: str, entry: Any) -> TransferLengthTrim:
    if isinstance(entry, TransferLengthTrim):
        return entry

    entry = _section(path, entry, ("external_bits", "remap", "pump_transfer_length"))
    remap = _section(f"{path}.remap", entry.get("remap"), ("to_internal", "to_external"))

    return TransferLengthTrim(
        external_bits=entry.get("external_bits", 0),
        to_internal=remap.get("to_internal", _trim_identity),
        to_external=remap.get("to_external", _trim_identity),
        pump_transfer_length=entry.get("pump_transfer_length", _identity),
    )


def _strategy_from_config(partial: Any) -> Strategy:
    root = _section("strategy", partial, ("oti", "encoding_packet", "payload"))

    oti_config = _section(
        "strategy.oti",
        root.get("oti"),
        ("placement",) + tuple(name for name, _ in OTI_FIELDS),
    )
    oti_fields = {}
    for name, bits in OTI_FIELDS:
        path = f"strategy.oti.{name}"
        if name == "fec_encoding_id":
            oti_fields[name] = _fec_from_config(path, oti_config.get(name))
        else:
            oti_fields[name] = _field_from_config(path, oti_config.get(name), bits)

    packet_config = _section(
        "strategy.encoding_packet", root.get("encoding_packet"), ("sbn", "esi", "ecc")
    )
    payload_config = _section(
        "strategy.payload", root.get("payload"), ("transfer_length_trim",)
    )

    return Strategy(
        oti=OTIStrategy(
            placement=oti_config.get("placement", PLACEMENT_NEGOTIATION),
            **oti_fields,
        ),
        encoding_packet=EncodingPacketStrategy(
            sbn=_field_from_config(
                "strategy.encoding_packet.sbn", packet_config.get("sbn"), SBN_BITS, 0
            ),
            esi=_field_from_config(
                "strategy.encoding_packet.esi", packet_config.get("esi"), ESI_BITS
            ),
            ecc=_ecc_from_config("strategy.encoding_packet.ecc", packet_config.get("ecc")),
        ),
        payload=PayloadStrategy(
            transfer_length_trim=_trim_from_config(
                "strategy.payload.transfer_length_trim",
                payload_config.get("transfer_length_trim"),
            ),
        ),
    )


# =============================================================================
# VALIDATION
# =============================================================================

def _check_bits(path: str, bits: Any, max_bits: int, min_bits: int = 0) -> None:
    if not isinstance(bits, int) or isinstance(bits, bool):
        _fail(f"Provided {path}.external_bits must be int.")
    if bits < 0:
        _fail(f"Provided {path}.external_bits ({bits}) must be unsigned.")
    if bits < min_bits:
        _fail(f"Provided {path}.external_bits ({bits}) must be at least {min_bits}.")
    if bits > max_bits:
        _fail(f"Provided {path}.external_bits ({bits}) must be at most {max_bits}.")


def _check_field(path: str, spec: Any, max_bits: int, min_bits: int = 0) -> None:
    if not isinstance(spec, FieldSpec):
        _fail(f"Provided {path} must be dict or FieldSpec.")

    _check_bits(path, spec.external_bits, max_bits, min_bits)

    if not callable(spec.to_internal):
        _fail(f"Provided {path}.remap.to_internal must be function.")

    if spec.external_bits > 0 and not callable(spec.to_external):
        _fail(
            f"Provided {path}.remap.to_external must be function "
            f"when provided external_bits is non-zero."
        )


def validate_strategy(strategy: Strategy) -> Strategy:
    """
    Check every constraint of a fully populated Strategy.

    Raises:
        StrategyConfigurationError: On the first violated constraint
    """
    oti = strategy.oti

    if oti.placement not in PLACEMENTS:
        _fail(
            f'Provided strategy.oti.placement ({oti.placement}) must be '
            f'"{PLACEMENT_NEGOTIATION}" or "{PLACEMENT_ENCODING_PACKET}".'
        )

    for name, bits in OTI_FIELDS:
        path = f"strategy.oti.{name}"
        spec = getattr(oti, name)
        _check_field(path, spec, bits)

        if name == "fec_encoding_id":
            if spec.external_bits not in (0, 8):
                _fail(f"Provided {path}.external_bits must be either 0 or 8.")
            if spec.kind == "custom":
                _fail(f"Provided {path} does not support remap.")

    packet = strategy.encoding_packet
    _check_field("strategy.encoding_packet.sbn", packet.sbn, SBN_BITS)
    _check_field("strategy.encoding_packet.esi", packet.esi, ESI_BITS, ESI_MIN_BITS)

    if not isinstance(packet.ecc, ECCSpec):
        _fail("Provided strategy.encoding_packet.ecc must be dict or ECCSpec.")
    _check_bits("strategy.encoding_packet.ecc", packet.ecc.external_bits, ECC_MAX_BITS)
    if packet.ecc.external_bits > 0 and not callable(packet.ecc.generate_ecc):
        _fail(
            "Provided strategy.encoding_packet.ecc.generate_ecc must be function "
            "when external_bits is non-zero."
        )

    trim = strategy.payload.transfer_length_trim
    path = "strategy.payload.transfer_length_trim"
    if not isinstance(trim, TransferLengthTrim):
        _fail(f"Provided {path} must be dict or TransferLengthTrim.")
    _check_bits(path, trim.external_bits, TRIM_MAX_BITS)
    if not callable(trim.to_internal):
        _fail(f"Provided {path}.remap.to_internal must be function.")
    if not callable(trim.to_external):
        _fail(f"Provided {path}.remap.to_external must be function.")
    if not callable(trim.pump_transfer_length):
        _fail(f"Provided {path}.pump_transfer_length must be function.")

    return strategy


def resolve_strategy(partial: Any = None) -> Strategy:
    """
    Normalize a partial strategy into a fully defaulted, validated Strategy.

    Args:
        partial: None, a nested dict, or a Strategy

    Returns:
        Frozen Strategy

    Raises:
        StrategyConfigurationError: If any constraint is violated
    """
    if isinstance(partial, Strategy):
        return validate_strategy(partial)

    return validate_strategy(_strategy_from_config(partial))
