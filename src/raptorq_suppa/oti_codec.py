"""
Strategy-driven compact OTI codec.

Fields are packed MSB-first in RFC order; a field with external_bits == 0 is
skipped on encode (after checking the value matches its hardcoded one) and
derived through its to_internal(None) on decode. When
every field is omitted the external OTI is None.
"""

import logging
from typing import Optional

from .bitvector import BitVector
from .errors import PayloadError
from .oti import ObjectTransmissionInformation
from .strategy import Strategy

logger = logging.getLogger(__name__)


def oti_bits(strategy: Strategy) -> int:
    return strategy.oti.total_bits


def oti_size(strategy: Strategy) -> int:
    """Byte length of the external OTI (0 when nothing is carried)."""
    return (oti_bits(strategy) + 7) // 8


def encode_oti(
    strategy: Strategy, oti: ObjectTransmissionInformation
) -> Optional[bytes]:
    """
    Encode an internal OTI into its external form.

    Returns:
        Packed bytes, or None when the strategy carries no OTI bits

    Raises:
        PayloadError: If any field is not representable externally, or an
                      omitted field differs from the value decode will derive
    """
    parts = []
    for name, codec in strategy.oti.codecs():
        internal_value = getattr(oti, name)
        if codec.omitted:
            fixed_value = codec.to_internal_safe(None)
            if internal_value != fixed_value:
                raise PayloadError(
                    f"{codec.name}: internal value {internal_value} cannot be "
                    f"represented externally (field is fixed to {fixed_value})."
                )
            continue

        external_value = codec.to_external_safe(internal_value)
        parts.append(BitVector.from_int(external_value, codec.external_bits))

    if not parts:
        return None

    return BitVector.concat(parts).to_bytes()


def decode_oti(
    strategy: Strategy, data: Optional[bytes]
) -> ObjectTransmissionInformation:
    """
    Decode an external OTI into the internal OTI the raw engine expects.

    Args:
        strategy: Resolved strategy
        data: External OTI bytes, or None when the strategy carries no OTI bits

    Raises:
        PayloadError: On a length mismatch or a field that fails its remap
    """
    total_bits = oti_bits(strategy)

    if total_bits == 0:
        if data is not None:
            raise PayloadError(
                f"Strategy carries no OTI bits but {len(data)} bytes of OTI were provided."
            )
        bits = BitVector(0)
    else:
        if data is None:
            raise PayloadError(
                f"Strategy expects {oti_size(strategy)} bytes of OTI but none were provided."
            )
        if len(data) != oti_size(strategy):
            raise PayloadError(
                f"OTI must be exactly {oti_size(strategy)} bytes, got {len(data)}."
            )
        bits = BitVector.from_bytes(data, total_bits)

    values = {}
    offset = 0
    for name, codec in strategy.oti.codecs():
        if codec.omitted:
            external_value = None
        else:
            external_value = bits.slice(offset, offset + codec.external_bits).to_int()
            offset += codec.external_bits
        values[name] = codec.to_internal_safe(external_value)

    oti = ObjectTransmissionInformation(**values)
    logger.debug("Decoded OTI: %s", oti)
    return oti
