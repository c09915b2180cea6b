"""
Encoding packet header codec.

Wire format:
    [ECC][OTI][SBN][ESI][symbol data]

Sections with width 0 contribute nothing. The ECC section occupies
ceil(ecc_bits / 8) bytes. An embedded OTI keeps its whole-byte external
form; [SBN][ESI] after it are bit-packed and zero padded once at the end. The ECC is
computed over the mini-header bytes and the symbol data.
"""

from dataclasses import dataclass
from typing import Optional

from .bitvector import BitVector
from .ecc import compute_ecc, verify_ecc
from .errors import MalformedPacketError, PayloadError
from .oti_codec import oti_size
from .strategy import Strategy


@dataclass(frozen=True)
class DecodedPacket:
    """
    Parsed encoding packet.

    `valid` is False when the stored ECC does not match; every other field
    is None in that case.
    """

    valid: bool
    oti_data: Optional[bytes] = None
    external_sbn: Optional[int] = None
    external_esi: Optional[int] = None
    symbol_data: Optional[bytes] = None


INVALID_PACKET = DecodedPacket(valid=False)


def _embedded_oti_bits(strategy: Strategy) -> int:
    return oti_size(strategy) * 8 if strategy.oti_in_packets else 0


def miniheader_bits(strategy: Strategy) -> int:
    packet = strategy.encoding_packet
    return (
        _embedded_oti_bits(strategy)
        + packet.sbn.external_bits
        + packet.esi.external_bits
    )


def miniheader_size(strategy: Strategy) -> int:
    """Byte length of [OTI][SBN][ESI], derived from the strategy alone."""
    return (miniheader_bits(strategy) + 7) // 8


def header_size(strategy: Strategy) -> int:
    """Byte length of the full header: ECC bytes plus the mini-header."""
    return strategy.encoding_packet.ecc.byte_length + miniheader_size(strategy)


def _pack(name: str, value: int, bits: int) -> BitVector:
    try:
        return BitVector.from_int(value, bits)
    except ValueError as e:
        raise PayloadError(f"strategy.encoding_packet.{name}: {e}") from e


def encode_packet(
    strategy: Strategy,
    oti_data: Optional[bytes],
    external_sbn: Optional[int],
    external_esi: int,
    symbol_data: bytes,
) -> bytes:
    """
    Assemble one encoding packet.

    Args:
        strategy: Resolved strategy
        oti_data: External OTI bytes (embedded only with encoding_packet placement)
        external_sbn: SBN wire value, None when the SBN is omitted
        external_esi: ESI wire value
        symbol_data: Raw symbol payload, appended unchanged

    Raises:
        PayloadError: If a value does not fit its section
    """
    packet = strategy.encoding_packet
    parts = []

    if _embedded_oti_bits(strategy) > 0:
        if oti_data is None or len(oti_data) != oti_size(strategy):
            raise PayloadError(
                f"Embedded OTI must be exactly {oti_size(strategy)} bytes."
            )
        parts.append(BitVector.from_bytes(oti_data))

    if packet.sbn.external_bits > 0:
        if external_sbn is None:
            raise PayloadError("SBN is required when strategy.encoding_packet.sbn is carried.")
        parts.append(_pack("sbn", external_sbn, packet.sbn.external_bits))

    parts.append(_pack("esi", external_esi, packet.esi.external_bits))
    miniheader = BitVector.concat(parts).to_bytes()

    ecc_prefix = b""
    if packet.ecc.external_bits > 0:
        ecc_value = compute_ecc(packet.ecc, miniheader, symbol_data)
        ecc_prefix = BitVector.from_int(ecc_value, packet.ecc.external_bits).to_bytes()

    return ecc_prefix + miniheader + bytes(symbol_data)


def decode_packet(strategy: Strategy, packet_data: bytes) -> DecodedPacket:
    """
    Parse one encoding packet.

    Returns:
        DecodedPacket; valid=False when the ECC does not match

    Raises:
        MalformedPacketError: If the packet is shorter than its header
    """
    packet = strategy.encoding_packet
    ecc_bytes = packet.ecc.byte_length
    size = header_size(strategy)

    if len(packet_data) < size:
        raise MalformedPacketError(
            f"Packet of {len(packet_data)} bytes is shorter than its {size}-byte header."
        )

    miniheader = bytes(packet_data[ecc_bytes:size])
    symbol_data = bytes(packet_data[size:])

    if packet.ecc.external_bits > 0:
        stored = BitVector.from_bytes(packet_data[:ecc_bytes], packet.ecc.external_bits)
        if not verify_ecc(packet.ecc, stored.to_int(), miniheader, symbol_data):
            return INVALID_PACKET

    bits = BitVector.from_bytes(miniheader, miniheader_bits(strategy))
    offset = 0

    oti_data = None
    embedded_bits = _embedded_oti_bits(strategy)
    if embedded_bits > 0:
        oti_data = miniheader[:embedded_bits // 8]
        offset += embedded_bits

    external_sbn = None
    if packet.sbn.external_bits > 0:
        external_sbn = bits.slice(offset, offset + packet.sbn.external_bits).to_int()
        offset += packet.sbn.external_bits

    external_esi = bits.slice(offset, offset + packet.esi.external_bits).to_int()

    return DecodedPacket(
        valid=True,
        oti_data=oti_data,
        external_sbn=external_sbn,
        external_esi=external_esi,
        symbol_data=symbol_data,
    )
