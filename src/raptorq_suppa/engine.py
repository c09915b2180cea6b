"""
Raw engine interface.

A raw engine performs the RaptorQ mathematics and speaks the standard wire
format: a 12-byte OTI and packets of the form
    [SBN:1][ESI:3 big-endian][symbol data]

The Suppa encoder/decoder wrap any RawEngine implementation.
"""

import abc
from dataclasses import dataclass, fields
from typing import Any, Iterable, Iterator, List, NamedTuple, Tuple, Union

from .errors import MalformedPacketError, PayloadError
from .oti import ObjectTransmissionInformation


RAW_HEADER_SIZE = 4
MAX_ESI = (1 << 24) - 1

OUTPUT_COMBINED = "combined"
OUTPUT_BLOCKS = "blocks"
OUTPUT_FORMATS = (OUTPUT_COMBINED, OUTPUT_BLOCKS)


@dataclass(frozen=True)
class EncodingOptions:
    symbol_size: int = 1400
    num_repair_symbols: int = 15
    num_source_blocks: int = 1
    num_sub_blocks: int = 1
    symbol_alignment: int = 8


# (name, minimum, maximum, message)
_OPTION_BOUNDS = (
    ("symbol_size", 1, 65535, "must be non-zero uint16"),
    ("num_repair_symbols", 0, MAX_ESI, "must be unsigned"),
    ("num_source_blocks", 1, 255, "must be non-zero uint8"),
    ("num_sub_blocks", 1, 65535, "must be non-zero uint16"),
    ("symbol_alignment", 1, 255, "must be non-zero uint8"),
)


def exact_options(options: Union[None, dict, EncodingOptions] = None) -> EncodingOptions:
    """
    Fill in defaults and validate encoding options.

    Raises:
        PayloadError: If an option is out of range or unknown
    """
    if options is None:
        options = EncodingOptions()
    elif isinstance(options, dict):
        known = {f.name for f in fields(EncodingOptions)}
        unknown = sorted(set(options) - known)
        if unknown:
            raise PayloadError(f"Unknown encoding options: {', '.join(map(str, unknown))}.")
        options = EncodingOptions(**options)
    elif not isinstance(options, EncodingOptions):
        raise PayloadError("Provided options must be dict, EncodingOptions or None.")

    for name, minimum, maximum, message in _OPTION_BOUNDS:
        value = getattr(options, name)
        if (
            not isinstance(value, int)
            or isinstance(value, bool)
            or value < minimum
            or value > maximum
        ):
            raise PayloadError(f"Provided {name} {message}.")

    if options.symbol_size % options.symbol_alignment != 0:
        raise PayloadError(
            f"Provided symbol_size ({options.symbol_size}) must be a multiple of "
            f"symbol_alignment ({options.symbol_alignment})."
        )

    return options


class RawEncoding(NamedTuple):
    oti: bytes
    packets: Iterator[bytes]


class DecodedBlock(NamedTuple):
    sbn: int
    data: bytes


class RawEngine(abc.ABC):
    """Abstract RaptorQ engine using the standard 12-byte OTI and 4-byte payload id."""

    @abc.abstractmethod
    def encode(self, options: EncodingOptions, data: bytes) -> RawEncoding:
        """
        Encode `data`.

        Returns:
            RawEncoding with the 12-byte OTI and a lazy packet iterator
        """

    @abc.abstractmethod
    def decode(
        self,
        oti: bytes,
        packets: Iterable[bytes],
        output_format: str = OUTPUT_COMBINED,
    ) -> Union[bytes, Iterator[DecodedBlock]]:
        """
        Decode raw packets.

        Implementations must stop pulling from `packets` once the data can be
        reconstructed.

        Returns:
            bytes for "combined", an iterator of DecodedBlock for "blocks"
        """


def split_raw_packet(packet: bytes) -> Tuple[int, int, bytes]:
    """
    Split a raw packet into (sbn, esi, symbol_data).

    Raises:
        MalformedPacketError: If the packet has no room for its payload id
    """
    if len(packet) < RAW_HEADER_SIZE:
        raise MalformedPacketError(
            f"Raw packet of {len(packet)} bytes is shorter than its {RAW_HEADER_SIZE}-byte header."
        )

    sbn = packet[0]
    esi = int.from_bytes(bytes(packet[1:RAW_HEADER_SIZE]), "big")
    return sbn, esi, bytes(packet[RAW_HEADER_SIZE:])


def build_raw_packet(sbn: int, esi: int, symbol_data: bytes) -> bytes:
    if not 0 <= sbn <= 0xFF:
        raise PayloadError(f"Raw SBN {sbn} must fit in 8 bits.")
    if not 0 <= esi <= MAX_ESI:
        raise PayloadError(f"Raw ESI {esi} must fit in 24 bits.")
    return bytes([sbn]) + esi.to_bytes(3, "big") + bytes(symbol_data)


# =============================================================================
# RFC 6330 BLOCK LAYOUT
# =============================================================================

def partition(total: int, parts: int) -> Tuple[int, int, int, int]:
    """
    RFC 6330 Partition[I, J].

    Returns:
        (IL, IS, JL, JS): JL parts of size IL followed by JS parts of size IS
    """
    large = -(-total // parts)
    small = total // parts
    num_large = total - small * parts
    return large, small, num_large, parts - num_large


def source_block_symbols(oti: ObjectTransmissionInformation) -> List[int]:
    """Number of source symbols in each source block, by SBN."""
    large, small, num_large, num_small = partition(
        oti.num_source_symbols, oti.num_source_blocks
    )
    return [large] * num_large + [small] * num_small


def source_block_layout(oti: ObjectTransmissionInformation) -> List[Tuple[int, int]]:
    """
    Byte (offset, length) of each source block within the transfer.

    The last block is truncated to the transfer length.
    """
    layout = []
    offset = 0
    for symbols in source_block_symbols(oti):
        length = max(0, min(symbols * oti.symbol_size, oti.transfer_length - offset))
        layout.append((offset, length))
        offset += length
    return layout


def max_esi_estimate(transfer_length: int, options: EncodingOptions) -> int:
    """Largest ESI the engine is expected to emit: ceil(Kt / Z) + R - 1."""
    source_symbols = -(-transfer_length // options.symbol_size)
    largest_block = -(-source_symbols // options.num_source_blocks)
    return largest_block + options.num_repair_symbols - 1


def check_output_format(output_format: Any) -> str:
    if output_format not in OUTPUT_FORMATS:
        raise PayloadError(
            f'Provided output_format ({output_format}) must be "{OUTPUT_COMBINED}" '
            f'or "{OUTPUT_BLOCKS}".'
        )
    return output_format
