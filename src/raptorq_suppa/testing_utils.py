"""
Testing utilities for the Suppa codec.

Provides an in-memory raw engine and packet corruption helpers.
Used only in test/evaluation contexts.
"""

import random
from typing import Callable, Iterable, Iterator, List, Optional, Union

from .engine import (
    OUTPUT_COMBINED,
    DecodedBlock,
    EncodingOptions,
    RawEncoding,
    RawEngine,
    build_raw_packet,
    check_output_format,
    exact_options,
    source_block_layout,
    source_block_symbols,
    split_raw_packet,
)
from .errors import EngineError, PayloadError
from .oti import FEC_ENCODING_ID_RAPTORQ, ObjectTransmissionInformation


class LoopbackEngine(RawEngine):
    """
    Repetition-code stand-in for a RaptorQ engine.

    Source block SBN with K source symbols emits ESIs 0..K+R-1, where ESI
    K+j repeats source symbol j % K. A block is recovered once every one of
    its source symbols has been seen under any ESI. The engine speaks the
    standard raw wire format, so it exercises the codec exactly like a real
    engine, minus the fountain-code mathematics.

    Attributes:
        packets_consumed (int): Packets pulled by the most recent decode()
    """

    def __init__(self):
        self.packets_consumed = 0

    def encode(self, options: Union[None, dict, EncodingOptions], data: bytes) -> RawEncoding:
        options = exact_options(options)
        data = bytes(data)

        if len(data) < 1:
            raise PayloadError("Provided data must be non-empty.")

        oti = ObjectTransmissionInformation(
            transfer_length=len(data),
            fec_encoding_id=FEC_ENCODING_ID_RAPTORQ,
            symbol_size=options.symbol_size,
            num_source_blocks=options.num_source_blocks,
            num_sub_blocks=options.num_sub_blocks,
            symbol_alignment=options.symbol_alignment,
        )
        if oti.num_source_symbols < oti.num_source_blocks:
            raise PayloadError(
                f"Provided num_source_blocks ({oti.num_source_blocks}) exceeds the "
                f"number of source symbols ({oti.num_source_symbols})."
            )

        return RawEncoding(
            oti.to_bytes(), self._packets(oti, options.num_repair_symbols, data)
        )

    def _packets(
        self, oti: ObjectTransmissionInformation, num_repair_symbols: int, data: bytes
    ) -> Iterator[bytes]:
        size = oti.symbol_size
        layout = source_block_layout(oti)

        for sbn, symbol_count in enumerate(source_block_symbols(oti)):
            offset, length = layout[sbn]
            block = data[offset:offset + length]
            symbols = [
                block[index * size:(index + 1) * size].ljust(size, b"\x00")
                for index in range(symbol_count)
            ]

            for esi in range(symbol_count + num_repair_symbols):
                yield build_raw_packet(sbn, esi, symbols[esi % symbol_count])

    def decode(
        self,
        oti: bytes,
        packets: Iterable[bytes],
        output_format: str = OUTPUT_COMBINED,
    ) -> Union[bytes, Iterator[DecodedBlock]]:
        check_output_format(output_format)
        info = ObjectTransmissionInformation.from_bytes(oti)
        self.packets_consumed = 0

        blocks = self._blocks(info, packets)
        if output_format == OUTPUT_COMBINED:
            ordered = sorted(blocks, key=lambda block: block.sbn)
            return b"".join(block.data for block in ordered)
        return blocks

    def _blocks(
        self, info: ObjectTransmissionInformation, packets: Iterable[bytes]
    ) -> Iterator[DecodedBlock]:
        counts = source_block_symbols(info)
        layout = source_block_layout(info)
        received = [dict() for _ in counts]
        remaining = set(range(len(counts)))

        for packet in packets:
            self.packets_consumed += 1
            sbn, esi, symbol = split_raw_packet(packet)

            if sbn >= len(counts):
                raise EngineError(f"Packet SBN {sbn} out of range for {len(counts)} source blocks")
            if len(symbol) != info.symbol_size:
                raise EngineError(
                    f"Packet symbol of {len(symbol)} bytes does not match symbol_size "
                    f"{info.symbol_size}"
                )
            if sbn not in remaining:
                continue

            received[sbn][esi % counts[sbn]] = symbol
            if len(received[sbn]) < counts[sbn]:
                continue

            remaining.discard(sbn)
            offset, length = layout[sbn]
            data = b"".join(received[sbn][index] for index in range(counts[sbn]))
            yield DecodedBlock(sbn, data[:length])

            if not remaining:
                return

        raise EngineError(
            f"Insufficient packets: {len(remaining)} source block(s) could not be recovered "
            f"after {self.packets_consumed} packets"
        )


class CountingIterable:
    """Wrap an iterable and count how many items were pulled from it."""

    def __init__(self, items: Iterable):
        self._items = iter(items)
        self.pulled = 0

    def __iter__(self):
        return self

    def __next__(self):
        item = next(self._items)
        self.pulled += 1
        return item


def corrupt_packet(packet: bytes, index: int = 0, mask: int = 0xFF) -> bytes:
    """XOR one byte of a packet with `mask`."""
    corrupted = bytearray(packet)
    corrupted[index] ^= mask
    return bytes(corrupted)


def corrupt_packets(
    packets: Iterable[bytes],
    should_corrupt: Callable[[int], bool],
    index: int = 0,
    mask: int = 0xFF,
) -> List[bytes]:
    """
    Corrupt the packets whose position satisfies `should_corrupt`.

    Example:
        >>> corrupt_packets(packets, lambda i: i % 2 == 1)  # every odd packet
    """
    return [
        corrupt_packet(packet, index, mask) if should_corrupt(position) else packet
        for position, packet in enumerate(packets)
    ]


def inject_bit_errors(
    data: bytes,
    error_rate: float,
    seed: Optional[int] = None
) -> bytes:
    """
    Flip a fraction of the bits of `data`.

    Args:
        data: Original data
        error_rate: Fraction of bits to flip (0.0 to 1.0)
        seed: Random seed for reproducibility (optional)

    Returns:
        Data with injected errors
    """
    if not 0.0 <= error_rate <= 1.0:
        raise ValueError(f"error_rate must be in [0, 1], got {error_rate}")

    rng = random.Random(seed)
    corrupted = bytearray(data)

    total_bits = len(data) * 8
    num_errors = int(total_bits * error_rate)

    for pos in rng.sample(range(total_bits), num_errors):
        corrupted[pos // 8] ^= 0x80 >> (pos % 8)

    return bytes(corrupted)
