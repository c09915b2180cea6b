"""
Suppa decoder: external OTI and packets -> raw engine -> application data.

Pipeline:
    1. Parse every packet; drop the ones too short or failing ECC
    2. Resolve the external OTI (argument, or first valid packet)
    3. Map SBN/ESI back to internal values and rebuild raw packets
    4. Run the raw engine (which stops pulling once it has enough)
    5. Strip the transfer-length trim prefix (optional)
"""

import itertools
import logging
from typing import Any, Iterable, Iterator, List, Optional, Tuple, Union

from .bitvector import BitVector
from .engine import (
    OUTPUT_COMBINED,
    DecodedBlock,
    RawEngine,
    build_raw_packet,
    check_output_format,
    source_block_layout,
)
from .errors import MalformedPacketError, OTIMismatchError, PayloadError, TrimLengthError
from .oti import ObjectTransmissionInformation
from .oti_codec import decode_oti
from .packet_header import DecodedPacket, decode_packet
from .strategy import resolve_strategy

logger = logging.getLogger(__name__)


class SuppaDecoder:
    """
    Strategy-driven decoder over a raw engine.

    Parameters:
        engine (RawEngine): Engine reconstructing data from raw packets
        strategy: Partial strategy dict, Strategy, or None for defaults
    """

    def __init__(self, engine: RawEngine, strategy: Any = None):
        self.engine = engine
        self.strategy = resolve_strategy(strategy)
        self.sbn_codec = self.strategy.encoding_packet.sbn_codec()
        self.esi_codec = self.strategy.encoding_packet.esi_codec()
        self.dropped_packets = 0

    def _valid_packets(self, packets: Iterable[bytes]) -> Iterator[DecodedPacket]:
        for index, packet in enumerate(packets):
            try:
                decoded = decode_packet(self.strategy, packet)
            except MalformedPacketError as e:
                self.dropped_packets += 1
                logger.debug("Dropping packet %d: %s", index, e)
                continue

            if not decoded.valid:
                self.dropped_packets += 1
                logger.debug("Dropping packet %d: ECC mismatch", index)
                continue

            yield decoded

    def _extract_oti(
        self, packets: Iterator[DecodedPacket]
    ) -> Tuple[Optional[bytes], Iterator[DecodedPacket]]:
        first = next(packets, None)
        if first is None:
            raise PayloadError("No valid encoding packet to extract the OTI from.")

        logger.debug("Extracted per-packet OTI: %r", first.oti_data)
        return first.oti_data, self._check_oti(itertools.chain([first], packets), first.oti_data)

    def _check_oti(
        self, packets: Iterable[DecodedPacket], reference: Optional[bytes]
    ) -> Iterator[DecodedPacket]:
        for packet in packets:
            if packet.oti_data != reference:
                raise OTIMismatchError(
                    "OTI mismatch detected in encoding packets. All packets must have "
                    "identical OTI when using per-packet placement.",
                    expected=reference,
                    received=packet.oti_data,
                )
            yield packet

    def _raw_packets(self, packets: Iterable[DecodedPacket]) -> Iterator[bytes]:
        for packet in packets:
            yield build_raw_packet(
                self.sbn_codec.to_internal_safe(packet.external_sbn),
                self.esi_codec.to_internal_safe(packet.external_esi),
                packet.symbol_data,
            )

    # -------------------------------------------------------------------------
    # Transfer-length trim
    # -------------------------------------------------------------------------

    def _trim_length(self, head: bytes, available: int, oti: ObjectTransmissionInformation) -> int:
        trim = self.strategy.payload.transfer_length_trim

        if len(head) < trim.prefix_bytes:
            raise TrimLengthError(
                f"Decoded data ({len(head)} bytes) is shorter than the "
                f"{trim.prefix_bytes}-byte transfer_length_trim prefix.",
                available=len(head),
            )

        stored_length = BitVector.from_bytes(head, trim.external_bits).to_int()
        length = trim.codec(oti.transfer_length).to_internal_safe(stored_length)

        if length > available:
            raise TrimLengthError(
                f"transfer_length_trim specifies length {length} but only {available} "
                f"bytes are available.",
                trim_length=length,
                available=available,
            )

        logger.debug("Transfer length trim: stored=%d length=%d", stored_length, length)
        return length

    def _trim_combined(self, data: bytes, oti: ObjectTransmissionInformation) -> bytes:
        prefix_bytes = self.strategy.payload.transfer_length_trim.prefix_bytes
        length = self._trim_length(data, len(data) - prefix_bytes, oti)
        return data[prefix_bytes:prefix_bytes + length]

    def _trim_blocks(
        self, blocks: Iterator[DecodedBlock], oti: ObjectTransmissionInformation
    ) -> Iterator[DecodedBlock]:
        prefix_bytes = self.strategy.payload.transfer_length_trim.prefix_bytes
        layout = source_block_layout(oti)
        held: List[DecodedBlock] = []
        window = None

        def clip(block: DecodedBlock) -> DecodedBlock:
            offset = layout[block.sbn][0]
            start = max(window[0] - offset, 0)
            end = min(window[1] - offset, len(block.data))
            return DecodedBlock(block.sbn, block.data[start:end] if end > start else b"")

        for block in blocks:
            if window is not None:
                yield clip(block)
                continue

            if block.sbn != 0:
                held.append(block)
                continue

            length = self._trim_length(block.data, oti.transfer_length - prefix_bytes, oti)
            window = (prefix_bytes, prefix_bytes + length)

            yield clip(block)
            for held_block in held:
                yield clip(held_block)
            held.clear()

        if window is None:
            if not held:
                raise PayloadError("No blocks received to extract transfer_length_trim from.")
            raise PayloadError("Source block 0 carrying the transfer_length_trim prefix was not decoded.")

    # -------------------------------------------------------------------------

    def decode(
        self,
        oti: Optional[bytes],
        packets: Iterable[bytes],
        output_format: str = OUTPUT_COMBINED,
    ) -> Union[bytes, Iterator[DecodedBlock]]:
        """
        Decode external packets back into application data.

        Args:
            oti: External OTI; must be None with encoding_packet placement
            packets: Iterable of external encoding packets, pulled lazily
            output_format: "combined" for bytes, "blocks" for DecodedBlock iterator

        Raises:
            PayloadError: On an OTI argument/placement conflict, a bad OTI,
                          or an inconsistent trim length
            OTIMismatchError: If per-packet OTIs differ
        """
        check_output_format(output_format)
        self.dropped_packets = 0
        valid_packets = self._valid_packets(packets)

        if self.strategy.oti_in_packets:
            if oti is not None:
                raise PayloadError(
                    "When strategy.oti.placement is 'encoding_packet', "
                    "the oti parameter must be None."
                )
            oti, valid_packets = self._extract_oti(valid_packets)

        internal_oti = decode_oti(self.strategy, oti)
        result = self.engine.decode(
            internal_oti.to_bytes(), self._raw_packets(valid_packets), output_format
        )

        trim_enabled = self.strategy.payload.transfer_length_trim.enabled

        if output_format == OUTPUT_COMBINED:
            if trim_enabled:
                result = self._trim_combined(result, internal_oti)
            logger.info(
                "Decoded %d bytes (%d packets dropped)", len(result), self.dropped_packets
            )
            return result

        if trim_enabled:
            return self._trim_blocks(iter(result), internal_oti)
        return result


def decode(
    engine: RawEngine,
    oti: Optional[bytes],
    packets: Iterable[bytes],
    strategy: Any = None,
    output_format: str = OUTPUT_COMBINED,
) -> Union[bytes, Iterator[DecodedBlock]]:
    """Convenience wrapper around SuppaDecoder."""
    return SuppaDecoder(engine, strategy).decode(oti, packets, output_format)
