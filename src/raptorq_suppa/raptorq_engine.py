"""
Raw engine backed by the `raptorq` package (Python bindings of the Rust crate).

The bindings only expose the "with defaults" configuration: symbols are
aligned to 8 bytes, sub-blocking is disabled and the symbol size is derived
from the maximum packet payload. The OTI reported to the Suppa layer is
rebuilt from what the encoder actually produced.

Requires the optional dependency:  pip install raptorq-suppa[engine]
"""

import logging
from typing import Iterable, Iterator, List, Union

from raptorq import Decoder, Encoder

from .engine import (
    OUTPUT_COMBINED,
    DecodedBlock,
    EncodingOptions,
    RawEncoding,
    RawEngine,
    check_output_format,
    exact_options,
    source_block_layout,
    split_raw_packet,
)
from .errors import EngineError, PayloadError
from .oti import FEC_ENCODING_ID_RAPTORQ, ObjectTransmissionInformation

logger = logging.getLogger(__name__)

SYMBOL_ALIGNMENT = 8


class RaptorQEngine(RawEngine):
    """RawEngine over raptorq.Encoder / raptorq.Decoder."""

    def encode(self, options: Union[None, dict, EncodingOptions], data: bytes) -> RawEncoding:
        options = exact_options(options)
        data = bytes(data)

        if len(data) < 1:
            raise PayloadError("Provided data must be non-empty.")
        if options.symbol_alignment != SYMBOL_ALIGNMENT:
            raise PayloadError(
                f"raptorq engine only supports symbol_alignment {SYMBOL_ALIGNMENT}, "
                f"got {options.symbol_alignment}."
            )
        if options.num_sub_blocks != 1:
            raise PayloadError("raptorq engine only supports num_sub_blocks 1.")
        if options.num_source_blocks != 1:
            raise PayloadError("raptorq engine chooses num_source_blocks itself; provide 1.")

        encoder = Encoder.with_defaults(data, options.symbol_size)
        packets: List[bytes] = [
            bytes(packet) for packet in encoder.get_encoded_packets(options.num_repair_symbols)
        ]
        if not packets:
            raise EngineError("raptorq encoder produced no packets")

        symbol_size = len(packets[0]) - 4
        num_source_blocks = max(packet[0] for packet in packets) + 1

        oti = ObjectTransmissionInformation(
            transfer_length=len(data),
            fec_encoding_id=FEC_ENCODING_ID_RAPTORQ,
            symbol_size=symbol_size,
            num_source_blocks=num_source_blocks,
            num_sub_blocks=1,
            symbol_alignment=SYMBOL_ALIGNMENT,
        )
        logger.debug("raptorq encoder produced %d packets, %s", len(packets), oti)

        return RawEncoding(oti.to_bytes(), iter(packets))

    def decode(
        self,
        oti: bytes,
        packets: Iterable[bytes],
        output_format: str = OUTPUT_COMBINED,
    ) -> Union[bytes, Iterator[DecodedBlock]]:
        check_output_format(output_format)
        info = ObjectTransmissionInformation.from_bytes(oti)

        if info.symbol_alignment != SYMBOL_ALIGNMENT or info.num_sub_blocks != 1:
            raise EngineError(
                "raptorq engine requires symbol_alignment 8 and num_sub_blocks 1, got "
                f"{info.symbol_alignment} and {info.num_sub_blocks}"
            )

        if output_format == OUTPUT_COMBINED:
            return self._decode_combined(info, packets)
        return self._blocks(info, packets)

    def _decode_combined(
        self, info: ObjectTransmissionInformation, packets: Iterable[bytes]
    ) -> bytes:
        decoder = Decoder.with_defaults(info.transfer_length, info.symbol_size)

        consumed = 0
        for packet in packets:
            consumed += 1
            split_raw_packet(packet)
            result = decoder.decode(bytes(packet))
            if result is not None:
                logger.debug("raptorq decoder finished after %d packets", consumed)
                return bytes(result)

        raise EngineError(f"Insufficient packets: decoding failed after {consumed} packets")

    def _blocks(
        self, info: ObjectTransmissionInformation, packets: Iterable[bytes]
    ) -> Iterator[DecodedBlock]:
        data = self._decode_combined(info, packets)
        for sbn, (offset, length) in enumerate(source_block_layout(info)):
            yield DecodedBlock(sbn, data[offset:offset + length])
