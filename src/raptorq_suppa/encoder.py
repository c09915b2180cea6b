"""
Suppa encoder: raw engine output -> external OTI and external packets.

Pipeline:
    1. Resolve the strategy (once, at construction)
    2. Prepend the transfer-length trim prefix and pump the payload (optional)
    3. Check every SBN and the largest expected ESI against the strategy
       (again after the engine runs, if it reports a different layout)
    4. Run the raw engine
    5. Encode the OTI once; transform packets lazily, one per pull
"""

import logging
from dataclasses import dataclass, replace
from typing import Any, Iterator, Optional, Union

from .bitvector import BitVector
from .engine import (
    EncodingOptions,
    RawEngine,
    exact_options,
    max_esi_estimate,
    split_raw_packet,
)
from .errors import PayloadError
from .oti import ObjectTransmissionInformation
from .oti_codec import encode_oti
from .packet_header import encode_packet
from .strategy import resolve_strategy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EncodeResult:
    """
    Attributes:
        oti: External OTI, None when embedded in packets or fully omitted
        oti_spec: Raw 12-byte OTI produced by the engine
        packets: Lazy iterator of external encoding packets
    """

    oti: Optional[bytes]
    oti_spec: bytes
    packets: Iterator[bytes]


class SuppaEncoder:
    """
    Strategy-driven encoder over a raw engine.

    Parameters:
        engine (RawEngine): Engine producing the raw OTI and raw packets
        strategy: Partial strategy dict, Strategy, or None for defaults
    """

    def __init__(self, engine: RawEngine, strategy: Any = None):
        self.engine = engine
        self.strategy = resolve_strategy(strategy)
        self.sbn_codec = self.strategy.encoding_packet.sbn_codec()
        self.esi_codec = self.strategy.encoding_packet.esi_codec()

    def _external_sbn(self, sbn: int) -> Optional[int]:
        if self.sbn_codec.omitted:
            fixed_sbn = self.sbn_codec.to_internal_safe(None)
            if sbn != fixed_sbn:
                raise PayloadError(
                    f"strategy.encoding_packet.sbn: internal value {sbn} cannot be "
                    f"represented externally (SBN is fixed to {fixed_sbn})."
                )
            return None

        return self.sbn_codec.to_external_safe(sbn)

    def _apply_trim(self, data: bytes) -> bytes:
        trim = self.strategy.payload.transfer_length_trim
        if not trim.enabled:
            return data

        effective_length = len(data) + trim.prefix_bytes
        pumped_length = trim.pump_transfer_length(effective_length)

        if (
            not isinstance(pumped_length, int)
            or isinstance(pumped_length, bool)
            or pumped_length < effective_length
        ):
            raise PayloadError(
                f"strategy.payload.transfer_length_trim.pump_transfer_length must return "
                f"an int >= {effective_length}, got {pumped_length!r}."
            )

        stored_length = trim.codec(pumped_length).to_external_safe(len(data))
        prefix = BitVector.from_int(stored_length, trim.external_bits).to_bytes()

        logger.debug(
            "Transfer length trim: data=%d prefix=%d effective=%d pumped=%d",
            len(data), len(prefix), effective_length, pumped_length,
        )

        return prefix + data + b"\x00" * (pumped_length - effective_length)

    def _check_ranges(
        self,
        transfer_length: int,
        options: EncodingOptions,
        source: str = "Provided options.num_source_blocks",
    ) -> None:
        for sbn in range(options.num_source_blocks):
            try:
                self._external_sbn(sbn)
            except PayloadError as e:
                raise PayloadError(
                    f"{source} {options.num_source_blocks} "
                    f"cannot be represented with current SBN strategy: {e}"
                ) from e

        max_esi = max_esi_estimate(transfer_length, options)
        try:
            self.esi_codec.to_external_safe(max_esi)
        except PayloadError as e:
            raise PayloadError(
                f"Estimated symbol count {max_esi + 1} cannot be represented with "
                f"current ESI strategy: {e}"
            ) from e

    def _transform(self, raw_packets: Iterator[bytes], oti_data: Optional[bytes]) -> Iterator[bytes]:
        count = 0
        for raw_packet in raw_packets:
            sbn, esi, symbol_data = split_raw_packet(raw_packet)
            yield encode_packet(
                self.strategy,
                oti_data,
                self._external_sbn(sbn),
                self.esi_codec.to_external_safe(esi),
                symbol_data,
            )
            count += 1

        logger.debug("Emitted %d encoding packets", count)

    def encode(
        self, data: bytes, options: Union[None, dict, EncodingOptions] = None
    ) -> EncodeResult:
        """
        Encode `data` into an external OTI and a lazy packet stream.

        Raises:
            PayloadError: If the data, options or strategy cannot be encoded.
                          Range failures are raised before the engine runs.
        """
        options = exact_options(options)
        data = bytes(data)

        if len(data) < 1:
            raise PayloadError("Provided data must be non-empty.")

        payload = self._apply_trim(data)
        self._check_ranges(len(payload), options)

        raw = self.engine.encode(options, payload)
        oti = ObjectTransmissionInformation.from_bytes(raw.oti)
        if (oti.num_source_blocks, oti.symbol_size) != (
            options.num_source_blocks, options.symbol_size
        ):
            # engine chose its own layout
            self._check_ranges(
                oti.transfer_length,
                replace(
                    options,
                    symbol_size=oti.symbol_size,
                    num_source_blocks=oti.num_source_blocks,
                ),
                source="Engine-reported num_source_blocks",
            )
        external_oti = encode_oti(self.strategy, oti)

        logger.info(
            "Encoding %d bytes: transfer_length=%d symbol_size=%d source_blocks=%d placement=%s",
            len(data),
            oti.transfer_length,
            oti.symbol_size,
            oti.num_source_blocks,
            self.strategy.oti.placement,
        )

        if self.strategy.oti_in_packets:
            return EncodeResult(
                oti=None,
                oti_spec=bytes(raw.oti),
                packets=self._transform(raw.packets, external_oti),
            )

        return EncodeResult(
            oti=external_oti,
            oti_spec=bytes(raw.oti),
            packets=self._transform(raw.packets, None),
        )


def encode(
    engine: RawEngine,
    data: bytes,
    options: Union[None, dict, EncodingOptions] = None,
    strategy: Any = None,
) -> EncodeResult:
    """Convenience wrapper around SuppaEncoder."""
    return SuppaEncoder(engine, strategy).encode(data, options)
