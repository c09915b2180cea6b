"""
raptorq_suppa: strategy-driven header/OTI codec over a RaptorQ engine

Shrinks, omits, reorders or protects the per-packet metadata (SBN, ESI,
optional ECC, optional embedded OTI) and the per-session OTI that the raw
RaptorQ wire format fixes at 4 bytes per packet and 12 bytes of OTI.

Public API:
    - encode(engine, data, options=None, strategy=None) -> EncodeResult
    - decode(engine, oti, packets, strategy=None, output_format="combined")
    - resolve_strategy(partial) -> Strategy
    - encode_oti(strategy, oti) / decode_oti(strategy, data)
    - encode_packet(...) / decode_packet(strategy, packet)
    - crc8, crc16, crc32, ReedSolomonChecksum
"""

from .bitvector import BitVector
from .field_codec import FieldCodec, FieldSpec
from .strategy import (
    ECCSpec,
    EncodingPacketStrategy,
    OTIStrategy,
    PayloadStrategy,
    Strategy,
    TransferLengthTrim,
    TrimContext,
    resolve_strategy,
)
from .oti import ObjectTransmissionInformation
from .oti_codec import decode_oti, encode_oti, oti_size
from .packet_header import DecodedPacket, decode_packet, encode_packet, header_size, miniheader_size
from .ecc import ReedSolomonChecksum, crc8, crc16, crc32, ecc_from_config
from .engine import DecodedBlock, EncodingOptions, RawEncoding, RawEngine, exact_options
from .encoder import EncodeResult, SuppaEncoder, encode
from .decoder import SuppaDecoder, decode
from .errors import (
    SuppaError,
    PayloadError,
    StrategyConfigurationError,
    OTIMismatchError,
    TrimLengthError,
    MalformedPacketError,
    EngineError,
    TruncatedStreamError,
)

__version__ = "1.0.0"

__all__ = [
    "BitVector",
    "FieldCodec",
    "FieldSpec",
    "ECCSpec",
    "EncodingPacketStrategy",
    "OTIStrategy",
    "PayloadStrategy",
    "Strategy",
    "TransferLengthTrim",
    "TrimContext",
    "resolve_strategy",
    "ObjectTransmissionInformation",
    "decode_oti",
    "encode_oti",
    "oti_size",
    "DecodedPacket",
    "decode_packet",
    "encode_packet",
    "header_size",
    "miniheader_size",
    "ReedSolomonChecksum",
    "crc8",
    "crc16",
    "crc32",
    "ecc_from_config",
    "DecodedBlock",
    "EncodingOptions",
    "RawEncoding",
    "RawEngine",
    "exact_options",
    "EncodeResult",
    "SuppaEncoder",
    "encode",
    "SuppaDecoder",
    "decode",
    "SuppaError",
    "PayloadError",
    "StrategyConfigurationError",
    "OTIMismatchError",
    "TrimLengthError",
    "MalformedPacketError",
    "EngineError",
    "TruncatedStreamError",
]
