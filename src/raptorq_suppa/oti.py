"""
Object Transmission Information (RFC 6330, section 3.3).

The raw engine exchanges OTI as a fixed 12-byte block:
    [transfer_length:5][fec_encoding_id:1][symbol_size:2]
    [num_source_blocks:1][num_sub_blocks:2][symbol_alignment:1]
"""

import struct
from dataclasses import dataclass

from .errors import PayloadError


OTI_SIZE = 12
FEC_ENCODING_ID_RAPTORQ = 6

# Field order and RFC widths (bits). The compact OTI codec walks this list.
OTI_FIELDS = (
    ("transfer_length", 40),
    ("fec_encoding_id", 8),
    ("symbol_size", 16),
    ("num_source_blocks", 8),
    ("num_sub_blocks", 16),
    ("symbol_alignment", 8),
)

# Fields that must be non-zero
_NON_ZERO_FIELDS = (
    "transfer_length",
    "symbol_size",
    "num_source_blocks",
    "num_sub_blocks",
    "symbol_alignment",
)


@dataclass(frozen=True)
class ObjectTransmissionInformation:
    """
    Decoded OTI.

    Invariants:
        - each field fits its RFC width
        - all fields except fec_encoding_id are non-zero
        - symbol_size % symbol_alignment == 0
    """

    transfer_length: int
    fec_encoding_id: int
    symbol_size: int
    num_source_blocks: int
    num_sub_blocks: int
    symbol_alignment: int

    def __post_init__(self):
        for name, bits in OTI_FIELDS:
            value = getattr(self, name)

            if not isinstance(value, int) or isinstance(value, bool):
                raise PayloadError(f"OTI {name} must be int, got {type(value).__name__}")
            if value < 0:
                raise PayloadError(f"OTI {name} ({value}) must be unsigned.")
            if value >> bits:
                raise PayloadError(f"OTI {name} ({value}) must fit in {bits} bits.")
            if name in _NON_ZERO_FIELDS and value == 0:
                raise PayloadError(f"OTI {name} ({value}) must be non-zero.")

        if self.symbol_size % self.symbol_alignment != 0:
            raise PayloadError(
                f"OTI symbol_size ({self.symbol_size}) must be divisible by "
                f"symbol_alignment ({self.symbol_alignment})."
            )

    @property
    def num_source_symbols(self) -> int:
        """Kt: total number of source symbols, ceil(F / T)."""
        return -(-self.transfer_length // self.symbol_size)

    def to_bytes(self) -> bytes:
        return (
            self.transfer_length.to_bytes(5, "big")
            + struct.pack(
                ">BHBHB",
                self.fec_encoding_id,
                self.symbol_size,
                self.num_source_blocks,
                self.num_sub_blocks,
                self.symbol_alignment,
            )
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "ObjectTransmissionInformation":
        if len(data) != OTI_SIZE:
            raise PayloadError(f"OTI must be exactly {OTI_SIZE} bytes, got {len(data)}")

        transfer_length = int.from_bytes(data[:5], "big")
        fec_encoding_id, symbol_size, num_source_blocks, num_sub_blocks, symbol_alignment = (
            struct.unpack(">BHBHB", bytes(data[5:]))
        )

        return cls(
            transfer_length=transfer_length,
            fec_encoding_id=fec_encoding_id,
            symbol_size=symbol_size,
            num_source_blocks=num_source_blocks,
            num_sub_blocks=num_sub_blocks,
            symbol_alignment=symbol_alignment,
        )
