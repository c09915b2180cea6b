"""
Bit-addressable buffer backed by byte storage.

Bits are numbered MSB-first: bit 0 is the most significant bit of byte 0.
Every multi-field header in this package is a concatenation of BitVectors at
increasing bit offsets with no realignment, so encode and decode must agree
on this ordering and on the zero padding of the last byte.
"""

from typing import Iterable, Optional

import numpy as np


class BitVector:
    """
    Fixed-length sequence of bits stored in a numpy uint8 array.

    Parameters:
        length (int): Number of bits

    Invariants:
        - len(buffer) == ceil(length / 8)
        - Bits beyond `length` in the last byte are zero when exported
        - slice() and from_*() produce independent copies (no aliasing)
    """

    def __init__(self, length: int):
        if not isinstance(length, int) or isinstance(length, bool) or length < 0:
            raise ValueError(f"BitVector length must be a non-negative int, got {length!r}")

        self._length = length
        self._buffer = np.zeros((length + 7) // 8, dtype=np.uint8)

    @classmethod
    def from_int(cls, value: int, length: int) -> "BitVector":
        """
        Build a BitVector holding `value` in exactly `length` bits, MSB-first.

        Raises:
            ValueError: If value is negative or needs more than `length` bits
        """
        if not isinstance(value, int) or isinstance(value, bool):
            raise ValueError(f"Expected int value, got {type(value).__name__}")
        if value < 0:
            raise ValueError(f"Value {value} must be unsigned")
        if value >> length:
            raise ValueError(f"Value {value} does not fit in {length} bits")

        vector = cls(length)
        if length == 0:
            return vector

        padding = vector.byte_length * 8 - length
        raw = (value << padding).to_bytes(vector.byte_length, "big")
        vector._buffer = np.frombuffer(raw, dtype=np.uint8).copy()
        return vector

    @classmethod
    def from_bytes(cls, data: bytes, length: Optional[int] = None) -> "BitVector":
        """
        Build a BitVector from the leading `length` bits of `data`.

        Args:
            data: Source bytes
            length: Number of bits to take (default: all of them)
        """
        if length is None:
            length = len(data) * 8
        if length > len(data) * 8:
            raise ValueError(f"Cannot take {length} bits from {len(data)} bytes")

        vector = cls(length)
        source = np.frombuffer(bytes(data[:vector.byte_length]), dtype=np.uint8)
        vector._buffer[:] = source
        vector._clear_padding()
        return vector

    @classmethod
    def concat(cls, parts: Iterable["BitVector"]) -> "BitVector":
        """Concatenate vectors back to back with no realignment."""
        parts = list(parts)
        result = cls(sum(len(part) for part in parts))

        offset = 0
        for part in parts:
            result.set(part, offset)
            offset += len(part)

        return result

    @classmethod
    def _from_bits(cls, bits: np.ndarray) -> "BitVector":
        vector = cls(int(bits.size))
        if bits.size:
            vector._buffer = np.packbits(bits.astype(np.uint8), bitorder="big")
        return vector

    def __len__(self) -> int:
        return self._length

    @property
    def byte_length(self) -> int:
        return self._buffer.size

    def _check_index(self, bit_index: int) -> None:
        if bit_index < 0 or bit_index >= self._length:
            raise IndexError(f"Bit index {bit_index} out of range for {self._length} bits")

    def _clear_padding(self) -> None:
        excess = self.byte_length * 8 - self._length
        if excess:
            self._buffer[-1] &= (0xFF << excess) & 0xFF

    def _bits(self) -> np.ndarray:
        return np.unpackbits(self._buffer, bitorder="big")[:self._length]

    def get_bit(self, bit_index: int) -> int:
        self._check_index(bit_index)
        byte_index, bit_offset = divmod(bit_index, 8)
        return (int(self._buffer[byte_index]) >> (7 - bit_offset)) & 1

    def set_bit(self, bit_index: int, value: int) -> None:
        self._check_index(bit_index)
        byte_index, bit_offset = divmod(bit_index, 8)
        mask = 1 << (7 - bit_offset)

        if value:
            self._buffer[byte_index] |= mask
        else:
            self._buffer[byte_index] &= ~mask & 0xFF

    def slice(self, start: int, end: int) -> "BitVector":
        """Copy bits [start, end) into a new BitVector of length end - start."""
        if start < 0 or end > self._length or start > end:
            raise IndexError(f"Invalid slice [{start}:{end}] of {self._length} bits")
        return BitVector._from_bits(self._bits()[start:end])

    def set(self, source: "BitVector", offset: int = 0) -> "BitVector":
        """
        Copy `source` into this vector starting at bit `offset`.

        The copy is clamped to the bits available after `offset`.
        """
        if not isinstance(source, BitVector):
            raise TypeError(f"Source must be a BitVector, got {type(source).__name__}")
        if offset < 0 or offset > self._length:
            raise IndexError(f"Offset {offset} out of range for {self._length} bits")

        copy_length = min(len(source), self._length - offset)
        if copy_length == 0:
            return self

        bits = self._bits()
        bits[offset:offset + copy_length] = source._bits()[:copy_length]

        padded = np.zeros(self.byte_length * 8, dtype=np.uint8)
        padded[:self._length] = bits
        self._buffer = np.packbits(padded, bitorder="big")
        return self

    def to_bytes(self) -> bytes:
        """Export the backing bytes with trailing bits beyond the length zeroed."""
        result = self._buffer.copy()
        excess = self.byte_length * 8 - self._length
        if excess:
            result[-1] &= (0xFF << excess) & 0xFF
        return result.tobytes()

    def to_int(self) -> int:
        """Reconstruct the unsigned integer held by the bits (MSB-first)."""
        if self._length == 0:
            return 0
        padding = self.byte_length * 8 - self._length
        return int.from_bytes(self.to_bytes(), "big") >> padding

    def to_string(self) -> str:
        return "".join(str(bit) for bit in self._bits())

    def __eq__(self, other) -> bool:
        if not isinstance(other, BitVector):
            return NotImplemented
        return self._length == other._length and self.to_bytes() == other.to_bytes()

    def __repr__(self) -> str:
        return f"BitVector({self._length} bits: {self.to_string()})"
