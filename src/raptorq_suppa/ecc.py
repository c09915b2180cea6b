"""
Per-packet error-detecting codes.

A generator has the signature generate_ecc(header, payload) -> int, where
`header` is the packed mini-header and `payload` the symbol data. The same
generator produces the stored value at encode time and verifies it at decode
time; a mismatch marks the packet invalid so the decoder can drop it.
"""

import binascii
import zlib
from typing import Callable, Tuple

from reedsolo import RSCodec

from .errors import PayloadError, StrategyConfigurationError
from .field_codec import max_value
from .strategy import ECC_MAX_BITS, ECCSpec


EccGenerator = Callable[[bytes, bytes], int]


def compute_ecc(ecc: ECCSpec, header: bytes, payload: bytes) -> int:
    """
    Run the configured generator and check its result fits the ECC width.

    Raises:
        PayloadError: If the generator returns a non-int or an out-of-range value
    """
    value = ecc.generate_ecc(bytes(header), bytes(payload))

    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise PayloadError(
            f"strategy.encoding_packet.ecc.generate_ecc returned invalid value {value!r}. "
            f"Must be an unsigned int."
        )
    if value > max_value(ecc.external_bits):
        raise PayloadError(
            f"strategy.encoding_packet.ecc.generate_ecc returned {value}, which does not "
            f"fit in {ecc.external_bits} bits."
        )

    return value


def verify_ecc(ecc: ECCSpec, stored: int, header: bytes, payload: bytes) -> bool:
    return compute_ecc(ecc, header, payload) == stored


# =============================================================================
# BUILT-IN GENERATORS
# =============================================================================

def crc8(header: bytes, payload: bytes = b"") -> int:
    """CRC-8, polynomial 0x07, initial value 0."""
    crc = 0
    for byte in bytes(header) + bytes(payload):
        crc ^= byte
        for _ in range(8):
            if crc & 0x80:
                crc = ((crc << 1) ^ 0x07) & 0xFF
            else:
                crc = (crc << 1) & 0xFF
    return crc


def crc16(header: bytes, payload: bytes = b"") -> int:
    """CRC-16/CCITT (XModem variant)."""
    return binascii.crc_hqx(bytes(header) + bytes(payload), 0)


def crc32(header: bytes, payload: bytes = b"") -> int:
    return zlib.crc32(bytes(header) + bytes(payload)) & 0xFFFFFFFF


class ReedSolomonChecksum:
    """
    Reed-Solomon parity used as a detection code.

    The message (header || payload) is split into k = 255 - nsym byte chunks,
    the last one zero padded. The parity bytes of all chunks are XOR-folded
    into a single nsym-byte value.

    Parameters:
        nsym (int): Parity bytes per chunk

    Invariants:
        - 2 <= nsym <= ECC_MAX_BITS / 8
        - external_bits == 8 * nsym
    """

    def __init__(self, nsym: int = 4):
        if not isinstance(nsym, int) or isinstance(nsym, bool):
            raise StrategyConfigurationError(f"Reed-Solomon nsym must be int, got {nsym!r}")
        if nsym < 2:
            raise StrategyConfigurationError(f"nsym={nsym} must be >= 2")
        if nsym * 8 > ECC_MAX_BITS:
            raise StrategyConfigurationError(
                f"nsym={nsym} exceeds the {ECC_MAX_BITS}-bit ECC limit"
            )

        self.nsym = nsym
        self.k = 255 - nsym
        self.external_bits = nsym * 8
        self.codec = RSCodec(nsym)

    def _parity(self, chunk: bytes) -> bytes:
        encoded = self.codec.encode(chunk)
        return bytes(encoded[-self.nsym:])

    def __call__(self, header: bytes, payload: bytes = b"") -> int:
        message = bytes(header) + bytes(payload)
        folded = bytearray(self.nsym)

        for offset in range(0, max(len(message), 1), self.k):
            chunk = message[offset:offset + self.k]
            if len(chunk) < self.k:
                chunk = chunk + b"\x00" * (self.k - len(chunk))

            for index, byte in enumerate(self._parity(chunk)):
                folded[index] ^= byte

        return int.from_bytes(bytes(folded), "big")

    def __repr__(self) -> str:
        return f"ReedSolomonChecksum(nsym={self.nsym})"


ECC_ALGORITHMS = ("crc8", "crc16", "crc32", "reed_solomon")


def ecc_from_config(name: str, **params) -> Tuple[EccGenerator, int]:
    """
    Look up a built-in generator by name.

    Returns:
        (generate_ecc, external_bits)

    Raises:
        StrategyConfigurationError: On an unknown algorithm or bad parameters
    """
    if name == "crc8":
        return crc8, 8
    if name == "crc16":
        return crc16, 16
    if name == "crc32":
        return crc32, 32
    if name == "reed_solomon":
        checksum = ReedSolomonChecksum(**params)
        return checksum, checksum.external_bits

    raise StrategyConfigurationError(
        f"Unknown ECC algorithm {name!r}. Expected one of: {', '.join(ECC_ALGORITHMS)}."
    )
