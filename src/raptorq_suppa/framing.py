# file: src/raptorq_suppa/framing.py
"""
Length-prefixed container for an external OTI and its packet stream.

Stream structure:
    [oti_length:4][oti:oti_length]([packet_length:4][packet:packet_length])*

All lengths are big-endian uint32. oti_length == 0 means "no OTI" (placement
encoding_packet, or every OTI field omitted).
"""

import struct
from typing import BinaryIO, Iterable, Iterator, Optional, Tuple

from .errors import TruncatedStreamError


LENGTH_SIZE = 4
MAX_RECORD_LENGTH = 0xFFFFFFFF


def _record(data: bytes) -> bytes:
    if len(data) > MAX_RECORD_LENGTH:
        raise ValueError(f"Record of {len(data)} bytes exceeds the uint32 length prefix")
    return struct.pack(">I", len(data)) + bytes(data)


def write_stream(stream: BinaryIO, oti: Optional[bytes], packets: Iterable[bytes]) -> int:
    """
    Write the OTI and every packet to a binary stream.

    Returns:
        Number of packets written
    """
    stream.write(_record(oti or b""))

    count = 0
    for packet in packets:
        stream.write(_record(packet))
        count += 1
    return count


def _read_exact(stream: BinaryIO, size: int, what: str) -> bytes:
    data = stream.read(size)
    if len(data) != size:
        raise TruncatedStreamError(
            f"Stream truncated in {what}: got {len(data)} bytes, expected {size}"
        )
    return data


def _read_record(stream: BinaryIO, what: str) -> Optional[bytes]:
    header = stream.read(LENGTH_SIZE)
    if not header:
        return None
    if len(header) != LENGTH_SIZE:
        raise TruncatedStreamError(
            f"Stream truncated in {what} length: got {len(header)} bytes, expected {LENGTH_SIZE}"
        )

    length = struct.unpack(">I", header)[0]
    return _read_exact(stream, length, what)


def read_stream(stream: BinaryIO) -> Tuple[Optional[bytes], Iterator[bytes]]:
    """
    Read the OTI eagerly and return a lazy iterator over the packets.

    Raises:
        TruncatedStreamError: If the stream is empty or ends mid-record
    """
    oti = _read_record(stream, "OTI")
    if oti is None:
        raise TruncatedStreamError("Stream is empty: missing OTI record")

    def packets() -> Iterator[bytes]:
        while True:
            packet = _read_record(stream, "packet")
            if packet is None:
                return
            yield packet

    return (oti or None), packets()
