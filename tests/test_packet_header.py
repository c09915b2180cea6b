# file: tests/test_packet_header.py

"""
Unit tests for encoding packet header assembly and parsing.
"""

import itertools

import pytest

from raptorq_suppa.ecc import crc8, crc16
from raptorq_suppa.errors import MalformedPacketError, PayloadError
from raptorq_suppa.packet_header import (
    decode_packet,
    encode_packet,
    header_size,
    miniheader_size,
)
from raptorq_suppa.strategy import resolve_strategy
from raptorq_suppa.testing_utils import corrupt_packet


SYMBOL = bytes(range(16))

COMPACT_OTI = {
    "placement": "encoding_packet",
    "transfer_length": {"external_bits": 16},
    "fec_encoding_id": {"external_bits": 0},
    "symbol_size": {"external_bits": 0, "value": 16},
    "num_source_blocks": {"external_bits": 0, "value": 1},
    "num_sub_blocks": {"external_bits": 0, "value": 1},
    "symbol_alignment": {"external_bits": 0, "value": 8},
}


TWELVE_BIT_OTI = dict(COMPACT_OTI, transfer_length={"external_bits": 12})

NARROW_PACKET = {"sbn": {"external_bits": 0}, "esi": {"external_bits": 12}}


def crc12(header, payload):
    return crc16(header, payload) & 0xFFF


ECC_VARIANTS = {
    "none": {"external_bits": 0},
    "crc8": {"external_bits": 8, "generate_ecc": crc8},
    "crc12": {"external_bits": 12, "generate_ecc": crc12},
}


class TestHeaderSize:
    """Test header width computed from the strategy alone."""

    def test_default(self):
        strategy = resolve_strategy()
        assert miniheader_size(strategy) == 4
        assert header_size(strategy) == 4

    def test_sbn_omitted(self):
        strategy = resolve_strategy({"encoding_packet": {"sbn": {"external_bits": 0}}})
        assert header_size(strategy) == 3

    def test_unaligned_sections_rounded_once(self):
        """3-bit SBN + 10-bit ESI share two bytes."""
        strategy = resolve_strategy({
            "encoding_packet": {"sbn": {"external_bits": 3}, "esi": {"external_bits": 10}},
        })
        assert header_size(strategy) == 2

    def test_ecc_occupies_whole_bytes(self):
        strategy = resolve_strategy({"encoding_packet": {"ecc": ECC_VARIANTS["crc12"]}})
        assert miniheader_size(strategy) == 4
        assert header_size(strategy) == 6

    def test_negotiated_oti_not_in_header(self):
        strategy = resolve_strategy({"oti": dict(COMPACT_OTI, placement="negotiation")})
        assert header_size(strategy) == 4

    def test_embedded_oti_in_header(self):
        strategy = resolve_strategy({"oti": COMPACT_OTI})
        assert header_size(strategy) == 6

    def test_unaligned_embedded_oti_keeps_whole_bytes(self):
        """A 12-bit OTI occupies 2 bytes before a 12-bit ESI."""
        strategy = resolve_strategy({"oti": TWELVE_BIT_OTI, "encoding_packet": NARROW_PACKET})
        assert miniheader_size(strategy) == 4
        assert header_size(strategy) == 4


class TestEncodePacket:
    """Test header bit layout."""

    def test_default_matches_raw_layout(self):
        packet = encode_packet(resolve_strategy(), None, 2, 0x010203, SYMBOL)
        assert packet == b"\x02\x01\x02\x03" + SYMBOL

    def test_nibble_sbn_and_12_bit_esi(self):
        strategy = resolve_strategy({
            "encoding_packet": {"sbn": {"external_bits": 4}, "esi": {"external_bits": 12}},
        })
        packet = encode_packet(strategy, None, 7, 0x123, SYMBOL)
        assert packet[:2] == bytes([0x71, 0x23])
        assert packet[2:] == SYMBOL

    def test_ecc_prefix(self):
        strategy = resolve_strategy({"encoding_packet": {"ecc": ECC_VARIANTS["crc8"]}})
        packet = encode_packet(strategy, None, 0, 5, SYMBOL)
        assert packet[0] == crc8(b"\x00\x00\x00\x05", SYMBOL)
        assert packet[1:5] == b"\x00\x00\x00\x05"

    def test_embedded_oti_precedes_sbn(self):
        strategy = resolve_strategy({"oti": COMPACT_OTI})
        packet = encode_packet(strategy, b"\x00\x64", 1, 2, SYMBOL)
        assert packet[:6] == b"\x00\x64\x01\x00\x00\x02"

    def test_unaligned_embedded_oti_padded_before_esi(self):
        strategy = resolve_strategy({"oti": TWELVE_BIT_OTI, "encoding_packet": NARROW_PACKET})
        packet = encode_packet(strategy, bytes([0x06, 0x40]), None, 7, SYMBOL)
        assert packet[:4] == bytes([0x06, 0x40, 0x00, 0x70])

        decoded = decode_packet(strategy, packet)
        assert decoded.oti_data == bytes([0x06, 0x40])
        assert decoded.external_esi == 7
        assert decoded.symbol_data == SYMBOL

    def test_embedded_oti_required(self):
        strategy = resolve_strategy({"oti": COMPACT_OTI})
        with pytest.raises(PayloadError, match="Embedded OTI"):
            encode_packet(strategy, None, 1, 2, SYMBOL)

    def test_esi_overflow(self):
        strategy = resolve_strategy({"encoding_packet": {"esi": {"external_bits": 4}}})
        with pytest.raises(PayloadError, match="strategy.encoding_packet.esi"):
            encode_packet(strategy, None, 0, 16, SYMBOL)


class TestDecodePacket:
    """Test header parsing, ECC verification and structural failures."""

    def test_short_packet(self):
        with pytest.raises(MalformedPacketError, match="shorter than its 4-byte header"):
            decode_packet(resolve_strategy(), b"\x00\x00\x00")

    def test_header_only_packet(self):
        decoded = decode_packet(resolve_strategy(), b"\x00\x00\x00\x01")
        assert decoded.valid
        assert decoded.external_esi == 1
        assert decoded.symbol_data == b""

    def test_ecc_mismatch_is_invalid_not_error(self):
        strategy = resolve_strategy({"encoding_packet": {"ecc": ECC_VARIANTS["crc8"]}})
        packet = encode_packet(strategy, None, 0, 5, SYMBOL)

        decoded = decode_packet(strategy, corrupt_packet(packet, 0))
        assert not decoded.valid
        assert decoded.symbol_data is None

    def test_payload_corruption_detected(self):
        strategy = resolve_strategy({"encoding_packet": {"ecc": ECC_VARIANTS["crc8"]}})
        packet = encode_packet(strategy, None, 0, 5, SYMBOL)
        assert not decode_packet(strategy, corrupt_packet(packet, len(packet) - 1, 0x01)).valid

    def test_sbn_none_when_omitted(self):
        strategy = resolve_strategy({"encoding_packet": {"sbn": {"external_bits": 0}}})
        decoded = decode_packet(strategy, encode_packet(strategy, None, None, 9, SYMBOL))
        assert decoded.external_sbn is None
        assert decoded.external_esi == 9

    @pytest.mark.parametrize(
        "ecc,embed_oti,sbn_bits,esi_bits",
        list(itertools.product(ECC_VARIANTS, (False, True), (0, 3, 8), (2, 13, 24))),
    )
    def test_header_width_determinism(self, ecc, embed_oti, sbn_bits, esi_bits):
        """Encoded header length equals the strategy-derived size and parses back."""
        partial = {
            "encoding_packet": {
                "sbn": {"external_bits": sbn_bits},
                "esi": {"external_bits": esi_bits},
                "ecc": ECC_VARIANTS[ecc],
            },
        }
        if embed_oti:
            partial["oti"] = COMPACT_OTI
        strategy = resolve_strategy(partial)

        oti_data = b"\x01\x2c" if embed_oti else None
        sbn = 1 if sbn_bits else None
        esi = (1 << esi_bits) - 2

        packet = encode_packet(strategy, oti_data, sbn, esi, SYMBOL)
        assert len(packet) - len(SYMBOL) == header_size(strategy)

        decoded = decode_packet(strategy, packet)
        assert decoded.valid
        assert decoded.oti_data == oti_data
        assert decoded.external_sbn == sbn
        assert decoded.external_esi == esi
        assert decoded.symbol_data == SYMBOL
