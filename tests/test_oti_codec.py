# file: tests/test_oti_codec.py

"""
Unit tests for the OTI model and the strategy-driven OTI codec.
"""

import pytest

from raptorq_suppa.errors import PayloadError
from raptorq_suppa.oti import OTI_SIZE, ObjectTransmissionInformation
from raptorq_suppa.oti_codec import decode_oti, encode_oti, oti_size
from raptorq_suppa.strategy import resolve_strategy


def make_oti(**overrides):
    fields = dict(
        transfer_length=100,
        fec_encoding_id=6,
        symbol_size=104,
        num_source_blocks=1,
        num_sub_blocks=1,
        symbol_alignment=8,
    )
    fields.update(overrides)
    return ObjectTransmissionInformation(**fields)


def eighths():
    return {
        "to_internal": lambda external: external * 8,
        "to_external": lambda internal: internal // 8 if internal % 8 == 0 else None,
    }


HARDCODED_TAIL = {
    "fec_encoding_id": {"external_bits": 0},
    "num_source_blocks": {"external_bits": 0, "value": 1},
    "num_sub_blocks": {"external_bits": 0, "value": 1},
    "symbol_alignment": {"external_bits": 0, "value": 8},
}


class TestObjectTransmissionInformation:
    """Test the RFC 6330 12-byte layout."""

    def test_to_bytes_layout(self):
        oti = make_oti(transfer_length=0x0102030405, symbol_size=0x0A08, num_sub_blocks=0x0203)
        assert oti.to_bytes() == bytes([
            0x01, 0x02, 0x03, 0x04, 0x05,  # F
            0x06,                          # FEC encoding id
            0x0A, 0x08,                    # T
            0x01,                          # Z
            0x02, 0x03,                    # N
            0x08,                          # Al
        ])

    def test_from_bytes_inverse(self):
        oti = make_oti(transfer_length=123456, num_source_blocks=3)
        assert ObjectTransmissionInformation.from_bytes(oti.to_bytes()) == oti

    def test_from_bytes_wrong_length(self):
        with pytest.raises(PayloadError, match=f"exactly {OTI_SIZE} bytes"):
            ObjectTransmissionInformation.from_bytes(b"\x00" * 11)

    def test_alignment_invariant(self):
        with pytest.raises(PayloadError, match="divisible by symbol_alignment"):
            make_oti(symbol_size=100)

    def test_non_zero_fields(self):
        with pytest.raises(PayloadError, match="num_source_blocks .* must be non-zero"):
            make_oti(num_source_blocks=0)

    def test_field_width(self):
        with pytest.raises(PayloadError, match="must fit in 8 bits"):
            make_oti(num_source_blocks=256)

    def test_num_source_symbols(self):
        assert make_oti(transfer_length=208).num_source_symbols == 2
        assert make_oti(transfer_length=209).num_source_symbols == 3


class TestEncodeOti:
    """Test compact OTI encoding."""

    def test_default_strategy_matches_rfc_layout(self):
        strategy = resolve_strategy()
        oti = make_oti()
        assert oti_size(strategy) == OTI_SIZE
        assert encode_oti(strategy, oti) == oti.to_bytes()

    def test_byte_aligned_compact(self):
        strategy = resolve_strategy({
            "oti": {
                "transfer_length": {"external_bits": 24},
                "symbol_size": {"external_bits": 0, "value": 104},
                **HARDCODED_TAIL,
            },
        })
        assert oti_size(strategy) == 3
        assert encode_oti(strategy, make_oti()) == b"\x00\x00\x64"

    def test_unaligned_fields_packed_without_gaps(self):
        """12-bit transfer length followed by a 4-bit symbol size in eighths."""
        strategy = resolve_strategy({
            "oti": {
                "transfer_length": {"external_bits": 12},
                "symbol_size": {"external_bits": 4, "remap": eighths()},
                **HARDCODED_TAIL,
            },
        })
        assert oti_size(strategy) == 2
        assert encode_oti(strategy, make_oti()) == bytes([0x06, 0x4D])

    def test_all_omitted_is_none(self):
        strategy = resolve_strategy({
            "oti": {
                "transfer_length": {"external_bits": 0, "value": 100},
                "symbol_size": {"external_bits": 0, "value": 104},
                **HARDCODED_TAIL,
            },
        })
        assert oti_size(strategy) == 0
        assert encode_oti(strategy, make_oti()) is None

    def test_omitted_field_must_match_fixed_value(self):
        strategy = resolve_strategy({
            "oti": {"symbol_size": {"external_bits": 0, "value": 64}},
        })
        with pytest.raises(PayloadError, match=r"strategy\.oti\.symbol_size: internal value 104"):
            encode_oti(strategy, make_oti())

    def test_omitted_fec_encoding_id_must_be_raptorq(self):
        strategy = resolve_strategy({"oti": {"fec_encoding_id": {"external_bits": 0}}})
        with pytest.raises(PayloadError, match="fixed to 6"):
            encode_oti(strategy, make_oti(fec_encoding_id=5))

    def test_not_representable(self):
        strategy = resolve_strategy({"oti": {"transfer_length": {"external_bits": 8}}})
        with pytest.raises(PayloadError, match="strategy.oti.transfer_length"):
            encode_oti(strategy, make_oti(transfer_length=256))


class TestDecodeOti:
    """Test compact OTI decoding."""

    def test_unaligned_fields(self):
        strategy = resolve_strategy({
            "oti": {
                "transfer_length": {"external_bits": 12},
                "symbol_size": {"external_bits": 4, "remap": eighths()},
                **HARDCODED_TAIL,
            },
        })
        assert decode_oti(strategy, bytes([0x06, 0x4D])) == make_oti()

    def test_fec_encoding_id_fixed_to_six(self):
        strategy = resolve_strategy({"oti": {"fec_encoding_id": {"external_bits": 0}}})
        oti = make_oti()
        encoded = encode_oti(strategy, oti)
        assert len(encoded) == 11
        assert decode_oti(strategy, encoded).fec_encoding_id == 6

    def test_all_omitted_from_none(self):
        strategy = resolve_strategy({
            "oti": {
                "transfer_length": {"external_bits": 0, "value": 100},
                "symbol_size": {"external_bits": 0, "value": 104},
                **HARDCODED_TAIL,
            },
        })
        assert decode_oti(strategy, None) == make_oti()

    def test_wrong_length(self):
        with pytest.raises(PayloadError, match="exactly 12 bytes"):
            decode_oti(resolve_strategy(), b"\x00" * 13)

    def test_missing_oti(self):
        with pytest.raises(PayloadError, match="none were provided"):
            decode_oti(resolve_strategy(), None)

    def test_unexpected_oti(self):
        strategy = resolve_strategy({
            "oti": {
                "transfer_length": {"external_bits": 0, "value": 100},
                "symbol_size": {"external_bits": 0, "value": 104},
                **HARDCODED_TAIL,
            },
        })
        with pytest.raises(PayloadError, match="carries no OTI bits"):
            decode_oti(strategy, b"\x00")

    def test_invalid_decoded_oti(self):
        """A zero transfer length decodes but is not a valid OTI."""
        strategy = resolve_strategy()
        raw = bytearray(make_oti().to_bytes())
        raw[:5] = b"\x00" * 5
        with pytest.raises(PayloadError, match="transfer_length .* must be non-zero"):
            decode_oti(strategy, bytes(raw))
