# file: tests/test_transfer_length_trim.py

"""
Tests for the transfer-length trim prefix.
"""

import pytest

from raptorq_suppa import decode, encode
from raptorq_suppa.errors import PayloadError, TrimLengthError
from raptorq_suppa.oti import ObjectTransmissionInformation
from raptorq_suppa.testing_utils import LoopbackEngine


def sample_data(length):
    return bytes((index * 13 + 1) % 256 for index in range(length))


def round_up(multiple):
    return lambda length: -(-length // multiple) * multiple


TRIM_32 = {
    "payload": {
        "transfer_length_trim": {
            "external_bits": 8,
            "pump_transfer_length": round_up(32),
        },
    },
}

OPTIONS = {"symbol_size": 32, "num_repair_symbols": 5}


class BlockFilterEngine(LoopbackEngine):
    """Loopback engine that only yields the decoded blocks `keep` accepts."""

    def __init__(self, keep):
        super().__init__()
        self.keep = keep

    def decode(self, oti, packets, output_format="combined"):
        result = super().decode(oti, packets, output_format)
        if output_format == "blocks":
            return (block for block in result if self.keep(block))
        return result


class TestCombined:
    """Test trim with combined output."""

    def test_pumped_transfer_length(self):
        engine = LoopbackEngine()
        data = sample_data(100)

        result = encode(engine, data, OPTIONS, TRIM_32)
        transfer_length = ObjectTransmissionInformation.from_bytes(result.oti_spec).transfer_length

        assert transfer_length >= len(data) + 1
        assert transfer_length % 32 == 0
        assert transfer_length == 128

        assert decode(engine, result.oti, result.packets, TRIM_32) == data

    @pytest.mark.parametrize("length", [1, 31, 32, 63, 200, 255])
    def test_lengths(self, length):
        engine = LoopbackEngine()
        data = sample_data(length)
        result = encode(engine, data, OPTIONS, TRIM_32)
        assert decode(engine, result.oti, result.packets, TRIM_32) == data

    def test_identity_pump(self):
        engine = LoopbackEngine()
        data = sample_data(50)
        strategy = {"payload": {"transfer_length_trim": {"external_bits": 12}}}

        result = encode(engine, data, OPTIONS, strategy)
        oti = ObjectTransmissionInformation.from_bytes(result.oti_spec)
        assert oti.transfer_length == 52

        assert decode(engine, result.oti, result.packets, strategy) == data

    def test_remap_receives_raw_transfer_length(self):
        """Store the padding length instead of the data length."""
        engine = LoopbackEngine()
        data = sample_data(100)
        seen = []

        def to_external(length, context):
            seen.append(context.transfer_length)
            return context.transfer_length - length

        strategy = {
            "payload": {
                "transfer_length_trim": {
                    "external_bits": 8,
                    "remap": {
                        "to_internal": lambda stored, context: context.transfer_length - stored,
                        "to_external": to_external,
                    },
                    "pump_transfer_length": round_up(64),
                },
            },
        }

        result = encode(engine, data, OPTIONS, strategy)
        packets = list(result.packets)
        assert seen[0] == 128

        assert decode(engine, result.oti, packets, strategy) == data


class TestBlocks:
    """Test trim with per-block output."""

    def test_blocks_in_order(self):
        engine = LoopbackEngine()
        data = sample_data(200)
        options = dict(OPTIONS, num_source_blocks=2)

        result = encode(engine, data, options, TRIM_32)
        blocks = list(decode(engine, result.oti, result.packets, TRIM_32, "blocks"))

        assert [block.sbn for block in blocks] == [0, 1]
        assert b"".join(block.data for block in blocks) == data

    def test_blocks_held_until_first_block(self):
        """Block 1 completes first; it is released already trimmed after block 0."""
        engine = LoopbackEngine()
        data = sample_data(200)
        options = dict(OPTIONS, num_source_blocks=2)

        result = encode(engine, data, options, TRIM_32)
        packets = list(reversed(list(result.packets)))
        blocks = list(decode(engine, result.oti, packets, TRIM_32, "blocks"))

        assert [block.sbn for block in blocks] == [0, 1]
        assert blocks[0].data == data[:127]
        assert blocks[1].data == data[127:]

    def test_padding_only_block_is_empty(self):
        """A block lying entirely in the pumped padding yields no data."""
        engine = LoopbackEngine()
        data = sample_data(20)
        strategy = {
            "payload": {
                "transfer_length_trim": {
                    "external_bits": 8,
                    "pump_transfer_length": round_up(128),
                },
            },
        }
        options = dict(OPTIONS, num_source_blocks=4)

        result = encode(engine, data, options, strategy)
        blocks = sorted(
            decode(engine, result.oti, result.packets, strategy, "blocks"),
            key=lambda block: block.sbn,
        )

        assert blocks[0].data == data
        assert all(block.data == b"" for block in blocks[1:])


class TestErrors:
    """Test trim failures."""

    def test_pump_must_not_shrink(self):
        strategy = {
            "payload": {
                "transfer_length_trim": {
                    "external_bits": 8,
                    "pump_transfer_length": lambda length: length - 1,
                },
            },
        }
        with pytest.raises(PayloadError, match="pump_transfer_length must return"):
            encode(LoopbackEngine(), sample_data(10), OPTIONS, strategy)

    def test_length_not_representable(self):
        strategy = {"payload": {"transfer_length_trim": {"external_bits": 4}}}
        with pytest.raises(PayloadError, match="transfer_length_trim"):
            encode(LoopbackEngine(), sample_data(100), OPTIONS, strategy)

    def test_no_blocks_received(self):
        engine = BlockFilterEngine(lambda block: False)
        result = encode(engine, sample_data(200), dict(OPTIONS, num_source_blocks=2), TRIM_32)
        blocks = decode(engine, result.oti, result.packets, TRIM_32, "blocks")

        with pytest.raises(PayloadError, match="No blocks received"):
            list(blocks)

    def test_first_block_missing(self):
        engine = BlockFilterEngine(lambda block: block.sbn != 0)
        result = encode(engine, sample_data(200), dict(OPTIONS, num_source_blocks=2), TRIM_32)
        blocks = decode(engine, result.oti, result.packets, TRIM_32, "blocks")

        with pytest.raises(PayloadError, match="Source block 0"):
            list(blocks)

    def test_stored_length_exceeds_data(self):
        engine = LoopbackEngine()
        result = encode(engine, sample_data(100), OPTIONS, TRIM_32)

        quadrupled = {
            "payload": {
                "transfer_length_trim": {
                    "external_bits": 8,
                    "remap": {
                        "to_internal": lambda stored, context: stored * 4,
                        "to_external": lambda length, context: (
                            length // 4 if length % 4 == 0 else None
                        ),
                    },
                },
            },
        }

        with pytest.raises(TrimLengthError, match="specifies length 400 but only 127") as exc_info:
            decode(engine, result.oti, result.packets, quadrupled)

        assert exc_info.value.trim_length == 400
        assert exc_info.value.available == 127
