"""
Tests for the MPF-1 tape encoder.
"""

import numpy as np
import pytest

from mpftape import MPFEncoder, ProgramRecord, SAMPLE_RATE, THRESHOLD

BIT_SAMPLES = 48  # three 2ms tones
BYTE_SAMPLES = 10 * BIT_SAMPLES


def is_high(samples: np.ndarray) -> np.ndarray:
    return samples >= THRESHOLD


class TestMPFEncoder:
    """Test tone and frame generation."""

    def test_encoder_init(self):
        encoder = MPFEncoder()
        assert encoder.amplitude == 1.0
        assert encoder.waveform == "square"

    def test_invalid_params(self):
        with pytest.raises(ValueError):
            MPFEncoder(amplitude=0.0)
        with pytest.raises(ValueError):
            MPFEncoder(amplitude=1.5)
        with pytest.raises(ValueError):
            MPFEncoder(waveform="triangle")

    def test_tones(self):
        encoder = MPFEncoder()
        assert list(encoder.tone_o) == [0xFF] * 4 + [0x00] * 4
        assert list(encoder.tone_x) == [0xFF, 0xFF, 0x00, 0x00] * 2

    def test_bit_layout(self):
        encoder = MPFEncoder()
        o = np.tile(encoder.tone_o, 2)
        x = np.tile(encoder.tone_x, 2)

        np.testing.assert_array_equal(encoder.encode_bit(0), np.concatenate([x, x, o]))
        np.testing.assert_array_equal(encoder.encode_bit(1), np.concatenate([x, o, o]))
        assert len(encoder.encode_bit(0)) == BIT_SAMPLES

    def test_byte_lsb_first(self):
        encoder = MPFEncoder()
        samples = encoder.encode_byte(0x01)
        assert len(samples) == BYTE_SAMPLES

        bits = [samples[i:i + BIT_SAMPLES] for i in range(0, BYTE_SAMPLES, BIT_SAMPLES)]
        one = encoder.encode_bit(1)
        zero = encoder.encode_bit(0)

        expected = [zero, one] + [zero] * 7 + [one]  # start, 0x01 LSB first, stop
        for got, want in zip(bits, expected):
            np.testing.assert_array_equal(got, want)

    def test_sync_durations(self):
        encoder = MPFEncoder()
        assert len(encoder.lead_sync()) == 4 * SAMPLE_RATE
        assert len(encoder.mid_sync()) == 2 * SAMPLE_RATE
        assert len(encoder.tail_sync()) == 2 * SAMPLE_RATE

    def test_record_length(self):
        encoder = MPFEncoder()
        samples = encoder.encode_record(ProgramRecord(0, 0x8000, b"\x01\x02"))

        expected = 4 * SAMPLE_RATE + 7 * BYTE_SAMPLES + 2 * SAMPLE_RATE + 2 * BYTE_SAMPLES + 2 * SAMPLE_RATE
        assert len(samples) == expected
        assert samples.dtype == np.uint8

    def test_record_header_follows_lead_sync(self):
        encoder = MPFEncoder()
        record = ProgramRecord(0x1234, 0x1800, b"\x01\x02")
        samples = encoder.encode_record(record)

        start = 4 * SAMPLE_RATE
        header = samples[start:start + 7 * BYTE_SAMPLES]
        np.testing.assert_array_equal(header, encoder.encode_bytes(record.header().encode()))

    def test_encode_records(self):
        encoder = MPFEncoder()
        one = encoder.encode_record(ProgramRecord(1, 0, b"\x00"))
        both = encoder.encode_records([ProgramRecord(1, 0, b"\x00")] * 2)
        assert len(both) == 2 * len(one)

    def test_encode_no_records(self):
        samples = MPFEncoder().encode_records([])
        assert len(samples) == 0
        assert samples.dtype == np.uint8

    def test_sine_waveform(self):
        encoder = MPFEncoder(waveform="sine")

        # each half period stays on its side of the threshold
        assert np.all(is_high(encoder.tone_o[:4]))
        assert not np.any(is_high(encoder.tone_o[4:]))
        assert list(is_high(encoder.tone_x)) == [True, True, False, False] * 2

        # symmetric around the 127.5 midpoint
        np.testing.assert_array_equal(
            encoder.tone_o[:4].astype(int) + encoder.tone_o[4:].astype(int),
            [0xFF] * 4,
        )

    def test_amplitude(self):
        """Test amplitude scaling."""
        quiet = MPFEncoder(amplitude=0.5)
        assert quiet.tone_o.max() < 0xFF
        assert quiet.tone_o.min() > 0x00
        assert list(is_high(quiet.tone_o)) == [True] * 4 + [False] * 4

    def test_generate_to_file(self, tmp_path):
        path = tmp_path / "out.raw"
        count = MPFEncoder().generate_to_file(path, [ProgramRecord(0, 0x8000, b"\x01")])

        data = np.fromfile(str(path), dtype=np.uint8)
        assert len(data) == count
        assert data[0] == 0xFF
