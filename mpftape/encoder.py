"""
MPF-1 tape encoder - generates the cassette signal for program records.
"""

import logging
from pathlib import Path
from typing import Iterable, Literal, Optional

import numpy as np

from . import SAMPLE_RATE, CROSSING_LEVEL, MAX_DATA_SIZE
from .audio import u8_to_float, write_samples
from .record import ProgramRecord

_logger = logging.getLogger(__name__)

WaveformType = Literal["square", "sine"]

# A tone is 1ms of signal, always written twice (2ms).
TONE_SAMPLES = 8
LEAD_SYNC_TONES = 2000  # 4s of 1kHz
MID_SYNC_TONES = 1000  # 2s of 2kHz
TAIL_SYNC_TONES = 1000  # 2s of 2kHz


class MPFEncoder:
    """
    Encoder for MPF-1 tape audio.

    Bits are built from two tones, O (one 1kHz period) and X (two 2kHz
    periods), each played for 2ms:
    - bit 0: X X O -> 8 short waves followed by 2 long waves
    - bit 1: X O O -> 4 short waves followed by 4 long waves
    """

    def __init__(self, amplitude: float = 1.0, waveform: WaveformType = "square"):
        """
        Initialize encoder.

        Args:
            amplitude: Output amplitude around the midpoint (0.0 exclusive to 1.0)
            waveform: "square" (what the MPF-1 itself writes) or "sine"
        """
        if not 0.0 < amplitude <= 1.0:
            raise ValueError("amplitude must be in (0.0, 1.0]")
        if waveform not in ("square", "sine"):
            raise ValueError(f"unknown waveform: {waveform}")

        self.amplitude = amplitude
        self.waveform = waveform

        self.tone_o = self._period(TONE_SAMPLES)
        self.tone_x = np.tile(self._period(TONE_SAMPLES // 2), 2)

        self._bit_samples = {
            0: self._tones(self.tone_x, self.tone_x, self.tone_o),
            1: self._tones(self.tone_x, self.tone_o, self.tone_o),
        }

    def _period(self, length: int) -> np.ndarray:
        """
        Generate one period of a tone, high half first.

        The sine is sampled half a sample off its zero crossings so both
        halves are symmetric around the midpoint.
        """
        if self.waveform == "square":
            shape = np.where(np.arange(length) < length // 2, 1.0, -1.0)
        else:
            shape = np.sin(np.pi * (2 * np.arange(length) + 1) / length)

        levels = np.rint(CROSSING_LEVEL + CROSSING_LEVEL * self.amplitude * shape)
        return np.clip(levels, 0, 0xFF).astype(np.uint8)

    @staticmethod
    def _tones(*tones: np.ndarray) -> np.ndarray:
        # every tone lasts 2ms
        return np.concatenate([np.tile(tone, 2) for tone in tones])

    def encode_bit(self, bit: int) -> np.ndarray:
        return self._bit_samples[1 if bit else 0]

    def encode_byte(self, value: int) -> np.ndarray:
        """
        Encode one byte: start bit 0, 8 data bits LSB first, stop bit 1.
        """
        bits = [0] + [(value >> i) & 1 for i in range(8)] + [1]
        return np.concatenate([self.encode_bit(bit) for bit in bits])

    def encode_bytes(self, data: bytes) -> np.ndarray:
        return np.concatenate([self.encode_byte(value) for value in data])

    def lead_sync(self) -> np.ndarray:
        return np.tile(self.tone_o, 2 * LEAD_SYNC_TONES)

    def mid_sync(self) -> np.ndarray:
        return np.tile(self.tone_x, 2 * MID_SYNC_TONES)

    def tail_sync(self) -> np.ndarray:
        return np.tile(self.tone_x, 2 * TAIL_SYNC_TONES)

    def encode_record(self, record: ProgramRecord) -> np.ndarray:
        """
        Encode a program record to tape audio.

        Layout: LEAD_SYNC, header, MID_SYNC, data, TAIL_SYNC.

        Args:
            record: Program to encode

        Returns:
            uint8 samples at SAMPLE_RATE
        """
        if len(record.payload) > MAX_DATA_SIZE:
            raise ValueError(f"payload of {len(record.payload)} bytes exceeds {MAX_DATA_SIZE}")

        header = record.header()
        _logger.info(
            f"data length is {len(record.payload)} bytes, generating audio "
            f"for {header.filename:04x}/{header.start_addr:04x}"
        )

        return np.concatenate([
            self.lead_sync(),
            self.encode_bytes(header.encode()),
            self.mid_sync(),
            self.encode_bytes(record.payload),
            self.tail_sync(),
        ])

    def encode_records(self, records: Iterable[ProgramRecord]) -> np.ndarray:
        """Encode records back to back; returns an empty array for no records."""
        parts = [self.encode_record(record) for record in records]
        if not parts:
            return np.zeros(0, dtype=np.uint8)
        return np.concatenate(parts)

    def generate_to_file(
        self,
        output_path: str | Path,
        records: Iterable[ProgramRecord],
        fmt: Optional[str] = None,
    ) -> int:
        """
        Encode records and save them.

        Args:
            output_path: Output file (.raw or .wav)
            records: Programs to encode
            fmt: "raw", "wav" or None to guess from the suffix

        Returns:
            Number of samples written
        """
        samples = self.encode_records(records)
        write_samples(output_path, samples, fmt)
        return len(samples)

    @staticmethod
    def play(samples: np.ndarray, device: Optional[int] = None):
        """
        Play samples on an audio output, e.g. straight into the MPF-1 tape input.

        Requires the optional sounddevice package.
        """
        import sounddevice as sd

        sd.play(u8_to_float(samples), SAMPLE_RATE, device=device)
        sd.wait()
