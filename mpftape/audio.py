"""
Reading and writing 8kHz unsigned 8-bit sample files.

Raw files (no header) are handled with numpy, everything else goes
through soundfile.
"""

import logging
from pathlib import Path
from typing import Optional

import numpy as np
import soundfile as sf

from . import SAMPLE_RATE

_logger = logging.getLogger(__name__)

RAW_SUFFIXES = {".raw", ".u8", ".bin", ""}


def detect_format(path: str | Path, fmt: Optional[str] = None) -> str:
    """
    Work out the container format of a sample file.

    Args:
        path: File path
        fmt: Explicit format ("raw" or "wav"), None to guess from the suffix

    Returns:
        "raw" or "wav"
    """
    if fmt is not None:
        fmt = fmt.lower()
        if fmt not in ("raw", "wav"):
            raise ValueError(f"unknown sample format: {fmt}")
        return fmt
    return "raw" if Path(path).suffix.lower() in RAW_SUFFIXES else "wav"


def int16_to_u8(samples: np.ndarray) -> np.ndarray:
    """Map signed 16-bit samples onto the unsigned 8-bit scale (0x80 = silence)."""
    return ((samples.astype(np.int32) >> 8) + 0x80).astype(np.uint8)


def u8_to_int16(samples: np.ndarray) -> np.ndarray:
    return ((samples.astype(np.int32) - 0x80) << 8).astype(np.int16)


def u8_to_float(samples: np.ndarray) -> np.ndarray:
    """Convert to float32 in [-1.0, 1.0], for playback."""
    return ((samples.astype(np.float32) - 127.5) / 127.5).astype(np.float32)


def read_samples(
    path: str | Path,
    fmt: Optional[str] = None,
    channel: int = 0,
) -> np.ndarray:
    """
    Read a sample file into an array of unsigned 8-bit samples.

    Args:
        path: Input file
        fmt: "raw", "wav" or None to guess from the suffix
        channel: Channel to use for multi-channel files

    Returns:
        uint8 array of samples at SAMPLE_RATE
    """
    if detect_format(path, fmt) == "raw":
        return np.fromfile(str(path), dtype=np.uint8)

    samples, sr = sf.read(str(path), dtype="int16", always_2d=True)
    if sr != SAMPLE_RATE:
        raise ValueError(f"{path}: sample rate is {sr} Hz, only {SAMPLE_RATE} Hz is supported")
    if not 0 <= channel < samples.shape[1]:
        raise ValueError(f"{path}: no channel {channel} (file has {samples.shape[1]})")

    _logger.debug(f"read {samples.shape[0]} samples from {path} (channel {channel})")
    return int16_to_u8(samples[:, channel])


def write_samples(path: str | Path, samples: np.ndarray, fmt: Optional[str] = None):
    """
    Write unsigned 8-bit samples to a raw or WAV file.

    Args:
        path: Output file
        samples: uint8 samples at SAMPLE_RATE
        fmt: "raw", "wav" or None to guess from the suffix
    """
    samples = np.asarray(samples, dtype=np.uint8)

    if detect_format(path, fmt) == "raw":
        samples.tofile(str(path))
        return

    sf.write(
        str(path),
        u8_to_int16(samples),
        SAMPLE_RATE,
        subtype="PCM_U8",
        format="WAV",
    )
