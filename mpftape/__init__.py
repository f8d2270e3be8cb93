"""
mpftape - Micro-Professor MPF-1 cassette tape codec.
Converts hex program listings to 8kHz/U8 tape audio and back.
"""

__version__ = "0.1.0"

# Audio format
SAMPLE_RATE = 8000  # Hz, the only rate supported
SAMPLE_PERIOD = 1.0 / SAMPLE_RATE  # 125us
THRESHOLD = 0x80  # samples >= THRESHOLD are on the high side
CROSSING_LEVEL = 127.5  # (0x00 + 0xff) / 2

# Tone periods
SHORT_PERIOD = 0.0005  # 2kHz
LONG_PERIOD = 0.001  # 1kHz
AMBIGUOUS_PERIOD = 0.00075  # what a wrongly phased 1kHz/2kHz pair looks like

# Sync thresholds, counted in waves
LEAD_SYNC_MIN = 1000  # LONG waves, > 1s
MID_SYNC_MIN = 2900  # SHORT waves, ~1.5s
TAIL_SYNC_MIN = 900  # SHORT waves, ~0.5s

# Record layout
HEADER_SIZE = 7  # filename (2) + start (2) + end (2) + checksum (1)
MAX_DATA_SIZE = 8 * 1024

# Synthetic half-wave fed at end of input to terminate the last run
FLUSH_DURATION = 8 * SAMPLE_PERIOD

from .record import HeaderFields, ProgramRecord, parse_line, parse_lines
from .encoder import MPFEncoder
from .decoder import (
    HalfWave,
    Wave,
    Run,
    RunKind,
    Polarity,
    DecoderState,
    ZeroCrossingTimer,
    PolarityResolver,
    RunAggregator,
    RecordDecoder,
    MPFDecoder,
    decode_file,
    decode_samples,
    decode_stream,
)
from .audio import read_samples, write_samples

__all__ = [
    "HeaderFields",
    "ProgramRecord",
    "parse_line",
    "parse_lines",
    "MPFEncoder",
    "HalfWave",
    "Wave",
    "Run",
    "RunKind",
    "Polarity",
    "DecoderState",
    "ZeroCrossingTimer",
    "PolarityResolver",
    "RunAggregator",
    "RecordDecoder",
    "MPFDecoder",
    "decode_file",
    "decode_samples",
    "decode_stream",
    "read_samples",
    "write_samples",
]
