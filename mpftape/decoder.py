"""
MPF-1 tape decoder - recovers program records from 8kHz/U8 tape audio.

Pipeline:
    samples -> ZeroCrossingTimer -> HalfWave
            -> PolarityResolver  -> Wave (SHORT/LONG)
            -> RunAggregator     -> Run
            -> RecordDecoder     -> ProgramRecord
"""

import enum
import logging
import math
from pathlib import Path
from typing import BinaryIO, Iterator, NamedTuple, Optional, Sequence

import numpy as np

from . import (
    SAMPLE_RATE,
    SAMPLE_PERIOD,
    THRESHOLD,
    CROSSING_LEVEL,
    SHORT_PERIOD,
    LONG_PERIOD,
    AMBIGUOUS_PERIOD,
    LEAD_SYNC_MIN,
    MID_SYNC_MIN,
    TAIL_SYNC_MIN,
    HEADER_SIZE,
    MAX_DATA_SIZE,
    FLUSH_DURATION,
)
from .audio import read_samples
from .record import HeaderFields, ProgramRecord

# Module-level logger
_logger = logging.getLogger(__name__)


class Polarity(enum.IntEnum):
    RISING = 0
    FALLING = 1


class RunKind(enum.Enum):
    SHORT = "SHORT"  # 2kHz
    LONG = "LONG"  # 1kHz


class HalfWave(NamedTuple):
    duration: float  # seconds
    polarity: Polarity


class Wave(NamedTuple):
    kind: RunKind
    period: float  # seconds
    phase: int  # 0 = even alignment, 1 = odd alignment


class Run(NamedTuple):
    kind: RunKind
    length: int  # number of waves
    phase: int = 0  # alignment of the wave that ended the run


class ZeroCrossingTimer:
    """
    Turns unsigned 8-bit samples into half-wave durations.

    The crossing of the 127.5 midpoint is found by linear interpolation
    between the two samples that straddle it, which gives sub-sample
    timing. State carries over between calls to process(), so the input
    can be fed in blocks of any size.
    """

    def __init__(self, sample_period: float = SAMPLE_PERIOD):
        self.sample_period = sample_period
        self.reset()

    def reset(self):
        """Reset timer state."""
        # starting from 0 makes a high first sample count as a rising edge
        self.last = 0
        # time from the last crossing up to the position of self.last
        self.elapsed = 0.0

    def process(self, samples) -> list[HalfWave]:
        """
        Process a block of samples.

        Args:
            samples: uint8 samples (numpy array, bytes or sequence of ints)

        Returns:
            Half-waves completed within this block
        """
        block = np.asarray(
            np.frombuffer(samples, dtype=np.uint8)
            if isinstance(samples, (bytes, bytearray, memoryview))
            else samples
        )
        if len(block) == 0:
            return []

        x = np.concatenate(([self.last], block)).astype(np.float64)
        high = x >= THRESHOLD
        # pair (x[i], x[i + 1]) straddles the threshold, so x[i] != x[i + 1]
        idx = np.flatnonzero(high[1:] != high[:-1])

        span = (len(x) - 1) * self.sample_period
        self.last = int(block[-1])

        if len(idx) == 0:
            self.elapsed += span
            return []

        prev = x[idx]
        cur = x[idx + 1]
        t = (CROSSING_LEVEL - prev) * self.sample_period / (cur - prev)
        crossings = idx * self.sample_period + t

        durations = np.diff(crossings, prepend=-self.elapsed)
        rising = high[idx + 1]

        self.elapsed = span - crossings[-1]

        return [
            HalfWave(float(d), Polarity.RISING if r else Polarity.FALLING)
            for d, r in zip(durations, rising)
        ]

    def flush(self) -> list[HalfWave]:
        """
        Synthetic long half-waves that terminate the pending run at end of
        input, so a trailing TAIL_SYNC gets reported.
        """
        polarity = Polarity.FALLING if self.last >= THRESHOLD else Polarity.RISING
        return [
            HalfWave(FLUSH_DURATION, polarity),
            HalfWave(FLUSH_DURATION, Polarity(1 - polarity)),
        ]


def goodness(period: float) -> float:
    """Distance of a period from the ambiguous 0.75ms, on a log scale."""
    if period <= 0.0:
        return 0.0
    return abs(math.log(period / AMBIGUOUS_PERIOD))


class PolarityResolver:
    """
    Pairs half-waves into full waves without knowing the starting phase.

    The MPF uses 1kHz (1ms) and 2kHz (0.5ms) signals. Paired with the
    wrong phase, a 1kHz/2kHz boundary shows up as a 0.75ms period. For
    every half-wave the period under its alignment is computed; on every
    second half-wave the two alignments are compared and the one farthest
    from 0.75ms wins.

    Simply doubling one half-wave does not work: real tape signals are
    not symmetric enough.
    """

    def __init__(self, threshold: float = AMBIGUOUS_PERIOD):
        self.threshold = threshold
        self.reset()

    def reset(self):
        """Reset resolver state."""
        self.count = 0
        self.durations = [0.0, 0.0]
        self.periods = [0.0, 0.0]
        self.goodnesses = [0.0, 0.0]

    def feed(self, half_wave: HalfWave) -> Optional[Wave]:
        """
        Feed one half-wave.

        Returns:
            A Wave on every second half-wave, None otherwise
        """
        self.count += 1
        odd = self.count % 2

        self.durations[odd] = half_wave.duration
        self.periods[odd] = self.durations[0] + self.durations[1]
        self.goodnesses[odd] = goodness(self.periods[odd])

        if odd:
            return None

        phase = 0 if self.goodnesses[0] > self.goodnesses[1] else 1
        period = self.periods[phase]
        kind = RunKind.SHORT if period < self.threshold else RunKind.LONG

        return Wave(kind, period, phase)


class RunAggregator:
    """Collapses consecutive waves of the same kind into runs."""

    def __init__(self):
        self.reset()

    def reset(self):
        self.kind: Optional[RunKind] = None
        self.length = 0
        self.phase = 0

    def feed(self, wave: Wave) -> Optional[Run]:
        """
        Feed one wave.

        Returns:
            The completed previous run when the kind changes, None otherwise
        """
        self.phase = wave.phase

        if wave.kind == self.kind:
            self.length += 1
            return None

        completed = None
        if self.kind is not None:
            completed = Run(self.kind, self.length, wave.phase)

        self.kind = wave.kind
        self.length = 1
        return completed

    def flush(self) -> Optional[Run]:
        """Return the run in progress, if any, and forget it."""
        if self.kind is None:
            return None
        run = Run(self.kind, self.length, self.phase)
        self.reset()
        return run


class DecoderState(enum.Enum):
    IDLE = "IDLE"
    HEADER = "HEADER"
    MID_SYNC = "MID_SYNC"
    FIRST_DATA = "FIRST_DATA"
    DATA = "DATA"
    TAIL_SYNC = "TAIL_SYNC"


# (LONG length, previous SHORT length) -> bit
BIT_TABLE = {
    (2, 8): 0,
    (4, 4): 1,
}

START_BIT = 0
STOP_BIT = 9


class RecordDecoder:
    """
    Record-level state machine fed with runs.

    A record on tape is LEAD_SYNC (1kHz), a 7 byte header, MID_SYNC
    (2kHz), the data and TAIL_SYNC (2kHz). Every bit is a SHORT run
    followed by a LONG run; the pair of lengths tells the bit value.

    Any framing, size or checksum problem discards the record in
    progress and returns to IDLE; the next LEAD_SYNC starts over.
    """

    def __init__(
        self,
        lead_sync_min: int = LEAD_SYNC_MIN,
        mid_sync_min: int = MID_SYNC_MIN,
        tail_sync_min: int = TAIL_SYNC_MIN,
        max_data_size: int = MAX_DATA_SIZE,
    ):
        """
        Initialize the state machine.

        Args:
            lead_sync_min: LONG run length above which a run is a LEAD_SYNC
            mid_sync_min: Minimum SHORT run length of a MID_SYNC
            tail_sync_min: Minimum SHORT run length of a TAIL_SYNC
            max_data_size: Capacity of the data buffer in bytes (1 to MAX_DATA_SIZE)
        """
        if not 1 <= max_data_size <= MAX_DATA_SIZE:
            raise ValueError(f"max_data_size must be 1 to {MAX_DATA_SIZE}, got {max_data_size}")

        self.lead_sync_min = lead_sync_min
        self.mid_sync_min = mid_sync_min
        self.tail_sync_min = tail_sync_min
        self.max_data_size = max_data_size

        self.header = bytearray(HEADER_SIZE)
        self.data = bytearray(max_data_size)

        # Statistics
        self.lead_syncs = 0
        self.records_decoded = 0
        self.errors = 0
        self.warnings = 0

        self.reset()

    def reset(self):
        """Go back to IDLE and forget any record in progress."""
        self.state = DecoderState.IDLE
        self.lengths = {RunKind.SHORT: 0, RunKind.LONG: 0}
        self.fields: Optional[HeaderFields] = None
        self.data_size = 0
        self.checksum = 0
        self.pos = 0
        self.bits = START_BIT
        self.byte = 0

    def _error(self, message: str):
        _logger.error(message)
        self.errors += 1
        self.state = DecoderState.IDLE

    def _warning(self, message: str):
        _logger.warning(message)
        self.warnings += 1

    def feed(self, run: Run) -> Optional[ProgramRecord]:
        """
        Feed one run.

        Args:
            run: Completed run of waves

        Returns:
            ProgramRecord when a record's data completes with a valid checksum
        """
        self.lengths[run.kind] = run.length

        if run.kind is RunKind.LONG and run.length > self.lead_sync_min:
            self._lead_sync(run)
            return None

        if self.state is DecoderState.IDLE:
            return None

        if run.kind is RunKind.SHORT:
            if self.state is DecoderState.MID_SYNC:
                self._mid_sync(run.length)
            elif self.state is DecoderState.TAIL_SYNC:
                self._tail_sync(run.length)
            # in HEADER and DATA the SHORT run only serves as reference
            return None

        if self.state is DecoderState.FIRST_DATA:
            # The SHORT run of the first data bit is merged into MID_SYNC,
            # so derive it from this LONG run: 2 -> 8, 4 -> 4.
            self.lengths[RunKind.SHORT] = 12 - 2 * run.length
            self.state = DecoderState.DATA

        if self.state in (DecoderState.HEADER, DecoderState.DATA):
            return self._bit(run.length)

        return None

    def _lead_sync(self, run: Run):
        if self.state is not DecoderState.IDLE:
            self._warning(f"LEAD_SYNC found while in state {self.state.value}")

        self.reset()
        self.header[:] = bytes(HEADER_SIZE)
        self.data[:] = bytes(self.max_data_size)
        self.lengths[RunKind.LONG] = run.length
        self.state = DecoderState.HEADER
        self.lead_syncs += 1

        _logger.info(
            f"found {run.length * LONG_PERIOD:.1f}s LEAD_SYNC, loading HEADER, "
            f"{'positive' if run.phase else 'negative'} polarity"
        )

    def _bit(self, length: int) -> Optional[ProgramRecord]:
        prev_length = self.lengths[RunKind.SHORT]
        bit = BIT_TABLE.get((length, prev_length))
        if bit is None:
            self._error(
                f"invalid bit found in state {self.state.value} "
                f"length = {length}, last_length = {prev_length}"
            )
            return None

        if self.bits == START_BIT:
            if bit != 0:
                self._warning("invalid start bit found, must be 0 found 1")
            self.bits += 1
            return None

        if self.bits < STOP_BIT:
            # LSB first
            self.byte = (self.byte >> 1) | (0x80 if bit else 0)
            self.bits += 1
            return None

        if bit != 1:
            self._warning("invalid stop bit found, must be 1 found 0")

        value = self.byte
        self.byte = 0
        self.bits = START_BIT

        if self.state is DecoderState.HEADER:
            self._header_byte(value)
            return None
        return self._data_byte(value)

    def _header_byte(self, value: int):
        self.header[self.pos] = value
        self.pos += 1
        if self.pos < HEADER_SIZE:
            return

        self.fields = HeaderFields.decode(self.header)
        data_size = self.fields.data_size
        if not 1 <= data_size <= self.max_data_size:
            self._error(f"data size {data_size} not supported, must be 1 to {self.max_data_size} bytes")
            return

        _logger.info(
            f"header: filename={self.fields.filename:04x}, "
            f"first_addr={self.fields.start_addr:04x}, "
            f"last_addr={self.fields.end_addr:04x}, "
            f"checksum={self.fields.checksum:02x}"
        )

        self.data_size = data_size
        self.checksum = self.fields.checksum
        self.pos = 0
        self.state = DecoderState.MID_SYNC

    def _data_byte(self, value: int) -> Optional[ProgramRecord]:
        self.data[self.pos] = value
        self.pos += 1
        self.checksum = (self.checksum + value) & 0xFF
        _logger.debug(f"data byte {self.pos}/{self.data_size}: {value:02x}")

        if self.pos < self.data_size:
            return None

        if self.checksum != 0:
            self._error("invalid checksum")
            return None

        _logger.info("DATA OK")
        self.records_decoded += 1
        self.state = DecoderState.TAIL_SYNC
        return ProgramRecord(
            self.fields.filename,
            self.fields.start_addr,
            bytes(self.data[:self.data_size]),
        )

    def _mid_sync(self, length: int):
        # The last waves belong to the first data bit, so this is a bit
        # longer than the MID_SYNC itself.
        seconds = length * SHORT_PERIOD
        if length >= self.mid_sync_min:
            _logger.info(f"found {seconds:.1f}s MID_SYNC, loading DATA ({self.data_size} bytes)")
            self.state = DecoderState.FIRST_DATA
        else:
            self._error(
                f"duration of MID_SYNC is too short "
                f"{seconds:.1f}s < {self.mid_sync_min * SHORT_PERIOD:.1f}s"
            )

    def _tail_sync(self, length: int):
        seconds = length * SHORT_PERIOD
        if length >= self.tail_sync_min:
            _logger.info(f"found {seconds:.1f}s TAIL_SYNC")
            self.state = DecoderState.IDLE
        else:
            self._error(
                f"duration of TAIL_SYNC is too short "
                f"{seconds:.1f}s < {self.tail_sync_min * SHORT_PERIOD:.1f}s"
            )

    def get_statistics(self) -> dict:
        """
        Get decoder statistics.

        Returns:
            Dict with: lead_syncs, records_decoded, errors, warnings, state
        """
        return {
            "lead_syncs": self.lead_syncs,
            "records_decoded": self.records_decoded,
            "errors": self.errors,
            "warnings": self.warnings,
            "state": self.state.value,
        }


class MPFDecoder:
    """
    Complete decoder: owns one instance of every pipeline stage.

    Feed blocks of samples with process() and call flush() once at end
    of input.
    """

    def __init__(
        self,
        lead_sync_min: int = LEAD_SYNC_MIN,
        mid_sync_min: int = MID_SYNC_MIN,
        tail_sync_min: int = TAIL_SYNC_MIN,
        max_data_size: int = MAX_DATA_SIZE,
    ):
        # Components
        self.timer = ZeroCrossingTimer()
        self.resolver = PolarityResolver()
        self.aggregator = RunAggregator()
        self.records = RecordDecoder(
            lead_sync_min=lead_sync_min,
            mid_sync_min=mid_sync_min,
            tail_sync_min=tail_sync_min,
            max_data_size=max_data_size,
        )

    def reset(self):
        """Reset all stages."""
        self.timer.reset()
        self.resolver.reset()
        self.aggregator.reset()
        self.records.reset()

    def _half_waves(self, half_waves: list[HalfWave]) -> list[ProgramRecord]:
        found = []
        for half_wave in half_waves:
            wave = self.resolver.feed(half_wave)
            if wave is None:
                continue
            run = self.aggregator.feed(wave)
            if run is None:
                continue
            record = self.records.feed(run)
            if record is not None:
                found.append(record)
        return found

    def process(self, samples) -> list[ProgramRecord]:
        """
        Process a block of samples.

        Args:
            samples: uint8 samples (numpy array, bytes or sequence of ints)

        Returns:
            Records completed within this block
        """
        return self._half_waves(self.timer.process(samples))

    def flush(self) -> list[ProgramRecord]:
        """Terminate the input; reports a trailing TAIL_SYNC."""
        return self._half_waves(self.timer.flush())

    def get_statistics(self) -> dict:
        return self.records.get_statistics()


def decode_samples(samples: Sequence[int] | np.ndarray | bytes, **kwargs) -> list[ProgramRecord]:
    """
    Decode a complete recording held in memory.

    Args:
        samples: uint8 samples at SAMPLE_RATE
        **kwargs: Passed on to MPFDecoder

    Returns:
        Decoded records in tape order
    """
    decoder = MPFDecoder(**kwargs)
    return decoder.process(samples) + decoder.flush()


def decode_stream(
    stream: BinaryIO,
    decoder: Optional[MPFDecoder] = None,
    block_size: int = SAMPLE_RATE,
) -> Iterator[ProgramRecord]:
    """
    Decode raw samples from a binary stream, yielding records as they complete.

    Args:
        stream: Binary file object with raw 8kHz/U8 samples (e.g. stdin)
        decoder: Decoder to use (a new one if None)
        block_size: Bytes read per block (default 1 second)
    """
    if decoder is None:
        decoder = MPFDecoder()

    while True:
        block = stream.read(block_size)
        if not block:
            break
        yield from decoder.process(block)

    yield from decoder.flush()


def decode_file(
    file_path: str | Path,
    fmt: Optional[str] = None,
    channel: int = 0,
    decoder: Optional[MPFDecoder] = None,
) -> list[ProgramRecord]:
    """
    Decode all records from a raw or WAV file.

    Args:
        file_path: Path to the recording
        fmt: "raw", "wav" or None to guess from the suffix
        channel: Channel to use for multi-channel files
        decoder: Decoder to use (a new one if None)

    Returns:
        Decoded records in tape order
    """
    samples = read_samples(file_path, fmt, channel)

    if decoder is None:
        decoder = MPFDecoder()

    # 1 second at a time
    results = []
    for i in range(0, len(samples), SAMPLE_RATE):
        results.extend(decoder.process(samples[i:i + SAMPLE_RATE]))
    results.extend(decoder.flush())

    return results
