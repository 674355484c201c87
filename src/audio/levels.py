"""
src/audio/levels.py
====================
Level Check — wavgate

Responsibility:
    - Decode a prepared prompt and measure its peak and RMS level (dBFS)
    - Flag prompts that are silent or clipped

A failed conversion can still produce a structurally valid WAV that plays
nothing (wrong input channel, muted source) or distorts on the line. The
header check cannot see this; the level check can.

This module does NOT:
    - Modify the audio
    - Fail the caller: decode problems return an "unknown" report
"""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Any

import numpy as np
from pydub import AudioSegment

logger = logging.getLogger("wavgate.audio.levels")


# ---------------------------------------------------------------------------
# Thresholds
# ---------------------------------------------------------------------------

_SILENCE_PEAK_DBFS: float = -60.0   # peak below this → nothing audible
_CLIPPING_PEAK_DBFS: float = -0.1   # peak at/above this → likely clipped
_DBFS_FLOOR: float = -120.0         # reported instead of -inf for digital silence


class LevelStatus(str, Enum):
    """Level classification of a prompt."""

    OK = "ok"
    SILENT = "silent"
    CLIPPING = "clipping"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class LevelReport:
    """Peak and RMS level of a decoded file."""

    peak_dbfs: float
    rms_dbfs: float
    status: LevelStatus

    def to_dict(self) -> dict[str, Any]:
        return {
            "peak_dbfs": round(self.peak_dbfs, 2),
            "rms_dbfs": round(self.rms_dbfs, 2),
            "status": self.status.value,
        }


_UNKNOWN_REPORT = LevelReport(_DBFS_FLOOR, _DBFS_FLOOR, LevelStatus.UNKNOWN)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def analyze_levels(path: str | os.PathLike) -> LevelReport:
    """
    Decode an audio file with pydub and measure its levels.

    G.711 payloads are expanded to linear PCM by pydub (through ffmpeg)
    before measuring.

    Returns:
        LevelReport; status is UNKNOWN if the file could not be decoded.
    """
    try:
        segment = AudioSegment.from_file(os.fspath(path))
        samples = _segment_to_float32(segment)
    except Exception as exc:
        logger.warning("Level analysis failed for %s: %s. Returning unknown.", path, exc)
        return _UNKNOWN_REPORT

    report = classify_levels(samples)
    logger.info("Level analysis for %s: %s", path, report.to_dict())
    return report


def classify_levels(samples: np.ndarray) -> LevelReport:
    """
    Measure peak / RMS of float samples in [-1.0, 1.0] and classify them.

    An empty array is reported as silent.
    """
    if samples.size == 0:
        return LevelReport(_DBFS_FLOOR, _DBFS_FLOOR, LevelStatus.SILENT)

    peak = float(np.max(np.abs(samples)))
    rms = float(np.sqrt(np.mean(np.square(samples, dtype=np.float64))))

    peak_dbfs = _to_dbfs(peak)
    rms_dbfs = _to_dbfs(rms)

    if peak_dbfs < _SILENCE_PEAK_DBFS:
        status = LevelStatus.SILENT
    elif peak_dbfs >= _CLIPPING_PEAK_DBFS:
        status = LevelStatus.CLIPPING
    else:
        status = LevelStatus.OK

    return LevelReport(peak_dbfs, rms_dbfs, status)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _segment_to_float32(segment: AudioSegment) -> np.ndarray:
    """Interleaved samples of a pydub segment, normalized to [-1.0, 1.0]."""
    pcm = np.array(segment.get_array_of_samples(), dtype=np.float32)
    return pcm / float(segment.max_possible_amplitude)


def _to_dbfs(amplitude: float) -> float:
    if amplitude <= 0.0:
        return _DBFS_FLOOR
    return max(_DBFS_FLOOR, 20.0 * float(np.log10(amplitude)))
