"""
src/audio/validator.py
=======================
Profile Validator — wavgate FormatValidator

Responsibility:
    - Compare a parsed AudioProfile against a declared target, field by field
    - Report every mismatched field, in a fixed order
    - Raise ProfileMismatchError when the caller wants to fail fast

Comparison is exact equality: no tolerance, no unit conversion.

This module does NOT:
    - Convert audio (the caller decides whether to invoke converter.py)
    - Modify either profile
"""

import logging
import os
from dataclasses import dataclass
from typing import Any

from src.audio.header import read_header_file
from src.audio.profile import AudioProfile

logger = logging.getLogger("wavgate.audio.validator")

# Comparison order; mismatches are reported in this order.
PROFILE_FIELDS: tuple[str, ...] = (
    "codec",
    "sample_rate_hz",
    "channel_count",
    "bits_per_sample",
)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FieldMismatch:
    """One profile field whose actual value differs from the target."""

    field: str
    expected: Any
    actual: Any

    def to_dict(self) -> dict[str, Any]:
        return {
            "field": self.field,
            "expected": _plain(self.expected),
            "actual": _plain(self.actual),
        }

    def __str__(self) -> str:
        return f"{self.field}: expected {_plain(self.expected)}, got {_plain(self.actual)}"


class ProfileMismatchError(Exception):
    """Raised when a parsed profile differs from the target profile."""

    def __init__(self, mismatches: tuple[FieldMismatch, ...], path: str | None = None):
        self.mismatches = mismatches
        self.path = path
        details = "; ".join(str(m) for m in mismatches)
        where = f" for {path}" if path else ""
        super().__init__(f"Audio profile mismatch{where}: {details}")


ProfileMismatch = ProfileMismatchError


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a single validate() call."""

    mismatches: tuple[FieldMismatch, ...] = ()

    @property
    def matches(self) -> bool:
        return not self.mismatches

    def raise_for_mismatch(self, path: str | None = None) -> None:
        """
        Raises:
            ProfileMismatchError: If any field mismatched.
        """
        if self.mismatches:
            raise ProfileMismatchError(self.mismatches, path)

    def to_dict(self) -> dict[str, Any]:
        return {
            "matches": self.matches,
            "mismatches": [m.to_dict() for m in self.mismatches],
        }


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def validate(profile: AudioProfile, target: AudioProfile) -> ValidationResult:
    """
    Compare a profile against a target profile.

    Args:
        profile: The actual profile (usually from parse_header).
        target:  The declared target profile.

    Returns:
        ValidationResult; matches is True only if all four fields are equal.
    """
    mismatches = tuple(
        FieldMismatch(name, getattr(target, name), getattr(profile, name))
        for name in PROFILE_FIELDS
        if getattr(profile, name) != getattr(target, name)
    )
    return ValidationResult(mismatches)


def validate_file(path: str | os.PathLike, target: AudioProfile) -> ValidationResult:
    """
    Read a WAV file, parse its header and compare it against a target.

    Raises:
        OSError:              If the file cannot be read.
        MalformedHeaderError: If the file is not a valid WAV.
    """
    header = read_header_file(path)
    result = validate(header.profile, target)

    if result.matches:
        logger.info("%s matches target profile %s", path, target.codec.value)
    else:
        logger.info(
            "%s does not match target profile: %s",
            path, "; ".join(str(m) for m in result.mismatches),
        )
    return result


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _plain(value: Any) -> Any:
    """Enum members become their values for JSON output and messages."""
    return getattr(value, "value", value)
