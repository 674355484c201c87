"""
src/audio/profile.py
=====================
Audio Profile — wavgate

Responsibility:
    - Define the Codec enum (values are the ffmpeg codec identifiers)
    - Define the immutable AudioProfile value type
    - Enforce the profile invariant on construction
    - Provide the named telephony targets (mulaw / alaw / pcm16)

This module does NOT:
    - Read files or parse container headers (that is header.py)
    - Compare profiles (that is validator.py)
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class InvalidProfileError(ValueError):
    """Raised when an AudioProfile would violate the profile invariant."""
    pass


# ---------------------------------------------------------------------------
# Codec
# ---------------------------------------------------------------------------


class Codec(str, Enum):
    """Sample encodings supported inside a WAV container."""

    PCM_S16LE = "pcm_s16le"
    PCM_MULAW = "pcm_mulaw"
    PCM_ALAW = "pcm_alaw"

    @property
    def format_tag(self) -> int:
        """WAVE format tag written in the fmt chunk."""
        return _FORMAT_TAGS[self]

    @property
    def sample_width_bits(self) -> int:
        """Bits per sample the encoding always uses."""
        return _SAMPLE_WIDTHS[self]

    @classmethod
    def from_format_tag(cls, tag: int) -> "Codec | None":
        for codec, codec_tag in _FORMAT_TAGS.items():
            if codec_tag == tag:
                return codec
        return None


_FORMAT_TAGS: dict[Codec, int] = {
    Codec.PCM_S16LE: 0x0001,
    Codec.PCM_ALAW: 0x0006,
    Codec.PCM_MULAW: 0x0007,
}

_SAMPLE_WIDTHS: dict[Codec, int] = {
    Codec.PCM_S16LE: 16,
    Codec.PCM_ALAW: 8,
    Codec.PCM_MULAW: 8,
}

VALID_CHANNEL_COUNTS: frozenset[int] = frozenset({1, 2})
VALID_BITS_PER_SAMPLE: frozenset[int] = frozenset({8, 16})


# ---------------------------------------------------------------------------
# AudioProfile
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AudioProfile:
    """
    Format of a WAV file's audio stream.

    Built either from a parsed header or from a declared target. Two profiles
    are equal when all four fields are equal.

    Attributes:
        codec:           Sample encoding.
        sample_rate_hz:  Samples per second per channel (> 0).
        channel_count:   1 (mono) or 2 (stereo).
        bits_per_sample: 8 or 16, and always the codec's own sample width.
    """

    codec: Codec
    sample_rate_hz: int
    channel_count: int
    bits_per_sample: int

    def __post_init__(self) -> None:
        if not isinstance(self.codec, Codec):
            try:
                object.__setattr__(self, "codec", Codec(self.codec))
            except ValueError:
                raise InvalidProfileError(
                    f"Unknown codec {self.codec!r}. "
                    f"Allowed: {', '.join(c.value for c in Codec)}"
                ) from None

        for name in ("sample_rate_hz", "channel_count", "bits_per_sample"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise InvalidProfileError(
                    f"{name} must be an integer, got {type(value).__name__}"
                )

        if self.sample_rate_hz <= 0:
            raise InvalidProfileError(
                f"sample_rate_hz must be positive, got {self.sample_rate_hz}"
            )
        if self.channel_count not in VALID_CHANNEL_COUNTS:
            raise InvalidProfileError(
                f"channel_count must be one of {sorted(VALID_CHANNEL_COUNTS)}, "
                f"got {self.channel_count}"
            )
        if self.bits_per_sample not in VALID_BITS_PER_SAMPLE:
            raise InvalidProfileError(
                f"bits_per_sample must be one of {sorted(VALID_BITS_PER_SAMPLE)}, "
                f"got {self.bits_per_sample}"
            )
        if self.bits_per_sample != self.codec.sample_width_bits:
            raise InvalidProfileError(
                f"{self.codec.value} uses {self.codec.sample_width_bits}-bit "
                f"samples, got bits_per_sample={self.bits_per_sample}"
            )

    @property
    def block_align(self) -> int:
        """Bytes per frame (one sample for every channel)."""
        return self.channel_count * self.bits_per_sample // 8

    @property
    def byte_rate(self) -> int:
        return self.sample_rate_hz * self.block_align

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AudioProfile":
        """
        Build a profile from a declared target configuration.

        ``bits_per_sample`` may be omitted; it then defaults to the codec's
        sample width.

        Raises:
            InvalidProfileError: On a missing key or an invalid value.
        """
        for key in ("codec", "sample_rate_hz", "channel_count"):
            if key not in data:
                raise InvalidProfileError(f"Target profile missing required key '{key}'")

        try:
            codec = Codec(data["codec"])
        except ValueError:
            raise InvalidProfileError(f"Unknown codec {data['codec']!r}") from None

        return cls(
            codec=codec,
            sample_rate_hz=data["sample_rate_hz"],
            channel_count=data["channel_count"],
            bits_per_sample=data.get("bits_per_sample", codec.sample_width_bits),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "codec": self.codec.value,
            "sample_rate_hz": self.sample_rate_hz,
            "channel_count": self.channel_count,
            "bits_per_sample": self.bits_per_sample,
        }


# ---------------------------------------------------------------------------
# Named telephony targets (8 kHz mono, G.711 or 16-bit PCM)
# ---------------------------------------------------------------------------

TELEPHONY_SAMPLE_RATE_HZ = 8000

TELEPHONY_MULAW = AudioProfile(Codec.PCM_MULAW, TELEPHONY_SAMPLE_RATE_HZ, 1, 8)
TELEPHONY_ALAW = AudioProfile(Codec.PCM_ALAW, TELEPHONY_SAMPLE_RATE_HZ, 1, 8)
TELEPHONY_PCM16 = AudioProfile(Codec.PCM_S16LE, TELEPHONY_SAMPLE_RATE_HZ, 1, 16)

TARGET_PROFILES: dict[str, AudioProfile] = {
    "mulaw": TELEPHONY_MULAW,
    "alaw": TELEPHONY_ALAW,
    "pcm16": TELEPHONY_PCM16,
}


def get_target_profile(name: str) -> AudioProfile:
    """
    Look up a named target profile (case-insensitive).

    Raises:
        InvalidProfileError: If the name is not a known target.
    """
    key = (name or "").strip().lower()
    if key not in TARGET_PROFILES:
        raise InvalidProfileError(
            f"Unknown target profile '{name}'. "
            f"Allowed: {', '.join(sorted(TARGET_PROFILES))}"
        )
    return TARGET_PROFILES[key]
