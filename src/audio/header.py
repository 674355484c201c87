"""
src/audio/header.py
====================
WAV Header Parser — wavgate FormatValidator

Responsibility:
    - Walk the RIFF/WAVE chunk list of an in-memory WAV file
    - Read the fmt chunk fields needed to populate an AudioProfile
    - Reject inputs whose chunk markers are missing or whose size fields
      disagree with each other
    - Re-serialise a profile into a canonical WAV header

The parser never returns a partially-populated profile: either every field
was read and cross-checked, or MalformedHeaderError is raised.

This module does NOT:
    - Decode or encode samples
    - Compare profiles against a target (that is validator.py)
"""

import logging
import os
import struct
from dataclasses import dataclass
from typing import Any

from src.audio.profile import AudioProfile, Codec, InvalidProfileError

logger = logging.getLogger("wavgate.audio.header")


# ---------------------------------------------------------------------------
# Container layout
# ---------------------------------------------------------------------------

_RIFF_HEADER = struct.Struct("<4sI4s")   # "RIFF", riff size, "WAVE"
_CHUNK_HEADER = struct.Struct("<4sI")    # chunk id, chunk size
_FMT_BASE = struct.Struct("<HHIIHH")     # tag, channels, rate, byte rate, align, bits

_FMT_BASE_SIZE = 16
_FMT_EXTENSIBLE_SIZE = 40
_SUBFORMAT_OFFSET = 24                    # first two GUID bytes hold the real tag

WAVE_FORMAT_EXTENSIBLE = 0xFFFE


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class MalformedHeaderError(Exception):
    """Raised when bytes do not parse as a valid WAV container."""
    pass


class UnsupportedFormatError(MalformedHeaderError):
    """Raised when a well-formed WAV uses a format no AudioProfile can describe."""
    pass


MalformedHeader = MalformedHeaderError


# ---------------------------------------------------------------------------
# Parsed header
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WavHeader:
    """Container details read alongside the profile."""

    profile: AudioProfile
    format_tag: int
    byte_rate: int
    block_align: int
    data_offset: int   # byte offset of the first sample
    data_size: int     # payload bytes, excluding any pad byte

    @property
    def frame_count(self) -> int:
        return self.data_size // self.block_align

    @property
    def duration_seconds(self) -> float:
        return self.data_size / self.byte_rate

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.profile.to_dict(),
            "format_tag": self.format_tag,
            "byte_rate": self.byte_rate,
            "block_align": self.block_align,
            "data_offset": self.data_offset,
            "data_size": self.data_size,
            "frame_count": self.frame_count,
            "duration_seconds": round(self.duration_seconds, 3),
        }


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse_header(data: bytes) -> AudioProfile:
    """
    Parse a WAV file's header into an AudioProfile.

    Args:
        data: Bytes of the whole WAV file (header and payload).

    Returns:
        The profile described by the fmt chunk.

    Raises:
        MalformedHeaderError: If a chunk marker is missing or size fields
            are inconsistent (UnsupportedFormatError for valid containers
            holding an unsupported encoding).
    """
    return parse_wav_header(data).profile


def parse_wav_header(data: bytes) -> WavHeader:
    """
    Parse a WAV file's header and return the full container details.

    Checks:
        - "RIFF" / "WAVE" markers present, RIFF size within the input
        - Every chunk fits inside the RIFF chunk
        - "fmt " and "data" chunks present
        - block_align == channels * bytes per sample
        - byte_rate == sample_rate * block_align
        - data size is a whole number of frames

    Raises:
        MalformedHeaderError: On any failed check.
    """
    if not data:
        raise MalformedHeaderError("Input is empty, no WAV header to parse.")

    if len(data) < _RIFF_HEADER.size:
        raise MalformedHeaderError(
            f"Input is {len(data)} bytes, too short for a RIFF header."
        )

    riff_id, riff_size, wave_id = _RIFF_HEADER.unpack_from(data, 0)
    if riff_id != b"RIFF":
        raise MalformedHeaderError(f"Missing 'RIFF' marker (found {riff_id!r}).")
    if wave_id != b"WAVE":
        raise MalformedHeaderError(f"Missing 'WAVE' marker (found {wave_id!r}).")
    if riff_size < 4:
        raise MalformedHeaderError(f"RIFF size field {riff_size} is too small.")

    riff_end = 8 + riff_size
    if riff_end > len(data):
        raise MalformedHeaderError(
            f"RIFF size field claims {riff_size} bytes but only "
            f"{len(data) - 8} are present (truncated file?)."
        )
    if riff_end < len(data):
        logger.debug("Ignoring %d trailing bytes after the RIFF chunk.", len(data) - riff_end)

    fmt_chunk, data_offset, data_size = _walk_chunks(data, riff_end)

    if fmt_chunk is None:
        raise MalformedHeaderError("Missing 'fmt ' chunk.")
    if data_offset is None:
        raise MalformedHeaderError("Missing 'data' chunk.")

    return _read_fmt(fmt_chunk, data_offset, data_size)


def read_header_file(path: str | os.PathLike) -> WavHeader:
    """
    Read a WAV file from disk and parse its header.

    Raises:
        OSError:              If the file cannot be read.
        MalformedHeaderError: If the file is not a valid WAV.
    """
    with open(path, "rb") as f:
        data = f.read()

    logger.debug("Read %d bytes from %s", len(data), path)
    return parse_wav_header(data)


def build_header(profile: AudioProfile, data_size: int = 0) -> bytes:
    """
    Serialise a profile as a canonical WAV header.

    PCM uses a 16-byte fmt chunk. G.711 codecs use an 18-byte fmt chunk
    (cbSize = 0) followed by a fact chunk holding the frame count.

    The RIFF size accounts for the pad byte an odd-sized payload needs;
    use build_wav() to get header, payload and pad in one buffer.

    Args:
        profile:   Profile to describe.
        data_size: Size of the sample payload in bytes.

    Raises:
        ValueError: If data_size is negative or not a whole number of frames.
    """
    if data_size < 0 or data_size % profile.block_align:
        raise ValueError(
            f"data_size {data_size} is not a whole number of "
            f"{profile.block_align}-byte frames."
        )

    fmt_body = _FMT_BASE.pack(
        profile.codec.format_tag,
        profile.channel_count,
        profile.sample_rate_hz,
        profile.byte_rate,
        profile.block_align,
        profile.bits_per_sample,
    )

    chunks = []
    if profile.codec is Codec.PCM_S16LE:
        chunks.append(_CHUNK_HEADER.pack(b"fmt ", len(fmt_body)) + fmt_body)
    else:
        fmt_body += struct.pack("<H", 0)
        chunks.append(_CHUNK_HEADER.pack(b"fmt ", len(fmt_body)) + fmt_body)
        frame_count = data_size // profile.block_align
        chunks.append(_CHUNK_HEADER.pack(b"fact", 4) + struct.pack("<I", frame_count))
    chunks.append(_CHUNK_HEADER.pack(b"data", data_size))

    body = b"".join(chunks)
    riff_size = 4 + len(body) + data_size + (data_size % 2)
    return _RIFF_HEADER.pack(b"RIFF", riff_size, b"WAVE") + body


def build_wav(profile: AudioProfile, payload: bytes) -> bytes:
    """Return a complete WAV file: header, payload and pad byte if needed."""
    pad = b"\x00" if len(payload) % 2 else b""
    return build_header(profile, len(payload)) + payload + pad


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _walk_chunks(data: bytes, riff_end: int) -> tuple[bytes | None, int | None, int]:
    """Return (fmt chunk body, data offset, data size) from the chunk list."""
    fmt_chunk: bytes | None = None
    data_offset: int | None = None
    data_size = 0

    offset = _RIFF_HEADER.size
    while offset + _CHUNK_HEADER.size <= riff_end:
        chunk_id, chunk_size = _CHUNK_HEADER.unpack_from(data, offset)
        body_start = offset + _CHUNK_HEADER.size
        body_end = body_start + chunk_size

        if body_end > riff_end:
            raise MalformedHeaderError(
                f"Chunk {chunk_id!r} at offset {offset} declares {chunk_size} "
                f"bytes, past the end of the RIFF chunk (truncated file?)."
            )

        if chunk_id == b"fmt " and fmt_chunk is None:
            fmt_chunk = data[body_start:body_end]
        elif chunk_id == b"data" and data_offset is None:
            data_offset, data_size = body_start, chunk_size
        else:
            logger.debug("Skipping chunk %r (%d bytes)", chunk_id, chunk_size)

        # Chunks are word-aligned; a missing pad byte on the last chunk is tolerated.
        offset = body_end + (chunk_size % 2)

    if offset < riff_end:
        raise MalformedHeaderError(
            f"{riff_end - offset} stray bytes at offset {offset} do not form a chunk."
        )

    return fmt_chunk, data_offset, data_size


def _read_fmt(fmt_chunk: bytes, data_offset: int, data_size: int) -> WavHeader:
    """Cross-check the fmt chunk and build the WavHeader."""
    if len(fmt_chunk) < _FMT_BASE_SIZE:
        raise MalformedHeaderError(
            f"'fmt ' chunk is {len(fmt_chunk)} bytes, expected at least {_FMT_BASE_SIZE}."
        )

    tag, channels, sample_rate, byte_rate, block_align, bits = _FMT_BASE.unpack_from(fmt_chunk, 0)

    if tag == WAVE_FORMAT_EXTENSIBLE:
        if len(fmt_chunk) < _FMT_EXTENSIBLE_SIZE:
            raise MalformedHeaderError(
                f"WAVE_FORMAT_EXTENSIBLE 'fmt ' chunk is {len(fmt_chunk)} bytes, "
                f"expected {_FMT_EXTENSIBLE_SIZE}."
            )
        (tag,) = struct.unpack_from("<H", fmt_chunk, _SUBFORMAT_OFFSET)

    if channels == 0 or sample_rate == 0 or bits == 0:
        raise MalformedHeaderError(
            f"'fmt ' chunk has zero fields: channels={channels}, "
            f"sample_rate={sample_rate}, bits_per_sample={bits}."
        )

    expected_align = channels * ((bits + 7) // 8)
    if block_align != expected_align:
        raise MalformedHeaderError(
            f"block_align {block_align} disagrees with {channels} ch x "
            f"{bits}-bit samples (expected {expected_align})."
        )
    if byte_rate != sample_rate * block_align:
        raise MalformedHeaderError(
            f"byte_rate {byte_rate} disagrees with {sample_rate} Hz x "
            f"{block_align}-byte frames (expected {sample_rate * block_align})."
        )
    if data_size % block_align:
        raise MalformedHeaderError(
            f"'data' chunk size {data_size} is not a whole number of "
            f"{block_align}-byte frames."
        )

    codec = Codec.from_format_tag(tag)
    if codec is None:
        raise UnsupportedFormatError(f"Unsupported WAVE format tag 0x{tag:04x}.")

    try:
        profile = AudioProfile(codec, sample_rate, channels, bits)
    except InvalidProfileError as exc:
        raise UnsupportedFormatError(f"Unsupported {codec.value} stream: {exc}") from exc

    logger.debug(
        "Parsed WAV header: %s | %d Hz | %d ch | %d-bit | %d data bytes",
        codec.value, sample_rate, channels, bits, data_size,
    )

    return WavHeader(
        profile=profile,
        format_tag=tag,
        byte_rate=byte_rate,
        block_align=block_align,
        data_offset=data_offset,
        data_size=data_size,
    )
