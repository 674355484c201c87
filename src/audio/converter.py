"""
src/audio/converter.py
=======================
Audio Converter — wavgate

Responsibility:
    - Locate the ffmpeg binary
    - Run ffmpeg to resample / downmix / re-encode a WAV to a target profile
    - Surface ffmpeg failures verbatim (exit code + stderr), never retried
    - Check pre/post conditions around a conversion (ensure_profile)

The codec work itself is done entirely by ffmpeg. The command mirrors the
documented manual invocation:

    ffmpeg -i input.wav -ar 8000 -ac 1 -acodec pcm_mulaw output.wav

This module does NOT:
    - Encode or decode samples in Python
    - Retry failed conversions
"""

import logging
import os
import shlex
import shutil
import subprocess
import tempfile

from pydub.utils import which

from src.audio.header import UnsupportedFormatError, WavHeader, read_header_file
from src.audio.profile import AudioProfile
from src.audio.validator import validate

logger = logging.getLogger("wavgate.audio.converter")

DEFAULT_FFMPEG_BINARY = "ffmpeg"

# Conventional shell exit status for "command not found".
EXIT_COMMAND_NOT_FOUND = 127


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConversionToolFailure(Exception):
    """Raised when the external conversion tool fails."""

    def __init__(self, returncode: int | None, stderr: str, command: list[str] | None = None):
        self.returncode = returncode
        self.stderr = stderr
        self.command = command or []
        status = "timed out" if returncode is None else f"exited with code {returncode}"
        super().__init__(f"Conversion tool {status}: {stderr.strip()}")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def locate_ffmpeg() -> str:
    """Return the ffmpeg executable found on PATH, or the bare name."""
    return which(DEFAULT_FFMPEG_BINARY) or DEFAULT_FFMPEG_BINARY


def build_ffmpeg_command(
    input_path: str | os.PathLike,
    output_path: str | os.PathLike,
    target: AudioProfile,
    binary: str | None = None,
) -> list[str]:
    """Build the ffmpeg argument list converting input_path to target."""
    return [
        binary or DEFAULT_FFMPEG_BINARY,
        "-hide_banner",
        "-nostdin",
        "-y",
        "-i", os.fspath(input_path),
        "-ar", str(target.sample_rate_hz),
        "-ac", str(target.channel_count),
        "-acodec", target.codec.value,
        os.fspath(output_path),
    ]


def convert_file(
    input_path: str | os.PathLike,
    output_path: str | os.PathLike,
    target: AudioProfile,
    binary: str | None = None,
    timeout: float | None = None,
) -> None:
    """
    Convert a WAV file to the target profile with ffmpeg.

    Args:
        input_path:  Source audio file.
        output_path: Destination WAV file (overwritten).
        target:      Profile to produce.
        binary:      ffmpeg executable; defaults to locate_ffmpeg().
        timeout:     Seconds before the subprocess is killed.

    Raises:
        ConversionToolFailure: ffmpeg exited non-zero, was not found
            (returncode 127) or timed out (returncode None).
    """
    command = build_ffmpeg_command(input_path, output_path, target, binary or locate_ffmpeg())
    logger.info("Running conversion: %s", shlex.join(command))

    try:
        proc = subprocess.run(
            command,
            capture_output=True,
            text=True,
            errors="replace",
            timeout=timeout,
            check=False,
        )
    except FileNotFoundError as exc:
        raise ConversionToolFailure(
            EXIT_COMMAND_NOT_FOUND, f"{command[0]}: command not found", command,
        ) from exc
    except subprocess.TimeoutExpired as exc:
        raise ConversionToolFailure(
            None, f"{command[0]} did not finish within {timeout}s", command,
        ) from exc

    if proc.returncode != 0:
        logger.error("Conversion failed (exit %d): %s", proc.returncode, proc.stderr.strip())
        raise ConversionToolFailure(proc.returncode, proc.stderr, command)

    logger.info("Converted %s -> %s (%s)", input_path, output_path, target.codec.value)


def ensure_profile(
    input_path: str | os.PathLike,
    output_path: str | os.PathLike,
    target: AudioProfile,
    binary: str | None = None,
    timeout: float | None = None,
) -> WavHeader:
    """
    Make output_path a WAV file matching target, starting from input_path.

    Steps:
        1. Parse the input header (must be a valid WAV container; encodings
           no AudioProfile describes, such as 24-bit PCM, go straight to ffmpeg)
        2. Copy it if it already matches, otherwise convert it with ffmpeg
           into a temporary file beside the output
        3. Parse and validate the produced file
        4. Move it into place, keeping the permissions of the file it replaces

    The output path is only replaced once the new file has passed
    validation, so input_path and output_path may be the same file.

    Returns:
        Header of the file now at output_path.

    Raises:
        MalformedHeaderError:  The input or the produced file is not a valid WAV.
        ConversionToolFailure: ffmpeg failed.
        ProfileMismatchError:  ffmpeg succeeded but the output is off-target.
    """
    try:
        source = read_header_file(input_path)
    except UnsupportedFormatError as exc:
        # Valid container, encoding outside every profile: ffmpeg can still read it.
        logger.info("%s has no telephony profile (%s); converting.", input_path, exc)
        needs_conversion = True
    else:
        pre = validate(source.profile, target)
        needs_conversion = not pre.matches
        if needs_conversion:
            logger.info(
                "%s needs conversion: %s",
                input_path, "; ".join(str(m) for m in pre.mismatches),
            )

    out_dir = os.path.dirname(os.path.abspath(output_path))
    fd, tmp_path = tempfile.mkstemp(suffix=".wav", prefix=".wavgate-", dir=out_dir)
    os.close(fd)

    try:
        if not needs_conversion:
            logger.info("%s already matches target; copying without conversion.", input_path)
            shutil.copyfile(input_path, tmp_path)
        else:
            convert_file(input_path, tmp_path, target, binary=binary, timeout=timeout)

        produced = read_header_file(tmp_path)
        validate(produced.profile, target).raise_for_mismatch(os.fspath(output_path))
        _apply_output_mode(tmp_path, output_path)

        os.replace(tmp_path, output_path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise

    logger.info(
        "%s ready: %s | %d Hz | %d ch | %.2fs",
        output_path, target.codec.value, target.sample_rate_hz,
        target.channel_count, produced.duration_seconds,
    )
    return produced


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _apply_output_mode(tmp_path: str, output_path: str | os.PathLike) -> None:
    """Give the temporary file the permissions the installed file should have."""
    if os.path.exists(output_path):
        shutil.copymode(output_path, tmp_path)
        return

    # mkstemp creates 0600; a new file gets the usual 0666 minus umask.
    umask = os.umask(0)
    os.umask(umask)
    os.chmod(tmp_path, 0o666 & ~umask)
