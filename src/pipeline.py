"""
src/pipeline.py
================
Welcome Prompt Orchestrator — wavgate

Responsibility:
    1. Check that the configured welcome_file_path holds a WAV matching the
       telephony target profile (startup check)
    2. Prepare the welcome prompt from a source WAV: convert when needed,
       verify the result, then move it into place
    3. Report the outcome as a JSON-serialisable dict

This layer MUST NOT:
    - Parse headers or run ffmpeg itself (delegates to src.audio)
    - Auto-correct a bad welcome file during a check
    - Treat a silent or clipped prompt as fatal (warning only)

Step order (prepare):
    Step 1: ensure_profile     → converted + verified file at welcome_file_path
    Step 2: check_welcome_file → header, profile and duration re-checked
    Step 3: analyze_levels     → silent / clipping warning
"""

import logging
import os
from typing import Any

from src.audio.converter import ensure_profile
from src.audio.header import read_header_file
from src.audio.levels import LevelStatus, analyze_levels
from src.audio.validator import validate
from src.config import ConfigurationError, Settings

logger = logging.getLogger("wavgate.pipeline")


# =====================================================================
# Check
# =====================================================================


def check_welcome_file(settings: Settings) -> dict[str, Any]:
    """
    Verify the welcome prompt at settings.welcome_file_path.

    Checks:
        - WELCOME_FILE_PATH is configured
        - The file parses as a WAV
        - Its profile matches the configured target exactly
        - Its duration is within WELCOME_MAX_DURATION_SECONDS

    Returns:
        {"path", "target", "header", "validation"} report dict.

    Raises:
        ConfigurationError:   Missing path, or prompt longer than allowed.
        OSError:              File cannot be read.
        MalformedHeaderError: File is not a valid WAV.
        ProfileMismatchError: Profile differs from the target.
    """
    path = settings.require_welcome_file_path()
    target = settings.target_profile

    header = read_header_file(path)
    result = validate(header.profile, target)
    result.raise_for_mismatch(path)

    if header.duration_seconds > settings.max_duration_seconds:
        raise ConfigurationError(
            f"Welcome prompt {path} is {header.duration_seconds:.1f}s long, "
            f"exceeding WELCOME_MAX_DURATION_SECONDS={settings.max_duration_seconds:g}."
        )
    if header.data_size == 0:
        logger.warning("Welcome prompt %s has no audio frames.", path)

    logger.info(
        "Welcome prompt OK: %s (%s, %.2fs)",
        path, settings.target_profile_name, header.duration_seconds,
    )

    return {
        "path": path,
        "target": settings.target_profile_name,
        "header": header.to_dict(),
        "validation": result.to_dict(),
    }


# =====================================================================
# Prepare
# =====================================================================


def prepare_welcome_file(source_path: str | os.PathLike, settings: Settings) -> dict[str, Any]:
    """
    Produce the welcome prompt from source_path and verify it.

    Args:
        source_path: WAV file to convert (any rate / channels / codec).
        settings:    Loaded settings; supplies target, path and ffmpeg.

    Returns:
        The check_welcome_file report plus "source" and "levels".

    Raises:
        Everything check_welcome_file raises, and ConversionToolFailure.
    """
    path = settings.require_welcome_file_path()
    target = settings.target_profile

    logger.info("Preparing welcome prompt %s from %s", path, source_path)

    # Step 1: convert (or copy) and verify before replacing the live file
    ensure_profile(
        source_path,
        path,
        target,
        binary=settings.ffmpeg_binary,
        timeout=settings.ffmpeg_timeout_seconds,
    )

    # Step 2: same check the media service runs at startup
    report = check_welcome_file(settings)

    # Step 3: level check (non-fatal)
    levels = analyze_levels(path)
    if levels.status in (LevelStatus.SILENT, LevelStatus.CLIPPING):
        logger.warning(
            "Welcome prompt %s looks %s (peak %.1f dBFS).",
            path, levels.status.value, levels.peak_dbfs,
        )

    report["source"] = os.fspath(source_path)
    report["levels"] = levels.to_dict()
    return report
