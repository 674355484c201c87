"""
main.py
========
Central entry point for wavgate.

Run with:
    python main.py inspect greeting.wav
    python main.py validate greeting.wav --target mulaw
    python main.py convert source.wav greeting.wav --target alaw
    python main.py welcome check
    python main.py welcome prepare source.wav

Every command prints a JSON report on stdout; logs go to stderr.

Exit codes:
    0  OK
    1  Profile mismatch
    2  Malformed header or unreadable file
    3  Conversion tool failure
    4  Configuration error
"""

import argparse
import json
import logging
import sys
from typing import Any

from dotenv import load_dotenv

load_dotenv()  # Load .env before any module reads env vars

from src.audio.converter import ConversionToolFailure, ensure_profile  # noqa: E402
from src.audio.header import MalformedHeaderError, read_header_file  # noqa: E402
from src.audio.levels import analyze_levels  # noqa: E402
from src.audio.profile import TARGET_PROFILES, InvalidProfileError, get_target_profile  # noqa: E402
from src.audio.validator import ProfileMismatchError, validate  # noqa: E402
from src.config import ConfigurationError, get_settings  # noqa: E402
from src.pipeline import check_welcome_file, prepare_welcome_file  # noqa: E402

logger = logging.getLogger("wavgate.cli")

EXIT_OK = 0
EXIT_MISMATCH = 1
EXIT_MALFORMED = 2
EXIT_CONVERSION_FAILED = 3
EXIT_CONFIG_ERROR = 4


# ---------------------------------------------------------------------------
# Command handlers: each returns (report, exit code)
# ---------------------------------------------------------------------------


def _cmd_inspect(args: argparse.Namespace) -> tuple[dict[str, Any], int]:
    header = read_header_file(args.file)
    return {"path": args.file, "header": header.to_dict()}, EXIT_OK


def _cmd_validate(args: argparse.Namespace) -> tuple[dict[str, Any], int]:
    target_name = args.target or get_settings().target_profile_name
    target = get_target_profile(target_name)

    header = read_header_file(args.file)
    result = validate(header.profile, target)

    report = {
        "path": args.file,
        "target": target_name,
        "profile": header.profile.to_dict(),
        "validation": result.to_dict(),
    }
    return report, EXIT_OK if result.matches else EXIT_MISMATCH


def _cmd_convert(args: argparse.Namespace) -> tuple[dict[str, Any], int]:
    settings = get_settings()
    target_name = args.target or settings.target_profile_name
    target = get_target_profile(target_name)

    header = ensure_profile(
        args.input,
        args.output,
        target,
        binary=settings.ffmpeg_binary,
        timeout=settings.ffmpeg_timeout_seconds,
    )
    report = {
        "input": args.input,
        "output": args.output,
        "target": target_name,
        "header": header.to_dict(),
    }
    return report, EXIT_OK


def _cmd_levels(args: argparse.Namespace) -> tuple[dict[str, Any], int]:
    return {"path": args.file, "levels": analyze_levels(args.file).to_dict()}, EXIT_OK


def _cmd_welcome_check(args: argparse.Namespace) -> tuple[dict[str, Any], int]:
    return check_welcome_file(get_settings()), EXIT_OK


def _cmd_welcome_prepare(args: argparse.Namespace) -> tuple[dict[str, Any], int]:
    return prepare_welcome_file(args.source, get_settings()), EXIT_OK


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wavgate",
        description="Validate and convert WAV files to telephony profiles (8 kHz mono G.711 / PCM16).",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    target_help = (
        f"Target profile: {', '.join(sorted(TARGET_PROFILES))} "
        "(default: WELCOME_TARGET_PROFILE or mulaw)"
    )

    p = commands.add_parser("inspect", help="Print the parsed WAV header")
    p.add_argument("file", help="WAV file to inspect")
    p.set_defaults(handler=_cmd_inspect)

    p = commands.add_parser("validate", help="Compare a WAV file against a target profile")
    p.add_argument("file", help="WAV file to validate")
    p.add_argument("-t", "--target", help=target_help)
    p.set_defaults(handler=_cmd_validate)

    p = commands.add_parser("convert", help="Convert a WAV file to a target profile with ffmpeg")
    p.add_argument("input", help="Source WAV file")
    p.add_argument("output", help="Destination WAV file (replaced only after verification)")
    p.add_argument("-t", "--target", help=target_help)
    p.set_defaults(handler=_cmd_convert)

    p = commands.add_parser("levels", help="Measure peak / RMS level of an audio file")
    p.add_argument("file", help="Audio file to measure")
    p.set_defaults(handler=_cmd_levels)

    welcome = commands.add_parser("welcome", help="Check or prepare the welcome prompt (WELCOME_FILE_PATH)")
    welcome_commands = welcome.add_subparsers(dest="welcome_command", required=True)

    p = welcome_commands.add_parser("check", help="Verify the configured welcome prompt")
    p.set_defaults(handler=_cmd_welcome_check)

    p = welcome_commands.add_parser("prepare", help="Convert SOURCE into the welcome prompt")
    p.add_argument("source", help="Source WAV file")
    p.set_defaults(handler=_cmd_welcome_prepare)

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    # Configure logging for the entire application
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )

    try:
        report, exit_code = args.handler(args)
    except ProfileMismatchError as exc:
        logger.error("%s", exc)
        report = {
            "error": "profile_mismatch",
            "detail": str(exc),
            "mismatches": [m.to_dict() for m in exc.mismatches],
        }
        exit_code = EXIT_MISMATCH
    except MalformedHeaderError as exc:
        logger.error("Malformed WAV header: %s", exc)
        report = {"error": "malformed_header", "detail": str(exc)}
        exit_code = EXIT_MALFORMED
    except OSError as exc:
        logger.error("Cannot read file: %s", exc)
        report = {"error": "unreadable_file", "detail": str(exc)}
        exit_code = EXIT_MALFORMED
    except ConversionToolFailure as exc:
        logger.error("%s", exc)
        report = {
            "error": "conversion_failed",
            "returncode": exc.returncode,
            "stderr": exc.stderr,
        }
        exit_code = EXIT_CONVERSION_FAILED
    except (ConfigurationError, InvalidProfileError) as exc:
        logger.error("Configuration error: %s", exc)
        report = {"error": "configuration", "detail": str(exc)}
        exit_code = EXIT_CONFIG_ERROR

    print(json.dumps(report, indent=2))
    return exit_code


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
