"""
tests/test_cli.py
==================
Command-line entry point tests: JSON report on stdout and exit codes.
"""

import array
import io
import json
import os
import subprocess
import sys
import tempfile
import unittest
from contextlib import redirect_stdout
from unittest.mock import MagicMock, patch

# Ensure project root is on sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import main
from src.audio.converter import ConversionToolFailure
from src.audio.header import build_wav
from src.audio.profile import TELEPHONY_MULAW, AudioProfile, Codec
from src.config import ConfigurationError, Settings

CD_STEREO = AudioProfile(Codec.PCM_S16LE, 44100, 2, 16)


def _run(argv: list[str]) -> tuple[int, dict]:
    buf = io.StringIO()
    with redirect_stdout(buf):
        code = main.main(argv)
    return code, json.loads(buf.getvalue())


class TestCli(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.mulaw = os.path.join(self.tmp.name, "welcome.wav")
        self.cd = os.path.join(self.tmp.name, "recording.wav")
        with open(self.mulaw, "wb") as f:
            f.write(build_wav(TELEPHONY_MULAW, b"\xff" * 8000))
        with open(self.cd, "wb") as f:
            f.write(build_wav(CD_STEREO, b"\x00" * 400))

        self.settings = Settings(
            welcome_file_path=self.mulaw,
            target_profile_name="mulaw",
            ffmpeg_binary="ffmpeg",
            ffmpeg_timeout_seconds=30.0,
            max_duration_seconds=120.0,
        )
        patcher = patch("main.get_settings", return_value=self.settings)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_inspect(self):
        code, report = _run(["inspect", self.mulaw])
        self.assertEqual(code, main.EXIT_OK)
        self.assertEqual(report["header"]["codec"], "pcm_mulaw")
        self.assertEqual(report["header"]["duration_seconds"], 1.0)

    def test_validate_match(self):
        code, report = _run(["validate", self.mulaw])
        self.assertEqual(code, main.EXIT_OK)
        self.assertTrue(report["validation"]["matches"])

    def test_validate_mismatch(self):
        code, report = _run(["validate", self.cd, "--target", "mulaw"])
        self.assertEqual(code, main.EXIT_MISMATCH)
        self.assertEqual(len(report["validation"]["mismatches"]), 4)

    def test_validate_malformed(self):
        bogus = os.path.join(self.tmp.name, "bogus.wav")
        with open(bogus, "wb") as f:
            f.write(b"RIFF")
        code, report = _run(["validate", bogus])
        self.assertEqual(code, main.EXIT_MALFORMED)
        self.assertEqual(report["error"], "malformed_header")

    def test_missing_file(self):
        code, report = _run(["inspect", os.path.join(self.tmp.name, "nope.wav")])
        self.assertEqual(code, main.EXIT_MALFORMED)
        self.assertEqual(report["error"], "unreadable_file")

    def test_unknown_target(self):
        code, report = _run(["validate", self.mulaw, "--target", "gsm"])
        self.assertEqual(code, main.EXIT_CONFIG_ERROR)

    @patch("main.ensure_profile", side_effect=ConversionToolFailure(1, "Unknown encoder\n"))
    def test_convert_failure(self, _mock_ensure):
        code, report = _run(["convert", self.cd, os.path.join(self.tmp.name, "out.wav")])
        self.assertEqual(code, main.EXIT_CONVERSION_FAILED)
        self.assertEqual(report["returncode"], 1)
        self.assertEqual(report["stderr"], "Unknown encoder\n")

    @patch("src.audio.converter.subprocess.run")
    def test_convert_success(self, mock_run):
        def fake_run(command, **kwargs):
            with open(command[-1], "wb") as f:
                f.write(build_wav(TELEPHONY_MULAW, b"\xff" * 4000))
            return subprocess.CompletedProcess(command, 0, stdout="", stderr="")

        mock_run.side_effect = fake_run
        out = os.path.join(self.tmp.name, "out.wav")

        code, report = _run(["convert", self.cd, out, "--target", "mulaw"])

        self.assertEqual(code, main.EXIT_OK)
        self.assertEqual(report["output"], out)
        self.assertEqual(report["target"], "mulaw")
        self.assertEqual(report["header"]["codec"], "pcm_mulaw")
        self.assertEqual(report["header"]["duration_seconds"], 0.5)
        self.assertEqual(mock_run.call_args[0][0][0], "ffmpeg")

    @patch("src.audio.levels.AudioSegment.from_file")
    def test_levels(self, mock_from_file):
        segment = MagicMock()
        segment.get_array_of_samples.return_value = array.array("h", [0, 16384, -16384, 0] * 100)
        segment.max_possible_amplitude = 32768.0
        mock_from_file.return_value = segment

        code, report = _run(["levels", self.mulaw])

        self.assertEqual(code, main.EXIT_OK)
        self.assertEqual(report["path"], self.mulaw)
        self.assertEqual(report["levels"]["status"], "ok")
        self.assertAlmostEqual(report["levels"]["peak_dbfs"], -6.02, places=1)

    def test_welcome_check(self):
        code, report = _run(["welcome", "check"])
        self.assertEqual(code, main.EXIT_OK)
        self.assertEqual(report["path"], self.mulaw)

    def test_welcome_check_mismatch(self):
        self.settings = Settings(
            welcome_file_path=self.cd,
            target_profile_name="mulaw",
            ffmpeg_binary="ffmpeg",
            ffmpeg_timeout_seconds=30.0,
            max_duration_seconds=120.0,
        )
        with patch("main.get_settings", return_value=self.settings):
            code, report = _run(["welcome", "check"])
        self.assertEqual(code, main.EXIT_MISMATCH)
        self.assertEqual(report["error"], "profile_mismatch")
        self.assertEqual(
            [m["field"] for m in report["mismatches"]],
            ["codec", "sample_rate_hz", "channel_count", "bits_per_sample"],
        )

    @patch("main.get_settings", side_effect=ConfigurationError("WELCOME_FILE_PATH is not set"))
    def test_welcome_config_error(self, _mock_settings):
        code, report = _run(["welcome", "check"])
        self.assertEqual(code, main.EXIT_CONFIG_ERROR)
        self.assertEqual(report["error"], "configuration")

    @patch("main.prepare_welcome_file", return_value={"path": "x", "levels": {"status": "ok"}})
    def test_welcome_prepare(self, mock_prepare):
        code, report = _run(["welcome", "prepare", self.cd])
        self.assertEqual(code, main.EXIT_OK)
        mock_prepare.assert_called_once_with(self.cd, self.settings)


if __name__ == "__main__":
    unittest.main()
