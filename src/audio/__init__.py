# src/audio/__init__.py
# ======================
# Audio Layer — wavgate
#
# Responsibility:
#   - AudioProfile / Codec value types (profile.py)
#   - WAV header parsing and re-serialisation (header.py)
#   - Field-by-field profile validation (validator.py)
#   - ffmpeg conversion with pre/post checks (converter.py)
#   - Peak / RMS level check of prepared prompts (levels.py)
