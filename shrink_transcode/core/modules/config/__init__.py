"""Encoder detection and ffmpeg command construction."""
