"""Subprocess, scratch file and outcome log helpers."""
