"""Transcoding pipeline modules: analysis, command building, policy, processing and system helpers."""
