"""Utility modules for shrink_transcode."""
