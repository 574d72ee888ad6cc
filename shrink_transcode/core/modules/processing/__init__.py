"""Per-file transcode control, batch processing and file management."""
