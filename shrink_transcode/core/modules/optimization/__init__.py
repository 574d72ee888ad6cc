"""Resolution-based bitrate policy."""
