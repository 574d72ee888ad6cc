"""
Test package for shrink_transcode.

External tools (ffmpeg, ffprobe) are never invoked: subprocess runners are
injected or patched, and filesystem effects happen in temporary directories.
"""
