"""Core modules behind the `videos` and `rename` commands."""
