"""Notice distribution and acknowledgement service."""
