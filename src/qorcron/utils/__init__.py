"""qorcron utilities."""
