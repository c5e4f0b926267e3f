"""Audio payload helpers and per-segment audio extraction."""
