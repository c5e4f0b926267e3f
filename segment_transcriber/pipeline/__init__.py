"""Per-segment transcription orchestration and request pacing."""
