"""HTTP API exposing uploads, audio preparation, transcription and export."""
