"""Chunked transfer of large audio payloads.

WHY: Audio files are often hundreds of megabytes. Sending them in fixed
size chunks keeps every request small and lets the UI show progress.

HOW: sessions.py holds the receiving side (UploadSessionStore), chunked.py
the sending side (ChunkedUploader and its transports).
"""
