"""Importers that turn foreign transcript formats into Segment collections."""
