"""Core segment model, detection boundary and project serialization.

WHY: The core package holds the stable heart of the system: the Segment
and Project dataclasses every other stage reads and writes, the boundary
to the external voice-activity detector, and the JSON project format.

RULES:
- Segment and Project are the contract between stages; change with care
- No HTTP, CLI or formatting logic here
"""
