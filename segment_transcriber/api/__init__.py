"""Speech-to-text API client package.

WHY: Each segment's audio is sent to an external speech-to-text service.
This package keeps all HTTP details of that service behind one async
client class.

RULES:
- All speech-to-text HTTP calls go through SpeechToTextClient
- Authentication is via Bearer token from config
"""

from segment_transcriber.api.client import SpeechToTextClient
from segment_transcriber.api.models import TranscriptionResponse

__all__ = ["SpeechToTextClient", "TranscriptionResponse"]
