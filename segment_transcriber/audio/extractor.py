"""Derive a playable audio slice for a time range from a whole-file payload.

WHY: Segments reconstructed from an imported transcript have timing but no
audio of their own. Before they can be transcribed or previewed, the
matching slice has to be cut out of the original recording.

HOW: Integer PCM WAV payloads are decoded in memory with the wave module.
Any other container (MP3, M4A, FLAC, ...) and any WAV encoding the wave
module cannot read (IEEE float, A-law, ...) is first converted by an
ffmpeg subprocess into 16-bit mono WAV at the reference rate. The decoded
frames are sliced at sample-accurate boundaries and re-encoded as WAV.

RULES:
- Preconditions 0 <= start < end are checked before anything is decoded
- start >= duration is an InvalidRangeError
- end beyond the decoded duration is clamped to the duration
- Every failure is an ExtractionError; callers attach it to the segment
"""

from __future__ import annotations

import logging
import math
import subprocess
import tempfile
from pathlib import Path
from typing import Optional

from segment_transcriber.audio.wav import PcmAudio, decode_wav, encode_wav, is_wav
from segment_transcriber.config import FFMPEG_BIN, REFERENCE_SAMPLE_RATE
from segment_transcriber.errors import ExtractionError, InvalidRangeError

logger = logging.getLogger(__name__)

_FFMPEG_TIMEOUT_S = 300


def check_range(start_seconds: float, end_seconds: float) -> None:
    """Raise InvalidRangeError unless 0 <= start < end (both finite)."""
    if not (math.isfinite(start_seconds) and math.isfinite(end_seconds)):
        raise InvalidRangeError("Time range must be finite")
    if start_seconds < 0:
        raise InvalidRangeError(
            "Invalid time range: start {:.3f}s is negative".format(start_seconds)
        )
    if end_seconds <= start_seconds:
        raise InvalidRangeError(
            "Invalid time range: end {:.3f}s is not after start {:.3f}s".format(
                end_seconds, start_seconds
            )
        )


class SegmentAudioExtractor:
    """Cuts time ranges out of encoded whole-file payloads.

    The most recently decoded payload is cached, so extracting many
    segments from one project decodes the source only once.
    """

    def __init__(
        self,
        ffmpeg_bin: str = FFMPEG_BIN,
        target_rate: int = REFERENCE_SAMPLE_RATE,
    ) -> None:
        self._ffmpeg_bin = ffmpeg_bin
        self._target_rate = target_rate
        self._cache_payload: Optional[bytes] = None
        self._cache_audio: Optional[PcmAudio] = None

    def decode(self, payload: bytes) -> PcmAudio:
        if not payload:
            raise ExtractionError("Audio payload is empty")
        if self._cache_payload is payload and self._cache_audio is not None:
            return self._cache_audio

        if is_wav(payload):
            audio = self._decode_riff(payload)
        else:
            audio = decode_wav(self._transcode_to_wav(payload))

        if audio.frame_count == 0:
            raise ExtractionError("No audio samples decoded")

        self._cache_payload = payload
        self._cache_audio = audio
        return audio

    def _decode_riff(self, payload: bytes) -> PcmAudio:
        """Decode integer PCM directly; other WAV encodings go through ffmpeg."""
        try:
            return decode_wav(payload)
        except ExtractionError as exc:
            wav_error = exc
        logger.info("WAV payload is not integer PCM (%s); decoding with ffmpeg", wav_error)
        try:
            return decode_wav(self._transcode_to_wav(payload))
        except ExtractionError as exc:
            raise ExtractionError("{}; ffmpeg fallback failed: {}".format(wav_error, exc)) from exc

    def duration(self, payload: bytes) -> float:
        return self.decode(payload).duration_s

    def extract(self, payload: bytes, start_seconds: float, end_seconds: float) -> bytes:
        """Return a WAV slice of payload covering [start_seconds, end_seconds).

        Raises:
            InvalidRangeError: if the range is empty, negative, or starts
                at or past the end of the audio.
            ExtractionError: if the payload cannot be decoded.
        """
        check_range(start_seconds, end_seconds)
        audio = self.decode(payload)

        start_frame = int(start_seconds * audio.sample_rate)
        end_frame = min(int(end_seconds * audio.sample_rate), audio.frame_count)
        if start_frame >= audio.frame_count:
            raise InvalidRangeError(
                "Invalid time range: start {:.3f}s is past the end of the audio ({:.3f}s)".format(
                    start_seconds, audio.duration_s
                )
            )
        if end_frame <= start_frame:
            raise InvalidRangeError("Requested range contains no samples")

        frame_size = audio.frame_size
        frames = audio.frames[start_frame * frame_size:end_frame * frame_size]
        return encode_wav(
            frames,
            sample_rate=audio.sample_rate,
            channels=audio.channels,
            sample_width=audio.sample_width,
        )

    def _transcode_to_wav(self, payload: bytes) -> bytes:
        """Decode any ffmpeg-readable payload to 16-bit mono WAV."""
        with tempfile.TemporaryDirectory(prefix="segment_extract_") as tmp:
            src = Path(tmp) / "source"
            out = Path(tmp) / "decoded.wav"
            src.write_bytes(payload)
            cmd = [
                self._ffmpeg_bin,
                "-v", "error",
                "-i", str(src),
                "-vn",
                "-ac", "1",
                "-ar", str(self._target_rate),
                "-sample_fmt", "s16",
                str(out),
            ]
            try:
                subprocess.run(
                    cmd,
                    check=True,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    timeout=_FFMPEG_TIMEOUT_S,
                )
            except FileNotFoundError as exc:
                raise ExtractionError(
                    "ffmpeg not found ({}); only PCM WAV payloads can be sliced".format(
                        self._ffmpeg_bin
                    )
                ) from exc
            except subprocess.CalledProcessError as exc:
                stderr = exc.stderr.decode(errors="ignore") if exc.stderr else ""
                logger.error("ffmpeg failed while decoding payload: %s", stderr.strip())
                raise ExtractionError("Could not decode audio payload: {}".format(stderr.strip())) from exc
            except subprocess.TimeoutExpired as exc:
                raise ExtractionError("ffmpeg timed out decoding audio payload") from exc
            return out.read_bytes()
