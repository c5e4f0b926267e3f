"""Noscribe HTML transcript importer.

WHY: Users often already have a transcript produced by Noscribe and want
to correct, re-transcribe or subtitle it here. Noscribe writes HTML where
each paragraph is one utterance, "SPEAKER: [hh:mm:ss] text". Rebuilding
Segments from that lets an imported transcript flow through the same
orchestrator and formatters as a freshly detected one.

HOW: BeautifulSoup walks every <p>. Paragraphs with a bracketed timestamp
become entries in document order; each entry ends where the next begins
and the last one gets an estimated duration. Without any timestamps the
importer falls back to one contiguous segment per paragraph. The
document's <meta name="audio_source"> names the recording, which
locate_source_audio() tries to find on disk.

RULES:
- Entries are never re-sorted; document order is already chronological
- transcription is "{speaker}: {body}" when a speaker label precedes the
  timestamp, else just body
- end of entry i = start of entry i+1; last end = start + max(words / 3, 2)
- Fallback duration per paragraph = max(chars / 100, 3), placed back to back
- Samples are placeholders: time * REFERENCE_SAMPLE_RATE
- Imported segments never carry audio; extraction happens later
- A missing source recording is a recoverable state, never an import failure
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

from bs4 import BeautifulSoup

from segment_transcriber.config import (
    FALLBACK_CHARS_PER_SECOND,
    FALLBACK_MIN_DURATION_S,
    LAST_SEGMENT_MIN_DURATION_S,
    LAST_SEGMENT_WORDS_PER_SECOND,
    REFERENCE_SAMPLE_RATE,
)
from segment_transcriber.core.segments import Project, Segment
from segment_transcriber.errors import ImportParseError, MissingAudioError

logger = logging.getLogger(__name__)

_TIMESTAMP_RE = re.compile(r"\[(\d{1,3}):([0-5]?\d):([0-5]?\d)\]")


@dataclass
class ImportHeuristics:
    """Calibration constants for estimating durations the document lacks."""

    last_words_per_second: float = LAST_SEGMENT_WORDS_PER_SECOND
    last_min_duration_s: float = LAST_SEGMENT_MIN_DURATION_S
    fallback_chars_per_second: float = FALLBACK_CHARS_PER_SECOND
    fallback_min_duration_s: float = FALLBACK_MIN_DURATION_S
    sample_rate: int = REFERENCE_SAMPLE_RATE


@dataclass
class TimestampedEntry:
    """One parsed utterance."""

    start_s: float
    speaker: Optional[str]
    body: str

    @property
    def transcription(self) -> str:
        if self.speaker:
            return "{}: {}".format(self.speaker, self.body).strip()
        return self.body

    @property
    def word_count(self) -> int:
        return len(self.body.split())


@dataclass
class NoscribeImport:
    """Result of importing a Noscribe document.

    RULES:
    - project.segments: ordered, audio-less segments
    - source_reference: the audio path named inside the document, or None
    - source_path: where that audio was actually found, or None
    - used_fallback: True when no timestamps were found
    """

    project: Project
    source_reference: Optional[str] = None
    source_path: Optional[Path] = None
    used_fallback: bool = False
    warnings: List[str] = field(default_factory=list)

    @property
    def missing_audio(self) -> bool:
        return self.project.missing_audio


def _normalize(text: str) -> str:
    return " ".join(text.split())


def _paragraph_texts(soup: BeautifulSoup) -> List[str]:
    texts = []
    for p in soup.find_all("p"):
        text = _normalize(p.get_text())
        if text:
            texts.append(text)
    return texts


def parse_entry(text: str) -> Optional[TimestampedEntry]:
    """Parse "SPEAKER: [hh:mm:ss] body" into an entry, or None without a timestamp."""
    match = _TIMESTAMP_RE.search(text)
    if match is None:
        return None
    hours, minutes, seconds = (int(g) for g in match.groups())
    start_s = float(hours * 3600 + minutes * 60 + seconds)

    prefix = text[:match.start()]
    speaker: Optional[str] = None
    if ":" in prefix:
        speaker = prefix.split(":", 1)[0].strip() or None

    body = text[match.end():].strip()
    return TimestampedEntry(start_s=start_s, speaker=speaker, body=body)


def _segment(start_s: float, end_s: float, text: str, heuristics: ImportHeuristics) -> Segment:
    return Segment.from_times(
        start_s,
        end_s,
        sample_rate=heuristics.sample_rate,
        transcription=text,
    )


def segments_from_entries(
    entries: List[TimestampedEntry],
    heuristics: Optional[ImportHeuristics] = None,
) -> List[Segment]:
    """Turn parsed entries into segments, each ending where the next begins.

    RULES:
    - The last entry lasts max(word_count / words_per_second, min_duration)
    - An entry whose successor does not start later (duplicate timestamps)
      gets the same estimated duration as the last entry, so end > start holds
    """
    heuristics = heuristics or ImportHeuristics()
    segments: List[Segment] = []
    for i, entry in enumerate(entries):
        estimate = max(
            entry.word_count / heuristics.last_words_per_second,
            heuristics.last_min_duration_s,
        )
        if i + 1 < len(entries) and entries[i + 1].start_s > entry.start_s:
            end_s = entries[i + 1].start_s
        else:
            end_s = entry.start_s + estimate
        segments.append(_segment(entry.start_s, end_s, entry.transcription, heuristics))
    return segments


def segments_from_paragraphs(
    paragraphs: List[str],
    heuristics: Optional[ImportHeuristics] = None,
) -> List[Segment]:
    """Fallback: one contiguous segment per paragraph with an estimated length."""
    heuristics = heuristics or ImportHeuristics()
    segments: List[Segment] = []
    cursor = 0.0
    for text in paragraphs:
        duration = max(
            len(text) / heuristics.fallback_chars_per_second,
            heuristics.fallback_min_duration_s,
        )
        segments.append(_segment(cursor, cursor + duration, text, heuristics))
        cursor += duration
    return segments


def parse_noscribe_html(
    html: str,
    heuristics: Optional[ImportHeuristics] = None,
) -> tuple:
    """Parse a Noscribe document.

    Returns:
        (segments, source_reference, used_fallback)

    Raises:
        ImportParseError: if the document has no paragraph text at all.
    """
    soup = BeautifulSoup(html, "html.parser")
    paragraphs = _paragraph_texts(soup)

    entries = []
    for text in paragraphs:
        entry = parse_entry(text)
        if entry is None:
            logger.debug("Skipping paragraph without timestamp: %.40s", text)
            continue
        entries.append(entry)

    used_fallback = False
    if entries:
        segments = segments_from_entries(entries, heuristics)
    elif paragraphs:
        logger.info("No timestamps found; falling back to one segment per paragraph")
        segments = segments_from_paragraphs(paragraphs, heuristics)
        used_fallback = True
    else:
        raise ImportParseError("Document contains no transcript paragraphs")

    meta = soup.find("meta", attrs={"name": "audio_source"})
    source_reference = None
    if meta is not None and meta.get("content"):
        source_reference = str(meta["content"]).strip() or None

    return segments, source_reference, used_fallback


def locate_source_audio(
    reference: Optional[str],
    document_dir: Optional[Path] = None,
    file_exists: Callable[[str], bool] = os.path.isfile,
) -> Optional[Path]:
    """Find the audio file a document refers to, or None.

    Candidates, in order: the path as written, the path relative to the
    document's directory, the bare file name next to the document.
    """
    if not reference:
        return None
    ref = Path(reference.replace("\\", "/"))
    candidates = [ref]
    if document_dir is not None:
        if not ref.is_absolute():
            candidates.append(document_dir / ref)
        candidates.append(document_dir / ref.name)
    seen = set()
    for candidate in candidates:
        if candidate in seen:
            continue
        seen.add(candidate)
        if file_exists(str(candidate)):
            return candidate
    return None


def attach_source_audio(project: Project, path: str | Path) -> Project:
    """Load the whole-file audio into project once the user has located it.

    Raises:
        MissingAudioError: if the file cannot be read.
    """
    path = Path(path)
    try:
        project.source_audio = path.read_bytes()
    except OSError as exc:
        raise MissingAudioError("Cannot read source audio {}: {}".format(path, exc)) from exc
    project.source_filename = path.name
    return project


def import_noscribe_file(
    path: str | Path,
    audio_path: str | Path | None = None,
    heuristics: Optional[ImportHeuristics] = None,
    file_exists: Callable[[str], bool] = os.path.isfile,
) -> NoscribeImport:
    """Import a Noscribe HTML file into a new Project.

    Args:
        path: The Noscribe .html document.
        audio_path: Explicit source audio; overrides the document's reference.
        heuristics: Duration estimation constants.
        file_exists: Existence check used when looking for the audio.

    Returns:
        NoscribeImport; check missing_audio before transcribing.
    """
    path = Path(path)
    html = path.read_text(encoding="utf-8", errors="replace")
    segments, reference, used_fallback = parse_noscribe_html(html, heuristics)

    result = NoscribeImport(
        project=Project(name=path.stem, segments=segments),
        source_reference=reference,
        used_fallback=used_fallback,
    )
    if reference:
        result.project.source_filename = Path(reference.replace("\\", "/")).name

    located = Path(audio_path) if audio_path else locate_source_audio(
        reference, path.parent, file_exists
    )
    if located is not None:
        try:
            attach_source_audio(result.project, located)
            result.source_path = located
        except MissingAudioError as exc:
            result.warnings.append(str(exc))
    else:
        result.warnings.append(
            "Source audio not found{}; locate it before transcribing".format(
                " ({})".format(reference) if reference else ""
            )
        )

    logger.info(
        "Imported %d segments from %s (fallback=%s, audio=%s)",
        len(segments), path.name, used_fallback, result.source_path,
    )
    return result
