"""Command-line interface for the segment transcriber.

WHY: Users need to run the pipeline without the editor: open a recording
with an external detector, import a Noscribe transcript, transcribe a
saved project, export it, or start the HTTP API. The CLI wires those
steps together behind argparse subcommands.

HOW: Each subcommand maps to one _cmd_* function. Async steps run via
asyncio.run(). Status messages go to stderr; projects are written as JSON
documents and exports next to the project (or to --output-dir).

RULES:
- Status output goes to stderr (not stdout)
- Output naming: {name}{suffix}, numeric suffix for conflicts (interview-2.srt)
- A failure in shared setup (load, upload, detection) exits with code 1
- Per-segment failures never change the exit code of `transcribe`; they
  are reported in the summary line and stored in the project
- Python 3.9 compatible: no match/case, no X | Y unions at runtime
"""

from __future__ import annotations

import argparse
import asyncio
import importlib
import logging
import sys
from pathlib import Path
from typing import List, Optional

from segment_transcriber.api.client import SpeechToTextClient
from segment_transcriber.config import MERGE_GAP_S, PACING_INTERVAL_S
from segment_transcriber.core.serializer import load_project, save_project
from segment_transcriber.errors import TranscriberError
from segment_transcriber.formatters import FORMATTERS
from segment_transcriber.formatters.base import FormatterOutput
from segment_transcriber.importers.noscribe import import_noscribe_file
from segment_transcriber.pipeline.orchestrator import TranscriptionOrchestrator
from segment_transcriber.pipeline.pacing import FixedDelayPacer


def _status(msg: str) -> None:
    """Print a status message to stderr.

    WHY: Status output must not pollute stdout so the CLI can be piped.
    """
    print(msg, file=sys.stderr, flush=True)


def _fail(msg: str) -> None:
    _status("Error: {}".format(msg))
    sys.exit(1)


def _resolve_output_path(stem: str, suffix: str, output_dir: Path) -> Path:
    """Resolve the output file path, adding a numeric suffix on conflict.

    RULES:
    - First attempt: {stem}{suffix} (e.g. interview.srt)
    - Conflict: insert a counter before the suffix (interview-2.srt)
    - Counter starts at 2 and increments

    Returns:
        A Path that does not yet exist.
    """
    base_path = output_dir / "{}{}".format(stem, suffix)
    if not base_path.exists():
        return base_path

    counter = 2
    while True:
        candidate = output_dir / "{}-{}{}".format(stem, counter, suffix)
        if not candidate.exists():
            return candidate
        counter += 1


def _save_output(output: FormatterOutput, stem: str, output_dir: Path) -> Path:
    path = _resolve_output_path(stem, output.suffix, output_dir)
    path.write_text(output.content, encoding="utf-8")
    return path


def _parse_formats(value: Optional[str]) -> List[str]:
    if not value:
        return list(FORMATTERS.keys())
    keys = [k.strip() for k in value.split(",") if k.strip()]
    unknown = [k for k in keys if k not in FORMATTERS]
    if unknown:
        _fail("Unknown format '{}'. Available: {}".format(
            unknown[0], ", ".join(sorted(FORMATTERS))
        ))
    return keys


def load_detector(target: str):
    """Load a detector from "package.module:attribute".

    A class (or any callable without a detect method) is called with no
    arguments to obtain the detector instance.
    """
    module_name, _, attr = target.partition(":")
    if not module_name or not attr:
        raise ValueError("Detector must be given as 'module:attribute', got '{}'".format(target))
    obj = getattr(importlib.import_module(module_name), attr)
    if not hasattr(obj, "detect") or isinstance(obj, type):
        obj = obj()
    return obj


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------


def _cmd_ingest(args: argparse.Namespace) -> None:
    from segment_transcriber.workflow import ingest_audio_file

    try:
        detector = load_detector(args.detector)
    except (ImportError, AttributeError, ValueError) as exc:
        _fail("Cannot load detector: {}".format(exc))

    def _progress(value: float) -> None:
        _status("  {:.0f}%".format(value * 100))

    try:
        project = asyncio.run(ingest_audio_file(
            args.audio_file,
            detector,
            on_progress=_progress if args.verbose else None,
            on_status=_status,
            merge_gap_s=None if args.no_merge else args.merge_gap,
        ))
    except TranscriberError as exc:
        _fail(str(exc))

    source = Path(args.audio_file)
    out_dir = Path(args.output_dir) if args.output_dir else source.parent
    out_path = _resolve_output_path(project.name, ".json", out_dir)
    save_project(project, out_path)
    _status("Saved project: {}".format(out_path))


def _cmd_import_noscribe(args: argparse.Namespace) -> None:
    try:
        result = import_noscribe_file(args.html_file, audio_path=args.audio)
    except (TranscriberError, OSError) as exc:
        _fail(str(exc))

    for warning in result.warnings:
        _status("Warning: {}".format(warning))
    if result.used_fallback:
        _status("No timestamps found; segments were estimated per paragraph.")
    if result.missing_audio:
        _status("Source audio is missing. Re-run with --audio PATH before transcribing.")

    source = Path(args.html_file)
    out_dir = Path(args.output_dir) if args.output_dir else source.parent
    out_path = _resolve_output_path(result.project.name, ".json", out_dir)
    save_project(result.project, out_path)
    _status("Imported {} segments -> {}".format(len(result.project.segments), out_path))


async def _transcribe_project(args: argparse.Namespace, project) -> None:
    async with SpeechToTextClient(model=args.model, language=args.language) as client:
        orchestrator = TranscriptionOrchestrator(
            client.transcribe,
            pacer=FixedDelayPacer(args.interval),
            on_status=_status,
        )
        await orchestrator.transcribe_all(project, pending_only=args.pending_only)


def _cmd_transcribe(args: argparse.Namespace) -> None:
    try:
        project = load_project(args.project_file)
    except TranscriberError as exc:
        _fail(str(exc))

    if project.missing_audio:
        _status("Warning: segments without audio will fail; source audio is missing.")

    try:
        asyncio.run(_transcribe_project(args, project))
    except ValueError as exc:
        _fail(str(exc))

    out_path = Path(args.output) if args.output else Path(args.project_file)
    save_project(project, out_path)
    _status("Saved project: {}".format(out_path))


def _cmd_export(args: argparse.Namespace) -> None:
    format_keys = _parse_formats(args.formats)
    try:
        project = load_project(args.project_file)
    except TranscriberError as exc:
        _fail(str(exc))

    source = Path(args.project_file)
    out_dir = Path(args.output_dir) if args.output_dir else source.parent
    out_dir.mkdir(parents=True, exist_ok=True)
    stem = project.name or source.stem

    for key in format_keys:
        for output in FORMATTERS[key]().format(project.segments):
            path = _save_output(output, stem, out_dir)
            _status("Wrote {}".format(path))


def _cmd_serve(args: argparse.Namespace) -> None:
    from segment_transcriber.server.app import run_api

    run_api(host=args.host, port=args.port)


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI.

    WHY: Separating parser construction from main() makes the CLI
    testable: tests can inspect the parser without running the pipeline.
    """
    parser = argparse.ArgumentParser(
        prog="segment_transcriber",
        description="Split recordings into speech segments, transcribe them, "
                    "and export the result as text, Markdown, WebVTT or SRT.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("ingest", help="Detect speech segments in an audio file.")
    p.add_argument("audio_file", help="Audio file to open.")
    p.add_argument(
        "--detector",
        required=True,
        help="Voice-activity detector as 'module:attribute'.",
    )
    p.add_argument(
        "--merge-gap",
        type=float,
        default=MERGE_GAP_S,
        help="Merge segments closer than this many seconds (default: %(default)s).",
    )
    p.add_argument("--no-merge", action="store_true", help="Keep detector segments as-is.")
    p.add_argument("--output-dir", default=None, help="Where to write the project file.")
    p.set_defaults(func=_cmd_ingest)

    p = sub.add_parser("import-noscribe", help="Import a Noscribe HTML transcript.")
    p.add_argument("html_file", help="Noscribe .html document.")
    p.add_argument("--audio", default=None, help="Source audio, if not found automatically.")
    p.add_argument("--output-dir", default=None, help="Where to write the project file.")
    p.set_defaults(func=_cmd_import_noscribe)

    p = sub.add_parser("transcribe", help="Transcribe the segments of a project file.")
    p.add_argument("project_file", help="Project JSON document.")
    p.add_argument(
        "--pending-only",
        action="store_true",
        help="Only transcribe segments that have no text yet.",
    )
    p.add_argument(
        "--interval",
        type=float,
        default=PACING_INTERVAL_S,
        help="Seconds to wait between requests (default: %(default)s).",
    )
    p.add_argument("--model", default=None, help="Override the transcription model.")
    p.add_argument("--language", default=None, help="ISO 639-1 language hint.")
    p.add_argument("--output", default=None, help="Write the project here instead of in place.")
    p.set_defaults(func=_cmd_transcribe)

    p = sub.add_parser("export", help="Export a project to subtitle/text formats.")
    p.add_argument("project_file", help="Project JSON document.")
    p.add_argument(
        "--formats",
        default=None,
        help="Comma-separated list of formats. "
             "Available: {}. Default: all.".format(", ".join(sorted(FORMATTERS.keys()))),
    )
    p.add_argument("--output-dir", default=None, help="Directory for exported files.")
    p.set_defaults(func=_cmd_export)

    p = sub.add_parser("serve", help="Run the HTTP API.")
    p.add_argument("--host", default="0.0.0.0")
    p.add_argument("--port", type=int, default=8000)
    p.set_defaults(func=_cmd_serve)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the CLI.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    args.func(args)


if __name__ == "__main__":
    main()
