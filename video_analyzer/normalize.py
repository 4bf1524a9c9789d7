"""
Transcript cleanup shared by every acquisition path.

Whatever a strategy returns goes through `normalize_transcript` before it is
reported, so captions, webhook payloads, subtitle files and speech-to-text
output all end up in the same plain-text form.
"""
import html
import re

TRUNCATION_MARKER = "... [truncated]"

MAX_DECODE_PASSES = 2

_ANNOTATION_RE = re.compile(r"\[[^\]]*\]")
_MUSIC_NOTE = "♪"
_WHITESPACE_RE = re.compile(r"\s+")

_TIMESTAMP_RE = re.compile(r"^(\d{1,2}:)?\d{2}:\d{2}[,.]\d{3}\s*-->")
_INLINE_TAG_RE = re.compile(r"<[^>]+>")
_HEADER_RE = re.compile(r"^(?:(?:WEBVTT|NOTE|STYLE)\b|(?:Kind|Language):|#EXT)")


def decode_entities(text: str) -> str:
    # double-encoded captions ("&amp;amp;") need a second pass
    for _ in range(MAX_DECODE_PASSES):
        decoded = html.unescape(text)
        if decoded == text:
            break
        text = decoded
    return text


def normalize_transcript(text: str) -> str:
    text = decode_entities(text or "")
    text = _ANNOTATION_RE.sub(" ", text)
    text = text.replace(_MUSIC_NOTE, " ")
    return _WHITESPACE_RE.sub(" ", text).strip()


def truncate_for_analysis(text: str, max_length: int) -> str:
    """Return the text to send to the model; the input is left untouched."""
    if len(text) <= max_length:
        return text
    return text[:max_length] + TRUNCATION_MARKER


def strip_subtitle_markup(text: str) -> str:
    """Reduce an SRT or VTT file to its spoken lines, joined by spaces."""
    lines = []
    previous = None
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        if _HEADER_RE.match(line):
            continue
        if line.isdigit():
            continue
        if _TIMESTAMP_RE.match(line):
            continue
        line = _INLINE_TAG_RE.sub("", line).strip()
        # auto-generated VTT repeats each rolling line in the next cue
        if not line or line == previous:
            continue
        lines.append(line)
        previous = line
    return " ".join(lines)
