"""
Full-Detail Extraction Utilities

Ad hoc extraction of loadable fields from an unstructured (markdown or plain
text) document. Used by the fallback resolver when no structured context
document is usable: the extracted fields carry no classification, so they are
all treated as optional.

Anchors follow the usual markdown convention: heading text lowercased, every
character other than word characters, whitespace and ``-`` dropped, and
whitespace runs replaced with ``-`` (``## Data Model (v2)`` → ``data-model-v2``).
"""

import re

HEADING_PATTERN = re.compile(r"^(#{1,6})\s+(.+?)\s*#*\s*$")
SUMMARY_HEADINGS = ("overview", "summary")
SUMMARY_MAX_CHARS = 200
NO_SUMMARY = "No summary available"


def slugify_heading(text: str) -> str:
    """Anchor slug for a heading."""
    slug = re.sub(r"[^\w\s-]", "", text.strip().lower())
    return re.sub(r"\s+", "-", slug)


def normalize_key(text: str) -> str:
    """snake_case field key for a heading (``Core Responsibilities`` → ``core_responsibilities``)."""
    key = re.sub(r"[^\w\s]", " ", text.strip().lower())
    return re.sub(r"\s+", "_", key.strip())


def _headings(lines: list[str]) -> list[tuple[int, int, str]]:
    """(line index, level, text) for every heading outside fenced code blocks."""
    found = []
    in_fence = False
    for index, line in enumerate(lines):
        if line.lstrip().startswith("```"):
            in_fence = not in_fence
            continue
        if in_fence:
            continue
        match = HEADING_PATTERN.match(line)
        if match:
            found.append((index, len(match.group(1)), match.group(2)))
    return found


def extract_section(content: str, anchor: str) -> str | None:
    """Section whose heading slug matches ``anchor``.

    The section runs from its heading up to the next heading of the same or a
    higher level. Returns None if no heading matches.
    """
    lines = content.splitlines()
    headings = _headings(lines)
    for position, (start, level, text) in enumerate(headings):
        if slugify_heading(text) != anchor:
            continue
        end = len(lines)
        for next_start, next_level, _ in headings[position + 1 :]:
            if next_level <= level:
                end = next_start
                break
        return "\n".join(lines[start:end]).strip()
    return None


def extract_summary(content: str) -> str:
    """Short synopsis of a full document.

    Prefers the body of an ``Overview`` or ``Summary`` heading, then the first
    paragraph that is not a heading. Stops after roughly 200 characters.
    """
    lines = content.splitlines()

    for index, _level, text in _headings(lines):
        if text.strip().lower() in SUMMARY_HEADINGS:
            summary = _collect_text(lines[index + 1 : index + 10])
            if summary:
                return summary

    summary = _collect_text(lines, stop_at_blank=True)
    return summary or NO_SUMMARY


def _collect_text(lines: list[str], stop_at_blank: bool = False) -> str:
    parts: list[str] = []
    length = 0
    for line in lines:
        stripped = line.strip()
        if not stripped:
            if stop_at_blank and parts:
                break
            continue
        if stripped.startswith("#"):
            if parts:
                break
            continue
        parts.append(stripped)
        length += len(stripped) + 1
        if length > SUMMARY_MAX_CHARS:
            break
    return " ".join(parts).strip()


def extract_sections(content: str) -> dict[str, str]:
    """Level-2 sections keyed by normalized heading, in document order.

    Sections with an empty body are skipped. Duplicate headings get a numeric
    suffix (``notes``, ``notes_2``).
    """
    lines = content.splitlines()
    sections: dict[str, str] = {}
    boundaries = [heading for heading in _headings(lines) if heading[1] <= 2]

    for position, (start, level, text) in enumerate(boundaries):
        if level != 2:
            continue
        end = boundaries[position + 1][0] if position + 1 < len(boundaries) else len(lines)
        body = "\n".join(lines[start + 1 : end]).strip()
        if not body:
            continue
        key = normalize_key(text) or "section"
        candidate, suffix = key, 2
        while candidate in sections:
            candidate = f"{key}_{suffix}"
            suffix += 1
        sections[candidate] = body

    return sections


def split_reference(ref: str) -> tuple[str, str | None]:
    """Split ``path/doc.md#anchor`` into ``("path/doc.md", "anchor")``."""
    path, _, anchor = ref.partition("#")
    return path, anchor or None
