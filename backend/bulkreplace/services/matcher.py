"""Literal and wildcard occurrence search with context windows.

All searches run through ``re`` with an escaped term so case-insensitive
matching never shifts offsets the way ``str.lower()`` can for some Unicode
characters. Offsets are therefore always offsets into the original text.
"""
from __future__ import annotations

import fnmatch
import html
import re
from dataclasses import dataclass

from lxml import etree
from lxml import html as lxml_html

DEFAULT_CONTEXT_WINDOW = 1000
DEFAULT_PREVIEW_WINDOW = 50
TRUNCATION_MARKER = "..."


@dataclass(frozen=True, slots=True)
class Occurrence:
    """One located match inside a field's decoded text."""
    position: int   # character offset of the match start
    context: str    # HTML-escaped window around the match, with "..." at clipped ends
    match: str      # matched text with its original casing


def _literal_pattern(term: str, case_sensitive: bool) -> re.Pattern[str]:
    flags = 0 if case_sensitive else re.IGNORECASE
    return re.compile(re.escape(term), flags)


def _context_window(content: str, start: int, end: int, window: int) -> str:
    left = max(0, start - window)
    right = min(len(content), end + window)
    context = html.escape(content[left:right])
    if left > 0:
        context = TRUNCATION_MARKER + context
    if right < len(content):
        context = context + TRUNCATION_MARKER
    return context


def find_all(
    content: str,
    term: str,
    case_sensitive: bool,
    window: int = DEFAULT_CONTEXT_WINDOW,
) -> list[Occurrence]:
    """Enumerate every occurrence of ``term`` in ``content``.

    The cursor advances one character past each match start, not past the
    whole match, so overlapping occurrences are all reported ("aa" is found
    three times in "aaaa").
    """
    if not term or not content or len(term) > len(content):
        return []

    pattern = _literal_pattern(term, case_sensitive)
    occurrences: list[Occurrence] = []
    offset = 0
    while True:
        m = pattern.search(content, offset)
        if m is None:
            break
        occurrences.append(
            Occurrence(
                position=m.start(),
                context=_context_window(content, m.start(), m.end(), window),
                match=m.group(0),
            )
        )
        offset = m.start() + 1
    return occurrences


def wildcard_to_regex(pattern: str, case_sensitive: bool) -> re.Pattern[str]:
    """Compile a ``*`` wildcard pattern into a regex.

    Every regex metacharacter is escaped; ``*`` stands for one or more
    non-whitespace characters.
    """
    regex = r"\S+".join(re.escape(part) for part in pattern.split("*"))
    flags = 0 if case_sensitive else re.IGNORECASE
    return re.compile(regex, flags)


def find_all_wildcard(
    content: str,
    pattern: str,
    case_sensitive: bool,
    window: int = DEFAULT_CONTEXT_WINDOW,
) -> list[Occurrence]:
    """Enumerate matches of a wildcard pattern, for highlighting."""
    if not pattern or not content:
        return []

    regex = wildcard_to_regex(pattern, case_sensitive)
    occurrences: list[Occurrence] = []
    offset = 0
    while offset <= len(content):
        m = regex.search(content, offset)
        if m is None:
            break
        if m.end() == m.start():
            # Zero-width match: step over it or we never terminate
            offset = m.start() + 1
            continue
        occurrences.append(
            Occurrence(
                position=m.start(),
                context=_context_window(content, m.start(), m.end(), window),
                match=m.group(0),
            )
        )
        offset = m.end()
    return occurrences


def has_wildcard(term: str) -> bool:
    return "*" in term or "?" in term


def matches_filename_pattern(filename: str, pattern: str) -> bool:
    """Case-insensitive glob match anywhere inside ``filename``.

    Without wildcards this is plain substring containment. With wildcards a
    ``*`` is implied on whichever side the pattern leaves open.
    """
    filename = filename.lower()
    pattern = pattern.lower()

    if not has_wildcard(pattern):
        return pattern in filename

    if not pattern.startswith("*"):
        pattern = "*" + pattern
    if not pattern.endswith("*"):
        pattern = pattern + "*"
    return fnmatch.fnmatchcase(filename, pattern)


def strip_html(content: str) -> str:
    """Return the text content of an HTML fragment."""
    if "<" not in content:
        return content
    try:
        return lxml_html.fromstring(content).text_content()
    except (etree.ParserError, ValueError):
        return content


def context_preview(
    content: str,
    term: str,
    case_sensitive: bool,
    window: int = DEFAULT_PREVIEW_WINDOW,
) -> str:
    """Short plain-text snippet around the first match of ``term``."""
    plaintext = strip_html(content)
    m = _literal_pattern(term, case_sensitive).search(plaintext) if term else None
    if m is None:
        return plaintext[:100]

    start = max(0, m.start() - window)
    length = len(term) + 2 * window
    preview = plaintext[start:start + length].strip()
    if start > 0:
        preview = TRUNCATION_MARKER + preview
    if len(plaintext) > start + length:
        preview += TRUNCATION_MARKER
    return preview


def count_occurrences(content: str, term: str, case_sensitive: bool) -> int:
    """Non-overlapping left-to-right count, i.e. what a substitution replaces."""
    if not term:
        return 0
    if case_sensitive:
        return content.count(term)
    return len(_literal_pattern(term, False).findall(content))


def replace_substring(
    content: str,
    term: str,
    replacement: str,
    case_sensitive: bool,
) -> tuple[str, int]:
    """Replace every non-overlapping occurrence of ``term``.

    Returns the new text and the number of substitutions actually made.
    The replacement is inserted literally (no backreference expansion).
    """
    if not term or not content:
        return content, 0
    if case_sensitive:
        count = content.count(term)
        if count == 0:
            return content, 0
        return content.replace(term, replacement), count
    return _literal_pattern(term, False).subn(lambda _m: replacement, content)
