"""Field codecs: decode, search, and substitute inside encoded field values.

Three encodings are supported, one codec class each:

- plain text: the stored string is the searchable text.
- JSON: string leaves of the parsed document are searched and replaced,
  then the document is re-serialised compactly.
- serialized blob: a PHP ``serialize()`` payload, usually base64 wrapped
  (how Moodle stores block configuration). Walked like JSON.

Contract shared by all codecs: when the term is absent, ``apply_replacement``
returns the raw input object untouched with a count of 0, so a field without
a match is never re-encoded.
"""
from __future__ import annotations

import base64
import json
import logging
from enum import Enum
from typing import Any, Protocol

import phpserialize

from bulkreplace.services.errors import DecodeFailure
from bulkreplace.services.matcher import replace_substring

logger = logging.getLogger(__name__)

# PHP strings are byte strings; surrogateescape lets non-UTF-8 bytes survive a round trip.
_PHP_CHARSET = "utf-8"
_PHP_ERRORS = "surrogateescape"

# Known sub-structures extracted for human-friendly previews of serialized blobs.
_PREVIEW_SECTIONS = ("html", "css", "js")


class CodecKind(str, Enum):
    PLAIN_TEXT = "plain_text"
    JSON = "json"
    SERIALIZED_BLOB = "serialized_blob"


class FieldCodec(Protocol):
    kind: CodecKind

    def decode_for_search(self, raw: str) -> list[str] | None: ...

    def decode_for_preview(self, raw: str) -> str: ...

    def apply_replacement(
        self, raw: str, term: str, replacement: str, case_sensitive: bool
    ) -> tuple[str, int]: ...


# --- Tree walking ---


def _as_mapping(node: Any) -> dict | None:
    if isinstance(node, dict):
        return node
    if isinstance(node, phpserialize.phpobject):
        return node.__php_vars__
    return None


def replace_in_tree(
    node: Any, term: str, replacement: str, case_sensitive: bool
) -> tuple[Any, int]:
    """Substitute ``term`` in every string leaf of a decoded tree.

    Sequences are walked by index and mappings (dicts and PHP objects) by
    value; keys and non-string scalars are left alone. Returns a new tree and
    the total number of substitutions. Subtrees without a match are returned
    as the original objects.
    """
    if isinstance(node, str):
        return replace_substring(node, term, replacement, case_sensitive)

    if isinstance(node, list):
        total = 0
        items = []
        for child in node:
            new_child, count = replace_in_tree(child, term, replacement, case_sensitive)
            items.append(new_child)
            total += count
        return (items, total) if total else (node, 0)

    mapping = _as_mapping(node)
    if mapping is not None:
        total = 0
        values = {}
        for key, child in mapping.items():
            new_child, count = replace_in_tree(child, term, replacement, case_sensitive)
            values[key] = new_child
            total += count
        if not total:
            return node, 0
        if isinstance(node, phpserialize.phpobject):
            return phpserialize.phpobject(node.__name__, values), total
        return values, total

    return node, 0


def string_leaves(node: Any) -> list[str]:
    """All string leaves of a decoded tree, in walk order."""
    if isinstance(node, str):
        return [node]
    if isinstance(node, list):
        return [leaf for child in node for leaf in string_leaves(child)]
    mapping = _as_mapping(node)
    if mapping is not None:
        return [leaf for child in mapping.values() for leaf in string_leaves(child)]
    return []


def _to_plain(node: Any) -> Any:
    """Convert a decoded PHP tree into JSON-dumpable values for display."""
    if isinstance(node, list):
        return [_to_plain(child) for child in node]
    mapping = _as_mapping(node)
    if mapping is not None:
        return {str(key): _to_plain(child) for key, child in mapping.items()}
    return node


# --- Codecs ---


class PlainTextCodec:
    kind = CodecKind.PLAIN_TEXT

    def decode_for_search(self, raw: str) -> list[str] | None:
        return [raw]

    def decode_for_preview(self, raw: str) -> str:
        return raw

    def apply_replacement(
        self, raw: str, term: str, replacement: str, case_sensitive: bool
    ) -> tuple[str, int]:
        new_raw, count = replace_substring(raw, term, replacement, case_sensitive)
        return (new_raw, count) if count else (raw, 0)


class JsonCodec:
    """JSON documents. Malformed JSON degrades to plain-text handling."""

    kind = CodecKind.JSON

    def __init__(self) -> None:
        self._fallback = PlainTextCodec()

    @staticmethod
    def _parse(raw: str) -> tuple[bool, Any]:
        try:
            return True, json.loads(raw)
        except (ValueError, TypeError):
            return False, None

    @staticmethod
    def encode(tree: Any) -> str:
        return json.dumps(tree, ensure_ascii=False, separators=(",", ":"))

    def decode_for_search(self, raw: str) -> list[str] | None:
        """String leaves of the document, searched one at a time."""
        ok, tree = self._parse(raw)
        if not ok:
            return self._fallback.decode_for_search(raw)
        return string_leaves(tree)

    def decode_for_preview(self, raw: str) -> str:
        return "\n".join(self.decode_for_search(raw) or [])

    def apply_replacement(
        self, raw: str, term: str, replacement: str, case_sensitive: bool
    ) -> tuple[str, int]:
        ok, tree = self._parse(raw)
        if not ok:
            logger.debug("Field is not valid JSON, treating as plain text")
            return self._fallback.apply_replacement(raw, term, replacement, case_sensitive)

        new_tree, count = replace_in_tree(tree, term, replacement, case_sensitive)
        if not count:
            return raw, 0
        return self.encode(new_tree), count


class SerializedBlobCodec:
    """PHP ``serialize()`` payloads, base64 wrapped or stored verbatim."""

    kind = CodecKind.SERIALIZED_BLOB

    @staticmethod
    def decode(raw: str) -> tuple[Any, bool]:
        """Decode ``raw`` into a tree.

        Returns the tree and whether the payload was base64 wrapped. Raises
        DecodeFailure when neither form parses.
        """
        if not raw:
            raise DecodeFailure("Serialized field is empty")
        try:
            payload = base64.b64decode(raw, validate=True)
            wrapped = True
        except ValueError:
            payload = raw.encode(_PHP_CHARSET, _PHP_ERRORS)
            wrapped = False
        try:
            tree = phpserialize.loads(
                payload,
                charset=_PHP_CHARSET,
                errors=_PHP_ERRORS,
                decode_strings=True,
                object_hook=phpserialize.phpobject,
            )
        except (ValueError, TypeError, IndexError) as exc:
            raise DecodeFailure(f"Cannot decode serialized field: {exc}") from exc
        return tree, wrapped

    @staticmethod
    def encode(tree: Any, wrapped: bool) -> str:
        payload = phpserialize.dumps(tree, charset=_PHP_CHARSET, errors=_PHP_ERRORS)
        if wrapped:
            return base64.b64encode(payload).decode("ascii")
        return payload.decode(_PHP_CHARSET, _PHP_ERRORS)

    def try_decode(self, raw: str) -> Any | None:
        try:
            tree, _ = self.decode(raw)
        except DecodeFailure:
            return None
        return tree

    def decode_for_search(self, raw: str) -> list[str] | None:
        tree = self.try_decode(raw)
        if tree is None:
            return None
        return string_leaves(tree)

    def decode_for_preview(self, raw: str) -> str:
        """Readable rendering of a blob for review screens.

        Blocks that store ``html``/``css``/``js`` sections, each an object with
        a ``text`` entry, are shown as their concatenated sections. Anything
        else is shown as an indented dump of the decoded tree. Never used for
        replacement.
        """
        tree = self.try_decode(raw)
        if tree is None:
            return ""

        root = _as_mapping(tree)
        if root is not None:
            sections = []
            for name in _PREVIEW_SECTIONS:
                section = _as_mapping(root.get(name))
                if section is not None and isinstance(section.get("text"), str):
                    sections.append(section["text"])
            if sections:
                return "\n\n".join(sections)

        return json.dumps(_to_plain(tree), indent=2, ensure_ascii=False, default=str)

    def apply_replacement(
        self, raw: str, term: str, replacement: str, case_sensitive: bool
    ) -> tuple[str, int]:
        tree, wrapped = self.decode(raw)
        new_tree, count = replace_in_tree(tree, term, replacement, case_sensitive)
        if not count:
            return raw, 0
        return self.encode(new_tree, wrapped), count


_CODECS: dict[CodecKind, FieldCodec] = {
    CodecKind.PLAIN_TEXT: PlainTextCodec(),
    CodecKind.JSON: JsonCodec(),
    CodecKind.SERIALIZED_BLOB: SerializedBlobCodec(),
}


def get_codec(kind: CodecKind) -> FieldCodec:
    return _CODECS[kind]
