"""Extraction of the data document embedded in platform page markup."""

from __future__ import annotations

import json
import logging
import re
from functools import lru_cache
from typing import Iterator

from bs4 import BeautifulSoup

from . import ExtractionError

LOGGER = logging.getLogger(__name__)

INITIAL_DATA_VARIABLE = "ytInitialData"

_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")
_SIMPLE_ESCAPES = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "0": "\0",
}


@lru_cache(maxsize=8)
def _assignment_pattern(variable: str) -> re.Pattern[str]:
    # Matches ``var x =``, ``x =``, ``window.x =`` and ``window["x"] =``.
    return re.compile(rf"\b{re.escape(variable)}(?:[\"']\])?\s*=\s*")


def extract_initial_data(html: str, variable: str = INITIAL_DATA_VARIABLE) -> dict:
    """Return the JSON document assigned to ``variable`` somewhere in ``html``.

    Two encodings are understood: a plain object literal (``x = {...};``) and
    the legacy single-quoted string with ``\\xHH`` escapes
    (``var x = '\\x7b...';``). Script tags are searched first; when none of
    them carries the assignment, the raw text is scanned so that non-HTML
    bodies still work.
    """

    for text in _candidate_texts(html, variable):
        document = _extract_object_literal(text, variable)
        if document is None:
            document = _extract_escaped_literal(text, variable)
        if document is not None:
            return document
    raise ExtractionError(f"Could not find {variable} in the response")


def _candidate_texts(html: str, variable: str) -> Iterator[str]:
    if "<script" in html:
        soup = BeautifulSoup(html, "html.parser")
        for script in soup.find_all("script"):
            text = script.get_text()
            if variable in text:
                yield text
    yield html


def _assignments(text: str, variable: str) -> Iterator[int]:
    for match in _assignment_pattern(variable).finditer(text):
        yield match.end()


def _extract_object_literal(text: str, variable: str) -> dict | None:
    for start in _assignments(text, variable):
        if not text.startswith("{", start):
            continue
        end = find_object_end(text, start)
        if end is None:
            LOGGER.debug("Unbalanced %s object literal at offset %d", variable, start)
            continue
        payload = text[start:end]
        LOGGER.debug("Using object literal encoding for %s (%.1f KB)", variable, len(payload) / 1024)
        return _decode(payload, variable)
    return None


def _extract_escaped_literal(text: str, variable: str) -> dict | None:
    for start in _assignments(text, variable):
        if not text.startswith("'", start):
            continue
        literal = _read_single_quoted(text, start)
        if literal is None:
            continue
        payload = unescape_js_string(literal)
        LOGGER.debug("Using escaped string encoding for %s (%.1f KB)", variable, len(payload) / 1024)
        return _decode(payload, variable)
    return None


def find_object_end(text: str, start: int) -> int | None:
    """Return the index just past the ``}`` that closes the object at ``start``.

    Braces inside double-quoted strings are ignored, as are characters
    following a backslash within a string.
    """

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index + 1
    return None


def _read_single_quoted(text: str, start: int) -> str | None:
    index = start + 1
    while index < len(text):
        char = text[index]
        if char == "\\":
            index += 2
            continue
        if char == "'":
            return text[start + 1 : index]
        index += 1
    return None


def unescape_js_string(literal: str) -> str:
    """Decode the escape sequences of a single-quoted script string literal."""

    chars: list[str] = []
    index = 0
    length = len(literal)
    while index < length:
        char = literal[index]
        if char != "\\" or index + 1 >= length:
            chars.append(char)
            index += 1
            continue

        marker = literal[index + 1]
        if marker == "x":
            digits = literal[index + 2 : index + 4]
            if len(digits) == 2 and set(digits) <= _HEX_DIGITS:
                chars.append(chr(int(digits, 16)))
                index += 4
                continue
        elif marker == "u":
            digits = literal[index + 2 : index + 6]
            if len(digits) == 4 and set(digits) <= _HEX_DIGITS:
                chars.append(chr(int(digits, 16)))
                index += 6
                continue
        chars.append(_SIMPLE_ESCAPES.get(marker, marker))
        index += 2
    return "".join(chars)


def _decode(payload: str, variable: str) -> dict:
    try:
        document = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise ExtractionError(f"{variable} payload is not valid JSON: {exc}") from exc
    if not isinstance(document, dict):
        raise ExtractionError(f"{variable} payload is not an object")
    return document


__all__ = ["INITIAL_DATA_VARIABLE", "extract_initial_data", "find_object_end", "unescape_js_string"]
