"""Clarity value decoding.

The explorer API only exposes the textual ``repr`` of a print event, e.g.::

    (tuple (event "bet-placed") (market-id u3) (outcome true) (amount u5000000))

``decode_repr`` parses that notation with a small tokenizer and a
recursive-descent parser, so values that themselves contain parenthesised
terms (``(some ...)``, nested tuples, lists) are always taken as one balanced
span. ``decode_value`` is the entry point for the push path, which may hand
over either pre-decoded JSON or the same textual form.

Neither function raises: malformed input decodes to ``{}``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Mapping

log = logging.getLogger(__name__)

_UINT = re.compile(r"^u[0-9]+$")
_INT = re.compile(r"^-?[0-9]+$")
_BUFFER = re.compile(r"^0x[0-9a-fA-F]*$")
_PRINCIPAL = re.compile(r"^'[0-9A-Z]+(\.[a-zA-Z][a-zA-Z0-9\-_]*)?$")
_KEY = re.compile(r"^[a-zA-Z][a-zA-Z0-9\-_!?]*$")

_ESCAPES = {'"': '"', "\\": "\\", "n": "\n", "t": "\t", "r": "\r", "0": "\0"}

# Groups nested deeper than this are kept as raw text.
MAX_DEPTH = 64


class Principal(str):
    """A Stacks address or contract identifier literal."""

    @property
    def is_contract(self) -> bool:
        return "." in self


class DecodeError(ValueError):
    """Raised internally for malformed input; never escapes this module."""


@dataclass(frozen=True)
class _Token:
    kind: str  # "(" | ")" | "str" | "atom"
    value: str
    start: int
    end: int


class _Raw:
    """A value that matched no literal form; keeps its source span."""

    __slots__ = ("start", "end")

    def __init__(self, start: int, end: int) -> None:
        self.start = start
        self.end = end


def _tokenize(text: str) -> list[_Token]:
    tokens: list[_Token] = []
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch.isspace():
            i += 1
        elif ch in "()":
            tokens.append(_Token(ch, ch, i, i + 1))
            i += 1
        elif ch == '"' or (ch == "u" and i + 1 < n and text[i + 1] == '"'):
            start = i
            i += 2 if ch == "u" else 1
            value, i = _read_string(text, i)
            tokens.append(_Token("str", value, start, i))
        else:
            start = i
            while i < n and not text[i].isspace() and text[i] not in '()"':
                i += 1
            tokens.append(_Token("atom", text[start:i], start, i))
    return tokens


def _read_string(text: str, i: int) -> tuple[str, int]:
    """Read a string body starting after the opening quote."""
    out: list[str] = []
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == '"':
            return "".join(out), i + 1
        if ch == "\\":
            if i + 1 >= n:
                break
            nxt = text[i + 1]
            if nxt == "u" and i + 2 < n and text[i + 2] == "{":
                close = text.find("}", i + 3)
                if close == -1:
                    raise DecodeError("unterminated unicode escape")
                try:
                    out.append(chr(int(text[i + 3:close], 16)))
                except ValueError as exc:
                    raise DecodeError(f"bad unicode escape: {exc}") from exc
                i = close + 1
                continue
            out.append(_ESCAPES.get(nxt, nxt))
            i += 2
            continue
        out.append(ch)
        i += 1
    raise DecodeError("unterminated string literal")


def _classify_atom(atom: str) -> Any:
    if atom == "true":
        return True
    if atom == "false":
        return False
    if atom == "none":
        return None
    if _UINT.match(atom):
        return int(atom[1:])
    if _INT.match(atom):
        return int(atom)
    if _PRINCIPAL.match(atom):
        return Principal(atom[1:])
    if _BUFFER.match(atom):
        return atom
    return _RAW_ATOM


_RAW_ATOM = object()


class _Parser:
    def __init__(self, text: str) -> None:
        self._text = text
        self._tokens = _tokenize(text)
        self._pos = 0
        self._depth = 0

    def _peek(self) -> _Token | None:
        return self._tokens[self._pos] if self._pos < len(self._tokens) else None

    def _next(self) -> _Token:
        tok = self._peek()
        if tok is None:
            raise DecodeError("unexpected end of input")
        self._pos += 1
        return tok

    def _expect(self, kind: str) -> _Token:
        tok = self._next()
        if tok.kind != kind:
            raise DecodeError(f"expected {kind!r} at offset {tok.start}, got {tok.value!r}")
        return tok

    def parse_document(self) -> dict[str, Any]:
        value = self._term()
        if self._peek() is not None:
            raise DecodeError("trailing input after top-level value")
        if not isinstance(value, dict):
            raise DecodeError("top-level value is not a tuple")
        return value

    def _term(self) -> Any:
        tok = self._next()
        if tok.kind == "str":
            return tok.value
        if tok.kind == "atom":
            value = _classify_atom(tok.value)
            return _Raw(tok.start, tok.end) if value is _RAW_ATOM else value
        if tok.kind == ")":
            raise DecodeError(f"unbalanced ')' at offset {tok.start}")
        return self._group(tok)

    def _group(self, open_tok: _Token) -> Any:
        if self._depth >= MAX_DEPTH:
            self._skip_until_close()
            return _Raw(open_tok.start, self._last_end())
        self._depth += 1
        try:
            return self._form(open_tok)
        finally:
            self._depth -= 1

    def _form(self, open_tok: _Token) -> Any:
        head = self._peek()
        if head is not None and head.kind == "atom":
            if head.value == "tuple":
                self._pos += 1
                return self._tuple_body()
            if head.value == "list":
                self._pos += 1
                return self._items_until_close()
            if head.value == "some":
                self._pos += 1
                items = self._items_until_close()
                return items[0] if len(items) == 1 else _Raw(open_tok.start, self._last_end())
            if head.value in ("ok", "err"):
                self._pos += 1
                items = self._items_until_close()
                if len(items) == 1:
                    return {head.value: items[0]}
                return _Raw(open_tok.start, self._last_end())
        # Unknown form: keep the whole balanced span as raw text.
        self._skip_until_close()
        return _Raw(open_tok.start, self._last_end())

    def _tuple_body(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        while True:
            tok = self._peek()
            if tok is None:
                raise DecodeError("unterminated tuple")
            if tok.kind == ")":
                self._pos += 1
                return result
            self._expect("(")
            key_tok = self._expect("atom")
            if not _KEY.match(key_tok.value):
                raise DecodeError(f"invalid tuple key {key_tok.value!r}")
            value_start = self._peek()
            if value_start is None or value_start.kind == ")":
                raise DecodeError(f"missing value for key {key_tok.value!r}")
            value = self._term()
            if self._peek() is not None and self._peek().kind != ")":
                # More than one term: keep everything up to the pair's close.
                self._skip_until_close()
                value = _Raw(value_start.start, self._tokens[self._pos - 2].end)
            else:
                self._expect(")")
            if key_tok.value not in result:
                result[key_tok.value] = self._resolve(value)

    def _items_until_close(self) -> list[Any]:
        items = []
        while True:
            tok = self._peek()
            if tok is None:
                raise DecodeError("unterminated group")
            if tok.kind == ")":
                self._pos += 1
                return items
            items.append(self._resolve(self._term()))

    def _skip_until_close(self) -> None:
        depth = 1
        while depth:
            tok = self._next()
            if tok.kind == "(":
                depth += 1
            elif tok.kind == ")":
                depth -= 1

    def _last_end(self) -> int:
        return self._tokens[self._pos - 1].end

    def _resolve(self, value: Any) -> Any:
        if isinstance(value, _Raw):
            return self._text[value.start:value.end].strip()
        return value


def decode_repr(text: str) -> dict[str, Any]:
    """Parse a textual ``(tuple ...)`` into a dict.

    Keys whose value matches no known literal keep the raw trimmed text.
    Anything that is not a well-formed tuple decodes to ``{}``.
    """
    if not isinstance(text, str) or not text.strip():
        return {}
    try:
        return _Parser(text.strip()).parse_document()
    except DecodeError as exc:
        log.debug("Could not decode clarity repr %.80r: %s", text, exc)
        return {}


def decode_value(raw: object) -> dict[str, Any]:
    """Decode a value delivered by the push transport.

    Pre-decoded mappings pass through with keys kept and nested mappings
    cast recursively. Textual tuples are parsed. Anything else (including
    hex-serialized values) decodes to ``{}``.
    """
    if isinstance(raw, str):
        text = raw.strip()
        return decode_repr(text) if text.startswith("(") else {}
    if isinstance(raw, Mapping):
        if isinstance(raw.get("repr"), str):
            return decode_repr(raw["repr"])
        if set(raw) == {"value"}:
            return decode_value(raw["value"])
        return {str(k): _cast(v, 1) for k, v in raw.items()}
    return {}


def _cast(value: Any, depth: int) -> Any:
    if depth >= MAX_DEPTH:
        return value
    if isinstance(value, Mapping):
        return {str(k): _cast(v, depth + 1) for k, v in value.items()}
    if isinstance(value, list):
        return [_cast(v, depth + 1) for v in value]
    if isinstance(value, str) and _PRINCIPAL.match(value):
        return Principal(value[1:])
    return value
