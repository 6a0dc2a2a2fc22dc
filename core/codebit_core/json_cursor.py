"""
json_cursor.py — Pull-style JSON tokenizer and a small indented JSON writer

JsonCursor walks a JSON document one node at a time without loading it
into memory. After each read() the cursor is positioned on a node:

  START_OBJECT / START_ARRAY   '{' or '['
  VALUE                        a scalar (string, number, true/false/null)
  END_ELEMENT                  the matching '}' or ']'
  END                          end of input

Members of an object carry their property name in `name`; elements of an
array (and the root) have an empty name.

Supports the following environment variable:
  - CODEBIT_JSON_CHUNK_SIZE: characters read from the stream at a time
        (default 8192).
"""

import codecs
import enum
import json
import logging
import os
import re

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 8192

_NUMBER_RE = re.compile(r'-?(?:0|[1-9]\d*)(?:\.\d+)?(?:[eE][+-]?\d+)?$')
_NUMBER_CHARS = frozenset('0123456789+-.eE')
_WHITESPACE = frozenset(' \t\r\n')
_ESCAPES = {
    '"': '"', '\\': '\\', '/': '/',
    'b': '\b', 'f': '\f', 'n': '\n', 'r': '\r', 't': '\t',
}
_LITERALS = {'true': 'true', 'false': 'false', 'null': None}


class JsonNodeType(enum.Enum):
    END = 0
    START_OBJECT = 1
    START_ARRAY = 2
    VALUE = 3
    END_ELEMENT = 4


class JsonSyntaxError(ValueError):
    """Raised when the input is not well-formed JSON."""

    def __init__(self, message, offset):
        super().__init__(f"{message} at offset {offset}")
        self.offset = offset


def _default_chunk_size():
    raw = os.environ.get("CODEBIT_JSON_CHUNK_SIZE", "").strip()
    if not raw:
        return DEFAULT_CHUNK_SIZE
    try:
        size = int(raw)
    except ValueError:
        size = 0
    if size <= 0:
        logger.warning("Ignoring invalid CODEBIT_JSON_CHUNK_SIZE=%r", raw)
        return DEFAULT_CHUNK_SIZE
    return size


class _Frame:
    """One open container on the cursor's stack."""

    __slots__ = ('is_object', 'need_separator')

    def __init__(self, is_object):
        self.is_object = is_object
        self.need_separator = False


class JsonCursor:
    """Forward-only JSON tokenizer over a binary or text stream.

    The stream may return str or bytes; bytes are decoded as UTF-8 (a byte
    order mark is tolerated).
    Not thread-safe; one cursor per stream.
    """

    def __init__(self, stream, chunk_size=None):
        self._stream = stream
        self._chunk_size = chunk_size or _default_chunk_size()
        # Created on the first bytes chunk; str chunks are used as is
        self._decoder = None
        self._buffer = ''
        self._pos = 0
        self._consumed = 0
        self._eof = False
        self._stack = []
        self._root_done = False

        self.node_type = JsonNodeType.END
        self.name = ''
        self.value = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def depth(self):
        """Number of currently open containers."""
        return len(self._stack)

    @property
    def offset(self):
        """Character offset of the next unread character."""
        return self._consumed + self._pos

    def read(self):
        """Advance to the next node.

        Returns:
            True when positioned on a node, False at end of input (the node
            type is then END). Hitting end of input inside an open container
            also returns False; callers check depth when that matters.

        Raises:
            JsonSyntaxError: On malformed input.
        """
        self.name = ''
        self.value = None

        ch = self._next_significant()
        if ch is None:
            self.node_type = JsonNodeType.END
            return False

        if not self._stack:
            if self._root_done:
                raise JsonSyntaxError("Unexpected data after end of document", self.offset - 1)
            self._read_value(ch, '')
            return True

        frame = self._stack[-1]
        closer = '}' if frame.is_object else ']'
        if frame.need_separator:
            if ch == closer:
                self._end_element()
                return True
            if ch != ',':
                raise JsonSyntaxError(f"Expected ',' or '{closer}' but found {ch!r}", self.offset - 1)
            ch = self._next_significant()
            if ch is None:
                self.node_type = JsonNodeType.END
                return False
        elif ch == closer:
            self._end_element()
            return True

        name = ''
        if frame.is_object:
            if ch != '"':
                raise JsonSyntaxError(f"Expected property name but found {ch!r}", self.offset - 1)
            name = self._read_string()
            ch = self._next_significant()
            if ch != ':':
                raise JsonSyntaxError("Expected ':' after property name", self.offset)
            ch = self._next_significant()
            if ch is None:
                self.node_type = JsonNodeType.END
                return False

        frame.need_separator = True
        self._read_value(ch, name)
        return True

    def skip(self):
        """Consume the remainder of the container the cursor sits on.

        On START_OBJECT/START_ARRAY, reads through the matching END_ELEMENT
        so the next read() returns the following sibling. On any other node
        this does nothing.

        Returns:
            False if input ended before the container was closed.
        """
        if self.node_type not in (JsonNodeType.START_OBJECT, JsonNodeType.START_ARRAY):
            return True
        target = len(self._stack) - 1
        while len(self._stack) > target:
            if not self.read():
                return False
        return True

    # ------------------------------------------------------------------
    # Token scanning
    # ------------------------------------------------------------------

    def _fill(self):
        """Load the next chunk. Returns False at end of stream."""
        if self._eof:
            return False
        chunk = self._stream.read(self._chunk_size)
        if isinstance(chunk, str):
            text = chunk
        else:
            if self._decoder is None:
                self._decoder = codecs.getincrementaldecoder('utf-8-sig')()
            try:
                text = self._decoder.decode(chunk or b'', final=not chunk)
            except UnicodeDecodeError as e:
                raise JsonSyntaxError(f"Invalid UTF-8: {e.reason}", self.offset) from e
        if not chunk:
            self._eof = True
        self._consumed += self._pos
        self._buffer = self._buffer[self._pos:] + text
        self._pos = 0
        return bool(text) or not self._eof

    def _next_char(self):
        while self._pos >= len(self._buffer):
            if not self._fill():
                return None
        ch = self._buffer[self._pos]
        self._pos += 1
        return ch

    def _peek_char(self):
        while self._pos >= len(self._buffer):
            if not self._fill():
                return None
        return self._buffer[self._pos]

    def _next_significant(self):
        while True:
            ch = self._next_char()
            if ch is None or ch not in _WHITESPACE:
                return ch

    def _read_value(self, ch, name):
        self.name = name
        if ch == '{':
            self._stack.append(_Frame(True))
            self.node_type = JsonNodeType.START_OBJECT
            return
        if ch == '[':
            self._stack.append(_Frame(False))
            self.node_type = JsonNodeType.START_ARRAY
            return

        if ch == '"':
            self.value = self._read_string()
        elif ch == '-' or '0' <= ch <= '9':
            self.value = self._read_number(ch)
        elif ch.isalpha():
            self.value = self._read_literal(ch)
        else:
            raise JsonSyntaxError(f"Unexpected character {ch!r}", self.offset - 1)
        self.node_type = JsonNodeType.VALUE
        if not self._stack:
            self._root_done = True

    def _end_element(self):
        self._stack.pop()
        self.node_type = JsonNodeType.END_ELEMENT
        if not self._stack:
            self._root_done = True

    def _read_string(self):
        parts = []
        while True:
            ch = self._next_char()
            if ch is None:
                raise JsonSyntaxError("Unterminated string", self.offset)
            if ch == '"':
                return ''.join(parts)
            if ch == '\\':
                parts.append(self._read_escape())
            elif ch < ' ':
                raise JsonSyntaxError("Control character in string", self.offset - 1)
            else:
                parts.append(ch)

    def _read_escape(self):
        ch = self._next_char()
        if ch is None:
            raise JsonSyntaxError("Unterminated string", self.offset)
        if ch in _ESCAPES:
            return _ESCAPES[ch]
        if ch != 'u':
            raise JsonSyntaxError(f"Invalid escape '\\{ch}'", self.offset - 1)
        code = self._read_hex4()
        if 0xD800 <= code <= 0xDBFF:
            # High surrogate; combine with a following \uDC00-\uDFFF if present
            if self._peek_char() == '\\':
                self._next_char()
                if self._next_char() != 'u':
                    raise JsonSyntaxError("Expected low surrogate escape", self.offset - 1)
                low = self._read_hex4()
                if 0xDC00 <= low <= 0xDFFF:
                    return chr(0x10000 + ((code - 0xD800) << 10) + (low - 0xDC00))
                return chr(code) + chr(low)
        return chr(code)

    def _read_hex4(self):
        digits = ''
        for _ in range(4):
            ch = self._next_char()
            if ch is None or ch not in '0123456789abcdefABCDEF':
                raise JsonSyntaxError("Invalid \\u escape", self.offset)
            digits += ch
        return int(digits, 16)

    def _read_number(self, first):
        chars = [first]
        while True:
            ch = self._peek_char()
            if ch is None or ch not in _NUMBER_CHARS:
                break
            chars.append(self._next_char())
        text = ''.join(chars)
        if not _NUMBER_RE.match(text):
            raise JsonSyntaxError(f"Invalid number {text!r}", self.offset - len(text))
        return text

    def _read_literal(self, first):
        chars = [first]
        while True:
            ch = self._peek_char()
            if ch is None or not ch.isalpha():
                break
            chars.append(self._next_char())
        text = ''.join(chars)
        if text not in _LITERALS:
            raise JsonSyntaxError(f"Invalid literal {text!r}", self.offset - len(text))
        return _LITERALS[text]


class JsonWriter:
    """Writes indented JSON: one property per line, string arrays inline.

    Output resembles:

        {
          "name": "example.com/file.py",
          "keywords": ["CodeBit", "sample"]
        }
    """

    def __init__(self, text_io, leave_open=False):
        self._out = text_io
        self._leave_open = leave_open
        self._level = 0
        self._line_has_content = False
        self._closed = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def write_document_object_begin(self):
        self._out.write('{')
        self._level = 1

    def write_object_begin(self, property_name):
        self._write_indent()
        self._out.write(f"{_quote(property_name)}: {{")
        self._level += 1

    def write_object_end(self):
        if self._level == 0:
            raise ValueError("Unbalanced begin and end.")
        self._line_has_content = False
        self._level -= 1
        self._write_indent()
        self._out.write('}')
        self._line_has_content = True

    def write_object_property(self, property_name, value):
        self._write_indent()
        self._out.write(f"{_quote(property_name)}: {_quote(value)}")
        self._line_has_content = True

    def write_object_optional_property(self, property_name, value):
        """Write the property unless value is None or blank."""
        if value is not None and value.strip():
            self.write_object_property(property_name, value)

    def write_object_array_begin(self, property_name):
        self._write_indent()
        self._out.write(f"{_quote(property_name)}: [")
        self._level += 1

    def write_array_string_value(self, value):
        if self._line_has_content:
            self._out.write(', ')
        self._out.write(_quote(value))
        self._line_has_content = True

    def write_array_end(self):
        if self._level == 0:
            raise ValueError("Unbalanced begin and end.")
        self._level -= 1
        self._out.write(']')
        self._line_has_content = True

    def close(self):
        """Finish the last line and close (or flush) the output. Idempotent."""
        if self._closed:
            return
        self._closed = True
        if self._line_has_content:
            self._out.write('\n')
        if self._leave_open:
            self._out.flush()
        else:
            self._out.close()

    def _write_indent(self):
        if self._line_has_content:
            self._out.write(',\n')
            self._line_has_content = False
        else:
            self._out.write('\n')
        self._out.write('  ' * self._level)


def _quote(value):
    return json.dumps(value, ensure_ascii=False)
