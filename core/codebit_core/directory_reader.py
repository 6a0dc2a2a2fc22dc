"""
directory_reader.py — Streaming reader for CodeBit directories

A directory is a JSON document of the form:

    {
      "@context": "https://schema.org",
      "@type": "ItemList",
      "itemListElement": [
        { "@type": "SoftwareSourceCode", "name": "...", "version": "...", ... },
        ...
      ]
    }

DirectoryReader walks the document once, front to back, through an explicit
state machine: the directory metadata is read first, then the items are
returned one CodeBitMetadata at a time. Nothing beyond the current item is
held in memory, so large directories can be scanned from a network stream.

Items are returned regardless of their type or keywords; filtering (e.g. on
is_codebit) is up to the caller.
"""

import enum
import logging

from .codebit_metadata import CodeBitMetadata
from .directory_metadata import DirectoryMetadata
from .json_cursor import JsonCursor, JsonNodeType, JsonSyntaxError
from .semver import SemVer

logger = logging.getLogger(__name__)

ITEM_LIST_KEY = "itemListElement"
ERR_UNEXPECTED_END = "Unexpected end of directory file."


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class DirectoryError(Exception):
    """Base exception for directory reading."""


class DirectoryFormatError(DirectoryError):
    """Raised when the directory document is structurally invalid or truncated.

    The reader is left in the ERROR state and cannot be used again.
    """


class DirectoryStateError(DirectoryError):
    """Raised when reader operations are called out of sequence."""


class ReaderState(enum.Enum):
    PRE_READ = "pre_read"
    IN_METADATA = "in_metadata"
    AFTER_METADATA = "after_metadata"
    IN_ITEM_LIST = "in_item_list"
    IN_ITEM = "in_item"
    END = "end"
    ERROR = "error"


class DirectoryReader:
    """Forward-only reader over one directory stream.

    Usage:
        with DirectoryReader(stream) as reader:
            directory = reader.read_directory()
            for codebit in reader:
                ...

    Not thread-safe. Each instance reads its stream exactly once.
    """

    def __init__(self, stream, owns_stream=True, item_list_key=ITEM_LIST_KEY,
                 chunk_size=None):
        """
        Args:
            stream: Binary or text stream holding the directory JSON.
            owns_stream: Close the stream when the reader is closed.
            item_list_key: Property holding the array of items.
            chunk_size: Read size passed to the JsonCursor.
        """
        self._stream = stream
        self._owns_stream = owns_stream
        self._item_list_key = item_list_key
        self._cursor = JsonCursor(stream, chunk_size=chunk_size)
        self._state = ReaderState.PRE_READ
        self._metadata = None
        self._find_used = False
        self._closed = False

    @property
    def state(self):
        return self._state

    @property
    def metadata(self):
        """The DirectoryMetadata, once read_directory() has run."""
        return self._metadata

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def read_directory(self):
        """Read the directory-level metadata.

        Must be the first read on the reader. Scalar properties are
        collected; nested arrays and objects other than the item list are
        skipped.

        Returns:
            DirectoryMetadata.

        Raises:
            DirectoryStateError: If called after any other read.
            DirectoryFormatError: If the document is not a JSON object or
                is truncated.
        """
        if self._state != ReaderState.PRE_READ:
            raise DirectoryStateError("read_directory() must precede other read operations.")
        self._state = ReaderState.ERROR
        self._next()
        if self._cursor.node_type != JsonNodeType.START_OBJECT:
            self._fail(f"Invalid directory file format: expected an object, "
                       f"found {self._cursor.node_type.name}.")
        self._transition(ReaderState.IN_METADATA)

        metadata = DirectoryMetadata()
        while self._state == ReaderState.IN_METADATA:
            self._next()
            node_type = self._cursor.node_type
            if node_type == JsonNodeType.VALUE:
                if self._cursor.value is not None:
                    metadata.add_value(self._cursor.name, self._cursor.value)
            elif node_type == JsonNodeType.START_ARRAY:
                if self._cursor.name == self._item_list_key:
                    self._transition(ReaderState.AFTER_METADATA)
                else:
                    self._skip()
            elif node_type == JsonNodeType.START_OBJECT:
                self._skip()
            elif node_type == JsonNodeType.END_ELEMENT:
                logger.info("Directory has no '%s' list", self._item_list_key)
                self._transition(ReaderState.END)
            else:
                self._unexpected()

        self._metadata = metadata
        logger.info("Directory metadata read: %d propert(ies)", len(metadata))
        return metadata

    def read_codebit(self):
        """Read the next item of the directory.

        Reads (and keeps) the directory metadata first if read_directory()
        has not been called yet.

        Returns:
            CodeBitMetadata, or None once the item list is exhausted.

        Raises:
            DirectoryStateError: If the reader previously failed or is closed.
            DirectoryFormatError: On a structural error in the document.
        """
        if self._state == ReaderState.PRE_READ:
            self.read_directory()
        if self._state == ReaderState.END:
            return None
        if self._state == ReaderState.ERROR or self._closed:
            raise DirectoryStateError("Directory reader is unusable after an error or close().")

        if self._state == ReaderState.AFTER_METADATA:
            # The cursor already consumed the item list's '['
            self._transition(ReaderState.IN_ITEM_LIST)

        while self._state == ReaderState.IN_ITEM_LIST:
            self._next()
            node_type = self._cursor.node_type
            if node_type == JsonNodeType.START_OBJECT:
                self._transition(ReaderState.IN_ITEM)
            elif node_type == JsonNodeType.VALUE:
                logger.warning("Ignoring stray value in directory item list")
            elif node_type == JsonNodeType.START_ARRAY:
                logger.warning("Ignoring stray array in directory item list")
                self._skip()
            elif node_type == JsonNodeType.END_ELEMENT:
                # The enclosing object must continue past the list
                self._next()
                self._transition(ReaderState.END)
                return None
            else:
                self._unexpected()

        codebit = CodeBitMetadata()
        while self._state == ReaderState.IN_ITEM:
            self._next()
            node_type = self._cursor.node_type
            if node_type == JsonNodeType.VALUE:
                if self._cursor.value is not None:
                    codebit.add_value(self._cursor.name, self._cursor.value)
            elif node_type == JsonNodeType.START_ARRAY:
                self._read_value_array(codebit, self._cursor.name)
            elif node_type == JsonNodeType.START_OBJECT:
                # Nested objects are not supported as property values
                logger.warning("Skipping object value of '%s' in directory item",
                               self._cursor.name)
                self._skip()
            elif node_type == JsonNodeType.END_ELEMENT:
                self._transition(ReaderState.IN_ITEM_LIST)
            else:
                self._unexpected()

        logger.debug("Read directory item %r", codebit.name)
        return codebit

    def _read_value_array(self, codebit, name):
        """Add each scalar of an array property; nested containers are skipped."""
        while True:
            self._next()
            node_type = self._cursor.node_type
            if node_type == JsonNodeType.VALUE:
                if self._cursor.value is not None:
                    codebit.add_value(name, self._cursor.value)
            elif node_type == JsonNodeType.END_ELEMENT:
                return
            elif node_type in (JsonNodeType.START_OBJECT, JsonNodeType.START_ARRAY):
                logger.warning("Skipping nested value in '%s' of directory item", name)
                self._skip()
            else:
                self._unexpected()

    def __iter__(self):
        while True:
            codebit = self.read_codebit()
            if codebit is None:
                return
            yield codebit

    def find(self, name, version_ceiling=None):
        """Find the best directory entry for a CodeBit.

        Scans the rest of the directory once. Among items whose name equals
        `name` (ordinal comparison) the one with the highest version that
        does not exceed `version_ceiling` wins. Later items only replace the
        current best when strictly higher.

        Args:
            name: Full CodeBit name, e.g. 'example.com/tools/sample.py'.
            version_ceiling: Highest acceptable SemVer, typically from
                SemVer.parse_for_search(). Defaults to SemVer.MAX.

        Returns:
            CodeBitMetadata, or None if no entry matches.

        Raises:
            DirectoryStateError: If find() was already called on this reader.
        """
        if self._find_used:
            raise DirectoryStateError("find() can only be called once per directory reader.")
        self._find_used = True
        if version_ceiling is None:
            version_ceiling = SemVer.MAX

        best = None
        for codebit in self:
            if codebit.name != name:
                continue
            version = codebit.version
            if version > version_ceiling:
                continue
            if best is None or version > best.version:
                best = codebit

        if best is None:
            logger.info("No directory entry for '%s' at or below v%s", name, version_ceiling)
        else:
            logger.info("Found directory entry '%s' v%s", name, best.version)
        return best

    # ------------------------------------------------------------------
    # Lifetime
    # ------------------------------------------------------------------

    def close(self):
        """Release the reader (and the stream if owned). Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        if self._owns_stream:
            self._stream.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _transition(self, state):
        logger.debug("Directory reader: %s -> %s", self._state.value, state.value)
        self._state = state

    def _next(self):
        if self._closed:
            raise DirectoryStateError("Directory reader is closed.")
        try:
            more = self._cursor.read()
        except JsonSyntaxError as e:
            self._state = ReaderState.ERROR
            raise DirectoryFormatError(f"Invalid JSON in directory: {e}") from e
        if not more:
            self._fail(ERR_UNEXPECTED_END)

    def _skip(self):
        try:
            complete = self._cursor.skip()
        except JsonSyntaxError as e:
            self._state = ReaderState.ERROR
            raise DirectoryFormatError(f"Invalid JSON in directory: {e}") from e
        if not complete:
            self._fail(ERR_UNEXPECTED_END)

    def _unexpected(self):
        self._fail(f"Unexpected JSON in directory: {self._cursor.node_type.name}")

    def _fail(self, message):
        self._state = ReaderState.ERROR
        raise DirectoryFormatError(message)
