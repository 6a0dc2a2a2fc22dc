"""codebit_core — pure-stdlib library for CodeBit metadata and directories."""

__version__ = "0.1.0"

from .semver import SemVer, ParseLevel, MAX_COMPONENT
from .flat_metadata import FlatMetadata, MIN_DATE, parse_date, format_date
from .validation import ValidationLevel, ValidationResult, Finding
from .codebit_metadata import CodeBitMetadata
from .directory_metadata import DirectoryMetadata
from .json_cursor import JsonCursor, JsonNodeType, JsonSyntaxError, JsonWriter
from .directory_reader import (
    DirectoryReader, ReaderState,
    DirectoryError, DirectoryFormatError, DirectoryStateError,
)
from .file_hash import compute_hash, compute_file_hash, hashes_match
