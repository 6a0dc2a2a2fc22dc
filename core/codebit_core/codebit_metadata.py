"""
codebit_metadata.py — CodeBit metadata model, validation and comparison

A CodeBit is a single source file carrying its own metadata: a name made
of a domain name and a path, a semantic version, the URL it is published
at, and a "CodeBit" keyword. CodeBitMetadata holds those properties in a
FlatMetadata and provides:

  - validate():   check one record against the CodeBit rules
  - compare_to(): check two records describing the same CodeBit agree
  - to_json():    emit the record as a directory entry

Both validate() and compare_to() are pure; they never modify the record
and report problems as a graded ValidationResult instead of raising.
"""

import io
import re
from urllib.parse import urlsplit

from .flat_metadata import MIN_DATE, FlatMetadata, parse_date
from .json_cursor import JsonWriter
from .semver import ParseLevel, SemVer
from .validation import fold, mandatory, recommended

KEY_NAME = "name"
KEY_VERSION = "version"
KEY_URL = "url"
KEY_KEYWORDS = "keywords"
KEY_DATE_PUBLISHED = "datePublished"
KEY_AUTHOR = "author"
KEY_DESCRIPTION = "description"
KEY_LICENSE = "license"
KEY_HASH = "hash"
KEY_AT_TYPE = "@type"
KEY_UNDER_TYPE = "_type"   # '@type' as spelled in source-file tags

VAL_KEYWORD_CODEBIT = "CodeBit"
VAL_AT_TYPE_SOFTWARE = "SoftwareSourceCode"

STANDARD_KEYS = frozenset({
    KEY_UNDER_TYPE, KEY_AT_TYPE, KEY_NAME, KEY_VERSION, KEY_URL,
    KEY_KEYWORDS, KEY_DATE_PUBLISHED, KEY_AUTHOR, KEY_DESCRIPTION,
    KEY_LICENSE, KEY_HASH,
})

# Delimiter used when comparing multi-valued extension properties
EXTENSION_JOIN = ';'

# Maximum allowed difference between published dates, in seconds
DATE_TOLERANCE_SECONDS = 1.0

_RX_DOMAIN_NAME = r'(?:[A-Za-z0-9\-_]+)(?:\.[A-Za-z0-9\-_]+)+'
_RX_FILENAME = r'[^/\\><|:&"*? \r\n]{1,128}'

# A domain name followed by zero or more directories and a filename
NAME_RE = re.compile(f'^(?:{_RX_DOMAIN_NAME})(?:/{_RX_FILENAME})*/({_RX_FILENAME})$')

_FILENAME_DELIMITERS_RE = re.compile(r'[/\\:]')


class CodeBitMetadata(FlatMetadata):
    """Metadata of one CodeBit."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        # Local filename the metadata was read from; only used by validate()
        self.filename_for_validation = None

    @classmethod
    def from_pairs(cls, pairs, filename_for_validation=None):
        """Build a record from already-extracted (key, value) tag pairs.

        Repeated keys accumulate into multi-valued properties.
        """
        metadata = cls()
        for key, value in pairs:
            if value is not None:
                metadata.add_value(key, value)
        metadata.filename_for_validation = filename_for_validation
        return metadata

    # ------------------------------------------------------------------
    # Typed accessors
    # ------------------------------------------------------------------

    @property
    def at_type(self):
        """Linked-data type; '@type' in a directory, '_type' in a source file."""
        return self.get_value(KEY_AT_TYPE) or self.get_value(KEY_UNDER_TYPE) or ''

    @at_type.setter
    def at_type(self, value):
        self.set_value(KEY_AT_TYPE, value)
        self.remove(KEY_UNDER_TYPE)

    @property
    def name(self):
        return self.get_value(KEY_NAME) or ''

    @name.setter
    def name(self, value):
        self.set_value(KEY_NAME, value)

    @property
    def version(self):
        """The parsed version, or SemVer.ZERO when absent or invalid."""
        text = self.get_value(KEY_VERSION)
        if text is None:
            return SemVer.ZERO
        level, value, _ = SemVer.try_parse(text)
        return value if level >= ParseLevel.TOLERABLE else SemVer.ZERO

    @version.setter
    def version(self, value):
        self.set_value(KEY_VERSION, None if value is None else str(value))

    @property
    def url(self):
        return self.get_value(KEY_URL) or ''

    @url.setter
    def url(self, value):
        self.set_value(KEY_URL, value)

    @property
    def keywords(self):
        """A copy of the keyword list (empty when absent)."""
        return self.get_values(KEY_KEYWORDS) or []

    @keywords.setter
    def keywords(self, values):
        self.set_values(KEY_KEYWORDS, values)

    @property
    def date_published(self):
        """Publication date, or MIN_DATE when absent or unparsable."""
        return self.get_value_as_date(KEY_DATE_PUBLISHED)

    @date_published.setter
    def date_published(self, value):
        self.set_value_as_date(KEY_DATE_PUBLISHED, value)

    @property
    def date_published_str(self):
        return self.get_value(KEY_DATE_PUBLISHED) or ''

    @property
    def author(self):
        return self.get_value(KEY_AUTHOR) or ''

    @author.setter
    def author(self, value):
        self.set_value(KEY_AUTHOR, value)

    @property
    def description(self):
        return self.get_value(KEY_DESCRIPTION) or ''

    @description.setter
    def description(self, value):
        self.set_value(KEY_DESCRIPTION, value)

    @property
    def license(self):
        return self.get_value(KEY_LICENSE) or ''

    @license.setter
    def license(self, value):
        self.set_value(KEY_LICENSE, value)

    @property
    def hash(self):
        """Content hash, 'SHA256:' followed by hex digits (see file_hash)."""
        return self.get_value(KEY_HASH) or ''

    @hash.setter
    def hash(self, value):
        self.set_value(KEY_HASH, value)

    @property
    def filename_from_name(self):
        """The filename part of name (text after the last slash)."""
        return re.split(r'[/\\]', self.name)[-1]

    @property
    def domain_name(self):
        """The domain part of name (text before the first slash).

        Raises:
            ValueError: If name contains no slash.
        """
        name = self.name
        slash = name.find('/')
        if slash < 0:
            raise ValueError(
                f"CodeBit name '{name}' does not have a slash separating "
                f"domain name from the file path.")
        return name[:slash]

    @property
    def is_software_source_code(self):
        return self.at_type == VAL_AT_TYPE_SOFTWARE

    @property
    def is_codebit(self):
        return self.is_software_source_code and VAL_KEYWORD_CODEBIT in self.keywords

    def extension_items(self):
        """(key, values) for every non-standard property with values."""
        for key, values in self.items():
            if key in STANDARD_KEYS or not values:
                continue
            yield key, list(values)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self):
        """Validate the record against the CodeBit metadata rules.

        Returns:
            ValidationResult whose level combines FAIL_RECOMMENDED and
            FAIL_MANDATORY across all rules, with one detail line per
            problem found.
        """
        return fold(self._validation_findings())

    def _validation_findings(self):
        # === Required properties ===
        # A wrong type is scored as recommended even though is_codebit
        # requires it.
        if self.at_type != VAL_AT_TYPE_SOFTWARE:
            yield recommended(
                f"Property '_type' (or '@type' in a directory) should be "
                f"'{VAL_AT_TYPE_SOFTWARE}' but is '{self.at_type}'.")
        if len(self.get_values(KEY_AT_TYPE) or ()) > 1:
            yield recommended(
                f"Property '_type' (or '@type' in a directory) has multiple values. "
                f"Should have one value of '{VAL_AT_TYPE_SOFTWARE}'.")

        findings, name = self._single(KEY_NAME, required=True)
        yield from findings
        if name is not None and not NAME_RE.match(name):
            yield mandatory("Property 'name' must be a domain name followed by a file path.")

        findings, version = self._single(KEY_VERSION, required=True)
        yield from findings
        if version is not None:
            level, _, messages = SemVer.try_parse(version)
            if level == ParseLevel.INVALID:
                for msg in messages:
                    yield mandatory(f"'version' property: {msg}")
            elif level == ParseLevel.TOLERABLE:
                for msg in messages:
                    yield recommended(f"'version' property: {msg}")

        findings, url = self._single(KEY_URL, required=True)
        yield from findings
        if url is not None:
            yield from _check_url(url)

        if VAL_KEYWORD_CODEBIT not in self.keywords:
            yield mandatory(f"Property '{KEY_KEYWORDS}' must include '{VAL_KEYWORD_CODEBIT}'.")

        if self.filename_for_validation is not None:
            bare_name = self.name.rsplit('/', 1)[-1]
            bare_filename = _FILENAME_DELIMITERS_RE.split(self.filename_for_validation)[-1]
            if bare_name != bare_filename:
                yield mandatory(
                    f"Local filename '{bare_filename}' does not match CodeBit name '{bare_name}'.")

        # === Optional properties ===
        findings, date_str = self._single(KEY_DATE_PUBLISHED, required=False)
        yield from findings
        if date_str is not None and parse_date(date_str) == MIN_DATE:
            yield recommended("Property 'datePublished' is an invalid format. Must be RFC 3339.")

        for key in (KEY_AUTHOR, KEY_DESCRIPTION, KEY_LICENSE):
            findings, _ = self._single(key, required=False)
            yield from findings

    def _single(self, key, required):
        """Check that a property has exactly one value.

        Returns:
            (findings, value) where value is the single value, or None if
            the property is missing or repeated.
        """
        values = self.get_values(key) or []
        if not values:
            if required:
                return [mandatory(f"Property '{key}' is required but not present.")], None
            return [], None
        if len(values) > 1:
            return [recommended(f"Multiple instances of property '{key}'. Only one expected.")], None
        return [], values[0]

    # ------------------------------------------------------------------
    # Comparison
    # ------------------------------------------------------------------

    def compare_to(self, other, this_label, other_label, expect_url_match=False):
        """Compare with another record describing the same CodeBit.

        Args:
            other: The CodeBitMetadata to compare with.
            this_label: Name for this record in the detail lines.
            other_label: Name for the other record in the detail lines.
            expect_url_match: Require the URLs to match. A directory entry
                may legitimately point at a different published copy, so
                this is off by default.

        Returns:
            ValidationResult. Type, name, version and hash mismatches (and
            url when expect_url_match) are mandatory; everything else is
            recommended.
        """
        return fold(self._comparison_findings(other, this_label, other_label, expect_url_match))

    def _comparison_findings(self, other, this_label, other_label, expect_url_match):
        def required(key, mine, theirs):
            if mine != theirs:
                yield mandatory(
                    f"Error: {this_label} '{key}' ({mine}) does not match "
                    f"{other_label} '{key}' ({theirs}).")

        def optional(key, mine, theirs):
            if mine != theirs:
                yield recommended(
                    f"Warning: {this_label} '{key}' ({mine}) does not match "
                    f"{other_label} '{key}' ({theirs}).")

        yield from required(KEY_AT_TYPE, self.at_type, other.at_type)
        yield from required(KEY_NAME, self.name, other.name)
        if expect_url_match:
            yield from required(KEY_URL, self.url, other.url)

        # An unparsable version reads as 0.0.0; report it rather than compare equal
        for label, record in ((this_label, self), (other_label, other)):
            text = record.get_value(KEY_VERSION)
            if text is not None and SemVer.try_parse(text)[0] == ParseLevel.INVALID:
                yield mandatory(
                    f"Error: {label} 'version' ({text}) is not a valid semantic version.")

        cmp = self.version.compare_to(other.version)
        if cmp < 0:
            yield mandatory(
                f"Error: {this_label} 'version' ({self.version}) is older than "
                f"{other_label} ({other.version}).")
        elif cmp > 0:
            yield mandatory(
                f"Error: {this_label} 'version' ({self.version}) is newer than "
                f"{other_label} ({other.version}).")

        my_keywords = self.keywords
        other_keywords = other.keywords
        for keyword in my_keywords:
            if keyword not in other_keywords:
                yield recommended(
                    f"Warning: {this_label} 'keywords' includes '{keyword}' "
                    f"which {other_label} does not include.")
        for keyword in other_keywords:
            if keyword not in my_keywords:
                yield recommended(
                    f"Warning: {other_label} 'keywords' includes '{keyword}' "
                    f"which {this_label} does not include.")

        delta = abs((self.date_published - other.date_published).total_seconds())
        if delta > DATE_TOLERANCE_SECONDS:
            yield recommended(
                f"Warning: {this_label} 'datePublished' ({self.date_published_str}) "
                f"doesn't match {other_label} ({other.date_published_str}).")

        yield from required(KEY_HASH, self.hash, other.hash)

        yield from optional(KEY_AUTHOR, self.author, other.author)
        yield from optional(KEY_DESCRIPTION, self.description, other.description)
        yield from optional(KEY_LICENSE, self.license, other.license)

        for key, values in self.extension_items():
            mine = EXTENSION_JOIN.join(values)
            other_values = other.get_values(key)
            if not other_values:
                yield recommended(
                    f"Warning: {this_label} '{key}' contains value ({mine}) "
                    f"but {other_label} '{key}' has no value.")
                continue
            yield from optional(key, mine, EXTENSION_JOIN.join(other_values))

        for key, values in other.extension_items():
            if self.get_values(key):
                continue
            yield recommended(
                f"Warning: {this_label} '{key}' has no value but {other_label} "
                f"includes '{key}' ({EXTENSION_JOIN.join(values)}).")

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def to_json(self, text_io):
        """Write the record as a directory entry JSON object.

        Keys come in a fixed order; extension properties follow in the
        order they were added. A single keyword is written as a bare
        string, several as an array. The text stream is left open.
        """
        with JsonWriter(text_io, leave_open=True) as writer:
            writer.write_document_object_begin()
            writer.write_object_property(KEY_AT_TYPE, self.at_type)
            writer.write_object_property(KEY_NAME, self.name)
            writer.write_object_property(KEY_DESCRIPTION, self.description)
            writer.write_object_property(KEY_URL, self.url)
            writer.write_object_property(KEY_VERSION, str(self.version))

            _write_values(writer, KEY_KEYWORDS, self.keywords)

            writer.write_object_optional_property(KEY_DATE_PUBLISHED, self.date_published_str)
            writer.write_object_optional_property(KEY_AUTHOR, self.author)
            writer.write_object_optional_property(KEY_LICENSE, self.license)
            writer.write_object_optional_property(KEY_HASH, self.hash)

            for key, values in self.extension_items():
                _write_values(writer, key, values)
            writer.write_object_end()

    def to_json_string(self):
        buffer = io.StringIO()
        self.to_json(buffer)
        return buffer.getvalue()

    def __str__(self):
        lines = []
        if self.at_type:
            lines.append(f"_type: {self.at_type}")
        if self.name:
            lines.append(f"name: {self.name}")
        lines.append(f"version: {self.version}")
        for key, value in ((KEY_URL, self.url),
                           (KEY_DATE_PUBLISHED, self.date_published_str),
                           (KEY_AUTHOR, self.author),
                           (KEY_DESCRIPTION, self.description),
                           (KEY_LICENSE, self.license)):
            if value:
                lines.append(f"{key}: {value}")
        if self.keywords:
            lines.append(f"keywords: {'; '.join(self.keywords)}")
        if self.hash:
            lines.append(f"hash: {self.hash}")
        for key, values in self.extension_items():
            lines.extend(f"{key}: {value}" for value in values)
        return ''.join(line + '\n' for line in lines)

    def __repr__(self):
        return f"<CodeBitMetadata {self.name or '(unnamed)'} v{self.version}>"


def _check_url(url):
    try:
        parts = urlsplit(url)
    except ValueError:
        parts = None
    if parts is None or not parts.scheme or not parts.netloc:
        yield mandatory("'url' property is not a valid URL.")
        yield mandatory("'url' scheme is not http or https.")
    elif parts.scheme not in ('http', 'https'):
        yield mandatory("'url' scheme is not http or https.")


def _write_values(writer, key, values):
    values = [v for v in values if v is not None]
    if len(values) == 1:
        writer.write_object_optional_property(key, values[0])
    elif len(values) > 1:
        writer.write_object_array_begin(key)
        for value in values:
            writer.write_array_string_value(value)
        writer.write_array_end()
