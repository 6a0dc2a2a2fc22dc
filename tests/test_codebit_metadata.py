"""
Tests for codebit_core.codebit_metadata — accessors, validation, comparison
and JSON output.
"""

import io
import json
from datetime import datetime, timezone

import pytest

from codebit_core import CodeBitMetadata, SemVer, ValidationLevel
from codebit_core.flat_metadata import MIN_DATE


# ---------------------------------------------------------------------------
# Accessors
# ---------------------------------------------------------------------------

class TestAccessors:
    def test_typed_properties(self, make_codebit):
        """Typed accessors read the well-known properties."""
        codebit = make_codebit()
        assert codebit.name == "example.com/tools/sample.py"
        assert codebit.version == SemVer(1, 2, 3)
        assert codebit.url == "https://example.com/tools/sample.py"
        assert codebit.keywords == ["CodeBit", "sample"]
        assert codebit.date_published == datetime(2023, 2, 23, tzinfo=timezone.utc)
        assert codebit.author == "Jane Developer"

    def test_missing_properties_are_empty(self):
        """Absent properties read as empty values, not None."""
        codebit = CodeBitMetadata()
        assert codebit.name == ""
        assert codebit.url == ""
        assert codebit.keywords == []
        assert codebit.version == SemVer.ZERO
        assert codebit.date_published == MIN_DATE

    def test_invalid_version_reads_as_zero(self, make_codebit):
        """An unparsable version reads as 0.0.0."""
        assert make_codebit({"version": "banana"}).version == SemVer.ZERO

    def test_tolerable_version_is_parsed(self, make_codebit):
        """'v2' reads as 2.0.0."""
        assert make_codebit({"version": "v2"}).version == SemVer(2, 0, 0)

    def test_version_setter(self):
        """Setting a version stores its text; None removes it."""
        codebit = CodeBitMetadata()
        codebit.version = SemVer(3, 1, 0, "rc.1")
        assert codebit.get_value("version") == "3.1.0-rc.1"
        codebit.version = None
        assert "version" not in codebit

    def test_keywords_is_a_copy(self, make_codebit):
        """Mutating the returned list leaves the record alone."""
        codebit = make_codebit()
        codebit.keywords.append("other")
        assert codebit.keywords == ["CodeBit", "sample"]

    def test_date_published_setter(self):
        codebit = CodeBitMetadata()
        codebit.date_published = datetime(2024, 1, 2, tzinfo=timezone.utc)
        assert codebit.date_published_str == "2024-01-02"

    def test_under_type_alias(self):
        """'_type' is read as '@type' and replaced on write."""
        codebit = CodeBitMetadata.from_pairs([("_type", "SoftwareSourceCode")])
        assert codebit.at_type == "SoftwareSourceCode"
        codebit.at_type = "Thing"
        assert codebit.get_value("@type") == "Thing"
        assert "_type" not in codebit

    def test_filename_from_name(self, make_codebit):
        """The last path segment, with either separator."""
        assert make_codebit().filename_from_name == "sample.py"
        assert make_codebit({"name": "example.com\\win\\path.cs"}).filename_from_name == "path.cs"

    def test_domain_name(self, make_codebit):
        assert make_codebit().domain_name == "example.com"

    def test_domain_name_without_slash(self, make_codebit):
        """A name without a path has no domain."""
        with pytest.raises(ValueError, match="does not have a slash"):
            make_codebit({"name": "sample.py"}).domain_name

    def test_is_codebit(self, make_codebit):
        """Needs both the CodeBit keyword and the SoftwareSourceCode type."""
        assert make_codebit().is_codebit
        assert not make_codebit({"keywords": ["sample"]}).is_codebit
        assert not make_codebit({"@type": "Thing"}).is_codebit
        assert make_codebit({"@type": "Thing"}).is_software_source_code is False

    def test_from_pairs(self):
        """Repeated keys accumulate and None values are dropped."""
        codebit = CodeBitMetadata.from_pairs(
            [("name", "example.com/a.py"), ("keywords", "CodeBit"),
             ("keywords", "tools"), ("author", None)],
            filename_for_validation="a.py")
        assert codebit.keywords == ["CodeBit", "tools"]
        assert "author" not in codebit
        assert codebit.filename_for_validation == "a.py"

    def test_extension_items(self, make_codebit):
        """Only properties outside the well-known set are listed."""
        codebit = make_codebit({"programmingLanguage": "Python", "tags": ["a", "b"]})
        assert list(codebit.extension_items()) == [
            ("programmingLanguage", ["Python"]), ("tags", ["a", "b"])]


# ---------------------------------------------------------------------------
# validate()
# ---------------------------------------------------------------------------

class TestValidate:
    def test_valid_record_passes(self, make_codebit):
        """A complete record has no findings."""
        result = make_codebit().validate()
        assert result.level == ValidationLevel.PASS
        assert result.passed
        assert result.details == []
        assert result.detail == ""

    def test_missing_name_and_url(self, make_codebit):
        """Each missing mandatory property gets its own line."""
        result = make_codebit({"name": None, "url": None}).validate()
        assert result.level == ValidationLevel.FAIL_MANDATORY
        assert result.details == [
            "Property 'name' is required but not present.",
            "Property 'url' is required but not present.",
        ]
        assert result.detail.count("\n") == 2

    def test_duplicate_date_is_recommended(self, make_codebit):
        """Two datePublished values are only a recommended failure."""
        result = make_codebit({"datePublished": ["2023-02-23", "2023-02-24"]}).validate()
        assert result.level == ValidationLevel.FAIL_RECOMMENDED
        assert result.failed_recommended
        assert not result.failed_mandatory
        assert result.details == [
            "Multiple instances of property 'datePublished'. Only one expected."]

    def test_duplicate_name_is_recommended(self, make_codebit):
        result = make_codebit({"name": ["example.com/a.py", "example.com/b.py"]}).validate()
        assert result.level == ValidationLevel.FAIL_RECOMMENDED

    @pytest.mark.parametrize("name", ["sample.py", "localhost/sample.py", "example.com/", "example.com/bad|name"])
    def test_bad_name(self, make_codebit, name):
        """Names must be a dotted domain followed by a file path."""
        result = make_codebit({"name": name}).validate()
        assert result.failed_mandatory
        assert "Property 'name' must be a domain name followed by a file path." in result.details

    def test_tolerable_version(self, make_codebit):
        """Parser warnings are passed on with a property prefix."""
        result = make_codebit({"version": "v1.2"}).validate()
        assert result.level == ValidationLevel.FAIL_RECOMMENDED
        assert result.details == [
            "'version' property: Warning: 'v' prefix to version is not expected.",
            "'version' property: Warning: Patch version not found.",
        ]

    def test_invalid_version(self, make_codebit):
        """An unparsable version is a mandatory failure."""
        result = make_codebit({"version": "banana"}).validate()
        assert result.level == ValidationLevel.FAIL_MANDATORY
        assert result.details == ["'version' property: Error: Invalid Semantic Versioning Format."]

    def test_missing_version(self, make_codebit):
        result = make_codebit({"version": None}).validate()
        assert result.details == ["Property 'version' is required but not present."]

    def test_url_scheme(self, make_codebit):
        """Only http and https URLs are accepted."""
        result = make_codebit({"url": "ftp://example.com/tools/sample.py"}).validate()
        assert result.level == ValidationLevel.FAIL_MANDATORY
        assert result.details == ["'url' scheme is not http or https."]

    def test_url_not_absolute(self, make_codebit):
        """A relative URL fails both URL checks."""
        result = make_codebit({"url": "not a url"}).validate()
        assert result.details == [
            "'url' property is not a valid URL.",
            "'url' scheme is not http or https.",
        ]

    def test_missing_codebit_keyword(self, make_codebit):
        """The CodeBit keyword is mandatory."""
        result = make_codebit({"keywords": ["sample"]}).validate()
        assert result.level == ValidationLevel.FAIL_MANDATORY
        assert result.details == ["Property 'keywords' must include 'CodeBit'."]

    def test_wrong_type_is_recommended(self, make_codebit):
        """A foreign @type is only a recommended failure."""
        result = make_codebit({"@type": "Thing"}).validate()
        assert result.level == ValidationLevel.FAIL_RECOMMENDED
        assert "'SoftwareSourceCode' but is 'Thing'" in result.details[0]

    def test_multiple_types(self, make_codebit):
        result = make_codebit({"@type": ["SoftwareSourceCode", "Thing"]}).validate()
        assert result.level == ValidationLevel.FAIL_RECOMMENDED
        assert "multiple values" in result.details[0]

    def test_source_file_type_tag(self, make_codebit):
        """'_type' satisfies the @type rule."""
        result = make_codebit({"@type": None, "_type": "SoftwareSourceCode"}).validate()
        assert result.passed

    def test_invalid_date(self, make_codebit):
        """datePublished must be RFC 3339."""
        result = make_codebit({"datePublished": "23/02/2023"}).validate()
        assert result.level == ValidationLevel.FAIL_RECOMMENDED
        assert result.details == [
            "Property 'datePublished' is an invalid format. Must be RFC 3339."]

    def test_optional_properties_may_be_absent(self, make_codebit):
        """Dropping every optional property still passes."""
        result = make_codebit({"datePublished": None, "author": None,
                               "description": None, "license": None,
                               "hash": None}).validate()
        assert result.passed

    def test_repeated_optional_property(self, make_codebit):
        result = make_codebit({"author": ["A", "B"]}).validate()
        assert result.details == ["Multiple instances of property 'author'. Only one expected."]

    def test_local_filename_mismatch(self, make_codebit):
        """The local file must carry the name's file part."""
        codebit = make_codebit()
        codebit.filename_for_validation = "C:\\src\\other.py"
        result = codebit.validate()
        assert result.level == ValidationLevel.FAIL_MANDATORY
        assert result.details == [
            "Local filename 'other.py' does not match CodeBit name 'sample.py'."]

    def test_local_filename_match(self, make_codebit):
        """Only the file part of the local path is compared."""
        codebit = make_codebit()
        codebit.filename_for_validation = "/home/dev/checkout/sample.py"
        assert codebit.validate().passed

    def test_both_levels(self, make_codebit):
        """Mandatory and recommended failures combine to FAIL."""
        result = make_codebit({"url": None, "author": ["A", "B"]}).validate()
        assert result.level == ValidationLevel.FAIL
        assert result.failed_recommended and result.failed_mandatory

    def test_validate_does_not_modify(self, make_codebit):
        """Validation leaves the record untouched."""
        codebit = make_codebit({"version": "v1"})
        before = dict(codebit)
        codebit.validate()
        assert dict(codebit) == before


# ---------------------------------------------------------------------------
# compare_to()
# ---------------------------------------------------------------------------

class TestCompareTo:
    def _compare(self, local, directory, **kwargs):
        return local.compare_to(directory, "Local", "Directory", **kwargs)

    def test_identical_records_pass(self, make_codebit):
        """Equal records have no findings."""
        assert self._compare(make_codebit(), make_codebit()).passed

    def test_extra_keyword_is_recommended(self, make_codebit):
        """A keyword only the other side has is a warning."""
        result = self._compare(make_codebit(),
                               make_codebit({"keywords": ["CodeBit", "sample", "extra"]}))
        assert result.level == ValidationLevel.FAIL_RECOMMENDED
        assert result.details == [
            "Warning: Directory 'keywords' includes 'extra' which Local does not include."]

    def test_missing_keyword_reported_from_this_side(self, make_codebit):
        result = self._compare(make_codebit(), make_codebit({"keywords": ["CodeBit"]}))
        assert result.details == [
            "Warning: Local 'keywords' includes 'sample' which Directory does not include."]

    def test_hash_mismatch_is_mandatory(self, make_codebit):
        """Differing hashes mean different content."""
        result = self._compare(make_codebit(), make_codebit({"hash": "SHA256:FF"}))
        assert result.level == ValidationLevel.FAIL_MANDATORY
        assert result.details == [
            "Error: Local 'hash' (SHA256:0123456789ABCDEF) does not match "
            "Directory 'hash' (SHA256:FF)."]

    def test_name_mismatch(self, make_codebit):
        """Differing names are mandatory."""
        result = self._compare(make_codebit(), make_codebit({"name": "example.com/other.py"}))
        assert result.failed_mandatory

    def test_type_mismatch(self, make_codebit):
        """Differing types are mandatory."""
        result = self._compare(make_codebit(), make_codebit({"@type": "Thing"}))
        assert result.failed_mandatory

    def test_older_version(self, make_codebit):
        """A lower local version is reported as older."""
        result = self._compare(make_codebit(), make_codebit({"version": "1.3.0"}))
        assert result.level == ValidationLevel.FAIL_MANDATORY
        assert result.details == ["Error: Local 'version' (1.2.3) is older than Directory (1.3.0)."]

    def test_newer_version(self, make_codebit):
        """A higher local version is reported as newer."""
        result = self._compare(make_codebit({"version": "2.0.0"}), make_codebit())
        assert result.details == ["Error: Local 'version' (2.0.0) is newer than Directory (1.2.3)."]

    def test_build_metadata_ignored(self, make_codebit):
        """Versions differing only in build metadata match."""
        assert self._compare(make_codebit({"version": "1.2.3+abc"}), make_codebit()).passed

    def test_unparsable_version_not_equal_to_zero(self, make_codebit):
        """'banana' against '0.0.0' is reported although both read as zero."""
        result = self._compare(make_codebit({"version": "banana"}),
                               make_codebit({"version": "0.0.0"}))
        assert result.level == ValidationLevel.FAIL_MANDATORY
        assert result.details == [
            "Error: Local 'version' (banana) is not a valid semantic version."]

    def test_unparsable_version_on_both_sides(self, make_codebit):
        """Each unparsable side gets its own line."""
        result = self._compare(make_codebit({"version": "banana"}),
                               make_codebit({"version": "apple"}))
        assert result.details == [
            "Error: Local 'version' (banana) is not a valid semantic version.",
            "Error: Directory 'version' (apple) is not a valid semantic version.",
        ]

    def test_tolerable_version_compared_normally(self, make_codebit):
        """'v1.2.3' matches 1.2.3 without an extra line."""
        assert self._compare(make_codebit({"version": "v1.2.3"}), make_codebit()).passed

    def test_url_only_checked_on_request(self, make_codebit):
        """A differing URL fails only with expect_url_match."""
        local = make_codebit()
        mirror = make_codebit({"url": "https://mirror.example.org/sample.py"})
        assert self._compare(local, mirror).passed
        result = self._compare(local, mirror, expect_url_match=True)
        assert result.level == ValidationLevel.FAIL_MANDATORY

    def test_date_within_tolerance(self, make_codebit):
        """Dates half a second apart compare equal."""
        result = self._compare(
            make_codebit({"datePublished": "2023-02-23T10:00:00Z"}),
            make_codebit({"datePublished": "2023-02-23T10:00:00.500+00:00"}))
        assert result.passed

    def test_date_only_matches_midnight(self, make_codebit):
        """A bare date equals midnight UTC."""
        result = self._compare(
            make_codebit(), make_codebit({"datePublished": "2023-02-23T00:00:00+00:00"}))
        assert result.passed

    def test_date_outside_tolerance(self, make_codebit):
        """Dates two seconds apart are a warning."""
        result = self._compare(
            make_codebit({"datePublished": "2023-02-23T10:00:00Z"}),
            make_codebit({"datePublished": "2023-02-23T10:00:02Z"}))
        assert result.level == ValidationLevel.FAIL_RECOMMENDED
        assert "'datePublished'" in result.details[0]

    def test_optional_mismatch(self, make_codebit):
        """A differing author is a warning."""
        result = self._compare(make_codebit(), make_codebit({"author": "Someone Else"}))
        assert result.level == ValidationLevel.FAIL_RECOMMENDED
        assert result.details == [
            "Warning: Local 'author' (Jane Developer) does not match "
            "Directory 'author' (Someone Else)."]

    def test_extension_only_here(self, make_codebit):
        """An extension property missing from the other side."""
        result = self._compare(make_codebit({"programmingLanguage": "Python"}), make_codebit())
        assert result.details == [
            "Warning: Local 'programmingLanguage' contains value (Python) but "
            "Directory 'programmingLanguage' has no value."]

    def test_extension_only_there(self, make_codebit):
        """An extension property only the other side has."""
        result = self._compare(make_codebit(), make_codebit({"programmingLanguage": "Python"}))
        assert result.details == [
            "Warning: Local 'programmingLanguage' has no value but Directory "
            "includes 'programmingLanguage' (Python)."]

    def test_multivalued_extension_compared_joined(self, make_codebit):
        """Value order matters for multi-valued extensions."""
        local = make_codebit({"tags": ["a", "b"]})
        assert self._compare(local, make_codebit({"tags": ["a", "b"]})).passed
        result = self._compare(local, make_codebit({"tags": ["b", "a"]}))
        assert result.details == [
            "Warning: Local 'tags' (a;b) does not match Directory 'tags' (b;a)."]

    def test_combined_levels(self, make_codebit):
        """A hash and a license mismatch fold to FAIL."""
        result = self._compare(make_codebit(),
                               make_codebit({"hash": "SHA256:FF", "license": "MIT"}))
        assert result.level == ValidationLevel.FAIL
        assert len(result.details) == 2


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------

class TestOutput:
    def test_to_json_minimal(self):
        """Mandatory keys are written in order; description even when empty."""
        codebit = CodeBitMetadata()
        codebit.at_type = "SoftwareSourceCode"
        codebit.name = "example.com/a.py"
        codebit.url = "https://example.com/a.py"
        codebit.version = SemVer(1, 0, 0)
        codebit.keywords = ["CodeBit"]
        assert codebit.to_json_string() == (
            '{\n'
            '  "@type": "SoftwareSourceCode",\n'
            '  "name": "example.com/a.py",\n'
            '  "description": "",\n'
            '  "url": "https://example.com/a.py",\n'
            '  "version": "1.0.0",\n'
            '  "keywords": "CodeBit"\n'
            '}\n'
        )

    def test_to_json_key_order(self, make_codebit):
        """Well-known keys first, then extensions in insertion order."""
        codebit = make_codebit({"programmingLanguage": "Python", "tags": ["a", "b"]})
        doc = json.loads(codebit.to_json_string())
        assert list(doc) == [
            "@type", "name", "description", "url", "version", "keywords",
            "datePublished", "author", "license", "hash",
            "programmingLanguage", "tags",
        ]
        assert doc["keywords"] == ["CodeBit", "sample"]
        assert doc["tags"] == ["a", "b"]
        assert doc["programmingLanguage"] == "Python"

    def test_to_json_normalizes_version(self, make_codebit):
        """The version is written in canonical form."""
        doc = json.loads(make_codebit({"version": "v2"}).to_json_string())
        assert doc["version"] == "2.0.0"

    def test_to_json_leaves_stream_open(self, make_codebit):
        out = io.StringIO()
        make_codebit().to_json(out)
        assert not out.closed
        out.write("more")

    def test_str(self, make_codebit):
        """One 'name: value' line per property, '_type' first."""
        text = str(make_codebit({"programmingLanguage": "Python"}))
        lines = text.splitlines()
        assert lines[0] == "_type: SoftwareSourceCode"
        assert "name: example.com/tools/sample.py" in lines
        assert "version: 1.2.3" in lines
        assert "keywords: CodeBit; sample" in lines
        assert lines[-1] == "programmingLanguage: Python"
        assert text.endswith("\n")

    def test_repr(self, make_codebit):
        assert repr(make_codebit()) == "<CodeBitMetadata example.com/tools/sample.py v1.2.3>"
