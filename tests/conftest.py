"""
Shared test fixtures for the codebit_core test suite.

  - codebit_fields: dict of valid CodeBit properties
  - make_codebit: factory building CodeBitMetadata with property overrides
  - make_directory: factory building a directory JSON document
  - directory_stream: factory wrapping a directory document in a byte stream
"""

import io
import json

import pytest

from codebit_core import CodeBitMetadata


@pytest.fixture
def codebit_fields():
    """Properties of a CodeBit that passes validation."""
    return {
        "@type": "SoftwareSourceCode",
        "name": "example.com/tools/sample.py",
        "version": "1.2.3",
        "url": "https://example.com/tools/sample.py",
        "keywords": ["CodeBit", "sample"],
        "datePublished": "2023-02-23",
        "author": "Jane Developer",
        "description": "A sample CodeBit used in tests.",
        "license": "https://opensource.org/licenses/BSD-3-Clause",
        "hash": "SHA256:0123456789ABCDEF",
    }


@pytest.fixture
def make_codebit(codebit_fields):
    """Build a CodeBitMetadata from codebit_fields plus an overrides dict.

    An override value of None drops the property.
    """
    def _make(overrides=None):
        fields = dict(codebit_fields)
        fields.update(overrides or {})
        codebit = CodeBitMetadata()
        for key, value in fields.items():
            if value is None:
                continue
            if isinstance(value, list):
                codebit.add_values(key, value)
            else:
                codebit.add_value(key, value)
        return codebit
    return _make


@pytest.fixture
def make_directory():
    """Build a directory document dict around a list of items."""
    def _make(items, **metadata):
        doc = {"@context": "https://schema.org", "@type": "ItemList"}
        doc.update(metadata)
        doc["itemListElement"] = items
        return doc
    return _make


@pytest.fixture
def directory_stream():
    """Serialize a document (dict or raw JSON text) to a BytesIO."""
    def _stream(doc):
        text = doc if isinstance(doc, str) else json.dumps(doc)
        return io.BytesIO(text.encode("utf-8"))
    return _stream
