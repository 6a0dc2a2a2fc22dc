"""
directory_metadata.py — Directory-level metadata

Covers the properties of the directory document itself (not the records
listed in it).
"""

from .flat_metadata import FlatMetadata
from .validation import fold, mandatory

KEY_AT_CONTEXT = "@context"
KEY_AT_TYPE = "@type"
VAL_AT_CONTEXT_SCHEMA = "https://schema.org"
VAL_AT_TYPE_ITEM_LIST = "ItemList"


class DirectoryMetadata(FlatMetadata):

    @property
    def at_context(self):
        return self.get_value(KEY_AT_CONTEXT) or ''

    @at_context.setter
    def at_context(self, value):
        self.set_value(KEY_AT_CONTEXT, value)

    @property
    def at_type(self):
        return self.get_value(KEY_AT_TYPE) or ''

    @at_type.setter
    def at_type(self, value):
        self.set_value(KEY_AT_TYPE, value)

    def validate(self):
        """Validate the directory metadata (not the items in the directory).

        Returns:
            ValidationResult; every failure here is mandatory.
        """
        return fold([
            *self._match(KEY_AT_CONTEXT, VAL_AT_CONTEXT_SCHEMA),
            *self._match(KEY_AT_TYPE, VAL_AT_TYPE_ITEM_LIST),
        ])

    def _match(self, key, expected):
        actual = self.get_value(key)
        if actual != expected:
            yield mandatory(f"Property '{key}' should be '{expected}' but is '{actual or ''}'.")
        if len(self.get_values(key) or ()) > 1:
            yield mandatory(f"Property '{key}' has multiple values. Should have one value of '{expected}'.")
