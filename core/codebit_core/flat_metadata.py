"""
flat_metadata.py — Flat, multi-valued metadata property bag

A FlatMetadata maps property names to ordered lists of string values.
There are no nested "object" values. Whether a property is single- or
multi-valued is up to the caller: use get_value()/set_value() for
single-valued properties and get_values()/set_values()/add_value()/
add_values() for multi-valued ones.

A None value and the absence of a property are treated the same.
"""

import re
from datetime import datetime, timedelta, timezone

# Returned by get_value_as_date() when a date is absent or unparsable
MIN_DATE = datetime.min.replace(tzinfo=timezone.utc)

_DATE_ONLY_RE = re.compile(r'^\d{4}-\d{2}-\d{2}$')


def parse_date(text):
    """Parse a date or RFC 3339 / ISO 8601 timestamp.

    Values without an explicit offset are taken to be UTC.

    Returns:
        A timezone-aware datetime, or MIN_DATE if text is empty or invalid.
    """
    if not text:
        return MIN_DATE
    text = text.strip()
    try:
        if _DATE_ONLY_RE.match(text):
            value = datetime.strptime(text, '%Y-%m-%d')
        else:
            value = datetime.fromisoformat(text)
    except ValueError:
        return MIN_DATE
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def format_date(value):
    """Format a datetime in its most concise canonical form.

    Midnight at UTC offset zero is written date-only (yyyy-MM-dd).
    Anything else is a full timestamp with milliseconds (trailing zeros
    trimmed) and a +hh:mm offset.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    offset = value.utcoffset() or timedelta(0)
    if (offset == timedelta(0) and value.hour == 0 and value.minute == 0
            and value.second == 0 and value.microsecond == 0):
        return value.strftime('%Y-%m-%d')

    text = value.strftime('%Y-%m-%dT%H:%M:%S')
    millis = value.microsecond // 1000
    if millis:
        text += f".{millis:03d}".rstrip('0')

    minutes = int(offset.total_seconds()) // 60
    sign = '-' if minutes < 0 else '+'
    hours, minutes = divmod(abs(minutes), 60)
    return f"{text}{sign}{hours:02d}:{minutes:02d}"


class FlatMetadata(dict):
    """Ordered mapping of property name -> list of string values.

    Iteration follows the order in which properties were first added.
    """

    def get_value(self, key):
        """Return the first value of a property, or None if it is absent."""
        values = super().get(key)
        if values:
            return values[0]
        return None

    def get_values(self, key):
        """Return a copy of all values of a property, or None if absent.

        This is a pure lookup: it never creates an entry.
        """
        values = super().get(key)
        if values is None:
            return None
        return list(values)

    def upsert_values(self, key):
        """Return the live value list of a property, creating it if absent.

        A freshly created entry holds an empty list; callers should add a
        value right away.
        """
        values = super().get(key)
        if values is None:
            values = []
            self[key] = values
        return values

    def set_value(self, key, value):
        """Set a single-valued property. None or '' removes the property."""
        if value is None or value == '':
            self.remove(key)
            return
        self[key] = [value]

    def set_values(self, key, values):
        """Replace all values of a property.

        None or an empty collection removes the property.

        Raises:
            ValueError: If any value is None.
        """
        if values is None:
            self.remove(key)
            return
        values = list(values)
        if any(v is None for v in values):
            raise ValueError("Values may not contain None.")
        if not values:
            self.remove(key)
            return
        self[key] = values

    def add_value(self, key, value):
        """Append a value to a property, creating the property if needed.

        Returns:
            The number of values the property now has.

        Raises:
            ValueError: If value is None. Use remove() to drop a property.
        """
        if value is None:
            raise ValueError("Value cannot be None. Use remove() to remove a property.")
        values = self.upsert_values(key)
        values.append(value)
        return len(values)

    def add_values(self, key, values):
        """Append several values to a property.

        Raises:
            ValueError: If values is None or contains None.
        """
        if values is None:
            raise ValueError("Values may not be None.")
        values = list(values)
        if any(v is None for v in values):
            raise ValueError("Values may not contain None.")
        existing = self.upsert_values(key)
        existing.extend(values)
        return len(existing)

    def remove(self, key):
        """Remove a property if present."""
        self.pop(key, None)

    def get_value_as_date(self, key):
        """Return a property as a datetime, or MIN_DATE if absent or invalid."""
        return parse_date(self.get_value(key))

    def set_value_as_date(self, key, value):
        """Store a datetime in canonical form. MIN_DATE or None removes it."""
        if value is None or value == MIN_DATE:
            self.remove(key)
            return
        self.set_value(key, format_date(value))
