"""
semver.py — Semantic Versioning 2.0.0 values (https://semver.org)

Parses, compares and formats MAJOR.MINOR.PATCH[-PRERELEASE][+BUILD].

Parsing is best-effort by default: deviations such as a leading 'v', a
missing minor/patch number or leading zeros degrade the result to
TOLERABLE and produce diagnostic lines instead of failing outright.
Use SemVer.parse_strict() when only fully compliant input is acceptable.
"""

import enum
import functools
from dataclasses import dataclass

MAJOR = "Major"
MINOR = "Minor"
PATCH = "Patch"
PRERELEASE = "Prerelease"
BUILD = "Build"

# Saturated component value used for ceiling (search) versions
MAX_COMPONENT = 2**31 - 1


class ParseLevel(enum.IntEnum):
    """Graded outcome of a tolerant parse."""

    INVALID = 0
    # Every part was recognized but the text is not strictly compliant,
    # e.g. a missing patch number or leading zeros.
    TOLERABLE = 1
    VALID = 2


def _is_id_char(c):
    return c.isascii() and (c.isalnum() or c == '-')


def _next_identifier(s, p):
    """Scan one tail identifier starting at p.

    Returns:
        (end, text, number) where number is None unless the identifier is
        non-empty and all digits.
    """
    start = p
    while p < len(s) and _is_id_char(s[p]):
        p += 1
    text = s[start:p]
    number = int(text) if text and text.isdigit() else None
    return p, text, number


def _parse_int_component(s, p, part_name, messages):
    """Parse a numeric version component.

    Returns:
        (value, p) with p positioned on the terminating character.
    """
    if p >= len(s) or not ('0' <= s[p] <= '9'):
        messages.append(f"Warning: Empty {part_name} version; using zero.")
        return 0, p

    start = p
    while p < len(s) and '0' <= s[p] <= '9':
        p += 1
    if p - start > 1 and s[start] == '0':
        messages.append(f"Warning: Leading zero(s) removed from {part_name} version.")
    return int(s[start:p]), p


def _parse_tail_component(s, p, part_name, messages):
    """Parse a dot-separated prerelease or build tail.

    Empty identifiers are dropped and numeric identifiers are normalized,
    each with a warning.

    Returns:
        (canonical_text, p) with p positioned on the terminating character.
    """
    start = p
    ids = []
    empty_id = False
    leading_zero = False
    while True:
        p, text, number = _next_identifier(s, p)
        if not text:
            empty_id = True
        elif number is not None:
            ids.append(str(number))
            if len(text) > 1 and text[0] == '0':
                leading_zero = True
        else:
            ids.append(text)

        if p >= len(s) or s[p] != '.':
            break
        p += 1

    if p == start:
        messages.append(f"Warning: {part_name} is empty.")
    elif empty_id:
        messages.append(f"Warning: {part_name} version includes at least one empty identifier.")
    if leading_zero:
        messages.append(f"Warning: Leading zero(s) removed from {part_name} version.")
    return '.'.join(ids), p


def _parse_tail_value(value, part_name):
    """Apply the tail grammar to a standalone prerelease/build string."""
    if not value:
        return ParseLevel.VALID, [], None
    messages = []
    parsed, p = _parse_tail_component(value, 0, part_name, messages)
    if p < len(value):
        return ParseLevel.INVALID, [f"Error: {part_name} includes invalid characters."], None
    level = ParseLevel.TOLERABLE if messages else ParseLevel.VALID
    return level, messages, parsed or None


def _compare_prerelease(a, b):
    """Order prerelease strings; a release (no prerelease) ranks highest."""
    if not a:
        return 0 if not b else 1
    if not b:
        return -1

    a_ids = a.split('.')
    b_ids = b.split('.')
    for a_id, b_id in zip(a_ids, b_ids):
        a_num = a_id.isdigit()
        b_num = b_id.isdigit()
        if a_num and b_num:
            cmp = int(a_id) - int(b_id)
        elif a_num != b_num:
            # Numeric identifiers always have lower precedence
            cmp = -1 if a_num else 1
        else:
            cmp = (a_id > b_id) - (a_id < b_id)
        if cmp:
            return 1 if cmp > 0 else -1
    return (len(a_ids) > len(b_ids)) - (len(a_ids) < len(b_ids))


@functools.total_ordering
@dataclass(frozen=True, eq=False)
class SemVer:
    """An immutable semantic version.

    Prerelease and build are kept in canonical dot-joined form (no empty
    identifiers, no leading zeros on numeric identifiers) or None.
    Build metadata never takes part in ordering, equality or hashing.
    """

    major: int = 0
    minor: int = 0
    patch: int = 0
    prerelease: str | None = None
    build: str | None = None

    # Filled in after the class body
    ZERO = None
    MAX = None

    def __post_init__(self):
        for value in (self.major, self.minor, self.patch):
            if not 0 <= value <= MAX_COMPONENT:
                raise ValueError(f"Version components must be between 0 and {MAX_COMPONENT}")
        # Canonical tails keep equality and hashing consistent
        for attr, part_name in (('prerelease', PRERELEASE), ('build', BUILD)):
            level, messages, canonical = _parse_tail_value(getattr(self, attr), part_name)
            if level == ParseLevel.INVALID:
                raise ValueError(messages[0])
            object.__setattr__(self, attr, canonical)

    # ------------------------------------------------------------------
    # Comparison
    # ------------------------------------------------------------------

    def compare_to(self, other):
        """Return <0, 0 or >0 as this version is lower, equal or higher.

        None compares lower than any version.
        """
        if other is None:
            return 1
        for mine, theirs in ((self.major, other.major),
                             (self.minor, other.minor),
                             (self.patch, other.patch)):
            if mine != theirs:
                return 1 if mine > theirs else -1
        return _compare_prerelease(self.prerelease, other.prerelease)

    def __eq__(self, other):
        if not isinstance(other, SemVer):
            return NotImplemented
        return self.compare_to(other) == 0

    def __lt__(self, other):
        if not isinstance(other, SemVer):
            return NotImplemented
        return self.compare_to(other) < 0

    def __hash__(self):
        return hash((self.major, self.minor, self.patch, self.prerelease or None))

    # ------------------------------------------------------------------
    # Formatting
    # ------------------------------------------------------------------

    def __str__(self):
        text = str(self.major)
        if self.minor >= MAX_COMPONENT:
            return text
        text += f".{self.minor}"
        if self.patch >= MAX_COMPONENT:
            return text
        text += f".{self.patch}"
        if self.prerelease:
            text += f"-{self.prerelease}"
        if self.build:
            text += f"+{self.build}"
        return text

    # ------------------------------------------------------------------
    # Tail replacement
    # ------------------------------------------------------------------

    def with_prerelease(self, value):
        """Return a copy with a new prerelease applied through the tail grammar.

        Returns:
            (level, messages, version). On INVALID the version is returned
            unchanged.
        """
        level, messages, parsed = _parse_tail_value(value, PRERELEASE)
        if level == ParseLevel.INVALID:
            return level, messages, self
        return level, messages, SemVer(self.major, self.minor, self.patch, parsed, self.build)

    def with_build(self, value):
        """Return a copy with new build metadata; see with_prerelease()."""
        level, messages, parsed = _parse_tail_value(value, BUILD)
        if level == ParseLevel.INVALID:
            return level, messages, self
        return level, messages, SemVer(self.major, self.minor, self.patch, self.prerelease, parsed)

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    @classmethod
    def try_parse(cls, s):
        """Parse a semantic version, degrading gracefully on imperfect input.

        Args:
            s: Text in semantic versioning format.

        Returns:
            (level, value, messages). level is a ParseLevel. value is ZERO
            when INVALID, otherwise the recognized version. messages is a
            list of warning/error lines; empty when VALID.
        """
        if s is None:
            return ParseLevel.INVALID, cls.ZERO, ["Error: No version specified."]

        messages = []
        p = 0
        if s[:1] in ('v', 'V'):
            messages.append("Warning: 'v' prefix to version is not expected.")
            p = 1

        if p >= len(s) or not ('0' <= s[p] <= '9'):
            return ParseLevel.INVALID, cls.ZERO, ["Error: Invalid Semantic Versioning Format."]
        major, p = _parse_int_component(s, p, MAJOR, messages)

        minor = 0
        if p < len(s) and s[p] == '.':
            minor, p = _parse_int_component(s, p + 1, MINOR, messages)
        else:
            messages.append("Warning: Minor version not found.")

        patch = 0
        if p < len(s) and s[p] == '.':
            patch, p = _parse_int_component(s, p + 1, PATCH, messages)
        else:
            messages.append("Warning: Patch version not found.")

        prerelease = None
        if p < len(s) and s[p] == '-':
            prerelease, p = _parse_tail_component(s, p + 1, PRERELEASE, messages)

        build = None
        if p < len(s) and s[p] == '+':
            build, p = _parse_tail_component(s, p + 1, BUILD, messages)

        if p < len(s):
            return (ParseLevel.INVALID, cls.ZERO,
                    [f"Error: Unexpected text in semantic version at position {p}."])

        for number, part_name in ((major, MAJOR), (minor, MINOR), (patch, PATCH)):
            if number >= MAX_COMPONENT:
                return (ParseLevel.INVALID, cls.ZERO,
                        [f"Error: {part_name} version exceeds the maximum of {MAX_COMPONENT - 1}."])

        value = cls(major, minor, patch, prerelease, build)
        if messages:
            return ParseLevel.TOLERABLE, value, messages
        return ParseLevel.VALID, value, []

    @classmethod
    def parse(cls, s):
        """Best-effort parse; raises ValueError only when INVALID.

        For example "4" parses as 4.0.0.
        """
        level, value, messages = cls.try_parse(s)
        if level < ParseLevel.TOLERABLE:
            raise ValueError('\n'.join(messages))
        return value

    @classmethod
    def parse_strict(cls, s):
        """Strict parse; raises ValueError unless the text is fully VALID."""
        level, value, messages = cls.try_parse(s)
        if level < ParseLevel.VALID:
            raise ValueError('\n'.join(messages))
        return value

    @classmethod
    def parse_for_search(cls, s):
        """Parse a version used as an upper bound for directory lookups.

        The first numeric part that is missing or unparsable, and every part
        after it, is set to MAX_COMPONENT. A version without a prerelease
        already ranks above all of its prereleases, so "1.2" yields a
        ceiling matching any 1.2.x release or prerelease but not 1.3.0.

        Always succeeds.
        """
        if not s:
            return cls.MAX
        scratch = []
        p = 1 if s[0] in ('v', 'V') else 0

        if p >= len(s) or not ('0' <= s[p] <= '9'):
            return cls.MAX
        major, p = _parse_int_component(s, p, MAJOR, scratch)

        if p + 1 >= len(s) or s[p] != '.' or not ('0' <= s[p + 1] <= '9'):
            return cls(min(major, MAX_COMPONENT), MAX_COMPONENT, MAX_COMPONENT)
        minor, p = _parse_int_component(s, p + 1, MINOR, scratch)

        if p + 1 >= len(s) or s[p] != '.' or not ('0' <= s[p + 1] <= '9'):
            return cls(min(major, MAX_COMPONENT), min(minor, MAX_COMPONENT), MAX_COMPONENT)
        patch, p = _parse_int_component(s, p + 1, PATCH, scratch)

        prerelease = None
        if p < len(s) and s[p] == '-':
            prerelease, p = _parse_tail_component(s, p + 1, PRERELEASE, scratch)

        build = None
        if p < len(s) and s[p] == '+':
            build, p = _parse_tail_component(s, p + 1, BUILD, scratch)

        return cls(min(major, MAX_COMPONENT), min(minor, MAX_COMPONENT),
                   min(patch, MAX_COMPONENT), prerelease, build)


SemVer.ZERO = SemVer(0, 0, 0)
SemVer.MAX = SemVer(MAX_COMPONENT, MAX_COMPONENT, MAX_COMPONENT)
