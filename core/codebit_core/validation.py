"""
validation.py — Graded validation results

Every rule yields zero or more Findings. A ValidationResult is the fold of
those findings: its level is the bitwise OR of the individual levels, so
recommended and mandatory failures are tracked independently.
"""

import enum
import functools
from typing import NamedTuple


class ValidationLevel(enum.IntFlag):
    """Outcome of validation or comparison.

    FAIL_RECOMMENDED and FAIL_MANDATORY are independent flags; FAIL is
    both. Callers usually treat anything above FAIL_RECOMMENDED as unusable.
    """

    PASS = 0
    FAIL_RECOMMENDED = 1
    FAIL_MANDATORY = 2
    FAIL = 3


class Finding(NamedTuple):
    level: ValidationLevel
    message: str


class ValidationResult(NamedTuple):
    level: ValidationLevel
    details: list

    @property
    def detail(self):
        """Details joined as newline-terminated lines."""
        return ''.join(line + '\n' for line in self.details)

    @property
    def failed_recommended(self):
        return bool(self.level & ValidationLevel.FAIL_RECOMMENDED)

    @property
    def failed_mandatory(self):
        return bool(self.level & ValidationLevel.FAIL_MANDATORY)

    @property
    def passed(self):
        return self.level == ValidationLevel.PASS


def recommended(message):
    return Finding(ValidationLevel.FAIL_RECOMMENDED, message)


def mandatory(message):
    return Finding(ValidationLevel.FAIL_MANDATORY, message)


def fold(findings):
    """Combine findings into a single ValidationResult."""
    findings = list(findings)
    level = functools.reduce(lambda acc, f: acc | f.level, findings, ValidationLevel.PASS)
    return ValidationResult(ValidationLevel(level), [f.message for f in findings])
