#!/usr/bin/env python3
"""
Code Audit Finding Schema
Severity levels and the immutable Finding record every producer emits
"""

from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Union

from codeaudit.core.errors import InvalidFinding, InvalidSeverity


class Severity(Enum):
    """Finding severity levels, most severe first"""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"

    @property
    def rank(self) -> int:
        return SEVERITY_ORDER[self]

    @classmethod
    def parse(cls, value: Union["Severity", str], strict: bool = False) -> "Severity":
        """
        Coerce a Severity or its string value to a Severity

        User input (CLI, config) is matched in any case with surrounding
        whitespace ignored; with `strict` only the exact lowercase value is
        accepted.

        Raises:
            InvalidSeverity: if the value is not one of the five levels
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value if strict else value.strip().lower())
            except ValueError:
                pass
        raise InvalidSeverity(value)

    def at_least(self, other: "Severity") -> bool:
        """True if this severity is as severe as `other` or worse"""
        return self.rank <= other.rank


SEVERITY_ORDER = {
    Severity.CRITICAL: 0,
    Severity.HIGH: 1,
    Severity.MEDIUM: 2,
    Severity.LOW: 3,
    Severity.INFO: 4,
}

SOURCE_TOOL = "tool"
SOURCE_PATTERN = "pattern"
VALID_SOURCES = (SOURCE_TOOL, SOURCE_PATTERN)


@dataclass(frozen=True)
class Finding:
    """Single reported issue. Immutable once constructed."""
    analyzer: str
    severity: Severity
    title: str
    description: str
    file: Optional[str] = None
    line: Optional[int] = None
    snippet: Optional[str] = None
    remediation: Optional[str] = None
    source: str = SOURCE_PATTERN
    tool_id: Optional[str] = None

    def __post_init__(self):
        # frozen: normalize through object.__setattr__
        object.__setattr__(self, 'severity', Severity.parse(self.severity, strict=True))

        if self.source not in VALID_SOURCES:
            raise InvalidFinding(f"Invalid finding source: {self.source!r}")

        if self.line is not None:
            if isinstance(self.line, bool) or not isinstance(self.line, int) or self.line < 1:
                raise InvalidFinding(f"Line numbers are 1-based, got {self.line!r}")

    @property
    def location(self) -> Optional[str]:
        """`file:line` key, or None when either part is missing"""
        if self.file and self.line:
            return f"{self.file}:{self.line}"
        return None

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization"""
        return {
            'analyzer': self.analyzer,
            'severity': self.severity.value,
            'title': self.title,
            'description': self.description,
            'file': self.file,
            'line': self.line,
            'snippet': self.snippet,
            'remediation': self.remediation,
            'source': self.source,
            'toolId': self.tool_id,
        }


def sort_findings(findings: Iterable[Finding]) -> List[Finding]:
    """Sort by severity, critical first. Stable for equal severities."""
    return sorted(findings, key=lambda f: f.severity.rank)


def count_by_severity(findings: Iterable[Finding]) -> Dict[str, int]:
    counts = {severity.value: 0 for severity in Severity}
    for finding in findings:
        counts[finding.severity.value] += 1
    return counts


def group_by_analyzer(findings: Iterable[Finding]) -> "OrderedDict[str, List[Finding]]":
    """Group findings by analyzer name, keeping first-seen order"""
    groups: "OrderedDict[str, List[Finding]]" = OrderedDict()
    for finding in findings:
        groups.setdefault(finding.analyzer, []).append(finding)
    return groups
