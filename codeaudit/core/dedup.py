#!/usr/bin/env python3
"""
Code Audit Finding Deduplication
Tool findings always win; a pattern finding is dropped when a tool
already reported the same file within a few lines of it.
"""

from typing import List, Sequence, Set

from codeaudit.core.severity import Finding

DEFAULT_RADIUS = 2


def coverage_keys(tool_findings: Sequence[Finding], radius: int = DEFAULT_RADIUS) -> Set[str]:
    """`file:line` keys covered by tool findings, widened by `radius` lines each way"""
    covered = set()
    for finding in tool_findings:
        if not (finding.file and finding.line):
            continue
        for offset in range(-radius, radius + 1):
            line = finding.line + offset
            if line > 0:
                covered.add(f"{finding.file}:{line}")
    return covered


def deduplicate_findings(tool_findings: Sequence[Finding],
                         pattern_findings: Sequence[Finding],
                         radius: int = DEFAULT_RADIUS) -> List[Finding]:
    """
    Merge tool and pattern findings for one category

    Args:
        tool_findings: Findings from external tools (kept unconditionally)
        pattern_findings: Findings from built-in pattern analysis
        radius: Lines either side of a tool finding that count as covered

    Returns:
        Tool findings in their order, then the uncovered pattern findings in theirs.
        Pattern findings without a line are never dropped.
    """
    if radius < 0:
        raise ValueError(f"Coverage radius must be >= 0, got {radius}")

    covered = coverage_keys(tool_findings, radius)
    kept = [f for f in pattern_findings if f.location is None or f.location not in covered]
    return list(tool_findings) + kept
