#!/usr/bin/env python3
"""
Code Audit Base Analyzer Classes
Abstract base for all analyzer categories, plus the line-pattern helper
shared by the regex-driven analyzers.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Mapping, Match, Optional, Pattern, Sequence, Tuple

from codeaudit.config import AuditConfig
from codeaudit.core.dedup import deduplicate_findings
from codeaudit.core.ecosystem import Ecosystem
from codeaudit.core.files import FileInfo, read_content, read_lines
from codeaudit.core.severity import Finding, Severity
from codeaudit.tools.runner import ExecutionMeta, ToolAvailability, ToolRunResult, get_tools_for_category, run_tools

logger = logging.getLogger(__name__)

# Source extensions shared by several analyzers
CODE_EXTENSIONS = frozenset({
    '.js', '.mjs', '.cjs', '.jsx', '.ts', '.tsx',
    '.py', '.rb', '.go', '.rs', '.java', '.kt', '.scala',
    '.ex', '.exs', '.php', '.cs', '.swift', '.c', '.cpp',
    '.vue', '.svelte', '.astro',
})


@dataclass
class AnalysisContext:
    """Read-only inputs shared by every analyzer in one run"""
    root: Path
    files: List[FileInfo]
    ecosystem: Ecosystem
    available_tools: Mapping[str, ToolAvailability] = field(default_factory=dict)
    config: AuditConfig = field(default_factory=AuditConfig)

    def read_lines(self, file: FileInfo) -> Optional[List[str]]:
        return read_lines(file.absolute_path, max_bytes=self.config.max_file_bytes)

    def read_content(self, file: FileInfo) -> Optional[str]:
        return read_content(file.absolute_path, max_bytes=self.config.max_file_bytes)

    def find_file(self, relative_path: str) -> Optional[FileInfo]:
        for file in self.files:
            if file.relative_path == relative_path:
                return file
        return None


@dataclass
class AnalyzerResult:
    """Output of one analyzer category"""
    findings: List[Finding] = field(default_factory=list)
    stats: Optional[Dict] = None
    tools_meta: List[ExecutionMeta] = field(default_factory=list)

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization"""
        result = {
            'findings': [f.to_dict() for f in self.findings],
            'toolsMeta': [m.to_dict() for m in self.tools_meta],
        }
        if self.stats is not None:
            result['stats'] = self.stats
        return result


class BaseAnalyzer(ABC):
    """
    Abstract base class for all Code Audit analyzers

    Each analyzer implements:
    - A category name (the `analyzer` tag on its findings)
    - Pattern analysis over the file corpus
    - Optionally a tool phase: eligible external tools run first and their
      findings take priority over pattern findings at the same location
    """

    name: str = ''
    uses_tools: bool = False

    def analyze(self, context: AnalysisContext) -> AnalyzerResult:
        """
        Run the tool phase (if any), then pattern analysis, then deduplicate

        A failing tool phase degrades to pattern-only results.
        """
        tool_results = self.run_tool_phase(context) if self.uses_tools else []
        tool_findings = [f for result in tool_results for f in result.findings]

        pattern_findings, stats = self.analyze_patterns(context)
        stats = self.finalize_stats(stats, tool_results)

        findings = deduplicate_findings(tool_findings, pattern_findings,
                                        radius=context.config.dedup_radius)
        return AnalyzerResult(
            findings=findings,
            stats=stats,
            tools_meta=[r.meta for r in tool_results if r.meta is not None],
        )

    def select_tools(self, context: AnalysisContext) -> List[ToolAvailability]:
        """Eligible, not-disabled tools for this category"""
        if not context.config.tools_enabled:
            return []
        eligible = get_tools_for_category(
            context.available_tools,
            self.name,
            context.ecosystem.package_manager,
            context.ecosystem.ecosystems,
        )
        disabled = set(context.config.tools_disabled)
        return [entry for entry in eligible if entry.id not in disabled]

    def run_tool_phase(self, context: AnalysisContext) -> List[ToolRunResult]:
        try:
            tools = self.select_tools(context)
            if not tools:
                return []
            logger.info("%s: running %s", self.name, ', '.join(t.descriptor.name for t in tools))
            return run_tools(tools, context.root, self.name,
                             timeouts=context.config.tool_timeouts,
                             max_workers=context.config.workers)
        except Exception as e:
            logger.warning("%s tool phase failed, using pattern analysis only: %s", self.name, e)
            return []

    @abstractmethod
    def analyze_patterns(self, context: AnalysisContext) -> Tuple[List[Finding], Optional[Dict]]:
        """
        Built-in analysis over the file corpus

        Returns:
            (pattern findings, stats or None)
        """
        pass

    def finalize_stats(self, stats: Optional[Dict], tool_results: Sequence[ToolRunResult]) -> Optional[Dict]:
        """Hook for folding tool results into stats"""
        return stats

    def finding(self, **kwargs) -> Finding:
        """Pattern-sourced finding tagged with this analyzer's category"""
        return Finding(analyzer=self.name, **kwargs)


@dataclass(frozen=True)
class LinePattern:
    """One line-level detection rule"""
    name: str
    regex: Pattern
    severity: Severity
    description: str
    remediation: Optional[str] = None
    extensions: Optional[FrozenSet[str]] = None  # None = every scanned file

    def applies_to(self, ext: str) -> bool:
        return self.extensions is None or ext in self.extensions


def rule(name: str, pattern: str, severity: Severity, description: str,
         remediation: str = None, extensions: Iterable[str] = None, flags: int = 0) -> LinePattern:
    return LinePattern(
        name=name,
        regex=re.compile(pattern, flags),
        severity=severity,
        description=description,
        remediation=remediation,
        extensions=frozenset(extensions) if extensions is not None else None,
    )


class PatternAnalyzer(BaseAnalyzer):
    """
    Base class for analyzers driven by a table of LinePatterns

    Provides:
    - Extension filtering per analyzer and per pattern
    - Comment-line skipping
    - At most one finding per line (first matching pattern wins)
    """

    PATTERNS: Sequence[LinePattern] = ()
    SCAN_EXTENSIONS: FrozenSet[str] = CODE_EXTENSIONS

    def should_scan(self, file: FileInfo) -> bool:
        return file.ext in self.SCAN_EXTENSIONS

    def skip_line(self, trimmed: str) -> bool:
        return False

    def skip_pattern(self, pattern: LinePattern, file: FileInfo) -> bool:
        return not pattern.applies_to(file.ext)

    def snippet(self, line: str, match: Optional[Match] = None) -> str:
        return line.strip()

    def remediation(self, pattern: LinePattern) -> Optional[str]:
        return pattern.remediation

    def scan_lines(self, file: FileInfo, lines: Sequence[str]) -> List[Finding]:
        findings = []
        patterns = [p for p in self.PATTERNS if not self.skip_pattern(p, file)]
        if not patterns:
            return findings

        for number, line in enumerate(lines, 1):
            trimmed = line.strip()
            if not trimmed or self.skip_line(trimmed):
                continue

            for pattern in patterns:
                match = pattern.regex.search(line)
                if match:
                    findings.append(self.finding(
                        severity=pattern.severity,
                        title=f"{pattern.name} in {file.relative_path}",
                        description=pattern.description,
                        file=file.relative_path,
                        line=number,
                        snippet=self.snippet(line, match),
                        remediation=self.remediation(pattern),
                    ))
                    break  # one finding per line

        return findings

    def scan_files(self, context: AnalysisContext) -> List[Finding]:
        findings = []
        for file in context.files:
            if not self.should_scan(file):
                continue
            lines = context.read_lines(file)
            if lines is None:
                continue
            findings.extend(self.scan_lines(file, lines))
        return findings

    def analyze_patterns(self, context: AnalysisContext) -> Tuple[List[Finding], Optional[Dict]]:
        return self.scan_files(context), None


class AnalyzerRegistry:
    """
    Registry of analyzer categories, kept in execution order
    """

    def __init__(self):
        self.analyzers: List[BaseAnalyzer] = []

    def register(self, analyzer: BaseAnalyzer):
        """Register an analyzer instance"""
        if self.get(analyzer.name) is not None:
            raise ValueError(f"Analyzer already registered: {analyzer.name}")
        self.analyzers.append(analyzer)

    def get(self, name: str) -> Optional[BaseAnalyzer]:
        for analyzer in self.analyzers:
            if analyzer.name == name:
                return analyzer
        return None

    def get_all_analyzers(self) -> List[BaseAnalyzer]:
        return list(self.analyzers)

    def names(self) -> List[str]:
        return [a.name for a in self.analyzers]
