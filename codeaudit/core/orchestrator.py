#!/usr/bin/env python3
"""
Code Audit Orchestrator
Drives one audit run: collect files, detect the ecosystem, discover
tools, run every analyzer category, aggregate and (optionally) report.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from codeaudit.analyzers import AnalysisContext, AnalyzerRegistry, AnalyzerResult, create_registry
from codeaudit.config import AuditConfig
from codeaudit.core.ecosystem import Ecosystem, detect_ecosystem
from codeaudit.core.errors import AuditError
from codeaudit.core.files import FileInfo, collect_files
from codeaudit.core.severity import Finding
from codeaudit.tools.registry import ToolDescriptor
from codeaudit.tools.runner import ExecutionMeta, MissingTool, ToolAvailability, discover_tools, get_missing_tools

logger = logging.getLogger(__name__)


class AuditState(Enum):
    """Run states, in the order a run passes through them"""
    INIT = "init"
    FILES_COLLECTED = "files-collected"
    ECOSYSTEM_DETECTED = "ecosystem-detected"
    TOOLS_DISCOVERED = "tools-discovered"
    PER_CATEGORY_ANALYSIS = "per-category-analysis"
    AGGREGATED = "aggregated"
    REPORTED = "reported"
    DONE = "done"


@dataclass
class AuditResult:
    """Everything one run produced"""
    target: Path
    files: List[FileInfo] = field(default_factory=list)
    ecosystem: Ecosystem = field(default_factory=Ecosystem)
    available_tools: Dict[str, ToolAvailability] = field(default_factory=dict)
    categories: Dict[str, AnalyzerResult] = field(default_factory=dict)
    findings: List[Finding] = field(default_factory=list)
    tools_meta: List[ExecutionMeta] = field(default_factory=list)
    missing_tools: List[MissingTool] = field(default_factory=list)
    report_paths: List[Path] = field(default_factory=list)
    duration_ms: int = 0
    state: AuditState = AuditState.INIT

    @property
    def total_lines(self) -> int:
        structure = self.categories.get('structure')
        if structure is None or not structure.stats:
            return 0
        return structure.stats.get('totalLines', 0)


class AuditOrchestrator:
    """
    Run the full audit pipeline against one directory

    Categories run one after another in registry order; tools within a
    category run concurrently. Only an unusable target or an empty file
    corpus aborts the run.
    """

    def __init__(self,
                 target: Path,
                 config: AuditConfig = None,
                 analyzers: AnalyzerRegistry = None,
                 tool_registry: Optional[Sequence[ToolDescriptor]] = None,
                 progress: Optional[Callable[[str], None]] = None):
        """
        Args:
            target: Directory to audit
            config: Audit configuration (defaults when None)
            analyzers: Analyzer categories to run (all categories when None)
            tool_registry: Tool descriptors to discover (built-in registry when None)
            progress: Called with a short message as each stage starts
        """
        self.target = Path(target).resolve()
        self.config = config or AuditConfig()
        self.analyzers = analyzers or create_registry()
        self.tool_registry = tool_registry
        self.progress = progress
        self.transitions: List[AuditState] = []
        self._result: Optional[AuditResult] = None

    def _enter(self, state: AuditState):
        self.transitions.append(state)
        if self._result is not None:
            self._result.state = state
        logger.debug("Audit state: %s", state.value)

    def _notify(self, message: str):
        logger.info(message)
        if self.progress is not None:
            self.progress(message)

    def run(self, write_reports: bool = False) -> AuditResult:
        """
        Execute the audit

        Args:
            write_reports: Render the configured report formats to disk

        Returns:
            AuditResult in state DONE

        Raises:
            AuditError: target is not a directory, or it holds no auditable files
        """
        start = time.monotonic()
        if not self.target.is_dir():
            raise AuditError(f"Target is not a directory: {self.target}")

        result = AuditResult(target=self.target)
        self._result = result
        self._enter(AuditState.INIT)

        self._notify(f"Collecting files in {self.target}")
        result.files = collect_files(
            self.target,
            max_depth=self.config.max_depth,
            max_files=self.config.max_files,
            ignore_dirs=self.config.exclude_dirs,
        )
        if not result.files:
            raise AuditError(f"No auditable files found in {self.target}")
        self._enter(AuditState.FILES_COLLECTED)

        result.ecosystem = detect_ecosystem(self.target, result.files)
        self._enter(AuditState.ECOSYSTEM_DETECTED)

        if self.config.tools_enabled:
            self._notify("Discovering external tools")
            result.available_tools = discover_tools(
                self.tool_registry,
                timeout=self.config.detect_timeout,
                strict=self.config.strict_detection,
            )
            result.missing_tools = get_missing_tools(
                result.available_tools,
                result.ecosystem.package_manager,
                result.ecosystem.ecosystems,
                registry=self.tool_registry,
            )
        else:
            logger.info("External tools disabled, running pattern analysis only")
        self._enter(AuditState.TOOLS_DISCOVERED)

        context = AnalysisContext(
            root=self.target,
            files=result.files,
            ecosystem=result.ecosystem,
            available_tools=result.available_tools,
            config=self.config,
        )

        self._enter(AuditState.PER_CATEGORY_ANALYSIS)
        disabled = set(self.config.categories_disabled)
        for analyzer in self.analyzers.get_all_analyzers():
            if analyzer.name in disabled:
                logger.info("Skipping disabled category: %s", analyzer.name)
                continue
            self._notify(f"Analyzing {analyzer.name}")
            result.categories[analyzer.name] = self._run_analyzer(analyzer, context)

        for category in result.categories.values():
            result.findings.extend(category.findings)
            result.tools_meta.extend(category.tools_meta)
        self._enter(AuditState.AGGREGATED)

        result.duration_ms = int((time.monotonic() - start) * 1000)

        if write_reports and self.config.report_formats:
            # Imported here; the reporter is only needed when writing to disk
            from codeaudit.core.reporter import ReportGenerator

            output_dir = Path(self.config.report_output) if self.config.report_output else self.target
            self._notify(f"Writing report to {output_dir}")
            result.report_paths = ReportGenerator(output_dir).generate(result, self.config.report_formats)
            self._enter(AuditState.REPORTED)

        self._enter(AuditState.DONE)
        logger.info("Audit finished: %d findings in %dms", len(result.findings), result.duration_ms)
        return result

    def _run_analyzer(self, analyzer, context: AnalysisContext) -> AnalyzerResult:
        try:
            return analyzer.analyze(context)
        except Exception as e:
            logger.error("Analyzer %s failed: %s", analyzer.name, e)
            logger.debug("Analyzer %s traceback", analyzer.name, exc_info=True)
            return AnalyzerResult()
