#!/usr/bin/env python3
"""
Code Audit Tool Runner
Discovers installed scanners, runs them against the audit target, and parses their output.

Exit codes are never treated as failure: scanners commonly exit non-zero precisely
when they found something. Only a timeout or an empty stdout short-circuits a run.
"""

import logging
import os
import re
import signal
import subprocess
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from codeaudit.core.files import to_relative
from codeaudit.core.severity import Finding
from codeaudit.tools.parsers import PARSERS
from codeaudit.tools.registry import TOOL_REGISTRY, ToolDescriptor

logger = logging.getLogger(__name__)

DETECT_TIMEOUT = 10.0        # seconds
DEFAULT_TIMEOUT_MS = 60_000
MAX_OUTPUT_CHARS = 10_000_000

VERSION_PATTERN = re.compile(r'(\d+\.\d+[.\d]*)')

STATUS_SUCCESS = 'success'
STATUS_TIMEOUT = 'timeout'
STATUS_EMPTY = 'empty'
STATUS_NO_OUTPUT = 'no-output'
STATUS_NO_PARSER = 'no-parser'


@dataclass
class ProcessResult:
    """Captured output of one child process"""
    stdout: str = ''
    stderr: str = ''
    exit_code: int = 0
    timed_out: bool = False


@dataclass(frozen=True)
class ToolAvailability:
    """A discovered tool and the version its detect command reported"""
    descriptor: ToolDescriptor
    version: str = 'unknown'

    @property
    def id(self) -> str:
        return self.descriptor.id


@dataclass(frozen=True)
class ExecutionMeta:
    """Informational record of one tool invocation"""
    tool_id: str
    tool_name: str
    version: str
    status: str
    finding_count: int = 0
    duration_ms: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status == STATUS_SUCCESS

    def to_dict(self) -> Dict:
        return {
            'toolId': self.tool_id,
            'toolName': self.tool_name,
            'version': self.version,
            'status': self.status,
            'findingCount': self.finding_count,
            'durationMs': self.duration_ms,
        }


@dataclass
class ToolRunResult:
    findings: List[Finding] = field(default_factory=list)
    meta: Optional[ExecutionMeta] = None


@dataclass(frozen=True)
class MissingTool:
    """An applicable tool that is not installed"""
    id: str
    name: str
    categories: Sequence[str]
    install_hint: str
    benefit: str

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'name': self.name,
            'categories': list(self.categories),
            'installHint': self.install_hint,
            'benefit': self.benefit,
        }


def _kill(process: subprocess.Popen):
    """Kill the child and everything it spawned (npx and friends fork)"""
    try:
        if os.name == 'posix':
            os.killpg(process.pid, signal.SIGKILL)
        else:
            process.kill()
    except (ProcessLookupError, PermissionError, OSError):
        pass


def execute(command: Sequence[str], cwd: Optional[Path] = None, timeout: float = 30.0) -> ProcessResult:
    """
    Run a command and capture its output

    Never raises for a missing executable or a timeout: both resolve to a
    ProcessResult (exit code 127, or timed_out=True with output discarded).

    Args:
        command: Executable and arguments
        cwd: Working directory (default: current directory)
        timeout: Timeout in seconds

    Returns:
        ProcessResult with decoded stdout/stderr
    """
    try:
        process = subprocess.Popen(
            list(command),
            cwd=str(cwd) if cwd else None,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding='utf-8',
            errors='replace',
            start_new_session=(os.name == 'posix'),
        )
    except FileNotFoundError:
        return ProcessResult(exit_code=127)
    except OSError as e:
        logger.debug("Cannot start %s: %s", command[0], e)
        return ProcessResult(exit_code=126)

    try:
        stdout, stderr = process.communicate(timeout=timeout)
    except subprocess.TimeoutExpired:
        _kill(process)
        try:
            process.communicate(timeout=1)
        except (subprocess.TimeoutExpired, ValueError, OSError):
            # Grandchildren may still hold the pipes; do not wait for them
            pass
        return ProcessResult(exit_code=-1, timed_out=True)

    return ProcessResult(
        stdout=(stdout or '')[:MAX_OUTPUT_CHARS],
        stderr=(stderr or '')[:MAX_OUTPUT_CHARS],
        exit_code=process.returncode,
    )


def extract_version(output: str) -> str:
    match = VERSION_PATTERN.search(output or '')
    return match.group(1) if match else 'unknown'


def probe_tool(tool: ToolDescriptor, timeout: float = DETECT_TIMEOUT,
               strict: bool = False) -> Optional[ToolAvailability]:
    """
    Run one tool's detect command

    Any output on stdout or stderr counts as "installed", whatever the exit code.
    With `strict`, the output must also contain a version number.
    """
    result = execute(tool.detect_command, timeout=timeout)
    if result.timed_out:
        logger.debug("Detection of %s timed out", tool.id)
        return None

    output = '\n'.join(part for part in (result.stdout.strip(), result.stderr.strip()) if part)
    if not output:
        return None

    version = extract_version(output)
    if strict and version == 'unknown':
        logger.debug("Ignoring %s: no version in detect output", tool.id)
        return None

    return ToolAvailability(descriptor=tool, version=version)


def discover_tools(registry: Optional[Sequence[ToolDescriptor]] = None,
                   timeout: float = DETECT_TIMEOUT,
                   strict: bool = False,
                   max_workers: Optional[int] = None) -> Dict[str, ToolAvailability]:
    """
    Probe every registry entry concurrently

    Args:
        registry: Descriptors to probe (default: the built-in registry)
        timeout: Per-probe timeout in seconds
        strict: Require a version number in detect output
        max_workers: Thread pool size (default: one per tool)

    Returns:
        tool id -> ToolAvailability, in registry order, for available tools only
    """
    registry = list(TOOL_REGISTRY if registry is None else registry)
    if not registry:
        return {}

    def _safe_probe(tool: ToolDescriptor) -> Optional[ToolAvailability]:
        try:
            return probe_tool(tool, timeout=timeout, strict=strict)
        except Exception as e:
            logger.warning("Detection of %s failed: %s", tool.id, e)
            return None

    with ThreadPoolExecutor(max_workers=max_workers or len(registry)) as executor:
        probes = list(executor.map(_safe_probe, registry))

    available = {entry.id: entry for entry in probes if entry is not None}
    logger.info("Discovered %d of %d tools: %s", len(available), len(registry),
                ', '.join(available) or 'none')
    return available


def _eligible_ecosystems(package_manager: Optional[str], ecosystems: Iterable[str]) -> set:
    names = set(ecosystems or ())
    if package_manager:
        names.add(package_manager)
    return names


def get_tools_for_category(available: Mapping[str, ToolAvailability],
                           category: str,
                           package_manager: Optional[str] = None,
                           ecosystems: Iterable[str] = ()) -> List[ToolAvailability]:
    """
    Available tools serving `category` whose ecosystem restriction (if any) matches

    Order follows the availability map, which follows the registry.
    """
    names = _eligible_ecosystems(package_manager, ecosystems)
    return [
        entry for entry in available.values()
        if category in entry.descriptor.categories and entry.descriptor.applies_to(names)
    ]


def run_tool(entry: ToolAvailability, target_dir: Path, category: str,
             timeout: Optional[float] = None) -> ToolRunResult:
    """
    Run one tool against `target_dir` for `category`

    Args:
        entry: Discovered tool
        target_dir: Directory under audit (the child's working directory)
        category: Calling analyzer category, selects command overrides
        timeout: Override the descriptor timeout, in seconds

    Returns:
        ToolRunResult; statuses other than success carry zero findings
    """
    tool = entry.descriptor
    command = tool.command_for(category)
    if timeout is None:
        timeout = (tool.timeout_ms or DEFAULT_TIMEOUT_MS) / 1000

    logger.debug("Running %s for %s: %s", tool.id, category, ' '.join(command))
    start = time.monotonic()
    result = execute(command, cwd=target_dir, timeout=timeout)
    duration_ms = int((time.monotonic() - start) * 1000)

    def _meta(status: str, count: int = 0) -> ExecutionMeta:
        return ExecutionMeta(
            tool_id=tool.id,
            tool_name=tool.name,
            version=entry.version,
            status=status,
            finding_count=count,
            duration_ms=duration_ms,
        )

    if result.timed_out:
        logger.warning("%s timed out after %.0fs", tool.name, timeout)
        return ToolRunResult(meta=_meta(STATUS_TIMEOUT))

    output = result.stdout
    if not output.strip():
        status = STATUS_EMPTY if output else STATUS_NO_OUTPUT
        logger.debug("%s produced no output (%s, exit %d)", tool.id, status, result.exit_code)
        return ToolRunResult(meta=_meta(status))

    parser = PARSERS.get(tool.parser_id)
    if parser is None:
        logger.warning("No parser registered for %s (%s)", tool.id, tool.parser_id)
        return ToolRunResult(meta=_meta(STATUS_NO_PARSER))

    findings = [
        replace(f, file=to_relative(f.file, target_dir)) if f.file else f
        for f in parser(output, category, tool.id)
    ]
    logger.debug("%s: %d findings in %dms", tool.id, len(findings), duration_ms)
    return ToolRunResult(findings=findings, meta=_meta(STATUS_SUCCESS, len(findings)))


def run_tools(entries: Sequence[ToolAvailability], target_dir: Path, category: str,
              timeouts: Optional[Mapping[str, float]] = None,
              max_workers: Optional[int] = None) -> List[ToolRunResult]:
    """
    Run every tool in `entries` concurrently

    Results come back in the order of `entries`. A tool whose run raises
    is logged and contributes nothing.
    """
    if not entries:
        return []
    timeouts = timeouts or {}

    def _safe_run(entry: ToolAvailability) -> Optional[ToolRunResult]:
        try:
            return run_tool(entry, target_dir, category, timeout=timeouts.get(entry.id))
        except Exception as e:
            logger.warning("%s failed during %s analysis: %s", entry.descriptor.name, category, e)
            return None

    with ThreadPoolExecutor(max_workers=max_workers or len(entries)) as executor:
        results = list(executor.map(_safe_run, entries))

    return [r for r in results if r is not None]


def get_missing_tools(available: Mapping[str, ToolAvailability],
                      package_manager: Optional[str] = None,
                      ecosystems: Iterable[str] = (),
                      registry: Optional[Sequence[ToolDescriptor]] = None) -> List[MissingTool]:
    """Applicable tools that discovery did not find, for install suggestions"""
    names = _eligible_ecosystems(package_manager, ecosystems)
    missing = []
    for tool in TOOL_REGISTRY if registry is None else registry:
        if tool.id in available or not tool.applies_to(names):
            continue
        missing.append(MissingTool(
            id=tool.id,
            name=tool.name,
            categories=tool.categories,
            install_hint=tool.install_hint,
            benefit=tool.benefit,
        ))
    return missing
