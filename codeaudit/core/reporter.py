#!/usr/bin/env python3
"""
Code Audit Report Generator
Renders an audit result as a Markdown report, a JSON report and a short
rich console summary
"""

import json
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Sequence

from rich.console import Console
from rich.table import Table

from codeaudit import __version__
from codeaudit.core.severity import Finding, Severity, count_by_severity, group_by_analyzer, sort_findings

MARKDOWN_FILENAME = "CODE_AUDIT_REPORT.md"
JSON_FILENAME = "code-audit-report.json"

# Report section order (differs from execution order)
ANALYZER_ORDER = ('secrets', 'security', 'dependencies', 'structure', 'tests', 'imports', 'ai-patterns')

ANALYZER_META = {
    'secrets': (
        'Secrets & Credentials',
        'Detection of hardcoded secrets, API keys, tokens, and credentials in source code.',
    ),
    'security': (
        'Security Anti-Patterns',
        'Common security vulnerabilities including injection risks, XSS vectors, weak cryptography, '
        'and insecure configurations.',
    ),
    'dependencies': (
        'Dependency Health',
        'Analysis of project dependencies, lockfile presence, version pinning, and known problematic packages.',
    ),
    'structure': (
        'Code Structure & Complexity',
        'Assessment of file sizes, nesting depth, function length, and module organization.',
    ),
    'tests': (
        'Testing',
        'Assessment of test coverage, framework configuration, assertion quality, and CI integration.',
    ),
    'imports': (
        'Import Graph & Coupling',
        'Analysis of the dependency graph between source files. Identifies circular imports, hub files, '
        'and coupling hotspots.',
    ),
    'ai-patterns': (
        'AI-Generated Code Patterns',
        'Detection of patterns commonly associated with AI-generated code, including tool fingerprints, '
        'silent error handling, and leftover placeholders.',
    ),
}

# Short names for the summary table
CATEGORY_NAMES = {
    'structure': 'Code Structure',
    'secrets': 'Secrets & Credentials',
    'security': 'Security',
    'dependencies': 'Dependencies',
    'tests': 'Testing',
    'imports': 'Import Graph',
    'ai-patterns': 'AI-Generated Code',
}

SEVERITY_BADGES = {
    Severity.CRITICAL: '🔴 Critical',
    Severity.HIGH: '🟠 High',
    Severity.MEDIUM: '🟡 Medium',
    Severity.LOW: '🔵 Low',
    Severity.INFO: 'ℹ️ Info',
}

SEVERITY_STYLES = {
    Severity.CRITICAL: 'bold red',
    Severity.HIGH: 'red',
    Severity.MEDIUM: 'yellow',
    Severity.LOW: 'cyan',
    Severity.INFO: 'dim',
}


def anchor(title: str) -> str:
    """GitHub-style heading anchor"""
    return re.sub(r'[^a-z0-9]+', '-', title.lower()).rstrip('-')


class ReportGenerator:
    """Generate audit reports from an AuditResult"""

    def __init__(self, output_dir: Path = None):
        self.output_dir = Path(output_dir) if output_dir else Path.cwd()

    def generate(self, result, formats: Sequence[str]) -> List[Path]:
        """
        Write every requested format

        Args:
            result: AuditResult from the orchestrator
            formats: Any of 'markdown', 'json'

        Returns:
            Paths of the written reports, in the order requested
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)
        paths = []
        for fmt in formats:
            if fmt == 'markdown':
                paths.append(self.generate_markdown_report(result))
            elif fmt == 'json':
                paths.append(self.generate_json_report(result))
            else:
                raise ValueError(f"Unknown report format: {fmt}")
        return paths

    # ------------------------------------------------------------------ JSON

    def build_json(self, result) -> Dict[str, Any]:
        findings = sort_findings(result.findings)
        return {
            'timestamp': datetime.now().isoformat(),
            'codeaudit_version': __version__,
            'target': str(result.target),
            'summary': {
                'total_findings': len(findings),
                'files_scanned': len(result.files),
                'lines_of_code': result.total_lines,
                'duration_ms': result.duration_ms,
            },
            'severity_breakdown': count_by_severity(findings),
            'ecosystem': result.ecosystem.to_dict(),
            'categories': {
                name: {
                    'findings': len(category.findings),
                    'stats': category.stats,
                }
                for name, category in result.categories.items()
            },
            'tools': [meta.to_dict() for meta in result.tools_meta],
            'missing_tools': [tool.to_dict() for tool in result.missing_tools],
            'findings': [f.to_dict() for f in findings],
        }

    def generate_json_report(self, result, output_path: Path = None) -> Path:
        """Generate JSON report"""
        output_path = output_path or self.output_dir / JSON_FILENAME
        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump(self.build_json(result), f, indent=2)
        return output_path

    # -------------------------------------------------------------- Markdown

    def generate_markdown_report(self, result, output_path: Path = None) -> Path:
        """Generate Markdown report"""
        output_path = output_path or self.output_dir / MARKDOWN_FILENAME
        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(self.build_markdown(result))
        return output_path

    def build_markdown(self, result) -> str:
        findings = sort_findings(result.findings)
        grouped = group_by_analyzer(findings)

        md = "# Code Audit Report\n\n"
        md += (f"> Automated analysis of **{len(result.files)}** files"
               f" | **{result.total_lines:,}** lines of code"
               f" | **{len(findings)}** findings"
               f" | {result.duration_ms / 1000:.1f}s\n\n")

        md += "## Table of Contents\n\n"
        md += "- [Project Overview](#project-overview)\n"
        md += "- [Summary](#summary)\n"
        md += "- [Tools Used](#tools-used)\n"
        for name in ANALYZER_ORDER:
            title = ANALYZER_META[name][0]
            md += f"- [{title}](#{anchor(title)})\n"
        md += "- [What This Audit Doesn't Cover](#what-this-audit-doesnt-cover)\n\n"

        md += self._overview(result)
        md += self._summary(findings)
        md += self._tools_used(result)

        for name in ANALYZER_ORDER:
            if name not in result.categories:
                continue
            title, description = ANALYZER_META[name]
            md += self._analyzer_section(title, description, grouped.get(name, []))
            stats = result.categories[name].stats
            if name == 'tests' and stats:
                md += self._test_stats(stats)
            if name == 'imports' and stats:
                md += self._import_stats(stats)

        md += self._not_covered()
        md += self._footer()
        return md

    def _overview(self, result) -> str:
        eco = result.ecosystem
        structure = result.categories.get('structure')
        stats = structure.stats if structure is not None and structure.stats else {}

        md = "## Project Overview\n\n"
        md += "| Metric | Value |\n|--------|-------|\n"
        md += f"| Primary Language | {eco.primary_language} |\n"
        md += f"| Frameworks | {', '.join(eco.frameworks) or 'None detected'} |\n"
        md += f"| Package Manager | {eco.package_manager or 'None detected'} |\n"
        md += f"| Lockfile Present | {'Yes' if eco.has_lockfile else 'No'} |\n"
        md += f"| Total Files Scanned | {len(result.files)} |\n"
        if stats:
            md += f"| Code Files | {stats['codeFiles']} |\n"
            md += f"| Total Lines of Code | {stats['totalLines']:,} |\n"
            md += f"| Avg File Size | {stats['avgFileSize']} lines |\n"
        if eco.test_frameworks:
            md += f"| Test Frameworks | {', '.join(eco.test_frameworks)} |\n"
        md += "\n"

        if len(eco.languages) > 1:
            md += "### Language Breakdown\n\n"
            md += "| Language | Files |\n|----------|-------|\n"
            for language, count in list(eco.languages.items())[:10]:
                md += f"| {language} | {count} |\n"
            md += "\n"

        largest = stats.get('largestFiles') if stats else None
        if largest:
            md += "### Largest Files\n\n"
            md += "| File | Lines |\n|------|-------|\n"
            for entry in largest[:5]:
                md += f"| `{entry['file']}` | {entry['lines']} |\n"
            md += "\n"

        return md

    def _summary(self, findings: Sequence[Finding]) -> str:
        counts = count_by_severity(findings)

        md = "## Summary\n\n"
        md += f"**Total findings: {len(findings)}**\n\n"
        md += "| Severity | Count |\n|----------|-------|\n"
        for severity in Severity:
            if counts[severity.value]:
                md += f"| {SEVERITY_BADGES[severity]} | {counts[severity.value]} |\n"
        md += "\n"

        md += "### Findings by Category\n\n"
        md += "| Category | Critical | High | Medium | Low | Info |\n"
        md += "|----------|----------|------|--------|-----|------|\n"
        for name, group in group_by_analyzer(findings).items():
            row = count_by_severity(group)
            cells = ' | '.join(str(row[s.value] or '-') for s in Severity)
            md += f"| {CATEGORY_NAMES.get(name, name)} | {cells} |\n"
        md += "\n"
        return md

    def _tools_used(self, result) -> str:
        md = "## Tools Used\n\n"

        successful = [m for m in result.tools_meta if m.succeeded]
        failed = [m for m in result.tools_meta if not m.succeeded]

        if successful:
            md += "### External Tools\n\n"
            md += "| Tool | Version | Findings | Time |\n|------|---------|----------|------|\n"
            for meta in successful:
                md += (f"| {meta.tool_name} | {meta.version} | {meta.finding_count} | "
                       f"{meta.duration_ms / 1000:.1f}s |\n")
            md += "\n"

        if failed:
            md += "**Tool issues:** "
            md += ', '.join(f"{m.tool_name} ({m.status})" for m in failed)
            md += "\n\n"

        md += ("All analyzers also run built-in pattern analysis as a baseline. When external tools are "
               "available, their findings take priority and pattern duplicates are removed.\n\n")

        if result.missing_tools:
            md += "### Install for Better Results\n\n"
            md += "The following tools would enhance this audit:\n\n"
            md += "| Tool | Enhances | Install | Benefit |\n|------|----------|---------|---------|\n"
            for tool in result.missing_tools:
                md += f"| {tool.name} | {', '.join(tool.categories)} | `{tool.install_hint}` | {tool.benefit} |\n"
            md += "\n"

        return md

    def _finding(self, finding: Finding, index: int) -> str:
        md = f"#### {index}. {finding.title}\n\n"
        md += f"**Severity:** {SEVERITY_BADGES[finding.severity]}\n\n"
        md += f"{finding.description}\n\n"
        if finding.file:
            md += f"**File:** `{finding.file}`"
            if finding.line:
                md += f" (line {finding.line})"
            md += "\n\n"
        if finding.tool_id:
            md += f"**Reported by:** {finding.tool_id}\n\n"
        if finding.snippet:
            md += f"```\n{finding.snippet}\n```\n\n"
        if finding.remediation:
            md += f"**Remediation:** {finding.remediation}\n\n"
        return md

    def _analyzer_section(self, title: str, description: str, findings: Sequence[Finding]) -> str:
        md = f"## {title}\n\n{description}\n\n"
        if not findings:
            return md + "> No issues found. ✅\n\n"

        md += "---\n\n".join(self._finding(f, i) for i, f in enumerate(findings, 1))
        return md

    def _test_stats(self, stats: Dict) -> str:
        md = "### Test Coverage Summary\n\n"
        md += "| Metric | Value |\n|--------|-------|\n"
        md += f"| Source Files | {stats['sourceFiles']} |\n"
        md += f"| Test Files | {stats['testFiles']} |\n"
        md += f"| Test Ratio | {stats['testRatio']}% |\n"
        if stats.get('testFrameworks'):
            md += f"| Frameworks | {', '.join(stats['testFrameworks'])} |\n"
        return md + "\n"

    def _import_stats(self, stats: Dict) -> str:
        md = "### Dependency Graph Summary\n\n"
        md += "| Metric | Value |\n|--------|-------|\n"
        md += f"| Files Analyzed | {stats['filesAnalyzed']} |\n"
        md += f"| Total Import Edges | {stats['totalImportEdges']} |\n"
        md += f"| Avg Imports/File | {stats['avgImportsPerFile']} |\n"
        md += f"| Circular Dependencies | {stats['circularDependencies']} |\n\n"
        if stats.get('hubFiles'):
            md += "**Most-imported files:**\n\n"
            for hub in stats['hubFiles'][:5]:
                md += f"- `{hub['file']}`: imported by {hub['importedBy']} files\n"
            md += "\n"
        return md

    def _not_covered(self) -> str:
        return """## What This Audit Doesn't Cover

Automated analysis catches patterns and known anti-patterns. The following areas require human judgment.

### Architecture Fitness

Whether the architecture fits the project's growth trajectory depends on the roadmap, team size and \
operating constraints, none of which are visible in the source tree.

### Business-Context Prioritization

Severity here reflects *technical* risk. A medium finding in a payment flow can matter more than a high \
finding in an internal script; ordering the work needs knowledge of what the code is for.

### Remediation Cost Estimates

Turning findings into engineering time depends on the team's familiarity with the codebase and current \
commitments.

"""

    def _footer(self) -> str:
        today = datetime.now().strftime('%Y-%m-%d')
        return (f"---\n\n*Generated on {today} by codeaudit v{__version__}. "
                f"This report covers automated analysis only.*\n")


def print_console_summary(result, console: Console = None):
    """Severity counts, tool status and report locations on the terminal"""
    console = console or Console()
    counts = count_by_severity(result.findings)

    table = Table(title="Findings by severity", show_header=True, header_style="bold")
    table.add_column("Severity")
    table.add_column("Count", justify="right")
    for severity in Severity:
        style = SEVERITY_STYLES[severity]
        table.add_row(f"[{style}]{severity.value.upper()}[/{style}]", str(counts[severity.value]))
    console.print(table)

    console.print(f"[bold]{len(result.findings)}[/bold] findings in {len(result.files)} files "
                  f"({result.duration_ms / 1000:.1f}s)")

    if result.tools_meta:
        tools = ', '.join(
            m.tool_name if m.succeeded else f"{m.tool_name} [yellow]({m.status})[/yellow]"
            for m in result.tools_meta
        )
        console.print(f"[cyan]Tools:[/cyan] {tools}")
    elif result.available_tools:
        console.print("[cyan]Tools:[/cyan] none applicable to this project")
    else:
        console.print("[dim]No external tools used, pattern analysis only[/dim]")

    if result.missing_tools:
        console.print(f"[dim]{len(result.missing_tools)} applicable tools not installed "
                      f"(run `codeaudit tools` for install hints)[/dim]")

    for path in result.report_paths:
        console.print(f"[green]✓[/green] Report written: {path}")
