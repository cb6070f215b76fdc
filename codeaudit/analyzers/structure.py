#!/usr/bin/env python3
"""
Code Audit Structure Analyzer
God files, deep nesting, import-heavy modules and long functions
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from codeaudit.analyzers.base import CODE_EXTENSIONS, AnalysisContext, BaseAnalyzer
from codeaudit.core.files import FileInfo
from codeaudit.core.severity import Finding, Severity

GOD_FILE_LINES = 500
LARGE_FILE_LINES = 300
DEEP_NESTING_LEVELS = 4
HIGH_IMPORT_COUNT = 10
MAX_FUNCTION_LINES = 80
LARGEST_FILES_SHOWN = 10

IMPORT_PREFIXES = (
    'import ', 'from ',
    'use ',      # PHP / Rust
    'using ',    # C#
    'require ',  # Ruby
    'include ',  # C / C++
)
REQUIRE_ASSIGNMENT = re.compile(r'^(?:const|let|var)\s+.*=\s*require\(')

FUNCTION_START = re.compile(
    r'^(?:export\s+)?(?:async\s+)?'
    r'(?:function\s+\w+|(?:const|let|var)\s+\w+\s*=\s*(?:async\s+)?(?:function|\([^)]*\)\s*=>|\w+\s*=>))'
    r'|(?:def\s+\w+|(?:pub\s+)?fn\s+\w+)'
)
PYTHON_DEF = re.compile(r'^(\s*)(?:async\s+)?def\s+\w+')


@dataclass
class LongFunction:
    start_line: int
    lines: int


def nesting_depth(lines: Sequence[str], ext: str) -> int:
    """Deepest indentation level, in tabs or in 4 (Python) / 2 (others) spaces"""
    indent_size = 4 if ext == '.py' else 2
    deepest = 0
    for line in lines:
        stripped = line.lstrip()
        if not stripped or stripped.startswith(('//', '#', '*')):
            continue
        tabs = len(line) - len(line.lstrip('\t'))
        depth = tabs if tabs else (len(line) - len(stripped)) // indent_size
        deepest = max(deepest, depth)
    return deepest


def count_imports(lines: Sequence[str]) -> int:
    count = 0
    for line in lines:
        trimmed = line.strip()
        if trimmed.startswith(IMPORT_PREFIXES) or REQUIRE_ASSIGNMENT.match(trimmed):
            count += 1
    return count


def _indent(line: str) -> int:
    return len(line) - len(line.lstrip())


def long_python_functions(lines: Sequence[str], limit: int = MAX_FUNCTION_LINES) -> List[LongFunction]:
    """Python functions end at the next non-blank line indented no deeper than the def"""
    results = []
    for index, line in enumerate(lines):
        match = PYTHON_DEF.match(line)
        if not match:
            continue
        def_indent = len(match.group(1))
        end = index
        for offset in range(index + 1, len(lines)):
            body = lines[offset]
            if not body.strip():
                continue
            if _indent(body) <= def_indent:
                break
            end = offset
        length = end - index + 1
        if length > limit:
            results.append(LongFunction(start_line=index + 1, lines=length))
    return results


def long_braced_functions(lines: Sequence[str], limit: int = MAX_FUNCTION_LINES) -> List[LongFunction]:
    """Brace-depth heuristic for C-family languages; nested functions are not reported separately"""
    results = []
    in_function = False
    depth = 0
    start = 0

    for index, line in enumerate(lines):
        trimmed = line.strip()
        if not in_function and FUNCTION_START.search(trimmed):
            in_function = True
            start = index
            depth = 0

        if in_function:
            depth += trimmed.count('{') - trimmed.count('}')
            if depth <= 0 and index > start:
                length = index - start + 1
                if length > limit:
                    results.append(LongFunction(start_line=start + 1, lines=length))
                in_function = False

    return results


def long_functions(lines: Sequence[str], ext: str) -> List[LongFunction]:
    if ext == '.py':
        return long_python_functions(lines)
    return long_braced_functions(lines)


class StructureAnalyzer(BaseAnalyzer):
    """Code structure and complexity signals"""

    name = 'structure'

    def analyze_patterns(self, context: AnalysisContext) -> Tuple[List[Finding], Optional[Dict]]:
        findings = []
        sizes = []
        total_lines = 0

        for file in context.files:
            if file.ext not in CODE_EXTENSIONS:
                continue
            lines = context.read_lines(file)
            if lines is None:
                continue

            total_lines += len(lines)
            sizes.append((file.relative_path, len(lines)))
            findings.extend(self.check_file(file, lines))

        code_files = len(sizes)
        # Stable sort keeps corpus order among equal sizes
        largest = sorted(sizes, key=lambda item: item[1], reverse=True)[:LARGEST_FILES_SHOWN]
        stats = {
            'totalFiles': len(context.files),
            'totalLines': total_lines,
            'codeFiles': code_files,
            'avgFileSize': round(total_lines / code_files) if code_files else 0,
            'largestFiles': [{'file': path, 'lines': count} for path, count in largest],
        }
        return findings, stats

    def check_file(self, file: FileInfo, lines: Sequence[str]) -> List[Finding]:
        findings = []
        path = file.relative_path
        total = len(lines)

        if total > GOD_FILE_LINES:
            findings.append(self.finding(
                severity=Severity.MEDIUM,
                title=f"God file: {path} ({total} lines)",
                description=(f"This file has {total} lines, well above the {GOD_FILE_LINES}-line threshold. "
                             f"Large files are harder to test, review, and maintain. Consider splitting "
                             f"into focused modules."),
                file=path,
                remediation='Break this file into smaller, focused modules with single responsibilities.',
            ))
        elif total > LARGE_FILE_LINES:
            findings.append(self.finding(
                severity=Severity.LOW,
                title=f"Large file: {path} ({total} lines)",
                description=f"This file has {total} lines. Not critical, but worth watching as it grows.",
                file=path,
                remediation='Consider splitting if this file continues to grow.',
            ))

        depth = nesting_depth(lines, file.ext)
        if depth > DEEP_NESTING_LEVELS:
            findings.append(self.finding(
                severity=Severity.LOW,
                title=f"Deep nesting in {path} ({depth} levels)",
                description=(f"Code is nested {depth} levels deep. Deep nesting reduces readability. "
                             f"Consider early returns, guard clauses, or extracting functions."),
                file=path,
                remediation='Use early returns, guard clauses, or extract nested logic into helper functions.',
            ))

        imports = count_imports(lines)
        if imports > HIGH_IMPORT_COUNT:
            findings.append(self.finding(
                severity=Severity.LOW,
                title=f"High import count in {path} ({imports} imports)",
                description=(f"This file imports from {imports} different modules, suggesting it may have "
                             f"too many responsibilities."),
                file=path,
                remediation=('Consider if this file is doing too much. Split into smaller modules with '
                             'fewer dependencies.'),
            ))

        for func in long_functions(lines, file.ext):
            findings.append(self.finding(
                severity=Severity.LOW,
                title=f"Long function in {path} (~{func.lines} lines at line {func.start_line})",
                description=(f"A function starting at line {func.start_line} spans approximately "
                             f"{func.lines} lines. Long functions are harder to understand and test."),
                file=path,
                line=func.start_line,
                remediation='Extract sub-operations into well-named helper functions.',
            ))

        return findings
