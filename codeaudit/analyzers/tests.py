#!/usr/bin/env python3
"""
Code Audit Tests Analyzer
Test presence, framework and CI configuration, assertion quality
"""

import re
from typing import Dict, List, Optional, Sequence, Tuple

from codeaudit.analyzers.base import AnalysisContext, BaseAnalyzer
from codeaudit.core.files import FileInfo
from codeaudit.core.severity import Finding, Severity

SOURCE_EXTENSIONS = frozenset({
    '.js', '.mjs', '.cjs', '.jsx', '.ts', '.tsx',
    '.py', '.rb', '.go', '.rs', '.java', '.kt',
    '.ex', '.exs', '.php', '.cs',
})

# Matched against the basename
TEST_FILE_PATTERNS = [
    re.compile(r'\.test\.[jt]sx?$'),
    re.compile(r'\.spec\.[jt]sx?$'),
    re.compile(r'_test\.[jt]sx?$'),
    re.compile(r'^test_.*\.[jt]sx?$'),
    re.compile(r'\.test\.py$'),
    re.compile(r'^test_.*\.py$'),
    re.compile(r'_test\.py$'),
    re.compile(r'_test\.go$'),
    re.compile(r'_test\.rs$'),
    re.compile(r'\.spec\.rb$'),
    re.compile(r'Test\.java$'),
    re.compile(r'_test\.exs$'),
]

TEST_DIRS = frozenset({'__tests__', 'tests', 'test', 'spec', 'specs', '__test__'})

CI_FILES = frozenset({'.gitlab-ci.yml', '.circleci/config.yml', 'Jenkinsfile', 'bitbucket-pipelines.yml'})
WORKFLOW_DIR = '.github/workflows/'
CI_TEST_COMMAND = re.compile(r'(?:test|jest|vitest|pytest|mix test|cargo test|go test)', re.IGNORECASE)

REAL_ASSERTIONS = [
    re.compile(r'expect\([^)]+\)\.(?:toBe|toEqual|toStrictEqual|toMatch|toThrow|toHaveBeenCalled|toContain|toHaveLength)\('),
    re.compile(r'assert\.\w+\('),
    re.compile(r'\.should\.\w+'),
    re.compile(r'assert_eq!|assert_ne!'),
    re.compile(r'assertEqual|assertRaises|assertTrue|assertFalse'),
    re.compile(r'assert\s+\w+'),
]
SNAPSHOT = re.compile(r'toMatchSnapshot|toMatchInlineSnapshot')

WEAK_ASSERTIONS = [
    (re.compile(r'expect\([^)]+\)\.toBeTruthy\(\)'), 'toBeTruthy()'),
    (re.compile(r'expect\([^)]+\)\.toBeDefined\(\)'), 'toBeDefined()'),
    (re.compile(r'expect\([^)]+\)\.not\.toBeNull\(\)'), 'not.toBeNull()'),
    (re.compile(r'expect\(true\)\.toBe\(true\)'), 'expect(true).toBe(true)'),
    (re.compile(r'assert\.ok\(true\)'), 'assert.ok(true)'),
]

EMPTY_TEST = re.compile(
    r'''(?:it|test)\s*\(\s*['"][^'"]+['"]\s*,\s*(?:\(\)\s*=>\s*\{\s*\}|function\s*\(\)\s*\{\s*\})'''
)

NO_TESTS_MIN_SOURCES = 5
LOW_RATIO_MIN_SOURCES = 10
LOW_RATIO_PERCENT = 20
QUALITY_THRESHOLD = 3


def is_test_file(relative_path: str) -> bool:
    parts = relative_path.split('/')
    if any(p.search(parts[-1]) for p in TEST_FILE_PATTERNS):
        return True
    return any(part in TEST_DIRS for part in parts[:-1])


def is_ci_file(relative_path: str) -> bool:
    return relative_path.startswith(WORKFLOW_DIR) or relative_path in CI_FILES


def coverage_ratio(test_count: int, source_count: int) -> float:
    """Tests per source file, as a percentage rounded to one decimal"""
    if not source_count:
        return 0.0
    return round(test_count / source_count * 100, 1)


class TestsAnalyzer(BaseAnalyzer):
    """Test coverage and quality"""

    __test__ = False  # not a pytest class
    name = 'tests'

    def analyze_patterns(self, context: AnalysisContext) -> Tuple[List[Finding], Optional[Dict]]:
        test_files = []
        source_files = []
        for file in context.files:
            if file.ext not in SOURCE_EXTENSIONS:
                continue
            if is_test_file(file.relative_path):
                test_files.append(file)
            else:
                source_files.append(file)

        ratio = coverage_ratio(len(test_files), len(source_files))
        frameworks = list(context.ecosystem.test_frameworks)
        stats = {
            'sourceFiles': len(source_files),
            'testFiles': len(test_files),
            'testRatio': ratio,
            'testFrameworks': frameworks,
        }

        findings = []
        if not test_files and len(source_files) > NO_TESTS_MIN_SOURCES:
            findings.append(self.finding(
                severity=Severity.HIGH,
                title='No test files found',
                description=(f"The project has {len(source_files)} source files but no test files were "
                             f"detected. Tests are essential for catching regressions and enabling safe "
                             f"refactoring."),
                remediation='Start with integration tests for critical paths, then add unit tests for complex logic.',
            ))
        elif ratio < LOW_RATIO_PERCENT and len(source_files) > LOW_RATIO_MIN_SOURCES:
            findings.append(self.finding(
                severity=Severity.MEDIUM,
                title=f"Low test ratio ({ratio:.1f}%)",
                description=(f"Only {len(test_files)} test files for {len(source_files)} source files "
                             f"({ratio:.1f}% ratio). Aim for at least one test file per module."),
                remediation='Prioritize tests for business-critical code paths and complex logic.',
            ))

        if not frameworks and len(source_files) > NO_TESTS_MIN_SOURCES:
            findings.append(self.finding(
                severity=Severity.MEDIUM,
                title='No test framework configured',
                description='No test framework was detected in project dependencies or configuration files.',
                remediation=('Add a test framework. For JS/TS: Vitest or Jest. For Python: pytest. '
                             'For Elixir: ExUnit (built-in).'),
            ))

        findings.extend(self.check_ci(context, has_tests=bool(test_files)))
        findings.extend(self.check_quality(context, test_files))
        return findings, stats

    def check_ci(self, context: AnalysisContext, has_tests: bool) -> List[Finding]:
        if not has_tests:
            return []

        ci_files = [f for f in context.files if is_ci_file(f.relative_path)]
        if not ci_files:
            return [self.finding(
                severity=Severity.MEDIUM,
                title='No CI/CD configuration found',
                description='Tests exist but no CI/CD pipeline was detected. Tests should run automatically.',
                remediation='Set up GitHub Actions, GitLab CI, or another CI service to run tests on push.',
            )]

        for file in ci_files:
            content = context.read_content(file)
            if content and CI_TEST_COMMAND.search(content):
                return []

        return [self.finding(
            severity=Severity.MEDIUM,
            title='CI does not appear to run tests',
            description=('CI configuration was found but no test commands were detected. Tests should run '
                         'automatically on every push.'),
            remediation='Add a test step to your CI pipeline.',
        )]

    def check_quality(self, context: AnalysisContext, test_files: Sequence[FileInfo]) -> List[Finding]:
        snapshot_only = 0
        weak_files = []
        empty_tests = 0

        for file in test_files:
            lines = context.read_lines(file)
            if lines is None:
                continue
            content = '\n'.join(lines)

            has_real_assertion = any(p.search(content) for p in REAL_ASSERTIONS)
            if SNAPSHOT.search(content) and not has_real_assertion:
                snapshot_only += 1

            for pattern, label in WEAK_ASSERTIONS:
                if pattern.search(content):
                    weak_files.append((file.relative_path, label))
                    break

            empty_tests += len(EMPTY_TEST.findall(content))

        findings = []
        if snapshot_only > QUALITY_THRESHOLD:
            findings.append(self.finding(
                severity=Severity.MEDIUM,
                title=f"{snapshot_only} snapshot-only test files",
                description=(f"{snapshot_only} test files rely solely on snapshot tests with no behavioral "
                             f"assertions. Snapshots catch unexpected changes but don't verify correctness."),
                remediation='Add behavioral assertions alongside snapshots to verify actual expected behavior.',
            ))

        if len(weak_files) > QUALITY_THRESHOLD:
            findings.append(self.finding(
                severity=Severity.LOW,
                title=f"Weak assertions in {len(weak_files)} test files",
                description=(f"{len(weak_files)} test files contain assertions like toBeTruthy() or "
                             f"toBeDefined() that don't verify specific values. These can pass even when "
                             f"behavior is wrong."),
                remediation='Replace weak assertions with specific value checks: toBe(), toEqual(), toMatch().',
            ))

        if empty_tests:
            findings.append(self.finding(
                severity=Severity.LOW,
                title=f"{empty_tests} empty/placeholder tests",
                description=(f"Found {empty_tests} test cases with empty bodies. These provide false "
                             f"confidence in test counts."),
                remediation='Implement or remove empty test cases.',
            ))

        return findings
