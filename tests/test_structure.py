"""
Tests for the code structure analyzer
"""
import pytest

from codeaudit.analyzers.structure import (
    LongFunction,
    StructureAnalyzer,
    count_imports,
    long_braced_functions,
    long_functions,
    long_python_functions,
    nesting_depth,
)
from codeaudit.core.severity import Severity


@pytest.fixture
def analyzer():
    return StructureAnalyzer()


def python_function(body_lines, indent='    '):
    return ['def handler(request):'] + [f'{indent}step_{i}()' for i in range(body_lines)]


class TestMetrics:

    def test_nesting_python(self):
        assert nesting_depth(['def f():', ' ' * 20 + 'return 1'], '.py') == 5

    def test_nesting_js(self):
        assert nesting_depth(['function f() {', ' ' * 10 + 'x()', '}'], '.js') == 5

    def test_nesting_tabs(self):
        assert nesting_depth(['\t\t\tx = 1'], '.go') == 3

    def test_nesting_ignores_comments_and_blank(self):
        lines = ['x = 1', ' ' * 40 + '# deep comment', ' ' * 40, ' ' * 40 + '* doc']
        assert nesting_depth(lines, '.py') == 0

    def test_count_imports(self):
        lines = [
            'import os',
            'from pathlib import Path',
            "const fs = require('fs')",
            'use std::io;',
            'x = 1',
            '# import nothing',
        ]
        assert count_imports(lines) == 4


class TestLongFunctions:

    def test_python_function_over_limit(self):
        assert long_python_functions(python_function(85)) == [LongFunction(start_line=1, lines=86)]

    def test_python_function_at_limit(self):
        assert long_python_functions(python_function(79)) == []

    def test_python_function_ends_at_dedent(self):
        lines = python_function(85) + ['', 'def small():', '    return 1']
        [func] = long_python_functions(lines)
        assert func.lines == 86

    def test_python_blank_lines_inside_body(self):
        lines = ['def f():'] + ['    x = 1', ''] * 45 + ['    return x']
        [func] = long_python_functions(lines)
        assert func.lines == 92

    def test_python_method(self):
        lines = ['class Handler:', '    def run(self):'] + ['        step()'] * 90
        assert long_python_functions(lines) == [LongFunction(start_line=2, lines=91)]

    def test_braced_function(self):
        lines = ['function render() {'] + ['  draw();'] * 85 + ['}']
        assert long_braced_functions(lines) == [LongFunction(start_line=1, lines=87)]

    def test_arrow_function(self):
        lines = ['export const render = async () => {'] + ['  draw();'] * 85 + ['};']
        assert long_braced_functions(lines) == [LongFunction(start_line=1, lines=87)]

    def test_dispatch_by_extension(self):
        lines = python_function(90)
        assert long_functions(lines, '.py')
        assert long_functions(['function f() {', '}'], '.js') == []


class TestStructureAnalyzer:

    def test_god_file(self, analyzer, make_context):
        context = make_context({'big.py': 'x = 1\n' * 501})
        [finding] = analyzer.analyze(context).findings
        assert finding.title == 'God file: big.py (501 lines)'
        assert finding.severity is Severity.MEDIUM
        assert finding.line is None

    def test_large_file(self, analyzer, make_context):
        [finding] = analyzer.analyze(make_context({'mid.js': 'x();\n' * 301})).findings
        assert finding.title == 'Large file: mid.js (301 lines)'
        assert finding.severity is Severity.LOW

    def test_deep_nesting(self, analyzer, make_context):
        content = 'if (a) {\n' + ' ' * 12 + 'deep();\n}\n'
        [finding] = analyzer.analyze(make_context({'nest.js': content})).findings
        assert finding.title == 'Deep nesting in nest.js (6 levels)'

    def test_high_import_count(self, analyzer, make_context):
        content = ''.join(f'import mod{i}\n' for i in range(11))
        [finding] = analyzer.analyze(make_context({'hub.py': content})).findings
        assert finding.title == 'High import count in hub.py (11 imports)'

    def test_long_function_has_line(self, analyzer, make_context):
        content = 'import os\n\n' + '\n'.join(python_function(85)) + '\n'
        [finding] = analyzer.analyze(make_context({'views.py': content})).findings
        assert finding.line == 3
        assert finding.title == 'Long function in views.py (~86 lines at line 3)'

    def test_stats(self, analyzer, make_context):
        context = make_context({
            'a.py': 'x = 1\n' * 10,
            'b.js': 'y();\n' * 20,
            'README.md': 'docs\n' * 100,
        })
        result = analyzer.analyze(context)
        assert result.findings == []
        assert result.stats == {
            'totalFiles': 3,
            'totalLines': 30,
            'codeFiles': 2,
            'avgFileSize': 15,
            'largestFiles': [{'file': 'b.js', 'lines': 20}, {'file': 'a.py', 'lines': 10}],
        }

    def test_no_code_files(self, analyzer, make_context):
        stats = analyzer.analyze(make_context({'notes.txt': 'hello\n'})).stats
        assert stats['codeFiles'] == 0
        assert stats['avgFileSize'] == 0
