"""
Tests for the security anti-pattern analyzer
"""
import pytest

from codeaudit.analyzers.security import SecurityAnalyzer, is_test_file
from codeaudit.core.severity import Severity


@pytest.fixture
def analyzer():
    return SecurityAnalyzer()


def scan(analyzer, make_context, files):
    return analyzer.analyze(make_context(files)).findings


class TestDetection:

    # TRUE POSITIVES - Should detect

    def test_inner_html(self, analyzer, make_context):
        [finding] = scan(analyzer, make_context, {'src/app.js': 'el.innerHTML = userInput;\n'})
        assert finding.title == 'innerHTML assignment in src/app.js'
        assert finding.severity is Severity.HIGH
        assert finding.line == 1
        assert finding.snippet == 'el.innerHTML = userInput;'

    def test_python_eval(self, analyzer, make_context):
        [finding] = scan(analyzer, make_context, {'calc.py': 'x = 1\nresult = eval(expr)\n'})
        assert finding.title == 'eval() usage in calc.py'
        assert finding.line == 2

    def test_sql_concatenation(self, analyzer, make_context):
        content = "db.query('SELECT * FROM users WHERE id = ' + req.params.id)\n"
        [finding] = scan(analyzer, make_context, {'routes/users.ts': content})
        assert finding.severity is Severity.CRITICAL

    def test_subprocess_shell(self, analyzer, make_context):
        [finding] = scan(analyzer, make_context, {'run.py': 'subprocess.run(cmd, shell=True)\n'})
        assert finding.title.startswith('Python subprocess shell=True')

    def test_tls_verification_disabled(self, analyzer, make_context):
        [finding] = scan(analyzer, make_context, {'client.js': "NODE_TLS_REJECT_UNAUTHORIZED = '0'\n"})
        assert finding.severity is Severity.HIGH

    def test_plain_http_url(self, analyzer, make_context):
        [finding] = scan(analyzer, make_context, {'client.js': "const api = 'http://api.internal.io';\n"})
        assert finding.severity is Severity.LOW

    def test_long_snippet_truncated(self, analyzer, make_context):
        line = 'value = eval(' + 'a' * 300 + ')'
        [finding] = scan(analyzer, make_context, {'long.py': line + '\n'})
        assert len(finding.snippet) == 203
        assert finding.snippet.endswith('...')

    # TRUE NEGATIVES - Should not detect

    def test_comment_lines_skipped(self, analyzer, make_context):
        content = '// eval(x)\n# eval(y)\n * el.innerHTML = z\n/* document.write(q) */\n'
        assert scan(analyzer, make_context, {'a.js': content, 'b.py': '# eval(z)\n'}) == []

    def test_rule_limited_to_its_languages(self, analyzer, make_context):
        assert scan(analyzer, make_context, {'worker.js': 'exec(cmd)\n'}) == []

    def test_localhost_http_allowed(self, analyzer, make_context):
        assert scan(analyzer, make_context, {'dev.js': "fetch('http://localhost:3000')\n"}) == []

    def test_low_findings_skipped_in_tests(self, analyzer, make_context):
        files = {
            'client.test.js': "const api = 'http://api.internal.io';\n",
            'tests/test_views.py': 'DEBUG = True\n',
        }
        assert scan(analyzer, make_context, files) == []

    def test_high_findings_still_reported_in_tests(self, analyzer, make_context):
        [finding] = scan(analyzer, make_context, {'render.test.js': 'el.innerHTML = html;\n'})
        assert finding.severity is Severity.HIGH

    def test_markdown_not_scanned(self, analyzer, make_context):
        assert scan(analyzer, make_context, {'README.md': 'Never call eval(input)\n'}) == []


class TestHelpers:

    @pytest.mark.parametrize('path, expected', [
        ('src/app.test.ts', True),
        ('src/app.spec.js', True),
        ('src/__tests__/app.js', True),
        ('tests/test_views.py', True),
        ('pkg/views_test.go', True),
        ('src/app.js', False),
        ('src/contest.py', False),
    ])
    def test_is_test_file(self, path, expected):
        assert is_test_file(path) is expected
