"""
Tests for external tool output parsers

Each parser gets a representative sample of real output; every parser
must swallow malformed input.
"""
import json

import pytest

from codeaudit.core.severity import Severity
from codeaudit.tools.parsers import (
    PARSERS,
    map_audit_severity,
    parse_bandit_json,
    parse_bundler_audit_text,
    parse_cargo_audit_json,
    parse_eslint_json,
    parse_gitleaks_json,
    parse_madge_json,
    parse_mix_audit_text,
    parse_npm_audit_json,
    parse_osv_scanner_json,
    parse_pip_audit_json,
    parse_pnpm_audit_json,
    parse_sarif,
    parse_semgrep_json,
    parse_trivy_json,
    parse_trufflehog_json,
    parse_yarn_audit_json,
)


class TestRobustness:

    @pytest.mark.parametrize('parser_id', sorted(PARSERS))
    @pytest.mark.parametrize('raw', ['', 'not json {', '[1, 2', '"just a string"', 'null'])
    def test_malformed_output_yields_nothing(self, parser_id, raw):
        assert PARSERS[parser_id](raw, 'security', parser_id) == []

    def test_audit_severity_mapping(self):
        assert map_audit_severity('MODERATE') is Severity.MEDIUM
        assert map_audit_severity('critical') is Severity.CRITICAL
        assert map_audit_severity(None) is Severity.MEDIUM
        assert map_audit_severity('weird', default=Severity.LOW) is Severity.LOW


class TestSecurityParsers:

    def test_sarif(self):
        raw = json.dumps({'runs': [{
            'tool': {'driver': {'rules': [{'id': 'R1', 'shortDescription': {'text': 'Rule one'},
                                           'helpUri': 'https://help'}]}},
            'results': [
                {'ruleId': 'R1', 'level': 'error', 'message': {'text': 'Bad thing'},
                 'locations': [{'physicalLocation': {'artifactLocation': {'uri': 'file://src/a.py'},
                                                     'region': {'startLine': 7}}}]},
                {'ruleId': 'R2', 'level': 'note', 'message': {'text': 'Minor'},
                 'locations': [{'physicalLocation': {'region': {'startLine': 0}}}]},
            ],
        }]})
        first, second = parse_sarif(raw, 'security', 'codeql')
        assert first.severity is Severity.HIGH
        assert first.title == 'R1: Bad thing'
        assert first.description == 'Rule one'
        assert first.file == 'src/a.py'
        assert first.line == 7
        assert first.remediation == 'https://help'
        assert first.source == 'tool' and first.tool_id == 'codeql'
        assert second.severity is Severity.LOW
        assert second.line is None

    def test_semgrep_metadata_severity_wins(self):
        raw = json.dumps({'results': [{
            'check_id': 'python.exec', 'path': 'app.py', 'start': {'line': 3},
            'extra': {'message': 'exec', 'severity': 'INFO', 'lines': 'exec(x)',
                      'metadata': {'severity': 'CRITICAL', 'references': ['https://a', 'https://b']}},
        }]})
        [finding] = parse_semgrep_json(raw, 'security', 'semgrep')
        assert finding.severity is Severity.CRITICAL
        assert finding.snippet == 'exec(x)'
        assert finding.remediation == 'https://a, https://b'

    def test_semgrep_redacts_secrets(self):
        raw = json.dumps({'results': [{
            'check_id': 'generic.secrets', 'path': 'config.js', 'start': {'line': 1},
            'extra': {'message': 'Key', 'severity': 'ERROR', 'lines': "key = 'sk_live_abc'"},
        }]})
        [finding] = parse_semgrep_json(raw, 'secrets', 'semgrep')
        assert finding.severity is Severity.HIGH
        assert finding.snippet == '[REDACTED]'

    def test_eslint(self):
        raw = json.dumps([{'filePath': '/p/a.js', 'messages': [
            {'ruleId': 'security/detect-eval', 'severity': 2, 'message': 'eval', 'line': 4},
            {'ruleId': None, 'severity': 1, 'message': 'warn', 'line': 9},
        ]}])
        error, warning = parse_eslint_json(raw, 'security', 'eslint')
        assert error.severity is Severity.MEDIUM
        assert error.remediation == 'Fix or disable rule: security/detect-eval'
        assert warning.severity is Severity.LOW
        assert warning.remediation is None

    def test_bandit_low_confidence_downgraded(self):
        raw = json.dumps({'results': [
            {'test_id': 'B102', 'issue_text': 'exec used', 'issue_severity': 'HIGH',
             'issue_confidence': 'HIGH', 'filename': 'a.py', 'line_number': 2},
            {'test_id': 'B101', 'issue_text': 'assert used', 'issue_severity': 'HIGH',
             'issue_confidence': 'LOW', 'filename': 'b.py', 'line_number': 5},
        ]})
        sure, unsure = parse_bandit_json(raw, 'security', 'bandit')
        assert sure.severity is Severity.HIGH
        assert unsure.severity is Severity.LOW


class TestSecretParsers:

    def test_trufflehog(self):
        lines = [
            json.dumps({'DetectorName': 'AWS', 'Verified': True,
                        'SourceMetadata': {'Data': {'Filesystem': {'file': 'a.env', 'line': 2}}}}),
            'progress: 50%',
            json.dumps({'DetectorName': 'Slack', 'Verified': False}),
        ]
        verified, unverified = parse_trufflehog_json('\n'.join(lines), 'secrets', 'trufflehog')
        assert verified.severity is Severity.CRITICAL
        assert verified.title == 'AWS secret (verified) in a.env'
        assert verified.line == 2
        assert verified.snippet == '[REDACTED]'
        assert unverified.severity is Severity.HIGH
        assert unverified.file is None

    def test_gitleaks(self):
        raw = json.dumps([{'RuleID': 'aws-key', 'Description': 'AWS key', 'File': 'k.py', 'StartLine': 3}])
        [finding] = parse_gitleaks_json(raw, 'secrets', 'gitleaks')
        assert finding.title == 'aws-key: AWS key'
        assert finding.severity is Severity.HIGH
        assert finding.snippet == '[REDACTED]'

    def test_gitleaks_requires_a_list(self):
        assert parse_gitleaks_json('{"RuleID": "x"}', 'secrets', 'gitleaks') == []


class TestDependencyParsers:

    def test_npm_audit(self):
        raw = json.dumps({'vulnerabilities': {
            'lodash': {'severity': 'moderate', 'title': 'Prototype pollution',
                       'url': 'https://gh/advisory', 'fixAvailable': True},
            'left-pad': {'severity': 'critical', 'fixAvailable': False},
        }})
        lodash, left_pad = parse_npm_audit_json(raw, 'dependencies', 'npm-audit')
        assert lodash.severity is Severity.MEDIUM
        assert lodash.file == 'package.json'
        assert 'npm audit fix' in lodash.remediation
        assert left_pad.severity is Severity.CRITICAL
        assert left_pad.remediation.startswith('No automatic fix available')

    def test_pnpm_audit(self):
        raw = json.dumps({'advisories': {'1': {'module_name': 'axios', 'severity': 'high',
                                               'title': 'SSRF', 'recommendation': 'Upgrade'}}})
        [finding] = parse_pnpm_audit_json(raw, 'dependencies', 'pnpm-audit')
        assert finding.title == 'Vulnerable dependency: axios (high)'
        assert finding.remediation == 'Upgrade'

    def test_yarn_audit(self):
        lines = [
            json.dumps({'type': 'auditAdvisory', 'data': {'advisory': {'module_name': 'minimist',
                                                                       'severity': 'low', 'title': 'x'}}}),
            json.dumps({'type': 'auditSummary', 'data': {}}),
        ]
        [finding] = parse_yarn_audit_json('\n'.join(lines), 'dependencies', 'yarn-audit')
        assert finding.severity is Severity.LOW

    def test_trivy(self):
        raw = json.dumps({'Results': [{'Target': 'package-lock.json', 'Vulnerabilities': [
            {'VulnerabilityID': 'CVE-2024-1', 'PkgName': 'ws', 'InstalledVersion': '7.0.0',
             'FixedVersion': '7.5.10', 'Severity': 'CRITICAL', 'Title': 'DoS'},
        ]}]})
        [finding] = parse_trivy_json(raw, 'dependencies', 'trivy')
        assert finding.title == 'CVE-2024-1: ws@7.0.0'
        assert finding.severity is Severity.CRITICAL
        assert finding.file == 'package-lock.json'
        assert finding.remediation == 'Update ws to 7.5.10'

    def test_osv_scanner(self):
        raw = json.dumps({'results': [{'source': {'path': 'requirements.txt'}, 'packages': [{
            'package': {'name': 'jinja2', 'version': '2.0'},
            'vulnerabilities': [{'id': 'GHSA-1', 'summary': 'XSS',
                                 'database_specific': {'severity': 'HIGH'}}],
        }]}]})
        [finding] = parse_osv_scanner_json(raw, 'dependencies', 'osv-scanner')
        assert finding.severity is Severity.HIGH
        assert finding.file == 'requirements.txt'
        assert finding.remediation == 'See https://osv.dev/vulnerability/GHSA-1'

    def test_cargo_audit(self):
        raw = json.dumps({'vulnerabilities': {'list': [{
            'advisory': {'id': 'RUSTSEC-2020-1', 'title': 'Overflow'},
            'package': {'name': 'smallvec', 'version': '1.0.0'},
        }]}})
        [finding] = parse_cargo_audit_json(raw, 'dependencies', 'cargo-audit')
        assert finding.title == 'RUSTSEC-2020-1: smallvec@1.0.0'
        assert finding.file == 'Cargo.toml'
        assert finding.remediation == 'See https://rustsec.org/advisories/RUSTSEC-2020-1'

    @pytest.mark.parametrize('wrap', [lambda deps: {'dependencies': deps}, lambda deps: deps])
    def test_pip_audit_both_shapes(self, wrap):
        deps = [{'name': 'flask', 'version': '0.5',
                 'vulns': [{'id': 'PYSEC-1', 'fix_versions': ['1.0', '2.0'], 'description': 'bad'}]},
                {'name': 'six', 'version': '1.16', 'vulns': []}]
        [finding] = parse_pip_audit_json(json.dumps(wrap(deps)), 'dependencies', 'pip-audit')
        assert finding.title == 'PYSEC-1: flask@0.5'
        assert finding.remediation == 'Update flask to 1.0 or 2.0'

    def test_mix_audit(self):
        raw = ("Package: plug\nTitle: Header injection\nSeverity: high\nURL: https://hex/advisory\n"
               "-----\n"
               "Package: cowboy\nTitle: DoS\n")
        plug, cowboy = parse_mix_audit_text(raw, 'dependencies', 'mix-audit')
        assert plug.title == 'plug: Header injection'
        assert plug.severity is Severity.HIGH
        assert plug.remediation == 'https://hex/advisory'
        assert cowboy.severity is Severity.MEDIUM
        assert cowboy.remediation == 'Update cowboy to a patched version.'

    def test_bundler_audit(self):
        raw = ("Name: rack\nVersion: 2.0.1\nAdvisory: CVE-2019-16782\nCriticality: High\n"
               "URL: https://groups.google.com/rack\nTitle: Possible information leak\n"
               "Solution: upgrade to >= 2.0.8\n\n"
               "Vulnerabilities found!\n")
        [finding] = parse_bundler_audit_text(raw, 'dependencies', 'bundler-audit')
        assert finding.title == 'CVE-2019-16782: rack@2.0.1'
        assert finding.severity is Severity.HIGH
        assert finding.file == 'Gemfile'


class TestImportParsers:

    def test_madge(self):
        raw = json.dumps([['a.js', 'b.js'], ['c.js', 'd.js', 'e.js'], []])
        first, second = parse_madge_json(raw, 'imports', 'madge')
        assert first.title == 'Circular import detected (2 files)'
        assert first.file == 'a.js'
        assert 'c.js → d.js → e.js' in second.description
