"""
Tests for the finding schema
"""
import pytest

from codeaudit.core.errors import InvalidFinding, InvalidSeverity
from codeaudit.core.severity import (
    Finding,
    Severity,
    count_by_severity,
    group_by_analyzer,
    sort_findings,
)


def make_finding(severity='medium', analyzer='security', **kwargs):
    return Finding(analyzer=analyzer, severity=severity, title=kwargs.pop('title', 't'),
                   description='d', **kwargs)


class TestSeverity:

    def test_parse_is_case_insensitive(self):
        assert Severity.parse('HIGH') is Severity.HIGH
        assert Severity.parse(' low ') is Severity.LOW
        assert Severity.parse(Severity.INFO) is Severity.INFO

    def test_strict_parse(self):
        assert Severity.parse('high', strict=True) is Severity.HIGH
        assert Severity.parse(Severity.LOW, strict=True) is Severity.LOW
        with pytest.raises(InvalidSeverity):
            Severity.parse(' HIGH ', strict=True)

    @pytest.mark.parametrize('value', ['urgent', '', None, 3])
    def test_parse_rejects_unknown(self, value):
        with pytest.raises(InvalidSeverity):
            Severity.parse(value)

    def test_ordering(self):
        assert Severity.CRITICAL.at_least(Severity.HIGH)
        assert Severity.HIGH.at_least(Severity.HIGH)
        assert not Severity.LOW.at_least(Severity.MEDIUM)
        assert [s.rank for s in Severity] == [0, 1, 2, 3, 4]


class TestFinding:

    def test_severity_string_is_normalized(self):
        finding = make_finding(severity='critical')
        assert finding.severity is Severity.CRITICAL

    @pytest.mark.parametrize('value', [' HIGH ', 'High', 'critical\n'])
    def test_severity_string_must_be_exact(self, value):
        with pytest.raises(InvalidSeverity):
            make_finding(severity=value)

    def test_invalid_severity_rejected(self):
        with pytest.raises(InvalidSeverity):
            make_finding(severity='blocker')

    @pytest.mark.parametrize('line', [0, -3, True, '12'])
    def test_line_must_be_positive_int(self, line):
        with pytest.raises(InvalidFinding):
            make_finding(file='a.js', line=line)

    def test_source_must_be_tool_or_pattern(self):
        with pytest.raises(InvalidFinding):
            make_finding(source='manual')

    def test_location(self):
        assert make_finding(file='a.js', line=4).location == 'a.js:4'
        assert make_finding(file='a.js').location is None
        assert make_finding().location is None

    def test_immutable(self):
        finding = make_finding()
        with pytest.raises(AttributeError):
            finding.title = 'changed'

    def test_to_dict(self):
        data = make_finding(severity=Severity.HIGH, file='a.py', line=2,
                            source='tool', tool_id='bandit').to_dict()
        assert data['severity'] == 'high'
        assert data['toolId'] == 'bandit'
        assert data['source'] == 'tool'
        assert data['line'] == 2


class TestAggregation:

    def test_sort_is_stable_within_severity(self):
        findings = [
            make_finding('low', title='first low'),
            make_finding('critical', title='crit'),
            make_finding('low', title='second low'),
            make_finding('high', title='high'),
        ]
        assert [f.title for f in sort_findings(findings)] == ['crit', 'high', 'first low', 'second low']

    def test_count_by_severity_has_every_level(self):
        counts = count_by_severity([make_finding('high'), make_finding('high'), make_finding('info')])
        assert counts == {'critical': 0, 'high': 2, 'medium': 0, 'low': 0, 'info': 1}

    def test_group_by_analyzer_keeps_first_seen_order(self):
        findings = [
            make_finding(analyzer='tests'),
            make_finding(analyzer='secrets'),
            make_finding(analyzer='tests'),
        ]
        groups = group_by_analyzer(findings)
        assert list(groups) == ['tests', 'secrets']
        assert len(groups['tests']) == 2
