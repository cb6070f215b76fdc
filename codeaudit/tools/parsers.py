#!/usr/bin/env python3
"""
Code Audit Tool Output Parsers
One function per external tool format, each turning raw process output into Findings.

Every parser has the signature ``parser(raw, category, tool_id) -> List[Finding]``
and never raises: malformed output degrades to an empty list.
"""

import functools
import json
import logging
import re
from typing import Any, Callable, Dict, List, Optional

from codeaudit.core.severity import Finding, Severity, SOURCE_TOOL

logger = logging.getLogger(__name__)

Parser = Callable[[str, str, str], List[Finding]]

MAX_TITLE = 200
REDACTED = '[REDACTED]'

SARIF_LEVELS = {
    'error': Severity.HIGH,
    'warning': Severity.MEDIUM,
    'note': Severity.LOW,
    'none': Severity.INFO,
}

# npm / pnpm / yarn / generic advisory vocabularies
AUDIT_SEVERITIES = {
    'critical': Severity.CRITICAL,
    'high': Severity.HIGH,
    'moderate': Severity.MEDIUM,
    'medium': Severity.MEDIUM,
    'low': Severity.LOW,
    'info': Severity.INFO,
    'informational': Severity.INFO,
    'unknown': Severity.INFO,
}


def map_audit_severity(value: Any, default: Severity = Severity.MEDIUM) -> Severity:
    """Case-insensitive advisory severity lookup, `default` when unrecognized"""
    if not isinstance(value, str):
        return default
    return AUDIT_SEVERITIES.get(value.strip().lower(), default)


def _title(text: str) -> str:
    return text[:MAX_TITLE]


def _line(value: Any) -> Optional[int]:
    """Accept only positive integer line numbers"""
    if isinstance(value, bool):
        return None
    if isinstance(value, int) and value > 0:
        return value
    if isinstance(value, str) and value.isdigit() and int(value) > 0:
        return int(value)
    return None


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return None


def _dig(data: Any, *keys) -> Any:
    """Nested .get() that tolerates missing levels and non-dict values"""
    for key in keys:
        if isinstance(data, dict):
            data = data.get(key)
        elif isinstance(data, list) and isinstance(key, int):
            data = data[key] if -len(data) <= key < len(data) else None
        else:
            return None
    return data


def _first(*values) -> Any:
    for value in values:
        if value:
            return value
    return None


def _tool_finding(category: str, tool_id: str, **kwargs) -> Finding:
    return Finding(analyzer=category, source=SOURCE_TOOL, tool_id=tool_id, **kwargs)


def never_raise(func: Parser) -> Parser:
    """Contain any parse failure: log it and return no findings"""
    @functools.wraps(func)
    def wrapper(raw: str, category: str, tool_id: str) -> List[Finding]:
        try:
            return func(raw, category, tool_id)
        except Exception as e:
            logger.debug("%s could not parse %s output: %s", func.__name__, tool_id, e)
            return []
    return wrapper


def _json_lines(raw: str):
    """Yield each parseable JSON object from line-delimited output"""
    for line in raw.strip().splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            yield json.loads(line)
        except json.JSONDecodeError:
            continue


@never_raise
def parse_sarif(raw: str, category: str, tool_id: str) -> List[Finding]:
    """Parse SARIF 2.1 output (shared by many scanners)"""
    data = json.loads(raw)
    findings = []

    for run in data.get('runs') or []:
        rules = {rule.get('id'): rule for rule in _dig(run, 'tool', 'driver', 'rules') or []
                 if isinstance(rule, dict)}

        for result in run.get('results') or []:
            rule = rules.get(result.get('ruleId')) or {}
            location = _dig(result, 'locations', 0, 'physicalLocation') or {}
            uri = _dig(location, 'artifactLocation', 'uri')
            message = _dig(result, 'message', 'text')

            findings.append(_tool_finding(
                category, tool_id,
                severity=SARIF_LEVELS.get(result.get('level'), Severity.MEDIUM),
                title=_title(f"{result.get('ruleId') or 'Unknown rule'}: {message or 'No description'}"),
                description=_first(_dig(rule, 'shortDescription', 'text'),
                                   _dig(rule, 'fullDescription', 'text'),
                                   message) or '',
                file=re.sub(r'^file://', '', uri) if isinstance(uri, str) else None,
                line=_line(_dig(location, 'region', 'startLine')),
                snippet=_text(_dig(location, 'region', 'snippet', 'text')),
                remediation=_first(_dig(rule, 'help', 'text'), rule.get('helpUri')),
            ))

    return findings


SEMGREP_SEVERITIES = {
    'ERROR': Severity.HIGH,
    'WARNING': Severity.MEDIUM,
    'INFO': Severity.LOW,
}


@never_raise
def parse_semgrep_json(raw: str, category: str, tool_id: str) -> List[Finding]:
    """Parse `semgrep --json` output"""
    data = json.loads(raw)
    findings = []

    for result in data.get('results') or []:
        extra = result.get('extra') or {}
        metadata = extra.get('metadata') or {}

        # Rule metadata severity wins over the engine level
        meta_severity = str(metadata.get('severity') or '').upper()
        if meta_severity == 'CRITICAL':
            severity = Severity.CRITICAL
        elif meta_severity in ('ERROR', 'HIGH'):
            severity = Severity.HIGH
        else:
            severity = SEMGREP_SEVERITIES.get(extra.get('severity'), Severity.MEDIUM)

        references = metadata.get('references')
        remediation = ', '.join(references) if isinstance(references, list) and references else None

        findings.append(_tool_finding(
            category, tool_id,
            severity=severity,
            title=_title(f"{result.get('check_id')}: {extra.get('message') or 'Finding'}"),
            description=extra.get('message') or result.get('check_id') or '',
            file=result.get('path'),
            line=_line(_dig(result, 'start', 'line')),
            snippet=REDACTED if category == 'secrets' else _text(extra.get('lines')),
            remediation=remediation or extra.get('fix'),
        ))

    return findings


@never_raise
def parse_eslint_json(raw: str, category: str, tool_id: str) -> List[Finding]:
    """Parse `eslint --format=json` output"""
    data = json.loads(raw)
    findings = []

    for file_result in data:
        for msg in file_result.get('messages') or []:
            rule_id = msg.get('ruleId')
            findings.append(_tool_finding(
                category, tool_id,
                severity=Severity.MEDIUM if msg.get('severity') == 2 else Severity.LOW,
                title=_title(f"{rule_id or 'eslint'}: {msg.get('message')}"),
                description=msg.get('message') or '',
                file=file_result.get('filePath'),
                line=_line(msg.get('line')),
                snippet=_text(msg.get('source')),
                remediation=f"Fix or disable rule: {rule_id}" if rule_id else None,
            ))

    return findings


@never_raise
def parse_trivy_json(raw: str, category: str, tool_id: str) -> List[Finding]:
    """Parse `trivy fs --format json` output"""
    data = json.loads(raw)
    findings = []

    for result in data.get('Results') or data.get('results') or []:
        target = result.get('Target') or result.get('target')
        for vuln in result.get('Vulnerabilities') or result.get('vulnerabilities') or []:
            pkg = vuln.get('PkgName') or vuln.get('pkgName') or 'unknown'
            installed = vuln.get('InstalledVersion') or vuln.get('installedVersion') or ''
            fixed = vuln.get('FixedVersion') or vuln.get('fixedVersion') or ''
            vuln_id = vuln.get('VulnerabilityID') or vuln.get('vulnerabilityID') or ''
            url = vuln.get('PrimaryURL') or vuln.get('primaryURL') or vuln_id

            findings.append(_tool_finding(
                category, tool_id,
                severity=map_audit_severity(vuln.get('Severity') or vuln.get('severity')),
                title=_title(f"{vuln_id}: {pkg}@{installed}"),
                description=_first(vuln.get('Description'), vuln.get('description'),
                                   vuln.get('Title'), vuln.get('title')) or '',
                file=target,
                remediation=f"Update {pkg} to {fixed}" if fixed else f"No fix available. See {url}",
            ))

    return findings


BANDIT_SEVERITIES = {
    'HIGH': Severity.HIGH,
    'MEDIUM': Severity.MEDIUM,
    'LOW': Severity.LOW,
}


@never_raise
def parse_bandit_json(raw: str, category: str, tool_id: str) -> List[Finding]:
    """Parse `bandit -f json` output; low-confidence results are downgraded to low"""
    data = json.loads(raw)
    findings = []

    for result in data.get('results') or []:
        severity = BANDIT_SEVERITIES.get(str(result.get('issue_severity') or '').upper(), Severity.MEDIUM)
        if str(result.get('issue_confidence') or '').upper() == 'LOW':
            severity = Severity.LOW

        findings.append(_tool_finding(
            category, tool_id,
            severity=severity,
            title=_title(f"{result.get('test_id')}: {result.get('issue_text')}"),
            description=result.get('issue_text') or '',
            file=result.get('filename'),
            line=_line(result.get('line_number')),
            snippet=_text(result.get('code')),
            remediation=result.get('more_info'),
        ))

    return findings


@never_raise
def parse_trufflehog_json(raw: str, category: str, tool_id: str) -> List[Finding]:
    """Parse `trufflehog --json` line-delimited output"""
    findings = []

    for result in _json_lines(raw):
        if not isinstance(result, dict):
            continue
        fs = _dig(result, 'SourceMetadata', 'Data', 'Filesystem') or {}
        file_path = fs.get('file')
        detector = result.get('DetectorName') or result.get('detectorName') or file_path or 'Unknown'
        verified = bool(result.get('Verified'))
        decoder = result.get('DecoderName')

        title = f"{detector} secret {'(verified)' if verified else '(unverified)'}"
        if file_path:
            title += f" in {file_path}"

        description = f"{detector} detector found a {'verified active' if verified else 'potential'} secret."
        if decoder:
            description += f" Encoding: {decoder}."

        findings.append(_tool_finding(
            category, tool_id,
            severity=Severity.CRITICAL if verified else Severity.HIGH,
            title=_title(title),
            description=description,
            file=file_path,
            line=_line(fs.get('line')),
            snippet=REDACTED,
            remediation=('This secret is confirmed active. Rotate it immediately.' if verified
                         else 'Verify whether this secret is active and rotate if needed.'),
        ))

    return findings


@never_raise
def parse_gitleaks_json(raw: str, category: str, tool_id: str) -> List[Finding]:
    """Parse gitleaks JSON report"""
    data = json.loads(raw)
    if not isinstance(data, list):
        return []

    findings = []
    for leak in data:
        rule_id = leak.get('RuleID') or leak.get('ruleID')
        findings.append(_tool_finding(
            category, tool_id,
            severity=Severity.HIGH,
            title=_title(f"{rule_id or 'secret'}: {leak.get('Description') or 'Secret detected'}"),
            description=leak.get('Description') or f"Secret detected by rule {rule_id}",
            file=leak.get('File') or leak.get('file'),
            line=_line(leak.get('StartLine') or leak.get('startLine')),
            snippet=REDACTED,
            remediation='Remove the secret from source code and rotate the credential.',
        ))

    return findings


@never_raise
def parse_madge_json(raw: str, category: str, tool_id: str) -> List[Finding]:
    """Parse `madge --circular --json` output (a list of cycles)"""
    data = json.loads(raw)
    if not isinstance(data, list):
        return []

    findings = []
    for cycle in data:
        if not isinstance(cycle, list) or not cycle:
            continue
        chain = ' → '.join(str(node) for node in cycle)
        findings.append(_tool_finding(
            category, tool_id,
            severity=Severity.MEDIUM,
            title=f"Circular import detected ({len(cycle)} files)",
            description=(f"Circular dependency chain: {chain}. Circular imports can cause initialization "
                         "issues, make testing difficult, and indicate tight coupling."),
            file=str(cycle[0]),
            remediation='Break the cycle by extracting shared code into a separate module, or use dependency injection.',
        ))

    return findings


@never_raise
def parse_npm_audit_json(raw: str, category: str, tool_id: str) -> List[Finding]:
    """Parse `npm audit --json` (v7+ `vulnerabilities` map)"""
    data = json.loads(raw)
    findings = []

    for name, info in (data.get('vulnerabilities') or {}).items():
        url = info.get('url') or ''
        title = info.get('title') or 'Known vulnerability'
        if info.get('fixAvailable'):
            remediation = f"Run `npm audit fix` or update {name} to a patched version."
        else:
            remediation = f"No automatic fix available. Check {url or 'npm advisory'} for details."

        findings.append(_tool_finding(
            category, tool_id,
            severity=map_audit_severity(info.get('severity')),
            title=_title(f"Vulnerable dependency: {name} ({info.get('severity')})"),
            description=f"{title} in {name}. {url}".strip(),
            file='package.json',
            remediation=remediation,
        ))

    return findings


def _advisory_finding(category: str, tool_id: str, advisory: Dict) -> Finding:
    return _tool_finding(
        category, tool_id,
        severity=map_audit_severity(advisory.get('severity')),
        title=_title(f"Vulnerable dependency: {advisory.get('module_name') or 'unknown'} "
                     f"({advisory.get('severity')})"),
        description=advisory.get('title') or advisory.get('overview') or '',
        file='package.json',
        remediation=advisory.get('recommendation') or advisory.get('url') or 'Check advisory for details.',
    )


@never_raise
def parse_pnpm_audit_json(raw: str, category: str, tool_id: str) -> List[Finding]:
    """Parse `pnpm audit --json` (`advisories` map)"""
    data = json.loads(raw)
    return [_advisory_finding(category, tool_id, advisory)
            for advisory in (data.get('advisories') or {}).values()
            if isinstance(advisory, dict)]


@never_raise
def parse_yarn_audit_json(raw: str, category: str, tool_id: str) -> List[Finding]:
    """Parse `yarn audit --json` line-delimited output"""
    findings = []
    for entry in _json_lines(raw):
        if not isinstance(entry, dict) or entry.get('type') != 'auditAdvisory':
            continue
        advisory = _dig(entry, 'data', 'advisory')
        if isinstance(advisory, dict):
            findings.append(_advisory_finding(category, tool_id, advisory))
    return findings


@never_raise
def parse_osv_scanner_json(raw: str, category: str, tool_id: str) -> List[Finding]:
    """Parse `osv-scanner --format json` output"""
    data = json.loads(raw)
    findings = []

    for result in data.get('results') or []:
        source = _dig(result, 'source', 'path')
        for pkg in result.get('packages') or []:
            info = pkg.get('package') or {}
            for vuln in pkg.get('vulnerabilities') or []:
                vuln_id = vuln.get('id')
                db_severity = _first(_dig(vuln, 'database_specific', 'severity'),
                                     _dig(vuln, 'severity', 0, 'type'))
                findings.append(_tool_finding(
                    category, tool_id,
                    severity=map_audit_severity(db_severity),
                    title=_title(f"{vuln_id}: {info.get('name') or 'unknown'}@{info.get('version') or '?'}"),
                    description=vuln.get('summary') or vuln.get('details') or '',
                    file=source,
                    remediation=f"See https://osv.dev/vulnerability/{vuln_id}" if vuln_id else None,
                ))

    return findings


def _field(block: str, name: str, flags: int = 0) -> Optional[str]:
    match = re.search(rf'{name}:\s*(.+)', block, flags)
    return match.group(1).strip() if match else None


def _token(block: str, name: str, flags: int = 0) -> Optional[str]:
    match = re.search(rf'{name}:\s*(\S+)', block, flags)
    return match.group(1) if match else None


@never_raise
def parse_mix_audit_text(raw: str, category: str, tool_id: str) -> List[Finding]:
    """Parse `mix deps.audit` text blocks separated by dashed rules"""
    findings = []

    for block in re.split(r'\n-{3,}\n', raw):
        package = _token(block, 'Package', re.IGNORECASE)
        title = _field(block, 'Title', re.IGNORECASE)
        if not (package and title):
            continue

        url = _token(block, 'URL', re.IGNORECASE)
        findings.append(_tool_finding(
            category, tool_id,
            severity=map_audit_severity(_token(block, 'Severity', re.IGNORECASE)),
            title=_title(f"{package}: {title}"),
            description=title,
            file='mix.exs',
            remediation=url or f"Update {package} to a patched version.",
        ))

    return findings


@never_raise
def parse_cargo_audit_json(raw: str, category: str, tool_id: str) -> List[Finding]:
    """Parse `cargo audit --json` output"""
    data = json.loads(raw)
    findings = []

    for vuln in _dig(data, 'vulnerabilities', 'list') or []:
        advisory = vuln.get('advisory') or {}
        pkg = vuln.get('package') or {}
        advisory_id = advisory.get('id')

        remediation = advisory.get('url')
        if not remediation and advisory_id:
            remediation = f"See https://rustsec.org/advisories/{advisory_id}"

        findings.append(_tool_finding(
            category, tool_id,
            severity=map_audit_severity(_dig(advisory, 'cvss', 'severity')),
            title=_title(f"{advisory_id or 'RUSTSEC'}: {pkg.get('name') or 'unknown'}@{pkg.get('version') or '?'}"),
            description=advisory.get('title') or advisory.get('description') or '',
            file='Cargo.toml',
            remediation=remediation,
        ))

    return findings


@never_raise
def parse_pip_audit_json(raw: str, category: str, tool_id: str) -> List[Finding]:
    """Parse `pip-audit --format=json` (old list shape and new `dependencies` shape)"""
    data = json.loads(raw)
    deps = data.get('dependencies') if isinstance(data, dict) else data
    findings = []

    for dep in deps or []:
        name = dep.get('name')
        for vuln in dep.get('vulns') or []:
            vuln_id = vuln.get('id')
            fixes = vuln.get('fix_versions') or []
            findings.append(_tool_finding(
                category, tool_id,
                severity=Severity.HIGH,
                title=_title(f"{vuln_id}: {name}@{dep.get('version')}"),
                description=vuln.get('description') or f"Known vulnerability in {name}",
                file='requirements.txt',
                remediation=(f"Update {name} to {' or '.join(fixes)}" if fixes
                             else f"See https://osv.dev/vulnerability/{vuln_id}"),
            ))

    return findings


@never_raise
def parse_bundler_audit_text(raw: str, category: str, tool_id: str) -> List[Finding]:
    """Parse `bundler-audit check` text blocks separated by blank lines"""
    findings = []

    for block in re.split(r'\n\s*\n', raw):
        name = _token(block, 'Name')
        title = _field(block, 'Title')
        if not (name and title):
            continue

        url = _token(block, 'URL')
        findings.append(_tool_finding(
            category, tool_id,
            severity=map_audit_severity(_token(block, 'Criticality', re.IGNORECASE)),
            title=_title(f"{_token(block, 'Advisory') or 'CVE'}: {name}@{_token(block, 'Version') or '?'}"),
            description=title,
            file='Gemfile',
            remediation=url or f"Update {name} to a patched version.",
        ))

    return findings


PARSERS: Dict[str, Parser] = {
    'sarif': parse_sarif,
    'semgrep-json': parse_semgrep_json,
    'eslint-json': parse_eslint_json,
    'trivy-json': parse_trivy_json,
    'bandit-json': parse_bandit_json,
    'trufflehog-json': parse_trufflehog_json,
    'gitleaks-json': parse_gitleaks_json,
    'madge-json': parse_madge_json,
    'npm-audit-json': parse_npm_audit_json,
    'pnpm-audit-json': parse_pnpm_audit_json,
    'yarn-audit-json': parse_yarn_audit_json,
    'osv-scanner-json': parse_osv_scanner_json,
    'mix-audit-text': parse_mix_audit_text,
    'cargo-audit-json': parse_cargo_audit_json,
    'pip-audit-json': parse_pip_audit_json,
    'bundler-audit-text': parse_bundler_audit_text,
}
