#!/usr/bin/env python3
"""
Code Audit Dependencies Analyzer
Lockfiles, version pinning and known-problematic packages.
Tools: npm/pnpm/yarn audit, Trivy, OSV-Scanner, pip-audit, cargo-audit,
bundler-audit, mix_audit.
"""

import re
from typing import Dict, List, Optional, Sequence, Tuple

from codeaudit.analyzers.base import AnalysisContext, BaseAnalyzer
from codeaudit.core.severity import Finding, Severity
from codeaudit.tools.runner import ToolRunResult

MAX_PROD_DEPS = 50

UNPINNED_VERSIONS = ('*', 'latest')

# name -> (severity, message)
PROBLEMATIC_PACKAGES = {
    'moment': (Severity.LOW,
               'moment.js is in maintenance mode and adds ~300KB. Consider date-fns, dayjs, or Temporal.'),
    'lodash': (Severity.LOW, 'Full lodash adds ~70KB. Use lodash-es or individual imports.'),
    'request': (Severity.MEDIUM, 'The "request" package is deprecated. Use fetch(), got, or axios.'),
    'node-uuid': (Severity.LOW,
                  'node-uuid is deprecated. Use the built-in crypto.randomUUID() (Node 19+) '
                  'or the "uuid" package.'),
}

PIN_OPERATORS = ('==', '>=', '~=')

GIT_DEPENDENCY = re.compile(r'''git:\s*["'][^"']+["']''')


def _mapping(value) -> Dict:
    return value if isinstance(value, dict) else {}


def vulnerability_summary(findings: Sequence[Finding]) -> Dict[str, int]:
    """Tally tool findings the way package auditors report them"""
    summary = {'critical': 0, 'high': 0, 'moderate': 0, 'low': 0}
    for finding in findings:
        if finding.severity is Severity.CRITICAL:
            summary['critical'] += 1
        elif finding.severity is Severity.HIGH:
            summary['high'] += 1
        elif finding.severity is Severity.MEDIUM:
            summary['moderate'] += 1
        else:
            summary['low'] += 1
    return summary


class DependenciesAnalyzer(BaseAnalyzer):
    """Dependency health"""

    name = 'dependencies'
    uses_tools = True

    def analyze_patterns(self, context: AnalysisContext) -> Tuple[List[Finding], Optional[Dict]]:
        ecosystem = context.ecosystem
        stats = {
            'totalDeps': 0,
            'prodDeps': 0,
            'devDeps': 0,
            'hasLockfile': ecosystem.has_lockfile,
            'packageManager': ecosystem.package_manager,
            'vulnerabilities': None,
        }
        findings = []

        if ecosystem.package_json is not None:
            if not ecosystem.has_lockfile:
                manager = ecosystem.package_manager or 'npm'
                findings.append(self.finding(
                    severity=Severity.HIGH,
                    title='No lockfile found',
                    description=('A package.json exists but no lockfile (package-lock.json, yarn.lock, or '
                                 'pnpm-lock.yaml) was found. Without a lockfile, builds are not reproducible '
                                 'and may install different versions than expected.'),
                    remediation=f"Run `{manager} install` to generate a lockfile and commit it to version control.",
                ))
            findings.extend(self.check_package_json(ecosystem.package_json, stats))

        requirements = context.find_file('requirements.txt')
        if requirements is not None:
            findings.extend(self.check_requirements(context.read_content(requirements)))

        mix = context.find_file('mix.exs')
        if mix is not None:
            findings.extend(self.check_mix(context.read_content(mix)))

        return findings, stats

    def finalize_stats(self, stats: Optional[Dict], tool_results: Sequence[ToolRunResult]) -> Optional[Dict]:
        # First tool that reported anything supplies the vulnerability summary
        for result in tool_results:
            if result.findings:
                stats['vulnerabilities'] = vulnerability_summary(result.findings)
                break
        return stats

    def check_package_json(self, pkg: Dict, stats: Dict) -> List[Finding]:
        """
        Lint a parsed package.json

        Args:
            pkg: Parsed package.json
            stats: Dependency stats, updated in place with the counts

        Returns:
            Findings for package.json
        """
        findings = []
        deps = _mapping(pkg.get('dependencies'))
        dev_deps = _mapping(pkg.get('devDependencies'))
        stats['prodDeps'] = len(deps)
        stats['devDeps'] = len(dev_deps)
        stats['totalDeps'] = len(deps) + len(dev_deps)

        if len(deps) > MAX_PROD_DEPS:
            findings.append(self.finding(
                severity=Severity.MEDIUM,
                title=f"High dependency count ({len(deps)} production deps)",
                description=(f"This project has {len(deps)} production dependencies. A large dependency tree "
                             f"increases attack surface, bundle size, and maintenance burden."),
                remediation=('Audit dependencies. Remove unused packages. Consider lighter alternatives '
                             'for heavy dependencies.'),
            ))

        for name, version in {**deps, **dev_deps}.items():
            if version in UNPINNED_VERSIONS:
                findings.append(self.finding(
                    severity=Severity.HIGH,
                    title=f"Unpinned dependency: {name}@{version}",
                    description=(f'The dependency "{name}" is set to "{version}". This means any version could '
                                 f'be installed, including ones with breaking changes or vulnerabilities.'),
                    file='package.json',
                    remediation=f'Pin to a specific version range: `"{name}": "^x.y.z"`',
                ))

        for name, command in _mapping(pkg.get('scripts')).items():
            if isinstance(command, str) and '--no-verify' in command:
                findings.append(self.finding(
                    severity=Severity.MEDIUM,
                    title=f'Script "{name}" bypasses git hooks (--no-verify)',
                    description=(f'The npm script "{name}" uses --no-verify, which skips pre-commit/pre-push '
                                 f'hooks. This bypasses quality gates.'),
                    file='package.json',
                    remediation='Remove --no-verify from the script. Fix the underlying hook issues instead.',
                ))

        if not pkg.get('engines'):
            findings.append(self.finding(
                severity=Severity.LOW,
                title='No engines field in package.json',
                description=('The package.json does not specify required Node.js version. Different Node '
                             'versions may behave differently.'),
                file='package.json',
                remediation='Add an "engines" field: `"engines": { "node": ">=18" }`',
            ))

        for name, (severity, message) in PROBLEMATIC_PACKAGES.items():
            if name in deps or name in dev_deps:
                findings.append(self.finding(
                    severity=severity,
                    title=f"Problematic dependency: {name}",
                    description=message,
                    file='package.json',
                    remediation=f'Replace "{name}" with a modern alternative.',
                ))

        return findings

    def check_requirements(self, content: Optional[str]) -> List[Finding]:
        if not content:
            return []

        unpinned = 0
        for line in content.splitlines():
            trimmed = line.strip()
            # Comments and pip options (-r, -e, --index-url) carry no version
            if not trimmed or trimmed.startswith(('#', '-')):
                continue
            if not any(op in trimmed for op in PIN_OPERATORS):
                unpinned += 1

        if not unpinned:
            return []
        return [self.finding(
            severity=Severity.MEDIUM,
            title=f"{unpinned} unpinned Python dependencies",
            description=(f"{unpinned} dependencies in requirements.txt lack version constraints. "
                         f"Builds may not be reproducible."),
            file='requirements.txt',
            remediation='Pin all dependencies to specific versions: `package==x.y.z`',
        )]

    def check_mix(self, content: Optional[str]) -> List[Finding]:
        if not content:
            return []

        git_deps = GIT_DEPENDENCY.findall(content)
        if not git_deps:
            return []
        return [self.finding(
            severity=Severity.LOW,
            title=f"{len(git_deps)} git-based Elixir dependencies",
            description=('Git dependencies are less reproducible than Hex packages. They can change '
                         'without version bumps.'),
            file='mix.exs',
            remediation='Prefer Hex packages when available. If using git deps, pin to a specific commit SHA.',
        )]
