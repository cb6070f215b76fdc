#!/usr/bin/env python3
"""
Code Audit Tool Registry
Declarative descriptors for the external scanners Code Audit knows how to drive.
Each entry is plain data: how to detect it, how to run it, which parser reads it.
"""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple

from codeaudit.core.errors import RegistryError
from codeaudit.tools.parsers import PARSERS

Command = Tuple[str, ...]

CATEGORIES = ('secrets', 'security', 'dependencies', 'imports')


@dataclass(frozen=True, eq=False)
class ToolDescriptor:
    """Static configuration for one external tool"""
    id: str
    name: str
    categories: Tuple[str, ...]
    detect_command: Command
    run_command: Command
    parser_id: str
    output_format: str
    install_hint: str
    benefit: str
    timeout_ms: int = 60_000
    category_overrides: Dict[str, Command] = field(default_factory=dict)
    ecosystems: Optional[FrozenSet[str]] = None

    def command_for(self, category: str) -> Command:
        """Run command for `category`, honoring per-category overrides"""
        return self.category_overrides.get(category, self.run_command)

    def applies_to(self, ecosystems) -> bool:
        """True when the tool has no ecosystem restriction or one of `ecosystems` matches"""
        if self.ecosystems is None:
            return True
        return bool(self.ecosystems & set(ecosystems))


TOOL_REGISTRY: List[ToolDescriptor] = [
    # === Security / secrets scanners ===
    ToolDescriptor(
        id='semgrep',
        name='Semgrep',
        categories=('secrets', 'security'),
        detect_command=('semgrep', '--version'),
        run_command=('semgrep', 'scan', '--json', '--quiet', '--no-git-ignore'),
        category_overrides={
            'secrets': ('semgrep', 'scan', '--json', '--quiet', '--no-git-ignore',
                        '--config', 'p/secrets'),
            'security': ('semgrep', 'scan', '--json', '--quiet', '--no-git-ignore',
                         '--config', 'p/security-audit', '--config', 'p/owasp-top-ten'),
        },
        parser_id='semgrep-json',
        output_format='json',
        install_hint='brew install semgrep  OR  pip install semgrep',
        benefit='Deep semantic analysis with 2000+ security rules. Finds issues regex cannot.',
        timeout_ms=120_000,
    ),
    ToolDescriptor(
        id='eslint',
        name='ESLint',
        categories=('security',),
        detect_command=('npx', 'eslint', '--version'),
        run_command=('npx', 'eslint', '--format=json', '--no-error-on-unmatched-pattern', '.'),
        parser_id='eslint-json',
        output_format='json',
        install_hint='npm install -D eslint eslint-plugin-security',
        benefit='JavaScript/TypeScript security linting with eslint-plugin-security.',
    ),
    ToolDescriptor(
        id='bandit',
        name='Bandit',
        categories=('security',),
        detect_command=('bandit', '--version'),
        run_command=('bandit', '-r', '-f', 'json', '-q', '.'),
        parser_id='bandit-json',
        output_format='json',
        install_hint='pip install bandit',
        benefit='Python-specific security analysis covering 40+ vulnerability types.',
        ecosystems=frozenset({'python'}),
    ),
    ToolDescriptor(
        id='trufflehog',
        name='TruffleHog',
        categories=('secrets',),
        detect_command=('trufflehog', '--version'),
        run_command=('trufflehog', 'filesystem', '--json', '--no-update', '.'),
        parser_id='trufflehog-json',
        output_format='json',
        install_hint='brew install trufflehog  OR  pip install trufflehog',
        benefit='High-accuracy secret detection with verification. Checks if secrets are actually active.',
        timeout_ms=120_000,
    ),
    ToolDescriptor(
        id='gitleaks',
        name='Gitleaks',
        categories=('secrets',),
        detect_command=('gitleaks', 'version'),
        run_command=('gitleaks', 'detect', '--source', '.', '--report-format', 'json',
                     '--report-path', '/dev/stdout', '--no-git'),
        parser_id='gitleaks-json',
        output_format='json',
        install_hint='brew install gitleaks',
        benefit='Fast secret scanning with 150+ built-in rules. Catches common credential patterns.',
    ),

    # === Dependency auditors ===
    ToolDescriptor(
        id='npm-audit',
        name='npm audit',
        categories=('dependencies',),
        detect_command=('npm', '--version'),
        run_command=('npm', 'audit', '--json'),
        parser_id='npm-audit-json',
        output_format='json',
        install_hint='Bundled with Node.js',
        benefit='Check npm dependencies for known vulnerabilities.',
        timeout_ms=30_000,
        ecosystems=frozenset({'npm'}),
    ),
    ToolDescriptor(
        id='pnpm-audit',
        name='pnpm audit',
        categories=('dependencies',),
        detect_command=('pnpm', '--version'),
        run_command=('pnpm', 'audit', '--json'),
        parser_id='pnpm-audit-json',
        output_format='json',
        install_hint='npm install -g pnpm',
        benefit='Check pnpm dependencies for known vulnerabilities.',
        timeout_ms=30_000,
        ecosystems=frozenset({'pnpm'}),
    ),
    ToolDescriptor(
        id='yarn-audit',
        name='yarn audit',
        categories=('dependencies',),
        detect_command=('yarn', '--version'),
        run_command=('yarn', 'audit', '--json'),
        parser_id='yarn-audit-json',
        output_format='json',
        install_hint='npm install -g yarn',
        benefit='Check Yarn dependencies for known vulnerabilities.',
        timeout_ms=30_000,
        ecosystems=frozenset({'yarn'}),
    ),
    ToolDescriptor(
        id='trivy',
        name='Trivy',
        categories=('dependencies',),
        detect_command=('trivy', '--version'),
        run_command=('trivy', 'fs', '--format', 'json', '--scanners', 'vuln', '.'),
        parser_id='trivy-json',
        output_format='json',
        install_hint='brew install trivy',
        benefit='Comprehensive vulnerability scanner for dependencies, containers, and IaC. Covers all ecosystems.',
        timeout_ms=120_000,
    ),
    ToolDescriptor(
        id='osv-scanner',
        name='OSV-Scanner',
        categories=('dependencies',),
        detect_command=('osv-scanner', '--version'),
        run_command=('osv-scanner', '--format', 'json', '-r', '.'),
        parser_id='osv-scanner-json',
        output_format='json',
        install_hint='go install github.com/google/osv-scanner/cmd/osv-scanner@latest',
        benefit='Google-backed vulnerability database. Cross-ecosystem coverage using OSV.dev.',
    ),
    ToolDescriptor(
        id='mix-audit',
        name='mix audit',
        categories=('dependencies',),
        detect_command=('mix', 'help', 'deps.audit'),
        run_command=('mix', 'deps.audit'),
        parser_id='mix-audit-text',
        output_format='text',
        install_hint='mix archive.install hex mix_audit  (requires Elixir)',
        benefit='Elixir/Hex dependency vulnerability scanning.',
        timeout_ms=30_000,
        ecosystems=frozenset({'elixir', 'mix'}),
    ),
    ToolDescriptor(
        id='cargo-audit',
        name='cargo audit',
        categories=('dependencies',),
        detect_command=('cargo', 'audit', '--version'),
        run_command=('cargo', 'audit', '--json'),
        parser_id='cargo-audit-json',
        output_format='json',
        install_hint='cargo install cargo-audit',
        benefit='Rust crate vulnerability scanning via RustSec advisory database.',
        timeout_ms=30_000,
        ecosystems=frozenset({'rust', 'cargo'}),
    ),
    ToolDescriptor(
        id='pip-audit',
        name='pip-audit',
        categories=('dependencies',),
        detect_command=('pip-audit', '--version'),
        run_command=('pip-audit', '--format=json'),
        parser_id='pip-audit-json',
        output_format='json',
        install_hint='pip install pip-audit',
        benefit='Python dependency vulnerability scanning via PyPI advisory database.',
        timeout_ms=30_000,
        ecosystems=frozenset({'python', 'pipenv', 'poetry'}),
    ),
    ToolDescriptor(
        id='bundler-audit',
        name='bundler-audit',
        categories=('dependencies',),
        detect_command=('bundler-audit', 'version'),
        run_command=('bundler-audit', 'check'),
        parser_id='bundler-audit-text',
        output_format='text',
        install_hint='gem install bundler-audit',
        benefit='Ruby gem vulnerability scanning via Ruby Advisory Database.',
        timeout_ms=30_000,
        ecosystems=frozenset({'ruby', 'bundler'}),
    ),

    # === Import graph ===
    ToolDescriptor(
        id='madge',
        name='Madge',
        categories=('imports',),
        detect_command=('npx', 'madge', '--version'),
        run_command=('npx', 'madge', '--circular', '--json', '.'),
        parser_id='madge-json',
        output_format='json',
        install_hint='npm install -D madge',
        benefit='Accurate circular dependency detection for JavaScript/TypeScript projects.',
        ecosystems=frozenset({'npm', 'pnpm', 'yarn'}),
    ),
]


def validate_registry(registry: Sequence[ToolDescriptor]) -> None:
    """
    Check registry invariants

    Raises:
        RegistryError: duplicate id, empty categories, or unknown parser id
    """
    seen = set()
    for tool in registry:
        if tool.id in seen:
            raise RegistryError(f"Duplicate tool id: {tool.id}")
        seen.add(tool.id)
        if not tool.categories:
            raise RegistryError(f"Tool {tool.id} serves no category")
        if tool.parser_id not in PARSERS:
            raise RegistryError(f"Tool {tool.id} names unknown parser {tool.parser_id!r}")
        if not tool.detect_command or not tool.run_command:
            raise RegistryError(f"Tool {tool.id} has an empty command")


validate_registry(TOOL_REGISTRY)


def get_tool_by_id(tool_id: str) -> Optional[ToolDescriptor]:
    for tool in TOOL_REGISTRY:
        if tool.id == tool_id:
            return tool
    return None


def get_tools_by_category(category: str) -> List[ToolDescriptor]:
    return [t for t in TOOL_REGISTRY if category in t.categories]
