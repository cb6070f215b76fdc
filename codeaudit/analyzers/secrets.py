#!/usr/bin/env python3
"""
Code Audit Secrets Analyzer
Hardcoded credentials, committed .env files and .gitignore hygiene.
Tools: TruffleHog, Gitleaks, Semgrep (p/secrets).
"""

import re
from typing import Dict, List, Match, Optional, Tuple

from codeaudit.analyzers.base import AnalysisContext, LinePattern, PatternAnalyzer, rule
from codeaudit.core.files import FileInfo
from codeaudit.core.severity import Finding, Severity

ROTATE = ('Move this secret to an environment variable. If this has been committed, '
          'rotate the credential immediately.')

SECRET_PATTERNS = [
    rule('AWS Access Key ID', r'(?:^|[^A-Z0-9])AKIA[0-9A-Z]{16}(?:[^A-Z0-9]|$)', Severity.CRITICAL,
         'AWS access key ID found. These grant direct access to AWS resources.'),
    rule('AWS Secret Access Key',
         r'''(?:aws_secret_access_key|aws_secret_key)\s*[=:]\s*['"]?[A-Za-z0-9/+=]{40}['"]?''',
         Severity.CRITICAL,
         'AWS secret access key found. Combined with an access key, this grants full AWS access.',
         flags=re.IGNORECASE),
    rule('GitHub Token', r'(?:ghp|gho|ghu|ghs|ghr)_[A-Za-z0-9_]{36,}', Severity.CRITICAL,
         'GitHub personal access token found. Can access repositories and perform actions.'),
    rule('Stripe Secret Key', r'sk_(?:live|test)_[A-Za-z0-9]{24,}', Severity.CRITICAL,
         'Stripe secret key found. Can process charges and access customer data.'),
    rule('Stripe Publishable Key (Test)', r'pk_test_[A-Za-z0-9]{24,}', Severity.LOW,
         'Stripe test publishable key found. Low risk but should still be in env vars.'),
    rule('OpenAI API Key', r'sk-[A-Za-z0-9]{20,}T3BlbkFJ[A-Za-z0-9]{20,}', Severity.HIGH,
         'OpenAI API key found. Can incur charges on the associated account.'),
    rule('Generic API Key Assignment',
         r'''(?:api_key|apikey|api_secret|api_token)\s*[=:]\s*['"][A-Za-z0-9_\-]{20,}['"]''',
         Severity.HIGH, 'Hardcoded API key found. Secrets should be in environment variables.',
         flags=re.IGNORECASE),
    rule('Generic Secret Assignment', r'''(?:secret|password|passwd|token)\s*[=:]\s*['"][^'"]{8,}['"]''',
         Severity.MEDIUM, 'Possible hardcoded secret. Verify this is not a real credential.',
         flags=re.IGNORECASE),
    rule('Private Key Block', r'-----BEGIN (?:RSA |EC |DSA |OPENSSH )?PRIVATE KEY-----', Severity.CRITICAL,
         'Private key found in source code. This must be removed immediately.'),
    rule('Database Connection String',
         r'''(?:mongodb|postgres|postgresql|mysql|redis|amqp)://[^:\s]+:[^@\s]+@[^\s'"]+''',
         Severity.HIGH, 'Database connection string with credentials found. Use environment variables.',
         flags=re.IGNORECASE),
    rule('Slack Token', r'xox[bpors]-[A-Za-z0-9\-]{10,}', Severity.HIGH,
         'Slack token found. Can access workspace messages and data.'),
    rule('Twilio Auth Token', r'''twilio_auth_token\s*[=:]\s*['"]?[a-f0-9]{32}['"]?''', Severity.HIGH,
         'Twilio auth token found. Can send messages and access account.', flags=re.IGNORECASE),
    rule('SendGrid API Key', r'SG\.[A-Za-z0-9_\-]{22}\.[A-Za-z0-9_\-]{43}', Severity.HIGH,
         'SendGrid API key found. Can send emails from the associated account.'),
    rule('Google API Key', r'AIza[A-Za-z0-9_\-]{35}', Severity.HIGH,
         'Google API key found. Depending on scope, may access various Google services.'),
    rule('Heroku API Key', r'''heroku_api_key\s*[=:]\s*['"]?[a-f0-9\-]{36}['"]?''', Severity.HIGH,
         'Heroku API key found. Can manage applications and infrastructure.', flags=re.IGNORECASE),
    rule('JWT Secret', r'''(?:jwt_secret|jwt_key)\s*[=:]\s*['"][^'"]{8,}['"]''', Severity.HIGH,
         'JWT signing secret found. An attacker could forge authentication tokens.', flags=re.IGNORECASE),
    rule('Firebase Config', r'''firebase_api_key\s*[=:]\s*['"]?AIza[A-Za-z0-9_\-]{35}['"]?''', Severity.MEDIUM,
         'Firebase API key found. Should be restricted and not hardcoded.', flags=re.IGNORECASE),
    rule('Anthropic API Key', r'sk-ant-[A-Za-z0-9_\-]{20,}', Severity.HIGH,
         'Anthropic API key found. Can incur charges on the associated account.'),
]

# Files that legitimately contain secret-shaped placeholders
EXAMPLE_ENV_FILES = frozenset({'.env.example', '.env.sample', '.env.template', 'example.env'})
EXAMPLE_MARKERS = ('example', 'sample', 'template')

FIXTURE_MARKERS = ('__fixtures__', '__mocks__', 'test/fixtures', 'testdata')

GITIGNORE_ENV_ENTRIES = frozenset({'.env', '.env*', '*.env', '.env.*'})

SCAN_EXTENSIONS = frozenset({
    '.js', '.mjs', '.cjs', '.jsx', '.ts', '.tsx',
    '.py', '.rb', '.go', '.rs', '.java', '.kt', '.scala',
    '.ex', '.exs', '.php', '.cs', '.swift', '.c', '.cpp',
    '.vue', '.svelte', '.astro',
    '.env', '.cfg', '.conf', '.config', '.ini', '.properties',
    '.yml', '.yaml', '.toml', '.json', '.xml',
    '.sh', '.bash', '.zsh',
    '.tf', '.tfvars',
    '.md',  # docs sometimes carry real keys
})

_QUOTED_TOKEN = re.compile(r'''(['"])[A-Za-z0-9/+=_\-]{16,}\1''')
_ASSIGNED_TOKEN = re.compile(r'([:=]\s*)[A-Za-z0-9/+=_\-]{20,}')
_URL_PASSWORD = re.compile(r'(://[^:/@\s]+:)[^@\s]+@')
_QUOTED_VALUE = re.compile(r'''(['"])[^'"]+\1''')
# A standalone token that is not itself the name being assigned
_BARE_TOKEN = re.compile(r'(?<![\w/+.\-])[A-Za-z0-9][\w/+.\-]{7,}(?![\w/+.\-])(?!\s*[=:])')


def redact_line(line: str) -> str:
    """Replace token-shaped values and URL passwords with [REDACTED] for display"""
    line = _URL_PASSWORD.sub(r'\1[REDACTED]@', line)
    line = _QUOTED_TOKEN.sub(r'\1[REDACTED]\1', line)
    return _ASSIGNED_TOKEN.sub(r'\1[REDACTED]', line)


def redact_match(line: str, match: Match) -> str:
    """Mask the secret inside the span a rule matched, whatever its length"""
    start, end = match.span()
    matched = line[start:end]
    masked = _URL_PASSWORD.sub(r'\1[REDACTED]@', matched)
    if masked == matched:
        masked = _QUOTED_VALUE.sub(r'\1[REDACTED]\1', matched)
    if masked == matched:
        masked = _BARE_TOKEN.sub('[REDACTED]', matched)
    return line[:start] + masked + line[end:]


def is_env_file(name: str) -> bool:
    """A real (non-example) dotenv file: `.env`, `.env.local`, `prod.env`, ..."""
    if name in EXAMPLE_ENV_FILES or any(marker in name for marker in EXAMPLE_MARKERS):
        return False
    return name == '.env' or name.startswith('.env.') or name.endswith('.env')


class SecretsAnalyzer(PatternAnalyzer):
    """Secrets and credential exposure"""

    name = 'secrets'
    uses_tools = True
    PATTERNS = SECRET_PATTERNS
    SCAN_EXTENSIONS = SCAN_EXTENSIONS

    def should_scan(self, file: FileInfo) -> bool:
        if file.name in EXAMPLE_ENV_FILES:
            return False
        if any(marker in file.relative_path for marker in FIXTURE_MARKERS):
            return False
        # .env.local and friends have no .env extension
        return file.ext in self.SCAN_EXTENSIONS or is_env_file(file.name)

    def skip_line(self, trimmed: str) -> bool:
        # Pure comments; commented-out assignments are still scanned
        if trimmed.startswith(('//', '#')):
            return '=' not in trimmed and ':' not in trimmed
        return False

    def snippet(self, line: str, match: Optional[Match] = None) -> str:
        if match is not None:
            line = redact_match(line, match)
        return redact_line(line.strip())

    def remediation(self, pattern: LinePattern) -> Optional[str]:
        return ROTATE

    def check_env_files(self, context: AnalysisContext) -> List[Finding]:
        return [
            self.finding(
                severity=Severity.CRITICAL,
                title=f".env file in repository: {file.relative_path}",
                description=('A .env file is present in the repository. This file typically contains '
                             'secrets and should be in .gitignore.'),
                file=file.relative_path,
                remediation=('Add .env to .gitignore, remove the file from git history using '
                             '`git filter-repo` or BFG Repo Cleaner, and rotate all secrets.'),
            )
            for file in context.files if is_env_file(file.name)
        ]

    def check_gitignore(self, context: AnalysisContext) -> List[Finding]:
        gitignore = context.find_file('.gitignore')
        if gitignore is None:
            return []
        lines = context.read_lines(gitignore)
        if lines is None:
            return []
        if any(line.strip() in GITIGNORE_ENV_ENTRIES for line in lines):
            return []
        return [self.finding(
            severity=Severity.HIGH,
            title='.env not in .gitignore',
            description=('The .gitignore file does not appear to exclude .env files. This increases '
                         'the risk of accidentally committing secrets.'),
            file='.gitignore',
            remediation='Add `.env` and `.env.*` patterns to .gitignore.',
        )]

    def analyze_patterns(self, context: AnalysisContext) -> Tuple[List[Finding], Optional[Dict]]:
        findings = self.check_env_files(context)
        findings.extend(self.check_gitignore(context))
        findings.extend(self.scan_files(context))
        return findings, None
