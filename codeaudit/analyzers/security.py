#!/usr/bin/env python3
"""
Code Audit Security Analyzer
Injection, XSS, weak crypto and insecure configuration anti-patterns.
Tools: Semgrep, ESLint (security plugin), Bandit.
"""

import re

from codeaudit.analyzers.base import CODE_EXTENSIONS, LinePattern, PatternAnalyzer, rule
from codeaudit.core.files import FileInfo
from codeaudit.core.severity import Severity

JS = ('.js', '.mjs', '.cjs', '.jsx', '.ts', '.tsx')
JS_SERVER = ('.js', '.mjs', '.cjs', '.ts', '.tsx')

SECURITY_PATTERNS = [
    # Universal
    rule('eval() usage', r'\beval\s*\(', Severity.HIGH,
         'Use of eval() can execute arbitrary code. This is a common injection vector.',
         'Replace eval() with a safer alternative. Parse JSON with a JSON parser, use AST-based '
         'approaches for code generation.',
         extensions=JS + ('.py', '.rb', '.php')),
    rule('CORS wildcard', r'''(?:Access-Control-Allow-Origin|cors)\s*[:(]\s*['"]?\*''', Severity.MEDIUM,
         'CORS wildcard (*) allows any origin to access this resource. This can enable CSRF attacks.',
         'Restrict CORS to specific trusted origins instead of using wildcard.'),
    rule('Hardcoded CORS origin',
         r'''Access-Control-Allow-Origin['":\s]+(?:http://localhost|http://127\.0\.0\.1)''', Severity.LOW,
         'CORS configured for localhost. Ensure this is not present in production.',
         'Use environment-specific CORS configuration.'),

    # JavaScript / TypeScript
    rule('innerHTML assignment', r'\.innerHTML\s*[=+]', Severity.HIGH,
         'Setting innerHTML with untrusted data enables XSS attacks.',
         'Use textContent for text, or sanitize HTML with DOMPurify before using innerHTML.',
         extensions=JS + ('.vue', '.svelte')),
    rule('document.write()', r'document\.write\s*\(', Severity.MEDIUM,
         'document.write() can be exploited for XSS and causes performance issues.',
         'Use DOM manipulation methods (createElement, appendChild) instead.',
         extensions=JS),
    rule('Prototype pollution risk', r'''\[['"]__proto__['"]\]|\bObject\.assign\(\s*\{\s*\}''', Severity.MEDIUM,
         'Potential prototype pollution vector. Merging untrusted objects can modify Object.prototype.',
         'Validate and sanitize object keys. Use Object.create(null) for dictionaries.',
         extensions=JS),
    rule('dangerouslySetInnerHTML', r'dangerouslySetInnerHTML', Severity.MEDIUM,
         'React dangerouslySetInnerHTML bypasses XSS protection. Ensure input is sanitized.',
         'Sanitize HTML with DOMPurify before passing to dangerouslySetInnerHTML.',
         extensions=('.jsx', '.tsx', '.js', '.ts')),
    rule('Disabled ESLint security rule', r'eslint-disable.*(?:no-eval|no-implied-eval|no-new-func|security)',
         Severity.MEDIUM,
         'Security-related ESLint rule disabled. This may hide real vulnerabilities.',
         'Address the underlying issue instead of disabling the security rule.',
         extensions=JS),
    rule('new Function() constructor', r'new\s+Function\s*\(', Severity.HIGH,
         'new Function() is similar to eval(): it compiles and executes arbitrary code.',
         'Refactor to avoid dynamic code generation. Use configuration objects or strategy patterns.',
         extensions=JS),
    rule('Unvalidated redirect',
         r'(?:res\.redirect|window\.location|location\.href)\s*[=(]\s*(?:req\.|params\.|query\.)',
         Severity.MEDIUM,
         'Redirect target may come from user input. This enables open redirect attacks.',
         'Validate redirect URLs against an allowlist of destinations.',
         extensions=JS_SERVER),
    rule('Weak crypto (MD5/SHA1)', r'''(?:createHash|hashlib\.)\s*\(\s*['"](?:md5|sha1)['"]\s*\)''',
         Severity.MEDIUM,
         'MD5 and SHA1 are cryptographically broken. Do not use for security purposes.',
         'Use SHA-256 or SHA-3 for hashing. Use bcrypt/argon2 for password hashing.',
         extensions=JS_SERVER + ('.py',)),
    rule('Disabled TLS verification',
         r'''(?:NODE_TLS_REJECT_UNAUTHORIZED|rejectUnauthorized)\s*[=:]\s*['"]?(?:0|false)''', Severity.HIGH,
         'TLS certificate verification is disabled. This enables man-in-the-middle attacks.',
         'Enable TLS verification. Fix certificate issues at the source.'),

    # SQL
    rule('SQL injection risk (string concatenation)',
         r'(?:SELECT|INSERT|UPDATE|DELETE|DROP|ALTER|CREATE)\s+.*\+\s*(?:req\.|params\.|query\.|user|input|data)',
         Severity.CRITICAL,
         'SQL query built with string concatenation of user input. Classic SQL injection vulnerability.',
         'Use parameterized queries or an ORM. Never concatenate user input into SQL.',
         extensions=JS_SERVER + ('.py', '.rb', '.php', '.java', '.go'), flags=re.IGNORECASE),
    rule('SQL injection risk (template literal)', r'(?:query|execute|raw)\s*\(\s*`[^`]*\$\{', Severity.HIGH,
         'SQL query uses template literals with interpolated values. Possible SQL injection.',
         'Use parameterized queries. Pass values as parameters, not in the query string.',
         extensions=JS_SERVER),

    # Python
    rule('Python exec()', r'\bexec\s*\(', Severity.HIGH,
         'exec() executes arbitrary Python code. This is a code injection vector.',
         'Replace exec() with a safer alternative. Use AST manipulation for code generation.',
         extensions=('.py',)),
    rule('Python pickle (deserialization)', r'pickle\.(?:loads?|Unpickler)', Severity.HIGH,
         'Pickle deserialization of untrusted data can execute arbitrary code.',
         'Use JSON or a safe serialization format for untrusted data.',
         extensions=('.py',)),
    rule('Python subprocess shell=True', r'subprocess\.\w+\([^)]*shell\s*=\s*True', Severity.HIGH,
         'subprocess with shell=True is vulnerable to command injection.',
         'Use subprocess with a list of arguments instead of shell=True.',
         extensions=('.py',)),

    # PHP
    rule('PHP system/exec/shell_exec', r'(?:system|exec|shell_exec|passthru|popen)\s*\(\s*\$', Severity.CRITICAL,
         'Shell command execution with variable input. Command injection vulnerability.',
         'Use escapeshellarg() and escapeshellcmd(), or avoid shell commands entirely.',
         extensions=('.php',)),

    # Infrastructure
    rule('Debug mode enabled', r'''(?:DEBUG|debug)\s*[=:]\s*(?:true|True|1|['"]true['"])''', Severity.LOW,
         'Debug mode appears to be enabled. Ensure this is not active in production.',
         'Use environment variables to control debug mode. Disable in production.'),
    rule('Exposed error details', r'(?:stack|stackTrace|stack_trace|traceback)\s*[)}\]]*\s*$', Severity.LOW,
         'Stack traces may be exposed to users. This leaks internal implementation details.',
         'Log full errors server-side. Show generic error messages to users.'),
    rule('HTTP (not HTTPS) URL',
         r'''['"]http://(?!localhost|127\.0\.0\.1|0\.0\.0\.0|example\.com|schema\.org)''', Severity.LOW,
         'HTTP URL found. Data sent over HTTP is not encrypted.',
         'Use HTTPS for all external URLs.'),
]

SCAN_EXTENSIONS = CODE_EXTENSIONS | {
    '.yml', '.yaml', '.toml', '.json', '.xml',
    '.sh', '.bash', '.zsh',
    '.tf', '.hcl',
}

TEST_FILE = re.compile(r'(?:\.test\.|\.spec\.|__tests__|test_|_test\.)')

MAX_SNIPPET = 200


def is_test_file(relative_path: str) -> bool:
    return TEST_FILE.search(relative_path) is not None


class SecurityAnalyzer(PatternAnalyzer):
    """Security anti-patterns"""

    name = 'security'
    uses_tools = True
    PATTERNS = SECURITY_PATTERNS
    SCAN_EXTENSIONS = SCAN_EXTENSIONS

    def skip_line(self, trimmed: str) -> bool:
        return trimmed.startswith(('//', '#', '*', '/*'))

    def skip_pattern(self, pattern: LinePattern, file: FileInfo) -> bool:
        # Tests use localhost, debug flags and plain http on purpose
        if pattern.severity is Severity.LOW and is_test_file(file.relative_path):
            return True
        return super().skip_pattern(pattern, file)

    def snippet(self, line: str, match=None) -> str:
        trimmed = line.strip()
        if len(trimmed) > MAX_SNIPPET:
            return trimmed[:MAX_SNIPPET] + '...'
        return trimmed
