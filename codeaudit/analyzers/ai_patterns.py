#!/usr/bin/env python3
"""
Code Audit AI Patterns Analyzer
Heuristics for code pasted from AI assistants without review: tool
fingerprints, swallowed errors, elided bodies and leftover debugging.
"""

import re
from typing import List, Sequence

from codeaudit.analyzers.base import LinePattern, PatternAnalyzer, rule
from codeaudit.analyzers.security import is_test_file
from codeaudit.core.files import FileInfo
from codeaudit.core.severity import Finding, Severity

JS = ('.js', '.mjs', '.cjs', '.jsx', '.ts', '.tsx', '.vue', '.svelte', '.astro')

AI_PATTERNS = [
    # Fingerprints
    rule('AI assistant disclaimer', r'as an ai(?: language)? model|i\'m an ai (?:assistant|language model)',
         Severity.LOW,
         'Text typical of an AI assistant reply was left in the source.',
         'Remove conversational text and review the surrounding code before relying on it.',
         flags=re.IGNORECASE),
    rule('AI tool attribution', r'(?:generated|written|created) (?:by|with|using) (?:chatgpt|gpt-?\d|copilot|claude|an? ai)',
         Severity.INFO,
         'Comment states the code was produced by an AI tool.',
         'Make sure generated code was reviewed and tested like any other contribution.',
         flags=re.IGNORECASE),

    # Silent error handling
    rule('Empty catch block', r'catch\s*(?:\([^)]*\))?\s*\{\s*\}', Severity.MEDIUM,
         'Errors are caught and silently discarded. Failures will go unnoticed.',
         'Log the error, rethrow it, or handle it explicitly.',
         extensions=JS + ('.java', '.kt', '.cs', '.php', '.swift', '.scala')),
    rule('Silent except: pass', r'^\s*except\b[^:]*:\s*pass\s*(?:#.*)?$', Severity.MEDIUM,
         'Exceptions are caught and silently discarded. Failures will go unnoticed.',
         'Catch the narrowest exception type and log or re-raise it.',
         extensions=('.py',)),

    # Elided or unfinished bodies
    rule('Elided code placeholder',
         r'(?://|#|/\*)\s*\.\.\.\s*(?:existing|rest of(?: the)?|remaining|other|previous) (?:code|implementation|logic)',
         Severity.MEDIUM,
         'A placeholder comment stands in for code that was never written or was dropped during a paste.',
         'Restore the missing code or remove the placeholder.',
         flags=re.IGNORECASE),
    rule('Placeholder implementation',
         r'(?:TODO|FIXME)\b[:\s].*\b(?:implement(?: this| here| me|ation)?|add (?:your )?(?:logic|implementation)|your code here)',
         Severity.LOW,
         'Function body is still a placeholder. Callers may rely on behavior that does not exist yet.',
         'Implement the function or raise an explicit "not implemented" error.',
         flags=re.IGNORECASE),

    # Leftover debugging
    rule('Debugger statement', r'^\s*debugger\s*;?\s*$', Severity.LOW,
         'A debugger statement halts execution when developer tools are open.',
         'Remove the debugger statement.',
         extensions=JS),
    rule('Python breakpoint', r'\b(?:breakpoint\(\)|pdb\.set_trace\(\))', Severity.LOW,
         'A breakpoint will pause the process waiting for a debugger.',
         'Remove the breakpoint.',
         extensions=('.py',)),
    rule('Leftover console output', r'\bconsole\.(?:log|debug)\s*\(', Severity.INFO,
         'Debug logging left in the code adds noise and may leak data in production.',
         'Remove it or route it through the project logger.',
         extensions=JS),
]

DEBUG_PATTERNS = frozenset({'Debugger statement', 'Python breakpoint', 'Leftover console output'})

EXCEPT_CLAUSE = re.compile(r'^\s*except\b[^:]*:\s*(?:#.*)?$')
BARE_PASS = re.compile(r'^\s*pass\s*(?:#.*)?$')


class AIPatternsAnalyzer(PatternAnalyzer):
    """AI-generated code heuristics"""

    name = 'ai-patterns'
    PATTERNS = AI_PATTERNS

    def skip_pattern(self, pattern: LinePattern, file: FileInfo) -> bool:
        if pattern.name in DEBUG_PATTERNS and is_test_file(file.relative_path):
            return True
        return super().skip_pattern(pattern, file)

    def scan_lines(self, file: FileInfo, lines: Sequence[str]) -> List[Finding]:
        findings = super().scan_lines(file, lines)
        if file.ext == '.py':
            flagged = {f.line for f in findings}
            findings.extend(self.silent_except_blocks(file, lines, flagged))
            findings.sort(key=lambda f: f.line)
        return findings

    def silent_except_blocks(self, file: FileInfo, lines: Sequence[str], flagged) -> List[Finding]:
        """`except ...:` followed by a body that is only `pass`"""
        pattern = next(p for p in AI_PATTERNS if p.name == 'Silent except: pass')
        findings = []
        for index in range(len(lines) - 1):
            number = index + 1
            if number in flagged or not EXCEPT_CLAUSE.match(lines[index]):
                continue
            body = lines[index + 1]
            if not BARE_PASS.match(body):
                continue
            # `pass` followed by more statements in the same block is not silent
            following = next((l for l in lines[index + 2:] if l.strip()), None)
            if following is not None and len(following) - len(following.lstrip()) >= len(body) - len(body.lstrip()):
                continue
            findings.append(self.finding(
                severity=pattern.severity,
                title=f"{pattern.name} in {file.relative_path}",
                description=pattern.description,
                file=file.relative_path,
                line=number,
                snippet=f"{lines[index].strip()} {body.strip()}",
                remediation=pattern.remediation,
            ))
        return findings
