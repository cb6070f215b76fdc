#!/usr/bin/env python3
"""
Code Audit Exceptions
Only contract violations and unrecoverable run failures are raised.
Tool and file failures are contained where they happen.
"""


class CodeAuditError(Exception):
    """Base class for all Code Audit errors"""


class InvalidSeverity(CodeAuditError, ValueError):
    """A finding was constructed with a severity outside the five defined levels"""

    def __init__(self, value):
        self.value = value
        super().__init__(f"Invalid severity: {value!r}")


class InvalidFinding(CodeAuditError, ValueError):
    """A finding was constructed with a malformed source or line"""


class RegistryError(CodeAuditError):
    """The static tool registry is inconsistent"""


class AuditError(CodeAuditError):
    """The audit cannot proceed (missing target, empty corpus)"""
