"""
Code Audit Analyzers
One analyzer per audit category, registered in execution order
"""

from codeaudit.analyzers.base import (
    AnalysisContext,
    AnalyzerRegistry,
    AnalyzerResult,
    BaseAnalyzer,
    PatternAnalyzer,
)
from codeaudit.analyzers.structure import StructureAnalyzer
from codeaudit.analyzers.secrets import SecretsAnalyzer
from codeaudit.analyzers.security import SecurityAnalyzer
from codeaudit.analyzers.dependencies import DependenciesAnalyzer
from codeaudit.analyzers.tests import TestsAnalyzer
from codeaudit.analyzers.imports import ImportsAnalyzer
from codeaudit.analyzers.ai_patterns import AIPatternsAnalyzer


def create_registry() -> AnalyzerRegistry:
    """Registry with every category in execution order"""
    registry = AnalyzerRegistry()
    registry.register(StructureAnalyzer())
    registry.register(SecretsAnalyzer())
    registry.register(SecurityAnalyzer())
    registry.register(DependenciesAnalyzer())
    registry.register(TestsAnalyzer())
    registry.register(ImportsAnalyzer())
    registry.register(AIPatternsAnalyzer())
    return registry


# Global analyzer registry
registry = create_registry()

__all__ = [
    'AnalysisContext',
    'AnalyzerRegistry',
    'AnalyzerResult',
    'BaseAnalyzer',
    'PatternAnalyzer',
    'StructureAnalyzer',
    'SecretsAnalyzer',
    'SecurityAnalyzer',
    'DependenciesAnalyzer',
    'TestsAnalyzer',
    'ImportsAnalyzer',
    'AIPatternsAnalyzer',
    'create_registry',
    'registry',
]
