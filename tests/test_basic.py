"""
Basic tests for Code Audit
"""
import pytest
from codeaudit.cli import main


def test_import():
    """Test that we can import the main module"""
    assert main is not None


def test_version():
    """Test version is accessible"""
    from codeaudit import __version__
    assert __version__ == "2.0.0"


def test_global_analyzer_registry():
    """Every category is registered once, in execution order"""
    from codeaudit.analyzers import registry
    assert registry.names() == [
        'structure', 'secrets', 'security', 'dependencies', 'tests', 'imports', 'ai-patterns',
    ]


def test_duplicate_analyzer_rejected():
    from codeaudit.analyzers import AnalyzerRegistry, StructureAnalyzer

    registry = AnalyzerRegistry()
    registry.register(StructureAnalyzer())
    with pytest.raises(ValueError):
        registry.register(StructureAnalyzer())
