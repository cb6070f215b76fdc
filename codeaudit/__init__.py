"""
Code Audit - Static Code Audit Pipeline
Walks a source tree, runs pattern analyzers and external scanners, and renders one report.
"""

__version__ = "2.0.0"
__license__ = "MIT"

# Core modules are imported on-demand to keep `codeaudit --version` fast
# from codeaudit.core import orchestrator, reporter

__all__ = ["__version__"]
