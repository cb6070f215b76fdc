"""
Shared fixtures for Code Audit tests
"""
import json
from pathlib import Path

import pytest

from codeaudit.analyzers.base import AnalysisContext
from codeaudit.config import AuditConfig
from codeaudit.core.ecosystem import detect_ecosystem
from codeaudit.core.files import collect_files


@pytest.fixture
def make_project(tmp_path):
    """Write a {relative path: content} mapping under tmp_path and return the root"""
    def _create(files: dict) -> Path:
        for relative, content in files.items():
            path = tmp_path / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, (dict, list)):
                content = json.dumps(content)
            path.write_text(content, encoding='utf-8')
        return tmp_path
    return _create


@pytest.fixture
def make_context(make_project):
    """Build an AnalysisContext over a freshly written project (no tools)"""
    def _create(files: dict, config: AuditConfig = None, available_tools=None) -> AnalysisContext:
        root = make_project(files)
        corpus = collect_files(root)
        return AnalysisContext(
            root=root,
            files=corpus,
            ecosystem=detect_ecosystem(root, corpus),
            available_tools=available_tools or {},
            config=config or AuditConfig(tools_enabled=available_tools is not None),
        )
    return _create


@pytest.fixture
def no_tools(monkeypatch):
    """Make every tool look uninstalled"""
    from codeaudit.tools import runner
    monkeypatch.setattr(runner, 'probe_tool', lambda tool, timeout=None, strict=False: None)
