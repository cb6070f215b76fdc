"""
Tests for the external tool registry
"""
import pytest

from codeaudit.core.errors import RegistryError
from codeaudit.tools.parsers import PARSERS
from codeaudit.tools.registry import (
    CATEGORIES,
    TOOL_REGISTRY,
    ToolDescriptor,
    get_tool_by_id,
    get_tools_by_category,
    validate_registry,
)


def make_tool(tool_id='fake', categories=('security',), parser_id='sarif', **kwargs):
    return ToolDescriptor(
        id=tool_id,
        name=tool_id.title(),
        categories=categories,
        detect_command=('fake', '--version'),
        run_command=('fake', 'scan'),
        parser_id=parser_id,
        output_format='json',
        install_hint='pip install fake',
        benefit='Finds things.',
        **kwargs
    )


class TestBuiltinRegistry:

    def test_is_valid(self):
        validate_registry(TOOL_REGISTRY)

    def test_ids_unique(self):
        ids = [t.id for t in TOOL_REGISTRY]
        assert len(ids) == len(set(ids)) == 15

    def test_every_parser_registered(self):
        assert all(t.parser_id in PARSERS for t in TOOL_REGISTRY)

    def test_categories_known(self):
        for tool in TOOL_REGISTRY:
            assert set(tool.categories) <= set(CATEGORIES)

    def test_lookup(self):
        assert get_tool_by_id('gitleaks').name == 'Gitleaks'
        assert get_tool_by_id('nope') is None
        assert [t.id for t in get_tools_by_category('imports')] == ['madge']

    def test_semgrep_category_overrides(self):
        semgrep = get_tool_by_id('semgrep')
        assert 'p/secrets' in semgrep.command_for('secrets')
        assert 'p/security-audit' in semgrep.command_for('security')

    def test_command_without_override(self):
        eslint = get_tool_by_id('eslint')
        assert eslint.command_for('security') == eslint.run_command


class TestApplicability:

    def test_unrestricted_tool_applies_everywhere(self):
        assert get_tool_by_id('trivy').applies_to(set())

    def test_restricted_tool(self):
        bandit = get_tool_by_id('bandit')
        assert bandit.applies_to({'python'})
        assert not bandit.applies_to({'npm'})
        assert not bandit.applies_to(set())


class TestValidation:

    def test_duplicate_id(self):
        with pytest.raises(RegistryError):
            validate_registry([make_tool('a'), make_tool('a')])

    def test_unknown_parser(self):
        with pytest.raises(RegistryError):
            validate_registry([make_tool(parser_id='no-such-parser')])

    def test_no_category(self):
        with pytest.raises(RegistryError):
            validate_registry([make_tool(categories=())])
