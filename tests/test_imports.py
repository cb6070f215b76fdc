"""
Tests for the import graph analyzer
"""
from collections import OrderedDict

import pytest

from codeaudit.analyzers.imports import (
    ImportsAnalyzer,
    build_graph,
    extract_imports,
    find_cycles,
    find_hubs,
    python_specifier_to_path,
    resolve_import,
)
from codeaudit.core.severity import Severity


@pytest.fixture
def analyzer():
    return ImportsAnalyzer()


class TestExtraction:

    @pytest.mark.parametrize('specifier, path', [
        ('.', './'),
        ('.utils', './utils'),
        ('.core.files', './core/files'),
        ('..core.files', '../core/files'),
        ('...shared', '../../shared'),
    ])
    def test_python_specifier_to_path(self, specifier, path):
        assert python_specifier_to_path(specifier) == path

    def test_relative_specifiers_only(self):
        lines = [
            "import a from './a'",
            "const b = require('../b')",
            "import React from 'react'",
            "const c = await import('./c')",
            "export { d } from './d'",
            "from .models import User",
            "from . import views",
            "import os",
            "",
        ]
        assert extract_imports(lines) == ['./a', '../b', './c', './d', './models', './views']

    @pytest.mark.parametrize('line, expected', [
        ('from . import utils', ['./utils']),
        ('from . import models, views as v', ['./models', './views']),
        ('from .. import (shared,', ['../shared']),
        ('from . import *', ['./']),
        ('from . import (', ['./']),
    ])
    def test_python_names_from_package(self, line, expected):
        assert extract_imports([line]) == expected


class TestResolution:

    KNOWN = {'src/a.js', 'src/b/index.ts', 'src/c.tsx', 'pkg/__init__.py', 'pkg/models.py', 'main.py'}

    @pytest.mark.parametrize('specifier, from_file, expected', [
        ('./a', 'src/main.js', 'src/a.js'),
        ('./a.js', 'src/main.js', 'src/a.js'),
        ('./b', 'src/main.js', 'src/b/index.ts'),
        ('./c', 'src/main.js', 'src/c.tsx'),
        ('./models', 'pkg/views.py', 'pkg/models.py'),
        ('./', 'pkg/views.py', 'pkg/__init__.py'),
        ('./pkg', 'main.py', 'pkg/__init__.py'),
        ('../main', 'pkg/views.py', 'main.py'),
    ])
    def test_resolves(self, specifier, from_file, expected):
        assert resolve_import(specifier, from_file, self.KNOWN) == expected

    @pytest.mark.parametrize('specifier, from_file', [
        ('./missing', 'src/main.js'),
        ('../../outside', 'src/main.js'),
        ('../escape', 'main.py'),
    ])
    def test_unresolved(self, specifier, from_file):
        assert resolve_import(specifier, from_file, self.KNOWN) is None


class TestGraph:

    def test_edges_and_degrees(self):
        graph = build_graph(OrderedDict([
            ('a.js', ["import b from './b'", "import c from './c'", "import x from './missing'"]),
            ('b.js', ["import c from './c'"]),
            ('c.js', []),
        ]))
        assert graph.adjacency == {'a.js': {'b.js', 'c.js'}, 'b.js': {'c.js'}, 'c.js': set()}
        assert graph.in_degree == {'b.js': 1, 'c.js': 2}
        assert graph.out_degree == {'a.js': 2, 'b.js': 1, 'c.js': 0}
        assert graph.edge_count == 3

    def test_duplicate_imports_count_once(self):
        graph = build_graph({'a.js': ["import b from './b'", "const b2 = require('./b')"], 'b.js': []})
        assert graph.out_degree['a.js'] == 1

    def test_package_init_self_import_dropped(self):
        graph = build_graph({'pkg/__init__.py': ['from . import VERSION'], 'pkg/models.py': []})
        assert graph.adjacency['pkg/__init__.py'] == set()
        assert find_cycles(graph.adjacency) == []

    def test_name_import_resolves_to_sibling_module(self):
        graph = build_graph({
            'pkg/__init__.py': ['from .models import Model'],
            'pkg/models.py': ['from . import utils', 'from . import VERSION'],
            'pkg/utils.py': [],
        })
        assert graph.adjacency['pkg/models.py'] == {'pkg/utils.py', 'pkg/__init__.py'}

    def test_name_import_falls_back_to_package(self):
        graph = build_graph({'pkg/__init__.py': [], 'pkg/views.py': ['from . import settings']})
        assert graph.adjacency['pkg/views.py'] == {'pkg/__init__.py'}


class TestCycles:

    def test_three_node_cycle(self):
        adjacency = OrderedDict([('a', {'b'}), ('b', {'c'}), ('c', {'a'})])
        assert find_cycles(adjacency) == [['a', 'b', 'c', 'a']]

    def test_two_node_cycle(self):
        assert find_cycles(OrderedDict([('a', {'b'}), ('b', {'a'})])) == [['a', 'b', 'a']]

    def test_acyclic(self):
        assert find_cycles({'a': {'b', 'c'}, 'b': {'c'}, 'c': set()}) == []

    def test_independent_cycles(self):
        adjacency = OrderedDict([('a', {'b'}), ('b', {'a'}), ('x', {'y'}), ('y', {'x'})])
        assert find_cycles(adjacency) == [['a', 'b', 'a'], ['x', 'y', 'x']]

    def test_same_node_set_reported_once(self):
        # b -> a closes a->b->a; a second visit from b must not repeat it
        adjacency = OrderedDict([('a', {'b'}), ('b', {'a', 'c'}), ('c', {'b'})])
        cycles = find_cycles(adjacency)
        assert sorted(tuple(sorted(c[:-1])) for c in cycles) == [('a', 'b'), ('b', 'c')]

    def test_deep_chain_does_not_recurse(self):
        size = 5000
        adjacency = OrderedDict((str(i), {str(i + 1)}) for i in range(size))
        adjacency[str(size)] = {'0'}
        [cycle] = find_cycles(adjacency)
        assert len(cycle) == size + 2


class TestHubs:

    def test_share_threshold(self):
        assert find_hubs({'core.js': 15}, file_count=100) == [('core.js', 15)]
        assert find_hubs({'core.js': 14}, file_count=100) == []

    def test_minimum_importers(self):
        assert find_hubs({'core.js': 10}, file_count=10) == [('core.js', 10)]
        assert find_hubs({'core.js': 2}, file_count=10) == []

    def test_most_imported_first(self):
        hubs = find_hubs({'a.js': 11, 'b.js': 20, 'c.js': 12}, file_count=20)
        assert [path for path, _ in hubs] == ['b.js', 'c.js', 'a.js']


class TestImportsAnalyzer:

    def test_cycle_finding(self, analyzer, make_context):
        context = make_context({
            'a.js': "import { b } from './b'\n",
            'b.js': "import { c } from './c'\n",
            'c.js': "import { a } from './a'\n",
            'README.md': "import x from './a'\n",
        })
        result = analyzer.analyze(context)

        [finding] = result.findings
        assert finding.title == 'Circular import detected (3 files)'
        assert finding.severity is Severity.MEDIUM
        assert finding.file == 'a.js'
        assert 'a.js → b.js → c.js → a.js' in finding.description
        assert result.stats == {
            'filesAnalyzed': 3,
            'totalImportEdges': 3,
            'avgImportsPerFile': 1.0,
            'circularDependencies': 1,
            'hubFiles': [],
        }

    def test_python_package_cycle(self, analyzer, make_context):
        context = make_context({
            'app/__init__.py': '',
            'app/models.py': 'from .views import render\n',
            'app/views.py': 'from .models import Model\n',
        })
        [finding] = analyzer.analyze(context).findings
        assert finding.title == 'Circular import detected (2 files)'

    def test_sibling_import_inside_package_is_not_a_cycle(self, analyzer, make_context):
        context = make_context({
            'app/__init__.py': 'from .models import Model\n',
            'app/models.py': 'from . import utils\n\nclass Model:\n    pass\n',
            'app/utils.py': 'def helper():\n    return 1\n',
        })
        result = analyzer.analyze(context)
        assert result.findings == []
        assert result.stats['circularDependencies'] == 0

    def test_systemic_cycles(self, analyzer, make_context):
        files = {}
        for i in range(6):
            files[f'p{i}a.js'] = f"import x from './p{i}b'\n"
            files[f'p{i}b.js'] = f"import y from './p{i}a'\n"
        findings = analyzer.analyze(make_context(files)).findings

        assert len(findings) == 7
        assert findings[-1].title == '6 circular dependency chains detected'
        assert findings[-1].severity is Severity.HIGH
        assert findings[-1].file is None

    def test_hub_finding(self, analyzer, make_context):
        files = {'core.js': 'export const x = 1\n'}
        for i in range(12):
            files[f'feature{i:02d}.js'] = "import { x } from './core'\n"
        result = analyzer.analyze(make_context(files))

        [hub] = result.findings
        assert hub.title == 'Hub file: core.js (imported by 12 files)'
        assert hub.severity is Severity.LOW
        assert result.stats['hubFiles'] == [{'file': 'core.js', 'importedBy': 12}]

    def test_no_code_files(self, analyzer, make_context):
        result = analyzer.analyze(make_context({'notes.md': 'hello\n'}))
        assert result.findings == []
        assert result.stats['avgImportsPerFile'] == 0
