#!/usr/bin/env python3
"""
Code Audit Imports Analyzer
Builds a file-level import graph from relative import specifiers, then
reports circular import chains and hub files that most of the project
depends on. Tools: Madge.
"""

import logging
import posixpath
import re
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Collection, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from codeaudit.analyzers.base import AnalysisContext, BaseAnalyzer
from codeaudit.core.severity import Finding, Severity

logger = logging.getLogger(__name__)

GRAPH_EXTENSIONS = ('.js', '.mjs', '.cjs', '.jsx', '.ts', '.tsx', '.py', '.ex', '.exs')

HUB_MIN_IMPORTERS = 10
HUB_SHARE = 0.15
MAX_HUB_FINDINGS = 5
SYSTEMIC_CYCLE_COUNT = 5

# First match wins per line
IMPORT_PATTERNS = [
    re.compile(r'''(?:import|export)\s+.*?from\s+['"]([^'"]+)['"]'''),
    re.compile(r'''require\s*\(\s*['"]([^'"]+)['"]\s*\)'''),
    re.compile(r'''import\s*\(\s*['"]([^'"]+)['"]\s*\)'''),
]
PYTHON_RELATIVE_IMPORT = re.compile(r'from\s+(\.+[\w.]*)\s+import\s+\(?\s*([\w\s,*]*)')


@dataclass
class ImportGraph:
    """File-level import graph; every edge points at a file of the corpus"""
    adjacency: Dict[str, Set[str]] = field(default_factory=OrderedDict)
    in_degree: Dict[str, int] = field(default_factory=dict)
    out_degree: Dict[str, int] = field(default_factory=dict)

    def add_file(self, path: str, imports: Iterable[str]):
        targets = set(imports)
        self.adjacency[path] = targets
        self.out_degree[path] = len(targets)
        for target in targets:
            self.in_degree[target] = self.in_degree.get(target, 0) + 1

    @property
    def edge_count(self) -> int:
        return sum(self.out_degree.values())


def python_specifier_to_path(specifier: str) -> str:
    """
    Translate a Python relative module into a path relative to the importing file

    '.' is the current package, each extra dot climbs one package, and the
    dotted remainder becomes path segments: '..core.files' -> '../core/files'
    """
    module = specifier.lstrip('.')
    dots = len(specifier) - len(module)
    prefix = './' if dots == 1 else '../' * (dots - 1)
    return prefix + module.replace('.', '/')


def python_import_candidates(module: str, names: str) -> List[Tuple[str, ...]]:
    """
    Paths a Python relative from-import may refer to

    `from .models import User` names a single module. In `from . import a, b`
    each name is usually a sibling module, so './a' is tried before the
    package itself.
    """
    package = python_specifier_to_path(module)
    if module.strip('.'):
        return [(package,)]

    groups = []
    for part in names.split(','):
        words = part.split()
        if words and words[0].isidentifier():
            groups.append((package + words[0], package))
    return groups or [(package,)]


def import_candidates(lines: Sequence[str]) -> List[Tuple[str, ...]]:
    """
    Collect relative imports from source lines

    Each entry holds the specifiers one import may resolve to, most
    specific first. Package imports are ignored.
    """
    groups = []
    for line in lines:
        trimmed = line.strip()
        if not trimmed:
            continue

        matched = False
        for pattern in IMPORT_PATTERNS:
            match = pattern.search(trimmed)
            if match and match.group(1).startswith('.'):
                groups.append((match.group(1),))
                matched = True
                break
        if matched:
            continue

        match = PYTHON_RELATIVE_IMPORT.search(trimmed)
        if match:
            groups.extend(python_import_candidates(match.group(1), match.group(2)))

    return groups


def extract_imports(lines: Sequence[str]) -> List[str]:
    """
    Collect relative import specifiers from source lines

    Only specifiers starting with '.' are returned. Python relative imports
    are returned already translated to paths.
    """
    return [group[0] for group in import_candidates(lines)]


def resolve_import(specifier: str, from_file: str, known_files: Collection[str]) -> Optional[str]:
    """
    Map a relative specifier onto a file of the corpus

    Tries the exact path, then each source extension, then a directory
    index file, then a Python package __init__.py.

    Returns:
        Relative path of the resolved file, or None
    """
    base = posixpath.normpath(posixpath.join(posixpath.dirname(from_file), specifier))
    if base == '..' or base.startswith('../'):
        return None

    candidates = [base]
    candidates.extend(base + ext for ext in GRAPH_EXTENSIONS)
    candidates.extend(f"{base}/index{ext}" for ext in GRAPH_EXTENSIONS)
    candidates.append(f"{base}/__init__.py")

    for candidate in candidates:
        # normpath('.') for "from . import x" at the root
        if candidate.startswith('./'):
            candidate = candidate[2:]
        if candidate in known_files:
            return candidate
    return None


def build_graph(sources: Mapping[str, Sequence[str]]) -> ImportGraph:
    """
    Build the import graph

    Args:
        sources: relative path -> lines, for every file that could be read

    Returns:
        ImportGraph whose nodes are exactly the keys of `sources`
    """
    graph = ImportGraph()
    known = set(sources)
    for path, lines in sources.items():
        resolved = []
        for group in import_candidates(lines):
            target = next(filter(None, (resolve_import(s, path, known) for s in group)), None)
            # `from . import VERSION` inside __init__.py resolves to the file itself
            if target is not None and target != path:
                resolved.append(target)
        graph.add_file(path, resolved)
    return graph


def find_cycles(adjacency: Mapping[str, Collection[str]]) -> List[List[str]]:
    """
    Depth-first cycle search with an explicit stack

    Each cycle is the DFS path from the revisited node to the top of the
    stack, closed by repeating the first node. Rotations of the same node
    set are reported once.
    """
    visited = set()
    on_path = {}  # node -> index in path
    path = []
    cycles = []

    for start in adjacency:
        if start in visited:
            continue
        visited.add(start)
        on_path[start] = 0
        path.append(start)
        stack = [(start, iter(sorted(adjacency.get(start, ()))))]

        while stack:
            node, neighbors = stack[-1]
            for neighbor in neighbors:
                if neighbor in on_path:
                    cycles.append(path[on_path[neighbor]:] + [neighbor])
                elif neighbor not in visited:
                    visited.add(neighbor)
                    on_path[neighbor] = len(path)
                    path.append(neighbor)
                    stack.append((neighbor, iter(sorted(adjacency.get(neighbor, ())))))
                    break
            else:
                stack.pop()
                path.pop()
                del on_path[node]

    unique = []
    seen = set()
    for cycle in cycles:
        key = tuple(sorted(cycle[:-1]))
        if key not in seen:
            seen.add(key)
            unique.append(cycle)
    return unique


def find_hubs(in_degree: Mapping[str, int], file_count: int) -> List[Tuple[str, int]]:
    """Files imported by at least max(10, 15% of the corpus), most imported first"""
    threshold = max(HUB_MIN_IMPORTERS, file_count * HUB_SHARE)
    hubs = [(path, count) for path, count in in_degree.items() if count >= threshold]
    return sorted(hubs, key=lambda hub: hub[1], reverse=True)


class ImportsAnalyzer(BaseAnalyzer):
    """Import graph: circular dependencies and coupling"""

    name = 'imports'
    uses_tools = True

    def analyze_patterns(self, context: AnalysisContext) -> Tuple[List[Finding], Optional[Dict]]:
        code_files = [f for f in context.files if f.ext in GRAPH_EXTENSIONS]

        sources = OrderedDict()
        for file in code_files:
            lines = context.read_lines(file)
            if lines is None:
                logger.debug("imports: %s unreadable, left out of the graph", file.relative_path)
                continue
            sources[file.relative_path] = lines

        graph = build_graph(sources)
        cycles = find_cycles(graph.adjacency)
        hubs = find_hubs(graph.in_degree, len(code_files))

        findings = [self.cycle_finding(cycle) for cycle in cycles]
        findings.extend(self.hub_finding(path, count) for path, count in hubs[:MAX_HUB_FINDINGS])

        if len(cycles) > SYSTEMIC_CYCLE_COUNT:
            findings.append(self.finding(
                severity=Severity.HIGH,
                title=f"{len(cycles)} circular dependency chains detected",
                description=(f"The project has {len(cycles)} circular import chains. This level of circular "
                             f"dependency suggests the module architecture needs restructuring."),
                remediation=('Conduct a dependency audit. Introduce clear module boundaries and '
                             'uni-directional data flow.'),
            ))

        stats = {
            'filesAnalyzed': len(code_files),
            'totalImportEdges': graph.edge_count,
            'avgImportsPerFile': round(graph.edge_count / len(code_files), 1) if code_files else 0,
            'circularDependencies': len(cycles),
            'hubFiles': [{'file': path, 'importedBy': count} for path, count in hubs],
        }
        return findings, stats

    def cycle_finding(self, cycle: List[str]) -> Finding:
        chain = ' → '.join(cycle)
        return self.finding(
            severity=Severity.MEDIUM,
            title=f"Circular import detected ({len(cycle) - 1} files)",
            description=(f"Circular dependency chain: {chain}. Circular imports can cause initialization "
                         f"issues, make testing difficult, and indicate tight coupling."),
            file=cycle[0],
            remediation=('Break the cycle by extracting shared code into a separate module, or use '
                         'dependency injection.'),
        )

    def hub_finding(self, path: str, count: int) -> Finding:
        return self.finding(
            severity=Severity.LOW,
            title=f"Hub file: {path} (imported by {count} files)",
            description=(f"This file is imported by {count} other files, making it a central coupling "
                         f"point. Changes here have a wide blast radius."),
            file=path,
            remediation=('Consider if this module has too many responsibilities. Split into focused '
                         'sub-modules if possible.'),
        )
