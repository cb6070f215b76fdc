#!/usr/bin/env python3
"""
Code Audit Ecosystem Detection
Languages, frameworks, package manager and test frameworks from config-file presence
"""

import json
import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set

from codeaudit.core.files import FileInfo, read_content

logger = logging.getLogger(__name__)

EXT_LANGUAGE = {
    '.js': 'JavaScript', '.mjs': 'JavaScript', '.cjs': 'JavaScript', '.jsx': 'JavaScript',
    '.ts': 'TypeScript', '.tsx': 'TypeScript',
    '.py': 'Python',
    '.rb': 'Ruby',
    '.go': 'Go',
    '.rs': 'Rust',
    '.java': 'Java',
    '.kt': 'Kotlin',
    '.scala': 'Scala',
    '.ex': 'Elixir', '.exs': 'Elixir',
    '.erl': 'Erlang',
    '.php': 'PHP',
    '.cs': 'C#',
    '.fs': 'F#',
    '.swift': 'Swift',
    '.m': 'Objective-C',
    '.c': 'C',
    '.cpp': 'C++', '.cc': 'C++',
    '.h': 'C/C++ Header',
    '.hpp': 'C++ Header',
    '.lua': 'Lua',
    '.r': 'R',
    '.dart': 'Dart',
    '.vue': 'Vue',
    '.svelte': 'Svelte',
    '.astro': 'Astro',
    '.css': 'CSS', '.scss': 'SCSS', '.less': 'LESS',
    '.html': 'HTML',
    '.md': 'Markdown', '.mdx': 'MDX',
    '.sql': 'SQL',
    '.sh': 'Shell', '.bash': 'Shell', '.zsh': 'Shell',
    '.yml': 'YAML', '.yaml': 'YAML',
    '.toml': 'TOML',
    '.json': 'JSON',
    '.xml': 'XML',
    '.graphql': 'GraphQL', '.gql': 'GraphQL',
    '.proto': 'Protocol Buffers',
    '.tf': 'Terraform',
    '.hcl': 'HCL',
    '.dockerfile': 'Docker',
}

# (config path, framework) - first match per framework wins
FRAMEWORK_SIGNALS = [
    # Meta-frameworks
    ('astro.config.mjs', 'Astro'),
    ('astro.config.ts', 'Astro'),
    ('next.config.js', 'Next.js'),
    ('next.config.mjs', 'Next.js'),
    ('next.config.ts', 'Next.js'),
    ('nuxt.config.ts', 'Nuxt'),
    ('nuxt.config.js', 'Nuxt'),
    ('remix.config.js', 'Remix'),
    ('svelte.config.js', 'SvelteKit'),
    ('angular.json', 'Angular'),
    ('gatsby-config.js', 'Gatsby'),
    ('gatsby-config.ts', 'Gatsby'),
    # Backend
    ('mix.exs', 'Elixir/Phoenix'),
    ('manage.py', 'Django'),
    ('requirements.txt', 'Python'),
    ('pyproject.toml', 'Python'),
    ('Gemfile', 'Ruby/Rails'),
    ('Cargo.toml', 'Rust'),
    ('go.mod', 'Go'),
    ('pom.xml', 'Java/Maven'),
    ('build.gradle', 'Java/Gradle'),
    ('build.gradle.kts', 'Kotlin/Gradle'),
    ('composer.json', 'PHP/Composer'),
    # Mobile
    ('app.json', 'React Native'),
    ('pubspec.yaml', 'Flutter'),
    ('Podfile', 'iOS/CocoaPods'),
    # Frontend tooling
    ('tailwind.config.js', 'Tailwind CSS'),
    ('tailwind.config.ts', 'Tailwind CSS'),
    ('postcss.config.js', 'PostCSS'),
    ('vite.config.js', 'Vite'),
    ('vite.config.ts', 'Vite'),
    ('webpack.config.js', 'Webpack'),
    ('rollup.config.js', 'Rollup'),
    ('tsconfig.json', 'TypeScript'),
    # Infrastructure
    ('docker-compose.yml', 'Docker Compose'),
    ('docker-compose.yaml', 'Docker Compose'),
    ('Dockerfile', 'Docker'),
    ('terraform.tf', 'Terraform'),
    ('.github/workflows', 'GitHub Actions'),
]

FRAMEWORK_DEPENDENCIES = [
    ('react', 'React'),
    ('vue', 'Vue'),
    ('svelte', 'Svelte'),
    ('@angular/core', 'Angular'),
    ('express', 'Express'),
    ('fastify', 'Fastify'),
    ('hono', 'Hono'),
    ('koa', 'Koa'),
    ('nest', 'NestJS'),
    ('@nestjs/core', 'NestJS'),
    ('prisma', 'Prisma'),
    ('@prisma/client', 'Prisma'),
    ('drizzle-orm', 'Drizzle'),
    ('mongoose', 'Mongoose'),
    ('sequelize', 'Sequelize'),
    ('tailwindcss', 'Tailwind CSS'),
    ('@tailwindcss/typography', 'Tailwind Typography'),
]

# Lockfile priority; the first present lockfile names the package manager
PACKAGE_MANAGERS = [
    ('pnpm-lock.yaml', 'pnpm'),
    ('yarn.lock', 'yarn'),
    ('package-lock.json', 'npm'),
    ('bun.lockb', 'bun'),
    ('mix.lock', 'mix'),
    ('Pipfile.lock', 'pipenv'),
    ('poetry.lock', 'poetry'),
    ('Cargo.lock', 'cargo'),
    ('go.sum', 'go'),
    ('Gemfile.lock', 'bundler'),
    ('composer.lock', 'composer'),
    ('pubspec.lock', 'pub'),
]

# Manifest -> ecosystem name used by language-specific auditors
ECOSYSTEM_MANIFESTS = [
    ('requirements.txt', 'python'),
    ('pyproject.toml', 'python'),
    ('setup.py', 'python'),
    ('Pipfile', 'python'),
    ('Cargo.toml', 'rust'),
    ('Gemfile', 'ruby'),
    ('mix.exs', 'elixir'),
]

TEST_DEPENDENCIES = [
    ('jest', 'Jest'),
    ('vitest', 'Vitest'),
    ('mocha', 'Mocha'),
    ('@testing-library/react', 'React Testing Library'),
    ('@testing-library/vue', 'Vue Testing Library'),
    ('cypress', 'Cypress'),
    ('playwright', 'Playwright'),
    ('@playwright/test', 'Playwright'),
    ('ava', 'AVA'),
    ('tap', 'tap'),
    ('supertest', 'Supertest'),
    ('chai', 'Chai'),
]

TEST_CONFIG_SIGNALS = [
    (re.compile(r'jest\.config'), 'Jest'),
    (re.compile(r'vitest\.config'), 'Vitest'),
    (re.compile(r'\.mocharc'), 'Mocha'),
    (re.compile(r'cypress\.config'), 'Cypress'),
    (re.compile(r'playwright\.config'), 'Playwright'),
    (re.compile(r'pytest\.ini|setup\.cfg|conftest\.py'), 'pytest'),
    (re.compile(r'phpunit\.xml'), 'PHPUnit'),
    (re.compile(r'\.rspec'), 'RSpec'),
]


@dataclass
class Ecosystem:
    """What the audited project is built with"""
    primary_language: str = 'Unknown'
    languages: Dict[str, int] = field(default_factory=dict)
    frameworks: List[str] = field(default_factory=list)
    package_manager: Optional[str] = None
    has_lockfile: bool = False
    package_json: Optional[dict] = None
    test_frameworks: List[str] = field(default_factory=list)
    ecosystems: Set[str] = field(default_factory=set)
    total_files: int = 0

    @property
    def tool_ecosystems(self) -> Set[str]:
        """Package manager plus manifest-derived ecosystems, for tool filtering"""
        names = set(self.ecosystems)
        if self.package_manager:
            names.add(self.package_manager)
        return names

    def to_dict(self) -> Dict:
        return {
            'primaryLanguage': self.primary_language,
            'languages': [{'language': k, 'fileCount': v} for k, v in self.languages.items()],
            'frameworks': self.frameworks,
            'packageManager': self.package_manager,
            'hasLockfile': self.has_lockfile,
            'testFrameworks': self.test_frameworks,
            'ecosystems': sorted(self.ecosystems),
            'totalFiles': self.total_files,
        }


def _dependency_names(package_json: Optional[dict]) -> Set[str]:
    if not package_json:
        return set()
    names = set()
    for key in ('dependencies', 'devDependencies'):
        deps = package_json.get(key)
        if isinstance(deps, dict):
            names.update(deps)
    return names


def load_package_json(root: Path) -> Optional[dict]:
    content = read_content(root / 'package.json')
    if content is None:
        return None
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        logger.warning("Malformed package.json: %s", e)
        return None
    return data if isinstance(data, dict) else None


def detect_test_frameworks(package_json: Optional[dict], files: Sequence[FileInfo]) -> List[str]:
    frameworks = []
    dep_names = _dependency_names(package_json)
    for dep, framework in TEST_DEPENDENCIES:
        if dep in dep_names and framework not in frameworks:
            frameworks.append(framework)

    paths = [f.relative_path for f in files]
    for pattern, framework in TEST_CONFIG_SIGNALS:
        if framework not in frameworks and any(pattern.search(p) for p in paths):
            frameworks.append(framework)

    return frameworks


def detect_ecosystem(root: Path, files: Sequence[FileInfo]) -> Ecosystem:
    """
    Classify the project at `root`

    Args:
        root: Project root
        files: The collected file corpus

    Returns:
        Ecosystem facts consumed by analyzers and tool filtering
    """
    root = Path(root)
    eco = Ecosystem(total_files=len(files))

    counts = Counter(EXT_LANGUAGE[f.ext] for f in files if f.ext in EXT_LANGUAGE)
    eco.languages = dict(counts.most_common())
    if eco.languages:
        eco.primary_language = next(iter(eco.languages))

    for config_file, framework in FRAMEWORK_SIGNALS:
        if framework not in eco.frameworks and (root / config_file).exists():
            eco.frameworks.append(framework)

    eco.package_json = load_package_json(root)
    dep_names = _dependency_names(eco.package_json)
    for dep, framework in FRAMEWORK_DEPENDENCIES:
        if dep in dep_names and framework not in eco.frameworks:
            eco.frameworks.append(framework)

    for lockfile, manager in PACKAGE_MANAGERS:
        if (root / lockfile).exists():
            eco.package_manager = manager
            eco.has_lockfile = True
            break

    # package.json without a lockfile: assume npm
    if eco.package_manager is None and eco.package_json is not None:
        eco.package_manager = 'npm'

    for manifest, name in ECOSYSTEM_MANIFESTS:
        if (root / manifest).exists():
            eco.ecosystems.add(name)

    eco.test_frameworks = detect_test_frameworks(eco.package_json, files)

    logger.debug("Ecosystem: %s", eco.to_dict())
    return eco
