#!/usr/bin/env python3
"""
Code Audit File Corpus
Bounded, deterministic directory walk plus CRLF-safe line reading
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

logger = logging.getLogger(__name__)

MAX_FILE_BYTES = 2 * 1024 * 1024
MAX_DEPTH = 20
MAX_FILES = 10_000

# Directories that are never part of the audited code
DEFAULT_IGNORE_DIRS = frozenset({
    # VCS
    '.git', '.svn', '.hg',
    # JavaScript / frontend builds
    'node_modules', 'dist', 'build', 'out', '.next', '.nuxt', '.astro',
    '.turbo', '.vercel', '.netlify', '.output',
    # Python
    '__pycache__', '.pytest_cache', '.mypy_cache', 'venv', '.venv', 'env', '.env',
    # Elixir / Rust / Go / Ruby
    '_build', 'deps', '.elixir_ls', 'target', 'vendor',
    # Caches
    'coverage', '.cache', 'tmp', '.tmp',
})

BINARY_EXTENSIONS = frozenset({
    '.png', '.jpg', '.jpeg', '.gif', '.bmp', '.ico', '.webp', '.avif',
    '.svg', '.ttf', '.otf', '.woff', '.woff2', '.eot',
    '.mp3', '.mp4', '.wav', '.ogg', '.webm', '.avi', '.mov',
    '.zip', '.tar', '.gz', '.bz2', '.xz', '.7z', '.rar',
    '.pdf', '.doc', '.docx', '.xls', '.xlsx', '.ppt', '.pptx',
    '.exe', '.dll', '.so', '.dylib', '.bin', '.dat',
    '.pyc', '.pyo', '.class', '.o', '.obj',
    '.db', '.sqlite', '.sqlite3',
    '.lock',
    '.map',
})

# Hidden directories that still hold auditable files
ALLOWED_HIDDEN_DIRS = frozenset({'.github', '.circleci'})


@dataclass(frozen=True)
class FileInfo:
    """One file of the audited corpus"""
    absolute_path: Path
    relative_path: str  # always forward slashes
    ext: str            # lowercased, with leading dot ('' when none)
    size: int

    @property
    def name(self) -> str:
        return self.relative_path.rsplit('/', 1)[-1]

    def to_dict(self):
        return {
            'absolutePath': str(self.absolute_path),
            'relativePath': self.relative_path,
            'extension': self.ext,
            'size': self.size,
        }


def walk(root: Path,
         max_depth: int = MAX_DEPTH,
         max_files: int = MAX_FILES,
         ignore_dirs: Iterable[str] = (),
         ignore_extensions: Iterable[str] = ()) -> Iterator[FileInfo]:
    """
    Walk `root` and yield auditable files in sorted order

    Args:
        root: Directory to walk
        max_depth: Directories nested deeper than this are not entered
        max_files: Stop after yielding this many files
        ignore_dirs: Extra directory names to skip
        ignore_extensions: Extra extensions to skip

    Yields:
        FileInfo for every text file that passes the filters
    """
    root = Path(root).resolve()
    skip_dirs = DEFAULT_IGNORE_DIRS | frozenset(ignore_dirs)
    skip_exts = BINARY_EXTENSIONS | frozenset(e.lower() for e in ignore_extensions)
    yielded = 0

    # Explicit stack so very deep trees never hit the recursion limit
    stack = [(root, 0)]
    while stack:
        directory, depth = stack.pop()
        if depth > max_depth:
            continue

        try:
            entries = sorted(os.scandir(directory), key=lambda e: e.name)
        except OSError as e:
            logger.debug("Skipping unreadable directory %s: %s", directory, e)
            continue

        subdirs = []
        for entry in entries:
            if yielded >= max_files:
                logger.warning("File limit of %d reached, remaining files are not audited", max_files)
                return

            try:
                if entry.is_dir(follow_symlinks=False):
                    if entry.name in skip_dirs:
                        continue
                    if entry.name.startswith('.') and entry.name not in ALLOWED_HIDDEN_DIRS:
                        continue
                    subdirs.append(Path(entry.path))
                    continue

                if not entry.is_file():
                    continue

                ext = os.path.splitext(entry.name)[1].lower()
                if ext in skip_exts:
                    continue

                size = entry.stat().st_size
            except OSError:
                # Vanished between listing and stat
                continue

            path = Path(entry.path)
            yielded += 1
            yield FileInfo(
                absolute_path=path,
                relative_path=path.relative_to(root).as_posix(),
                ext=ext,
                size=size,
            )

        # Reversed so the stack pops subdirectories in sorted order
        for subdir in reversed(subdirs):
            stack.append((subdir, depth + 1))


def collect_files(root: Path, **kwargs) -> List[FileInfo]:
    """Collect walk() into a list"""
    return list(walk(root, **kwargs))


def to_relative(path: Optional[str], root: Path) -> Optional[str]:
    """
    Express a tool-reported path the way the corpus does

    Strips `file://` and leading `./`, converts backslashes, and makes
    absolute paths under `root` relative to it. Absolute paths outside
    `root` are returned unchanged apart from separators.
    """
    if not path:
        return path
    path = path.replace('\\', '/')
    if path.startswith('file://'):
        path = path[len('file://'):]

    if os.path.isabs(path):
        try:
            return Path(path).resolve().relative_to(Path(root).resolve()).as_posix()
        except ValueError:
            return path

    while path.startswith('./'):
        path = path[2:]
    return path


def read_content(path: Path, max_bytes: int = MAX_FILE_BYTES) -> Optional[str]:
    """
    Read a file as UTF-8 text

    Returns:
        File content, or None if the file is unreadable or larger than max_bytes
    """
    try:
        with open(path, 'rb') as f:
            data = f.read(max_bytes + 1)
    except OSError as e:
        logger.debug("Cannot read %s: %s", path, e)
        return None

    if len(data) > max_bytes:
        logger.debug("Skipping %s: larger than %d bytes", path, max_bytes)
        return None

    return data.decode('utf-8', errors='replace')


def read_lines(path: Path, max_bytes: int = MAX_FILE_BYTES) -> Optional[List[str]]:
    """
    Read a file and split it into lines (LF and CRLF both accepted)

    The empty string after a final newline is not returned as a line.
    """
    content = read_content(path, max_bytes=max_bytes)
    if content is None:
        return None

    lines = content.replace('\r\n', '\n').split('\n')
    if lines and lines[-1] == '':
        lines.pop()
    return lines
