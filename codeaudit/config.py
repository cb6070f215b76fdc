#!/usr/bin/env python3
"""
Code Audit Configuration Management
Handles .codeaudit.yml configuration files
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import yaml

from codeaudit import __version__
from codeaudit.core.files import MAX_DEPTH, MAX_FILE_BYTES, MAX_FILES

logger = logging.getLogger(__name__)

CATEGORY_NAMES = ('structure', 'secrets', 'security', 'dependencies', 'tests', 'imports', 'ai-patterns')
REPORT_FORMATS = ('markdown', 'json')
FAIL_LEVELS = ('critical', 'high', 'medium', 'low')


@dataclass
class AuditConfig:
    """Code Audit configuration structure"""

    version: str = __version__

    # Analyzer categories to skip
    categories_disabled: List[str] = field(default_factory=list)

    # External tools
    tools_enabled: bool = True
    tools_disabled: List[str] = field(default_factory=list)
    tool_timeouts: Dict[str, float] = field(default_factory=dict)  # tool id -> seconds
    detect_timeout: float = 10.0
    strict_detection: bool = False
    workers: Optional[int] = None  # None = one thread per tool

    # Pattern findings within this many lines of a tool finding are dropped
    dedup_radius: int = 2

    # File corpus bounds
    max_depth: int = MAX_DEPTH
    max_files: int = MAX_FILES
    max_file_bytes: int = MAX_FILE_BYTES
    exclude_dirs: List[str] = field(default_factory=list)

    # Report
    report_formats: List[str] = field(default_factory=lambda: ['markdown'])
    report_output: Optional[str] = None  # None = target directory

    # Severity threshold for a failing exit code (None = never fail)
    fail_on: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AuditConfig':
        """Create config from dictionary; invalid values keep their defaults"""
        config = cls()
        if not isinstance(data, dict):
            logger.warning("Ignoring configuration: expected a mapping, got %s", type(data).__name__)
            return config

        config.version = str(data.get('version', config.version))

        categories = _section(data, 'categories')
        disabled = _string_list(categories.get('disabled'), 'categories.disabled')
        unknown = [c for c in disabled if c not in CATEGORY_NAMES]
        if unknown:
            logger.warning("Unknown categories in categories.disabled: %s", ', '.join(unknown))
        config.categories_disabled = [c for c in disabled if c in CATEGORY_NAMES]

        tools = _section(data, 'tools')
        if 'enabled' in tools:
            config.tools_enabled = bool(tools['enabled'])
        config.tools_disabled = _string_list(tools.get('disabled'), 'tools.disabled')
        timeouts = tools.get('timeouts') or {}
        if isinstance(timeouts, dict):
            for tool_id, seconds in timeouts.items():
                value = _number(seconds, f'tools.timeouts.{tool_id}', float, minimum=0.1)
                if value is not None:
                    config.tool_timeouts[str(tool_id)] = value
        else:
            logger.warning("Ignoring tools.timeouts: expected a mapping")
        config.detect_timeout = _number(tools.get('detect_timeout'), 'tools.detect_timeout',
                                        float, minimum=0.1, default=config.detect_timeout)
        config.strict_detection = bool(tools.get('strict_detection', config.strict_detection))
        config.workers = _number(tools.get('workers'), 'tools.workers', int, minimum=1, default=None)

        dedup = _section(data, 'dedup')
        config.dedup_radius = _number(dedup.get('radius'), 'dedup.radius', int,
                                      minimum=0, default=config.dedup_radius)

        files = _section(data, 'files')
        config.max_depth = _number(files.get('max_depth'), 'files.max_depth', int,
                                   minimum=0, default=config.max_depth)
        config.max_files = _number(files.get('max_files'), 'files.max_files', int,
                                   minimum=1, default=config.max_files)
        config.max_file_bytes = _number(files.get('max_file_bytes'), 'files.max_file_bytes', int,
                                        minimum=1, default=config.max_file_bytes)
        config.exclude_dirs = _string_list(files.get('exclude_dirs'), 'files.exclude_dirs')

        report = _section(data, 'report')
        formats = _string_list(report.get('formats'), 'report.formats')
        if formats:
            valid = [f for f in formats if f in REPORT_FORMATS]
            if len(valid) != len(formats):
                logger.warning("Unknown report formats ignored: %s",
                               ', '.join(f for f in formats if f not in REPORT_FORMATS))
            config.report_formats = valid or config.report_formats
        if report.get('output'):
            config.report_output = str(report['output'])

        fail_on = data.get('fail_on')
        if fail_on is not None:
            if str(fail_on).lower() in FAIL_LEVELS:
                config.fail_on = str(fail_on).lower()
            else:
                logger.warning("Ignoring fail_on=%r: expected one of %s", fail_on, ', '.join(FAIL_LEVELS))

        return config

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary for YAML export"""
        return {
            'version': self.version,
            'categories': {
                'disabled': self.categories_disabled,
            },
            'tools': {
                'enabled': self.tools_enabled,
                'disabled': self.tools_disabled,
                'timeouts': self.tool_timeouts,
                'detect_timeout': self.detect_timeout,
                'strict_detection': self.strict_detection,
                'workers': self.workers,
            },
            'dedup': {
                'radius': self.dedup_radius,
            },
            'files': {
                'max_depth': self.max_depth,
                'max_files': self.max_files,
                'max_file_bytes': self.max_file_bytes,
                'exclude_dirs': self.exclude_dirs,
            },
            'report': {
                'formats': self.report_formats,
                'output': self.report_output,
            },
            'fail_on': self.fail_on,
        }


def _section(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        logger.warning("Ignoring %s: expected a mapping", key)
        return {}
    return value


def _string_list(value: Any, key: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        logger.warning("Ignoring %s: expected a list", key)
        return []
    return [str(v) for v in value]


def _number(value: Any, key: str, kind: Callable, minimum=None, default=None):
    if value is None:
        return default
    try:
        number = kind(value)
    except (TypeError, ValueError):
        logger.warning("Ignoring %s=%r: not a number", key, value)
        return default
    if minimum is not None and number < minimum:
        logger.warning("Ignoring %s=%r: must be >= %s", key, value, minimum)
        return default
    return number


class ConfigManager:
    """Manage Code Audit configuration files"""

    DEFAULT_CONFIG_NAME = ".codeaudit.yml"

    @staticmethod
    def find_config(start_path: Path = None) -> Optional[Path]:
        """
        Find .codeaudit.yml by walking up the directory tree

        Args:
            start_path: Starting directory (default: current directory)

        Returns:
            Path to .codeaudit.yml or None if not found
        """
        current = Path(start_path or Path.cwd()).resolve()

        while True:
            config_file = current / ConfigManager.DEFAULT_CONFIG_NAME
            if config_file.is_file():
                return config_file
            if current == current.parent:
                return None
            current = current.parent

    @staticmethod
    def load_config(config_path: Path = None, start_path: Path = None) -> AuditConfig:
        """
        Load configuration from .codeaudit.yml

        Args:
            config_path: Path to config file (default: search upward from start_path)
            start_path: Where the upward search starts (default: current directory)

        Returns:
            AuditConfig; defaults when no file exists or the file is malformed
        """
        if config_path is None:
            config_path = ConfigManager.find_config(start_path)

        if config_path is None or not Path(config_path).exists():
            return AuditConfig()

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Failed to load config from %s: %s", config_path, e)
            return AuditConfig()

        if data is None:
            return AuditConfig()

        logger.debug("Loaded configuration from %s", config_path)
        return AuditConfig.from_dict(data)

    @staticmethod
    def save_config(config: AuditConfig, config_path: Path) -> bool:
        """
        Save configuration to .codeaudit.yml

        Returns:
            True if successful
        """
        try:
            config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(config_path, 'w', encoding='utf-8') as f:
                yaml.safe_dump(
                    config.to_dict(),
                    f,
                    default_flow_style=False,
                    sort_keys=False,
                    indent=2
                )
            return True
        except OSError as e:
            logger.error("Failed to save config to %s: %s", config_path, e)
            return False

    @staticmethod
    def create_default_config(project_root: Path) -> Path:
        """
        Create default .codeaudit.yml in project root

        Returns:
            Path to created config file
        """
        config_path = Path(project_root) / ConfigManager.DEFAULT_CONFIG_NAME
        ConfigManager.save_config(AuditConfig(), config_path)
        return config_path
