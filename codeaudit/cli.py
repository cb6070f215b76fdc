#!/usr/bin/env python3
"""
Code Audit CLI - Command-line interface
Click-based CLI for auditing a source tree
"""

import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from codeaudit import __version__
from codeaudit.config import CATEGORY_NAMES, FAIL_LEVELS, ConfigManager
from codeaudit.core.errors import AuditError
from codeaudit.logging_config import setup_logging
from codeaudit.tools.registry import CATEGORIES, TOOL_REGISTRY

# Force UTF-8 on Windows terminals so severity emojis render
if sys.platform == 'win32':
    import io
    if isinstance(sys.stdout, io.TextIOWrapper):
        sys.stdout.reconfigure(encoding='utf-8', errors='replace')
    if isinstance(sys.stderr, io.TextIOWrapper):
        sys.stderr.reconfigure(encoding='utf-8', errors='replace')

console = Console()


@click.group(invoke_without_command=True)
@click.option('--version', is_flag=True, help='Show version and exit')
@click.option('-v', '--verbose', is_flag=True, help='Debug logging on stderr')
@click.pass_context
def main(ctx, version, verbose):
    """
    Code Audit - automated code audit

    Walks a project, runs built-in pattern analyzers plus any installed
    external scanners, and writes one consolidated report.

    Examples:
        codeaudit audit .                  # Audit current directory
        codeaudit audit --no-tools .       # Pattern analysis only
        codeaudit audit --fail-on high .   # Exit 1 on HIGH+ findings
        codeaudit tools                    # Which scanners are installed
        codeaudit init                     # Write .codeaudit.yml
    """
    if version:
        click.echo(f"codeaudit v{__version__}")
        ctx.exit(0)

    setup_logging(verbose=verbose)

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@main.command()
@click.argument('target', type=click.Path(exists=True, file_okay=False), default='.')
@click.option('-c', '--config', 'config_path', type=click.Path(exists=True, dir_okay=False), default=None,
              help='Configuration file (default: nearest .codeaudit.yml)')
@click.option('--format', 'output_formats', multiple=True,
              type=click.Choice(['markdown', 'json', 'all']),
              help='Report format(s); can be repeated (default: from config, else markdown)')
@click.option('-o', '--output', type=click.Path(file_okay=False), default=None,
              help='Output directory for reports (default: target directory)')
@click.option('--no-tools', is_flag=True, help='Skip external tools, pattern analysis only')
@click.option('--skip-tool', 'skip_tools', multiple=True, help='Tool id to skip (repeatable)')
@click.option('--skip-category', 'skip_categories', multiple=True,
              type=click.Choice(CATEGORY_NAMES), help='Analyzer category to skip (repeatable)')
@click.option('--dedup-radius', type=click.IntRange(min=0), default=None,
              help='Lines around a tool finding that suppress pattern findings')
@click.option('--fail-on', type=click.Choice(FAIL_LEVELS),
              help='Exit with code 1 if findings at this level or higher exist')
@click.option('--no-report', is_flag=True, help='Print the summary only, write no report files')
def audit(target, config_path, output_formats, output, no_tools, skip_tools, skip_categories,
          dedup_radius, fail_on, no_report):
    """
    Audit a project directory.

    Examples:
        codeaudit audit .
        codeaudit audit --format all -o reports/ ./service
        codeaudit audit --skip-tool semgrep --skip-category ai-patterns .
    """
    from codeaudit.core.orchestrator import AuditOrchestrator
    from codeaudit.core.reporter import print_console_summary
    from codeaudit.core.severity import Severity

    target_path = Path(target).resolve()
    config = ConfigManager.load_config(Path(config_path) if config_path else None, start_path=target_path)

    # CLI flags override the file
    if output_formats:
        formats = list(output_formats)
        config.report_formats = ['markdown', 'json'] if 'all' in formats else formats
    if output:
        config.report_output = output
    if no_tools:
        config.tools_enabled = False
    config.tools_disabled = list(dict.fromkeys(config.tools_disabled + list(skip_tools)))
    config.categories_disabled = list(dict.fromkeys(config.categories_disabled + list(skip_categories)))
    if dedup_radius is not None:
        config.dedup_radius = dedup_radius
    if fail_on:
        config.fail_on = fail_on

    console.print(f"\n[cyan]Target:[/cyan] {target_path}")

    orchestrator = AuditOrchestrator(target_path, config)
    try:
        with console.status("Auditing...") as status:
            orchestrator.progress = lambda message: status.update(message)
            result = orchestrator.run(write_reports=not no_report)
    except AuditError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(2)

    console.print()
    print_console_summary(result, console)

    if config.fail_on:
        threshold = Severity.parse(config.fail_on)
        failing = [f for f in result.findings if f.severity.at_least(threshold)]
        if failing:
            console.print(f"\n[red]Found {len(failing)} findings at {threshold.value.upper()}+ level[/red]")
            sys.exit(1)

    console.print("\n[green]Audit complete[/green]")


@main.command()
@click.option('--category', type=click.Choice(CATEGORIES), default=None,
              help='Only tools serving this category')
@click.option('-c', '--config', 'config_path', type=click.Path(exists=True, dir_okay=False), default=None,
              help='Configuration file (default: nearest .codeaudit.yml)')
def tools(category, config_path):
    """
    List external scanners and whether they are installed.

    Examples:
        codeaudit tools
        codeaudit tools --category dependencies
    """
    from codeaudit.tools.runner import discover_tools

    config = ConfigManager.load_config(Path(config_path) if config_path else None)
    registry = [t for t in TOOL_REGISTRY if category is None or category in t.categories]

    with console.status("Detecting tools..."):
        available = discover_tools(registry, timeout=config.detect_timeout,
                                   strict=config.strict_detection)

    table = Table(title="External Tools", show_header=True, header_style="bold cyan")
    table.add_column("Tool", style="cyan")
    table.add_column("Categories", style="magenta")
    table.add_column("Applies to", style="dim")
    table.add_column("Status")
    table.add_column("Install", style="dim", overflow="fold")

    for tool in registry:
        entry = available.get(tool.id)
        status = f"[green]✓ {entry.version}[/green]" if entry else "[yellow]✗ missing[/yellow]"
        ecosystems = ', '.join(sorted(tool.ecosystems)) if tool.ecosystems else 'any'
        table.add_row(tool.name, ', '.join(tool.categories), ecosystems, status,
                      '' if entry else tool.install_hint)

    console.print(table)
    console.print(f"\n[bold]{len(available)} of {len(registry)} tools installed[/bold]")
    if len(available) < len(registry):
        console.print("[dim]Missing tools are optional; built-in pattern analysis always runs.[/dim]")


@main.command()
@click.argument('target', type=click.Path(exists=True, file_okay=False), default='.')
@click.option('--force', is_flag=True, help='Overwrite an existing configuration')
def init(target, force):
    """
    Write a default .codeaudit.yml into TARGET.
    """
    config_path = Path(target) / ConfigManager.DEFAULT_CONFIG_NAME
    if config_path.exists() and not force:
        console.print(f"[yellow]{config_path} already exists (use --force to overwrite)[/yellow]")
        sys.exit(1)

    config_path = ConfigManager.create_default_config(Path(target))
    if not config_path.exists():
        console.print(f"[red]Could not write {config_path}[/red]")
        sys.exit(1)
    console.print(f"[green]✓ Created {config_path}[/green]")


if __name__ == '__main__':
    main()
