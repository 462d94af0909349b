"""skilldocs CLI — manage and lint skill documents from the terminal.

Commands:
    init        Scaffold a new skill directory
    install     Install a skill from a local path
    list        Show installed skills
    info        Get detailed skill information
    show        Print a skill's SKILL.md or a reference
    search      Search installed skills
    lint        Check front-matter and links of skill directories
    enable      Re-enable a disabled skill
    disable     Hide a skill from the server without uninstalling it
    uninstall   Remove an installed skill
    update      Reinstall a skill from its source
    serve       Start the MCP server on stdio
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table

from . import __version__
from .linter import SkillLinter, discover_skill_dirs, has_errors
from .models import (
    MANIFEST_NAME,
    REFERENCES_DIR,
    LintIssue,
    LintSeverity,
    SkillFrontMatter,
    SkillStatus,
    is_valid_name,
    render_skill_md,
)
from .registry import SkillRegistry

console = Console()


@click.group()
@click.version_option(__version__, prog_name="skilldocs")
@click.option("--verbose", "-v", is_flag=True, help="Log progress to stderr.")
@click.option("--home", type=click.Path(file_okay=False), envvar="SKILLDOCS_HOME", default=None,
              help="skilldocs home (default: $SKILLDOCS_HOME or ~/.skilldocs).")
@click.pass_context
def main(ctx: click.Context, verbose: bool, home: str | None) -> None:
    """skilldocs — instructional skill documents for AI coding assistants.

    Write, lint, install and serve SKILL.md skills.
    """
    if verbose:
        logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")
    ctx.obj = Path(home) if home else None


@main.command()
@click.argument("name")
@click.option("--dir", "directory", default=".", help="Parent directory for the skill.")
@click.option("--description", "desc", default="", help="Skill description.")
def init(name: str, directory: str, desc: str) -> None:
    """Scaffold a new skill directory.

    Creates SKILL.md with front-matter and a linked starter reference.
    """
    if not is_valid_name(name):
        console.print(f"[red]Invalid skill name:[/red] {name} (use kebab-case)")
        sys.exit(1)

    base = Path(directory) / name
    if base.exists():
        console.print(f"[red]Directory already exists:[/red] {base}")
        sys.exit(1)

    (base / REFERENCES_DIR).mkdir(parents=True)
    (base / REFERENCES_DIR / "overview.md").write_text(
        f"# {name} overview\n\nBackground material for the {name} skill.\n"
    )

    front_matter = SkillFrontMatter(
        name=name,
        description=desc or f"Guidance for {name}. Use when working on {name}.",
    )
    body = (
        f"\n# {name}\n\n"
        "## When to use\n\nDescribe the situations this skill covers.\n\n"
        "## Guidance\n\nWrite the instructions here.\n\n"
        f"## References\n\n- [Overview]({REFERENCES_DIR}/overview.md)\n"
    )
    (base / MANIFEST_NAME).write_text(render_skill_md(front_matter, body))

    console.print(f"\n[green]Skill scaffolded:[/green] {base}")
    console.print(f"  {MANIFEST_NAME}         — front-matter and guidance")
    console.print(f"  {REFERENCES_DIR}/       — supporting documents")
    console.print(f"\nNext: edit {MANIFEST_NAME}, then [cyan]skilldocs lint {base}[/cyan]")


@main.command()
@click.argument("source", type=click.Path(exists=True, file_okay=False))
@click.option("--force", is_flag=True, help="Overwrite existing installation.")
def install(source: str, force: bool) -> None:
    """Install a skill from a local directory."""
    registry = _registry()
    try:
        installed = registry.install(Path(source), force=force, installed_by="cli")
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[red]Install failed:[/red] {exc}")
        sys.exit(1)

    console.print(f"\n[green]Installed:[/green] {installed.name}")
    console.print(f"  Path:       {installed.install_path}")
    refs = ", ".join(installed.document.reference_paths) or "-"
    console.print(f"  References: {refs}")


@main.command("list")
def list_skills() -> None:
    """Show installed skills."""
    registry = _registry()
    skills = registry.list_skills()

    if not skills:
        console.print("[dim]No skills installed.[/dim]")
        return

    table = Table(title="Installed Skills")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Description")
    table.add_column("References", style="yellow")
    table.add_column("Status")

    for s in skills:
        status_str = "[cyan]enabled[/cyan]" if s.enabled else "[dim]disabled[/dim]"
        table.add_row(
            s.name,
            _truncate(s.document.description),
            str(len(s.document.references)),
            status_str,
        )

    console.print(table)


@main.command()
@click.argument("name")
def info(name: str) -> None:
    """Get detailed information about a skill."""
    skill = _get_or_exit(_registry(), name)

    d = skill.document
    console.print(f"\n[cyan bold]{d.name}[/cyan bold]")
    console.print(f"  {d.description}")
    console.print(f"  Path: {skill.install_path}")
    if d.front_matter.license:
        console.print(f"  License: {d.front_matter.license}")
    if d.front_matter.allowed_tools:
        console.print(f"  Allowed tools: {', '.join(d.front_matter.allowed_tools)}")

    if d.headings:
        console.print("\n  [bold]Sections:[/bold]")
        for heading in d.headings:
            console.print(f"    {heading}")

    if d.references:
        console.print("\n  [bold]References:[/bold]")
        for ref in d.references:
            console.print(f"    {ref.path} — {ref.title}")

    status = "[green]enabled[/green]" if skill.enabled else "[dim]disabled[/dim]"
    console.print(f"\n  Status: {status}")


@main.command()
@click.argument("name")
@click.option("--reference", "-r", default=None, help="Reference path, e.g. references/discovery.md.")
@click.option("--raw", is_flag=True, help="Print the Markdown source instead of rendering it.")
def show(name: str, reference: str | None, raw: bool) -> None:
    """Print a skill's SKILL.md, or one of its references."""
    skill = _get_or_exit(_registry(), name)

    skill_dir = Path(skill.install_path)
    target = (skill_dir / (reference or MANIFEST_NAME)).resolve()
    if not target.is_relative_to(skill_dir) or not target.is_file():
        console.print(f"[red]Not found:[/red] {reference} in {name}")
        sys.exit(1)

    try:
        text = target.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        console.print(f"[red]Unreadable:[/red] {target.name} is not valid UTF-8 ({exc.reason})")
        sys.exit(1)
    if raw:
        click.echo(text, nl=False)
    else:
        console.print(Markdown(skill.document.body if reference is None else text))


@main.command()
@click.argument("query")
def search(query: str) -> None:
    """Search installed skills by name, description, or content."""
    registry = _registry()
    results = registry.search(query)

    if not results:
        console.print(f"[dim]No skills found matching '{query}'.[/dim]")
        return

    table = Table(title=f"Search: '{query}'")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Description")

    for s in results:
        table.add_row(s.name, _truncate(s.document.description))

    console.print(table)


@main.command()
@click.argument("paths", nargs=-1, type=click.Path(exists=True, file_okay=False))
@click.option("--strict", is_flag=True, help="Treat warnings as failures.")
@click.option("--format", "fmt", type=click.Choice(["table", "json"]), default="table",
              help="Output format.")
def lint(paths: tuple[str, ...], strict: bool, fmt: str) -> None:
    """Lint skill directories or corpus directories.

    Each PATH is a skill directory or a directory of skills. With no
    PATH, the installed skills are linted.
    """
    linter = SkillLinter()
    if paths:
        skill_dirs = [d for p in paths for d in discover_skill_dirs(Path(p))]
    else:
        skill_dirs = [Path(s.install_path) for s in _registry().list_skills()]

    results: dict[str, list[LintIssue]] = {}
    for skill_dir in skill_dirs:
        results[skill_dir.name] = linter.lint_skill(skill_dir)

    all_issues = [i for issues in results.values() for i in issues]
    failed = has_errors(all_issues) or (strict and bool(all_issues))

    if fmt == "json":
        click.echo(json.dumps(
            {name: [i.model_dump(mode="json") for i in issues] for name, issues in results.items()},
            indent=2,
        ))
    elif not skill_dirs:
        console.print("[dim]No skills to lint.[/dim]")
    elif not all_issues:
        console.print(f"[green]OK:[/green] {len(skill_dirs)} skill(s), no issues")
    else:
        table = Table(title="Lint")
        table.add_column("Location", style="cyan", no_wrap=True)
        table.add_column("Severity")
        table.add_column("Rule", style="yellow", no_wrap=True)
        table.add_column("Message")
        for issue in all_issues:
            sev = "[red]error[/red]" if issue.severity == LintSeverity.ERROR else "[yellow]warning[/yellow]"
            table.add_row(issue.location(), sev, issue.rule, issue.message)
        console.print(table)
        errors = sum(1 for i in all_issues if i.severity == LintSeverity.ERROR)
        console.print(f"{len(skill_dirs)} skill(s): {errors} error(s), {len(all_issues) - errors} warning(s)")

    if failed:
        sys.exit(1)


@main.command()
@click.argument("name")
def enable(name: str) -> None:
    """Enable a previously disabled skill."""
    registry = _registry()
    if registry.set_status(name, SkillStatus.INSTALLED):
        console.print(f"[green]Enabled:[/green] {name}")
    else:
        console.print(f"[red]Not found:[/red] {name}")
        sys.exit(1)


@main.command()
@click.argument("name")
def disable(name: str) -> None:
    """Disable a skill without uninstalling it."""
    registry = _registry()
    if registry.set_status(name, SkillStatus.DISABLED):
        console.print(f"[yellow]Disabled:[/yellow] {name}")
    else:
        console.print(f"[red]Not found:[/red] {name}")
        sys.exit(1)


@main.command()
@click.argument("name")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation.")
def uninstall(name: str, yes: bool) -> None:
    """Remove an installed skill."""
    if not yes:
        if not click.confirm(f"Uninstall '{name}'?"):
            return

    registry = _registry()
    if registry.uninstall(name):
        console.print(f"[green]Uninstalled:[/green] {name}")
    else:
        console.print(f"[red]Not found:[/red] {name}")
        sys.exit(1)


@main.command()
@click.argument("name")
@click.argument("source", type=click.Path(exists=True, file_okay=False))
def update(name: str, source: str) -> None:
    """Reinstall a skill from a (possibly updated) source directory.

    NAME is the existing skill name; SOURCE is the path to the updated skill.
    """
    registry = _registry()
    previous = registry.get_status(name)
    try:
        installed = registry.install(Path(source), force=True, installed_by="cli")
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[red]Update failed:[/red] {exc}")
        sys.exit(1)

    if installed.name != name:
        console.print(f"[yellow]Note:[/yellow] source declares '{installed.name}', not '{name}'")
    elif previous == SkillStatus.DISABLED:
        registry.set_status(name, SkillStatus.DISABLED)
    console.print(f"\n[green]Updated:[/green] {installed.name}")
    console.print(f"  Path: {installed.install_path}")


@main.command()
def serve() -> None:
    """Start the skilldocs MCP server.

    Loads all enabled installed skills and serves them on stdio.
    """
    from .server import main as serve_main

    serve_main(_registry().root)


def _registry() -> SkillRegistry:
    return SkillRegistry(click.get_current_context().find_root().obj)


def _get_or_exit(registry: SkillRegistry, name: str):
    try:
        skill = registry.get(name)
    except ValueError as exc:
        console.print(f"[red]Invalid skill:[/red] {name}: {exc}")
        sys.exit(1)
    if skill is None:
        console.print(f"[red]Skill not found:[/red] {name}")
        sys.exit(1)
    return skill


def _truncate(text: str, width: int = 60) -> str:
    return text[:width] + ("..." if len(text) > width else "")


if __name__ == "__main__":
    main()
