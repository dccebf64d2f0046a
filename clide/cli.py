"""clide CLI - Edit .csproj projects and .sln solutions from the command line."""

from __future__ import annotations

import logging
from typing import Callable

import click
from rich.console import Console

from clide import commands
from clide.config import DEFAULT_PROBE_TIMEOUT, ClideConfig
from clide.errors import ClideError


def _emit(ctx: click.Context, operation: Callable[..., list[str]], *args) -> None:
    """Run an operation and print its lines; ClideErrors exit with status 1."""
    console = Console(soft_wrap=True, highlight=False)
    try:
        lines = operation(ctx.obj, *args)
    except ClideError as e:
        console.print(f"[red]{e}[/red]", markup=True)
        ctx.exit(1)
    for line in lines:
        console.print(line, markup=False)


@click.group()
@click.option(
    "-C", "--directory", "working_dir", default=".",
    type=click.Path(file_okay=False), help="Directory paths are resolved against",
)
@click.option("-p", "--project", "project_path", envvar="CLIDE_PROJECT", default=None,
              help="Project file to operate on (default: the only .csproj here)")
@click.option("-s", "--solution", "solution_path", envvar="CLIDE_SOLUTION", default=None,
              help="Solution file to operate on (default: the only .sln here)")
@click.option("--timeout", "probe_timeout", envvar="CLIDE_TIMEOUT", default=DEFAULT_PROBE_TIMEOUT,
              type=float, help="Seconds allowed for reading one assembly's identity")
@click.option("--verbose", is_flag=True, help="Log parsing and probing details")
@click.pass_context
def cli(
    ctx: click.Context,
    working_dir: str,
    project_path: str | None,
    solution_path: str | None,
    probe_timeout: float,
    verbose: bool,
) -> None:
    """clide - Edit .csproj projects and .sln solutions."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = ClideConfig(
        working_dir=working_dir,
        project_path=project_path,
        solution_path=solution_path,
        probe_timeout=probe_timeout,
        verbose=verbose,
    )


@cli.command("new")
@click.argument("name")
@click.pass_context
def new_cmd(ctx: click.Context, name: str) -> None:
    """Create a blank project, e.g. clide new Dir/SubDir/Foo."""
    _emit(ctx, commands.new_project, name)


@cli.group("references", invoke_without_command=True)
@click.pass_context
def references_cmd(ctx: click.Context) -> None:
    """Manage a project's references.

    Usage: clide references [add|rm] [gac|dll|csproj]
    """
    if ctx.invoked_subcommand is None:
        _emit(ctx, commands.list_references)


@references_cmd.command("add")
@click.argument("tokens", nargs=-1)
@click.pass_context
def references_add(ctx: click.Context, tokens: tuple[str, ...]) -> None:
    """Add GAC names, .dll paths or project paths."""
    _emit(ctx, commands.add_references, list(tokens))


@references_cmd.command("rm")
@click.argument("tokens", nargs=-1)
@click.pass_context
def references_rm(ctx: click.Context, tokens: tuple[str, ...]) -> None:
    """Remove references by name, hint path or project path."""
    _emit(ctx, commands.remove_references, list(tokens))


@cli.group("source", invoke_without_command=True)
@click.pass_context
def source_cmd(ctx: click.Context) -> None:
    """Manage a project's source files to compile."""
    if ctx.invoked_subcommand is None:
        _emit(ctx, commands.list_sources)


@source_cmd.command("add")
@click.argument("paths", nargs=-1)
@click.pass_context
def source_add(ctx: click.Context, paths: tuple[str, ...]) -> None:
    _emit(ctx, commands.add_sources, list(paths))


@source_cmd.command("rm")
@click.argument("paths", nargs=-1)
@click.pass_context
def source_rm(ctx: click.Context, paths: tuple[str, ...]) -> None:
    _emit(ctx, commands.remove_sources, list(paths))


@cli.command("solution")
@click.option("-n", "--name", default=None, help="Solution name (default: directory name)")
@click.argument("args", nargs=-1)
@click.pass_context
def solution_cmd(ctx: click.Context, name: str | None, args: tuple[str, ...]) -> None:
    """Create or show a solution, or [add|rm] projects in it."""
    if args and args[0].lower() == "add":
        _emit(ctx, commands.add_to_solution, list(args[1:]))
    elif args and args[0].lower() == "rm":
        _emit(ctx, commands.remove_from_solution, list(args[1:]))
    elif len(args) > 1:
        raise click.UsageError(f"Unknown solution subcommand: {args[0]}")
    else:
        _emit(ctx, commands.show_or_create_solution, args[0] if args else name)


cli.add_command(solution_cmd, name="sln")


if __name__ == "__main__":
    cli()
