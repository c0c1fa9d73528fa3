"""CLI entry point for dvm."""

from pathlib import Path
from typing import Annotated, List, Optional

import typer
from rich.table import Table

from dvm import __version__
from dvm.cli.common import (
    CliState,
    console,
    fail,
    handle_errors,
    kind_or_exit,
    open_store,
    read_manifest_source,
    setup_logging,
)
from dvm.compilers import CompileOptions
from dvm.config import DvmConfig, load_config
from dvm.core.registry import get_all_kind_specs
from dvm.core.resource import ResourceKind
from dvm.core.union import DecodeMode
from dvm.generate import plan_outputs, write_outputs
from dvm.manifest import codec_for, dump_manifests, parse_records

app = typer.Typer(
    name="dvm",
    help="Manage Neovim and shell configuration resources as declarative manifests.",
    no_args_is_help=True,
    add_completion=False,
)

OUTPUT_FORMATS = ("yaml", "json", "table")


@app.callback()
def main(
    ctx: typer.Context,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging."),
    ] = False,
    config_path: Annotated[
        Optional[Path],
        typer.Option("--config", help="Path to dvm.toml (default: nearest one above the working directory)."),
    ] = None,
    db: Annotated[
        Optional[Path],
        typer.Option("--db", envvar="DVM_DB", help="Resource database (overrides store.path)."),
    ] = None,
) -> None:
    """Manage Neovim and shell configuration resources as declarative manifests."""
    setup_logging(verbose)
    with handle_errors():
        config = DvmConfig.load(config_path) if config_path else load_config()
    ctx.obj = CliState(config=config, db_path=db or config.resolved_store_path)


def _decode_mode(state: CliState, strict: bool) -> DecodeMode:
    return DecodeMode.STRICT if strict else state.config.generate.decode_mode


@app.command()
def apply(
    ctx: typer.Context,
    file: Annotated[
        str,
        typer.Option(
            "--file", "-f",
            help="Manifest file, '-' for stdin, a URL or github:owner/repo/path[@ref].",
        ),
    ],
) -> None:
    """Create or update resources from a manifest.

    Every document is validated before anything is stored, so a bad
    document leaves the store untouched.

    Examples:
        dvm apply -f telescope.yaml
        dvm apply -f github:rmkohlman/dvm-library/plugins/telescope.yaml
    """
    state: CliState = ctx.obj
    with handle_errors():
        text, source = read_manifest_source(file)
        records = parse_records(text, source)
        if not records:
            fail(f"No manifests found in {source}")
        with open_store(state) as store:
            for record in records:
                created = store.upsert(record)
                action = "created" if created else "configured"
                console.print(f"[green]{record.kind}/{record.name} {action}[/green]")


@app.command()
def get(
    ctx: typer.Context,
    kind: Annotated[str, typer.Argument(help="Resource kind or alias (e.g., NvimPlugin, plugin, tp).")],
    name: Annotated[Optional[str], typer.Argument(help="Resource name (all resources when omitted).")] = None,
    output: Annotated[
        str,
        typer.Option("--output", "-o", help="Output format: yaml, json or table."),
    ] = "table",
    strict: Annotated[
        bool,
        typer.Option("--strict", help="Fail on malformed stored attributes instead of omitting them."),
    ] = False,
) -> None:
    """Show resources as manifests or as a table."""
    state: CliState = ctx.obj
    if output not in OUTPUT_FORMATS:
        fail(f"Invalid output format '{output}'. Use one of: {', '.join(OUTPUT_FORMATS)}")
    spec = kind_or_exit(kind)

    with handle_errors():
        with open_store(state) as store:
            records = [store.get(spec.name, name)] if name else store.list(spec.name)

        if output == "table":
            _print_table(spec.name, records)
            return

        if not records:
            console.print(f"[dim]No {spec.name} resources found[/dim]")
            return
        codec = codec_for(spec.kind)
        mode = _decode_mode(state, strict)
        manifests = [codec.to_manifest(record, mode) for record in records]
        typer.echo(dump_manifests(manifests, output), nl=False)


def _print_table(kind: str, records: list) -> None:
    if not records:
        console.print(f"[dim]No {kind} resources found[/dim]")
        return
    table = Table(title=kind)
    table.add_column("NAME", style="cyan")
    table.add_column("SOURCE")
    table.add_column("CATEGORY")
    table.add_column("ENABLED")
    for record in records:
        table.add_row(
            record.name,
            record.source_ref or record.builtin_ref,
            record.category,
            "yes" if record.enabled else "no",
        )
    console.print(table)


@app.command()
def delete(
    ctx: typer.Context,
    kind: Annotated[str, typer.Argument(help="Resource kind or alias.")],
    name: Annotated[str, typer.Argument(help="Resource name.")],
) -> None:
    """Delete a resource. Resources referencing it by name are left as they are."""
    state: CliState = ctx.obj
    spec = kind_or_exit(kind)
    with handle_errors():
        with open_store(state) as store:
            store.delete(spec.name, name)
    console.print(f"[green]{spec.name}/{name} deleted[/green]")


@app.command()
def generate(
    ctx: typer.Context,
    kind: Annotated[str, typer.Argument(help="Resource kind or alias.")],
    names: Annotated[
        Optional[List[str]],
        typer.Argument(help="Resource names (all enabled resources of the kind when omitted)."),
    ] = None,
    out: Annotated[
        Optional[Path],
        typer.Option("--out", "-o", help="Output directory (overrides generate.output_dir)."),
    ] = None,
    keep_going: Annotated[
        bool,
        typer.Option("--keep-going", "-k", help="Continue writing after a file fails."),
    ] = False,
    jobs: Annotated[
        int,
        typer.Option("--jobs", "-j", min=1, help="Number of files written in parallel."),
    ] = 1,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Show what would be written without writing."),
    ] = False,
    strict: Annotated[
        bool,
        typer.Option("--strict", help="Fail on malformed stored attributes instead of omitting them."),
    ] = False,
) -> None:
    """Generate configuration files for resources of one kind.

    Output paths are checked for collisions before any file is written.

    Examples:
        dvm generate plugin --out ~/.config/nvim
        dvm generate tp zsh-autosuggestions --out ~/.config/dvm
    """
    state: CliState = ctx.obj
    spec = kind_or_exit(kind)
    out_dir = out.expanduser() if out else state.config.resolved_output_dir

    with handle_errors():
        with open_store(state) as store:
            if names:
                records = [store.get(spec.name, name) for name in dict.fromkeys(names)]
            else:
                records = [r for r in store.list(spec.name) if r.enabled]

            def exists(ref_kind: ResourceKind, ref_name: str) -> bool:
                return store.exists(ref_kind.value, ref_name)

            options = CompileOptions(
                indent=state.config.generate.indent,
                decode_mode=_decode_mode(state, strict),
                shell_dir=state.config.generate.shell_dir,
                exists=exists,
            )
            plan = plan_outputs(records, out_dir, options)

        if not plan:
            console.print(f"[dim]No {spec.name} resources to generate[/dim]")
            return

        if dry_run:
            for output in plan:
                console.print(f"[dim]Would write {output.path}[/dim]")
            return

        result = write_outputs(plan, keep_going=keep_going, jobs=jobs)

    for path in result.written:
        console.print(f"[green]Wrote {path}[/green]")
    if not result.ok:
        for failure in result.failures:
            console.print(f"[red]Error:[/red] {failure}")
        raise typer.Exit(1)


@app.command()
def kinds() -> None:
    """List the supported resource kinds and their aliases."""
    table = Table()
    table.add_column("KIND", style="cyan")
    table.add_column("ALIASES")
    table.add_column("OUTPUT")
    for spec in get_all_kind_specs().values():
        table.add_row(spec.name, ", ".join(spec.aliases), f"{spec.output_subdir}/*{spec.extension}")
    console.print(table)


@app.command()
def version() -> None:
    """Show the dvm version."""
    console.print(f"dvm {__version__}")


if __name__ == "__main__":
    app()
