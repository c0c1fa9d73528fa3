"""Shared CLI utilities for dvm commands."""

import logging
import sys
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, NoReturn

import typer
from rich.console import Console
from rich.logging import RichHandler

from dvm.config import DvmConfig
from dvm.core.registry import resolve_kind
from dvm.core.resource import KindSpec
from dvm.exceptions import DvmError, ManifestParseError
from dvm.fetch import fetch_manifest, is_remote
from dvm.store import SqliteStore

console = Console()
err_console = Console(stderr=True)


@dataclass
class CliState:
    """Options shared by every command, set by the app callback."""

    config: DvmConfig
    db_path: Path


def setup_logging(verbose: bool) -> None:
    """Route library logging through rich; DEBUG when verbose, WARNING otherwise."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def fail(message: str) -> NoReturn:
    """Print an error and exit with status 1."""
    err_console.print(f"[red]Error:[/red] {message}")
    raise typer.Exit(1)


@contextmanager
def handle_errors() -> Iterator[None]:
    """Turn dvm errors into a red message and exit code 1."""
    try:
        yield
    except DvmError as e:
        fail(str(e))


@contextmanager
def open_store(state: CliState) -> Iterator[SqliteStore]:
    store = SqliteStore(state.db_path)
    try:
        yield store
    finally:
        store.close()


def kind_or_exit(name: str) -> KindSpec:
    """Resolve a kind argument, exiting with an error if it is unknown."""
    try:
        return resolve_kind(name)
    except DvmError as e:
        fail(str(e))


def read_manifest_source(ref: str) -> tuple[str, str]:
    """Read manifest text from a file, stdin ("-") or a remote reference.

    Returns:
        Tuple of (text, label used in error messages)

    Raises:
        DvmError: If the source cannot be read
        ManifestParseError: If a file is not valid UTF-8
    """
    if ref == "-":
        return sys.stdin.read(), "<stdin>"
    if is_remote(ref):
        return fetch_manifest(ref), ref
    path = Path(ref)
    try:
        return path.read_text(encoding="utf-8"), str(path)
    except FileNotFoundError:
        raise DvmError(f"File not found: {path}")
    except UnicodeDecodeError as e:
        raise ManifestParseError(f"{path}: not valid UTF-8 ({e.reason} at byte {e.start})")
    except OSError as e:
        raise DvmError(f"Cannot read {path}: {e}")
