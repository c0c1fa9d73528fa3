"""Batch generation: compile records and write one file per record.

Generation runs in two phases. :func:`plan_outputs` reserves every target
path and compiles every record, so slug collisions and compile errors abort
the run before anything touches the disk. :func:`write_outputs` then writes
each file as a whole (temp file + rename), so an interrupted run leaves
only complete files behind.
"""

import logging
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path

from dvm.compilers import CompileOptions, CompilerRegistry, ConfigCompiler
from dvm.core.record import ResourceRecord
from dvm.core.registry import resolve_kind
from dvm.exceptions import FilesystemError, SlugCollisionError
from dvm.utils import slugify

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlannedOutput:
    """A compiled artifact and the path it will be written to."""

    record: ResourceRecord
    path: Path
    content: str


@dataclass
class WriteResult:
    """Outcome of a batch write."""

    written: list[Path] = field(default_factory=list)
    failures: list[FilesystemError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


def compiler_for(record: ResourceRecord, options: CompileOptions | None = None) -> ConfigCompiler:
    """Get a compiler for the record's kind.

    Raises:
        UnknownKindError: If the record's kind is not registered
        CompilerNotFoundError: If no compiler handles the kind
    """
    kind = resolve_kind(record.kind).kind
    if options is None:
        return CompilerRegistry.get(kind)
    return CompilerRegistry.create(kind, options)


def output_path(record: ResourceRecord, out_dir: Path, compiler: ConfigCompiler) -> Path:
    """Return ``<out_dir>/<kind subdir>/<slug><ext>`` for a record."""
    spec = resolve_kind(record.kind)
    return out_dir / spec.output_subdir / f"{slugify(record.name)}{compiler.extension(record)}"


def plan_outputs(
    records: list[ResourceRecord],
    out_dir: Path,
    options: CompileOptions | None = None,
) -> list[PlannedOutput]:
    """Reserve output paths and compile every record.

    Args:
        records: Records to generate
        out_dir: Root output directory
        options: Compiler options (defaults when None)

    Returns:
        One planned output per distinct record, in input order. A record
        listed twice is planned once.

    Raises:
        SlugCollisionError: If two distinct records map to the same file
        PreconditionViolation: If a record cannot be compiled
    """
    reserved: dict[Path, ResourceRecord] = {}
    paths = []
    for record in records:
        compiler = compiler_for(record, options)
        path = output_path(record, out_dir, compiler)
        other = reserved.get(path)
        if other is not None and other.key == record.key:
            continue
        if other is not None:
            raise SlugCollisionError(
                f"{other.kind} '{other.name}' and {record.kind} '{record.name}' "
                f"would both be written to {path}"
            )
        reserved[path] = record
        paths.append((record, compiler, path))

    return [
        PlannedOutput(record=record, path=path, content=compiler.generate(record))
        for record, compiler, path in paths
    ]


def write_file(path: Path, content: str) -> None:
    """Write a file atomically: a sibling temp file is renamed over the target.

    Raises:
        FilesystemError: If the directory or the file cannot be written
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FilesystemError(path.parent, str(e))

    tmp_path = path.with_name(f".{path.name}.tmp")
    try:
        tmp_path.write_text(content, encoding="utf-8")
        tmp_path.replace(path)
    except OSError as e:
        try:
            if tmp_path.exists():
                os.unlink(tmp_path)
        except OSError:
            logger.debug("Could not remove temp file %s", tmp_path)
        raise FilesystemError(path, str(e))
    logger.info("Wrote %s", path)


def write_outputs(plan: list[PlannedOutput], keep_going: bool = False, jobs: int = 1) -> WriteResult:
    """Write planned outputs to disk.

    Args:
        plan: Result of plan_outputs()
        keep_going: Record failures and continue instead of stopping at the first one
        jobs: Number of parallel writers

    Returns:
        Paths written and failures collected

    Raises:
        FilesystemError: On the first failure when keep_going is False
    """
    result = WriteResult()

    if jobs <= 1:
        for output in plan:
            try:
                write_file(output.path, output.content)
            except FilesystemError as e:
                if not keep_going:
                    raise
                logger.warning("%s", e)
                result.failures.append(e)
            else:
                result.written.append(output.path)
        return result

    with ThreadPoolExecutor(max_workers=jobs) as executor:
        futures = {executor.submit(write_file, o.path, o.content): o for o in plan}
        for future in as_completed(futures):
            output = futures[future]
            try:
                future.result()
            except FilesystemError as e:
                if not keep_going:
                    for pending in futures:
                        pending.cancel()
                    raise
                logger.warning("%s", e)
                result.failures.append(e)
            else:
                result.written.append(output.path)

    # Report in plan order regardless of completion order
    order = {o.path: i for i, o in enumerate(plan)}
    result.written.sort(key=lambda p: order[p])
    return result


def generate_records(
    records: list[ResourceRecord],
    out_dir: Path,
    options: CompileOptions | None = None,
    keep_going: bool = False,
    jobs: int = 1,
    include_disabled: bool = False,
) -> WriteResult:
    """Plan and write artifacts for a batch of records.

    Disabled records are skipped unless include_disabled is set.
    """
    selected = []
    for record in records:
        if include_disabled or record.enabled:
            selected.append(record)
        else:
            logger.info("Skipping disabled %s '%s'", record.kind, record.name)
    plan = plan_outputs(selected, out_dir, options)
    return write_outputs(plan, keep_going=keep_going, jobs=jobs)
