"""skel scan command - build the index and report per-file outcomes."""

import json
from collections import Counter
from typing import Any

import click

from codeskel.cli.utils import open_index
from codeskel.core.progress import pluralize, spinner, status
from codeskel.index.models import FileState


@click.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_obj
def scan_command(obj: dict[str, Any], as_json: bool) -> None:
    """Index every tracked file under the root."""
    with open_index(obj) as index:
        with spinner("Indexing"):
            stats = index.request_rebuild(force=True).result()
        snapshot = index.snapshot
        last_error = index.status.last_error

    counts = Counter(state.value for state in snapshot.states.values())
    failed = sorted(p for p, s in snapshot.states.items() if s is FileState.PARSE_FAILED)

    if as_json:
        click.echo(
            json.dumps(
                {
                    "root": str(obj["root"]),
                    "files": dict(counts),
                    "units": snapshot.unit_count,
                    "failed": failed,
                    "duration_seconds": round(stats.duration_seconds, 3),
                    "last_error": last_error,
                }
            )
        )
        return

    indexed = counts.get(FileState.INDEXED.value, 0)
    status(
        f"{pluralize(indexed, 'file')} indexed, {pluralize(snapshot.unit_count, 'declaration')} "
        f"in {stats.duration_seconds:.2f}s",
        style="success",
    )
    for path in failed:
        status(f"parse failed: {path}", style="warning", indent=2)
    if last_error:
        status(last_error, style="error")
