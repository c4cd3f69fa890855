"""skel watch command - keep the index fresh until interrupted."""

import threading
from typing import Any

import click

from codeskel.cli.utils import open_index
from codeskel.config.models import CodeSkelConfig
from codeskel.core.progress import pluralize, spinner, status
from codeskel.index._internal.watcher import FileWatcher


@click.command()
@click.pass_obj
def watch_command(obj: dict[str, Any]) -> None:
    """Build the index, then rebuild on every change until Ctrl+C."""
    config: CodeSkelConfig = obj["config"]
    with open_index(obj) as index:
        with spinner("Indexing"):
            stats = index.request_rebuild().result()
        status(f"{pluralize(stats.files_indexed, 'file')} indexed", style="success")

        watcher = FileWatcher(
            index,
            debounce_ms=config.watcher.debounce_ms,
            force_polling=config.watcher.force_polling or None,
        )
        watcher.start()
        status(f"Watching {obj['root']} (Ctrl+C to stop)")
        try:
            threading.Event().wait()
        except KeyboardInterrupt:
            pass
        finally:
            watcher.stop()
