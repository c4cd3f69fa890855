"""codeskel CLI - skel command."""

from pathlib import Path

import click

from codeskel.cli.query import classes_command, skeleton_command, usages_command
from codeskel.cli.scan import scan_command
from codeskel.cli.watch import watch_command
from codeskel.config.loader import load_config
from codeskel.core.errors import ConfigError
from codeskel.core.logging import configure_logging


@click.group()
@click.version_option(version="0.1.0", prog_name="skel")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option(
    "--root",
    default=".",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Root directory to index (default: current directory)",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, root: Path) -> None:
    """codeskel - declaration skeletons and symbol queries for source trees."""
    root = root.resolve()
    try:
        config = load_config(root)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e

    logging_config = config.logging
    if verbose:
        logging_config = logging_config.model_copy(update={"level": "DEBUG"})
    configure_logging(config=logging_config)

    ctx.ensure_object(dict)
    ctx.obj["root"] = root
    ctx.obj["config"] = config
    ctx.obj["verbose"] = verbose


cli.add_command(scan_command, name="scan")
cli.add_command(classes_command, name="classes")
cli.add_command(skeleton_command, name="skeleton")
cli.add_command(usages_command, name="usages")
cli.add_command(watch_command, name="watch")


if __name__ == "__main__":
    cli()
