"""skel classes / skeleton / usages commands - one-shot index queries."""

import json
from typing import Any

import click

from codeskel.cli.utils import open_index


@click.command()
@click.argument("file")
@click.pass_obj
def classes_command(obj: dict[str, Any], file: str) -> None:
    """List the classes declared in FILE (path relative to the root)."""
    with open_index(obj) as index:
        for unit in index.classes_in_file(file):
            click.echo(unit.fq_name)


@click.command()
@click.argument("names", nargs=-1, required=True)
@click.pass_obj
def skeleton_command(obj: dict[str, Any], names: tuple[str, ...]) -> None:
    """Print the skeletons of NAMES (short or fully qualified)."""
    with open_index(obj) as index:
        text = index.skeleton_of(names)
    if not text:
        raise click.ClickException(f"No declarations named: {', '.join(names)}")
    click.echo(text)


@click.command()
@click.argument("identifier")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_obj
def usages_command(obj: dict[str, Any], identifier: str, as_json: bool) -> None:
    """Show the declarations that use IDENTIFIER.

    Structural hits are exact identifier tokens. Heuristic hits are textual
    matches and may include substrings, comments and strings.
    """
    with open_index(obj) as index:
        hits = index.find_usages(identifier)

    structural = sorted(hits.structural)
    heuristic = sorted(hits.heuristic)
    if as_json:
        click.echo(
            json.dumps(
                {
                    "identifier": identifier,
                    "structural": [u.fq_name for u in structural],
                    "heuristic": [u.fq_name for u in heuristic],
                }
            )
        )
        return

    for unit in structural:
        click.echo(f"structural  {unit.fq_name}  ({unit.source})")
    for unit in heuristic:
        click.echo(f"heuristic   {unit.fq_name}  ({unit.source})")
