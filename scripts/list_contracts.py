#!/usr/bin/python3

from pathlib import Path

import click

from alonea_deployment.constants import ARTIFACTS_DIR
from alonea_deployment.errors import RegistryError
from alonea_deployment.registry import Registry, read_registry


def _display_registry(registry: Registry, filepath: Path) -> None:
    click.secho(f"\n{registry.network} (chain id {registry.chain_id})", fg="green")
    click.secho(f"    {filepath}, last updated {registry.timestamp}", fg="yellow")
    for index, (name, record) in enumerate(registry.contracts.items(), start=1):
        if record.is_proxied:
            version = record.version or "unconfirmed"
            click.secho(f"        {index}. {name} {record.proxy} (v{version})", fg="cyan")
            click.secho(f"           implementation {record.implementation}")
        else:
            click.secho(f"        {index}. {name} {record.address}", fg="cyan")


@click.command(name="list-contracts")
@click.option(
    "--registry",
    "-r",
    "registry_filepaths",
    help="Registry file(s) to list; defaults to every registry in the artifacts directory.",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    multiple=True,
)
def cli(registry_filepaths):
    """List the modules recorded in registry files."""
    registry_filepaths = registry_filepaths or sorted(ARTIFACTS_DIR.glob("*.json"))
    if not registry_filepaths:
        click.echo(f"No registries found in {ARTIFACTS_DIR}.")
        return
    for filepath in registry_filepaths:
        try:
            registry = read_registry(filepath)
        except RegistryError as error:
            raise click.ClickException(str(error))
        _display_registry(registry, filepath)


if __name__ == "__main__":
    cli()
