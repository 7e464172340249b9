#!/usr/bin/python3

import click
from ape.cli import ConnectedProviderCommand, account_option, network_option

from alonea_deployment.errors import DeploymentError
from alonea_deployment.options import (
    autosign_option,
    catalog_option,
    module_option,
    registry_option,
    verify_option,
)
from alonea_deployment.session import DeploymentSession


@click.command(cls=ConnectedProviderCommand, name="upgrade-all")
@account_option()
@network_option(required=True)
@catalog_option
@registry_option
@module_option
@autosign_option
@verify_option
def cli(account, network, catalog_filepath, registry_filepath, modules, auto, verify):
    """
    Deploy new implementations for the recorded module proxies and upgrade them.
    Defaults to every upgradeable module in the registry.
    """
    click.echo(f"Connected to {network.name} network.")
    try:
        session = DeploymentSession(
            catalog_filepath=catalog_filepath,
            registry_filepath=registry_filepath,
            account=account,
            autosign=auto,
            verify=verify,
        )
        session.upgrade(modules or None)
    except DeploymentError as error:
        raise click.ClickException(str(error))


if __name__ == "__main__":
    cli()
