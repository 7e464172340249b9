#!/usr/bin/python3

import click
from ape.cli import ConnectedProviderCommand, account_option, network_option

from alonea_deployment.errors import DeploymentError
from alonea_deployment.options import (
    autosign_option,
    catalog_option,
    module_option,
    registry_option,
    router_option,
    timelock_min_delay_option,
    verify_option,
)
from alonea_deployment.session import DeploymentSession


@click.command(cls=ConnectedProviderCommand, name="deploy-all")
@account_option()
@network_option(required=True)
@catalog_option
@registry_option
@module_option
@router_option
@timelock_min_delay_option
@autosign_option
@verify_option
def cli(
    account,
    network,
    catalog_filepath,
    registry_filepath,
    modules,
    router,
    timelock_min_delay,
    auto,
    verify,
):
    """Deploy every catalog module that is not in the registry yet."""
    click.echo(f"Connected to {network.name} network.")
    try:
        session = DeploymentSession(
            catalog_filepath=catalog_filepath,
            registry_filepath=registry_filepath,
            account=account,
            autosign=auto,
            verify=verify,
            constants={"ROUTER": router, "TIMELOCK_MIN_DELAY": timelock_min_delay},
        )
        session.deploy(modules or None)
    except DeploymentError as error:
        raise click.ClickException(str(error))


if __name__ == "__main__":
    cli()
