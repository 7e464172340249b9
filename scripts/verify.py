from pathlib import Path

import click
from ape import networks
from ape.cli import ConnectedProviderCommand, network_option

from alonea_deployment.constants import MODULE_NAMES
from alonea_deployment.errors import RegistryError
from alonea_deployment.networks import is_local_network
from alonea_deployment.registry import read_registry
from alonea_deployment.utils import check_etherscan_plugin, verify_contract


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@click.option(
    "--module",
    "-m",
    "modules",
    help="Module to verify",
    type=click.Choice(MODULE_NAMES),
    required=True,
    multiple=True,
)
@click.option(
    "--registry-filepath",
    "-f",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    help="Registry holding the module addresses",
    required=True,
)
def cli(network, modules, registry_filepath):
    """Verify the current implementation of deployed modules."""
    if is_local_network():
        raise click.ClickException("Contracts cannot be verified on a local network.")
    check_etherscan_plugin()

    try:
        registry = read_registry(registry_filepath)
    except RegistryError as error:
        raise click.ClickException(str(error))
    chain_id = networks.active_provider.chain_id
    if registry.chain_id != chain_id:
        raise click.ClickException(
            f"Registry {registry_filepath} is for chain id {registry.chain_id}, not {chain_id}"
        )

    for name in modules:
        record = registry.get(name)
        if record is None:
            raise click.ClickException(f"Module '{name}' not found in registry {registry_filepath}")
        verify_contract(name=name, address=record.implementation or record.address)
