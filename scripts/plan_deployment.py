#!/usr/bin/python3

import click
from ape.cli import ConnectedProviderCommand, account_option, network_option

from alonea_deployment.catalog import ModuleCatalog
from alonea_deployment.errors import DeploymentError
from alonea_deployment.networks import NetworkContext
from alonea_deployment.options import catalog_option, module_option, registry_option
from alonea_deployment.planner import DeploymentPlanner
from alonea_deployment.registry import load_registry
from alonea_deployment.session import print_plan
from alonea_deployment.utils import registry_filepath_from_network


@click.command(cls=ConnectedProviderCommand, name="plan-deployment")
@account_option()
@network_option(required=True)
@catalog_option
@registry_option
@module_option
def cli(account, network, catalog_filepath, registry_filepath, modules):
    """Show what a deployment run would do, without transacting."""
    try:
        catalog = ModuleCatalog.from_yaml(catalog_filepath)
        context = NetworkContext.from_provider(deployer=account.address)
        registry_filepath = registry_filepath or registry_filepath_from_network(context.name)
        registry = load_registry(registry_filepath, context.name, context.chain_id)
        plan = DeploymentPlanner(catalog=catalog, registry=registry).plan(modules or None)
    except DeploymentError as error:
        raise click.ClickException(str(error))

    click.echo(f"Network: {context.name} (chain id {context.chain_id})")
    click.echo(f"Registry: {registry_filepath}")
    print_plan(plan)
    for name in plan.steps:
        spec = catalog[name]
        kind = spec.proxy_kind.value if spec.is_upgradeable else "plain"
        dependencies = ", ".join(spec.dependencies) or "-"
        click.secho(f"    {name} [{kind}] depends on: {dependencies}", fg="cyan")


if __name__ == "__main__":
    cli()
