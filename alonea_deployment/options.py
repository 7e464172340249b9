from pathlib import Path

import click

from alonea_deployment.constants import DEFAULT_CATALOG_FILEPATH, MODULE_NAMES
from alonea_deployment.types import ChecksumAddress, MinInt

catalog_option = click.option(
    "--catalog",
    "-c",
    "catalog_filepath",
    help="Module catalog YAML.",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    default=DEFAULT_CATALOG_FILEPATH,
    show_default=True,
)

registry_option = click.option(
    "--registry",
    "-r",
    "registry_filepath",
    help="Registry file; defaults to artifacts/<ecosystem>-<network>.json",
    type=click.Path(dir_okay=False, path_type=Path),
    required=False,
)

module_option = click.option(
    "--module",
    "-m",
    "modules",
    help="Module to process (repeatable); defaults to all catalog modules.",
    type=click.Choice(MODULE_NAMES),
    multiple=True,
)

router_option = click.option(
    "--router",
    help="DEX router address passed to the buyback module; overrides the per-chain default.",
    type=ChecksumAddress(),
    required=False,
)

timelock_min_delay_option = click.option(
    "--timelock-min-delay",
    help="Minimum delay (seconds) of the governance timelock.",
    type=MinInt(0),
    required=False,
)

autosign_option = click.option(
    "--auto",
    help="Automatically sign transactions.",
    is_flag=True,
)

verify_option = click.option(
    "--verify",
    help="Publish deployed contracts to the block explorer.",
    is_flag=True,
)
