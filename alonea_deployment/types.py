import click
from ape.utils import ZERO_ADDRESS
from eth_utils import (
    is_address,
    is_checksum_address,
    is_checksum_formatted_address,
    to_checksum_address,
)


class MinInt(click.ParamType):
    """An integer option with a lower bound, e.g. a delay in seconds."""

    name = "minint"

    def __init__(self, min_value: int):
        self.min_value = min_value

    def convert(self, value, param, ctx):
        if isinstance(value, int):
            ivalue = value
        else:
            try:
                ivalue = int(value)
            except ValueError:
                self.fail(f"{value} is not a valid integer", param, ctx)
        if ivalue < self.min_value:
            self.fail(f"{value} is less than the minimum of {self.min_value}", param, ctx)
        return ivalue


class ChecksumAddress(click.ParamType):
    """An address option, normalized to its checksum form; the zero address is refused."""

    name = "checksum_address"

    def convert(self, value, param, ctx):
        if not is_address(value):
            self.fail(f"{value} is not a valid address", param, ctx)
        if is_checksum_formatted_address(value) and not is_checksum_address(value):
            self.fail(f"{value} has an invalid checksum", param, ctx)
        address = to_checksum_address(value)
        if address == ZERO_ADDRESS:
            self.fail("The zero address is not allowed here", param, ctx)
        return address
