"""
Route Profiles - Route Generator.

============================================================
PURPOSE
============================================================
Derives the canonical route topology for N signal channels.

Each encoder unit takes two channels:

    unit(n) = ceil(n / 2)
    slot(n) = ((n - 1) mod 2) + 1

    n:     1    2    3    4    5 ...
    unit:  1    1    2    2    3
    slot:  1    2    1    2    1

The packing decides hardware port assignment and is not
configurable.

============================================================
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

from .config import RouteDefaultsConfig
from .errors import InvalidArgument
from .types import AliasType, RouteStatus


CHANNELS_PER_ENCODER = 2

# Alias type seeded on every generated route
SEEDED_ALIAS_TYPE = AliasType.MATRIX_NAME


@dataclass
class RouteSeed:
    """Field values of one route about to be inserted."""

    ordinal: int
    source_index: int
    patch_panel: str
    source_sub_index: int
    encoder_vendor: str
    encoder_unit: int
    encoder_slot: int
    encoder_input_label: str
    outbound_label: str
    transport_protocol: str
    network_endpoint: str
    receiver_vendor: str
    receiver_unit: Optional[int]
    destination_label: str
    status: RouteStatus = RouteStatus.UNKNOWN
    matrix_alias: Optional[str] = None


def encoder_position(ordinal: int) -> Tuple[int, int]:
    """Return ``(unit, slot)`` for a 1-based channel number."""
    if ordinal < 1:
        raise InvalidArgument("ordinal must be >= 1", argument="ordinal", value=ordinal)
    unit = (ordinal + CHANNELS_PER_ENCODER - 1) // CHANNELS_PER_ENCODER
    slot = ((ordinal - 1) % CHANNELS_PER_ENCODER) + 1
    return unit, slot


def validate_channel_count(channel_count: int) -> int:
    """
    Raises:
        InvalidArgument: If channel_count is not an integer >= 1
    """
    if isinstance(channel_count, bool) or not isinstance(channel_count, int):
        raise InvalidArgument("channel_count must be an integer",
                              argument="channel_count", value=channel_count)
    if channel_count < 1:
        raise InvalidArgument("channel_count must be >= 1",
                              argument="channel_count", value=channel_count)
    return channel_count


def build_route_seeds(
    channel_count: int,
    defaults: Optional[RouteDefaultsConfig] = None,
) -> List[RouteSeed]:
    """
    Build the canonical routes for ``channel_count`` channels.

    Args:
        channel_count: Number of channels, at least 1
        defaults: Vendor and label defaults

    Returns:
        Seeds ordered by ordinal 1..channel_count

    Raises:
        InvalidArgument: If channel_count < 1
    """
    validate_channel_count(channel_count)

    defaults = defaults or RouteDefaultsConfig()
    seeds = []
    for n in range(1, channel_count + 1):
        unit, slot = encoder_position(n)
        arena_name = f"{defaults.destination_prefix} {n}"
        seeds.append(RouteSeed(
            ordinal=n,
            source_index=n,
            patch_panel=defaults.patch_panel,
            source_sub_index=n,
            encoder_vendor=defaults.encoder_vendor,
            encoder_unit=unit,
            encoder_slot=slot,
            encoder_input_label=f"S{slot}",
            outbound_label=f"TX {unit}.{slot}",
            transport_protocol=defaults.transport_protocol,
            network_endpoint=defaults.network_endpoint,
            receiver_vendor=defaults.receiver_vendor,
            receiver_unit=defaults.receiver_unit,
            destination_label=arena_name,
            matrix_alias=arena_name,
        ))
    return seeds
