"""
Route Profiles - Resolution Engine.

============================================================
PURPOSE
============================================================
Computes the routes a consumer should see.

    mode           route list from           overrides applied
    use_default    scope default profile*    no
    use_profile    source profile            no
    fork_profile   source profile            yes, ``after`` overlaid
    custom         nothing                   n/a

    * an explicitly given source profile wins

Every resolved route reports ``is_overridden`` and
``overridden_fields`` in all modes. Results are sorted by
ordinal (route id breaks ties).

Loading is the caller's job (see service.py); the functions
here work on rows already read from the store.

============================================================
"""

import logging
from dataclasses import fields
from typing import Dict, Iterable, List, Optional, Union

from pydantic import ValidationError

from .errors import InvalidArgument
from .schemas import coerce_field_value
from .types import ROUTE_FIELD_NAMES, ResolvedRoute, Route, RouteField, RouteMode, RouteOverride


logger = logging.getLogger(__name__)


def parse_mode(mode: Union[RouteMode, str]) -> RouteMode:
    """
    Convert a mode name to RouteMode.

    Raises:
        InvalidArgument: If the name is not a known mode
    """
    try:
        return RouteMode(mode)
    except ValueError as e:
        raise InvalidArgument(f"Unknown route mode: {mode!r}", argument="mode", value=mode) from e


def target_profile_id(
    mode: RouteMode,
    source_profile_id: Optional[str],
    default_profile_id: Optional[str],
) -> Optional[str]:
    """Profile whose routes back the given mode, or None."""
    if mode is RouteMode.CUSTOM:
        return None
    if mode is RouteMode.USE_DEFAULT:
        return source_profile_id or default_profile_id
    return source_profile_id


def _overlay(resolved: ResolvedRoute, override: RouteOverride) -> None:
    for key, value in override.after.items():
        if key in ROUTE_FIELD_NAMES:
            try:
                setattr(resolved, key, coerce_field_value(RouteField(key), value))
            except ValidationError:
                logger.warning(
                    f"Ignoring invalid override value for {key} on route "
                    f"{override.route_id} (consumer {override.consumer_id}): {value!r}"
                )
        else:
            resolved.extra_fields[key] = value


def resolve_routes(
    mode: RouteMode,
    routes: Iterable[Route],
    overrides: Dict[str, RouteOverride],
) -> List[ResolvedRoute]:
    """
    Resolve base routes against a consumer's overrides.

    Args:
        mode: Resolution mode
        routes: Base routes of the target profile, aliases attached
        overrides: The consumer's overrides keyed by route id

    Returns:
        Resolved routes sorted by ordinal
    """
    if mode is RouteMode.CUSTOM:
        return []

    resolved_routes = []
    for route in routes:
        override = overrides.get(route.route_id)
        resolved = ResolvedRoute(**{f.name: getattr(route, f.name) for f in fields(Route)})
        resolved.aliases = list(route.aliases)
        if override is not None:
            resolved.is_overridden = True
            resolved.overridden_fields = list(override.changed_fields)
            if mode is RouteMode.FORK_PROFILE:
                _overlay(resolved, override)
        resolved_routes.append(resolved)

    resolved_routes.sort(key=lambda r: (r.ordinal, r.route_id))
    return resolved_routes
