"""Targeting query assembly for DFU trigger requests."""

from __future__ import annotations

from collections.abc import Mapping
from urllib.parse import urlencode

from notehub_dfu.core.model import TARGETING_FIELDS

QUERY_PARAMS: dict[str, str] = {
    "device_uid": "deviceUID",
    "tag": "tags",
    "serial_number": "serialNumber",
    "fleet_uid": "fleetUID",
    "product_uid": "productUID",
    "notecard_firmware": "notecardFirmware",
    "location": "location",
    "sku": "sku",
}

TargetingQuery = dict[str, list[str]]


def split_values(raw: str | None) -> list[str]:
    """Split a comma-separated value into trimmed, non-empty tokens.

    Order is preserved and duplicates are kept.
    """
    if not raw:
        return []
    return [token.strip() for token in raw.split(",") if token.strip()]


def add_comma_separated_params(query: TargetingQuery, param_name: str, raw: str | None) -> None:
    tokens = split_values(raw)
    if not tokens:
        return
    query.setdefault(param_name, []).extend(tokens)


def build_targeting_query(criteria: Mapping[str, str | None]) -> TargetingQuery:
    """Build the targeting query from raw criteria keyed by config field name.

    Fields are visited in the fixed trigger order; unknown keys are ignored.
    """
    query: TargetingQuery = {}
    for field_name in TARGETING_FIELDS:
        add_comma_separated_params(query, QUERY_PARAMS[field_name], criteria.get(field_name))
    return query


def encode_query(query: Mapping[str, list[str]]) -> str:
    """URL-encode a query, sorted by parameter name with value order kept per name."""
    pairs = [(name, value) for name in sorted(query) for value in query[name]]
    return urlencode(pairs)


def dfu_update_url(base_url: str, project_uid: str, query: Mapping[str, list[str]]) -> str:
    url = f"{base_url}/projects/{project_uid}/dfu/host/update"
    if query:
        url += "?" + encode_query(query)
    return url
