from __future__ import annotations

import pytest

from notehub_dfu.core.params import (
    add_comma_separated_params,
    build_targeting_query,
    dfu_update_url,
    encode_query,
    split_values,
)

BASE_URL = "https://api.notefile.net/v1"
PROJECT = "app:12345678-1234-1234-1234-123456789012"


@pytest.mark.parametrize(
    ("param_name", "raw", "expected"),
    [
        ("deviceUID", "device-123", {"deviceUID": ["device-123"]}),
        ("tags", "production,sensor,outdoor", {"tags": ["production", "sensor", "outdoor"]}),
        ("location", "warehouse, factory , office", {"location": ["warehouse", "factory", "office"]}),
        ("sku", "", {}),
        ("serialNumber", "SN001,,SN003,", {"serialNumber": ["SN001", "SN003"]}),
        ("tags", "   ", {}),
        ("tags", ",, ,", {}),
        ("tags", "a,a, a", {"tags": ["a", "a", "a"]}),
    ],
)
def test_add_comma_separated_params(param_name: str, raw: str, expected: dict[str, list[str]]) -> None:
    query: dict[str, list[str]] = {}
    add_comma_separated_params(query, param_name, raw)
    assert query == expected


def test_add_comma_separated_params_appends_to_existing_values() -> None:
    query = {"tags": ["first"]}
    add_comma_separated_params(query, "tags", "second, third")
    assert query == {"tags": ["first", "second", "third"]}


def test_split_values_handles_none() -> None:
    assert split_values(None) == []


def test_build_targeting_query_maps_every_field() -> None:
    query = build_targeting_query(
        {
            "device_uid": "device-123,device-456,device-789",
            "tag": "production,sensor,outdoor",
            "serial_number": "SN001,SN002,SN003",
            "fleet_uid": "fleet-1,fleet-2",
            "product_uid": "product-A,product-B",
            "notecard_firmware": "v1.0.0,,v1.0.2,",
            "location": "warehouse, factory",
            "sku": "SKU-A,, SKU-C",
        }
    )
    assert query == {
        "deviceUID": ["device-123", "device-456", "device-789"],
        "tags": ["production", "sensor", "outdoor"],
        "serialNumber": ["SN001", "SN002", "SN003"],
        "fleetUID": ["fleet-1", "fleet-2"],
        "productUID": ["product-A", "product-B"],
        "notecardFirmware": ["v1.0.0", "v1.0.2"],
        "location": ["warehouse", "factory"],
        "sku": ["SKU-A", "SKU-C"],
    }
    assert list(query) == [
        "deviceUID",
        "tags",
        "serialNumber",
        "fleetUID",
        "productUID",
        "notecardFirmware",
        "location",
        "sku",
    ]


def test_build_targeting_query_omits_empty_fields() -> None:
    query = build_targeting_query({"device_uid": "", "tag": " , ", "sku": None, "location": "lab"})
    assert query == {"location": ["lab"]}


def test_encode_query_sorts_names_and_keeps_value_order() -> None:
    query = {"tags": ["zeta", "alpha"], "deviceUID": ["dev-2", "dev-1"]}
    assert encode_query(query) == "deviceUID=dev-2&deviceUID=dev-1&tags=zeta&tags=alpha"


def test_encode_query_escapes_values() -> None:
    assert encode_query({"location": ["north wing", "a&b"]}) == "location=north+wing&location=a%26b"


@pytest.mark.parametrize(
    ("criteria", "expected_query"),
    [
        ({"tag": "production"}, "tags=production"),
        ({"tag": "production,sensor,outdoor"}, "tags=production&tags=sensor&tags=outdoor"),
        (
            {"device_uid": "device-123,device-456,device-789"},
            "deviceUID=device-123&deviceUID=device-456&deviceUID=device-789",
        ),
        (
            {
                "device_uid": "device-123,device-456",
                "tag": "production,sensor",
                "serial_number": "SN001",
                "fleet_uid": "fleet-A,fleet-B",
            },
            "deviceUID=device-123&deviceUID=device-456&fleetUID=fleet-A&fleetUID=fleet-B"
            "&serialNumber=SN001&tags=production&tags=sensor",
        ),
        (
            {
                "device_uid": "dev1,dev2",
                "tag": "tag1,tag2",
                "serial_number": "SN1,SN2",
                "fleet_uid": "fleet1,fleet2",
                "product_uid": "prod1,prod2",
                "notecard_firmware": "fw1,fw2",
                "location": "loc1,loc2",
                "sku": "sku1,sku2",
            },
            "deviceUID=dev1&deviceUID=dev2&fleetUID=fleet1&fleetUID=fleet2&location=loc1&location=loc2"
            "&notecardFirmware=fw1&notecardFirmware=fw2&productUID=prod1&productUID=prod2"
            "&serialNumber=SN1&serialNumber=SN2&sku=sku1&sku=sku2&tags=tag1&tags=tag2",
        ),
    ],
)
def test_dfu_update_url(criteria: dict[str, str], expected_query: str) -> None:
    url = dfu_update_url(BASE_URL, PROJECT, build_targeting_query(criteria))
    assert url == f"{BASE_URL}/projects/{PROJECT}/dfu/host/update?{expected_query}"


def test_dfu_update_url_without_targeting_has_no_query_string() -> None:
    url = dfu_update_url(BASE_URL, PROJECT, build_targeting_query({}))
    assert url == f"{BASE_URL}/projects/{PROJECT}/dfu/host/update"
