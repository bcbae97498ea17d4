"""
Test suite for single-entity resource addresses.
"""

import pytest

from fleetbind.generation.terraform.targeting import (
    ResourceAddress,
    format_address,
    parse_address,
    replace_args,
    target_args,
)


def test_format_exact():
    assert format_address("google_compute_instance.vm", "host-01") == 'google_compute_instance.vm["host-01"]'


def test_parse():
    address = parse_address('google_compute_address.internal["host-01"]')
    assert address == ResourceAddress(collection="google_compute_address.internal", key="host-01")
    assert str(address) == 'google_compute_address.internal["host-01"]'


def test_quotes_escaped():
    text = format_address("google_compute_instance.vm", 'we"ird')
    assert text == 'google_compute_instance.vm["we\\"ird"]'
    assert parse_address(text).key == 'we"ird'


@pytest.mark.parametrize(
    "text",
    [
        "google_compute_instance.vm",
        "google_compute_instance.vm[0]",
        'google_compute_instance["host-01"]',
        "google_compute_instance.vm['host-01']",
    ],
)
def test_parse_rejects(text):
    with pytest.raises(ValueError):
        parse_address(text)


def test_collection_needs_type_and_name():
    with pytest.raises(ValueError):
        format_address("vm", "host-01")


def test_cli_flags():
    addresses = [ResourceAddress("google_compute_instance.vm", "host-01"), 'google_compute_instance.vm["host-02"]']
    assert target_args(addresses) == [
        '-target=google_compute_instance.vm["host-01"]',
        '-target=google_compute_instance.vm["host-02"]',
    ]
    assert replace_args(addresses[:1]) == ['-replace=google_compute_instance.vm["host-01"]']
