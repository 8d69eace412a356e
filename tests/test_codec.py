"""Tests for the attribute codec."""

from ad_reconcile.codec import (
    decode_attributes,
    encode_attributes,
    first_value,
    lower_multi_values,
    normalize_keys,
)


def test_first_value():
    assert first_value(["a", "b"]) == "a"
    assert first_value([]) == ""


def test_encode_attributes():
    assert encode_attributes({"sn": "Doe", "mail": "jane@x.com"}) == {
        "sn": ["Doe"],
        "mail": ["jane@x.com"],
    }


def test_decode_attributes_collapses_and_lowercases():
    decoded = decode_attributes({"sAMAccountName": ["jdoe"], "proxyAddresses": ["a", "b"], "Empty": []})
    assert decoded == {"samaccountname": "jdoe", "proxyaddresses": "a", "empty": ""}


def test_decode_is_idempotent_over_casing():
    assert decode_attributes({"Mail": ["m"]}) == decode_attributes({"MAIL": ["m"]})


def test_round_trip():
    attributes = {"sn": "Doe", "givenname": "Jane", "description": ""}
    assert decode_attributes(encode_attributes(attributes)) == attributes


def test_normalize_keys_later_wins():
    assert normalize_keys({"Mail": "a", "mail": "b"}) == {"mail": "b"}


def test_lower_multi_values():
    assert lower_multi_values({"Member": ("a", "b")}) == {"member": ["a", "b"]}
