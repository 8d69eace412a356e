"""Conversion between LDAP multi-valued attributes and single-valued maps.

LDAP attributes carry an ordered list of values each.  The reconciliation
logic only ever looks at the first value of an attribute, so reads collapse
the lists and writes wrap each value into a one-element list.  Attribute
names are case-insensitive in LDAP and are lowercased on the way in.
"""

from typing import Dict, List, Mapping, Sequence


def first_value(values: Sequence[str]) -> str:
    """Get the first value of an attribute or the empty string if it has none."""
    if len(values):
        return values[0]
    else:
        return ""


def normalize_keys(attributes: Mapping[str, str]) -> Dict[str, str]:
    """Lowercase all attribute names, later keys win on collision."""
    return {key.lower(): value for key, value in attributes.items()}


def encode_attributes(attributes: Mapping[str, str]) -> Dict[str, List[str]]:
    """Wrap each value of a single-valued map into a one-element list."""
    return {key: [value] for key, value in attributes.items()}


def decode_attributes(attributes: Mapping[str, Sequence[str]]) -> Dict[str, str]:
    """Collapse each attribute to its first value, with lowercased names."""
    return {key.lower(): first_value(values) for key, values in attributes.items()}


def lower_multi_values(attributes: Mapping[str, Sequence[str]]) -> Dict[str, List[str]]:
    """Copy a multi-valued map with lowercased attribute names."""
    return {key.lower(): list(values) for key, values in attributes.items()}
