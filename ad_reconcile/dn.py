"""Distinguished name construction and comparison.

DNs of managed objects are always derived from configuration, never stored.
Active Directory compares DN components case-insensitively, so all
comparisons go through ``dn_equal``.
"""

from typing import List, Tuple

from ldap3.core.exceptions import LDAPInvalidDnError
from ldap3.utils.dn import escape_rdn, parse_dn

from ad_reconcile.exceptions import InvariantViolationError


def _components(dn: str) -> List[Tuple[str, str, str]]:
    try:
        return parse_dn(dn, escape=False, strip=True)
    except LDAPInvalidDnError as e:
        raise InvariantViolationError(f"malformed DN {dn!r}: {e}") from e


def derive_user_dn(first_name: str, last_name: str, ou: str) -> str:
    """Get the DN for a user, ``cn=<first> <last>,<ou>``."""
    return f"cn={escape_rdn(f'{first_name} {last_name}')},{ou}"


def derive_group_dn(name: str, base_ou: str) -> str:
    """Get the DN for a group, ``cn=<name>,<base_ou>``."""
    return f"cn={escape_rdn(name)},{base_ou}"


def normalize_dn(dn: str) -> str:
    """Lowercase a DN and strip whitespace around its components."""
    return "".join(
        f"{attr}={value}{separator}" for attr, value, separator in _components(dn)
    ).lower()


def dn_equal(lhs: str, rhs: str) -> bool:
    """Compare two DNs case-insensitively."""
    if not lhs or not rhs:
        return lhs == rhs
    return normalize_dn(lhs) == normalize_dn(rhs)


def split_dn(dn: str) -> Tuple[str, str]:
    """Split a DN into its RDN and the DN of its parent.

    Multi-valued RDNs (joined with ``+``) are kept together.
    """
    components = _components(dn)
    rdn = []
    for idx, (attr, value, separator) in enumerate(components):
        rdn.append(f"{attr}={value}")
        if separator != "+":
            parent = "".join(f"{a}={v}{s}" for a, v, s in components[idx + 1 :])
            return "+".join(rdn), parent
    raise InvariantViolationError(f"malformed DN {dn!r}: no RDN found")


def parent_dn(dn: str) -> str:
    """Get the DN of the parent of ``dn``."""
    return split_dn(dn)[1]


def looks_like_dn(value: str) -> bool:
    """Whether ``value`` parses as a DN rather than being a plain name."""
    if "=" not in value:
        return False
    try:
        parse_dn(value, strip=True)
    except LDAPInvalidDnError:
        return False
    return True
