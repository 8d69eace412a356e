"""Shared fixtures, including an in-memory directory for testing."""

from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import pytest

from ad_reconcile.constants import (
    RESULT_ENTRY_ALREADY_EXISTS,
    RESULT_NO_SUCH_OBJECT,
    SCOPE_BASE,
    SCOPE_SUBTREE,
)
from ad_reconcile.dn import normalize_dn, split_dn
from ad_reconcile.exceptions import EntryAlreadyExistsError, TransportError

#: Base DN of the test domain.
BASE_DN = "DC=x,DC=com"


def _split_filters(body: str) -> List[str]:
    """Split ``(a)(b)(c)`` into its parenthesized parts."""
    result, depth, start = [], 0, 0
    for idx, char in enumerate(body):
        if char == "(":
            if depth == 0:
                start = idx
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                result.append(body[start : idx + 1])
    return result


def _matches(search_filter: str, attributes: Dict[str, List[str]]) -> bool:
    inner = search_filter[1:-1]
    if inner.startswith("&"):
        return all(_matches(part, attributes) for part in _split_filters(inner[1:]))
    name, value = inner.split("=", 1)
    values = next((v for k, v in attributes.items() if k.lower() == name.lower()), [])
    if value == "*":
        return bool(values)
    return any(v.lower() == value.lower() for v in values)


class FakeDirectorySession:
    """In-memory directory implementing the session primitives.

    Supports equality, presence and ``&`` filters.  Every write is
    recorded in ``writes`` as ``(operation, args)``.
    """

    def __init__(self):
        self.entries: Dict[str, Tuple[str, Dict[str, List[str]]]] = {}
        self.writes: List[Tuple[str, Tuple[Any, ...]]] = []

    def add_entry_for_test(self, dn: str, object_classes: Sequence[str], **attributes: Any):
        """Add an entry without recording a write."""
        values: Dict[str, List[str]] = {"objectClass": list(object_classes)}
        rdn, _ = split_dn(dn)
        values["cn"] = [rdn.split("=", 1)[1]]
        for name, value in attributes.items():
            values[name] = list(value) if isinstance(value, (list, tuple, set)) else [value]
        self.entries[normalize_dn(dn)] = (dn, values)

    def entry(self, dn: str) -> Optional[Dict[str, List[str]]]:
        found = self.entries.get(normalize_dn(dn))
        return found[1] if found else None

    def writes_of(self, operation: str) -> List[Tuple[Any, ...]]:
        return [args for op, args in self.writes if op == operation]

    def _get(self, operation: str, dn: str) -> Tuple[str, Dict[str, List[str]]]:
        found = self.entries.get(normalize_dn(dn))
        if found is None:
            raise TransportError(operation, dn, "no such object", RESULT_NO_SUCH_OBJECT)
        return found

    def search(
        self,
        search_base: str,
        search_filter: str,
        attributes: Sequence[str],
        scope: str = SCOPE_SUBTREE,
    ) -> List[Tuple[str, Dict[str, List[str]]]]:
        base = normalize_dn(search_base)
        wanted = {a.lower() for a in attributes}
        result = []
        for key, (dn, values) in self.entries.items():
            if scope == SCOPE_BASE and key != base:
                continue
            if scope == SCOPE_SUBTREE and key != base and not key.endswith("," + base):
                continue
            if not _matches(search_filter, values):
                continue
            result.append(
                (dn, {k: list(v) for k, v in values.items() if "*" in wanted or k.lower() in wanted})
            )
        return result

    def add(self, dn: str, object_classes: Sequence[str], attributes: Mapping[str, List[str]]):
        self.writes.append(("add", (dn, tuple(object_classes), dict(attributes))))
        if normalize_dn(dn) in self.entries:
            raise EntryAlreadyExistsError("add", dn, "entry exists", RESULT_ENTRY_ALREADY_EXISTS)
        self.add_entry_for_test(dn, object_classes, **{k: v for k, v in attributes.items()})

    def modify(
        self,
        dn: str,
        add: Optional[Mapping[str, List[str]]] = None,
        replace: Optional[Mapping[str, List[str]]] = None,
        delete: Optional[Mapping[str, List[str]]] = None,
    ):
        self.writes.append(("modify", (dn, add, replace, delete)))
        _, values = self._get("modify", dn)
        for name, new in (add or {}).items():
            values.setdefault(name, []).extend(new)
        for name, new in (replace or {}).items():
            values[name] = list(new)
        for name, old in (delete or {}).items():
            values[name] = [v for v in values.get(name, []) if v not in old]

    def modify_dn(self, dn: str, new_rdn: str, delete_old_rdn: bool, new_superior: Optional[str]):
        self.writes.append(("modify_dn", (dn, new_rdn, delete_old_rdn, new_superior)))
        old_dn, values = self._get("modify DN", dn)
        new_dn = f"{new_rdn},{new_superior or split_dn(old_dn)[1]}"
        if normalize_dn(new_dn) == normalize_dn(old_dn):
            raise TransportError("modify DN", dn, "unwilling to perform", 53)
        del self.entries[normalize_dn(old_dn)]
        values["cn"] = [new_rdn.split("=", 1)[1]]
        self.entries[normalize_dn(new_dn)] = (new_dn, values)

    def delete(self, dn: str):
        self.writes.append(("delete", (dn,)))
        self._get("delete", dn)
        del self.entries[normalize_dn(dn)]


@pytest.fixture
def directory() -> FakeDirectorySession:
    """Directory with a few organizational units."""
    result = FakeDirectorySession()
    for ou in ("Old", "New", "Users", "Groups", "Other"):
        result.add_entry_for_test(f"OU={ou},{BASE_DN}", ["top", "organizationalUnit"])
    return result
