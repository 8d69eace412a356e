"""Group membership reconciliation."""

import sys
from typing import Dict, Iterable, Optional

from ldap3.utils.conv import escape_filter_chars
from rich.console import Console

from ad_reconcile.constants import ATTR_MEMBER
from ad_reconcile.dn import looks_like_dn
from ad_reconcile.exceptions import InvariantViolationError
from ad_reconcile.models import MembershipDiff
from ad_reconcile.repository import ObjectRepository
from ad_reconcile.session import DirectorySession

#: The rich console to use for output.
console_err = Console(file=sys.stderr)


def compute_membership_diff(
    current: Iterable[str], desired: Iterable[str], ignore_unknown_members: bool
) -> MembershipDiff:
    """Compute the members to add and to remove.

    Member references are compared case-sensitively.  With
    ``ignore_unknown_members``, members that are only present in the
    directory are left alone, so nothing is ever removed.
    """
    current_set = set(current)
    desired_set = set(desired)
    return MembershipDiff(
        to_add=desired_set - current_set,
        to_remove=set() if ignore_unknown_members else current_set - desired_set,
    )


def apply_membership_diff(session: DirectorySession, group_dn: str, diff: MembershipDiff) -> bool:
    """Apply ``diff`` to the group with one modify request.

    :return: Whether a request was issued; an empty diff issues none.
    """
    if diff.is_empty():
        console_err.log(f"Membership of {group_dn} is up to date.")
        return False
    add = {ATTR_MEMBER: sorted(diff.to_add)} if diff.to_add else None
    delete = {ATTR_MEMBER: sorted(diff.to_remove)} if diff.to_remove else None
    console_err.log(
        f"+ modify members of {group_dn}: add={sorted(diff.to_add)}, "
        f"remove={sorted(diff.to_remove)}"
    )
    session.modify(group_dn, add=add, delete=delete)
    return True


class MemberResolver:
    """Maps configured member identifiers to member DNs.

    Identifiers that are DNs are taken as they are, everything else is
    looked up by ``sAMAccountName`` below the user base.
    """

    def __init__(self, repository: ObjectRepository, user_base: str):
        #: The repository to look members up in.
        self.repository = repository
        #: The base DN to search members below.
        self.user_base = user_base

    def resolve(self, identifier: str) -> Optional[str]:
        """Get the DN for ``identifier`` or ``None`` if there is no such member."""
        if looks_like_dn(identifier):
            return identifier
        search_filter = f"(sAMAccountName={escape_filter_chars(identifier)})"
        obj = self.repository.find_one(search_filter, self.user_base, ["sAMAccountName"])
        return obj.dn if obj else None

    def resolve_all(self, identifiers: Iterable[str], strict: bool = True) -> Dict[str, str]:
        """Resolve all identifiers, returns mapping from DN to identifier.

        Unknown identifiers raise ``InvariantViolationError`` if ``strict``
        and are skipped otherwise.
        """
        result = {}
        for identifier in sorted(identifiers):
            dn = self.resolve(identifier)
            if dn is None:
                if strict:
                    raise InvariantViolationError(
                        f"member {identifier!r} not found under {self.user_base}"
                    )
                continue
            result[dn] = identifier
        return result
