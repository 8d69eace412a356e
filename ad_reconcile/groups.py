"""Lifecycle of Active Directory group objects."""

import sys
from typing import Dict, Iterable, Optional

from ldap3.utils.conv import escape_filter_chars
from rich.console import Console

from ad_reconcile.codec import encode_attributes, normalize_keys
from ad_reconcile.constants import (
    ATTR_DESCRIPTION,
    ATTR_MEMBER,
    GROUP_ATTRIBUTES,
    GROUP_OBJ_CLASSES,
    OBJ_CLASS_GROUP,
)
from ad_reconcile.dn import derive_group_dn, dn_equal, normalize_dn, parent_dn, split_dn
from ad_reconcile.exceptions import InvariantViolationError
from ad_reconcile.membership import MemberResolver, apply_membership_diff, compute_membership_diff
from ad_reconcile.models import DesiredGroup, DirectoryObject, ResolvedGroup
from ad_reconcile.repository import ObjectRepository
from ad_reconcile.session import DirectorySession

#: The rich console to use for output.
console_err = Console(file=sys.stderr)


def group_dn(group: DesiredGroup) -> str:
    """Get the DN for the group."""
    return derive_group_dn(group.name, group.base_ou)


def align_to_live(member_dns: Iterable[str], live_members: Iterable[str]) -> Dict[str, str]:
    """Map configured member DNs to the spelling the directory uses for them.

    DNs without a case-insensitive match among ``live_members`` map to
    themselves.
    """
    live = {normalize_dn(dn): dn for dn in live_members}
    return {dn: live.get(normalize_dn(dn), dn) for dn in member_dns}


class GroupReconciler:
    """Converges group objects and their membership to their configuration."""

    def __init__(self, session: DirectorySession, search_base: str):
        #: The session to talk to the directory with.
        self.session = session
        #: The repository for looking up objects.
        self.repository = ObjectRepository(session)
        #: The base DN to find groups by name below.
        self.search_base = search_base

    def _resolver(self, group: DesiredGroup) -> MemberResolver:
        return MemberResolver(self.repository, group.user_base or self.search_base)

    def _find(self, group: DesiredGroup) -> Optional[DirectoryObject]:
        """Find the group at its DN, else by name below the search base."""
        obj = self.repository.get_by_dn(group_dn(group), GROUP_ATTRIBUTES)
        if obj is not None and obj.has_object_class(OBJ_CLASS_GROUP):
            return obj
        search_filter = f"(&(objectClass={OBJ_CLASS_GROUP})(cn={escape_filter_chars(group.name)}))"
        return self.repository.find_one(search_filter, self.search_base, GROUP_ATTRIBUTES)

    def create(self, group: DesiredGroup) -> Optional[ResolvedGroup]:
        """Make sure the group exists, then converge it like an update.

        An existing group at the derived DN is adopted.
        """
        dn = group_dn(group)
        console_err.log(f"Creating group object {dn}")
        existing = self.repository.get_by_dn(dn, GROUP_ATTRIBUTES)
        if existing is None:
            attributes = {"sAMAccountName": group.name}
            if group.description:
                attributes["description"] = group.description
            attributes = normalize_keys(attributes)
            console_err.log(f"+ add group\nDN={dn}\nclasses={GROUP_OBJ_CLASSES}\ndata={attributes}")
            self.session.add(dn, GROUP_OBJ_CLASSES, encode_attributes(attributes))
            if self.repository.get_by_dn(dn, GROUP_ATTRIBUTES) is None:
                console_err.log(f"Group object {dn} not found after adding it")
                return None
        elif not existing.has_object_class(OBJ_CLASS_GROUP):
            raise InvariantViolationError(f"{dn} already exists and is not a group")
        else:
            console_err.log(f"Group object {dn} already exists, adopting it")
        return self.update(group, group)

    def read(self, group: DesiredGroup) -> Optional[ResolvedGroup]:
        """Read the group back from the directory.

        Members that are known to the configuration are reported with their
        configured identifier, the others with their DN unless
        ``ignore_unknown_members`` is set.

        :return: The group as found or ``None`` if it no longer exists.
        """
        obj = self._find(group)
        if obj is None:
            console_err.log(f"Group object {group.name} no longer exists under {self.search_base}")
            return None
        known = {
            normalize_dn(dn): identifier
            for dn, identifier in self._resolver(group).resolve_all(group.members, strict=False).items()
        }
        members = set()
        for member_dn in obj.values(ATTR_MEMBER):
            identifier = known.get(normalize_dn(member_dn))
            if identifier is not None:
                members.add(identifier)
            elif not group.ignore_unknown_members:
                members.add(member_dn)
        live_name = obj.get("cn")
        live_base_ou = parent_dn(obj.dn)
        return ResolvedGroup(
            id=obj.dn.lower(),
            name=group.name if live_name.lower() == group.name.lower() else live_name,
            base_ou=group.base_ou if dn_equal(live_base_ou, group.base_ou) else live_base_ou.lower(),
            user_base=group.user_base,
            description=obj.get(ATTR_DESCRIPTION),
            members=members,
            ignore_unknown_members=group.ignore_unknown_members,
        )

    def update(self, group: DesiredGroup, previous: DesiredGroup) -> Optional[ResolvedGroup]:
        """Converge description, location and membership of the group."""
        target = group_dn(group)
        source = group_dn(previous)
        obj = self.repository.get_by_dn(source, GROUP_ATTRIBUTES)
        if obj is None and not dn_equal(source, target):
            obj = self.repository.get_by_dn(target, GROUP_ATTRIBUTES)
        if obj is None:
            raise InvariantViolationError(f"group {source} vanished")

        if obj.get(ATTR_DESCRIPTION) != group.description:
            console_err.log(f"+ modify description of {obj.dn}")
            value = [group.description] if group.description else []
            self.session.modify(obj.dn, replace={ATTR_DESCRIPTION: value})

        if dn_equal(obj.dn, target):
            console_err.log(f"Group object {obj.dn} is already at its target DN")
            current_dn = obj.dn
        else:
            rdn, new_parent = split_dn(target)
            console_err.log(f"+ move group object {obj.dn} to {target}")
            self.session.modify_dn(obj.dn, rdn, True, new_parent)
            current_dn = target

        live_members = obj.values(ATTR_MEMBER)
        desired_dns = self._resolver(group).resolve_all(group.members)
        aligned = align_to_live(desired_dns, live_members)
        diff = compute_membership_diff(
            live_members, aligned.values(), group.ignore_unknown_members
        )
        apply_membership_diff(self.session, current_dn, diff)
        return self.read(group)

    def delete(self, group: DesiredGroup):
        """Delete the group by its DN."""
        dn = group_dn(group)
        console_err.log(f"+ delete group object {dn}")
        self.session.delete(dn)
