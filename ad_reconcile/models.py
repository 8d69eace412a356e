"""Pydantic models for representing directory objects and desired state."""

import enum
from typing import Dict, List, Optional, Set

from pydantic import BaseModel, Field, SecretStr, field_validator


@enum.unique
class ObjectKind(enum.Enum):
    """Kind of directory object that is reconciled."""

    USER = "user"
    GROUP = "group"


class DirectoryObject(BaseModel):
    """A snapshot of an object as read from the directory.

    The ``attributes`` are single-valued, only the first value of each
    attribute is observable.  The full value lists are kept in
    ``multi_values`` for the few attributes that need them, most notably
    the group membership.  All attribute names are lowercase.
    """

    #: The distinguished name of the object.
    dn: str
    #: Mapping from lowercase attribute name to its first value.
    attributes: Dict[str, str] = {}
    #: Mapping from lowercase attribute name to all of its values.
    multi_values: Dict[str, List[str]] = {}

    def get(self, name: str, default: str = "") -> str:
        """Get the first value of an attribute, ``default`` if missing."""
        return self.attributes.get(name.lower(), default)

    def values(self, name: str) -> List[str]:
        """Get all values of an attribute, empty if missing."""
        return list(self.multi_values.get(name.lower(), []))

    def has_object_class(self, object_class: str) -> bool:
        """Whether the object carries the given object class."""
        return object_class.lower() in {x.lower() for x in self.values("objectclass")}


class DesiredUser(BaseModel):
    """A user as configured.

    The DN is derived as ``cn=<first_name> <last_name>,<ou>``.  Everything
    but ``description`` and ``ou`` is fixed once the user exists.
    """

    #: The first name of the user.
    first_name: str
    #: The last name of the user.
    last_name: str
    #: The login name (``sAMAccountName``).
    login: str
    #: The email address.
    email: str
    #: The initial password, never read back.
    password: Optional[SecretStr] = None
    #: The DN of the organizational unit to place the user in.
    ou: str
    #: Description of the user.
    description: str = ""
    #: Extra LDAP attributes, merged over the built-in ones on creation.
    attributes: Dict[str, str] = {}


class DesiredGroup(BaseModel):
    """A group as configured.

    The DN is derived as ``cn=<name>,<base_ou>``.
    """

    #: The common name of the group.
    name: str
    #: The DN of the organizational unit holding the group.
    base_ou: str
    #: Base DN for resolving members that are not given as DNs.
    user_base: str = ""
    #: Description of the group.
    description: str = ""
    #: Member identifiers, either DNs or login names.
    members: Set[str] = set()
    #: Leave members alone that exist in the directory but not here.
    ignore_unknown_members: bool = False

    @field_validator("members")
    @classmethod
    def drop_empty_members(cls, value: Set[str]) -> Set[str]:
        return {m for m in value if m}


class ResolvedUser(DesiredUser):
    """A user as re-derived from the directory."""

    #: The lowercased DN, used as identifier.
    id: str


class ResolvedGroup(DesiredGroup):
    """A group as re-derived from the directory."""

    #: The lowercased DN, used as identifier.
    id: str


class MembershipDiff(BaseModel):
    """Changes to apply to a group's membership."""

    #: Member DNs to add.
    to_add: Set[str] = set()
    #: Member DNs to remove.
    to_remove: Set[str] = set()

    def is_empty(self) -> bool:
        return not self.to_add and not self.to_remove


class ResourceFile(BaseModel):
    """A resource definition as handed to the command line."""

    #: The kind of the object.
    kind: ObjectKind
    #: The desired state, a ``DesiredUser`` or ``DesiredGroup``.
    spec: Dict


class StateFile(BaseModel):
    """Last known state of a resource, as written by the command line."""

    #: The kind of the object.
    kind: ObjectKind
    #: The identifier; empty once the object is gone.
    id: str = ""
    #: The last known configuration.
    spec: Dict = Field(default_factory=dict)
