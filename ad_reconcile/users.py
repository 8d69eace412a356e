"""Lifecycle of Active Directory user objects."""

import sys
from typing import Dict, Optional

from ldap3.utils.conv import escape_filter_chars
from rich.console import Console

from ad_reconcile.codec import encode_attributes, normalize_keys
from ad_reconcile.constants import (
    ATTR_DESCRIPTION,
    ATTR_UNICODE_PWD,
    OBJ_CLASS_USER,
    UAC_NORMAL_ACCOUNT,
    UAC_NORMAL_ACCOUNT_PASSWD_NOTREQD,
    USER_ATTRIBUTES,
    USER_OBJ_CLASSES,
)
from ad_reconcile.dn import derive_user_dn, dn_equal, parent_dn, split_dn
from ad_reconcile.exceptions import InvariantViolationError
from ad_reconcile.models import DesiredUser, DirectoryObject, ResolvedUser
from ad_reconcile.repository import ObjectRepository
from ad_reconcile.session import DirectorySession

#: The rich console to use for output.
console_err = Console(file=sys.stderr)

#: Fields that cannot change once the user exists.
IMMUTABLE_FIELDS = ("first_name", "last_name", "login", "email")


def user_dn(user: DesiredUser) -> str:
    """Get the DN for the user."""
    return derive_user_dn(user.first_name, user.last_name, user.ou)


class UserReconciler:
    """Converges user objects in the directory to their configuration."""

    def __init__(
        self,
        session: DirectorySession,
        search_base: str,
        upn_suffix: Optional[str] = None,
    ):
        #: The session to talk to the directory with.
        self.session = session
        #: The repository for looking up objects.
        self.repository = ObjectRepository(session)
        #: The base DN to find users by name below.
        self.search_base = search_base
        #: Suffix for ``userPrincipalName``, not set if ``None``.
        self.upn_suffix = upn_suffix

    def build_attributes(self, user: DesiredUser) -> Dict[str, str]:
        """Build the attributes for a new user object.

        Extra attributes from the configuration are merged last and thus
        override the built-in ones.
        """
        attributes = {
            "givenName": user.first_name,
            "sn": user.last_name,
            "displayName": f"{user.first_name} {user.last_name}",
            "sAMAccountName": user.login,
            "mail": user.email,
        }
        if user.description:
            attributes["description"] = user.description
        if self.upn_suffix:
            attributes["userPrincipalName"] = f"{user.login}@{self.upn_suffix}"
        if user.password:
            attributes["unicodePwd"] = user.password.get_secret_value()
            attributes["userAccountControl"] = UAC_NORMAL_ACCOUNT
        else:
            attributes["userAccountControl"] = UAC_NORMAL_ACCOUNT_PASSWD_NOTREQD
        result = normalize_keys(attributes)
        result.update(normalize_keys(user.attributes))
        return result

    def _find(self, user: DesiredUser) -> Optional[DirectoryObject]:
        """Find the user at its DN, else by name below the search base."""
        attributes = list(USER_ATTRIBUTES) + list(user.attributes)
        obj = self.repository.get_by_dn(user_dn(user), attributes)
        if obj is not None and obj.has_object_class(OBJ_CLASS_USER):
            return obj
        name = escape_filter_chars(f"{user.first_name} {user.last_name}")
        search_filter = f"(&(objectClass={OBJ_CLASS_USER})(cn={name}))"
        return self.repository.find_one(search_filter, self.search_base, attributes)

    def create(self, user: DesiredUser) -> Optional[ResolvedUser]:
        """Create the user and return it as read back from the directory."""
        dn = user_dn(user)
        console_err.log(f"Creating user object {dn}")
        existing = self.repository.get_by_dn(dn, USER_ATTRIBUTES)
        if existing is not None:
            if not existing.has_object_class(OBJ_CLASS_USER):
                raise InvariantViolationError(f"{dn} already exists and is not a user")
            raise InvariantViolationError(f"user {dn} already exists")
        attributes = self.build_attributes(user)
        shown = {k: ("***" if k == ATTR_UNICODE_PWD else v) for k, v in attributes.items()}
        console_err.log(f"+ add user\nDN={dn}\nclasses={USER_OBJ_CLASSES}\ndata={shown}")
        self.session.add(dn, USER_OBJ_CLASSES, encode_attributes(attributes))
        return self.read(user)

    def read(self, user: DesiredUser) -> Optional[ResolvedUser]:
        """Read the user back from the directory.

        :return: The user as found or ``None`` if it no longer exists.
        """
        obj = self._find(user)
        if obj is None:
            console_err.log(f"User object {user.first_name} {user.last_name} no longer exists")
            return None
        live_ou = parent_dn(obj.dn)
        return ResolvedUser(
            id=obj.dn.lower(),
            first_name=obj.get("givenname"),
            last_name=obj.get("sn"),
            login=obj.get("samaccountname"),
            email=obj.get("mail"),
            password=user.password,
            ou=user.ou if dn_equal(live_ou, user.ou) else live_ou.lower(),
            description=obj.get(ATTR_DESCRIPTION),
            attributes={key: obj.get(key) for key in user.attributes},
        )

    def update(self, user: DesiredUser, previous: DesiredUser) -> Optional[ResolvedUser]:
        """Converge description and location of an existing user."""
        changed = [
            name
            for name in IMMUTABLE_FIELDS
            if getattr(user, name).lower() != getattr(previous, name).lower()
        ]
        if changed:
            raise InvariantViolationError(
                f"cannot change {', '.join(changed)} of user {user_dn(previous)}, "
                "the object must be replaced"
            )
        obj = self.repository.get_by_dn(user_dn(previous), USER_ATTRIBUTES)
        if obj is None or not obj.has_object_class(OBJ_CLASS_USER):
            obj = self._find(user)
        if obj is None:
            raise InvariantViolationError(
                f"user {user.first_name} {user.last_name} vanished from {self.search_base}"
            )

        if obj.get(ATTR_DESCRIPTION) != user.description:
            console_err.log(f"+ modify description of {obj.dn}")
            value = [user.description] if user.description else []
            self.session.modify(obj.dn, replace={ATTR_DESCRIPTION: value})

        target = user_dn(user)
        if dn_equal(obj.dn, target):
            console_err.log(f"User object {obj.dn} is already in the target ou")
        else:
            rdn, new_parent = split_dn(target)
            console_err.log(f"+ move user object {obj.dn} from {previous.ou} to {new_parent}")
            self.session.modify_dn(obj.dn, rdn, True, new_parent)
        return self.read(user)

    def delete(self, user: DesiredUser):
        """Delete the user by its DN."""
        dn = user_dn(user)
        console_err.log(f"+ delete user object {dn}")
        self.session.delete(dn)
