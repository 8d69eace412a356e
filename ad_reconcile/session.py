"""Code for talking to the directory server."""

import sys
from typing import Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

import ldap3
from ldap3.core.exceptions import LDAPException
from rich.console import Console

from ad_reconcile.config import LdapSettings
from ad_reconcile.constants import (
    ATTR_UNICODE_PWD,
    RESULT_ENTRY_ALREADY_EXISTS,
    RESULT_NO_SUCH_OBJECT,
    RESULT_SUCCESS,
    SCOPE_BASE,
    SCOPE_SUBTREE,
)
from ad_reconcile.exceptions import EntryAlreadyExistsError, TransportError

#: The rich console to use for output.
console_err = Console(file=sys.stderr)

#: One search result, DN and multi-valued attributes.
SearchResult = Tuple[str, Dict[str, List[str]]]

#: Mapping from search scope names to ``ldap3`` constants.
LDAP3_SCOPES = {
    SCOPE_SUBTREE: ldap3.SUBTREE,
    SCOPE_BASE: ldap3.BASE,
}


class DirectorySession(Protocol):
    """The primitives needed from a connected directory session."""

    def search(
        self,
        search_base: str,
        search_filter: str,
        attributes: Sequence[str],
        scope: str = SCOPE_SUBTREE,
    ) -> List[SearchResult]: ...

    def add(
        self, dn: str, object_classes: Sequence[str], attributes: Mapping[str, List[str]]
    ) -> None: ...

    def modify(
        self,
        dn: str,
        add: Optional[Mapping[str, List[str]]] = None,
        replace: Optional[Mapping[str, List[str]]] = None,
        delete: Optional[Mapping[str, List[str]]] = None,
    ) -> None: ...

    def modify_dn(
        self, dn: str, new_rdn: str, delete_old_rdn: bool, new_superior: Optional[str]
    ) -> None: ...

    def delete(self, dn: str) -> None: ...


def encode_password(password: str) -> bytes:
    """Encode a password the way AD expects it in ``unicodePwd``."""
    return f'"{password}"'.encode("utf-16-le")


def _value_as_str(value) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _attribute_as_str_list(value) -> List[str]:
    """Get attribute value(s) as list of strings."""
    if isinstance(value, (list, tuple)):
        return [_value_as_str(x) for x in value]
    elif value is None:
        return []
    else:
        return [_value_as_str(value)]


class Ldap3Session:
    """Wrapper around an ``ldap3`` connection."""

    def __init__(self, connection: ldap3.Connection):
        #: Connection to the LDAP server.
        self.connection = connection

    def _check(self, ok: bool, operation: str, target: str):
        if ok:
            return
        result = self.connection.result or {}
        code = result.get("result")
        message = result.get("description") or result.get("message") or "unknown error"
        if code == RESULT_ENTRY_ALREADY_EXISTS:
            raise EntryAlreadyExistsError(operation, target, message, code)
        raise TransportError(operation, target, message, code)

    def search(
        self,
        search_base: str,
        search_filter: str,
        attributes: Sequence[str],
        scope: str = SCOPE_SUBTREE,
    ) -> List[SearchResult]:
        """Search and return the matching entries.

        A search below a base that does not exist yields no entries.
        """
        target = f"{search_filter} under {search_base}"
        try:
            ok = self.connection.search(
                search_base=search_base,
                search_filter=search_filter,
                search_scope=LDAP3_SCOPES[scope],
                attributes=list(attributes),
            )
        except LDAPException as e:
            raise TransportError("search", target, str(e)) from e
        if not ok:
            code = (self.connection.result or {}).get("result")
            if code not in (RESULT_SUCCESS, RESULT_NO_SUCH_OBJECT):
                self._check(ok, "search", target)
            return []
        result = []
        for entry in self.connection.response or []:
            if entry.get("type") != "searchResEntry":
                continue  # skip referrals
            result.append(
                (
                    entry["dn"],
                    {
                        name: _attribute_as_str_list(value)
                        for name, value in entry.get("attributes", {}).items()
                    },
                )
            )
        return result

    def add(
        self, dn: str, object_classes: Sequence[str], attributes: Mapping[str, List[str]]
    ):
        wire = {}
        for name, values in attributes.items():
            if name.lower() == ATTR_UNICODE_PWD:
                wire[name] = [encode_password(v) for v in values]
            else:
                wire[name] = list(values)
        try:
            ok = self.connection.add(dn, list(object_classes), wire)
        except LDAPException as e:
            raise TransportError("add", dn, str(e)) from e
        self._check(ok, "add", dn)

    def modify(
        self,
        dn: str,
        add: Optional[Mapping[str, List[str]]] = None,
        replace: Optional[Mapping[str, List[str]]] = None,
        delete: Optional[Mapping[str, List[str]]] = None,
    ):
        changes: Dict[str, List[Tuple[str, List[str]]]] = {}
        for op, mapping in (
            (ldap3.MODIFY_ADD, add),
            (ldap3.MODIFY_REPLACE, replace),
            (ldap3.MODIFY_DELETE, delete),
        ):
            for name, values in (mapping or {}).items():
                changes.setdefault(name, []).append((op, list(values)))
        try:
            ok = self.connection.modify(dn, changes)
        except LDAPException as e:
            raise TransportError("modify", dn, str(e)) from e
        self._check(ok, "modify", dn)

    def modify_dn(self, dn: str, new_rdn: str, delete_old_rdn: bool, new_superior: Optional[str]):
        try:
            ok = self.connection.modify_dn(
                dn, new_rdn, delete_old_dn=delete_old_rdn, new_superior=new_superior
            )
        except LDAPException as e:
            raise TransportError("modify DN", dn, str(e)) from e
        self._check(ok, "modify DN", dn)

    def delete(self, dn: str):
        try:
            ok = self.connection.delete(dn)
        except LDAPException as e:
            raise TransportError("delete", dn, str(e)) from e
        self._check(ok, "delete", dn)


def connect(config: LdapSettings) -> Ldap3Session:
    """Connect and bind to the LDAP server described by ``config``."""
    server = ldap3.Server(
        host=config.server_host,
        port=config.server_port,
        use_ssl=config.use_ssl,
    )
    console_err.log(f"Connecting to {server.host}:{server.port}...")
    try:
        connection = ldap3.Connection(
            server=server,
            user=config.bind_dn,
            password=config.bind_pw.get_secret_value(),
            auto_bind=True,
        )
    except LDAPException as e:
        raise TransportError("bind", config.bind_dn, str(e)) from e
    console_err.log("... connected.")
    return Ldap3Session(connection)


class DryRunSession:
    """Session that passes searches through and only logs writes."""

    def __init__(self, session: DirectorySession):
        #: The session to run searches against.
        self.session = session

    def search(
        self,
        search_base: str,
        search_filter: str,
        attributes: Sequence[str],
        scope: str = SCOPE_SUBTREE,
    ) -> List[SearchResult]:
        return self.session.search(search_base, search_filter, attributes, scope)

    def add(
        self, dn: str, object_classes: Sequence[str], attributes: Mapping[str, List[str]]
    ):
        console_err.log(f"  ... **dry run, not adding** {dn}")

    def modify(
        self,
        dn: str,
        add: Optional[Mapping[str, List[str]]] = None,
        replace: Optional[Mapping[str, List[str]]] = None,
        delete: Optional[Mapping[str, List[str]]] = None,
    ):
        console_err.log(f"  ... **dry run, not modifying** {dn}")

    def modify_dn(self, dn: str, new_rdn: str, delete_old_rdn: bool, new_superior: Optional[str]):
        console_err.log(f"  ... **dry run, not moving** {dn}")

    def delete(self, dn: str):
        console_err.log(f"  ... **dry run, not deleting** {dn}")
