"""Lookup of directory objects."""

import sys
from typing import Optional, Sequence

from rich.console import Console

from ad_reconcile.codec import decode_attributes, lower_multi_values
from ad_reconcile.constants import ALL_ATTRIBUTES, SCOPE_BASE, SCOPE_SUBTREE
from ad_reconcile.exceptions import AmbiguousResultError
from ad_reconcile.models import DirectoryObject
from ad_reconcile.session import DirectorySession

#: The rich console to use for output.
console_err = Console(file=sys.stderr)

#: Filter matching any object, used for base-scope lookups.
ANY_OBJECT_FILTER = "(objectClass=*)"


class ObjectRepository:
    """Fetches single directory objects.

    Nothing is cached, every call goes to the directory.
    """

    def __init__(self, session: DirectorySession):
        #: The session to search with.
        self.session = session

    def _find(
        self,
        search_filter: str,
        search_base: str,
        attributes: Sequence[str],
        scope: str,
    ) -> Optional[DirectoryObject]:
        results = self.session.search(search_base, search_filter, attributes, scope)
        if not results:
            return None
        if len(results) > 1:
            raise AmbiguousResultError(search_filter, search_base, len(results))
        dn, values = results[0]
        return DirectoryObject(
            dn=dn,
            attributes=decode_attributes(values),
            multi_values=lower_multi_values(values),
        )

    def find_one(
        self,
        search_filter: str,
        search_base: str,
        attributes: Sequence[str] = (ALL_ATTRIBUTES,),
    ) -> Optional[DirectoryObject]:
        """Find the single object matching ``search_filter`` below ``search_base``.

        :return: The object or ``None`` if nothing matches.
        :raises AmbiguousResultError: If more than one object matches.
        """
        console_err.log(f"Searching {search_filter} under {search_base}...")
        return self._find(search_filter, search_base, attributes, SCOPE_SUBTREE)

    def get_by_dn(
        self, dn: str, attributes: Sequence[str] = (ALL_ATTRIBUTES,)
    ) -> Optional[DirectoryObject]:
        """Get the object with the given DN or ``None`` if it does not exist."""
        return self._find(ANY_OBJECT_FILTER, dn, attributes, SCOPE_BASE)
