"""Exceptions raised while reconciling directory objects."""

from typing import Optional


class ReconcileError(Exception):
    """Base class for all reconciliation errors."""


class AmbiguousResultError(ReconcileError):
    """A search expected to be unique matched more than one object."""

    def __init__(self, search_filter: str, search_base: str, count: int):
        super().__init__(
            f"search for {search_filter} under {search_base} returned {count} objects, "
            "expected at most one"
        )
        self.search_filter = search_filter
        self.search_base = search_base
        self.count = count


class TransportError(ReconcileError):
    """A directory call failed, either on the wire or with an LDAP result code."""

    def __init__(
        self,
        operation: str,
        target: str,
        message: str,
        result_code: Optional[int] = None,
    ):
        code = f" (result code {result_code})" if result_code is not None else ""
        super().__init__(f"{operation} {target} failed{code}: {message}")
        self.operation = operation
        self.target = target
        self.result_code = result_code


class EntryAlreadyExistsError(TransportError):
    """The directory refused an add because the DN is taken."""


class InvariantViolationError(ReconcileError):
    """The directory is in a state the requested operation cannot proceed from."""
