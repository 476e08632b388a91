from typing import Any, Callable, Optional

from ..config import READ_ONLY
from ..errors import StorePermissionError

# (path, operation) -> allowed
AccessPolicy = Callable[[str, str], bool]

READ_OPERATIONS = frozenset({"get", "list"})


def allow_all(path: str, operation: str) -> bool:
    return True


def read_only(path: str, operation: str) -> bool:
    return operation in READ_OPERATIONS


def default_policy() -> AccessPolicy:
    return read_only if READ_ONLY else allow_all


def check_access(policy: AccessPolicy, path: str, operation: str, payload: Optional[Any] = None) -> None:
    """Raise StorePermissionError if ``policy`` denies the request."""
    if not policy(path, operation):
        raise StorePermissionError(path, operation, payload)
