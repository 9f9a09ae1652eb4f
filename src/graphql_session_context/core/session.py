"""Session store contract and the session-token lookup.

The store is an injected collaborator: anything with async first()/find()
methods that accept a Query works. InMemorySessionStore is a dict-backed
implementation for development and tests.
"""

import logging
from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from graphql_session_context.core.query import Query
from graphql_session_context.exceptions import PermissionDeniedError

logger = logging.getLogger(__name__)

# Class holding session objects, and the field carrying the raw token
SESSION_CLASS_NAME = "_Session"
SESSION_TOKEN_FIELD = "sessionToken"

# Per-object read permissions: list of user ids, "*" for public
READ_PERMISSIONS_FIELD = "_rperm"
PUBLIC_READ = "*"

SessionRecord = Mapping[str, Any]


@runtime_checkable
class SessionStore(Protocol):
    """Asynchronous object store the session lookup runs against.

    Implementations decide what a caller may read: ``use_master_key``
    bypasses all read rules, ``session_token`` identifies the caller.
    Failures are raised as SessionLookupError (or a subclass).
    """

    async def first(
        self,
        query: Query,
        *,
        use_master_key: bool = False,
        session_token: str | None = None,
    ) -> Mapping[str, Any] | None: ...

    async def find(
        self,
        query: Query,
        *,
        use_master_key: bool = False,
        session_token: str | None = None,
    ) -> list[Mapping[str, Any]]: ...


class InMemorySessionStore:
    """Dict-backed SessionStore.

    Objects are plain mappings grouped by class name. Read rules:
        - Session objects are readable with the master key only.
        - Other objects are readable with the master key, or when their
          ``_rperm`` list contains "*" or the caller's user id. Objects
          without ``_rperm`` are public.
        - A session token that matches no session reads as anonymous.

    Example:
        store = InMemorySessionStore()
        store.add_session("r:abc", user_id="u1")
        store.add("Note", {"text": "hi", "_rperm": ["u1"]})
    """

    def __init__(self) -> None:
        self._objects: dict[str, list[dict[str, Any]]] = {}

    def add(self, class_name: str, obj: Mapping[str, Any]) -> dict[str, Any]:
        """Store a copy of ``obj`` under ``class_name`` and return it."""
        stored = dict(obj)
        self._objects.setdefault(class_name, []).append(stored)
        return stored

    def add_session(self, session_token: str, *, user_id: str, **fields: Any) -> dict[str, Any]:
        """Store a session object for ``user_id`` keyed by ``session_token``."""
        return self.add(
            SESSION_CLASS_NAME,
            {SESSION_TOKEN_FIELD: session_token, "user": user_id, **fields},
        )

    async def first(
        self,
        query: Query,
        *,
        use_master_key: bool = False,
        session_token: str | None = None,
    ) -> Mapping[str, Any] | None:
        matches = await self.find(
            query, use_master_key=use_master_key, session_token=session_token
        )
        return matches[0] if matches else None

    async def find(
        self,
        query: Query,
        *,
        use_master_key: bool = False,
        session_token: str | None = None,
    ) -> list[Mapping[str, Any]]:
        if query.class_name == SESSION_CLASS_NAME and not use_master_key:
            raise PermissionDeniedError(
                f"Class '{SESSION_CLASS_NAME}' can only be read with the master key"
            )

        candidates = [obj for obj in self._objects.get(query.class_name, []) if query.matches(obj)]
        if use_master_key:
            return candidates

        user_id = self._user_for_token(session_token)
        return [obj for obj in candidates if _is_readable(obj, user_id)]

    def _user_for_token(self, session_token: str | None) -> str | None:
        if not session_token:
            return None
        for session in self._objects.get(SESSION_CLASS_NAME, []):
            if session.get(SESSION_TOKEN_FIELD) == session_token:
                return session.get("user")
        return None


def _is_readable(obj: Mapping[str, Any], user_id: str | None) -> bool:
    permissions = obj.get(READ_PERMISSIONS_FIELD)
    if permissions is None:
        return True
    return PUBLIC_READ in permissions or (user_id is not None and user_id in permissions)


async def lookup_session(query_cls: type[Query], session_token: str) -> SessionRecord | None:
    """Find the session whose token equals ``session_token``.

    Runs with the master key, bypassing the store's read rules. A lookup
    that matches nothing returns None; it is not an error here.

    Raises:
        SessionLookupError: Propagated unchanged from the store.
    """
    query = query_cls(SESSION_CLASS_NAME).equal_to(SESSION_TOKEN_FIELD, session_token)
    session = await query.first(use_master_key=True)

    if session is None:
        logger.warning(
            "Session lookup matched no session",
            extra={"class_name": SESSION_CLASS_NAME},
        )
    else:
        logger.debug("Session lookup succeeded", extra={"class_name": SESSION_CLASS_NAME})

    return session
