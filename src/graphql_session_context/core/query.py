"""Query constructors for session-store lookups.

Provides the ambient Query constructor, bound to a session store, and the
identity-scoped variant created per session token. Resolvers receive one of
these as ``context["Query"]`` and build lookups with it; the scoped variant
runs every lookup with the caller's session token instead of ambient
privileges.
"""

from collections.abc import Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, ClassVar

if TYPE_CHECKING:
    from graphql_session_context.core.session import SessionStore


class Query:
    """A lookup against one class of objects in a session store.

    Constraints are equality-only and combined with AND. Instances are
    cheap and single-use; build a new one per lookup.

    Subclasses produced by bind_query() and create_query() carry the store
    (and optionally the session token) as class attributes, so resolvers
    only ever call ``Query("ClassName")``.

    Example:
        query = Query("_Session").equal_to("sessionToken", token)
        session = await query.first(use_master_key=True)
    """

    store: ClassVar["SessionStore | None"] = None
    session_token: ClassVar[str | None] = None

    def __init__(self, class_name: str) -> None:
        if not class_name:
            raise ValueError("Query requires a non-empty class name")
        self.class_name = class_name
        self._constraints: dict[str, Any] = {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.class_name!r}, constraints={self._constraints!r})"

    @property
    def constraints(self) -> Mapping[str, Any]:
        """Read-only view of the equality constraints added so far."""
        return MappingProxyType(self._constraints)

    def equal_to(self, field: str, value: Any) -> "Query":
        """Constrain ``field`` to equal ``value``. Returns self for chaining."""
        self._constraints[field] = value
        return self

    def matches(self, obj: Mapping[str, Any]) -> bool:
        """Whether ``obj`` satisfies every constraint of this query."""
        return all(
            field in obj and obj[field] == value for field, value in self._constraints.items()
        )

    async def first(
        self,
        *,
        use_master_key: bool = False,
        session_token: str | None = None,
    ) -> Mapping[str, Any] | None:
        """Return the first matching object, or None when nothing matches.

        Raises:
            SessionLookupError: If the store cannot serve the lookup.
        """
        return await self._bound_store().first(
            self,
            use_master_key=use_master_key,
            session_token=session_token or self.session_token,
        )

    async def find(
        self,
        *,
        use_master_key: bool = False,
        session_token: str | None = None,
    ) -> list[Mapping[str, Any]]:
        """Return every matching object readable with the given privileges.

        Raises:
            SessionLookupError: If the store cannot serve the lookup.
        """
        return await self._bound_store().find(
            self,
            use_master_key=use_master_key,
            session_token=session_token or self.session_token,
        )

    def _bound_store(self) -> "SessionStore":
        store = type(self).store
        if store is None:
            raise RuntimeError(
                f"{type(self).__name__} is not bound to a session store; "
                "use bind_query() or create_query()"
            )
        return store


def bind_query(store: "SessionStore") -> type[Query]:
    """Return the ambient Query constructor bound to ``store``.

    Lookups built with it run without a session token, so they only see
    what the store exposes to anonymous or master-key callers.
    """
    return type("Query", (Query,), {"store": store, "session_token": None})


def create_query(store: "SessionStore", session_token: str) -> type[Query]:
    """Return a Query constructor scoped to ``session_token``.

    Every first()/find() made through the returned class defaults to the
    given token, so the store evaluates read permissions for that identity.
    Construction is pure: the store is not touched until a lookup runs.

    Args:
        store: Session store the lookups run against.
        session_token: Raw session token of the caller.

    Returns:
        A Query subclass bound to the store and the token.
    """
    if not session_token:
        raise ValueError("create_query requires a non-empty session token")
    return type("ScopedQuery", (Query,), {"store": store, "session_token": session_token})
