"""Per-request execution options for a GraphQL endpoint.

setup() validates the configuration once and returns a ContextBuilder.
The builder is called once per request and returns a future resolving to
the ExecutionOptions the GraphQL executor needs: the schema, the GraphiQL
flag, passthrough options and an execution context whose Query constructor
is scoped to the caller's session token when one is presented.
"""

import asyncio
import functools
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from graphql import GraphQLSchema, assert_schema, validate_schema

from graphql_session_context.core.query import bind_query, create_query
from graphql_session_context.core.session import (
    SESSION_TOKEN_FIELD,
    SessionStore,
    lookup_session,
)
from graphql_session_context.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Request header carrying the raw session token
DEFAULT_AUTH_HEADER = "authorization"


@dataclass(frozen=True)
class ExecutionContext:
    """Context handed to resolvers for one request.

    Attributes:
        Query: Query constructor; ambient for anonymous requests, scoped to
            the session token otherwise.
        session_token: Raw session token, or None for anonymous requests.
    """

    Query: Any  # noqa: N815
    session_token: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Resolver-facing mapping; ``sessionToken`` only when authenticated."""
        context: dict[str, Any] = {"Query": self.Query}
        if self.session_token is not None:
            context[SESSION_TOKEN_FIELD] = self.session_token
        return context


@dataclass(frozen=True)
class ExecutionOptions:
    """Everything the GraphQL executor needs to serve one request.

    Attributes:
        schema: Schema shared by reference across all requests.
        graphiql: Whether the GraphiQL IDE is served.
        context: Execution context for resolvers.
        extra: Setup options passed through unexamined.
    """

    schema: GraphQLSchema
    graphiql: bool
    context: ExecutionContext
    extra: Mapping[str, Any] = field(default_factory=dict)


class ContextBuilder:
    """Builds ExecutionOptions for each incoming request.

    Calling the builder always returns an asyncio future:
        - No session token: the future is already done, no lookup runs.
        - Session token present: the future is a task that looks the session
          up with the master key and resolves to options scoped to that
          token, or fails with the store's exception.

    Use setup() rather than instantiating directly; it validates the
    configuration.
    """

    def __init__(
        self,
        schema: GraphQLSchema,
        *,
        session_store: SessionStore,
        graphiql: bool,
        query: Any,
        query_factory: Callable[[str], Any],
        header: str,
        extra: Mapping[str, Any],
    ) -> None:
        self.schema = schema
        self.session_store = session_store
        self.graphiql = graphiql
        self.query = query
        self.query_factory = query_factory
        self.header = header
        self.extra = extra

    def __call__(self, request: Any) -> "asyncio.Future[ExecutionOptions]":
        """Start building options for ``request``.

        Must be called from a running event loop.
        """
        loop = asyncio.get_running_loop()
        session_token = read_session_token(request, self.header)

        if not session_token:
            logger.debug("No session token, using ambient query")
            future: asyncio.Future[ExecutionOptions] = loop.create_future()
            future.set_result(self._options(ExecutionContext(Query=self.query)))
            return future

        return loop.create_task(self._authorize(session_token))

    async def build(self, request: Any) -> ExecutionOptions:
        """Coroutine form of calling the builder."""
        return await self(request)

    async def _authorize(self, session_token: str) -> ExecutionOptions:
        try:
            await lookup_session(self.query, session_token)
        except Exception as exc:
            logger.info(
                "Session lookup failed",
                extra={"error_type": type(exc).__name__},
            )
            raise

        logger.debug("Session token accepted, using scoped query")
        return self._options(
            ExecutionContext(
                Query=self.query_factory(session_token),
                session_token=session_token,
            )
        )

    def _options(self, context: ExecutionContext) -> ExecutionOptions:
        return ExecutionOptions(
            schema=self.schema,
            graphiql=self.graphiql,
            context=context,
            extra=self.extra,
        )


def setup(
    schema: GraphQLSchema | None = None,
    *,
    session_store: SessionStore | None = None,
    graphiql: bool = False,
    query: Any = None,
    query_factory: Callable[[str], Any] | None = None,
    header: str = DEFAULT_AUTH_HEADER,
    **options: Any,
) -> ContextBuilder:
    """Validate the configuration and return a per-request ContextBuilder.

    Validation happens here, exactly once; the returned builder never
    re-checks the schema.

    Args:
        schema: The GraphQL schema to execute against.
        session_store: Store the session lookup runs against.
        graphiql: Whether the GraphiQL IDE is served.
        query: Ambient Query constructor for anonymous requests. Defaults
            to a Query bound to ``session_store``.
        query_factory: Builds the token-scoped Query constructor. Defaults
            to create_query() bound to ``session_store``.
        header: Request header carrying the raw session token.
        **options: Passed through unexamined into ExecutionOptions.extra.

    Returns:
        A ContextBuilder to call once per request.

    Raises:
        ConfigurationError: If the schema is missing or invalid, the store
            does not implement first()/find(), or query_factory is not
            callable.

    Example:
        builder = setup(schema=schema, session_store=store, graphiql=True)
        options = await builder(request)
    """
    _validate_schema(schema)

    if session_store is None:
        raise ConfigurationError("session_store is required")
    if not isinstance(session_store, SessionStore):
        raise ConfigurationError(
            "session_store must implement async first() and find(), "
            f"got {type(session_store).__name__}"
        )
    if query_factory is not None and not callable(query_factory):
        raise ConfigurationError(
            f"query_factory must be callable, got {type(query_factory).__name__}"
        )
    if not header:
        raise ConfigurationError("header must be a non-empty header name")

    builder = ContextBuilder(
        schema,
        session_store=session_store,
        graphiql=graphiql,
        query=query if query is not None else bind_query(session_store),
        query_factory=query_factory or functools.partial(create_query, session_store),
        header=header.lower(),
        extra=MappingProxyType(dict(options)),
    )

    logger.info(
        "GraphQL context builder configured",
        extra={
            "graphiql": builder.graphiql,
            "header": builder.header,
            "store": type(session_store).__name__,
            "passthrough_options": sorted(options),
        },
    )

    return builder


def _validate_schema(schema: Any) -> None:
    """Raise ConfigurationError unless ``schema`` is a valid GraphQLSchema."""
    if schema is None:
        raise ConfigurationError("schema is required")

    try:
        assert_schema(schema)
    except TypeError as exc:
        raise ConfigurationError(
            f"schema must be a GraphQLSchema instance, got {type(schema).__name__}"
        ) from exc

    errors = validate_schema(schema)
    if errors:
        raise ConfigurationError(
            "schema is invalid: " + "; ".join(error.message for error in errors)
        )


def read_session_token(request: Any, header: str = DEFAULT_AUTH_HEADER) -> str | None:
    """Return the raw session token carried by ``request``, if any.

    Accepts a Starlette request, any object with a ``headers`` mapping, or
    a plain mapping with a ``headers`` key. Header names match
    case-insensitively. Missing headers mean no token.
    """
    # Starlette requests are Mappings over the ASGI scope; prefer .headers
    headers = getattr(request, "headers", None)
    if headers is None and isinstance(request, Mapping):
        headers = request.get("headers")

    if not headers or not isinstance(headers, Mapping):
        return None

    token = headers.get(header)
    if token is None:
        token = next(
            (value for name, value in headers.items() if name.lower() == header.lower()),
            None,
        )
    return token or None
