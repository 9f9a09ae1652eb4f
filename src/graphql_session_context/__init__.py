"""Session-aware execution context for FastAPI GraphQL endpoints."""

# Primary API: the main entry points
# Core types: for advanced users and type checking
from graphql_session_context.core.context import (
    ContextBuilder,
    ExecutionContext,
    ExecutionOptions,
    setup,
)
from graphql_session_context.core.query import Query, bind_query, create_query
from graphql_session_context.core.session import InMemorySessionStore, SessionStore

# Exceptions: for error handling
from graphql_session_context.exceptions import (
    ConfigurationError,
    GraphQLContextError,
    PermissionDeniedError,
    SessionLookupError,
)
from graphql_session_context.fastapi.router import create_graphql_router

__all__ = [
    # Primary API
    "create_graphql_router",
    "setup",
    # Core types
    "ContextBuilder",
    "ExecutionContext",
    "ExecutionOptions",
    "InMemorySessionStore",
    "Query",
    "SessionStore",
    "bind_query",
    "create_query",
    # Exceptions
    "ConfigurationError",
    "GraphQLContextError",
    "PermissionDeniedError",
    "SessionLookupError",
]

__version__ = "0.1.0"
