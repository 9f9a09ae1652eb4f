"""FastAPI adapter for the GraphQL session context."""

from graphql_session_context.fastapi.router import create_graphql_router

__all__ = ["create_graphql_router"]
