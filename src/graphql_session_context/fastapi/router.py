"""Router factory for a session-aware GraphQL endpoint.

Composes the context builder with graphql-core execution to create a
FastAPI router serving GraphQL over GET and POST, plus the GraphiQL IDE.
"""

import json
import logging
from collections.abc import Mapping
from inspect import isawaitable
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, JSONResponse, Response
from graphql import (
    GraphQLError,
    GraphQLSchema,
    OperationType,
    execute,
    get_operation_ast,
    parse,
    validate,
)

from graphql_session_context.core.context import ContextBuilder, ExecutionOptions, setup
from graphql_session_context.core.session import SessionStore
from graphql_session_context.exceptions import PermissionDeniedError, SessionLookupError

logger = logging.getLogger(__name__)

DEFAULT_PATH = "/graphql"

GRAPHIQL_HTML = """<!DOCTYPE html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <title>GraphiQL</title>
    <style>body { margin: 0; height: 100vh; } #graphiql { height: 100vh; }</style>
    <link rel="stylesheet" href="https://unpkg.com/graphiql/graphiql.min.css" />
  </head>
  <body>
    <div id="graphiql">Loading...</div>
    <script crossorigin src="https://unpkg.com/react/umd/react.production.min.js"></script>
    <script crossorigin src="https://unpkg.com/react-dom/umd/react-dom.production.min.js"></script>
    <script crossorigin src="https://unpkg.com/graphiql/graphiql.min.js"></script>
    <script>
      const fetcher = GraphiQL.createFetcher({ url: window.location.href });
      ReactDOM.render(
        React.createElement(GraphiQL, { fetcher }),
        document.getElementById("graphiql"),
      );
    </script>
  </body>
</html>
"""


class _BadRequest(Exception):
    """Request parameters could not be used to run an operation."""

    def __init__(self, message: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def create_graphql_router(
    schema: GraphQLSchema,
    *,
    session_store: SessionStore,
    path: str = DEFAULT_PATH,
    prefix: str = "",
    graphiql: bool = False,
    **options: Any,
) -> APIRouter:
    """Create a FastAPI APIRouter serving ``schema`` at ``path``.

    The context builder is configured once, here, so configuration errors
    surface at startup. Each request awaits the builder before the
    operation is parsed, validated and executed.

    Args:
        schema: The GraphQL schema to serve.
        session_store: Store the session-token lookup runs against.
        path: URL path of the endpoint.
        prefix: Optional URL prefix for the router.
        graphiql: Serve the GraphiQL IDE on GET requests without a query.
        **options: Forwarded to setup() (query, query_factory, header,
            root_value and any passthrough options).

    Returns:
        A FastAPI APIRouter with GET and POST registered on ``path``.

    Raises:
        ConfigurationError: If the schema or collaborators are invalid.

    Example:
        from fastapi import FastAPI
        from graphql_session_context import InMemorySessionStore, create_graphql_router

        app = FastAPI()
        app.include_router(
            create_graphql_router(schema, session_store=InMemorySessionStore(), graphiql=True)
        )
    """
    builder = setup(schema, session_store=session_store, graphiql=graphiql, **options)
    router = APIRouter(prefix=prefix)

    async def graphql_get(request: Request) -> Response:
        params = request.query_params
        if "query" not in params and builder.graphiql and _accepts_html(request):
            return HTMLResponse(GRAPHIQL_HTML)

        return await _handle(
            builder,
            request,
            params.get("query"),
            params.get("variables"),
            params.get("operationName"),
            allow_mutations=False,
        )

    async def graphql_post(request: Request) -> Response:
        try:
            body = await request.json()
        except ValueError:
            return _error_response("POST body must be valid JSON.", 400)

        if not isinstance(body, Mapping):
            return _error_response("POST body must be a JSON object.", 400)

        return await _handle(
            builder,
            request,
            body.get("query"),
            body.get("variables"),
            body.get("operationName"),
            allow_mutations=True,
        )

    router.add_api_route(path, graphql_get, methods=["GET"], include_in_schema=False)
    router.add_api_route(path, graphql_post, methods=["POST"], include_in_schema=False)

    logger.info(
        "GraphQL endpoint registered",
        extra={"path": f"{prefix}{path}", "graphiql": builder.graphiql},
    )

    return router


async def _handle(
    builder: ContextBuilder,
    request: Request,
    query: Any,
    variables: Any,
    operation_name: Any,
    *,
    allow_mutations: bool,
) -> Response:
    """Build options for ``request`` and run the operation.

    A rejected session becomes 401, an unavailable store 503, and any other
    failure while building options 500. Store messages are never echoed.
    """
    try:
        options = await builder(request)
    except PermissionDeniedError:
        return _error_response("Invalid session token.", 401)
    except SessionLookupError as exc:
        logger.warning(
            "Session store could not serve the lookup",
            extra={"error_type": type(exc).__name__},
        )
        return _error_response("Session store unavailable.", 503)
    except Exception:
        logger.exception("Failed to build GraphQL execution options")
        return _error_response("Internal server error.", 500)

    try:
        return await _run(options, query, variables, operation_name, allow_mutations)
    except _BadRequest as exc:
        headers = {"Allow": "POST"} if exc.status_code == 405 else None
        return _error_response(exc.message, exc.status_code, headers=headers)


async def _run(
    options: ExecutionOptions,
    query: Any,
    variables: Any,
    operation_name: Any,
    allow_mutations: bool,
) -> Response:
    """Parse, validate and execute one operation against ``options``."""
    if not query or not isinstance(query, str):
        raise _BadRequest("Must provide query string.")
    if operation_name is not None and not isinstance(operation_name, str):
        raise _BadRequest("operationName must be a string.")

    variable_values = _parse_variables(variables)

    try:
        document = parse(query)
    except GraphQLError as error:
        return JSONResponse({"errors": [error.formatted]}, status_code=400)

    if not allow_mutations:
        operation = get_operation_ast(document, operation_name)
        if operation is not None and operation.operation != OperationType.QUERY:
            raise _BadRequest(
                f"Can only perform a {operation.operation.value} operation from a POST request.",
                405,
            )

    validation_errors = validate(options.schema, document)
    if validation_errors:
        return JSONResponse(
            {"errors": [error.formatted for error in validation_errors]},
            status_code=400,
        )

    result = execute(
        options.schema,
        document,
        root_value=options.extra.get("root_value"),
        context_value=options.context.as_dict(),
        variable_values=variable_values,
        operation_name=operation_name,
    )
    if isawaitable(result):
        result = await result

    payload: dict[str, Any] = {"data": result.data}
    if result.errors:
        payload["errors"] = [error.formatted for error in result.errors]
    return JSONResponse(payload)


def _parse_variables(variables: Any) -> dict[str, Any] | None:
    """Normalize variables given as a mapping, a JSON string, or nothing."""
    if variables is None or variables == "":
        return None
    if isinstance(variables, str):
        try:
            variables = json.loads(variables)
        except ValueError as exc:
            raise _BadRequest("Variables are invalid JSON.") from exc
    if not isinstance(variables, Mapping):
        raise _BadRequest("Variables must be a JSON object.")
    return dict(variables)


def _accepts_html(request: Request) -> bool:
    return "text/html" in request.headers.get("accept", "")


def _error_response(
    message: str,
    status_code: int,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    return JSONResponse({"errors": [{"message": message}]}, status_code=status_code, headers=headers)
