"""Smoke tests: the public entry points build against a real schema."""

from fastapi import APIRouter

from graphql_session_context import ContextBuilder, create_graphql_router, setup


def test_setup_returns_builder(schema, memory_store):
    builder = setup(schema=schema, session_store=memory_store)

    assert isinstance(builder, ContextBuilder)
    assert builder.schema is schema
    assert builder.graphiql is False


def test_router_builds_against_schema(schema, memory_store):
    router = create_graphql_router(schema, session_store=memory_store, graphiql=True)

    assert isinstance(router, APIRouter)
    assert {route.path for route in router.routes} == {"/graphql"}


async def test_anonymous_builder_call_completes(schema, memory_store):
    builder = setup(schema=schema, session_store=memory_store)

    options = await builder({"headers": {}})

    assert options.schema is schema
    assert options.context.as_dict().keys() == {"Query"}
