"""Shared pytest fixtures for graphql-session-context tests."""

import asyncio
from collections.abc import Mapping
from typing import Any

import pytest
from graphql import (
    GraphQLBoolean,
    GraphQLField,
    GraphQLList,
    GraphQLNonNull,
    GraphQLObjectType,
    GraphQLSchema,
    GraphQLString,
)

from graphql_session_context.core.query import Query
from graphql_session_context.core.session import InMemorySessionStore

SESSION_TOKEN = "session-token"

_UNSET = object()


async def _resolve_notes(_root: Any, info: Any) -> list[str]:
    notes = await info.context["Query"]("Note").find()
    return [note["text"] for note in notes]


def _build_schema() -> GraphQLSchema:
    return GraphQLSchema(
        query=GraphQLObjectType(
            name="Query",
            fields={
                "hello": GraphQLField(GraphQLString, resolve=lambda _root, _info: "hello"),
                "sessionToken": GraphQLField(
                    GraphQLString,
                    resolve=lambda _root, info: info.context.get("sessionToken"),
                ),
                "notes": GraphQLField(
                    GraphQLNonNull(GraphQLList(GraphQLNonNull(GraphQLString))),
                    resolve=_resolve_notes,
                ),
            },
        ),
        mutation=GraphQLObjectType(
            name="Mutation",
            fields={
                "touch": GraphQLField(GraphQLBoolean, resolve=lambda _root, _info: True),
            },
        ),
    )


class RecordingStore:
    """SessionStore double that records every lookup it serves.

    Resolves to ``result`` or raises ``error``, after an optional delay.
    """

    def __init__(
        self,
        result: Any = _UNSET,
        error: BaseException | None = None,
        delay: float = 0.0,
    ) -> None:
        self.result = {} if result is _UNSET else result
        self.error = error
        self.delay = delay
        self.calls: list[dict[str, Any]] = []

    async def first(
        self,
        query: Query,
        *,
        use_master_key: bool = False,
        session_token: str | None = None,
    ) -> Mapping[str, Any] | None:
        self.calls.append(
            {
                "method": "first",
                "class_name": query.class_name,
                "constraints": dict(query.constraints),
                "use_master_key": use_master_key,
                "session_token": session_token,
            }
        )
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.result

    async def find(
        self,
        query: Query,
        *,
        use_master_key: bool = False,
        session_token: str | None = None,
    ) -> list[Mapping[str, Any]]:
        self.calls.append(
            {
                "method": "find",
                "class_name": query.class_name,
                "constraints": dict(query.constraints),
                "use_master_key": use_master_key,
                "session_token": session_token,
            }
        )
        if self.error is not None:
            raise self.error
        return []


@pytest.fixture
def session_token() -> str:
    """Return the token of the session stored in memory_store."""
    return SESSION_TOKEN


@pytest.fixture
def schema() -> GraphQLSchema:
    """Return a small valid schema with session-aware resolvers."""
    return _build_schema()


@pytest.fixture
def recording_store():
    """Create a RecordingStore.

    Returns a callable accepting the RecordingStore arguments
    (result, error, delay).
    """

    def _create(**kwargs: Any) -> RecordingStore:
        return RecordingStore(**kwargs)

    return _create


@pytest.fixture
def memory_store() -> InMemorySessionStore:
    """Return an InMemorySessionStore with one session and three notes.

    - Session SESSION_TOKEN belongs to user "u1".
    - "public note" is readable by anyone.
    - "u1 note" is readable by u1 only.
    - "u2 note" is readable by u2 only.
    """
    store = InMemorySessionStore()
    store.add_session(SESSION_TOKEN, user_id="u1")
    store.add("Note", {"text": "public note", "_rperm": ["*"]})
    store.add("Note", {"text": "u1 note", "_rperm": ["u1"]})
    store.add("Note", {"text": "u2 note", "_rperm": ["u2"]})
    return store
