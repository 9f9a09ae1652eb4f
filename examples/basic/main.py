"""Basic example demonstrating graphql-session-context.

A notes API where each note is readable by its owner only. Anonymous
callers see public notes; callers presenting a session token in the
Authorization header see their own notes too.

Run with:
    uvicorn main:app --reload

Try:
    curl -X POST localhost:8000/graphql -H 'Content-Type: application/json' \\
        -d '{"query": "{ notes }"}'
    curl -X POST localhost:8000/graphql -H 'Content-Type: application/json' \\
        -H 'Authorization: r:alice' -d '{"query": "{ notes me }"}'
"""

from fastapi import FastAPI
from graphql import (
    GraphQLField,
    GraphQLList,
    GraphQLNonNull,
    GraphQLObjectType,
    GraphQLSchema,
    GraphQLString,
)

from graphql_session_context import InMemorySessionStore, create_graphql_router


async def resolve_notes(_root, info):
    notes = await info.context["Query"]("Note").find()
    return [note["text"] for note in notes]


schema = GraphQLSchema(
    query=GraphQLObjectType(
        name="Query",
        fields={
            "notes": GraphQLField(
                GraphQLNonNull(GraphQLList(GraphQLNonNull(GraphQLString))),
                resolve=resolve_notes,
            ),
            "me": GraphQLField(
                GraphQLString,
                resolve=lambda _root, info: info.context.get("sessionToken"),
            ),
        },
    )
)

store = InMemorySessionStore()
store.add_session("r:alice", user_id="alice")
store.add("Note", {"text": "Welcome!", "_rperm": ["*"]})
store.add("Note", {"text": "Alice's shopping list", "_rperm": ["alice"]})

app = FastAPI(title="Basic Example")
app.include_router(create_graphql_router(schema, session_store=store, graphiql=True))
