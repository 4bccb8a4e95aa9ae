"""Documentation fact extraction and payload key indexing."""

from __future__ import annotations

from driftguard.docs import (
    DocEntry,
    build_payload_key_index,
    collect_doc_facts,
    extract_doc_facts,
    join_docs,
)
from driftguard.models import FactKind

README = """## Users

Call `createUser(email)` to register.

GET /users/{id} returns a user.

GraphQL Query: users
GraphQL: orders

WS event: chat:message
"""


def _by_kind(text: str, kind: FactKind):
    return [fact for fact in extract_doc_facts(text, "README.md") if fact.kind is kind]


def test_doc_functions_keep_raw_params_and_skip_keywords() -> None:
    functions = _by_kind(README + "\nif (ready) {}\n", FactKind.FUNCTION)

    assert [fact.signature for fact in functions] == ["createUser(email)"]
    assert functions[0].line == 3
    assert functions[0].file == "README.md"


def test_doc_endpoints_require_absolute_paths() -> None:
    endpoints = _by_kind(README + "\nPOST users is not a route\n", FactKind.ENDPOINT)
    assert [fact.name for fact in endpoints] == ["GET /users/{id}"]


def test_graphql_labels_typed_and_untyped() -> None:
    operations = _by_kind(README, FactKind.GRAPHQL_OPERATION)
    assert [(fact.name, fact.signature) for fact in operations] == [
        ("users", "Query users"),
        ("orders", "orders"),
    ]


def test_graphql_fenced_operations_and_schema_blocks() -> None:
    text = """
```graphql
query GetUser {
  user(id: 1) { id }
  alias: account { id }
}
```

```gql
type Mutation {
  cancelOrder(id: ID!): Order
}
```
"""
    signatures = [fact.signature for fact in _by_kind(text, FactKind.GRAPHQL_OPERATION)]
    assert signatures == ["Query user", "Query account", "Mutation cancelOrder"]


def test_websocket_labels_and_snippets() -> None:
    text = README + "\n```js\nsocket.on('typing', cb)\n```\n"
    events = _by_kind(text, FactKind.WEBSOCKET_EVENT)
    assert [fact.name for fact in events] == ["chat:message", "typing"]


def test_collect_and_join_docs() -> None:
    entries = [
        DocEntry("docs/a.md", "Use `ping(host)`."),
        DocEntry("docs/b.md", "DELETE /sessions"),
    ]
    facts = collect_doc_facts(entries)

    assert [(fact.kind, fact.file) for fact in facts] == [
        (FactKind.FUNCTION, "docs/a.md"),
        (FactKind.ENDPOINT, "docs/b.md"),
    ]
    assert join_docs(entries) == "Use `ping(host)`.\n\nDELETE /sessions"


def test_payload_key_index_maps_keys_to_files() -> None:
    entries = [
        DocEntry("docs/api.md", '```json\n{ "user_id": 42, "status": "ok" }\n```'),
        DocEntry("docs/events.md", '{ "user_id": 7 }'),
    ]
    index = build_payload_key_index(entries)

    assert index["user_id"] == ["docs/api.md", "docs/events.md"]
    assert index["status"] == ["docs/api.md"]
