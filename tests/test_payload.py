"""Payload key rename detection."""

from __future__ import annotations

import pytest

from driftguard.payload import (
    compile_allowlist,
    detect_renames,
    extract_payload_keys_from_line,
    find_rename_candidates,
    strip_string_literals,
)

RENAME_DIFF = """diff --git a/src/users.js b/src/users.js
--- a/src/users.js
+++ b/src/users.js
@@ -1,3 +1,3 @@
 const body = {
-  "user_id": id,
+  "uid": id,
 }
"""

DOC_INDEX = {"user_id": ["docs/api.md"]}


def test_rename_reported_when_docs_still_use_the_old_key() -> None:
    findings = detect_renames(RENAME_DIFF, compile_allowlist(["user_id", "uid"]), DOC_INDEX, file="src/users.js")

    assert len(findings) == 1
    finding = findings[0]
    assert finding.type == "payload-key-rename"
    assert finding.file == "src/users.js"
    assert finding.metadata == {"old_key": "user_id", "new_key": "uid"}
    assert finding.explanation == "Payload key renamed from user_id to uid. Docs mention user_id in docs/api.md."
    assert finding.to_dict()["old_key"] == "user_id"


def test_allowlist_without_either_key_suppresses_the_rename() -> None:
    assert detect_renames(RENAME_DIFF, compile_allowlist(["account_id"]), DOC_INDEX) == []


def test_empty_allowlist_admits_every_key() -> None:
    assert len(detect_renames(RENAME_DIFF, [], DOC_INDEX)) == 1


def test_docs_already_mentioning_the_new_key_are_up_to_date() -> None:
    index = {"user_id": ["docs/api.md"], "uid": ["docs/api.md"]}
    assert detect_renames(RENAME_DIFF, [], index) == []
    assert detect_renames(RENAME_DIFF, [], {}) == []


def test_hunks_with_several_changed_keys_are_not_renames() -> None:
    diff = """@@ -1,4 +1,4 @@
-  user_id: id,
-  email: mail,
+  uid: id,
+  mail: mail,
@@ -10,2 +10,2 @@
-  total: sum,
+  amount: sum,
"""
    candidates = find_rename_candidates(diff, [])
    assert [(item.old_key, item.new_key) for item in candidates] == [("total", "amount")]


def test_wildcard_and_regex_allowlist_entries() -> None:
    matchers = compile_allowlist(["user_*", "/^acc(ou)?nt$/i", "id?"])
    assert any(matcher.search("user_email") for matcher in matchers)
    assert any(matcher.search("ACCOUNT") for matcher in matchers)
    assert any(matcher.search("idx") for matcher in matchers)
    assert not any(matcher.search("order") for matcher in matchers)


@pytest.mark.parametrize(
    ("line", "expected"),
    [
        ('"user_id": 1, name: "x: y"', ["user_id", "name"]),
        ("UserID string `json:\"user_id,omitempty\"`", ["user_id"]),
        ('[JsonPropertyName("order_total")]', ["order_total"]),
        ("// note: comment", []),
        ("case 1:", []),
    ],
)
def test_extract_payload_keys_from_line(line: str, expected: list) -> None:
    assert extract_payload_keys_from_line(line) == expected


def test_strip_string_literals_blanks_quoted_text() -> None:
    assert strip_string_literals('a "b:c" d') == "a       d"
    assert strip_string_literals("'it\\'s'") == " " * 7
