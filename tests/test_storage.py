"""Tests for the JSON record store and role checks."""

import tempfile
from pathlib import Path

import pytest

from automod.auth.models import Actor, Role
from automod.auth.permissions import can_review, has_permission, require_role
from automod.exceptions import PermissionDenied
from automod.storage.json_store import JsonRecordStore


def test_create_assigns_id_and_persists():
    with tempfile.TemporaryDirectory() as tmp:
        store = JsonRecordStore(tmp, "things")
        record = store.create({"name": "a"})
        assert record["id"]
        assert store.path == Path(tmp) / "things.json"
        assert JsonRecordStore(tmp, "things").get(record["id"]) == record


def test_query_update_replace_delete():
    with tempfile.TemporaryDirectory() as tmp:
        store = JsonRecordStore(tmp, "things")
        a = store.create({"id": "a", "kind": "x"})
        store.create({"id": "b", "kind": "y"})

        assert [r["id"] for r in store.query(lambda r: r["kind"] == "y")] == ["b"]
        assert store.update("a", {"kind": "z", "id": "ignored"}) == {"id": "a", "kind": "z"}
        assert store.update("missing", {"kind": "z"}) is None
        assert store.replace(dict(a, kind="w"))["kind"] == "w"
        assert store.delete("a") is True
        assert store.delete("a") is False
        assert [r["id"] for r in store.query()] == ["b"]


def test_corrupt_file_reads_as_empty():
    with tempfile.TemporaryDirectory() as tmp:
        (Path(tmp) / "things.json").write_text("{oops")
        assert JsonRecordStore(tmp, "things").query() == []


def test_role_hierarchy():
    assert has_permission([Role.admin], Role.moderator)
    assert not has_permission(["member"], Role.reviewer)
    assert not has_permission([], Role.member)
    assert can_review({Role.reviewer})


def test_require_role_raises_permission_denied():
    actor = Actor(user_id="u1", roles={"member"})
    assert actor.roles == {Role.member}
    with pytest.raises(PermissionDenied):
        require_role(actor.user_id, actor.roles, Role.moderator)
