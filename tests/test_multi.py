from __future__ import annotations

import pytest
from sqlalchemy import column, select, table
from sqlalchemy.sql import Select

from txmulti import (
    Action,
    ActionConflictError,
    Changeset,
    DuplicateNameError,
    Err,
    Multi,
    NameCollisionError,
    Ok,
    Record,
    append,
    new,
    prepend,
    to_list,
)
from txmulti.multi import ChangesetFnOp, ChangesetOp, DeleteAllOp, RunOp, RunRefOp


def _ok(changes):
    return Ok(changes)


def _names(multi: Multi) -> list:
    return [name for name, _ in to_list(multi)]


def test_new_is_empty() -> None:
    assert to_list(new()) == []
    assert len(Multi()) == 0


def test_to_list_preserves_declaration_order(account: Record) -> None:
    multi = (
        new()
        .insert("a", Changeset("logs", changes={"msg": "a"}))
        .run("b", _ok)
        .update("c", Changeset.change(account, email="new@example.com"))
        .delete_all("d", "sessions")
        .insert_all("e", "sessions", [{"account_id": 1}])
        .delete("f", account)
    )

    assert _names(multi) == ["a", "b", "c", "d", "e", "f"]


def test_builder_calls_do_not_modify_the_receiver() -> None:
    base = new().run("first", _ok)
    extended = base.run("second", _ok)

    assert _names(base) == ["first"]
    assert _names(extended) == ["first", "second"]


def test_insert_stamps_changeset_action() -> None:
    changeset = Changeset("logs", changes={"msg": "hello"})

    [(name, (action, stamped, opts))] = new().insert("log", changeset, returning=True).to_list()

    assert name == "log"
    assert action == Action.INSERT
    assert stamped.action == Action.INSERT
    assert stamped.changes == {"msg": "hello"}
    assert opts == {"returning": True}
    # stamping never touches the caller's changeset
    assert changeset.action is None


def test_update_and_delete_stamp_their_actions(account: Record) -> None:
    changeset = Changeset.change(account, email="new@example.com")
    multi = new().update("u", changeset).delete("d", changeset)

    [(_, (update_action, _, _)), (_, (delete_action, _, _))] = multi.to_list()
    assert update_action == Action.UPDATE
    assert delete_action == Action.DELETE


def test_changeset_with_same_action_passes_through() -> None:
    changeset = Changeset("logs", changes={"msg": "x"}).put_action(Action.INSERT)

    [(_, (_, stamped, _))] = new().insert("log", changeset).to_list()

    assert stamped is changeset


def test_changeset_with_different_action_raises(account: Record) -> None:
    changeset = Changeset.change(account).put_action(Action.DELETE)

    with pytest.raises(ActionConflictError, match="already set to 'delete' when trying to update"):
        new().update("account", changeset)


def test_insert_and_delete_accept_records(account: Record) -> None:
    multi = new().insert("created", account).delete("deleted", account)

    [(_, (_, inserted, _)), (_, (_, deleted, _))] = multi.to_list()
    assert inserted.table == "accounts"
    assert inserted.data == account.fields
    assert inserted.changes == {}
    assert inserted.valid
    assert deleted.action == Action.DELETE


def test_update_rejects_records(account: Record) -> None:
    with pytest.raises(TypeError, match="update expects a Changeset or a function"):
        new().update("account", account)


def test_functions_are_stored_as_changeset_functions() -> None:
    def build(changes):
        return Changeset("logs", changes={"account_id": changes["account"].get("id")})

    multi = new().insert("log", build, prefix="x")

    [(name, operation)] = multi.operations
    assert name == "log"
    assert operation == ChangesetFnOp(Action.INSERT, build, {"prefix": "x"})
    assert to_list(multi) == [("log", ("changeset_fun", Action.INSERT, build, {"prefix": "x"}))]


def test_run_with_function_and_with_reference() -> None:
    multi = (
        new()
        .run("fn", _ok)
        .run("ref", _ok, ["extra", 1])
        .run("path", "txmulti.result:Ok")
    )

    assert [op for _, op in multi.operations] == [
        RunOp(_ok),
        RunRefOp(_ok, ("extra", 1)),
        RunRefOp("txmulti.result:Ok", ()),
    ]
    assert to_list(multi)[1] == ("ref", ("run", _ok, ["extra", 1]))


def test_run_rejects_non_callables() -> None:
    with pytest.raises(TypeError):
        new().run("bad", 42)


def test_bulk_operations_resolve_queries_eagerly() -> None:
    sessions = table("sessions", column("account_id"))
    query = select(sessions).where(sessions.c.account_id == 1)

    multi = (
        new()
        .insert_all("insert", "sessions", [{"account_id": 1}, {"account_id": 2}])
        .update_all("update", query, {"set": {"token": None}})
        .delete_all("delete", "sessions", timeout=5)
    )

    insert, update, delete = to_list(multi)
    assert insert == ("insert", ("insert_all", "sessions", [{"account_id": 1}, {"account_id": 2}], {}))
    assert update == ("update", ("update_all", query, {"set": {"token": None}}, {}))

    name, (tag, resolved, opts) = delete
    assert (name, tag, opts) == ("delete", "delete_all", {"timeout": 5})
    assert isinstance(resolved, Select)
    assert isinstance(multi.operations[2][1], DeleteAllOp)


def test_bulk_operation_with_invalid_queryable_raises() -> None:
    with pytest.raises(TypeError, match="cannot convert"):
        new().delete_all("sessions", 42)


def test_duplicate_name_raises_and_leaves_multi_unchanged() -> None:
    multi = new().run("a", _ok).run("b", _ok)
    before = to_list(multi)

    with pytest.raises(DuplicateNameError, match="'a' is already a member"):
        multi.insert("a", Changeset("logs", changes={"msg": "x"}))

    assert to_list(multi) == before
    assert multi.names == frozenset({"a", "b"})


@pytest.mark.parametrize(
    "add",
    [
        lambda m: m.insert("a", Changeset("t")),
        lambda m: m.update("a", Changeset("t")),
        lambda m: m.delete("a", Changeset("t")),
        lambda m: m.run("a", _ok),
        lambda m: m.run("a", _ok, []),
        lambda m: m.insert_all("a", "t", []),
        lambda m: m.update_all("a", "t", {"set": {"x": 1}}),
        lambda m: m.delete_all("a", "t"),
    ],
)
def test_every_builder_rejects_duplicate_names(add) -> None:
    with pytest.raises(DuplicateNameError):
        add(new().run("a", _ok))


def test_append_keeps_left_then_right() -> None:
    lhs = new().run("left", _ok)
    rhs = new().run("right", lambda changes: Err(changes))

    merged = append(lhs, rhs)

    assert _names(merged) == ["left", "right"]
    assert to_list(merged) == to_list(lhs) + to_list(rhs)
    assert merged.names == frozenset({"left", "right"})


def test_prepend_puts_right_first() -> None:
    lhs = new().run("left", _ok)
    rhs = new().run("right", lambda changes: Err(changes))

    merged = prepend(lhs, rhs)

    assert _names(merged) == ["right", "left"]
    assert to_list(merged) == to_list(rhs) + to_list(lhs)


def test_merge_methods_match_functions() -> None:
    lhs = new().run("left", _ok)
    rhs = new().run("right", _ok)

    assert to_list(lhs.append(rhs)) == to_list(append(lhs, rhs))
    assert to_list(lhs.prepend(rhs)) == to_list(prepend(lhs, rhs))


def test_merge_with_common_names_lists_all_collisions() -> None:
    lhs = new().run("a", _ok).run("b", _ok).run("c", _ok)
    rhs = new().run("c", _ok).run("a", _ok).run("d", _ok)
    lhs_before, rhs_before = to_list(lhs), to_list(rhs)

    for merge in (append, prepend):
        with pytest.raises(NameCollisionError) as exc_info:
            merge(lhs, rhs)
        assert exc_info.value.names == ["a", "c"]

    assert to_list(lhs) == lhs_before
    assert to_list(rhs) == rhs_before


def test_merged_multi_still_rejects_duplicates() -> None:
    merged = append(new().run("a", _ok), new().run("b", _ok))

    with pytest.raises(DuplicateNameError):
        merged.run("b", _ok)


def test_repr_and_contains() -> None:
    multi = new().run("a", _ok)

    assert "a" in multi
    assert "b" not in multi
    assert repr(multi) == "Multi(names=['a'])"


def test_changeset_operation_exposes_action() -> None:
    multi = new().insert("log", Changeset("logs"))

    [(_, operation)] = multi.operations
    assert isinstance(operation, ChangesetOp)
    assert operation.action == Action.INSERT
