import pytest
from fastapi import HTTPException

from rackmap import models, todos


def test_add_and_list_newest_first(db_session, user):
    todos.add_todo(db_session, user.id, "Label rack R01")
    todos.add_todo(db_session, user.id, "  Order patch cords  ")

    listed = todos.list_todos(db_session, user.id)

    assert [todo.text for todo in listed] == ["Order patch cords", "Label rack R01"]
    assert not any(todo.is_completed for todo in listed)


def test_blank_todo_is_rejected(db_session, user):
    with pytest.raises(HTTPException) as exc:
        todos.add_todo(db_session, user.id, "   ")
    assert exc.value.status_code == 400


def test_toggle_and_delete(db_session, user):
    todo = todos.add_todo(db_session, user.id, "Check UPS")

    assert todos.toggle_todo(db_session, user.id, todo.id).is_completed is True
    assert todos.toggle_todo(db_session, user.id, todo.id).is_completed is False

    todos.delete_todo(db_session, user.id, todo.id)
    assert db_session.get(models.Todo, todo.id) is None


def test_todos_are_private_to_their_user(db_session, tenant, user, make_user):
    other = make_user(tenant)
    todo = todos.add_todo(db_session, user.id, "Mine")

    assert todos.list_todos(db_session, other.id) == []
    for action in (todos.toggle_todo, todos.delete_todo):
        with pytest.raises(HTTPException) as exc:
            action(db_session, other.id, todo.id)
        assert exc.value.status_code == 404
