from fastapi import HTTPException
from sqlalchemy.orm import Session

from . import models
from .common import require_text


def list_todos(db: Session, user_id):
    return (
        db.query(models.Todo)
        .filter(models.Todo.user_id == user_id)
        .order_by(models.Todo.created_at.desc(), models.Todo.id.desc())
        .all()
    )


def _get(db: Session, user_id, todo_id):
    todo = (
        db.query(models.Todo)
        .filter(models.Todo.id == todo_id)
        .filter(models.Todo.user_id == user_id)
        .first()
    )
    if todo is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return todo


def add_todo(db: Session, user_id, text):
    todo = models.Todo(user_id=user_id, text=require_text(text, "Task"), is_completed=False)
    db.add(todo)
    db.commit()
    db.refresh(todo)
    return todo


def toggle_todo(db: Session, user_id, todo_id):
    todo = _get(db, user_id, todo_id)
    todo.is_completed = not todo.is_completed
    db.commit()
    db.refresh(todo)
    return todo


def delete_todo(db: Session, user_id, todo_id):
    todo = _get(db, user_id, todo_id)
    db.delete(todo)
    db.commit()
