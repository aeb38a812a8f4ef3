"""CRUD helper functions for users and expenses."""
from __future__ import annotations

from typing import List, Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models, schemas


class EntityNotFoundError(RuntimeError):
    """Raised when an entity cannot be located in the database."""


class EntityConflictError(RuntimeError):
    """Raised when a unique constraint is violated."""


class EntityForbiddenError(RuntimeError):
    """Raised when an entity exists but belongs to another user."""


def normalise_email(email: str) -> str:
    return email.strip().lower()


def get_user(session: Session, user_id: int) -> models.User:
    user = session.get(models.User, user_id)
    if user is None:
        raise EntityNotFoundError(f"User {user_id} not found")
    return user


def find_user_by_email(session: Session, email: str) -> Optional[models.User]:
    stmt = select(models.User).where(models.User.email == normalise_email(email))
    return session.scalars(stmt).first()


def find_user_by_email_or_google_id(session: Session, email: str, google_id: str) -> Optional[models.User]:
    """Return the user holding ``google_id``, else the one registered under ``email``.

    Raises :class:`EntityConflictError` when the subject and the email belong
    to two different users.
    """
    email = normalise_email(email)
    stmt = select(models.User).where(or_(models.User.email == email, models.User.google_id == google_id))
    matches = list(session.scalars(stmt))
    by_subject = next((user for user in matches if user.google_id == google_id), None)
    by_email = next((user for user in matches if user.email == email), None)
    if by_subject is not None and by_email is not None and by_subject is not by_email:
        raise EntityConflictError("Google account is linked to another user")
    return by_subject or by_email


def create_user(
    session: Session,
    *,
    name: str,
    email: str,
    password_hash: Optional[str] = None,
    google_id: Optional[str] = None,
    is_google_user: bool = False,
) -> models.User:
    """Insert a user after checking that the email is still free.

    The pre-check keeps duplicate registrations a client error; the unique
    index still guards against two concurrent inserts.
    """
    email = normalise_email(email)
    if find_user_by_email(session, email) is not None:
        raise EntityConflictError("Email already registered")
    user = models.User(
        name=name.strip(),
        email=email,
        password_hash=password_hash,
        google_id=google_id,
        is_google_user=is_google_user,
    )
    session.add(user)
    try:
        session.flush()
    except IntegrityError as exc:  # pragma: no cover - concurrent insert
        raise EntityConflictError("Email already registered") from exc
    session.refresh(user)
    return user


def link_google_account(session: Session, user_id: int, *, google_id: str, name: str) -> models.User:
    user = get_user(session, user_id)
    user.google_id = google_id
    user.name = name
    session.flush()
    session.refresh(user)
    return user


def list_expenses(session: Session, user_id: int) -> List[models.Expense]:
    stmt = (
        select(models.Expense)
        .where(models.Expense.user_id == user_id)
        .order_by(models.Expense.date.desc(), models.Expense.id.desc())
    )
    return list(session.scalars(stmt))


def list_all_expenses(session: Session) -> List[models.Expense]:
    """Return every user's expenses; backs the unauthenticated legacy listing."""
    stmt = select(models.Expense).order_by(models.Expense.date.desc(), models.Expense.id.desc())
    return list(session.scalars(stmt))


def create_expense(session: Session, user_id: int, expense_in: schemas.ExpenseCreate) -> models.Expense:
    expense = models.Expense(**expense_in.model_dump(), user_id=user_id)
    session.add(expense)
    session.flush()
    session.refresh(expense)
    return expense


def delete_expense(session: Session, user_id: int, expense_id: int) -> bool:
    """Delete ``expense_id`` if ``user_id`` owns it.

    Returns ``False`` when the row does not exist. Raises
    :class:`EntityForbiddenError` when it exists under another owner.
    """
    expense = session.get(models.Expense, expense_id)
    if expense is None:
        return False
    if expense.user_id != user_id:
        raise EntityForbiddenError(f"Expense {expense_id} belongs to another user")
    session.delete(expense)
    session.flush()
    return True
