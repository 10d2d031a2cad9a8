"""Idempotency helpers."""
from typing import Optional, Type, TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session

T = TypeVar("T")


def get_existing_by_key(
    db: Session,
    model: Type[T],
    key_value: str | None,
    *,
    key_field: str = "processor_payment_id",
) -> Optional[T]:
    """Return the record stored under a given idempotency key, reloaded from the database."""
    if not key_value:
        return None
    if not hasattr(model, key_field):
        raise AttributeError(f"{model.__name__} has no field '{key_field}'")

    column = getattr(model, key_field)
    stmt = select(model).where(column == key_value).execution_options(populate_existing=True).limit(1)
    return db.scalars(stmt).first()
