# stalk/repositories/base_repository.py
"""
Shared data access for the sTalk store.

Repositories flush but never commit; the service that opened the session
decides when a unit of work ends. Every SQLAlchemy failure leaves here as a
``RepositoryException`` so services only have one error type to translate.
"""

import logging
from typing import Any, Generic, List, NoReturn, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.exceptions import RepositoryException

ModelT = TypeVar("ModelT")

logger = logging.getLogger(__name__)


class BaseRepository(Generic[ModelT]):
    """Lookups and writes keyed on a model's integer ``id``."""

    def __init__(self, db: Session, model: Type[ModelT]):
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    @property
    def dialect_name(self) -> str:
        """Name of the bound dialect ("sqlite", "postgresql"), for dialect inserts."""
        bind = self.db.get_bind()
        return bind.dialect.name if bind is not None else ""

    def _fail(self, action: str, exc: SQLAlchemyError) -> NoReturn:
        self.logger.error("Could not %s %s: %s", action, self.model.__name__, exc)
        raise RepositoryException(f"Failed to {action} {self.model.__name__}: {exc}") from exc

    def get_by_id(self, id: int, load_relationships: bool = True) -> Optional[ModelT]:
        try:
            query = self.db.query(self.model).filter(self.model.id == id)
            if load_relationships:
                query = self._apply_eager_loading(query)
            return query.first()
        except SQLAlchemyError as exc:
            self._fail("load", exc)

    def find_one_by(self, **criteria: Any) -> Optional[ModelT]:
        try:
            return self.db.query(self.model).filter_by(**criteria).first()
        except SQLAlchemyError as exc:
            self._fail("find", exc)

    def create(self, **values: Any) -> ModelT:
        """Add a row and flush so its id is assigned; the caller commits."""
        entity = self.model(**values)
        try:
            self.db.add(entity)
            self.db.flush()
        except IntegrityError as exc:
            self._fail("insert (constraint violated)", exc)
        except SQLAlchemyError as exc:
            self._fail("insert", exc)
        return entity

    def delete(self, id: int) -> bool:
        """Delete by id; False when there was nothing to delete."""
        try:
            deleted = (
                self.db.query(self.model)
                .filter(self.model.id == id)
                .delete(synchronize_session=False)
            )
        except SQLAlchemyError as exc:
            self._fail("delete", exc)
        return bool(deleted)

    def _apply_eager_loading(self, query: Query) -> Query:
        """Hook for subclasses whose reads need joined relationships."""
        return query

    def _execute_query(self, query: Query) -> List[ModelT]:
        try:
            return query.all()
        except SQLAlchemyError as exc:
            self._fail("query", exc)
