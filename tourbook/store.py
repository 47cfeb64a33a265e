"""Per-model data access used by the resource controllers.

A :class:`Store` owns nothing but a session and a model class. Every read is
narrowed by the model's ``default_scope`` (soft-deleted users, secret tours)
plus an optional caller scope, and every write commits or rolls back as a
unit.
"""

import logging
from collections.abc import Callable, Mapping
from typing import Any

from sqlalchemy import Select, func, inspect, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from tourbook.core.errors import ValidationError
from tourbook.query.features import FilterExpression, FilterOperator, QuerySpec
from tourbook.query.sqlalchemy_adapter import apply_filters, apply_query_spec, filter_clause

logger = logging.getLogger(__name__)

AfterWrite = Callable[[Session, Any], None]


class Store:
    def __init__(
        self,
        db: Session,
        model: type,
        *,
        relations: tuple[str, ...] = (),
        after_write: AfterWrite | None = None,
    ) -> None:
        self.db = db
        self.model = model
        self.relations = relations
        self.after_write = after_write

    def _scope_clauses(self, scope: Mapping[str, Any] | None) -> list:
        combined = {**getattr(self.model, "default_scope", {}), **(scope or {})}
        return [
            filter_clause(self.model, FilterExpression(name, FilterOperator.EQ, value), allow_hidden=True)
            for name, value in combined.items()
        ]

    def _select(self, scope: Mapping[str, Any] | None = None) -> Select:
        stmt = select(self.model).where(*self._scope_clauses(scope))
        if self.relations:
            stmt = stmt.options(*(selectinload(getattr(self.model, name)) for name in self.relations))
        return stmt

    def find_by_id(self, record_id: int, scope: Mapping[str, Any] | None = None) -> Any | None:
        stmt = self._select(scope).where(self.model.id == record_id)
        return self.db.scalars(stmt).first()

    def find(self, spec: QuerySpec, scope: Mapping[str, Any] | None = None) -> list[Any]:
        stmt = apply_query_spec(self._select(scope), self.model, spec)
        return list(self.db.scalars(stmt).all())

    def count(self, spec: QuerySpec, scope: Mapping[str, Any] | None = None) -> int:
        stmt = select(func.count()).select_from(self.model).where(*self._scope_clauses(scope))
        stmt = apply_filters(stmt, self.model, spec)
        return self.db.scalar(stmt) or 0

    def create(self, payload: Mapping[str, Any]) -> Any:
        try:
            record = self.model(**payload)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"Invalid input data. {exc}") from exc

        self.db.add(record)
        self._commit(record)
        return record

    def _writable_fields(self) -> set[str]:
        mapper = inspect(self.model)
        # Computed fields count only when they define a setter.
        settable = {
            name
            for name in getattr(self.model, "computed_fields", ())
            if getattr(getattr(self.model, name, None), "fset", None) is not None
        }
        return {*mapper.columns.keys(), *mapper.relationships.keys(), *settable}

    def find_and_update_by_id(self, record_id: int, payload: Mapping[str, Any], scope: Mapping[str, Any] | None = None) -> Any | None:
        record = self.find_by_id(record_id, scope)
        if record is None:
            return None

        writable = self._writable_fields()
        try:
            for name, value in payload.items():
                if name not in writable:
                    raise ValueError(f"Unknown field: {name}")
                setattr(record, name, value)
        except ValueError as exc:
            self.db.rollback()
            raise ValidationError(f"Invalid input data. {exc}") from exc

        self._commit(record)
        return record

    def find_and_delete_by_id(self, record_id: int, scope: Mapping[str, Any] | None = None) -> Any | None:
        record = self.find_by_id(record_id, scope)
        if record is None:
            return None

        self.db.delete(record)
        self._commit(record)
        return record

    def _commit(self, record: Any) -> None:
        try:
            self.db.flush()
            if self.after_write is not None:
                self.after_write(self.db, record)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.debug("Rolled back write to %s", self.model.__tablename__)
            raise
