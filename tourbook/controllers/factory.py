"""Generic CRUD handlers shared by every resource.

``resource_controller`` closes over a model class and its relation-expansion
specs and hands back five plain functions. Routers call them with the request's
session; nothing here knows about HTTP beyond the response envelope.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Callable

from sqlalchemy.orm import Session

from tourbook.core.errors import NotFound
from tourbook.query.features import build_query_spec
from tourbook.query.sqlalchemy_adapter import projected_fields
from tourbook.serializers import Populate, to_dict
from tourbook.store import AfterWrite, Store

NOT_FOUND_MESSAGE = "No document found with that ID"

QueryParams = Mapping[str, Any] | Iterable[tuple[str, str]]


@dataclass(frozen=True)
class ResourceHandlers:
    get_one: Callable[[Session, int], dict]
    get_all: Callable[..., dict]
    create_one: Callable[[Session, Mapping[str, Any]], dict]
    update_one: Callable[[Session, int, Mapping[str, Any]], dict]
    delete_one: Callable[[Session, int], None]
    store: Callable[[Session], Store]


def success(data: Any, **extra: Any) -> dict:
    return {"status": "success", **extra, "data": {"data": data}}


def resource_controller(
    model: type,
    *,
    populate: Populate | None = None,
    list_populate: Populate | None = None,
    after_write: AfterWrite | None = None,
) -> ResourceHandlers:
    relations = tuple(dict.fromkeys([*(populate or {}), *(list_populate or {})]))

    def store(db: Session) -> Store:
        return Store(db, model, relations=relations, after_write=after_write)

    def get_one(db: Session, record_id: int) -> dict:
        record = store(db).find_by_id(record_id)
        if record is None:
            raise NotFound(NOT_FOUND_MESSAGE)
        return success(to_dict(record, populate=populate))

    def get_all(db: Session, params: QueryParams, scope: Mapping[str, Any] | None = None) -> dict:
        spec = build_query_spec(params)
        fields = projected_fields(model, spec)
        # An explicit field selection replaces relation expansion.
        expand = None if spec.include_fields else list_populate
        records = store(db).find(spec, scope)
        return success(
            [to_dict(record, fields, populate=expand) for record in records],
            results=len(records),
        )

    def create_one(db: Session, payload: Mapping[str, Any]) -> dict:
        record = store(db).create(payload)
        return success(to_dict(record))

    def update_one(db: Session, record_id: int, payload: Mapping[str, Any]) -> dict:
        record = store(db).find_and_update_by_id(record_id, payload)
        if record is None:
            raise NotFound(NOT_FOUND_MESSAGE)
        return success(to_dict(record))

    def delete_one(db: Session, record_id: int) -> None:
        if store(db).find_and_delete_by_id(record_id) is None:
            raise NotFound(NOT_FOUND_MESSAGE)

    return ResourceHandlers(
        get_one=get_one,
        get_all=get_all,
        create_one=create_one,
        update_one=update_one,
        delete_one=delete_one,
        store=store,
    )
