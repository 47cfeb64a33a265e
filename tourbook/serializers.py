from collections.abc import Mapping, Sequence
from typing import Any

from sqlalchemy import inspect

from tourbook.query.features import DEFAULT_EXCLUDED_FIELDS
from tourbook.query.sqlalchemy_adapter import hidden_fields

# relationship name -> fields to keep on the related record (None keeps the defaults)
Populate = Mapping[str, Sequence[str] | None]


def default_fields(model: type) -> list[str]:
    hidden = set(hidden_fields(model)) | set(DEFAULT_EXCLUDED_FIELDS)
    names = [name for name in inspect(model).columns.keys() if name not in hidden]
    names.extend(getattr(model, "computed_fields", ()))
    return names


def to_dict(record: Any, fields: Sequence[str] | None = None, populate: Populate | None = None) -> dict[str, Any]:
    model = type(record)
    hidden = set(hidden_fields(model))
    names = default_fields(model) if fields is None else fields

    data = {name: getattr(record, name) for name in names if name not in hidden}

    for relation, relation_fields in (populate or {}).items():
        related = getattr(record, relation)
        if related is None:
            data[relation] = None
        elif isinstance(related, list):
            data[relation] = [to_dict(item, relation_fields) for item in related]
        else:
            data[relation] = to_dict(related, relation_fields)
    return data
