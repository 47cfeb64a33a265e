from datetime import date, datetime
from typing import Any

from sqlalchemy import Select, inspect
from sqlalchemy.sql.elements import ColumnElement

from tourbook.core.errors import ValidationError
from tourbook.query.features import FilterExpression, FilterOperator, QuerySpec

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def hidden_fields(model: type) -> tuple[str, ...]:
    return tuple(getattr(model, "hidden_fields", ()))


def column_for(model: type, name: str, purpose: str, *, allow_hidden: bool = False):
    columns = inspect(model).columns
    if name not in columns or (not allow_hidden and name in hidden_fields(model)):
        raise ValidationError(f"Invalid {purpose} field: {name}")
    return getattr(model, name)


def coerce_value(attribute, value: Any) -> Any:
    if not isinstance(value, str):
        return value

    try:
        python_type = attribute.type.python_type
    except NotImplementedError:
        return value

    try:
        if python_type is bool:
            lowered = value.strip().lower()
            if lowered in _TRUE_VALUES:
                return True
            if lowered in _FALSE_VALUES:
                return False
            raise ValueError(value)
        if python_type is datetime:
            return datetime.fromisoformat(value)
        if python_type is date:
            return date.fromisoformat(value)
        if python_type in (int, float):
            return python_type(value)
    except ValueError as exc:
        raise ValidationError(f"Invalid {attribute.key}: {value}") from exc
    return value


def filter_clause(model: type, expression: FilterExpression, *, allow_hidden: bool = False) -> ColumnElement:
    attribute = column_for(model, expression.field, "filter", allow_hidden=allow_hidden)

    if expression.operator is FilterOperator.IN:
        return attribute.in_([coerce_value(attribute, item) for item in expression.value])

    value = coerce_value(attribute, expression.value)
    if expression.operator is FilterOperator.EQ:
        return attribute.is_(None) if value is None else attribute == value
    if expression.operator is FilterOperator.GT:
        return attribute > value
    if expression.operator is FilterOperator.GTE:
        return attribute >= value
    if expression.operator is FilterOperator.LT:
        return attribute < value
    if expression.operator is FilterOperator.LTE:
        return attribute <= value
    raise ValidationError(f"Unsupported filter operator: {expression.operator}")


def apply_filters(stmt: Select, model: type, spec: QuerySpec) -> Select:
    clauses = [filter_clause(model, expression) for expression in spec.filters]
    return stmt.where(*clauses) if clauses else stmt


def apply_sort(stmt: Select, model: type, spec: QuerySpec) -> Select:
    order_by = []
    for key in spec.sort:
        attribute = column_for(model, key.field, "sort")
        order_by.append(attribute.desc() if key.descending else attribute.asc())
    # Stable pages need a total order.
    order_by.append(model.id.asc())
    return stmt.order_by(*order_by)


def apply_pagination(stmt: Select, spec: QuerySpec) -> Select:
    if spec.skip:
        stmt = stmt.offset(spec.skip)
    if spec.limit is not None:
        stmt = stmt.limit(spec.limit)
    return stmt


def apply_query_spec(stmt: Select, model: type, spec: QuerySpec) -> Select:
    stmt = apply_filters(stmt, model, spec)
    stmt = apply_sort(stmt, model, spec)
    return apply_pagination(stmt, spec)


def projected_fields(model: type, spec: QuerySpec) -> list[str] | None:
    """Output field names for a spec, or None when every visible field is wanted."""
    computed = getattr(model, "computed_fields", ())
    for name in spec.include_fields + spec.exclude_fields:
        if name not in computed:
            column_for(model, name, "selected")

    if spec.include_fields:
        fields = list(dict.fromkeys(spec.include_fields))
        return fields if "id" in fields else ["id", *fields]
    if spec.exclude_fields:
        visible = [name for name in inspect(model).columns.keys() if name not in hidden_fields(model)]
        visible.extend(computed)
        return [name for name in visible if name not in spec.exclude_fields]
    return None
