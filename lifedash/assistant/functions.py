"""
Builds the callable function definitions offered to the model, one per
catalog domain.  Parameter shapes come straight from the schema catalog,
so the model only ever sees real tables, columns and operators.
"""
from __future__ import annotations

from typing import Any

from lifedash.assistant.query import SUPPORTED_OPERATORS
from lifedash.catalog.loader import DomainSchema, Refinement, SchemaCatalog, load_schema_catalog

_FILTER_VALUE_SCHEMA: dict[str, Any] = {
    "description": "Comparison value. For 'between' pass [start, end] (both inclusive).",
    "anyOf": [
        {"type": "string"},
        {"type": "number"},
        {"type": "boolean"},
        {"type": "array", "items": {"type": ["string", "number"]}, "minItems": 2, "maxItems": 2},
    ],
}


def _refinement_schema(ref: Refinement, domain: DomainSchema) -> dict[str, Any]:
    if ref.kind == "time_range":
        fmt = "date-time" if ref.value_format == "date-time" else "date"
        return {
            "type": "object",
            "description": f"Inclusive range on '{ref.column}'",
            "properties": {
                ref.start_key: {"type": "string", "format": fmt},
                ref.end_key: {"type": "string", "format": fmt},
            },
        }
    if ref.kind == "numeric_range":
        return {
            "type": "object",
            "description": "Inclusive numeric range on one common field",
            "properties": {
                "field": {"type": "string", "enum": domain.all_common_fields(ref.common_fields or "")},
                "min": {"type": "number"},
                "max": {"type": "number"},
            },
            "required": ["field"],
        }
    # status
    return {"type": "string", "enum": list(ref.values)}


def build_function(domain: DomainSchema) -> dict[str, Any]:
    properties: dict[str, Any] = {
        "table": {
            "type": "string",
            "enum": list(domain.tables),
            "description": f"The {domain.name} table to query",
        },
        "select": {
            "type": "string",
            "description": "Comma-separated columns to select",
            "default": "*",
        },
        "filters": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "field": {"type": "string", "enum": domain.all_columns()},
                    "operator": {"type": "string", "enum": list(SUPPORTED_OPERATORS)},
                    "value": _FILTER_VALUE_SCHEMA,
                },
                "required": ["field", "operator", "value"],
            },
        },
    }
    for ref in domain.refinements:
        properties[ref.argument] = _refinement_schema(ref, domain)

    return {
        "name": domain.function,
        "description": domain.description,
        "parameters": {
            "type": "object",
            "properties": properties,
            "required": ["table"],
        },
    }


def build_functions(catalog: SchemaCatalog | None = None) -> list[dict[str, Any]]:
    if catalog is None:
        catalog = load_schema_catalog()
    return [build_function(d) for d in catalog.domains.values()]
