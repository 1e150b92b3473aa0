"""
GET /catalog, GET /catalog/{domain} -- schema catalog metadata.
"""
from __future__ import annotations

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from lifedash.assistant.functions import build_function
from lifedash.catalog.loader import DomainSchema, load_schema_catalog

router = APIRouter()


class TableItem(BaseModel):
    name: str
    columns: list[str]
    common_fields: dict[str, list[str]]


class DomainItem(BaseModel):
    name: str
    function: str
    description: str
    tables: list[TableItem]
    refinements: list[str]


class CatalogResponse(BaseModel):
    version: int
    owner_column: str
    domains: list[DomainItem]


def _domain_item(d: DomainSchema) -> DomainItem:
    return DomainItem(
        name=d.name,
        function=d.function,
        description=d.description,
        tables=[
            TableItem(
                name=t.name,
                columns=list(t.columns),
                common_fields={g: list(f) for g, f in t.common_fields.items()},
            )
            for t in d.tables.values()
        ],
        refinements=[r.argument for r in d.refinements],
    )


@router.get("/catalog", response_model=CatalogResponse)
def full_catalog() -> CatalogResponse:
    """Return every queryable domain with its tables and refinements."""
    catalog = load_schema_catalog()
    return CatalogResponse(
        version=catalog.version,
        owner_column=catalog.owner_column,
        domains=[_domain_item(d) for d in catalog.domains.values()],
    )


@router.get("/catalog/{domain}")
def domain_detail(domain: str) -> dict:
    """One domain plus the function definition offered to the model."""
    d = load_schema_catalog().domain(domain)
    if d is None:
        raise HTTPException(status_code=404, detail=f"Unknown domain '{domain}'")
    return {"domain": _domain_item(d).model_dump(), "function": build_function(d)}
