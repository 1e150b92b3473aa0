"""
Loads, parses, and caches the schema catalog YAML into immutable objects.

The schema catalog is the single source of truth for:
  - queryable domains and the function name the model calls for each
  - tables per domain and their column whitelist
  - common (numeric range) fields per table
  - domain-specific refinements (time ranges, numeric ranges, status)
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from functools import lru_cache
from typing import Any, Mapping

import sqlalchemy as sa
import yaml

from lifedash.db.tables import metadata

_CATALOG_PATH = Path(__file__).resolve().parent / "catalog.yml"

REFINEMENT_KINDS = ("time_range", "numeric_range", "status")


# ── Typed domain objects ─────────────────────────────────

@dataclass(frozen=True)
class TableDescriptor:
    name: str
    columns: tuple[str, ...]
    common_fields: dict[str, tuple[str, ...]] = field(default_factory=dict)

    def has_column(self, column: str) -> bool:
        return column in self.columns


@dataclass(frozen=True)
class Refinement:
    argument: str
    kind: str  # time_range | numeric_range | status
    column: str | None = None
    start_key: str = "start"
    end_key: str = "end"
    value_format: str = "date"  # date | date-time
    common_fields: str | None = None
    values: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DomainSchema:
    name: str
    function: str
    description: str
    tables: dict[str, TableDescriptor]
    refinements: tuple[Refinement, ...] = ()

    def table(self, name: str) -> TableDescriptor | None:
        return self.tables.get(name)

    def refinement(self, argument: str) -> Refinement | None:
        for r in self.refinements:
            if r.argument == argument:
                return r
        return None

    def all_columns(self) -> list[str]:
        """Union of column names across the domain's tables, first-seen order."""
        seen: list[str] = []
        for t in self.tables.values():
            for c in t.columns:
                if c not in seen:
                    seen.append(c)
        return seen

    def all_common_fields(self, group: str) -> list[str]:
        seen: list[str] = []
        for t in self.tables.values():
            for f in t.common_fields.get(group, ()):
                if f not in seen:
                    seen.append(f)
        return seen


@dataclass
class SchemaCatalog:
    """Fully parsed schema catalog."""

    version: int
    owner_column: str
    domains: dict[str, DomainSchema]  # keyed by domain name

    def domain(self, name: str) -> DomainSchema | None:
        return self.domains.get(name)

    def domain_for_function(self, function_name: str) -> DomainSchema | None:
        for d in self.domains.values():
            if d.function == function_name:
                return d
        return None

    def get_domain_names(self) -> list[str]:
        return list(self.domains.keys())

    def get_function_names(self) -> list[str]:
        return [d.function for d in self.domains.values()]

    def find_table(self, table_name: str) -> tuple[DomainSchema, TableDescriptor] | None:
        for d in self.domains.values():
            t = d.table(table_name)
            if t is not None:
                return d, t
        return None


# ── Parsing ──────────────────────────────────────────────

def _parse_table(raw: dict[str, Any], owner_column: str) -> TableDescriptor:
    columns = tuple(raw.get("columns") or [])
    if owner_column not in columns:
        raise ValueError(f"Table '{raw['name']}' has no owner column '{owner_column}'")
    common = {
        group: tuple(fields)
        for group, fields in (raw.get("common_fields") or {}).items()
    }
    for group, fields in common.items():
        unknown = [f for f in fields if f not in columns]
        if unknown:
            raise ValueError(
                f"Common fields {unknown} in group '{group}' are not columns of '{raw['name']}'"
            )
    return TableDescriptor(name=raw["name"], columns=columns, common_fields=common)


def _parse_refinement(raw: dict[str, Any]) -> Refinement:
    kind = raw["kind"]
    if kind not in REFINEMENT_KINDS:
        raise ValueError(f"Unknown refinement kind '{kind}' for '{raw.get('argument')}'")
    return Refinement(
        argument=raw["argument"],
        kind=kind,
        column=raw.get("column"),
        start_key=raw.get("start_key", "start"),
        end_key=raw.get("end_key", "end"),
        value_format=raw.get("format", "date"),
        common_fields=raw.get("common_fields"),
        values=raw.get("values") or {},
    )


def _parse_domain(raw: dict[str, Any], owner_column: str) -> DomainSchema:
    tables = {t["name"]: _parse_table(t, owner_column) for t in raw.get("tables", [])}
    return DomainSchema(
        name=raw["name"],
        function=raw.get("function", f"query_{raw['name']}"),
        description=" ".join((raw.get("description") or "").split()),
        tables=tables,
        refinements=tuple(_parse_refinement(r) for r in raw.get("refinements") or []),
    )


def parse_catalog(raw_yaml: dict[str, Any]) -> SchemaCatalog:
    owner_column = raw_yaml.get("owner_column", "user_id")
    domains = {d["name"]: _parse_domain(d, owner_column) for d in raw_yaml.get("domains", [])}
    return SchemaCatalog(
        version=raw_yaml.get("version", 1),
        owner_column=owner_column,
        domains=domains,
    )


def check_against_store(catalog: SchemaCatalog, tables: Mapping[str, sa.Table]) -> None:
    """Every catalog table and column must exist in the physical tables."""
    for domain in catalog.domains.values():
        for table in domain.tables.values():
            physical = tables.get(table.name)
            if physical is None:
                raise ValueError(f"Catalog table '{table.name}' is not a store table")
            missing = [c for c in table.columns if c not in physical.c]
            if missing:
                raise ValueError(f"Catalog columns {missing} are not columns of store table '{table.name}'")


# ── Public API ───────────────────────────────────────────

@lru_cache
def load_schema_catalog() -> SchemaCatalog:
    """Load and cache the schema catalog from YAML."""
    with open(_CATALOG_PATH) as f:
        raw = yaml.safe_load(f)
    catalog = parse_catalog(raw)
    check_against_store(catalog, metadata.tables)
    return catalog
