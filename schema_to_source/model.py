"""
Read-only semantic model of a relational schema.

This is the input every provider receives through ``ctx.model``. Building
it from database catalog metadata happens elsewhere; the model here only
holds the normalized result and a few lookup helpers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Field:
    """A column of an entity."""

    name: str
    type_name: str
    nullable: bool = False
    has_default: bool = False
    is_primary_key: bool = False


@dataclass(frozen=True)
class Relation:
    """A foreign-key relation from one entity to another."""

    name: str
    target: str  # Target entity name
    columns: tuple[str, ...] = ()
    target_columns: tuple[str, ...] = ()
    is_many: bool = False


@dataclass(frozen=True)
class Entity:
    """A table or view."""

    name: str
    schema: str = "public"
    kind: str = "table"  # "table" or "view"
    fields: tuple[Field, ...] = ()
    relations: tuple[Relation, ...] = ()

    @property
    def primary_key(self) -> tuple[Field, ...]:
        return tuple(f for f in self.fields if f.is_primary_key)

    def field(self, name: str) -> Field | None:
        return next((f for f in self.fields if f.name == name), None)


@dataclass(frozen=True)
class EnumDef:
    """An enumerated type."""

    name: str
    values: tuple[str, ...] = ()
    schema: str = "public"


@dataclass(frozen=True)
class FunctionDef:
    """A standalone database function."""

    name: str
    return_type: str
    arg_types: tuple[str, ...] = ()
    volatility: str = "volatile"
    schema: str = "public"


@dataclass(frozen=True)
class SemanticModel:
    """The complete normalized schema supplied once per run."""

    entities: tuple[Entity, ...] = ()
    enums: tuple[EnumDef, ...] = ()
    functions: tuple[FunctionDef, ...] = ()
    metadata: dict[str, Any] = field(default_factory=dict, compare=False)

    def entity(self, name: str) -> Entity | None:
        """Get an entity by name."""
        return next((e for e in self.entities if e.name == name), None)

    def enum(self, name: str) -> EnumDef | None:
        """Get an enum by name."""
        return next((e for e in self.enums if e.name == name), None)

    def tables(self) -> tuple[Entity, ...]:
        return tuple(e for e in self.entities if e.kind == "table")

    @staticmethod
    def from_dict(d: dict) -> SemanticModel:
        """Create a model from a plain dictionary (fixtures, cached snapshots)."""
        entities = tuple(
            Entity(
                name=e["name"],
                schema=e.get("schema", "public"),
                kind=e.get("kind", "table"),
                fields=tuple(Field(**f) for f in e.get("fields", [])),
                relations=tuple(
                    Relation(
                        name=r["name"],
                        target=r["target"],
                        columns=tuple(r.get("columns", ())),
                        target_columns=tuple(r.get("target_columns", ())),
                        is_many=r.get("is_many", False),
                    )
                    for r in e.get("relations", [])
                ),
            )
            for e in d.get("entities", [])
        )
        enums = tuple(
            EnumDef(name=e["name"], values=tuple(e.get("values", ())), schema=e.get("schema", "public"))
            for e in d.get("enums", [])
        )
        functions = tuple(
            FunctionDef(
                name=f["name"],
                return_type=f["return_type"],
                arg_types=tuple(f.get("arg_types", ())),
                volatility=f.get("volatility", "volatile"),
                schema=f.get("schema", "public"),
            )
            for f in d.get("functions", [])
        )
        return SemanticModel(entities=entities, enums=enums, functions=functions, metadata=dict(d.get("metadata", {})))
