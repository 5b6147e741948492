from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional

from ...errors import FetchError


@dataclass(frozen=True)
class Record:
    id: str
    display_name: str
    parent_id: str | None = None
    extra: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}), compare=False)


@dataclass(frozen=True)
class EntitySpec:
    """Where a collection lives and which fields of its rows matter."""

    entity_set: str
    id_field: str = "id"
    name_field: str = "displayName"
    parent_field: str | None = None

    @property
    def fields(self) -> tuple[str, ...]:
        names = [self.id_field, self.name_field]
        if self.parent_field:
            names.append(self.parent_field)
        return tuple(names)


@dataclass(frozen=True)
class FilterExpression:
    field: str
    value: str

    def render(self) -> str:
        escaped = self.value.replace("'", "''")
        return f"{self.field} eq '{escaped}'"


@dataclass(frozen=True)
class FetchResult:
    records: tuple[Record, ...] = ()
    error: Optional[FetchError] = None

    @property
    def ok(self) -> bool:
        return self.error is None
