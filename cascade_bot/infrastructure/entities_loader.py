from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from ..domain import EntitySpec


@dataclass(frozen=True)
class CascadeEntities:
    parent: EntitySpec
    child: EntitySpec
    filter_field: str


def _required(section: dict, key: str, section_name: str) -> str:
    value = section.get(key)
    if not isinstance(value, str) or not value.strip():
        raise RuntimeError(f"Invalid {section_name} entry: '{key}' is required")
    return value.strip()


def _optional(section: dict, key: str, default: str | None) -> str | None:
    value = section.get(key)
    if value is None:
        return default
    if not isinstance(value, str):
        raise RuntimeError(f"'{key}' must be a string")
    return value.strip() or default


def _entity(data: Any, section_name: str, *, default_parent_field: str | None) -> tuple[EntitySpec, dict]:
    if not isinstance(data, dict):
        raise RuntimeError(f"{section_name} must be a mapping")
    entity = EntitySpec(
        entity_set=_required(data, "entity_set", section_name),
        id_field=_optional(data, "id_field", "id"),
        name_field=_optional(data, "name_field", "displayName"),
        parent_field=_optional(data, "parent_field", default_parent_field),
    )
    return entity, data


def load_entities_from_yaml(path: str) -> CascadeEntities:
    p = Path(path)
    if not p.exists():
        raise RuntimeError(f"entities file not found: {path}")

    with p.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if not isinstance(data, dict) or "parent" not in data or "child" not in data:
        raise RuntimeError("Invalid entities.yaml format")

    parent, _ = _entity(data["parent"], "parent", default_parent_field=None)
    child, child_raw = _entity(data["child"], "child", default_parent_field="parentRef")
    filter_field = _optional(child_raw, "filter_field", None) or child.parent_field
    if not filter_field:
        raise RuntimeError("Invalid child entry: 'filter_field' is required")
    return CascadeEntities(parent=parent, child=child, filter_field=filter_field)


def default_entities(parent_entity: str, child_entity: str, filter_field: str) -> CascadeEntities:
    return CascadeEntities(
        parent=EntitySpec(entity_set=parent_entity),
        child=EntitySpec(entity_set=child_entity, parent_field="parentRef"),
        filter_field=filter_field,
    )
