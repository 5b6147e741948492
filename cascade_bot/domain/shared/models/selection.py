from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Selection:
    parent_id: str = ""
    parent_name: str = ""
    child_id: str = ""
    child_name: str = ""

    @property
    def has_parent(self) -> bool:
        return bool(self.parent_id)

    @property
    def has_child(self) -> bool:
        return bool(self.child_id)

    def with_parent(self, parent_id: str, parent_name: str) -> "Selection":
        # a new parent always drops the dependent choice
        return Selection(parent_id=parent_id, parent_name=parent_name)

    def with_child(self, child_id: str, child_name: str) -> "Selection":
        return Selection(
            parent_id=self.parent_id,
            parent_name=self.parent_name,
            child_id=child_id,
            child_name=child_name,
        )


@dataclass(frozen=True)
class SelectionChanged:
    selected_parent_name: str
    selected_child_name: str

    def as_payload(self) -> dict[str, str]:
        return {
            "selectedParentName": self.selected_parent_name,
            "selectedChildName": self.selected_child_name,
        }
