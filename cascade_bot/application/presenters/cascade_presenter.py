from __future__ import annotations

from pathlib import Path
from typing import Sequence

from jinja2 import Environment, FileSystemLoader, select_autoescape

from ...domain import CascadeSnapshot, Record
from ..pages import Page, PageButton

CALLBACK_DATA_LIMIT = 64
STALE_CHOICE_NOTICE = "Этот вариант больше недоступен, выбери из актуального списка."
PICK_PARENT_FIRST_NOTICE = "Сначала выбери страну."


class CascadePresenter:
    def __init__(self, templates_dir: Path | None = None, *, columns: int = 2):
        base_dir = templates_dir or (Path(__file__).resolve().parent / "templates")
        self._env = Environment(
            loader=FileSystemLoader(str(base_dir)),
            autoescape=select_autoescape(enabled_extensions=("j2",), default_for_string=True, default=True),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self._columns = max(1, columns)

    def _render(self, template: str, snapshot: CascadeSnapshot, **context) -> str:
        return (
            self._env.get_template(template)
            .render(snapshot=snapshot, selection=snapshot.selection, **context)
            .strip()
        )

    def _choice_rows(self, records: Sequence[Record], selected_id: str, prefix: str) -> list[list[PageButton]]:
        buttons = []
        for record in records:
            callback_data = f"{prefix}:{record.id}"
            # Telegram rejects longer payloads; such records cannot be offered as buttons
            if len(callback_data.encode("utf-8")) > CALLBACK_DATA_LIMIT:
                continue
            label = record.display_name or record.id
            if record.id == selected_id:
                label = f"✅ {label}"
            buttons.append(PageButton(label, callback_data))
        return [buttons[i : i + self._columns] for i in range(0, len(buttons), self._columns)]

    def parents_page(self, snapshot: CascadeSnapshot, *, notice: str | None = None) -> Page:
        text = self._render("parents_page.j2", snapshot, notice=notice)
        rows = self._choice_rows(snapshot.parents, snapshot.selection.parent_id, "parent")
        if snapshot.child_selector_enabled:
            rows.append(
                [
                    PageButton("🏙 Выбрать город", "view:children"),
                    PageButton("✖️ Сбросить", "parent:"),
                ]
            )
        rows.append([PageButton("🔄 Обновить", "cascade:refresh")])
        return Page(text, buttons=rows)

    def children_page(self, snapshot: CascadeSnapshot, *, notice: str | None = None) -> Page:
        if not snapshot.child_selector_enabled:
            return self.parents_page(snapshot, notice=notice)
        text = self._render("children_page.j2", snapshot, notice=notice)
        rows = self._choice_rows(snapshot.children, snapshot.selection.child_id, "child")
        if snapshot.selection.has_child:
            rows.append([PageButton("✖️ Сбросить город", "child:")])
        rows.append([PageButton("⬅️ К странам", "view:parents")])
        return Page(text, buttons=rows)

    def stale_parent(self, snapshot: CascadeSnapshot) -> Page:
        return self.parents_page(snapshot, notice=STALE_CHOICE_NOTICE)

    def stale_child(self, snapshot: CascadeSnapshot) -> Page:
        if snapshot.child_selector_enabled:
            return self.children_page(snapshot, notice=STALE_CHOICE_NOTICE)
        return self.parents_page(snapshot, notice=PICK_PARENT_FIRST_NOTICE)
