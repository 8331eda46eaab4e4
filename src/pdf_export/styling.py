from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date
from functools import lru_cache
from importlib import resources

from .config import PageRules
from .engine import RenderSession

LOGGER = logging.getLogger(__name__)

COMPACT_TABLE_CLASS = "compact-table"
PRINT_STYLESHEET = "print.css"

SET_LANGUAGE = "(lang) => document.documentElement.setAttribute('lang', lang)"

STRIP_CHROME = """
(selectors) => {
  let removed = 0;
  for (const selector of selectors) {
    document.querySelectorAll(selector).forEach(element => {
      element.remove();
      removed += 1;
    });
  }
  return removed;
}
"""

COUNT_TABLE_ROWS = """
() => Array.from(document.querySelectorAll('table')).map(table => table.querySelectorAll('tr').length)
"""

MARK_TABLES = """
({indices, className}) => {
  const tables = document.querySelectorAll('table');
  indices.forEach(index => {
    if (tables[index]) tables[index].classList.add(className);
  });
}
"""


@lru_cache(maxsize=1)
def load_print_stylesheet() -> str:
    source = resources.files("pdf_export") / "styles" / PRINT_STYLESHEET
    return source.read_text(encoding="utf-8")


def format_render_date(day: date) -> str:
    return f"{day:%B} {day.day}, {day.year}"


def render_date_css(day: date) -> str:
    return f':root {{ --render-date: "{format_render_date(day)}"; }}'


def generate_page_styles(rules: PageRules) -> str | None:
    if rules.css and rules.css.strip():
        return rules.css
    return None


@dataclass(frozen=True, slots=True)
class TableInfo:
    index: int
    rows: int
    compact: bool


def is_compact(row_count: int, max_rows: int) -> bool:
    return row_count <= max_rows


def classify_tables(row_counts: Iterable[int], max_rows: int) -> list[TableInfo]:
    return [
        TableInfo(index=index, rows=int(rows), compact=is_compact(int(rows), max_rows))
        for index, rows in enumerate(row_counts)
    ]


@dataclass(slots=True)
class StyleReport:
    removed_elements: int = 0
    tables: list[TableInfo] = field(default_factory=list)

    @property
    def compact_tables(self) -> int:
        return sum(1 for table in self.tables if table.compact)


class StyleInjector:
    def __init__(
        self,
        *,
        language: str = "en",
        strip_selectors: Sequence[str] = (),
        compact_table_max_rows: int = 6,
        stylesheet: str | None = None,
        today: Callable[[], date] = date.today,
    ) -> None:
        self._language = language
        self._strip_selectors = list(strip_selectors)
        self._max_rows = compact_table_max_rows
        self._stylesheet = stylesheet
        self._today = today

    async def apply(self, session: RenderSession, rules: PageRules) -> StyleReport:
        report = StyleReport()
        await session.evaluate(SET_LANGUAGE, self._language)
        if self._strip_selectors:
            report.removed_elements = int(await session.evaluate(STRIP_CHROME, self._strip_selectors) or 0)

        await session.add_style(self._stylesheet if self._stylesheet is not None else load_print_stylesheet())
        await session.add_style(render_date_css(self._today()))
        page_styles = generate_page_styles(rules)
        if page_styles:
            await session.add_style(page_styles)

        report.tables = await self.mark_compact_tables(session)
        return report

    async def mark_compact_tables(self, session: RenderSession) -> list[TableInfo]:
        row_counts = await session.evaluate(COUNT_TABLE_ROWS) or []
        tables = classify_tables(row_counts, self._max_rows)
        compact = [table.index for table in tables if table.compact]
        if compact:
            await session.evaluate(MARK_TABLES, {"indices": compact, "className": COMPACT_TABLE_CLASS})
        if tables:
            LOGGER.debug("Found %d table(s):", len(tables))
        for table in tables:
            LOGGER.debug(
                "  Table %d: %d rows (%s)",
                table.index + 1,
                table.rows,
                "marked as compact" if table.compact else "large table",
            )
        return tables


__all__ = [
    "COMPACT_TABLE_CLASS",
    "StyleInjector",
    "StyleReport",
    "TableInfo",
    "classify_tables",
    "is_compact",
    "load_print_stylesheet",
]
