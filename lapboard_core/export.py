"""Lap export: per-lap table rows and their CSV rendering."""
from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from typing import Any, Dict, List

from .session import active_driver_ids
from .view import format_ms

CSV_HEADER = ("driver", "lap_index", "lap_ms", "lap_fmt", "sum_ms_after", "sum_fmt_after")


@dataclass(frozen=True)
class LapExportRow:
    driver: str
    lap_index: int  # 1-based
    lap_ms: int
    total_ms: int  # running total after this lap


def export_rows(state: Dict[str, Any]) -> List[LapExportRow]:
    """Every completed lap of every active driver, driver order then lap order."""
    rows: List[LapExportRow] = []
    for i in active_driver_ids(state):
        d = state["drivers"][i]
        run = 0
        for idx, lap in enumerate(d.get("laps") or [], start=1):
            run += lap
            rows.append(LapExportRow(driver=d.get("name") or "", lap_index=idx, lap_ms=lap, total_ms=run))
    return rows


def export_csv(state: Dict[str, Any]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for row in export_rows(state):
        writer.writerow(
            [row.driver, row.lap_index, row.lap_ms, format_ms(row.lap_ms), row.total_ms, format_ms(row.total_ms)]
        )
    return buf.getvalue()
