"""Summaries of database maintenance (vacuum) results."""

import json
from typing import Any

TOP_BLOATED_LIMIT = 5

_SIZE_KEYS = (
    "size_before_bytes",
    "size_after_bytes",
    "est_bloat_before_bytes",
    "est_bloat_after_bytes",
)


def _int(value) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _table_rows(raw) -> list[dict] | None:
    if isinstance(raw, dict) and isinstance(raw.get("tables"), list):
        raw = raw["tables"]
    if not isinstance(raw, list) or not raw:
        return None
    for row in raw:
        if not isinstance(row, dict) or "table_name" not in row:
            return None
        if not any(key in row for key in _SIZE_KEYS):
            return None
    return raw


def is_maintenance_result(raw) -> bool:
    return _table_rows(raw) is not None


def summarize_maintenance(raw) -> dict[str, Any] | None:
    """Per-table deltas, totals and the most bloated tables after maintenance.

    Returns None when ``raw`` is not a list of per-table statistics.
    """
    rows = _table_rows(raw)
    if rows is None:
        return None

    tables = []
    for row in rows:
        bloat_before = _int(row.get("est_bloat_before_bytes"))
        bloat_after = _int(row.get("est_bloat_after_bytes"))
        size_before = _int(row.get("size_before_bytes"))
        size_after = _int(row.get("size_after_bytes"))
        dead_before = _int(row.get("dead_rows_before"))
        dead_after = _int(row.get("dead_rows_after"))
        tables.append({
            "table": row["table_name"],
            "sizeBeforeBytes": size_before,
            "sizeAfterBytes": size_after,
            "sizeDeltaBytes": size_before - size_after,
            "deadRowsBefore": dead_before,
            "deadRowsAfter": dead_after,
            "deadRowsRemoved": dead_before - dead_after,
            "bloatBeforeBytes": bloat_before,
            "bloatAfterBytes": bloat_after,
            "bloatFreedBytes": bloat_before - bloat_after,
        })

    bloat_before_total = sum(t["bloatBeforeBytes"] for t in tables)
    bloat_after_total = sum(t["bloatAfterBytes"] for t in tables)
    total = {
        "totalTables": len(tables),
        "deadRowsRemoved": sum(t["deadRowsRemoved"] for t in tables),
        "bloatBeforeBytes": bloat_before_total,
        "bloatAfterBytes": bloat_after_total,
        "diskFreedBytes": bloat_before_total - bloat_after_total,
    }

    ranked = sorted(tables, key=lambda t: t["bloatAfterBytes"], reverse=True)
    top = [
        {"table": t["table"], "bloatAfterBytes": t["bloatAfterBytes"]}
        for t in ranked[:TOP_BLOATED_LIMIT]
    ]

    return {"tables": tables, "total": total, "topBloatedAfter": top}


def parse_stored_summary(message: str | None) -> dict[str, Any] | None:
    """Read a summary back out of an audit row's return message."""
    if not message:
        return None
    try:
        data = json.loads(message)
    except (TypeError, ValueError):
        return None
    if isinstance(data, dict) and isinstance(data.get("total"), dict):
        return data
    # Older rows stored the raw per-table list
    return summarize_maintenance(data)
