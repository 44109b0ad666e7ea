"""Readers and summaries for the precomputed analytics snapshots."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

import pandas as pd

from .constants import HEATMAP_DAYS, HEATMAP_HOURS, SENTIMENT_LEVELS

logger = logging.getLogger(__name__)


def load_snapshot(path: str | Path) -> dict[str, Any]:
    snapshot_path = Path(path)
    try:
        payload = json.loads(snapshot_path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        logger.warning("Snapshot %s does not exist", snapshot_path)
        return {}
    except (OSError, ValueError) as exc:
        logger.error("Failed to load snapshot %s: %s", snapshot_path, exc)
        return {}
    if not isinstance(payload, dict):
        logger.warning("Snapshot %s is not a JSON object", snapshot_path)
        return {}
    return payload


@dataclass
class HeatmapSummary:
    grid: pd.DataFrame
    row_totals: pd.Series
    column_totals: pd.Series
    total: int

    @property
    def peak_row(self) -> str | None:
        if self.row_totals.empty or self.total == 0:
            return None
        return str(self.row_totals.idxmax())

    @property
    def peak_column(self) -> str | None:
        if self.column_totals.empty or self.total == 0:
            return None
        return str(self.column_totals.idxmax())

    @property
    def max_value(self) -> int:
        if self.grid.empty:
            return 0
        return int(self.grid.to_numpy().max())


def summarize_heatmap(
    cells: Iterable[Mapping[str, Any]],
    x_labels: Sequence[str] | None = None,
    y_labels: Sequence[str] | None = None,
) -> HeatmapSummary:
    """Pivot ``{x, y, value}`` cells into a y-by-x grid with totals.

    Defaults to the hour-of-day by day-of-week layout; cells missing from the
    snapshot count as zero.
    """
    x_labels = list(x_labels or HEATMAP_HOURS)
    y_labels = list(y_labels or HEATMAP_DAYS)
    frame = pd.DataFrame(list(cells), columns=["x", "y", "value"])
    frame["value"] = pd.to_numeric(frame["value"], errors="coerce").fillna(0)

    if frame.empty:
        grid = pd.DataFrame(0, index=y_labels, columns=x_labels)
    else:
        grid = (
            frame.pivot_table(index="y", columns="x", values="value", aggfunc="sum", fill_value=0)
            .reindex(index=y_labels, columns=x_labels, fill_value=0)
            .fillna(0)
            .astype(int)
        )
    grid.index.name = "y"
    grid.columns.name = "x"

    return HeatmapSummary(
        grid=grid,
        row_totals=grid.sum(axis=1),
        column_totals=grid.sum(axis=0),
        total=int(grid.to_numpy().sum()),
    )


def group_category_stats(stats: Iterable[Mapping[str, Any]]) -> dict[str, list[dict[str, Any]]]:
    """Map each top-level category to its subcategory stat rows, in input order."""
    groups: dict[str, list[dict[str, Any]]] = {}
    for stat in stats:
        category = str(stat.get("category") or "Other")
        groups.setdefault(category, []).append({**stat, "category": category})
    return groups


def category_totals(stats: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
    rows = [item for items in group_category_stats(stats).values() for item in items]
    if not rows:
        return []
    frame = pd.DataFrame(rows)
    frame["count"] = pd.to_numeric(frame.get("count", 0), errors="coerce").fillna(0)
    frame["avgConfidence"] = pd.to_numeric(frame.get("avgConfidence", 0), errors="coerce").fillna(0)
    totals = (
        frame.groupby("category", sort=False)
        .agg(count=("count", "sum"), avgConfidence=("avgConfidence", "mean"))
        .reset_index()
        .sort_values("count", ascending=False, kind="mergesort")
    )
    totals["count"] = totals["count"].astype(int)
    totals["avgConfidence"] = totals["avgConfidence"].round(4)
    return totals.to_dict("records")


def sentiment_comparison(summary: Mapping[str, Any]) -> list[dict[str, Any]]:
    """Side-by-side agent and customer sentiment counts from a deep-analysis summary."""
    agent = summary.get("agentSentiment") or {}
    customer = summary.get("customerSentiment") or {}
    rows = []
    for level in SENTIMENT_LEVELS:
        rows.append(
            {
                "category": level.capitalize(),
                "Agent": int(agent.get(level) or 0),
                "Customer": int(customer.get(level) or 0),
            }
        )
    return rows


def snapshot_section(snapshot: Mapping[str, Any], *path: str) -> Any:
    node: Any = snapshot
    for name in path:
        if not isinstance(node, Mapping):
            return None
        node = node.get(name)
    return node
