"""Plotly figures for the snapshot summaries."""

from __future__ import annotations

from typing import Any, Sequence

import pandas as pd
import plotly.express as px
from plotly.graph_objs import Figure

from .snapshots import HeatmapSummary


def build_heatmap_figure(summary: HeatmapSummary, title: str = "Call Volume Heatmap") -> Figure:
    return px.imshow(
        summary.grid,
        labels={"x": "Hour", "y": "Day", "color": "Calls"},
        aspect="auto",
        color_continuous_scale="Blues",
        title=title,
    )


def build_category_figure(totals: Sequence[dict[str, Any]], title: str = "Tickets by Category") -> Figure | None:
    if not totals:
        return None
    df = pd.DataFrame(list(totals))
    return px.bar(df, x="category", y="count", title=title)


def build_sentiment_figure(rows: Sequence[dict[str, Any]], title: str = "Agent vs Customer Sentiment") -> Figure | None:
    if not rows:
        return None
    df = pd.DataFrame(list(rows)).melt(id_vars="category", var_name="speaker", value_name="count")
    return px.bar(df, x="category", y="count", color="speaker", barmode="group", title=title)
