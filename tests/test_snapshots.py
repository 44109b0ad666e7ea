from __future__ import annotations

import json

from plotly.graph_objs import Figure

from ticket_dashboard.snapshots import (
    category_totals,
    group_category_stats,
    load_snapshot,
    sentiment_comparison,
    snapshot_section,
    summarize_heatmap,
)
from ticket_dashboard.visualization import build_category_figure, build_heatmap_figure, build_sentiment_figure

CATEGORY_STATS = [
    {"category": "Payment Issues", "subcategory": "Autopay", "count": 10, "avgConfidence": 0.9},
    {"category": "Escrow", "subcategory": "Shortage", "count": 4, "avgConfidence": 0.7},
    {"category": "Payment Issues", "subcategory": "Misapplied", "count": 6, "avgConfidence": 0.7},
    {"category": "Escrow", "subcategory": "Tax bill", "count": 20, "avgConfidence": 0.5},
]


def test_load_snapshot(tmp_path) -> None:
    good = tmp_path / "processed-stats.json"
    good.write_text(json.dumps({"heatmaps": {}}), encoding="utf-8")
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    listing = tmp_path / "list.json"
    listing.write_text("[1, 2]", encoding="utf-8")

    assert load_snapshot(good) == {"heatmaps": {}}
    assert load_snapshot(broken) == {}
    assert load_snapshot(listing) == {}
    assert load_snapshot(tmp_path / "missing.json") == {}


def test_summarize_heatmap() -> None:
    cells = [
        {"x": "09:00", "y": "Mon", "value": 5},
        {"x": "09:00", "y": "Mon", "value": 2},
        {"x": "10:00", "y": "Tue", "value": 4},
        {"x": "11:00", "y": "Fri", "value": None},
    ]

    summary = summarize_heatmap(cells)

    assert summary.grid.shape == (7, 24)
    assert list(summary.grid.index[:2]) == ["Sun", "Mon"]
    assert summary.grid.loc["Mon", "09:00"] == 7
    assert summary.grid.loc["Sat", "23:00"] == 0
    assert summary.total == 11
    assert summary.max_value == 7
    assert summary.peak_row == "Mon"
    assert summary.peak_column == "09:00"


def test_summarize_heatmap_empty_and_custom_axes() -> None:
    empty = summarize_heatmap([])
    assert empty.total == 0
    assert empty.peak_row is None
    assert empty.max_value == 0

    custom = summarize_heatmap([{"x": "Open", "y": "Ops", "value": 3}], x_labels=["Open", "Closed"], y_labels=["Ops"])
    assert custom.grid.to_dict() == {"Open": {"Ops": 3}, "Closed": {"Ops": 0}}


def test_group_category_stats_builds_mapping() -> None:
    groups = group_category_stats(CATEGORY_STATS + [{"subcategory": "Loose", "count": 1}])

    assert list(groups) == ["Payment Issues", "Escrow", "Other"]
    assert [item["subcategory"] for item in groups["Payment Issues"]] == ["Autopay", "Misapplied"]
    assert groups["Other"][0]["category"] == "Other"


def test_category_totals_sorted_by_count() -> None:
    totals = category_totals(CATEGORY_STATS)

    assert [row["category"] for row in totals] == ["Escrow", "Payment Issues"]
    assert totals[0]["count"] == 24
    assert totals[0]["avgConfidence"] == 0.6
    assert totals[1]["avgConfidence"] == 0.8
    assert category_totals([]) == []


def test_sentiment_comparison_defaults_missing_to_zero() -> None:
    rows = sentiment_comparison({"agentSentiment": {"positive": 8, "neutral": 2}, "customerSentiment": {"negative": 3}})

    assert rows == [
        {"category": "Positive", "Agent": 8, "Customer": 0},
        {"category": "Neutral", "Agent": 2, "Customer": 0},
        {"category": "Negative", "Agent": 0, "Customer": 3},
    ]


def test_snapshot_section() -> None:
    snapshot = {"heatmaps": {"dayHour": {"data": [1]}}}

    assert snapshot_section(snapshot, "heatmaps", "dayHour", "data") == [1]
    assert snapshot_section(snapshot, "heatmaps", "missing", "data") is None
    assert snapshot_section({"heatmaps": []}, "heatmaps", "dayHour") is None


def test_figures() -> None:
    heatmap = build_heatmap_figure(summarize_heatmap([{"x": "09:00", "y": "Mon", "value": 1}]))
    category = build_category_figure(category_totals(CATEGORY_STATS))
    sentiment = build_sentiment_figure(sentiment_comparison({}))

    assert isinstance(heatmap, Figure)
    assert isinstance(category, Figure)
    assert isinstance(sentiment, Figure)
    assert len(sentiment.data) == 2
    assert build_category_figure([]) is None
    assert build_sentiment_figure([]) is None
