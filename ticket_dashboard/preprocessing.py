"""Normalisation of raw ticket dumps into the canonical ticket frame."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable

import numpy as np
import pandas as pd

from .categorization import categorize_titles
from .constants import COLUMN_ALIASES, UNASSIGNED_VALUE, UNKNOWN_VALUE
from .models import parse_flag

TICKET_COLUMNS = [
    "id",
    "key",
    "title",
    "status",
    "priority",
    "project",
    "assignee",
    "created",
    "response_time",
    "resolution_time",
    "complete",
]


def normalize_column_name(column: str) -> str:
    cleaned = re.sub(r"[^0-9a-zA-Z]+", "_", str(column).strip().lower())
    cleaned = re.sub(r"_+", "_", cleaned).strip("_")
    return cleaned


def _canonical_alias_map() -> dict[str, str]:
    mapping: dict[str, str] = {}
    for canonical, aliases in COLUMN_ALIASES.items():
        for alias in aliases:
            mapping.setdefault(normalize_column_name(alias), canonical)
    return mapping


def normalize_and_alias_columns(df: pd.DataFrame) -> pd.DataFrame:
    result = df.copy()
    result.columns = [normalize_column_name(col) for col in result.columns]

    alias_to_canonical = _canonical_alias_map()
    renamed: dict[str, str] = {}
    existing = set(result.columns)
    for col in result.columns:
        canonical = alias_to_canonical.get(col)
        if canonical is None or canonical == col:
            continue
        if canonical in existing or canonical in renamed.values():
            continue
        renamed[col] = canonical

    if renamed:
        result = result.rename(columns=renamed)
    return result


def _ensure_columns(df: pd.DataFrame, columns: Iterable[str]) -> pd.DataFrame:
    result = df.copy()
    for column in columns:
        if column not in result:
            result[column] = np.nan
    return result


def _format_created(parsed: pd.Series) -> pd.Series:
    return parsed.map(lambda ts: ts.isoformat().replace("+00:00", "Z") if pd.notna(ts) else "")


def preprocess_tickets(raw_df: pd.DataFrame) -> pd.DataFrame:
    df = normalize_and_alias_columns(raw_df)
    df = _ensure_columns(df, TICKET_COLUMNS)

    fallback_ids = pd.Series([str(i + 1) for i in range(len(df))], index=df.index, dtype=object)
    df["id"] = df["id"].astype(object).where(df["id"].notna(), fallback_ids).astype(str)

    df["key"] = df["key"].astype(object).where(df["key"].notna(), df["id"]).astype(str)
    df["title"] = df["title"].fillna("").astype(str)

    for col in ["status", "priority", "project"]:
        df[col] = df[col].fillna(UNKNOWN_VALUE).astype(str).str.strip().replace({"": UNKNOWN_VALUE})
    df["assignee"] = df["assignee"].fillna(UNASSIGNED_VALUE).astype(str).str.strip().replace({"": UNASSIGNED_VALUE})

    df["created_ts"] = pd.to_datetime(df["created"], errors="coerce", utc=True, format="mixed")
    df["created"] = _format_created(df["created_ts"])

    for col in ["response_time", "resolution_time"]:
        df[col] = pd.to_numeric(df[col], errors="coerce")

    df["complete"] = df["complete"].map(parse_flag).astype(bool)
    df["category"] = categorize_titles(df["title"])

    return df[[*TICKET_COLUMNS, "category", "created_ts"]].reset_index(drop=True)


def read_ticket_dump(path: str | Path) -> pd.DataFrame:
    file_lower = str(path).lower()
    if file_lower.endswith(".csv"):
        return pd.read_csv(path)
    if file_lower.endswith(".json"):
        frame = pd.read_json(path)
        if "tickets" in frame.columns:
            return pd.json_normalize(frame["tickets"].tolist())
        return frame
    return pd.read_excel(path)
