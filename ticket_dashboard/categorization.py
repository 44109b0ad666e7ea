"""Keyword categorisation of ticket titles."""

from __future__ import annotations

import re

import pandas as pd

from .constants import CATEGORY_KEYWORDS, LOAN_NUMBER_PATTERN, LOAN_SPECIFIC_CATEGORY, OTHER_CATEGORY

_LOAN_NUMBER_RE = re.compile(LOAN_NUMBER_PATTERN, re.IGNORECASE)


def categorize_title(title: object) -> str:
    text = "" if title is None or (isinstance(title, float) and pd.isna(title)) else str(title)
    lowered = text.lower()
    for category, terms in CATEGORY_KEYWORDS.items():
        if any(term in lowered for term in terms):
            return category
    if _LOAN_NUMBER_RE.search(text):
        return LOAN_SPECIFIC_CATEGORY
    return OTHER_CATEGORY


def categorize_titles(titles: pd.Series) -> pd.Series:
    return titles.map(categorize_title).astype(str)


def known_categories() -> list[str]:
    return [*CATEGORY_KEYWORDS.keys(), LOAN_SPECIFIC_CATEGORY, OTHER_CATEGORY]
