"""Constants and keyword maps for the ticket dashboard."""

from __future__ import annotations

from typing import Dict, List

PAGE_SIZE = 50
SEARCH_DEBOUNCE_SECONDS = 0.3
SCROLL_LOAD_THRESHOLD = 0.8
EXPORT_MAX_ROWS = 10_000
MAX_PAGE_LIMIT = EXPORT_MAX_ROWS
DEFAULT_PAGE_LIMIT = 100
MAX_GROUP_LEVELS = 3

MULTI_SELECT_FIELDS = ("status", "project", "priority", "assignee")
GROUP_BY_FIELDS = ("project", "status", "priority", "assignee", "category")
SORT_FIELDS = ("key", "title", "status", "priority", "project", "assignee", "created", "resolutionTime")
SORT_ORDERS = ("asc", "desc")

# Wire sort field -> ticket frame column.
SORT_COLUMNS: Dict[str, str] = {
    "key": "key",
    "title": "title",
    "status": "status",
    "priority": "priority",
    "project": "project",
    "assignee": "assignee",
    "created": "created_ts",
    "resolutionTime": "resolution_time",
}

# Filter picker caps, ordered by ticket frequency.
FILTER_OPTION_LIMITS: Dict[str, int | None] = {
    "statuses": 20,
    "projects": 20,
    "priorities": None,
    "assignees": 100,
}

COLUMN_ALIASES: Dict[str, List[str]] = {
    "id": ["id", "ticket_uuid", "uuid", "ticket_id"],
    "key": ["key", "ticket_key", "ticket_number", "number", "incident_id"],
    "title": ["title", "ticket_title", "summary", "short_description", "subject"],
    "status": ["status", "ticket_status", "state"],
    "priority": ["priority", "ticket_priority", "severity"],
    "project": ["project", "project_name", "queue"],
    "assignee": ["assignee", "assigned_user_name", "assigned_to", "owner", "agent"],
    "created": ["created", "ticket_created_at_utc", "created_at", "opened_at"],
    "response_time": ["response_time", "time_to_first_response_in_minutes", "first_response_minutes"],
    "resolution_time": ["resolution_time", "time_to_resolution_in_minutes", "resolution_minutes"],
    "complete": ["complete", "is_ticket_complete", "is_complete", "completed"],
}

TRUE_VALUES = {"true", "1", "yes", "y", "t"}

UNKNOWN_VALUE = "Unknown"
UNASSIGNED_VALUE = "Unassigned"

# Order matters: the first matching category wins.
CATEGORY_KEYWORDS: Dict[str, List[str]] = {
    "Automated System Messages": ["automatic reply", "unmonitored mailbox", "sagentsupport", "auto-reply"],
    "Payment Issues": [
        "payment",
        "pay ",
        "ach",
        "autopay",
        "draft",
        "misapplied",
        "overpayment",
        "underpayment",
        "double draft",
    ],
    "Escrow": ["escrow", "tax bill", "tax ", "insurance", "hoi ", "pmi", "shortage", "surplus", "flood", "hazard"],
    "Documentation": [
        "statement",
        "letter",
        "document",
        "1098",
        "payoff",
        "release",
        "mortgage release",
        "amortization",
        "confirmation",
    ],
    "Transfer/Boarding": [
        "transfer",
        "board",
        "cenlar",
        "sold",
        "subservicer",
        "lakeview",
        "servicemac",
        "notice of servicing",
    ],
    "Voice/Alert Requests": ["voice mail", "voicemail", "alert", "interim"],
    "Account Access": ["login", "password", "access", "portal", "locked out", "reset", "website link", "online"],
    "Loan Info Request": ["loan number", "loan info", "balance", "rate", "mailing address", "wire", "reimbursement"],
    "Insurance/Coverage": ["mycoverageinfo", "covius", "coverage", "policy"],
    "Loan Changes": [
        "recast",
        "buyout",
        "assumption",
        "modification",
        "forbearance",
        "hardship",
        "loss mitigation",
        "deferment",
    ],
    "Complaints/Escalations": ["complaint", "escalat", "elevated", "urgent", "mess", "facebook", "issue"],
    "General Inquiry": ["help", "question", "request", "information", "needed", "assistance"],
    "Communication/Forwarded": ["fw:", "fwd:", "re:", "follow up", "call back"],
}

LOAN_NUMBER_PATTERN = r"\b(r[a-z]{2}\d{7,}|0\d{9}|\d{10,}|loan\s*#?\s*\d+)"
LOAN_SPECIFIC_CATEGORY = "Loan-Specific Inquiry"
OTHER_CATEGORY = "Other"

TICKET_EXPORT_HEADERS = [
    "Key",
    "Title",
    "Status",
    "Priority",
    "Project",
    "Assignee",
    "Created",
    "Resolution Time (h)",
    "Complete",
]
GROUP_EXPORT_METRIC_HEADERS = ["Tickets", "Completed", "Completion %", "Avg Resolution (h)"]

SNAPSHOT_NAMES = ("processed-stats", "category-stats", "deep-analysis")

HEATMAP_DAYS = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]
HEATMAP_HOURS = [f"{hour:02d}:00" for hour in range(24)]
SENTIMENT_LEVELS = ("positive", "neutral", "negative")
