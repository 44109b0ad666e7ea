"""FastAPI server exposing ticket pages, grouped aggregates and analytics snapshots."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .constants import DEFAULT_PAGE_LIMIT, MULTI_SELECT_FIELDS, SNAPSHOT_NAMES
from .errors import InvalidGroupingError
from .models import split_csv_param
from .snapshots import load_snapshot
from .ticket_store import TicketCriteria, TicketStore

logger = logging.getLogger(__name__)


class GroupPayload(BaseModel):
    groupByLevels: list[str] = Field(default_factory=lambda: ["project"])
    search: str = ""
    status: str = ""
    project: str = ""
    priority: str = ""
    assignee: str = ""
    category: str = ""


def _criteria(
    search: str,
    selections: dict[str, str],
    category: str,
    sort_field: str = "created",
    sort_order: str = "desc",
) -> TicketCriteria:
    try:
        return TicketCriteria(
            search=search.strip(),
            selections={name: split_csv_param(value) for name, value in selections.items()},
            category=category,
            sort_field=sort_field,
            sort_order=sort_order,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def create_app(store: TicketStore, snapshot_dir: str | Path | None = None) -> FastAPI:
    app = FastAPI(title="Ticket Dashboard API", version="1.0.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/health")
    def health() -> dict[str, Any]:
        return {"status": "ok", "tickets": len(store)}

    @app.get("/api/tickets")
    def list_tickets(
        page: int = Query(1, ge=1),
        limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1),
        search: str = "",
        status: str = "",
        project: str = "",
        priority: str = "",
        assignee: str = "",
        category: str = "",
        sortField: str = "created",
        sortOrder: str = "desc",
    ) -> JSONResponse:
        criteria = _criteria(
            search,
            {"status": status, "project": project, "priority": priority, "assignee": assignee},
            category,
            sort_field=sortField,
            sort_order=sortOrder,
        )
        return JSONResponse(content=store.page(criteria, page=page, limit=limit))

    @app.post("/api/tickets")
    def group_tickets(payload: GroupPayload) -> JSONResponse:
        criteria = _criteria(
            payload.search,
            {name: getattr(payload, name) for name in MULTI_SELECT_FIELDS},
            payload.category,
        )
        try:
            groups = store.group_tree(payload.groupByLevels, criteria)
        except InvalidGroupingError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return JSONResponse(content={"groups": groups})

    @app.get("/api/snapshots/{name}")
    def get_snapshot(name: str) -> JSONResponse:
        if name not in SNAPSHOT_NAMES:
            raise HTTPException(status_code=404, detail="Unknown snapshot")
        if snapshot_dir is None:
            raise HTTPException(status_code=404, detail="Snapshots are not configured")
        path = Path(snapshot_dir) / f"{name}.json"
        if not path.exists():
            raise HTTPException(status_code=404, detail="Snapshot not found")
        payload = load_snapshot(path)
        if not payload:
            logger.warning("Snapshot %s is empty or unreadable", path)
        return JSONResponse(content=payload)

    return app
