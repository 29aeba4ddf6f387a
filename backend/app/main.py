from __future__ import annotations

from functools import lru_cache
from typing import Annotated, Any

from fastapi import Body, Depends, FastAPI, HTTPException, Query
from sqlalchemy.orm import Session

from settlement.service import record_outcome
from settlement.workflow import SettlementWorkflow

from . import schemas
from .core.config import get_settings, settings
from .db import get_db, init_db
from .repositories import SettlementRepository

app = FastAPI(title="Flight Market Settlement API", version="0.3.0", debug=settings.debug)

# Failure types the caller caused or can act on; anything else is a gateway issue.
_CLIENT_ERRORS = {"MalformedEvent", "NoUsableSources"}


@app.on_event("startup")
def on_startup() -> None:
    """Initialize database connections when the API boots."""

    init_db()


@lru_cache
def _settlement_workflow() -> SettlementWorkflow:
    """Build the workflow once; configuration errors surface at first use."""

    return SettlementWorkflow(get_settings())


def _settlement_repository(db: Session = Depends(get_db)) -> SettlementRepository:
    return SettlementRepository(db)


@app.get("/healthz", tags=["system"])
def healthcheck() -> dict[str, str]:
    """Basic readiness probe consumed by infrastructure monitors."""

    return {"status": "ok"}


@app.get("/providers", response_model=schemas.ProviderList, tags=["settlements"])
def list_providers() -> schemas.ProviderList:
    current = get_settings()
    return schemas.ProviderList(
        items=[
            schemas.Provider(
                name=provider.name,
                data_mode=current.data_mode,
                live_endpoint=str(provider.base_url) if provider.base_url else None,
            )
            for provider in current.providers
        ]
    )


@app.post("/settlements", response_model=schemas.SettlementRunDetail, tags=["settlements"])
def create_settlement(
    notification: Annotated[Any, Body(description="SettlementRequested notification")],
    db: Session = Depends(get_db),
    workflow: SettlementWorkflow = Depends(_settlement_workflow),
) -> schemas.SettlementRunDetail:
    """Settle one trigger notification and persist the run, failed or not."""

    outcome = workflow.run(notification)
    record = record_outcome(db, outcome)
    db.commit()
    detail = schemas.SettlementRunDetail.model_validate(record)
    if not outcome.succeeded:
        status_code = 422 if outcome.error_type in _CLIENT_ERRORS else 502
        raise HTTPException(status_code=status_code, detail=detail.model_dump(mode="json"))
    return detail


@app.get("/settlements", response_model=schemas.SettlementRunList, tags=["settlements"])
def list_settlements(
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
    repo: SettlementRepository = Depends(_settlement_repository),
) -> schemas.SettlementRunList:
    records = repo.list_recent(limit=limit, offset=offset)
    return schemas.SettlementRunList(
        items=[schemas.SettlementRun.model_validate(record) for record in records]
    )


@app.get(
    "/settlements/{market_id}",
    response_model=schemas.SettlementRunDetail,
    tags=["settlements"],
)
def get_settlement(
    market_id: str,
    repo: SettlementRepository = Depends(_settlement_repository),
) -> schemas.SettlementRunDetail:
    """Latest settlement run for a market, including its evidence pack."""

    record = repo.latest_for_market(market_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Settlement not found")
    return schemas.SettlementRunDetail.model_validate(record)
