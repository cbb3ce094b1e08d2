"""FastAPI application for PlacementSync."""

from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from placement_sync import __version__
from placement_sync.db import get_session, init_db
from placement_sync.targets import SqlTargetDocument
from placement_sync.transfer import AttributeMapping, ExecutionDispatcher, reset_attributes
from placement_sync.transfer.dispatcher import run_transfer


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler."""
    init_db()
    app.state.dispatcher = ExecutionDispatcher()
    yield


app = FastAPI(
    title="PlacementSync",
    description="Snapshot-based attribute propagation for placement objects",
    version=__version__,
    lifespan=lifespan,
)


class TransferRequest(BaseModel):
    target_ids: list[int]
    mappings: list[AttributeMapping]


class TransferResponse(BaseModel):
    success: bool
    strategy: str
    transferred_count: int
    failed_count: int
    skipped_count: int
    message: str
    errors: list[str] = Field(default_factory=list)  # pyright: ignore[reportUnknownVariableType]
    warnings: list[str] = Field(default_factory=list)  # pyright: ignore[reportUnknownVariableType]
    transferred_target_ids: list[int] = Field(  # pyright: ignore[reportUnknownVariableType]
        default_factory=list
    )


class ResetRequest(BaseModel):
    target_ids: list[int]


class ResetResponse(BaseModel):
    reset_count: int


def transaction(session: Annotated[Session, Depends(get_session)]) -> Iterator[Session]:
    """One transaction per request, committed when the handler returns."""
    with session.begin():
        yield session


def get_dispatcher() -> ExecutionDispatcher:
    dispatcher = getattr(app.state, "dispatcher", None)
    if dispatcher is None:
        dispatcher = app.state.dispatcher = ExecutionDispatcher()
    return dispatcher


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok", "version": __version__}


@app.post("/transfers")
def create_transfer(
    request: TransferRequest,
    session: Annotated[Session, Depends(transaction)],
    dispatcher: Annotated[ExecutionDispatcher, Depends(get_dispatcher)],
) -> TransferResponse:
    """Run a transfer batch. Per-target failures are reported, not raised."""
    result = run_transfer(session, request.target_ids, request.mappings, dispatcher=dispatcher)
    return TransferResponse(
        success=result.success,
        strategy=result.strategy.value,
        transferred_count=result.transferred_count,
        failed_count=result.failed_count,
        skipped_count=result.skipped_count,
        message=result.message,
        errors=result.errors,
        warnings=result.warnings,
        transferred_target_ids=result.transferred_target_ids,
    )


@app.post("/resets")
def create_reset(
    request: ResetRequest,
    session: Annotated[Session, Depends(transaction)],
) -> ResetResponse:
    """Clear transferred attributes on the given placements."""
    return ResetResponse(reset_count=reset_attributes(SqlTargetDocument(session), request.target_ids))
