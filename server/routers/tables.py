"""
Tables API router.

Provides endpoints for creating a table, reading a seat's view of it,
applying commands, and dealing the next hand.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from commands import Command
from errors import IllegalMove, InvariantViolation
from logging_config import table_id_var
from models.hand_state import HandRules
from stores.hand_store import ConcurrencyError
from table import (
    StaleCommandError,
    Table,
    TableLimitError,
    TableManager,
    TableNotFoundError,
    TableSeat,
    default_rules,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tables", tags=["tables"])


# =============================================================================
# Request Models
# =============================================================================


class SeatRequest(BaseModel):
    """A seat to create."""
    player_id: str
    name: str = ""
    is_bot: bool = False


class RulesRequest(BaseModel):
    """Rule overrides; omitted fields use the server defaults."""
    points_to_win: Optional[int] = Field(default=None, gt=0)
    skunk_enabled: Optional[bool] = None
    skunk_threshold: Optional[int] = None
    double_skunk_enabled: Optional[bool] = None
    double_skunk_threshold: Optional[int] = None
    ante_amount: Optional[int] = Field(default=None, ge=0)


class CreateTableRequest(BaseModel):
    """Create table request."""
    seats: list[SeatRequest]
    rules: Optional[RulesRequest] = None
    seed: Optional[int] = None


class CommandRequest(BaseModel):
    """A command against the table's current hand."""
    type: str
    player_id: Optional[str] = None
    card_indices: list[int] = Field(default_factory=list)
    card_index: Optional[int] = None
    expected_version: Optional[int] = None


class NextHandRequest(BaseModel):
    """Deal the next hand."""
    expected_version: Optional[int] = None
    seed: Optional[int] = None


# =============================================================================
# Dependencies
# =============================================================================

# Set by main.py during startup
_table_manager: Optional[TableManager] = None


def set_table_manager(manager: Optional[TableManager]) -> None:
    """Set the table manager instance."""
    global _table_manager
    _table_manager = manager


def get_table_manager() -> TableManager:
    """Dependency: the table manager (503 if the server is not ready)."""
    if _table_manager is None:
        raise HTTPException(status_code=503, detail="Table service not initialized")
    return _table_manager


async def _load_table(table_id: str, manager: TableManager) -> Table:
    table_id_var.set(table_id)
    try:
        return await manager.get_table(table_id)
    except TableNotFoundError:
        raise HTTPException(status_code=404, detail=f"Table {table_id} not found")


def _response(table: Table, viewer_id: Optional[str], events=None) -> dict:
    view = table.get_view(viewer_id or "")
    if events is not None:
        view["events"] = [event.to_dict() for event in events]
    return view


async def _run(table: Table, coro) -> list:
    """Await a table operation, mapping host and engine errors to HTTP codes."""
    try:
        return await coro
    except IllegalMove as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StaleCommandError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ConcurrencyError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except InvariantViolation as e:
        logger.error(f"Table {table.table_id}: {e}")
        raise HTTPException(status_code=500, detail="Internal engine error")


# =============================================================================
# Routes
# =============================================================================


@router.post("")
async def create_table(
    request: CreateTableRequest,
    manager: TableManager = Depends(get_table_manager),
):
    """Seat players, draw for dealer and deal the first hand."""
    seats = [TableSeat(player_id=s.player_id, name=s.name, is_bot=s.is_bot) for s in request.seats]
    rules = None
    if request.rules is not None:
        overrides = {k: v for k, v in request.rules.model_dump().items() if v is not None}
        rules = HandRules.from_dict({**default_rules().to_dict(), **overrides})

    try:
        table = await manager.create_table(seats, rules=rules, seed=request.seed)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except TableLimitError as e:
        raise HTTPException(status_code=503, detail=str(e))

    table_id_var.set(table.table_id)
    logger.info(f"Table created with {len(seats)} seats")
    viewer = next((s.player_id for s in seats if not s.is_bot), seats[0].player_id)
    return _response(table, viewer, table.last_events)


@router.get("/{table_id}")
async def get_table(
    table_id: str,
    player_id: Optional[str] = None,
    manager: TableManager = Depends(get_table_manager),
):
    """A seat's view of the table (other seats' cards hidden)."""
    table = await _load_table(table_id, manager)
    return _response(table, player_id)


@router.post("/{table_id}/commands")
async def apply_command(
    table_id: str,
    request: CommandRequest,
    player_id: Optional[str] = None,
    manager: TableManager = Depends(get_table_manager),
):
    """
    Apply a command.

    Returns 400 for an illegal move, 409 when expected_version is stale or
    another writer won the race, 404 for an unknown table.
    """
    table = await _load_table(table_id, manager)
    try:
        command = Command.from_dict(request.model_dump())
    except IllegalMove as e:
        raise HTTPException(status_code=400, detail=str(e))

    events = await _run(table, table.apply(command, expected_version=request.expected_version))
    return _response(table, player_id or request.player_id, events)


@router.post("/{table_id}/next-hand")
async def next_hand(
    table_id: str,
    request: NextHandRequest,
    player_id: Optional[str] = None,
    manager: TableManager = Depends(get_table_manager),
):
    """Deal the next hand of the match."""
    table = await _load_table(table_id, manager)
    events = await _run(
        table,
        table.next_hand(seed=request.seed, expected_version=request.expected_version),
    )
    return _response(table, player_id, events)
