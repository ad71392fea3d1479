"""Raw item endpoints."""

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_reparse_orchestrator, get_rule_store
from app.api.shielding import run_shielded
from app.api.v1.schemas import RawItemListResponse
from app.models.raw_item import ParseStatus
from app.services.rules.base import RawItemRecord
from app.services.rules.reparse import ReparseOrchestrator
from app.services.rules.store import RuleStore

router = APIRouter(prefix="/raw-items", tags=["raw-items"])


@router.get("", response_model=RawItemListResponse)
async def list_raw_items(
    status: ParseStatus | None = Query(None),
    subscription_id: int | None = Query(None),
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    store: RuleStore = Depends(get_rule_store),
) -> RawItemListResponse:
    """List raw items, newest first."""
    items, total = await store.list_raw_items(status, subscription_id, offset, limit)
    return RawItemListResponse(items=items, total=total, offset=offset, limit=limit)


@router.get("/{item_id}", response_model=RawItemRecord)
async def get_raw_item(item_id: int, store: RuleStore = Depends(get_rule_store)) -> RawItemRecord:
    """Get one raw item."""
    return await store.get_raw_item(item_id)


@router.post("/{item_id}/reparse", response_model=RawItemRecord)
async def reparse_raw_item(
    item_id: int,
    store: RuleStore = Depends(get_rule_store),
    orchestrator: ReparseOrchestrator = Depends(get_reparse_orchestrator),
) -> RawItemRecord:
    """Resolve one item again against the current parsers."""
    item = await store.get_candidate(item_id)
    await run_shielded(orchestrator.reparse_item(item))
    return await store.get_raw_item(item_id)


@router.post("/{item_id}/skip", response_model=RawItemRecord)
async def skip_raw_item(item_id: int, store: RuleStore = Depends(get_rule_store)) -> RawItemRecord:
    """Mark an item skipped so sweeps leave it alone."""
    return await store.mark_skipped(item_id)
