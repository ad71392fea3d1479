"""Filter rule endpoints."""

from fastapi import APIRouter, Depends, Query, Response, status

from app.api.deps import get_filter_preview, get_filter_rule_service
from app.api.shielding import run_shielded
from app.api.v1.schemas import FilterPreviewRequest, FilterRuleCreate, FilterRuleCreateResponse
from app.models.filter_rule import TargetType
from app.services.rules.base import FilterPreviewResult, FilterRuleDef
from app.services.rules.management import FilterRuleService
from app.services.rules.preview import FilterPreviewService

router = APIRouter(prefix="/filters", tags=["filters"])


@router.get("", response_model=list[FilterRuleDef])
async def list_filters(
    target_type: TargetType | None = Query(None),
    target_id: int | None = Query(None),
    service: FilterRuleService = Depends(get_filter_rule_service),
) -> list[FilterRuleDef]:
    """List filter rules, optionally for one scope."""
    return await service.list_rules(target_type, target_id)


@router.post("", response_model=FilterRuleCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_filter(
    body: FilterRuleCreate,
    service: FilterRuleService = Depends(get_filter_rule_service),
) -> FilterRuleCreateResponse:
    """Create a filter rule and recalculate filtered flags in its scope."""
    # Completes even if the client disconnects
    rule, recalc = await run_shielded(
        service.create_rule(
            body.target_type,
            body.target_id,
            body.is_positive,
            body.regex_pattern,
            body.rule_order,
        )
    )
    return FilterRuleCreateResponse(rule=rule, recalc=recalc)


@router.delete("/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_filter(
    rule_id: int,
    service: FilterRuleService = Depends(get_filter_rule_service),
) -> Response:
    """Delete a filter rule and recalculate filtered flags in its scope."""
    await run_shielded(service.delete_rule(rule_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/preview", response_model=FilterPreviewResult)
async def preview_filter(
    body: FilterPreviewRequest,
    preview: FilterPreviewService = Depends(get_filter_preview),
) -> FilterPreviewResult:
    """Show which in-scope links a rule change would pass or filter."""
    return await preview.preview(
        body.target_type,
        body.target_id,
        body.regex_pattern,
        body.is_positive,
        body.exclude_filter_id,
    )
