"""Title parser endpoints.

Every mutation runs a reparse sweep before responding and returns its stats.
A sweep that cannot take its scope locks in time is handed to the worker and
reported with `queued` set and zero counts.
"""

from fastapi import APIRouter, Depends, Query, status

from app.api.deps import get_parser_preview, get_reparse_orchestrator, get_title_parser_service
from app.api.shielding import run_shielded
from app.api.v1.schemas import (
    ParserCreate,
    ParserDeleteResponse,
    ParserMutationResponse,
    ParserPreviewRequest,
    ParserResponse,
)
from app.models.filter_rule import TargetType
from app.services.rules.base import ParserPreviewResult, ReparseStats
from app.services.rules.management import TitleParserService
from app.services.rules.preview import ParserPreviewService
from app.services.rules.reparse import ReparseOrchestrator

router = APIRouter(prefix="/parsers", tags=["parsers"])


@router.get("", response_model=list[ParserResponse])
async def list_parsers(
    created_from_type: TargetType | None = Query(None),
    created_from_id: int | None = Query(None),
    service: TitleParserService = Depends(get_title_parser_service),
) -> list[ParserResponse]:
    """List parsers by priority."""
    parsers = await service.list_parsers(created_from_type, created_from_id)
    return [ParserResponse.from_def(p) for p in parsers]


@router.get("/{parser_id}", response_model=ParserResponse)
async def get_parser(
    parser_id: int,
    service: TitleParserService = Depends(get_title_parser_service),
) -> ParserResponse:
    """Get one parser."""
    return ParserResponse.from_def(await service.get_parser(parser_id))


@router.post("", response_model=ParserMutationResponse, status_code=status.HTTP_201_CREATED)
async def create_parser(
    body: ParserCreate,
    service: TitleParserService = Depends(get_title_parser_service),
) -> ParserMutationResponse:
    """Create a parser and reparse its scope."""
    parser, stats = await run_shielded(service.create_parser(body.to_draft()))
    return ParserMutationResponse(parser=ParserResponse.from_def(parser), reparse=stats)


@router.put("/{parser_id}", response_model=ParserMutationResponse)
async def update_parser(
    parser_id: int,
    body: ParserCreate,
    service: TitleParserService = Depends(get_title_parser_service),
) -> ParserMutationResponse:
    """Replace a parser and reparse affected items."""
    parser, stats = await run_shielded(service.update_parser(parser_id, body.to_draft()))
    return ParserMutationResponse(parser=ParserResponse.from_def(parser), reparse=stats)


@router.delete("/{parser_id}", response_model=ParserDeleteResponse)
async def delete_parser(
    parser_id: int,
    service: TitleParserService = Depends(get_title_parser_service),
) -> ParserDeleteResponse:
    """Delete a parser and reparse the items it could have claimed."""
    stats = await run_shielded(service.delete_parser(parser_id))
    return ParserDeleteResponse(reparse=stats)


@router.post("/preview", response_model=ParserPreviewResult)
async def preview_parser(
    body: ParserPreviewRequest,
    preview: ParserPreviewService = Depends(get_parser_preview),
) -> ParserPreviewResult:
    """Show which recent titles a candidate parser would claim."""
    return await preview.preview(
        body.target_type or TargetType.GLOBAL,
        body.target_id,
        body.to_draft(),
        exclude_parser_id=body.exclude_parser_id,
        limit=body.limit,
    )


@router.post("/reparse", response_model=ReparseStats)
async def reparse_unresolved(
    orchestrator: ReparseOrchestrator = Depends(get_reparse_orchestrator),
) -> ReparseStats:
    """Re-resolve every pending, no_match and failed item now."""
    return await run_shielded(orchestrator.reparse_unresolved())
