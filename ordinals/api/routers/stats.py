from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request

from ordinals.api.cache import cached_json_response, get_cache_service
from ordinals.api.models import BlockStatsListResponse, BlockStatsResponse
from ordinals.api.routers.inscriptions import get_fingerprint_service, get_query_service
from ordinals.services.cache_service import CacheService
from ordinals.services.data_transformation_service import DataTransformationService
from ordinals.services.fingerprint_service import FingerprintService
from ordinals.services.query_service import InscriptionQueryService

logger = structlog.get_logger()

router = APIRouter()


@router.get("/stats/inscriptions", response_model=BlockStatsListResponse)
async def get_inscription_stats(
    request: Request,
    from_block_height: Optional[int] = Query(None, ge=0),
    to_block_height: Optional[int] = Query(None, ge=0),
    query_service: InscriptionQueryService = Depends(get_query_service),
    fingerprints: FingerprintService = Depends(get_fingerprint_service),
    cache: CacheService = Depends(get_cache_service),
):
    if from_block_height is not None and to_block_height is not None and from_block_height > to_block_height:
        raise HTTPException(status_code=400, detail="from_block_height must not exceed to_block_height")

    def build():
        result = query_service.get_block_stats(from_block_height, to_block_height)
        return BlockStatsListResponse(
            results=[BlockStatsResponse(**DataTransformationService.transform_block_stats(item)) for item in result]
        ).model_dump()

    try:
        return cached_json_response(
            request,
            cache,
            "block_stats",
            fingerprints.block_stats_fingerprint,
            build,
            {"from": from_block_height, "to": to_block_height},
        )
    except Exception as e:
        logger.error("Failed to get inscription stats", error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")
