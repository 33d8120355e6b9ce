import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request

from ordinals.api.cache import cached_json_response, get_cache_service
from ordinals.api.models import InscriptionListResponse, InscriptionResponse, SatResponse
from ordinals.api.routers.inscriptions import get_fingerprint_service, get_query_service, limit_query
from ordinals.services.cache_service import CacheService
from ordinals.services.data_transformation_service import DataTransformationService
from ordinals.services.fingerprint_service import FingerprintService
from ordinals.services.query_service import InscriptionQueryService
from ordinals.utils.sat import LAST_SAT

logger = structlog.get_logger()

router = APIRouter()


@router.get("/sats/{ordinal}", response_model=SatResponse)
async def get_sat(
    ordinal: int,
    query_service: InscriptionQueryService = Depends(get_query_service),
):
    if ordinal < 0 or ordinal > LAST_SAT:
        raise HTTPException(status_code=400, detail="Invalid ordinal number")
    try:
        result = query_service.get_sat(ordinal)
        return SatResponse(**DataTransformationService.transform_sat(result))
    except Exception as e:
        logger.error("Failed to get sat", ordinal=ordinal, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/sats/{ordinal}/inscriptions", response_model=InscriptionListResponse)
async def get_sat_inscriptions(
    ordinal: int,
    request: Request,
    offset: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = limit_query(),
    query_service: InscriptionQueryService = Depends(get_query_service),
    fingerprints: FingerprintService = Depends(get_fingerprint_service),
    cache: CacheService = Depends(get_cache_service),
):
    if ordinal < 0 or ordinal > LAST_SAT:
        raise HTTPException(status_code=400, detail="Invalid ordinal number")

    def build():
        result = query_service.get_sat_inscriptions(ordinal, offset, limit)
        data = DataTransformationService.transform_paginated_response(result)
        return InscriptionListResponse(
            limit=limit,
            offset=offset,
            total=result["total"],
            results=[InscriptionResponse(**DataTransformationService.transform_inscription(item)) for item in data],
        ).model_dump()

    try:
        return cached_json_response(
            request,
            cache,
            "sat_inscriptions",
            fingerprints.index_fingerprint,
            build,
            {"ordinal": ordinal, "offset": offset, "limit": limit},
        )
    except Exception as e:
        logger.error("Failed to get sat inscriptions", ordinal=ordinal, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")
