from enum import Enum
from typing import Callable, List, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import Response
from sqlalchemy.orm import Session

from ordinals.api.cache import cached_json_response, etag_matches, get_cache_service, not_modified, quote_etag
from ordinals.api.models import (
    BlockTransferListResponse,
    BlockTransferResponse,
    InscriptionListResponse,
    InscriptionResponse,
    LocationListResponse,
    LocationResponse,
)
from ordinals.config import settings
from ordinals.database.connection import get_read_db
from ordinals.services.cache_service import CacheService
from ordinals.services.data_transformation_service import DataTransformationService
from ordinals.services.fingerprint_service import FingerprintService
from ordinals.services.query_service import InscriptionQueryService, inscription_key
from ordinals.utils.sat import SatRarity

logger = structlog.get_logger()

router = APIRouter()


class OrderBy(str, Enum):
    NUMBER = "number"
    GENESIS_BLOCK_HEIGHT = "genesis_block_height"
    ORDINAL = "ordinal"
    RARITY = "rarity"


class Order(str, Enum):
    ASC = "asc"
    DESC = "desc"


def get_query_service(db: Session = Depends(get_read_db)):
    return InscriptionQueryService(db)


def get_fingerprint_service(db: Session = Depends(get_read_db)):
    return FingerprintService(db)


def limit_query():
    return Query(
        settings.API_DEFAULT_LIMIT,
        ge=1,
        le=settings.API_MAX_LIMIT,
        description="Maximum records to return",
    )


def _inscription_fingerprint(fingerprints: FingerprintService, id_or_number: str) -> str:
    fingerprint = fingerprints.inscription_fingerprint(**inscription_key(id_or_number))
    if fingerprint is None:
        raise HTTPException(status_code=404, detail="Inscription not found")
    return fingerprint


def _inscription_fingerprint_reader(fingerprints: FingerprintService, id_or_number: str) -> Callable[[], Optional[str]]:
    _inscription_fingerprint(fingerprints, id_or_number)
    key = inscription_key(id_or_number)
    return lambda: fingerprints.inscription_fingerprint(**key)


@router.get("/inscriptions", response_model=InscriptionListResponse)
async def get_inscriptions(
    request: Request,
    address: Optional[str] = Query(None, description="Current owner address"),
    genesis_address: Optional[str] = Query(None, description="Address that received the reveal"),
    from_genesis_block_height: Optional[int] = Query(None, ge=0),
    to_genesis_block_height: Optional[int] = Query(None, ge=0),
    from_number: Optional[int] = Query(None),
    to_number: Optional[int] = Query(None),
    rarity: Optional[List[SatRarity]] = Query(None, description="Sat rarity (repeatable)"),
    mime_type: Optional[List[str]] = Query(None, description="Mime type (repeatable)"),
    cursed: Optional[bool] = Query(None, description="Only cursed (true) or blessed (false) inscriptions"),
    order_by: OrderBy = Query(OrderBy.NUMBER),
    order: Order = Query(Order.DESC),
    offset: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = limit_query(),
    query_service: InscriptionQueryService = Depends(get_query_service),
    fingerprints: FingerprintService = Depends(get_fingerprint_service),
    cache: CacheService = Depends(get_cache_service),
):
    filters = {
        "address": address,
        "genesis_address": genesis_address,
        "from_genesis_block_height": from_genesis_block_height,
        "to_genesis_block_height": to_genesis_block_height,
        "from_number": from_number,
        "to_number": to_number,
        "rarity": [r.value for r in rarity] if rarity else None,
        "mime_type": mime_type,
        "cursed": cursed,
    }

    def build():
        result = query_service.list_inscriptions(filters, order_by.value, order.value, offset, limit)
        data = DataTransformationService.transform_paginated_response(result)
        return InscriptionListResponse(
            limit=limit,
            offset=offset,
            total=result["total"],
            results=[InscriptionResponse(**DataTransformationService.transform_inscription(item)) for item in data],
        ).model_dump()

    params = {name: value for name, value in filters.items() if value is not None}
    params.update({"order_by": order_by.value, "order": order.value, "offset": offset, "limit": limit})
    try:
        return cached_json_response(request, cache, "inscriptions", fingerprints.index_fingerprint, build, params)
    except Exception as e:
        logger.error("Failed to list inscriptions", error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/inscriptions/transfers", response_model=BlockTransferListResponse)
async def get_block_transfers(
    request: Request,
    block: str = Query(..., description="Block height or hash"),
    offset: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = limit_query(),
    query_service: InscriptionQueryService = Depends(get_query_service),
    fingerprints: FingerprintService = Depends(get_fingerprint_service),
    cache: CacheService = Depends(get_cache_service),
):
    def build():
        result = query_service.get_block_transfers(block, offset, limit)
        data = DataTransformationService.transform_paginated_response(result)
        return BlockTransferListResponse(
            limit=limit,
            offset=offset,
            total=result["total"],
            results=[
                BlockTransferResponse(**DataTransformationService.transform_block_transfer(item)) for item in data
            ],
        ).model_dump(by_alias=True)

    try:
        return cached_json_response(
            request,
            cache,
            "block_transfers",
            fingerprints.index_fingerprint,
            build,
            {"block": block, "offset": offset, "limit": limit},
        )
    except Exception as e:
        logger.error("Failed to get block transfers", block=block, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/inscriptions/{id_or_number}", response_model=InscriptionResponse)
async def get_inscription(
    id_or_number: str,
    request: Request,
    query_service: InscriptionQueryService = Depends(get_query_service),
    fingerprints: FingerprintService = Depends(get_fingerprint_service),
    cache: CacheService = Depends(get_cache_service),
):
    fingerprint = _inscription_fingerprint_reader(fingerprints, id_or_number)

    def build():
        result = query_service.get_inscription(id_or_number)
        return InscriptionResponse(**DataTransformationService.transform_inscription(result)).model_dump()

    try:
        return cached_json_response(request, cache, "inscription", fingerprint, build)
    except Exception as e:
        logger.error("Failed to get inscription", inscription=id_or_number, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/inscriptions/{id_or_number}/transfers", response_model=LocationListResponse)
async def get_inscription_transfers(
    id_or_number: str,
    request: Request,
    offset: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = limit_query(),
    query_service: InscriptionQueryService = Depends(get_query_service),
    fingerprints: FingerprintService = Depends(get_fingerprint_service),
    cache: CacheService = Depends(get_cache_service),
):
    fingerprint = _inscription_fingerprint_reader(fingerprints, id_or_number)

    def build():
        result = query_service.get_location_history(id_or_number, offset, limit)
        data = DataTransformationService.transform_paginated_response(result)
        return LocationListResponse(
            limit=limit,
            offset=offset,
            total=result["total"],
            results=[LocationResponse(**DataTransformationService.transform_location(item)) for item in data],
        ).model_dump()

    try:
        return cached_json_response(
            request,
            cache,
            "inscription_transfers",
            fingerprint,
            build,
            {"offset": offset, "limit": limit},
        )
    except Exception as e:
        logger.error("Failed to get inscription transfers", inscription=id_or_number, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/inscriptions/{id_or_number}/content")
async def get_inscription_content(
    id_or_number: str,
    request: Request,
    query_service: InscriptionQueryService = Depends(get_query_service),
    fingerprints: FingerprintService = Depends(get_fingerprint_service),
):
    etag = quote_etag(_inscription_fingerprint(fingerprints, id_or_number))
    if etag_matches(request.headers.get("if-none-match"), etag):
        return not_modified(etag)

    content = query_service.get_inscription_content(id_or_number)
    if content is None:
        raise HTTPException(status_code=404, detail="Inscription not found")

    return Response(
        content=content["content"],
        media_type=content["content_type"],
        headers={"ETag": etag},
    )
