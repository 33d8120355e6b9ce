import structlog
from fastapi import APIRouter, Depends, HTTPException

from ordinals.api.models import IndexerStatus
from ordinals.api.routers.inscriptions import get_query_service
from ordinals.config import settings
from ordinals.services.data_transformation_service import DataTransformationService
from ordinals.services.query_service import InscriptionQueryService

logger = structlog.get_logger()

router = APIRouter()


@router.get("/", response_model=IndexerStatus)
async def get_indexer_status(
    query_service: InscriptionQueryService = Depends(get_query_service),
):
    try:
        result = query_service.get_indexer_status()
        return IndexerStatus(**DataTransformationService.transform_indexer_status(result, settings.INDEXER_VERSION))
    except Exception as e:
        logger.error("Failed to get indexer status", error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")
