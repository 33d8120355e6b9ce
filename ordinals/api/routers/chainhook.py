import secrets
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from ordinals.api.models import PayloadAck
from ordinals.config import settings
from ordinals.database.connection import get_db
from ordinals.services.parser import ChainhookPayloadParser
from ordinals.services.reorg_coordinator import ReorgCoordinator
from ordinals.utils.exceptions import (
    InvariantViolationError,
    MalformedEventError,
    OrderingError,
    StorageError,
)

logger = structlog.get_logger()

router = APIRouter()


def get_reorg_coordinator(db: Session = Depends(get_db)):
    return ReorgCoordinator(db)


def verify_auth_token(authorization: Optional[str] = Header(None)):
    expected = f"Bearer {settings.CHAINHOOK_NODE_AUTH_TOKEN}"
    if authorization is None or not secrets.compare_digest(authorization.encode(), expected.encode()):
        logger.warning("Rejected chainhook payload with invalid authorization")
        raise HTTPException(status_code=401, detail="Unauthorized")


@router.post("/payload", response_model=PayloadAck, dependencies=[Depends(verify_auth_token)])
async def receive_payload(
    request: Request,
    coordinator: ReorgCoordinator = Depends(get_reorg_coordinator),
):
    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Payload is not valid JSON")

    try:
        payload = ChainhookPayloadParser().parse_payload(body)
        result = await run_in_threadpool(coordinator.process_payload, payload)
    except OrderingError as e:
        raise HTTPException(status_code=409, detail={"error_code": e.error_code, "message": e.message})
    except MalformedEventError as e:
        raise HTTPException(status_code=400, detail={"error_code": e.error_code, "message": e.message})
    except InvariantViolationError as e:
        raise HTTPException(status_code=500, detail={"error_code": e.error_code, "message": e.message})
    except StorageError as e:
        raise HTTPException(status_code=500, detail={"error_code": "STORAGE_FAILURE", "message": e.message})
    except Exception as e:
        logger.error("Failed to process chainhook payload", error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")

    return PayloadAck(**result.as_dict())
