from typing import Dict, List, Optional, Any
from datetime import datetime, timezone
import structlog

logger = structlog.get_logger()


class DataTransformationService:
    """
    Handles data transformation between query service output
    and API response models
    """

    @staticmethod
    def transform_inscription(backend_data: Dict) -> Dict:
        location = backend_data.get("location") or {}
        return {
            "id": backend_data.get("genesis_id"),
            "number": backend_data.get("number"),
            "address": location.get("address"),
            "genesis_address": backend_data.get("genesis_address"),
            "genesis_block_height": backend_data.get("genesis_block_height"),
            "genesis_block_hash": backend_data.get("genesis_block_hash"),
            "genesis_tx_id": backend_data.get("genesis_tx_id"),
            "genesis_fee": DataTransformationService._to_str(backend_data.get("fee")),
            "genesis_timestamp": DataTransformationService._format_timestamp(backend_data.get("genesis_timestamp")),
            "tx_id": location.get("tx_id"),
            "location": DataTransformationService._satpoint(location),
            "output": location.get("output"),
            "value": DataTransformationService._to_str(location.get("value")),
            "offset": DataTransformationService._to_str(location.get("offset")),
            "sat_ordinal": DataTransformationService._to_str(backend_data.get("sat_ordinal")),
            "sat_rarity": backend_data.get("sat_rarity"),
            "sat_coinbase_height": backend_data.get("sat_coinbase_height"),
            "mime_type": backend_data.get("mime_type"),
            "content_type": backend_data.get("content_type"),
            "content_length": backend_data.get("content_length"),
            "timestamp": DataTransformationService._format_timestamp(location.get("timestamp")),
            "curse_type": backend_data.get("curse_type"),
        }

    @staticmethod
    def transform_location(backend_data: Dict) -> Dict:
        return {
            "block_height": backend_data.get("block_height"),
            "block_hash": backend_data.get("block_hash"),
            "address": backend_data.get("address"),
            "tx_id": backend_data.get("tx_id"),
            "location": DataTransformationService._satpoint(backend_data),
            "output": backend_data.get("output"),
            "value": DataTransformationService._to_str(backend_data.get("value")),
            "offset": DataTransformationService._to_str(backend_data.get("offset")),
            "genesis": bool(backend_data.get("genesis")),
            "timestamp": DataTransformationService._format_timestamp(backend_data.get("timestamp")),
        }

    @staticmethod
    def transform_block_transfer(backend_data: Dict) -> Dict:
        previous = backend_data.get("from")
        return {
            "id": backend_data.get("genesis_id"),
            "number": backend_data.get("number"),
            "from": DataTransformationService.transform_location(previous) if previous else None,
            "to": DataTransformationService.transform_location(backend_data),
        }

    @staticmethod
    def transform_block_stats(backend_data: Dict) -> Dict:
        return {
            "block_height": backend_data.get("block_height"),
            "block_hash": backend_data.get("block_hash"),
            "timestamp": DataTransformationService._format_timestamp(backend_data.get("timestamp")),
            "inscription_count": backend_data.get("inscriptions", 0),
            "blessed_count": backend_data.get("blessed", 0),
            "cursed_count": backend_data.get("cursed", 0),
            "transfer_count": backend_data.get("transfers", 0),
            "inscription_count_accum": backend_data.get("inscription_count_accum", 0),
            "by_rarity": backend_data.get("by_rarity") or {},
        }

    @staticmethod
    def transform_sat(backend_data: Dict) -> Dict:
        return {
            "coinbase_height": backend_data.get("coinbase_height"),
            "cycle": backend_data.get("cycle"),
            "epoch": backend_data.get("epoch"),
            "period": backend_data.get("period"),
            "offset": backend_data.get("offset"),
            "decimal": backend_data.get("decimal"),
            "degree": backend_data.get("degree"),
            "name": backend_data.get("name"),
            "rarity": backend_data.get("rarity"),
            "percentile": backend_data.get("percentile"),
            "inscription_count": backend_data.get("inscription_count", 0),
        }

    @staticmethod
    def transform_indexer_status(backend_data: Dict, server_version: str) -> Dict:
        return {
            "server_version": server_version,
            "status": "ready",
            "block_height": backend_data.get("block_height"),
            "max_inscription_number": backend_data.get("max_inscription_number"),
            "max_cursed_inscription_number": backend_data.get("max_cursed_inscription_number"),
        }

    @staticmethod
    def transform_paginated_response(backend_response: Dict) -> List:
        return backend_response.get("data", [])

    @staticmethod
    def _satpoint(location: Dict) -> Optional[str]:
        if not location.get("output"):
            return None
        return f"{location['output']}:{location.get('offset') or 0}"

    @staticmethod
    def _to_str(value: Any) -> Optional[str]:
        return str(value) if value is not None else None

    @staticmethod
    def _format_timestamp(timestamp: Any) -> Optional[str]:
        if timestamp is None:
            return None

        if isinstance(timestamp, datetime):
            return timestamp.isoformat() + "Z"
        if isinstance(timestamp, (int, float)):
            return datetime.fromtimestamp(timestamp, tz=timezone.utc).replace(tzinfo=None).isoformat() + "Z"
        if isinstance(timestamp, str):
            return timestamp if timestamp.endswith("Z") else timestamp + "Z"

        logger.warning("Unsupported timestamp type", timestamp=repr(timestamp))
        return None
