"""
Chainhook node client.

Registers the inscription feed predicate that makes the chainhook node push
block events to the event server's /payload endpoint.
"""

import time
import uuid
from typing import Dict, Optional

import httpx
import structlog

from ordinals.config import settings
from ordinals.services.error_handler import ErrorHandler
from ordinals.utils.exceptions import RegistrationError

logger = structlog.get_logger()

PREDICATE_NAME = "inscription_feed"


class ChainhookClient:
    """Talks to the chainhook node control API"""

    def __init__(self, base_url: Optional[str] = None, http_client: Optional[httpx.Client] = None):
        self.base_url = base_url or f"http://{settings.CHAINHOOK_NODE_RPC_HOST}:{settings.CHAINHOOK_NODE_RPC_PORT}"
        self.client = http_client or httpx.Client(
            base_url=self.base_url,
            timeout=httpx.Timeout(30.0, connect=10.0),
        )
        self.error_handler = ErrorHandler()

    @staticmethod
    def predicate_uuid() -> str:
        """Stable identifier, so each registration replaces the previous one"""
        return str(uuid.uuid5(uuid.NAMESPACE_URL, f"{settings.EXTERNAL_HOSTNAME}:{settings.EVENT_PORT}/{PREDICATE_NAME}"))

    def build_predicate(self, start_block: int) -> Dict:
        return {
            "uuid": self.predicate_uuid(),
            "name": PREDICATE_NAME,
            "version": 1,
            "chain": "bitcoin",
            "networks": {
                settings.BITCOIN_NETWORK: {
                    "start_block": start_block,
                    "include_proof": False,
                    "include_inputs": False,
                    "include_outputs": False,
                    "include_witness": False,
                    "if_this": {
                        "scope": "ordinals_protocol",
                        "operation": "inscription_feed",
                    },
                    "then_that": {
                        "http_post": {
                            "url": f"http://{settings.EXTERNAL_HOSTNAME}:{settings.EVENT_PORT}/payload",
                            "authorization_header": f"Bearer {settings.CHAINHOOK_NODE_AUTH_TOKEN}",
                        }
                    },
                }
            },
        }

    def is_node_ready(self) -> bool:
        try:
            response = self.client.get("/ping")
            return response.status_code == 200
        except httpx.RequestError as e:
            self.error_handler.handle_request_error(e, {"endpoint": "/ping"})
            return False

    def wait_for_node(self) -> bool:
        """Poll the node with exponential backoff; False once retries are exhausted"""
        attempt = 0
        while not self.is_node_ready():
            attempt += 1
            if not self.error_handler.should_retry(attempt):
                logger.error("Chainhook node unreachable", base_url=self.base_url, attempts=attempt)
                return False
            time.sleep(self.error_handler.get_retry_delay(attempt))
        return True

    def register_predicate(self, start_block: int) -> Dict:
        """
        Replace the inscription feed predicate with one starting at `start_block`.

        Raises:
            RegistrationError: if the node is unreachable or rejects the predicate
        """
        if not self.wait_for_node():
            raise RegistrationError(f"Chainhook node at {self.base_url} is not reachable")

        predicate = self.build_predicate(start_block)
        predicate_uuid = predicate["uuid"]

        try:
            response = self.client.delete(f"/v1/chainhooks/bitcoin/{predicate_uuid}")
            if response.status_code not in (200, 404):
                logger.warning(
                    "Could not remove previous predicate",
                    uuid=predicate_uuid,
                    status=response.status_code,
                )

            response = self.client.post("/v1/chainhooks", json=predicate)
        except httpx.RequestError as e:
            raise RegistrationError(f"Predicate registration request failed: {e}") from e

        if response.status_code != 200:
            raise RegistrationError(
                f"Chainhook node rejected predicate {predicate_uuid}: {response.status_code} {response.text}"
            )

        logger.info(
            "Predicate registered",
            uuid=predicate_uuid,
            start_block=start_block,
            network=settings.BITCOIN_NETWORK,
        )
        return predicate

    def close(self):
        self.client.close()
