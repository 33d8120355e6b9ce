from unittest.mock import MagicMock, patch

import httpx
import pytest

from ordinals.services.chainhook_client import ChainhookClient
from ordinals.utils.exceptions import RegistrationError


def response(status_code, text=""):
    mock_response = MagicMock()
    mock_response.status_code = status_code
    mock_response.text = text
    return mock_response


@pytest.fixture
def http_client():
    return MagicMock()


@pytest.fixture
def client(http_client):
    return ChainhookClient(base_url="http://chainhook:20456", http_client=http_client)


class TestChainhookClient:
    def test_predicate_uuid_is_stable(self):
        assert ChainhookClient.predicate_uuid() == ChainhookClient.predicate_uuid()

    def test_build_predicate(self, client):
        predicate = client.build_predicate(775618)

        assert predicate["uuid"] == ChainhookClient.predicate_uuid()
        assert predicate["chain"] == "bitcoin"
        network = next(iter(predicate["networks"].values()))
        assert network["start_block"] == 775618
        assert network["if_this"] == {"scope": "ordinals_protocol", "operation": "inscription_feed"}
        http_post = network["then_that"]["http_post"]
        assert http_post["url"].endswith("/payload")
        assert http_post["authorization_header"].startswith("Bearer ")

    def test_register_replaces_existing_predicate(self, client, http_client):
        http_client.get.return_value = response(200)
        http_client.delete.return_value = response(200)
        http_client.post.return_value = response(200)

        predicate = client.register_predicate(100)

        http_client.delete.assert_called_once_with(f"/v1/chainhooks/bitcoin/{predicate['uuid']}")
        http_client.post.assert_called_once_with("/v1/chainhooks", json=predicate)

    def test_register_tolerates_missing_previous_predicate(self, client, http_client):
        http_client.get.return_value = response(200)
        http_client.delete.return_value = response(404)
        http_client.post.return_value = response(200)

        client.register_predicate(100)

        http_client.post.assert_called_once()

    def test_register_rejected(self, client, http_client):
        http_client.get.return_value = response(200)
        http_client.delete.return_value = response(404)
        http_client.post.return_value = response(400, "invalid predicate")

        with pytest.raises(RegistrationError):
            client.register_predicate(100)

    def test_register_request_failure(self, client, http_client):
        http_client.get.return_value = response(200)
        http_client.delete.side_effect = httpx.ConnectError("refused")

        with pytest.raises(RegistrationError):
            client.register_predicate(100)

    @patch("ordinals.services.chainhook_client.time.sleep")
    def test_wait_for_node_retries_then_succeeds(self, mock_sleep, client, http_client):
        http_client.get.side_effect = [httpx.ConnectError("refused"), response(200)]

        with patch.object(client.error_handler, "should_retry", return_value=True), patch.object(
            client.error_handler, "get_retry_delay", return_value=0
        ):
            assert client.wait_for_node() is True

        mock_sleep.assert_called_once_with(0)

    @patch("ordinals.services.chainhook_client.time.sleep")
    def test_unreachable_node_fails_registration(self, mock_sleep, client, http_client):
        http_client.get.side_effect = httpx.ConnectError("refused")

        with patch.object(client.error_handler, "should_retry", return_value=False):
            with pytest.raises(RegistrationError):
                client.register_predicate(100)

        http_client.post.assert_not_called()
