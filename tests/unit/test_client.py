# ABOUTME: Unit tests for the config applier HTTP client
# ABOUTME: Tests request shape, status handling, and transport failures

import json
from unittest.mock import patch

import httpx
import pytest
import respx

from sidra_ingress.renderer import NginxConfig
from sidra_ingress.utils.client import ConfigApplierClient, DispatchError

BASE_URL = "http://applier.test:3033"
ENDPOINT = f"{BASE_URL}/api/v1/nginx/conf"


@pytest.fixture
def create_config() -> NginxConfig:
    """Create a CREATE record for the store/shop ingress."""
    return NginxConfig(
        namespace="store",
        ingress="shop",
        type_event="CREATE",
        config="server {\n   listen 8080;\n}\n",
    )


@pytest.mark.unit
class TestDispatchError:
    """Tests for DispatchError."""

    def test_str_includes_ingress(self):
        """Test the message names the ingress."""
        error = DispatchError("shop", "Connection refused")

        assert str(error) == "Error sending nginx config for ingress shop: Connection refused"
        assert error.ingress == "shop"
        assert error.message == "Connection refused"


@pytest.mark.unit
class TestConfigApplierClientInit:
    """Tests for client lifecycle."""

    def test_endpoint(self):
        """Test the endpoint joins base URL and path."""
        client = ConfigApplierClient(BASE_URL)

        assert client.endpoint == ENDPOINT

    def test_send_requires_context(self, create_config: NginxConfig):
        """Test send outside the context manager raises RuntimeError."""
        client = ConfigApplierClient(BASE_URL)

        with pytest.raises(RuntimeError, match="not initialized"):
            client.send(create_config)

    def test_exit_closes_client(self):
        """Test leaving the context drops the httpx client."""
        client = ConfigApplierClient(BASE_URL)

        with client:
            assert client._client is not None

        assert client._client is None

    def test_no_timeout_by_default(self):
        """Test requests wait indefinitely unless a timeout is configured."""
        with ConfigApplierClient(BASE_URL) as client:
            assert client._client.timeout.read is None


@pytest.mark.unit
class TestConfigApplierClientSend:
    """Tests for ConfigApplierClient.send."""

    @respx.mock
    def test_send_posts_json(self, create_config: NginxConfig):
        """Test the POST body and content type."""
        route = respx.post(ENDPOINT).mock(return_value=httpx.Response(200))

        with ConfigApplierClient(BASE_URL) as client:
            status = client.send(create_config)

        assert status == 200
        assert route.call_count == 1
        request = route.calls.last.request
        assert request.headers["Content-Type"] == "application/json"
        assert json.loads(request.content) == {
            "namespace": "store",
            "ingress": "shop",
            "typeEvent": "CREATE",
            "config": "server {\n   listen 8080;\n}\n",
        }

    @respx.mock
    def test_send_delete_record(self):
        """Test DELETE records are posted with an empty config."""
        route = respx.post(ENDPOINT).mock(return_value=httpx.Response(200))
        config = NginxConfig(namespace="store", ingress="gone", type_event="DELETE")

        with ConfigApplierClient(BASE_URL) as client:
            client.send(config)

        body = json.loads(route.calls.last.request.content)
        assert body["typeEvent"] == "DELETE"
        assert body["config"] == ""

    @respx.mock
    def test_send_accepts_any_2xx(self, create_config: NginxConfig):
        """Test 2xx statuses other than 200 count as success."""
        respx.post(ENDPOINT).mock(return_value=httpx.Response(202))

        with ConfigApplierClient(BASE_URL) as client:
            assert client.send(create_config) == 202

    @respx.mock
    def test_send_non_2xx_is_not_an_error(self, create_config: NginxConfig):
        """Test an error status is returned, not raised."""
        respx.post(ENDPOINT).mock(return_value=httpx.Response(500, text="boom"))

        with ConfigApplierClient(BASE_URL) as client:
            status = client.send(create_config)

        assert status == 500

    @respx.mock
    def test_send_connection_error_raises_dispatch_error(self, create_config: NginxConfig):
        """Test transport failures become DispatchError."""
        respx.post(ENDPOINT).mock(side_effect=httpx.ConnectError("Connection refused"))

        with ConfigApplierClient(BASE_URL) as client:
            with pytest.raises(DispatchError) as exc_info:
                client.send(create_config)

        assert exc_info.value.ingress == "shop"
        assert "Connection refused" in exc_info.value.message

    @respx.mock
    def test_send_connection_error_is_not_logged_as_error(self, create_config: NginxConfig):
        """Test the client leaves error-level logging of transport failures to its caller."""
        respx.post(ENDPOINT).mock(side_effect=httpx.ConnectError("Connection refused"))

        with patch("sidra_ingress.utils.client.logger") as mock_logger:
            with ConfigApplierClient(BASE_URL) as client:
                with pytest.raises(DispatchError):
                    client.send(create_config)

        log = mock_logger.bind.return_value
        log.error.assert_not_called()
        log.debug.assert_any_call("HTTP POST request failed", error="Connection refused")

    @respx.mock
    def test_send_single_attempt(self, create_config: NginxConfig):
        """Test a failed send is not retried."""
        route = respx.post(ENDPOINT).mock(side_effect=httpx.ConnectError("down"))

        with ConfigApplierClient(BASE_URL) as client:
            with pytest.raises(DispatchError):
                client.send(create_config)

        assert route.call_count == 1

    @respx.mock
    def test_custom_path(self, create_config: NginxConfig):
        """Test a configured path is used for the POST."""
        route = respx.post(f"{BASE_URL}/custom/conf").mock(return_value=httpx.Response(200))

        with ConfigApplierClient(BASE_URL, path="/custom/conf") as client:
            client.send(create_config)

        assert route.called
