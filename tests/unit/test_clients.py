"""
Unit tests for the HTTP collaborators
"""

import json
import httpx
import pytest
from pydantic import ValidationError
from unittest.mock import patch
from clients.http import send_with_retry, bearer_headers
from clients.source import HTTPSourceClient
from clients.completion import HTTPCompletionClient
from clients.destination import HTTPDestinationClient
from models.base import EntityType
from schemas.migration import DestinationConfig
from core.exceptions import (
    AuthenticationError,
    ClassificationError,
    FetchError,
    NetworkError,
    RateLimitError,
    WriteSweepError,
)

RealAsyncClient = httpx.AsyncClient


def mock_client_factory(handler):
    """Stand-in for httpx.AsyncClient that routes every request to `handler`"""
    def factory(*args, **kwargs):
        kwargs["transport"] = httpx.MockTransport(handler)
        return RealAsyncClient(*args, **kwargs)
    return factory


class TestSendWithRetry:
    """Test the shared retry loop"""

    @pytest.mark.asyncio
    async def test_retries_server_errors(self):
        statuses = iter([503, 502, 200])

        def handler(request):
            return httpx.Response(next(statuses), json={"ok": True})

        async with RealAsyncClient(transport=httpx.MockTransport(handler)) as client:
            response = await send_with_retry(client, "GET", "https://src.test/plans", max_retries=3, retry_delay=0)

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_returns_last_server_error(self):
        def handler(request):
            return httpx.Response(500, text="down")

        async with RealAsyncClient(transport=httpx.MockTransport(handler)) as client:
            response = await send_with_retry(client, "GET", "https://src.test/plans", max_retries=2, retry_delay=0)

        assert response.status_code == 500

    @pytest.mark.asyncio
    async def test_network_error_after_retries(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        async with RealAsyncClient(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(NetworkError) as exc_info:
                await send_with_retry(client, "GET", "https://src.test/plans", max_retries=3, retry_delay=0)

        assert len(attempts) == 3
        assert exc_info.value.context["retry_count"] == 3

    @pytest.mark.asyncio
    async def test_rate_limit_after_retries(self):
        def handler(request):
            return httpx.Response(429, headers={"Retry-After": "0"})

        async with RealAsyncClient(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(RateLimitError):
                await send_with_retry(client, "GET", "https://src.test/plans", max_retries=2, retry_delay=0)

    @pytest.mark.asyncio
    async def test_client_errors_are_not_retried(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            return httpx.Response(404)

        async with RealAsyncClient(transport=httpx.MockTransport(handler)) as client:
            response = await send_with_retry(client, "GET", "https://src.test/plans", max_retries=3, retry_delay=0)

        assert response.status_code == 404
        assert len(attempts) == 1

    def test_bearer_headers(self):
        assert bearer_headers("key")["Authorization"] == "Bearer key"
        assert "Authorization" not in bearer_headers(None)


class TestHTTPSourceClient:
    """Test paginated source fetches"""

    @pytest.mark.asyncio
    async def test_fetch_follows_pages(self):
        pages = {
            "1": {"data": [{"id": "p1"}, {"id": "p2"}], "has_next": True},
            "2": {"data": [{"id": "p3"}], "has_next": False},
        }
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=pages[request.url.params["page"]])

        client = HTTPSourceClient(base_url="https://src.test/api/", api_key="secret", max_retries=1)
        with patch("httpx.AsyncClient", side_effect=mock_client_factory(handler)):
            records = await client.fetch(EntityType.PLANS)

        assert [r["id"] for r in records] == ["p1", "p2", "p3"]
        assert seen[0].url.path == "/api/plans"
        assert seen[0].headers["Authorization"] == "Bearer secret"

    @pytest.mark.asyncio
    async def test_fetch_bare_list(self):
        def handler(request):
            return httpx.Response(200, json=[{"id": "c1", "email": "a@example.com"}])

        client = HTTPSourceClient(base_url="https://src.test", page_size=100, max_retries=1)
        with patch("httpx.AsyncClient", side_effect=mock_client_factory(handler)):
            records = await client.fetch(EntityType.CUSTOMERS)

        assert records == [{"id": "c1", "email": "a@example.com"}]

    @pytest.mark.asyncio
    async def test_fetch_auth_failure(self):
        def handler(request):
            return httpx.Response(401, json={"error": "invalid key"})

        client = HTTPSourceClient(base_url="https://src.test", max_retries=1)
        with patch("httpx.AsyncClient", side_effect=mock_client_factory(handler)):
            with pytest.raises(AuthenticationError):
                await client.fetch(EntityType.PLANS)

    @pytest.mark.asyncio
    async def test_fetch_invalid_json(self):
        def handler(request):
            return httpx.Response(200, text="<html>maintenance</html>")

        client = HTTPSourceClient(base_url="https://src.test", max_retries=1)
        with patch("httpx.AsyncClient", side_effect=mock_client_factory(handler)):
            with pytest.raises(FetchError) as exc_info:
                await client.fetch(EntityType.PLANS)

        assert "JSON" in exc_info.value.message


class TestHTTPCompletionClient:
    """Test chat completion requests"""

    @pytest.mark.asyncio
    async def test_complete_returns_message_content(self):
        requests = []

        def handler(request):
            requests.append(json.loads(request.content))
            return httpx.Response(200, json={"choices": [{"message": {"content": "enterprise"}}]})

        client = HTTPCompletionClient(base_url="https://llm.test/v1", api_key="k", model="gpt-4", max_retries=1)
        with patch("httpx.AsyncClient", side_effect=mock_client_factory(handler)):
            reply = await client.complete("Analyze this plan", max_tokens=50)

        assert reply == "enterprise"
        assert requests[0]["max_tokens"] == 50
        assert requests[0]["model"] == "gpt-4"
        assert requests[0]["messages"][-1] == {"role": "user", "content": "Analyze this plan"}

    @pytest.mark.asyncio
    async def test_complete_http_error(self):
        def handler(request):
            return httpx.Response(400, json={"error": "bad request"})

        client = HTTPCompletionClient(base_url="https://llm.test/v1", max_retries=1)
        with patch("httpx.AsyncClient", side_effect=mock_client_factory(handler)):
            with pytest.raises(ClassificationError):
                await client.complete("prompt", max_tokens=50)

    @pytest.mark.asyncio
    async def test_complete_malformed_reply(self):
        def handler(request):
            return httpx.Response(200, json={"choices": []})

        client = HTTPCompletionClient(base_url="https://llm.test/v1", max_retries=1)
        with patch("httpx.AsyncClient", side_effect=mock_client_factory(handler)):
            with pytest.raises(ClassificationError):
                await client.complete("prompt", max_tokens=50)


class TestHTTPDestinationClient:
    """Test per-record writes and the sweep failure boundary"""

    config = DestinationConfig(endpoint="https://erp.test/plans", api_key="erp-key", timeout=5)

    @pytest.mark.asyncio
    async def test_write_success(self):
        def handler(request):
            assert request.headers["Authorization"] == "Bearer erp-key"
            return httpx.Response(201, json={"internalId": "42"})

        client = HTTPDestinationClient(max_retries=1)
        with patch("httpx.AsyncClient", side_effect=mock_client_factory(handler)):
            result = await client.write_one({"id": 7, "name": "Pro"}, self.config)

        assert result.success is True
        assert result.record_id == "7"
        assert result.detail == {"internalId": "42"}

    @pytest.mark.asyncio
    async def test_rejected_record_is_in_band(self):
        def handler(request):
            return httpx.Response(422, text="price must be positive")

        client = HTTPDestinationClient(max_retries=1)
        with patch("httpx.AsyncClient", side_effect=mock_client_factory(handler)):
            result = await client.write_one({"id": "p1"}, self.config)

        assert result.success is False
        assert "422" in result.detail

    @pytest.mark.asyncio
    async def test_bad_credentials_fail_the_sweep(self):
        def handler(request):
            return httpx.Response(403)

        client = HTTPDestinationClient(max_retries=1)
        with patch("httpx.AsyncClient", side_effect=mock_client_factory(handler)):
            with pytest.raises(WriteSweepError):
                await client.write_one({"id": "p1"}, self.config)

    @pytest.mark.asyncio
    async def test_unreachable_destination_fails_the_sweep(self):
        def handler(request):
            raise httpx.ConnectError("no route to host", request=request)

        client = HTTPDestinationClient(max_retries=1)
        with patch("httpx.AsyncClient", side_effect=mock_client_factory(handler)):
            with pytest.raises(WriteSweepError):
                await client.write_one({"id": "p1"}, self.config)

    @pytest.mark.asyncio
    async def test_protocol_error_fails_the_sweep(self):
        def handler(request):
            raise httpx.RemoteProtocolError("server disconnected mid-response", request=request)

        client = HTTPDestinationClient(max_retries=1)
        with patch("httpx.AsyncClient", side_effect=mock_client_factory(handler)):
            with pytest.raises(WriteSweepError) as exc_info:
                await client.write_one({"id": "p1"}, self.config)

        assert isinstance(exc_info.value.original_exception, httpx.RemoteProtocolError)

    @pytest.mark.asyncio
    async def test_unusable_endpoint_fails_the_sweep(self):
        config = DestinationConfig.model_construct(endpoint="erp.test/plans", api_key=None, timeout=5.0)
        client = HTTPDestinationClient(max_retries=1)

        with pytest.raises(WriteSweepError):
            await client.write_one({"id": "p1"}, config)

    @pytest.mark.parametrize("endpoint", ["erp.test/plans", "ftp://erp.test/plans", "https://", "   "])
    def test_destination_config_requires_http_url(self, endpoint):
        with pytest.raises(ValidationError):
            DestinationConfig(endpoint=endpoint)

    def test_destination_config_accepts_http_url(self):
        assert DestinationConfig(endpoint=" https://erp.test/plans ").endpoint == "https://erp.test/plans"
