"""Tests for HttpSearchGateway against a mocked search service.

Runs the real aiohttp adapter under aioresponses so the whole path from HTTP
reply to domain value (or domain error) is exercised.
"""

import asyncio

import aiohttp
import pytest
from aioresponses import aioresponses

from esf.adapters.aiohttp_client_adapter import AioHttpClientAdapter
from esf.adapters.retry_tenacity import TenacityRetryAdapter
from esf.core.config import GatewayConfig
from esf.core.exceptions import ApplicationError, ProtocolError, TransportError
from esf.core.models.query import SearchQuery
from esf.core.models.result import ResultBundle, SubmissionPending
from esf.core.services.search_gateway import HttpSearchGateway

BASE = "http://search.test"
SUBMIT_URL = f"{BASE}/blast"
STATUS_URL = f"{BASE}/status"
RESULT_URL = f"{BASE}/results"


def bundle_payload(hits: int = 3) -> dict:
    return {
        "response": "Most hits come from marine sediment samples.",
        "treeImageRef": "/static/tree.png",
        "fileRef": "blast-result",
        "topHits": [
            {"title": f"Uncultured bacterium clone {i}", "publicationLink": f"https://pubmed.test/{i}"}
            for i in range(hits)
        ],
    }


@pytest.fixture
def config():
    return GatewayConfig(
        base_url=BASE,
        result_retry_base_wait=0.001,
        result_retry_max_wait=0.002,
    )


@pytest.fixture
def query():
    return SearchQuery(sequence="ACGT", search_mode="blastn", database="nt")


@pytest.fixture
def make_gateway(config):
    def factory(client, retry=True):
        retry_port = TenacityRetryAdapter(wait_initial=0.001, wait_max=0.002) if retry else None
        return HttpSearchGateway(client, config, retry_port=retry_port)

    return factory


class TestSubmit:
    @pytest.mark.asyncio
    async def test_bundle_reply_with_resolved_references(self, make_gateway, query):
        with aioresponses() as m:
            m.post(SUBMIT_URL, payload=bundle_payload(), status=200)

            async with AioHttpClientAdapter() as client:
                outcome = await make_gateway(client).submit(query)

            request = next(iter(m.requests.values()))[0]
            assert request.kwargs["json"] == {"sequence": "ACGT", "blast_type": "blastn", "database": "nt"}

        assert isinstance(outcome, ResultBundle)
        assert outcome.summary_text.startswith("Most hits")
        assert outcome.tree_resource_ref == f"{BASE}/static/tree.png"
        assert outcome.full_result_ref == f"{BASE}/blast-result"
        assert [h.publication_link for h in outcome.top_hits][:1] == ["https://pubmed.test/0"]
        assert len(outcome.top_hits) == 3

    @pytest.mark.asyncio
    async def test_accepted_reply_is_pending(self, make_gateway, query):
        with aioresponses() as m:
            m.post(SUBMIT_URL, payload={"job": "abc"}, status=202)

            async with AioHttpClientAdapter() as client:
                outcome = await make_gateway(client).submit(query)

        assert isinstance(outcome, SubmissionPending)
        assert outcome.status_label is None

    @pytest.mark.asyncio
    async def test_status_only_reply_is_pending_with_label(self, make_gateway, query):
        with aioresponses() as m:
            m.post(SUBMIT_URL, payload={"status": "Queued"}, status=200)

            async with AioHttpClientAdapter() as client:
                outcome = await make_gateway(client).submit(query)

        assert outcome == SubmissionPending(status_label="Queued")

    @pytest.mark.asyncio
    async def test_error_reply_surfaces_service_message(self, make_gateway, query):
        with aioresponses() as m:
            m.post(SUBMIT_URL, payload={"error": "invalid sequence"}, status=400)

            async with AioHttpClientAdapter() as client:
                with pytest.raises(ApplicationError) as excinfo:
                    await make_gateway(client).submit(query)

        assert excinfo.value.message == "invalid sequence"
        assert excinfo.value.upstream_status == 400
        assert not isinstance(excinfo.value, ProtocolError)

    @pytest.mark.asyncio
    async def test_error_reply_without_message(self, make_gateway, query):
        with aioresponses() as m:
            m.post(SUBMIT_URL, body="Internal Server Error", status=500)

            async with AioHttpClientAdapter() as client:
                with pytest.raises(ApplicationError) as excinfo:
                    await make_gateway(client).submit(query)

        assert excinfo.value.message == "The search service answered HTTP 500"

    @pytest.mark.parametrize("status", [502, 503, 504])
    @pytest.mark.asyncio
    async def test_gateway_statuses_are_transport_errors(self, make_gateway, query, status):
        with aioresponses() as m:
            m.post(SUBMIT_URL, body="Gateway Timeout", status=status)

            async with AioHttpClientAdapter() as client:
                with pytest.raises(TransportError):
                    await make_gateway(client).submit(query)

    @pytest.mark.asyncio
    async def test_client_timeout_is_transport_error(self, make_gateway, query):
        with aioresponses() as m:
            m.post(SUBMIT_URL, exception=asyncio.TimeoutError())

            async with AioHttpClientAdapter() as client:
                with pytest.raises(TransportError):
                    await make_gateway(client).submit(query)

    @pytest.mark.asyncio
    async def test_malformed_bundle_is_protocol_error(self, make_gateway, query):
        with aioresponses() as m:
            m.post(SUBMIT_URL, payload={"response": "only text"}, status=200)

            async with AioHttpClientAdapter() as client:
                with pytest.raises(ProtocolError) as excinfo:
                    await make_gateway(client).submit(query)

        assert excinfo.value.message == ProtocolError.GENERIC_MESSAGE
        assert excinfo.value.diagnostic

    @pytest.mark.asyncio
    async def test_too_many_hits_is_protocol_error(self, make_gateway, query):
        with aioresponses() as m:
            m.post(SUBMIT_URL, payload=bundle_payload(hits=11), status=200)

            async with AioHttpClientAdapter() as client:
                with pytest.raises(ProtocolError):
                    await make_gateway(client).submit(query)

    @pytest.mark.asyncio
    async def test_non_json_success_is_protocol_error(self, make_gateway, query):
        with aioresponses() as m:
            m.post(SUBMIT_URL, body="<html>ok</html>", status=200, headers={"Content-Type": "text/html"})

            async with AioHttpClientAdapter() as client:
                with pytest.raises(ProtocolError):
                    await make_gateway(client).submit(query)


class TestFetchStatus:
    @pytest.mark.asyncio
    async def test_returns_label(self, make_gateway):
        with aioresponses() as m:
            m.get(STATUS_URL, payload={"status": "Running BLAST"})

            async with AioHttpClientAdapter() as client:
                assert await make_gateway(client).fetch_status() == "Running BLAST"

    @pytest.mark.asyncio
    async def test_connection_error_is_absorbed(self, make_gateway):
        with aioresponses() as m:
            m.get(STATUS_URL, exception=aiohttp.ClientConnectionError("refused"))

            async with AioHttpClientAdapter() as client:
                assert await make_gateway(client).fetch_status() is None

    @pytest.mark.asyncio
    async def test_non_json_is_absorbed(self, make_gateway):
        with aioresponses() as m:
            m.get(STATUS_URL, body="busy", status=200, headers={"Content-Type": "text/plain"})

            async with AioHttpClientAdapter() as client:
                assert await make_gateway(client).fetch_status() is None

    @pytest.mark.asyncio
    async def test_error_status_is_absorbed(self, make_gateway):
        with aioresponses() as m:
            m.get(STATUS_URL, payload={"status": "broken"}, status=500)

            async with AioHttpClientAdapter() as client:
                assert await make_gateway(client).fetch_status() is None

    @pytest.mark.asyncio
    async def test_missing_label_is_absorbed(self, make_gateway):
        with aioresponses() as m:
            m.get(STATUS_URL, payload={"progress": 40})

            async with AioHttpClientAdapter() as client:
                assert await make_gateway(client).fetch_status() is None


class TestFetchResult:
    @pytest.mark.asyncio
    async def test_not_ready(self, make_gateway):
        with aioresponses() as m:
            m.get(RESULT_URL, payload={"status": "running"})

            async with AioHttpClientAdapter() as client:
                assert await make_gateway(client).fetch_result() is None

    @pytest.mark.asyncio
    async def test_completed_returns_resolved_bundle(self, make_gateway):
        with aioresponses() as m:
            m.get(RESULT_URL, payload={"status": "completed", "results": bundle_payload(hits=2)})

            async with AioHttpClientAdapter() as client:
                bundle = await make_gateway(client).fetch_result()

        assert isinstance(bundle, ResultBundle)
        assert bundle.tree_resource_ref == f"{BASE}/static/tree.png"
        assert len(bundle.top_hits) == 2

    @pytest.mark.asyncio
    async def test_failed_raises_application_error(self, make_gateway):
        with aioresponses() as m:
            m.get(RESULT_URL, payload={"status": "failed", "error": "BLAST database unavailable"})

            async with AioHttpClientAdapter() as client:
                with pytest.raises(ApplicationError) as excinfo:
                    await make_gateway(client).fetch_result()

        assert excinfo.value.message == "BLAST database unavailable"

    @pytest.mark.asyncio
    async def test_failed_without_message_uses_default(self, make_gateway):
        with aioresponses() as m:
            m.get(RESULT_URL, payload={"status": "failed"})

            async with AioHttpClientAdapter() as client:
                with pytest.raises(ApplicationError) as excinfo:
                    await make_gateway(client).fetch_result()

        assert excinfo.value.message == "The search failed on the remote service"

    @pytest.mark.asyncio
    async def test_not_found_without_error_is_not_ready(self, make_gateway):
        with aioresponses() as m:
            m.get(RESULT_URL, payload={"status": "unknown"}, status=404)

            async with AioHttpClientAdapter() as client:
                assert await make_gateway(client).fetch_result() is None

    @pytest.mark.asyncio
    async def test_transport_errors_retried_then_success(self, make_gateway):
        with aioresponses() as m:
            m.get(RESULT_URL, exception=aiohttp.ClientConnectionError("reset"))
            m.get(RESULT_URL, exception=asyncio.TimeoutError())
            m.get(RESULT_URL, payload={"status": "completed", "results": bundle_payload()})

            async with AioHttpClientAdapter() as client:
                bundle = await make_gateway(client).fetch_result()

        assert bundle is not None
        assert len(bundle.top_hits) == 3

    @pytest.mark.asyncio
    async def test_transport_errors_exhausted_returns_none(self, make_gateway):
        with aioresponses() as m:
            for _ in range(3):
                m.get(RESULT_URL, exception=aiohttp.ClientConnectionError("reset"))

            async with AioHttpClientAdapter() as client:
                assert await make_gateway(client).fetch_result() is None

    @pytest.mark.asyncio
    async def test_without_retry_port_single_attempt(self, make_gateway):
        with aioresponses() as m:
            m.get(RESULT_URL, exception=aiohttp.ClientConnectionError("reset"))

            async with AioHttpClientAdapter() as client:
                assert await make_gateway(client, retry=False).fetch_result() is None

    @pytest.mark.asyncio
    async def test_unreadable_reply_returns_none(self, make_gateway):
        with aioresponses() as m:
            m.get(RESULT_URL, body="<html/>", headers={"Content-Type": "text/html"})

            async with AioHttpClientAdapter() as client:
                assert await make_gateway(client).fetch_result() is None

    @pytest.mark.parametrize("status", [502, 503, 504])
    @pytest.mark.asyncio
    async def test_gateway_status_with_error_body_is_not_fatal(self, make_gateway, status):
        with aioresponses() as m:
            m.get(RESULT_URL, payload={"error": "Service Unavailable"}, status=status)

            async with AioHttpClientAdapter() as client:
                assert await make_gateway(client).fetch_result() is None
