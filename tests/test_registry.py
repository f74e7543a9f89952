import asyncio
import json
from pathlib import Path

import pytest

from paper_pipeline.collaborators.registry import RegistryClient
from paper_pipeline.config.pipeline_config import RegistryConfig
from paper_pipeline.pipeline.errors import Rejected, TransportError
from paper_pipeline.pipeline.models import Artifact, LocationMetadata, Outcome
from paper_pipeline.pipeline.retry import NoDelay
from paper_pipeline.pipeline.stages.publish_stage import Publisher

from conftest import FakeConverter, MemoryWarningSink


class FakeResponse:

    def __init__(self, status: int, raw: bytes):
        self.status = status
        self._raw = raw

    async def read(self) -> bytes:
        return self._raw

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """Answers every request with the same status and bytes."""

    def __init__(self, status: int, raw: bytes):
        self.status = status
        self.raw = raw
        self.requests = []

    def request(self, method, url, **kwargs):
        self.requests.append((method, url, kwargs))
        return FakeResponse(self.status, self.raw)


def make_client(status: int, body) -> RegistryClient:
    raw = body if isinstance(body, bytes) else json.dumps(body).encode('utf-8')
    return RegistryClient(FakeSession(status, raw), RegistryConfig(base_url="https://registry.example.test"))


def make_artifact() -> Artifact:
    return Artifact(
        title="2024北京七年级语文期中",
        source_url="https://example.test/1",
        location=LocationMetadata(province="北京", grade="七年级", subject="语文", year="2024"),
        content_items=[],
        rendered_document_path=Path("PDF/2024北京七年级语文期中.pdf"),
    )


def test_submit_returns_registry_id():
    client = make_client(200, {'success': True, 'data': 'paper-42'})
    assert asyncio.run(client.submit({'title': 't'})) == 'paper-42'

    method, url, kwargs = client.session.requests[0]
    assert method == 'POST'
    assert url == "https://registry.example.test/paper/new/save"
    assert kwargs['json'] == {'title': 't'}


def test_submit_success_false_is_rejected():
    client = make_client(200, {'success': False, 'message': 'duplicate paper name'})
    with pytest.raises(Rejected, match="duplicate paper name"):
        asyncio.run(client.submit({'title': 't'}))


def test_client_error_status_is_rejected():
    client = make_client(400, {'message': 'bad grade'})
    with pytest.raises(Rejected, match="bad grade"):
        asyncio.run(client.submit({'title': 't'}))


@pytest.mark.parametrize("status", [500, 502, 503])
def test_server_error_status_is_transport_error(status):
    client = make_client(status, {'message': 'upstream down'})
    with pytest.raises(TransportError):
        asyncio.run(client.submit({'title': 't'}))


def test_non_utf8_body_is_transport_error():
    client = make_client(200, b'\xff\xfe{"success": true}')
    with pytest.raises(TransportError):
        asyncio.run(client.submit({'title': 't'}))


def test_non_json_body_is_transport_error():
    client = make_client(200, b'<html>gateway</html>')
    with pytest.raises(TransportError):
        asyncio.run(client.submit({'title': 't'}))


def test_undecodable_submit_reply_fails_only_that_item():
    publisher = Publisher(FakeConverter(), make_client(200, b'\xff\xfe{"data": "x"}'),
                          MemoryWarningSink(), delay=NoDelay())
    artifact = make_artifact()

    result = asyncio.run(publisher.process(artifact))

    assert result.outcome is Outcome.FAILED
    assert not artifact.is_published


def test_check_exists_reads_repeated_flag():
    client = make_client(200, {'data': {'repeated': True}})
    assert asyncio.run(client.check_exists("t")) is True

    method, _, kwargs = client.session.requests[0]
    assert method == 'GET'
    assert kwargs['params']['paperName'] == "t"
