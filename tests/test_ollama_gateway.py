"""Tests for the Ollama HTTP gateway."""

import json

import httpx
import pytest

from adapters.ollama import OllamaGateway
from core.exceptions import RemoteUnavailableError


def _gateway(handler) -> OllamaGateway:
    return OllamaGateway("http://ollama.test", transport=httpx.MockTransport(handler))


def _ndjson(*events: dict) -> bytes:
    return "\n".join(json.dumps(e) for e in events).encode() + b"\n"


async def _collect(gateway: OllamaGateway, name: str) -> list:
    return [event async for event in gateway.pull(name)]


@pytest.mark.asyncio
async def test_list_installed_maps_details():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/tags"
        return httpx.Response(
            200,
            json={
                "models": [
                    {
                        "name": "llama3:8b",
                        "size": 4661224676,
                        "details": {
                            "family": "llama",
                            "format": "gguf",
                            "parameter_size": "8.0B",
                            "quantization_level": "Q4_0",
                        },
                    },
                    {"name": "bare:latest"},
                ]
            },
        )

    gateway = _gateway(handler)
    models = await gateway.list_installed()
    await gateway.close()

    assert models[0].name == "llama3:8b"
    assert models[0].size == 4661224676
    assert (models[0].family, models[0].format, models[0].parameters, models[0].quantization) == (
        "llama",
        "gguf",
        "8.0B",
        "Q4_0",
    )
    assert models[1].name == "bare:latest"
    assert models[1].size == 0
    assert models[1].family == ""


@pytest.mark.asyncio
async def test_list_installed_server_error():
    gateway = _gateway(lambda request: httpx.Response(500, text="boom"))
    with pytest.raises(RemoteUnavailableError):
        await gateway.list_installed()


@pytest.mark.asyncio
async def test_list_installed_connection_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    gateway = _gateway(handler)
    with pytest.raises(RemoteUnavailableError):
        await gateway.list_installed()
    assert await gateway.health_check() is False


@pytest.mark.asyncio
async def test_pull_streams_until_success():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/pull"
        assert json.loads(request.content) == {"name": "llama3:8b", "stream": True}
        return httpx.Response(
            200,
            content=_ndjson(
                {"status": "pulling manifest"},
                {"status": "pulling 6a0746a1ec1a", "digest": "sha256:6a07", "total": 200, "completed": 50},
                {"status": "verifying sha256 digest"},
                {"status": "success"},
                {"status": "ignored after success"},
            ),
        )

    events = await _collect(_gateway(handler), "llama3:8b")

    assert [e.status for e in events] == [
        "pulling manifest",
        "pulling 6a0746a1ec1a",
        "verifying sha256 digest",
        "success",
    ]
    assert events[1].percentage == pytest.approx(25.0)
    assert events[0].percentage is None
    assert events[-1].is_success


@pytest.mark.asyncio
async def test_pull_error_line_ends_stream():
    def handler(request):
        return httpx.Response(
            200,
            content=_ndjson(
                {"status": "pulling manifest"},
                {"error": "pull model manifest: file does not exist"},
                {"status": "never seen"},
            ),
        )

    events = await _collect(_gateway(handler), "bogus")

    assert len(events) == 2
    assert events[-1].status == "error"
    assert events[-1].error == "pull model manifest: file does not exist"


@pytest.mark.asyncio
async def test_pull_http_error_becomes_error_event():
    events = await _collect(_gateway(lambda r: httpx.Response(404, text="not found")), "bogus")

    assert len(events) == 1
    assert events[0].error.startswith("Ollama returned status 404")


@pytest.mark.asyncio
async def test_pull_bad_line_becomes_error_event():
    def handler(request):
        return httpx.Response(200, content=b'{"status": "pulling manifest"}\nnot json\n')

    events = await _collect(_gateway(handler), "llama3:8b")

    assert events[-1].error.startswith("Failed to decode streaming response")


@pytest.mark.asyncio
async def test_pull_connection_error_raises():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(RemoteUnavailableError):
        await _collect(_gateway(handler), "llama3:8b")


@pytest.mark.asyncio
async def test_delete_sends_name():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200)

    await _gateway(handler).delete("llama3:8b")

    assert seen == {"method": "DELETE", "path": "/api/delete", "body": {"name": "llama3:8b"}}


@pytest.mark.asyncio
async def test_delete_missing_model_raises():
    gateway = _gateway(lambda r: httpx.Response(404, json={"error": "model not found"}))
    with pytest.raises(RemoteUnavailableError):
        await gateway.delete("llama3:8b")


@pytest.mark.asyncio
async def test_inspect_maps_details():
    def handler(request):
        assert request.url.path == "/api/show"
        return httpx.Response(
            200,
            json={
                "license": "MIT",
                "template": "{{ .Prompt }}",
                "details": {
                    "family": "llama",
                    "families": ["llama"],
                    "format": "gguf",
                    "parameter_size": "8.0B",
                    "quantization_level": "Q4_0",
                },
                "model_info": {"general.architecture": "llama"},
            },
        )

    details = await _gateway(handler).inspect("llama3:8b")

    assert details.parameter_size == "8.0B"
    assert details.quantization == "Q4_0"
    assert details.families == ["llama"]
    assert details.license == "MIT"
    assert details.model_info == {"general.architecture": "llama"}


@pytest.mark.asyncio
async def test_health_check():
    def handler(request):
        assert request.url.path == "/api/version"
        return httpx.Response(200, json={"version": "0.5.0"})

    assert await _gateway(handler).health_check() is True
