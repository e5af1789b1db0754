"""W3C validator prober tests (mocked httpx)."""

import httpx
import pytest
import respx

from siteprobe.pipeline.models import ValidationRecord
from siteprobe.pipeline.w3c import W3CValidator, partition_messages, report_link

W3C_HOST = "validator.w3.org"
W3C_PATH = "/nu/"


def _route():
    return respx.route(method="GET", host=W3C_HOST, path=W3C_PATH)


# --- message partitioning (sync) ---


def test_partition_by_type_and_subtype():
    raw = [
        {"type": "error", "message": "Stray end tag", "extract": "</div>"},
        {"type": "info", "subType": "warning", "message": "Consider lang attr"},
        {"type": "info", "message": "Trailing slash"},
        {"type": "warning", "message": "Legacy warning"},
        {"type": "non-document-error", "subType": "io", "message": "HTTP 404"},
    ]
    errors, warnings, info = partition_messages(raw)
    assert [m.text for m in errors] == ["Stray end tag", "HTTP 404"]
    assert [m.text for m in warnings] == ["Consider lang attr", "Legacy warning"]
    assert [m.text for m in info] == ["Trailing slash"]
    assert errors[0].position_extract == "</div>"
    assert all(m.severity == "warning" for m in warnings)


def test_partition_empty():
    assert partition_messages([]) == ([], [], [])


def test_report_link_encodes_url():
    assert report_link("https://a.com/?x=1&y=2") == (
        "https://validator.w3.org/nu/?doc=https%3A%2F%2Fa.com%2F%3Fx%3D1%26y%3D2"
    )


def test_report_link_blank_url():
    assert report_link("   ") == "#"


# --- probe (async, respx) ---


@respx.mock
@pytest.mark.asyncio
async def test_probe_success_partitions_messages(http_client):
    route = _route().mock(
        return_value=httpx.Response(
            200,
            json={
                "messages": [
                    {"type": "error", "message": "Bad nesting", "extract": "<p><div>"},
                    {"type": "info", "subType": "warning", "message": "Section lacks heading"},
                    {"type": "info", "message": "Void element"},
                ]
            },
        )
    )
    validator = W3CValidator(http_client)
    result = await validator.probe("https://example.com")

    assert isinstance(result, ValidationRecord)
    assert result.url == "https://example.com"
    assert [m.text for m in result.errors] == ["Bad nesting"]
    assert [m.text for m in result.warnings] == ["Section lacks heading"]
    assert [m.text for m in result.info] == ["Void element"]
    assert result.report_link == report_link("https://example.com")
    assert result.fetch_failed is False

    params = route.calls.last.request.url.params
    assert params["doc"] == "https://example.com"
    assert params["out"] == "json"


@respx.mock
@pytest.mark.asyncio
async def test_probe_429_yields_single_error(http_client):
    _route().mock(return_value=httpx.Response(429))
    result = await W3CValidator(http_client).probe("x.com")

    assert isinstance(result, ValidationRecord)
    assert [m.text for m in result.errors] == ["Too Many Requests (429)"]
    assert result.warnings == []
    assert result.info == []
    assert result.fetch_failed is True
    assert result.report_link == report_link("x.com")


@respx.mock
@pytest.mark.asyncio
async def test_probe_415_yields_single_error(http_client):
    _route().mock(return_value=httpx.Response(415))
    result = await W3CValidator(http_client).probe("https://example.com/feed.xml")

    assert [m.text for m in result.errors] == ["Unsupported Media Type (415)"]
    assert result.warnings == [] and result.info == []


@respx.mock
@pytest.mark.asyncio
async def test_probe_other_status_embeds_cause(http_client):
    _route().mock(return_value=httpx.Response(503))
    result = await W3CValidator(http_client).probe("https://example.com")

    assert len(result.errors) == 1
    assert result.errors[0].text.startswith("Validation failed: ")
    assert "503" in result.errors[0].text


@respx.mock
@pytest.mark.asyncio
async def test_probe_network_error_never_raises(http_client):
    _route().mock(side_effect=httpx.ConnectTimeout("timed out"))
    result = await W3CValidator(http_client).probe("https://slow.example.com")

    assert isinstance(result, ValidationRecord)
    assert result.errors[0].text == "Validation failed: timed out"
    assert result.errors[0].severity == "error"
    assert result.fetch_failed is True


@respx.mock
@pytest.mark.asyncio
async def test_probe_malformed_body(http_client):
    _route().mock(return_value=httpx.Response(200, json={"unexpected": True}))
    result = await W3CValidator(http_client).probe("https://example.com")

    assert len(result.errors) == 1
    assert result.errors[0].text.startswith("Validation failed")


@respx.mock
@pytest.mark.asyncio
async def test_probe_uses_configured_endpoint(http_client):
    route = respx.route(method="GET", host="validator.local", path="/check").mock(
        return_value=httpx.Response(200, json={"messages": []})
    )
    validator = W3CValidator(http_client, endpoint="http://validator.local/check", timeout=5.0)
    result = await validator.probe("https://example.com")

    assert route.called
    assert result.errors == []
    assert route.calls.last.request.url.params["doc"] == "https://example.com"
