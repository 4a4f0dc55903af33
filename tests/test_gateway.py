from types import SimpleNamespace

import httpx
import pytest
from google.genai import errors as genai_errors

from errors import ConfigurationError, ProviderError, ProviderErrorCategory
from services.gateway import ModelGateway, translate_provider_error


def _chunk(text=None, finish_reason=None, block_reason=None):
    feedback = SimpleNamespace(block_reason=block_reason) if block_reason else None
    candidate = SimpleNamespace(finish_reason=finish_reason)
    return SimpleNamespace(text=text, prompt_feedback=feedback, candidates=[candidate])


class _Stream:
    def __init__(self, items):
        self.items = list(items)
        self.closed = False

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self.items:
            raise StopAsyncIteration
        item = self.items.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    async def aclose(self):
        self.closed = True


class _FakeModels:
    def __init__(self, items, fail_on_start=None):
        self.items = items
        self.fail_on_start = fail_on_start
        self.calls = []

    async def generate_content_stream(self, model, contents):
        self.calls.append({"model": model, "contents": contents})
        if self.fail_on_start is not None:
            raise self.fail_on_start
        self.stream = _Stream(self.items)
        return self.stream


def _client(items, fail_on_start=None):
    models = _FakeModels(items, fail_on_start)
    return SimpleNamespace(aio=SimpleNamespace(models=models)), models


async def _collect(gateway, history):
    return [fragment async for fragment in gateway.stream_completion(history)]


def test_roles_map_to_provider_labels():
    contents = ModelGateway.to_contents([
        {"role": "user", "content": "Hi"},
        {"role": "assistant", "content": "Hello!"},
        {"role": "user", "content": "How are you?"},
    ])
    assert [c.role for c in contents] == ["user", "model", "user"]
    assert [c.parts[0].text for c in contents] == ["Hi", "Hello!", "How are you?"]


def test_unknown_role_is_rejected():
    with pytest.raises(ValueError):
        ModelGateway.to_contents([{"role": "system", "content": "x"}])


async def test_missing_key_fails_before_network():
    gateway = ModelGateway(api_key=None)
    with pytest.raises(ConfigurationError):
        gateway.ensure_configured()
    with pytest.raises(ConfigurationError):
        await _collect(gateway, [{"role": "user", "content": "Hi"}])
    assert gateway._client is None


async def test_streams_text_fragments_with_full_history():
    client, models = _client([_chunk("Hel"), _chunk(None), _chunk("lo"), _chunk("", finish_reason="STOP")])
    gateway = ModelGateway(api_key="k", model="gemini-test", client=client)

    history = [{"role": "user", "content": "a"}, {"role": "assistant", "content": "b"}, {"role": "user", "content": "c"}]
    assert await _collect(gateway, history) == ["Hel", "lo"]
    assert models.calls[0]["model"] == "gemini-test"
    assert len(models.calls[0]["contents"]) == 3


async def test_safety_stop_mid_stream_is_content_policy():
    client, _ = _client([_chunk("Part"), _chunk(None, finish_reason=SimpleNamespace(name="SAFETY"))])
    gateway = ModelGateway(api_key="k", client=client)

    fragments = []
    with pytest.raises(ProviderError) as info:
        async for fragment in gateway.stream_completion([{"role": "user", "content": "x"}]):
            fragments.append(fragment)
    assert fragments == ["Part"]
    assert info.value.category == ProviderErrorCategory.CONTENT_POLICY


async def test_blocked_prompt_is_content_policy():
    client, _ = _client([_chunk(None, block_reason="PROHIBITED_CONTENT")])
    gateway = ModelGateway(api_key="k", client=client)
    with pytest.raises(ProviderError) as info:
        await _collect(gateway, [{"role": "user", "content": "x"}])
    assert info.value.category == ProviderErrorCategory.CONTENT_POLICY


async def test_transport_failure_is_network():
    client, _ = _client([], fail_on_start=httpx.ConnectError("connection refused"))
    gateway = ModelGateway(api_key="k", client=client)
    with pytest.raises(ProviderError) as info:
        await _collect(gateway, [{"role": "user", "content": "x"}])
    assert info.value.category == ProviderErrorCategory.NETWORK
    assert isinstance(info.value.__cause__, httpx.ConnectError)


async def test_failure_mid_stream_is_translated():
    client, _ = _client([_chunk("ok"), RuntimeError("Quota exceeded for requests")])
    gateway = ModelGateway(api_key="k", client=client)
    with pytest.raises(ProviderError) as info:
        await _collect(gateway, [{"role": "user", "content": "x"}])
    assert info.value.category == ProviderErrorCategory.QUOTA


@pytest.mark.parametrize(
    "code, status, message, expected",
    [
        (429, "RESOURCE_EXHAUSTED", "Resource has been exhausted", ProviderErrorCategory.QUOTA),
        (403, "PERMISSION_DENIED", "Permission denied", ProviderErrorCategory.AUTHENTICATION),
        (400, "INVALID_ARGUMENT", "API key not valid. Please pass a valid API key.", ProviderErrorCategory.AUTHENTICATION),
        (400, "INVALID_ARGUMENT", "Request contains an invalid argument.", ProviderErrorCategory.UNKNOWN),
    ],
)
def test_structured_codes_before_substrings(code, status, message, expected):
    exc = genai_errors.ClientError(code, {"error": {"code": code, "status": status, "message": message}})
    assert translate_provider_error(exc).category == expected


@pytest.mark.parametrize(
    "message, expected",
    [
        ("Invalid API key supplied", ProviderErrorCategory.AUTHENTICATION),
        ("rate limit reached", ProviderErrorCategory.QUOTA),
        ("Candidate was blocked due to SAFETY", ProviderErrorCategory.CONTENT_POLICY),
        ("Failed to fetch", ProviderErrorCategory.NETWORK),
        ("something odd", ProviderErrorCategory.UNKNOWN),
    ],
)
def test_substring_fallback(message, expected):
    assert translate_provider_error(RuntimeError(message)).category == expected


def test_timeouts_are_network():
    assert translate_provider_error(TimeoutError()).category == ProviderErrorCategory.NETWORK


def test_provider_error_passes_through():
    original = ProviderError(ProviderErrorCategory.QUOTA)
    assert translate_provider_error(original) is original


async def test_closing_the_gateway_stream_closes_provider_stream():
    client, models = _client([_chunk("one"), _chunk("two"), _chunk("three")])
    gateway = ModelGateway(api_key="k", client=client)

    fragments = gateway.stream_completion([{"role": "user", "content": "x"}])
    assert await fragments.__anext__() == "one"
    assert models.stream.closed is False
    await fragments.aclose()
    assert models.stream.closed is True


async def test_provider_stream_is_closed_after_completion():
    client, models = _client([_chunk("done")])
    gateway = ModelGateway(api_key="k", client=client)
    assert await _collect(gateway, [{"role": "user", "content": "x"}]) == ["done"]
    assert models.stream.closed is True
