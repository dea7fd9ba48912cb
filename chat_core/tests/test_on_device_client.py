import asyncio
import importlib.util
import sys
import time
import types

import pytest

from chat_core.domain.exceptions import BackendUnavailableError, ModelFailureError
from chat_core.domain.models import OnDeviceConfig
from chat_core.providers.on_device_client import LlamaSession, OnDeviceClient, check_availability


class FakeSession:
    def __init__(self, reply="local reply", error=None):
        self.reply = reply
        self.error = error
        self.prompts = []

    def respond(self, text):
        self.prompts.append(text)
        if self.error is not None:
            raise self.error
        return self.reply


def available(_cfg):
    return True, None


@pytest.mark.asyncio
async def test_on_device_joins_context_and_prompt():
    session = FakeSession()
    client = OnDeviceClient(OnDeviceConfig(), session_factory=lambda cfg: session, availability=available)

    reply = await client.complete("c", ["a", "b"])

    assert reply == "local reply"
    assert session.prompts == ["a\nb\nc"]


@pytest.mark.asyncio
async def test_on_device_session_is_lazy_and_reused():
    created = []

    def factory(cfg):
        created.append(cfg)
        return FakeSession()

    cfg = OnDeviceConfig(model_path="model.gguf")
    client = OnDeviceClient(cfg, session_factory=factory, availability=available)
    assert created == []

    await client.complete("one")
    await client.complete("two")
    assert created == [cfg]


@pytest.mark.asyncio
async def test_on_device_unavailable_never_creates_session():
    created = []

    def factory(cfg):
        created.append(cfg)
        return FakeSession()

    client = OnDeviceClient(
        OnDeviceConfig(),
        session_factory=factory,
        availability=lambda cfg: (False, "model_file_missing"),
    )

    with pytest.raises(BackendUnavailableError) as exc_info:
        await client.complete("hi")
    assert exc_info.value.extra["reason"] == "model_file_missing"
    assert created == []


@pytest.mark.asyncio
async def test_on_device_runtime_failure_is_model_failure():
    session = FakeSession(error=RuntimeError("kv cache exhausted"))
    client = OnDeviceClient(OnDeviceConfig(), session_factory=lambda cfg: session, availability=available)

    with pytest.raises(ModelFailureError) as exc_info:
        await client.complete("hi")
    assert "kv cache exhausted" in exc_info.value.message


@pytest.mark.asyncio
async def test_on_device_load_failure_is_not_cached():
    attempts = []

    def factory(cfg):
        attempts.append(cfg)
        if len(attempts) == 1:
            raise ValueError("corrupt model")
        return FakeSession()

    client = OnDeviceClient(OnDeviceConfig(), session_factory=factory, availability=available)

    with pytest.raises(BackendUnavailableError) as exc_info:
        await client.complete("hi")
    assert exc_info.value.extra["reason"] == "load_failed"
    assert await client.complete("hi") == "local reply"
    assert len(attempts) == 2


def test_check_availability_without_model_path():
    assert check_availability(OnDeviceConfig()) == (False, "model_not_configured")


def test_check_availability_missing_file(tmp_path):
    cfg = OnDeviceConfig(model_path=str(tmp_path / "missing.gguf"))
    assert check_availability(cfg) == (False, "model_file_missing")


def test_check_availability_runtime(monkeypatch, tmp_path):
    model = tmp_path / "model.gguf"
    model.write_bytes(b"GGUF")
    cfg = OnDeviceConfig(model_path=str(model))
    real_find_spec = importlib.util.find_spec

    monkeypatch.setattr(
        importlib.util,
        "find_spec",
        lambda name, *a: None if name == "llama_cpp" else real_find_spec(name, *a),
    )
    assert check_availability(cfg) == (False, "runtime_not_installed")

    monkeypatch.setattr(
        importlib.util,
        "find_spec",
        lambda name, *a: object() if name == "llama_cpp" else real_find_spec(name, *a),
    )
    assert check_availability(cfg) == (True, None)


@pytest.mark.asyncio
async def test_on_device_concurrent_first_calls_create_one_session():
    created = []

    def slow_factory(cfg):
        time.sleep(0.05)
        created.append(cfg)
        return FakeSession()

    client = OnDeviceClient(OnDeviceConfig(), session_factory=slow_factory, availability=available)
    replies = await asyncio.gather(*(client.complete(p) for p in ("a", "b", "c")))

    assert replies == ["local reply"] * 3
    assert len(created) == 1


def test_llama_session_wraps_llama(monkeypatch):
    calls = {}

    class Llama:
        def __init__(self, **kw):
            calls["init"] = kw

        def create_chat_completion(self, **kw):
            calls["chat"] = kw
            return {"choices": [{"message": {"role": "assistant", "content": "from llama"}}]}

    fake_module = types.ModuleType("llama_cpp")
    fake_module.Llama = Llama
    monkeypatch.setitem(sys.modules, "llama_cpp", fake_module)

    session = LlamaSession(OnDeviceConfig(model_path="/models/tiny.gguf", n_ctx=2048, max_tokens=64))
    assert calls["init"] == {"model_path": "/models/tiny.gguf", "n_ctx": 2048, "verbose": False}

    assert session.respond("a\nb") == "from llama"
    assert calls["chat"] == {"messages": [{"role": "user", "content": "a\nb"}], "max_tokens": 64}


def test_llama_session_null_content(monkeypatch):
    class Llama:
        def __init__(self, **kw):
            pass

        def create_chat_completion(self, **kw):
            return {"choices": [{"message": {"role": "assistant", "content": None}}]}

    fake_module = types.ModuleType("llama_cpp")
    fake_module.Llama = Llama
    monkeypatch.setitem(sys.modules, "llama_cpp", fake_module)

    assert LlamaSession(OnDeviceConfig(model_path="m.gguf")).respond("hi") == ""
