import asyncio

import pytest

from models import ChatRole, Difficulty, ExplanationRequest
from streaming import (
    CHAT_ERROR_MESSAGE,
    CLEARED_MESSAGE,
    WELCOME_MESSAGE,
    ChatSession,
    ContentCache,
    StreamingSession,
)


def counting_source(fragments_by_key):
    """Source that replays fixed fragments and counts calls per key"""
    calls = {}

    async def source(key):
        calls[key] = calls.get(key, 0) + 1
        for fragment in fragments_by_key[key]:
            yield fragment

    return source, calls


def queue_source(queues):
    """Source fed by hand through asyncio queues; None ends the stream"""
    async def source(key):
        while True:
            item = await queues[key].get()
            if item is None:
                return
            if isinstance(item, Exception):
                raise item
            yield item
    return source


async def drain(agen):
    return [item async for item in agen]


# ---------------------------------------------------------------------------
# ContentCache
# ---------------------------------------------------------------------------

def test_cache_is_write_once():
    cache = ContentCache()
    assert cache.put("k", "first") is True
    assert cache.put("k", "second") is False
    assert cache.get("k") == "first"
    assert "k" in cache
    assert len(cache) == 1
    assert cache.get("missing") is None


# ---------------------------------------------------------------------------
# StreamingSession
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_stream_accumulates_and_caches():
    key = ExplanationRequest("oop_classes", Difficulty.BEGINNER)
    source, calls = counting_source({key: ["> **Core", " Concept**", ": classes"]})
    session = StreamingSession(source)

    snapshots = await drain(session.run(key))

    assert [s["text"] for s in snapshots] == [
        "", "> **Core", "> **Core Concept**", "> **Core Concept**: classes",
        "> **Core Concept**: classes",
    ]
    assert snapshots[0]["streaming"] is True
    assert snapshots[-1]["streaming"] is False
    assert session.cache.get(key) == "> **Core Concept**: classes"
    assert calls[key] == 1


@pytest.mark.asyncio
async def test_second_request_is_served_from_cache():
    key = ExplanationRequest("streams", Difficulty.ADVANCED)
    source, calls = counting_source({key: ["Streams ", "are ", "lazy."]})
    session = StreamingSession(source)

    first = await drain(session.run(key))

    # start() resolves synchronously on a hit
    assert session.start(key) is None
    assert session.text == "Streams are lazy."

    second = await drain(session.run(key))

    assert calls[key] == 1
    assert len(second) == 1
    assert second[0]["cached"] is True
    assert second[0]["streaming"] is False
    assert second[0]["text"] == first[-1]["text"]


def test_stale_generation_fragments_are_dropped():
    session = StreamingSession(source=None)

    first = session.start("a")
    assert session.append(first, "A1")
    second = session.start("b")

    assert session.append(first, "A2") is False
    assert session.complete(first) is False
    assert session.append(second, "B1")
    assert session.complete(second)

    assert session.text == "B1"
    assert "a" not in session.cache
    assert session.cache.get("b") == "B1"
    assert second > first


@pytest.mark.asyncio
async def test_superseded_stream_stops_and_second_stream_wins():
    queues = {"a": asyncio.Queue(), "b": asyncio.Queue()}
    session = StreamingSession(queue_source(queues))

    stream_a = session.run("a")
    await stream_a.__anext__()
    queues["a"].put_nowait("A1")
    assert (await stream_a.__anext__())["text"] == "A1"

    stream_b = session.run("b")
    assert (await stream_b.__anext__())["text"] == ""

    # A's next fragment arrives after B took over
    queues["a"].put_nowait("A2")
    with pytest.raises(StopAsyncIteration):
        await stream_a.__anext__()

    queues["b"].put_nowait("B1")
    queues["b"].put_nowait("B2")
    queues["b"].put_nowait(None)
    snapshots = await drain(stream_b)

    assert session.text == "B1B2"
    assert snapshots[-1]["text"] == "B1B2"
    assert snapshots[-1]["streaming"] is False
    assert "a" not in session.cache
    assert session.cache.get("b") == "B1B2"


@pytest.mark.asyncio
async def test_superseded_source_is_closed_right_away():
    closed = []

    async def source(key):
        try:
            yield f"{key}1"
            yield f"{key}2"
        finally:
            closed.append(key)

    session = StreamingSession(source)
    stream_a = session.run("a")
    await stream_a.__anext__()
    assert (await stream_a.__anext__())["text"] == "a1"

    session.start("b")

    assert await drain(stream_a) == []
    assert closed == ["a"]
    assert session.current_key == "b"

@pytest.mark.asyncio
async def test_failure_keeps_partial_text_and_allows_retry():
    queues = {"k": asyncio.Queue()}
    session = StreamingSession(queue_source(queues))

    queues["k"].put_nowait("partial ")
    queues["k"].put_nowait(ConnectionError("network down"))
    snapshots = await drain(session.run("k"))

    last = snapshots[-1]
    assert last["text"] == "partial "
    assert last["error"] == "network down"
    assert last["streaming"] is False
    assert "k" not in session.cache

    queues["k"].put_nowait("full text")
    queues["k"].put_nowait(None)
    snapshots = await drain(session.run("k"))

    assert snapshots[-1]["error"] is None
    assert session.cache.get("k") == "full text"


@pytest.mark.asyncio
async def test_observers_see_every_change():
    source, _ = counting_source({"k": ["a", "b"]})
    session = StreamingSession(source)
    seen = []
    session.subscribe(lambda state: seen.append(state["text"]))

    await drain(session.run("k"))

    assert seen == ["", "a", "ab", "ab"]


# ---------------------------------------------------------------------------
# ChatSession
# ---------------------------------------------------------------------------

class FakeConversation:
    def __init__(self, fragments, error=None):
        self.fragments = fragments
        self.error = error
        self.sent = []
        self.closed = False

    async def stream_reply(self, text):
        self.sent.append(text)
        try:
            for fragment in self.fragments:
                yield fragment
            if self.error:
                raise self.error
        finally:
            self.closed = True


def conversation_factory(*conversations):
    created = []
    pending = list(conversations)

    def factory():
        conversation = pending.pop(0) if pending else FakeConversation(["ok"])
        created.append(conversation)
        return conversation

    return factory, created


def test_chat_starts_with_welcome_message():
    factory, _ = conversation_factory()
    chat = ChatSession(factory)
    assert len(chat.messages) == 1
    assert chat.messages[0].role == ChatRole.ASSISTANT
    assert chat.messages[0].text == WELCOME_MESSAGE


@pytest.mark.asyncio
async def test_chat_reply_accumulates_in_place():
    factory, created = conversation_factory(FakeConversation(["Stack ", "vs ", "heap"]))
    chat = ChatSession(factory)

    updates = await drain(chat.send("Explain memory"))

    user, reply = chat.messages[1], chat.messages[2]
    assert user.role == ChatRole.USER and user.text == "Explain memory"
    assert reply.role == ChatRole.ASSISTANT
    assert reply.text == "Stack vs heap"
    assert reply.streaming is False
    assert len(chat.messages) == 3
    assert len(updates) == 5
    assert chat.busy is False
    assert created[0].sent == ["Explain memory"]


@pytest.mark.asyncio
async def test_chat_error_appends_inline_message():
    factory, _ = conversation_factory(FakeConversation(["Half"], error=ConnectionError("down")))
    chat = ChatSession(factory)

    await drain(chat.send("hello"))

    assert chat.messages[2].text == "Half"
    assert chat.messages[2].streaming is False
    assert chat.messages[-1].text == CHAT_ERROR_MESSAGE
    assert chat.messages[-1].role == ChatRole.ASSISTANT
    assert chat.busy is False


@pytest.mark.asyncio
async def test_blank_message_is_ignored():
    factory, created = conversation_factory()
    chat = ChatSession(factory)

    assert await drain(chat.send("   ")) == []
    assert len(chat.messages) == 1
    assert created[0].sent == []


@pytest.mark.asyncio
async def test_send_is_ignored_while_reply_is_streaming():
    factory, _ = conversation_factory(FakeConversation(["a", "b"]))
    chat = ChatSession(factory)

    stream = chat.send("first")
    await stream.__anext__()
    assert chat.busy is True

    assert await drain(chat.send("second")) == []
    await drain(stream)

    assert [m.text for m in chat.messages if m.role == ChatRole.USER] == ["first"]


@pytest.mark.asyncio
async def test_clear_starts_fresh_context_and_drops_in_flight_reply():
    factory, created = conversation_factory(FakeConversation(["one", "two"]))
    chat = ChatSession(factory)

    stream = chat.send("hi")
    await stream.__anext__()
    await stream.__anext__()
    chat.clear()

    with pytest.raises(StopAsyncIteration):
        await stream.__anext__()

    assert len(created) == 2
    assert chat.conversation is created[1]
    assert len(chat.messages) == 1
    assert chat.messages[0].text == CLEARED_MESSAGE
    assert chat.busy is False
    assert created[0].closed is True
