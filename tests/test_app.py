import json

import pytest

import app
import config
from app import SessionState
from code_sharing import encode_share_token
from quiz_mode import QuizStatus
from streaming import CLEARED_MESSAGE
from tutor_service import TutorService

LESSON = "> **Core Concept**: A class is a blueprint."

QUIZ_JSON = json.dumps({
    "questions": [
        {"id": 1, "question": "Which keyword starts a thread?",
         "options": ["run", "start"], "correctAnswerIndex": 1,
         "explanation": "start() schedules run() on a new thread."},
        {"id": 2, "question": "Which keyword guards a block?",
         "options": ["synchronized", "locked"], "correctAnswerIndex": 0,
         "explanation": "synchronized takes the monitor."},
    ]
})


@pytest.fixture
def make_state(tmp_path, monkeypatch):
    """Swap the app's global session state for one backed by the given model"""
    def make(llm):
        session_state = SessionState(service=TutorService(llm=llm), storage_dir=str(tmp_path))
        monkeypatch.setattr(app, "state", session_state)
        return session_state
    return make


async def collect(agen):
    return [item async for item in agen]


# ---------------------------------------------------------------------------
# Topic explorer
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_explain_topic_streams_then_serves_from_cache(make_state, fake_llm_factory):
    session_state = make_state(fake_llm_factory(LESSON))

    first = await collect(app.explain_topic("oop_classes", "Beginner"))

    header, lesson_html, status, button = first[-1]
    assert "Classes &amp; Objects" in header
    assert "jt-callout-concept" in lesson_html
    assert status == "Lesson ready."
    assert button["visible"] is True
    assert session_state.selected_topic_id == "oop_classes"
    assert len(first) > 2

    second = await collect(app.explain_topic("oop_classes", "Beginner"))

    assert len(second) == 1
    assert second[0][1] == lesson_html
    assert second[0][2] == "Loaded from this session's cache."


@pytest.mark.asyncio
async def test_explain_topic_failure_shows_error_status(make_state, failing_llm_factory):
    session_state = make_state(failing_llm_factory(partial="Objects are"))

    outputs = await collect(app.explain_topic("oop_classes", "Intermediate"))

    _, lesson_html, status, _ = outputs[-1]
    assert "Objects are" in lesson_html
    assert "jt-callout-warning" in lesson_html
    assert "could not be completed" in status
    assert len(session_state.explainer.cache) == 0


@pytest.mark.asyncio
async def test_explain_without_topic_shows_welcome(make_state, fake_llm_factory):
    make_state(fake_llm_factory(LESSON))

    outputs = await collect(app.explain_topic(None, "Beginner"))

    assert len(outputs) == 1
    assert "Welcome to Java Tutorial" in outputs[0][0]
    assert outputs[0][3]["visible"] is False


def test_toggle_complete_updates_label_and_progress(make_state, fake_llm_factory):
    session_state = make_state(fake_llm_factory(LESSON))
    session_state.selected_topic_id = "jdbc"

    label, progress = app.toggle_complete()
    assert label == "✅ Topic Completed"
    assert "6% (1/16 topics completed)" in progress

    label, progress = app.toggle_complete()
    assert label == "Mark as Complete"
    assert "0% (0/16 topics completed)" in progress


def test_toggle_complete_without_topic_is_a_no_op(make_state, fake_llm_factory):
    session_state = make_state(fake_llm_factory(LESSON))

    label, _ = app.toggle_complete()

    assert label == "Mark as Complete"
    assert session_state.progress.completed == []


# ---------------------------------------------------------------------------
# Code lab
# ---------------------------------------------------------------------------

def test_load_shared_code_keeps_current_code_on_bad_token():
    assert app.load_shared_code("abcde", "class A {}") == (
        "class A {}", "The shared link could not be read.")
    assert app.load_shared_code("", "class A {}") == ("class A {}", "")


def test_load_shared_code_replaces_editor_contents():
    token = encode_share_token("int x = 1;")
    assert app.load_shared_code(token, "class A {}") == ("int x = 1;", "Loaded shared code.")


def test_share_code_builds_link_from_public_url():
    url, _ = app.share_code("int x = 1;")
    assert url.startswith(config.APP_PUBLIC_URL.split('?')[0] + "?code=")
    assert app.share_code("   ") == ("", "Nothing to share yet.")


@pytest.mark.asyncio
async def test_run_code_flags_compile_errors(make_state, fake_llm_factory):
    make_state(fake_llm_factory("Error: ';' expected"))

    output, status = await app.run_code("int x = 1")

    assert output == "Error: ';' expected"
    assert status == "❌ Compilation failed"
    assert await app.run_code("  ") == ("", "Write some code first.")


# ---------------------------------------------------------------------------
# Quiz
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_start_quiz_failure_shows_retry_status(make_state, fake_llm_factory):
    session_state = make_state(fake_llm_factory("not json"))

    outputs = await app.start_quiz("threads", "Advanced")

    assert outputs[0].startswith("⚠️ No quiz could be generated")
    assert session_state.quiz.status == QuizStatus.FAILED
    assert all(update["visible"] is False for update in outputs[1:4])


@pytest.mark.asyncio
async def test_quiz_answer_and_submit_flow(make_state, fake_llm_factory):
    session_state = make_state(fake_llm_factory(QUIZ_JSON))

    outputs = await app.start_quiz("threads", "Advanced")

    assert outputs[0].startswith("Multithreading · Advanced")
    assert [update["visible"] for update in outputs[1:4]] == [True, True, False]
    assert app.make_answer_handler(0)(1)["visible"] is False
    assert app.make_answer_handler(1)(1)["visible"] is True

    status, *rest = app.submit_quiz()

    assert status == "**Score: 1 / 2**"
    assert session_state.quiz.status == QuizStatus.SUBMITTED
    assert "synchronized takes the monitor." in rest[-1]


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_send_chat_streams_reply_and_clears_input(make_state, fake_llm_factory):
    make_state(fake_llm_factory("Use equals()"))

    outputs = await collect(app.send_chat("How do I compare strings?"))

    chat_html, chat_input = outputs[-1]
    assert "Use equals()" in chat_html
    assert chat_input == ""

    cleared = app.clear_chat()
    assert "Use equals()" not in cleared
    assert CLEARED_MESSAGE.split("!")[0] in cleared
