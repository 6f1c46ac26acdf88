"""Pytest configuration and shared fixtures."""
import os
import tempfile

import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel
from langchain_core.messages import AIMessageChunk

from models import QuizQuestion

# app builds its global state on import; keep that progress file out of the tree
os.environ.setdefault("PROGRESS_DIR", os.path.join(tempfile.gettempdir(), "java-tutorial-test-progress"))


class FailingChatModel:
    """Chat model stand-in that fails, optionally after streaming some text."""

    def __init__(self, partial: str = "", error: Exception = None):
        self.partial = partial
        self.error = error or ConnectionError("provider unavailable")
        self.calls = 0

    async def ainvoke(self, messages, **kwargs):
        self.calls += 1
        raise self.error

    async def astream(self, messages, **kwargs):
        self.calls += 1
        for char in self.partial:
            yield AIMessageChunk(content=char)
        raise self.error


@pytest.fixture
def fake_llm_factory():
    def make(*responses):
        return FakeListChatModel(responses=list(responses))
    return make


@pytest.fixture
def failing_llm():
    return FailingChatModel()


@pytest.fixture
def failing_llm_factory():
    return FailingChatModel


@pytest.fixture
def sample_questions():
    return [
        QuizQuestion(id=1, question="Which keyword creates an object?",
                     options=["new", "make", "create"], correct_answer_index=0,
                     explanation="`new` allocates an instance."),
        QuizQuestion(id=2, question="Which type holds true/false?",
                     options=["int", "boolean", "char"], correct_answer_index=1,
                     explanation="boolean stores logical values."),
        QuizQuestion(id=3, question="What does JVM stand for?",
                     options=["Java Virtual Machine", "Java Visual Model"], correct_answer_index=0,
                     explanation="The JVM runs bytecode."),
    ]
