"""
Streaming sessions.

StreamingSession drives one explanation stream at a time and keeps the
accumulated text observable while fragments arrive. Every start() takes a new
generation token; fragments from an older generation are dropped on arrival,
which is how switching topics mid-stream cancels the previous one. Finished
streams are written once into the ContentCache so asking again is a cache hit.

ChatSession does the same accumulation for the chat widget, where the
partial text lives in the last assistant message.
"""
import logging
import uuid
from typing import Any, AsyncGenerator, AsyncIterator, Callable, Dict, Hashable, List, Optional

from models import ChatMessage, ChatRole

logger = logging.getLogger(__name__)

EXPLANATION_ERROR_MESSAGE = "Sorry, I encountered an error while connecting to the AI tutor."

WELCOME_MESSAGE = (
    "Hi! I'm **JavaBot**. \n\nI can help you with:\n"
    "- Deep dives into Java internals (Stack vs Heap)\n"
    "- Debugging your code\n"
    "- Explaining complex topics\n\n"
    "What's on your mind?"
)
CLEARED_MESSAGE = "Chat cleared! Ready for a fresh start. What would you like to learn?"
CHAT_ERROR_MESSAGE = "> **Error**: I couldn't connect to the server. Please try again."


class ContentCache:
    """Write-once store of finished explanation text"""

    def __init__(self):
        self._entries: Dict[Hashable, str] = {}

    def get(self, key: Hashable) -> Optional[str]:
        return self._entries.get(key)

    def put(self, key: Hashable, text: str) -> bool:
        """Store text for key unless it is already present"""
        if key in self._entries:
            logger.debug(f"Cache entry for {key} already set, keeping the first one")
            return False
        self._entries[key] = text
        return True

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class StreamingSession:
    def __init__(self, source: Callable[[Any], AsyncGenerator[str, None]],
                 cache: Optional[ContentCache] = None):
        self.source = source
        self.cache = cache if cache is not None else ContentCache()
        self.current_key = None
        self.text = ""
        self.streaming = False
        self.error: Optional[str] = None
        self.from_cache = False
        self._generation = 0
        self._observers: List[Callable[[Dict[str, Any]], None]] = []

    @property
    def generation(self) -> int:
        return self._generation

    def subscribe(self, observer: Callable[[Dict[str, Any]], None]) -> None:
        self._observers.append(observer)

    def snapshot(self) -> Dict[str, Any]:
        return {
            "key": self.current_key,
            "text": self.text,
            "streaming": self.streaming,
            "error": self.error,
            "cached": self.from_cache,
        }

    def _publish(self) -> None:
        state = self.snapshot()
        for observer in self._observers:
            observer(state)

    def is_current(self, token: int) -> bool:
        return token == self._generation

    def start(self, key) -> Optional[int]:
        """Make key the current request.

        Returns None when the cache already holds the text (it is published
        right away), otherwise the generation token fragments must carry.
        """
        self._generation += 1
        self.current_key = key
        self.error = None

        cached = self.cache.get(key)
        if cached is not None:
            logger.info(f"Serving {key} from cache")
            self.text = cached
            self.streaming = False
            self.from_cache = True
            self._publish()
            return None

        self.text = ""
        self.streaming = True
        self.from_cache = False
        self._publish()
        return self._generation

    def append(self, token: int, fragment: str) -> bool:
        if not self.is_current(token):
            logger.debug(f"Dropping fragment from superseded generation {token}")
            return False
        self.text += fragment
        self._publish()
        return True

    def complete(self, token: int) -> bool:
        if not self.is_current(token):
            return False
        self.cache.put(self.current_key, self.text)
        self.streaming = False
        self._publish()
        logger.info(f"Stream for {self.current_key} completed ({len(self.text)} chars)")
        return True

    def fail(self, token: int, error: Exception) -> bool:
        if not self.is_current(token):
            return False
        self.streaming = False
        self.error = str(error) or error.__class__.__name__
        self._publish()
        return True

    async def run(self, key) -> AsyncIterator[Dict[str, Any]]:
        """Start key and consume its fragments, yielding a snapshot per change.

        Stops quietly once a newer start() has taken over.
        """
        token = self.start(key)
        yield self.snapshot()
        if token is None:
            return

        stream = self.source(key)
        try:
            async for fragment in stream:
                if not self.append(token, fragment):
                    logger.info(f"Stream for {key} superseded, discarding the rest")
                    return
                yield self.snapshot()
        except Exception as e:
            logger.error(f"Error streaming {key}: {str(e)}", exc_info=True)
            if self.fail(token, e):
                yield self.snapshot()
            return
        finally:
            await stream.aclose()

        if self.complete(token):
            yield self.snapshot()


def _new_message_id() -> str:
    return uuid.uuid4().hex


class ChatSession:
    """Message list and model conversation behind the chat widget"""

    def __init__(self, conversation_factory: Callable[[], Any]):
        self.conversation_factory = conversation_factory
        self.conversation = conversation_factory()
        self.messages: List[ChatMessage] = [
            ChatMessage(id="welcome", role=ChatRole.ASSISTANT, text=WELCOME_MESSAGE)
        ]
        self.busy = False
        self._generation = 0

    def clear(self) -> None:
        """Drop the transcript and start a fresh model context"""
        self._generation += 1
        self.conversation = self.conversation_factory()
        self.messages = [
            ChatMessage(id="welcome-reset", role=ChatRole.ASSISTANT, text=CLEARED_MESSAGE)
        ]
        self.busy = False
        logger.info("Chat session cleared")

    async def send(self, text: str) -> AsyncIterator[List[ChatMessage]]:
        """Send a user message and yield the transcript as the reply streams in"""
        if not text or not text.strip() or self.busy:
            return

        generation = self._generation
        conversation = self.conversation
        self.busy = True

        self.messages.append(ChatMessage(id=_new_message_id(), role=ChatRole.USER, text=text))
        reply = ChatMessage(id=_new_message_id(), role=ChatRole.ASSISTANT, text="", streaming=True)
        self.messages.append(reply)
        yield self.messages

        stream = conversation.stream_reply(text)
        try:
            async for fragment in stream:
                if generation != self._generation:
                    logger.debug("Chat was cleared, dropping reply fragments")
                    return
                reply.text += fragment
                yield self.messages
            reply.streaming = False
            yield self.messages
        except Exception as e:
            logger.error(f"Chat error: {str(e)}", exc_info=True)
            if generation != self._generation:
                return
            reply.streaming = False
            self.messages.append(
                ChatMessage(id=_new_message_id(), role=ChatRole.ASSISTANT, text=CHAT_ERROR_MESSAGE)
            )
            yield self.messages
        finally:
            await stream.aclose()
            if generation == self._generation:
                self.busy = False
