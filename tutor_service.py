import json
import logging
import re
from typing import Any, AsyncIterator, List, Optional

from langchain_community.chat_models import ChatOllama
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage
from pydantic import ValidationError

import config
from catalog import LANGUAGE
from models import Difficulty, QuizPayload, QuizQuestion

logger = logging.getLogger(__name__)

QUIZ_QUESTION_COUNT = 3

ANALYSIS_FAILED_MESSAGE = "Analysis failed."
ANALYSIS_ERROR_MESSAGE = "Error analyzing code."
NO_OUTPUT_MESSAGE = "> No output"
EXECUTION_ERROR_MESSAGE = "Error connecting to execution engine."
COMPILE_ERROR_MARKER = "Error:"

CHAT_SYSTEM_PROMPT = f"""You are JavaBot, an AI tutor specialising in {LANGUAGE} programming.

Your goals:
1. Help students understand how and why {LANGUAGE} works (stack vs heap, the JVM, bytecode).
2. Debug snippets the student shares and explain the fix.
3. Teach Socratically: guide the student towards the answer instead of handing it over.

Formatting:
- Use Markdown for all text and fenced code blocks for {LANGUAGE} code.
- Use **bold** for key terms.
- Keep answers short unless the student asks for a deep dive.
- Start definitions with `> **Concept**:` and hints with `> **Tip**:`."""

FENCE_PATTERN = re.compile(r'```(?:xml|svg|json)?')
SVG_PATTERN = re.compile(r'<svg\b.*</svg>', re.IGNORECASE | re.DOTALL)
# Markup that can run code once the SVG is inserted into the page
UNSAFE_SVG_PATTERN = re.compile(
    r"<script\b|<foreignObject\b|\son\w+\s*=|javascript\s*:",
    re.IGNORECASE
)


def create_llm(json_mode: bool = False) -> ChatOllama:
    """Create the Ollama chat model from configuration"""
    try:
        params = dict(
            base_url=config.OLLAMA_BASE_URL,
            model=config.OLLAMA_MODEL,
            temperature=config.QUIZ_TEMPERATURE if json_mode else config.LLM_TEMPERATURE,
            top_k=config.LLM_TOP_K,
            top_p=config.LLM_TOP_P,
        )
        if json_mode:
            params["format"] = "json"
        llm = ChatOllama(**params)
        logger.info(f"Initialized LLM {config.OLLAMA_MODEL} (json_mode={json_mode})")
        return llm
    except Exception as e:
        logger.error(f"Error initializing LLM: {str(e)}", exc_info=True)
        raise


def strip_fences(text: str) -> str:
    return FENCE_PATTERN.sub('', text).strip()


def extract_svg(text: str) -> str:
    """Return the <svg> root element from a model reply, or "" if there is none"""
    match = SVG_PATTERN.search(strip_fences(text))
    if not match:
        return ""
    svg = match.group(0)
    unsafe = UNSAFE_SVG_PATTERN.search(svg)
    if unsafe:
        logger.warning(f"Rejecting SVG containing executable markup: {unsafe.group(0).strip()}")
        return ""
    return svg


def is_compile_error(output: str) -> bool:
    return output.strip().startswith(COMPILE_ERROR_MARKER)


def parse_quiz(text: Optional[str]) -> List[QuizQuestion]:
    """Parse a JSON quiz reply into questions.

    Accepts either {"questions": [...]} or a bare list. Raises ValueError or
    ValidationError on anything malformed.
    """
    if not text or not text.strip():
        raise ValueError("Empty quiz response")

    data = json.loads(strip_fences(text))
    if isinstance(data, list):
        data = {"questions": data}
    payload = QuizPayload.model_validate(data)

    questions = payload.questions
    ids = [q.id for q in questions]
    if len(set(ids)) != len(ids):
        # Answers are keyed by id, so ids must be unique
        logger.warning(f"Duplicate question ids {ids}, renumbering")
        questions = [q.model_copy(update={"id": idx + 1}) for idx, q in enumerate(questions)]
    return questions


class ChatConversation:
    """One model conversation; history only records completed exchanges"""

    def __init__(self, llm: Any, system_prompt: str = CHAT_SYSTEM_PROMPT):
        self.llm = llm
        self.history = [SystemMessage(content=system_prompt)]

    async def stream_reply(self, text: str) -> AsyncIterator[str]:
        messages = self.history + [HumanMessage(content=text)]
        reply = ""
        async for chunk in self.llm.astream(messages):
            if isinstance(chunk.content, str) and chunk.content:
                reply += chunk.content
                yield chunk.content
        self.history.extend([HumanMessage(content=text), AIMessage(content=reply)])


class TutorService:
    """All calls to the tutor model.

    One-shot calls never raise: failures are logged and turned into a
    sentinel string or an empty list. The explanation stream does raise, the
    StreamingSession consuming it owns that failure.
    """

    def __init__(self, llm: Any = None, json_llm: Any = None):
        self.llm = llm if llm is not None else create_llm()
        if json_llm is not None:
            self.json_llm = json_llm
        elif llm is not None:
            self.json_llm = llm
        else:
            self.json_llm = create_llm(json_mode=True)

    async def _ask(self, prompt: str, llm: Any = None) -> str:
        response = await (llm or self.llm).ainvoke([HumanMessage(content=prompt)])
        content = response.content
        return content if isinstance(content, str) else ""

    def create_chat(self) -> ChatConversation:
        return ChatConversation(self.llm)

    async def explain_topic_stream(self, topic_title: str, difficulty: Difficulty) -> AsyncIterator[str]:
        """Stream an explanation of a topic fragment by fragment"""
        level = difficulty.value if isinstance(difficulty, Difficulty) else str(difficulty)
        prompt = f"""
        You are an expert {LANGUAGE} tutor who makes learning visual and professional.
        Explain "{topic_title}" to a {level} level student.

        Formatting rules (follow exactly):
        1. Callout boxes: blockquotes (>) starting with one of these bold labels:
           - `> **Core Concept**:` for the main definition.
           - `> **Real World Analogy**:` for a comparison.
           - `> **Why it Matters**:` for importance.
           - `> **Warning**:` for common mistakes.
           - `> **Pro Tip**:` for best practices.
        2. Use bullet points (-) for lists, short and punchy.
        3. When a structure or flow helps, draw an ASCII diagram inside a code block tagged `diagram`.

        Structure:
        1. Open with a `> **Core Concept**:` block.
        2. Follow with a `> **Real World Analogy**:` block.
        3. `## How it Works`: bullet points.
        4. `## Syntax Blueprint`: the general syntax.
        5. `## Code in Action`: a clean, commented {LANGUAGE} example in a ```java block.
        6. Close with a `> **Pro Tip**:` or `> **Warning**:` block.

        Tone: professional yet accessible, like good bootcamp documentation.
        """

        logger.info(f"Streaming explanation for {topic_title} ({level})")
        messages = [HumanMessage(content=prompt)]
        async for chunk in self.llm.astream(messages):
            if isinstance(chunk.content, str) and chunk.content:
                yield chunk.content

    async def analyze_code(self, code: str) -> str:
        """Critique a snippet: compiles?, predicted output, explanation"""
        try:
            prompt = f"""
            You are a {LANGUAGE} code analyzer. Analyze this snippet:

            ```java
            {code}
            ```

            Provide:
            1. **Compilation Check**: Will it compile? If not, why?
            2. **Output Prediction**: What does it print when run?
            3. **Explanation**: The logic and any pitfalls (exceptions, logic errors).

            Be concise.
            """
            text = await self._ask(prompt)
            logger.debug(f"LLM Response for analysis: {text}")
            return text or ANALYSIS_FAILED_MESSAGE
        except Exception as e:
            logger.error(f"Error analyzing code: {str(e)}", exc_info=True)
            return ANALYSIS_ERROR_MESSAGE

    async def simulate_execution(self, code: str) -> str:
        """Predict the console output of a program"""
        try:
            prompt = f"""
            Act as a {LANGUAGE} console. Run this program in your head and return ONLY
            what would appear in the terminal.

            ```java
            {code}
            ```

            Rules:
            1. If it compiles and runs, show only standard output (System.out.println).
            2. If it does not compile, start with "{COMPILE_ERROR_MARKER} [brief description]".
            3. No markdown fences, preamble or closing remarks. Raw output only.
            """
            text = await self._ask(prompt)
            logger.debug(f"LLM Response for simulated run: {text}")
            return text or NO_OUTPUT_MESSAGE
        except Exception as e:
            logger.error(f"Error simulating code: {str(e)}", exc_info=True)
            return EXECUTION_ERROR_MESSAGE

    async def visualize_code(self, code: str) -> str:
        """Draw the control flow of a program as an SVG flowchart"""
        try:
            prompt = f"""
            You are a software architecture visualizer. Draw a clear SVG flowchart of the
            logic in this {LANGUAGE} code:

            ```java
            {code}
            ```

            SVG requirements:
            1. Dark mode: transparent background (no background rect).
               - Steps: rounded rectangles, fill #1e293b, border #38bdf8.
               - Decisions (if/else): diamonds with border #f97316.
               - Text: #f1f5f9, sans-serif.
               - Arrows: #94a3b8 with clear arrowheads.
            2. Show the flow Start -> logic -> End.
            3. Use a responsive viewBox and keep every label visible.
            4. Return ONLY the raw <svg> element. No markdown fences, no preamble.
            """
            text = await self._ask(prompt)
            svg = extract_svg(text)
            if not svg:
                logger.warning("Visualization reply did not contain an <svg> element")
            return svg
        except Exception as e:
            logger.error(f"Visualization error: {str(e)}", exc_info=True)
            return ""

    async def generate_quiz(self, topic_title: str, difficulty: Difficulty) -> List[QuizQuestion]:
        """Generate multiple-choice questions; [] means generation failed"""
        level = difficulty.value if isinstance(difficulty, Difficulty) else str(difficulty)
        try:
            schema = json.dumps(QuizPayload.model_json_schema(by_alias=True))
            prompt = f"""
            Generate {QUIZ_QUESTION_COUNT} {level} level multiple-choice questions about
            {topic_title} in {LANGUAGE}.

            Respond with JSON only, matching this schema:
            {schema}

            Use ids 1 to {QUIZ_QUESTION_COUNT}. correctAnswerIndex is the zero-based index
            of the right option.
            """
            text = await self._ask(prompt, llm=self.json_llm)
            logger.debug(f"LLM Response for quiz: {text}")
            questions = parse_quiz(text)
            logger.info(f"Generated {len(questions)} quiz questions for {topic_title}")
            return questions
        except (ValueError, ValidationError) as e:
            logger.error(f"Quiz response could not be parsed: {str(e)}")
            return []
        except Exception as e:
            logger.error(f"Error generating quiz: {str(e)}", exc_info=True)
            return []


_service: Optional[TutorService] = None


def get_tutor_service() -> TutorService:
    """Get or create the shared tutor service"""
    global _service
    if _service is None:
        _service = TutorService()
    return _service
