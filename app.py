import html
import logging
import gradio as gr
from typing import Any, AsyncGenerator, Dict, List, Optional, Tuple

import config
from catalog import CATEGORY_ICONS, CODE_EXAMPLES, LANGUAGE, TOPICS, categories, get_example, get_topic
from code_sharing import build_share_url, decode_share_token
from content_renderer import render_chat_html, render_html
from models import Difficulty, ExplanationRequest
from progress_tracker import ProgressTracker
from quiz_mode import QuizSession, QuizStatus
from streaming import EXPLANATION_ERROR_MESSAGE, ChatSession, StreamingSession
from tutor_service import QUIZ_QUESTION_COUNT, TutorService, get_tutor_service, is_compile_error

# Configure logging
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

APP_VERSION = "1.4.0"
THEMES = ["GitHub Dark", "Midnight", "Light"]


class SessionState:
    def __init__(self, service: Optional[TutorService] = None, storage_dir: str = config.PROGRESS_DIR):
        self.service = service or get_tutor_service()
        self.explainer = StreamingSession(self._explanation_source)
        self.chat = ChatSession(self.service.create_chat)
        self.quiz = QuizSession()
        self.progress = ProgressTracker(storage_dir)
        self.selected_topic_id: Optional[str] = None

    def _explanation_source(self, request: ExplanationRequest):
        topic = get_topic(request.topic_id)
        title = topic.title if topic else request.topic_id
        return self.service.explain_topic_stream(title, request.difficulty)


state = SessionState()


# ---------------------------------------------------------------------------
# Topic explorer
# ---------------------------------------------------------------------------

def topic_choices() -> List[Tuple[str, str]]:
    choices = []
    for category in categories():
        icon = CATEGORY_ICONS.get(category, "")
        for topic in TOPICS:
            if topic.category == category:
                choices.append((f"{icon} {category} · {topic.title}", topic.id))
    return choices


def format_topic_header(topic_id: Optional[str]) -> str:
    """Banner shown above an explanation"""
    topic = get_topic(topic_id)
    if not topic:
        return f"""<div class="jt-welcome">
<h2>Welcome to {LANGUAGE} Tutorial</h2>
<p>Your personalized path to mastering {LANGUAGE}. Pick a topic to begin.</p>
</div>"""
    icon = CATEGORY_ICONS.get(topic.category, "")
    return f"""<div class="jt-banner">
<span class="jt-banner-icon">{icon}</span>
<div><span class="jt-banner-category">{html.escape(topic.category)}</span>
<h1>{html.escape(topic.title)}</h1>
<p>{html.escape(topic.description)}</p></div>
</div>"""


def format_progress() -> str:
    completed = len(state.progress.completed)
    percentage = state.progress.progress_percentage(len(TOPICS))
    return f"**Course progress:** {percentage}% ({completed}/{len(TOPICS)} topics completed)"


def completion_label(topic_id: Optional[str]) -> str:
    if topic_id and state.progress.is_completed(topic_id):
        return "✅ Topic Completed"
    return "Mark as Complete"


def format_explanation(snapshot: Dict[str, Any]) -> str:
    """HTML for the current explanation state"""
    text = snapshot.get("text") or ""
    if not text and snapshot.get("streaming"):
        return '<div class="jt-skeleton">Generating lesson...</div>'

    body = render_html(text)
    if snapshot.get("streaming"):
        body += '<span class="jt-cursor"></span>'
    if snapshot.get("error"):
        body += f'<div class="jt-callout jt-callout-warning">{html.escape(EXPLANATION_ERROR_MESSAGE)}</div>'
    return body


def explanation_status(snapshot: Dict[str, Any]) -> str:
    if snapshot.get("error"):
        return "⚠️ The lesson could not be completed. Select the topic again to retry."
    if snapshot.get("streaming"):
        return "✍️ Writing lesson..."
    if snapshot.get("cached"):
        return "Loaded from this session's cache."
    return "Lesson ready."


async def explain_topic(topic_id: Optional[str], difficulty: str) -> AsyncGenerator[Tuple[str, str, str, Any], None]:
    """Stream the explanation for a topic at a difficulty"""
    if not topic_id:
        yield format_topic_header(None), "", "", gr.update(visible=False)
        return

    try:
        state.selected_topic_id = topic_id
        request = ExplanationRequest(topic_id, Difficulty(difficulty))
        header = format_topic_header(topic_id)
        async for snapshot in state.explainer.run(request):
            yield (
                header,
                format_explanation(snapshot),
                explanation_status(snapshot),
                gr.update(value=completion_label(topic_id), visible=True)
            )
    except Exception as e:
        logger.error(f"Error explaining topic {topic_id}: {str(e)}", exc_info=True)
        yield format_topic_header(topic_id), "", f"Error: {str(e)}", gr.update(visible=False)


def toggle_complete() -> Tuple[str, str]:
    topic_id = state.selected_topic_id
    if not topic_id:
        return completion_label(None), format_progress()
    try:
        state.progress.toggle(topic_id)
    except Exception as e:
        logger.error(f"Error toggling completion for {topic_id}: {str(e)}")
    return completion_label(topic_id), format_progress()


# ---------------------------------------------------------------------------
# Code lab
# ---------------------------------------------------------------------------

def load_example(example_id: Optional[str]) -> Tuple[Any, str, str, str]:
    example = get_example(example_id)
    if not example:
        return gr.update(), "", "", ""
    return example.code, "", "", f"Loaded example: {example.title}"


async def run_code(code: str) -> Tuple[str, str]:
    """Simulate running the program"""
    if not code or not code.strip():
        return "", "Write some code first."
    output = await state.service.simulate_execution(code)
    status = "❌ Compilation failed" if is_compile_error(output) else "✅ Simulated run finished"
    return output, status


async def analyze_code(code: str) -> Tuple[str, str]:
    if not code or not code.strip():
        return "", "Write some code first."
    analysis = await state.service.analyze_code(code)
    return render_html(analysis), "Analysis ready."


async def visualize_code(code: str) -> Tuple[str, str]:
    if not code or not code.strip():
        return "", "Write some code first."
    svg = await state.service.visualize_code(code)
    if not svg:
        return '<div class="jt-empty">Could not generate a flowchart for this code.</div>', "Visualization failed."
    return f'<div class="jt-flowchart">{svg}</div>', "Flowchart ready."


def share_code(code: str) -> Tuple[str, str]:
    if not code or not code.strip():
        return "", "Nothing to share yet."
    return build_share_url(code, config.APP_PUBLIC_URL), "Share link created. Copy it from the box above."


def load_shared_code(token: str, current_code: str) -> Tuple[str, str]:
    """Load code from a ?code= link; keep the current code if the token is bad"""
    if not token:
        return current_code, ""
    code = decode_share_token(token)
    if code is None:
        return current_code, "The shared link could not be read."
    logger.info("Loaded shared code from link")
    return code, "Loaded shared code."


# Reads ?code= and removes it from the address bar without a reload
READ_SHARE_PARAM_JS = """
(token, code) => {
    const params = new URLSearchParams(window.location.search);
    const shared = params.get('code');
    if (shared) {
        window.history.replaceState({}, '', window.location.pathname);
    }
    return [shared || '', code];
}
"""


# ---------------------------------------------------------------------------
# Quiz
# ---------------------------------------------------------------------------

def _question_updates() -> List[Any]:
    updates = []
    quiz = state.quiz
    for position in range(QUIZ_QUESTION_COUNT):
        if position < len(quiz.questions):
            question = quiz.questions[position]
            updates.append(gr.update(
                label=f"Q{position + 1}. {question.question}",
                choices=question.options,
                value=quiz.answers.get(question.id),
                visible=True,
                interactive=not quiz.submitted
            ))
        else:
            updates.append(gr.update(choices=[], value=None, visible=False))
    return updates


def format_quiz_status() -> str:
    quiz = state.quiz
    if quiz.status == QuizStatus.IDLE:
        return "Select a topic and difficulty to generate a quiz."
    if quiz.status == QuizStatus.FAILED:
        return "⚠️ No quiz could be generated. Try again in a moment."
    if quiz.status == QuizStatus.SUBMITTED:
        return f"**Score: {quiz.score()} / {len(quiz.questions)}**"
    return f"{quiz.topic_title} · {quiz.difficulty.value if quiz.difficulty else ''}: answer every question, then submit."


def format_quiz_results() -> str:
    quiz = state.quiz
    if not quiz.submitted:
        return ""
    rows = []
    for position, question in enumerate(quiz.questions):
        mark = "✅" if quiz.is_correct(question.id) else "❌"
        correct = question.options[question.correct_answer_index]
        rows.append(f"""<div class="jt-quiz-result">
<p>{mark} <strong>Q{position + 1}.</strong> Correct answer: {html.escape(correct)}</p>
<p class="jt-quiz-explanation"><strong>Explanation:</strong> {html.escape(question.explanation)}</p>
</div>""")
    return ''.join(rows)


async def start_quiz(topic_id: str, difficulty: str) -> List[Any]:
    """Generate a fresh quiz, dropping any previous answers"""
    try:
        await state.quiz.start(state.service, topic_id, Difficulty(difficulty))
    except Exception as e:
        logger.error(f"Error starting quiz: {str(e)}", exc_info=True)
        state.quiz.reset()
        state.quiz.status = QuizStatus.FAILED
    return [format_quiz_status(), *_question_updates(), gr.update(visible=False), "",
            gr.update(value="New Quiz" if state.quiz.questions else "Start Quiz")]


def make_answer_handler(position: int):
    def select_answer(option_index: Optional[int]):
        quiz = state.quiz
        if option_index is not None and position < len(quiz.questions):
            quiz.select(quiz.questions[position].id, option_index)
        return gr.update(visible=quiz.ready_to_submit)
    return select_answer


def submit_quiz() -> List[Any]:
    state.quiz.submit()
    return [format_quiz_status(), *_question_updates(), gr.update(visible=False), format_quiz_results()]


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------

async def send_chat(message: str) -> AsyncGenerator[Tuple[str, str], None]:
    if not message or not message.strip() or state.chat.busy:
        yield render_chat_html(state.chat.messages), message
        return
    try:
        async for messages in state.chat.send(message):
            yield render_chat_html(messages), ""
    except Exception as e:
        logger.error(f"Error in send_chat: {str(e)}", exc_info=True)
        yield render_chat_html(state.chat.messages), ""


def clear_chat() -> str:
    state.chat.clear()
    return render_chat_html(state.chat.messages)


# ---------------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------------

APPLY_THEME_JS = """
(theme) => {
    const themes = {"Midnight": "midnight", "Light": "light"};
    const value = themes[theme];
    if (value) {
        document.documentElement.setAttribute('data-theme', value);
    } else {
        document.documentElement.removeAttribute('data-theme');
    }
    return theme;
}
"""

CSS = """
:root { --jt-text: #e6edf3; --jt-muted: #8b949e; --jt-surface: #161b22; --jt-border: #30363d; --jt-accent: #58a6ff; --jt-orange: #f89820; }
[data-theme='midnight'] { --jt-text: #f1f5f9; --jt-muted: #94a3b8; --jt-surface: #1e293b; --jt-border: #334155; --jt-accent: #38bdf8; }
[data-theme='light'] { --jt-text: #1f2328; --jt-muted: #59636e; --jt-surface: #f6f8fa; --jt-border: #d0d7de; --jt-accent: #0969da; }
.jt-content, .jt-chat { color: var(--jt-text); line-height: 1.7; }
.jt-spacer { height: 0.75rem; }
.jt-paragraph { margin: 0; white-space: pre-wrap; }
.jt-header { margin: 1.5rem 0 0.75rem; }
.jt-h2 { border-bottom: 1px solid var(--jt-border); padding-bottom: 0.4rem; }
.jt-list-item { display: flex; gap: 0.75rem; margin: 0 0 0.5rem 0.5rem; }
.jt-bullet { width: 6px; height: 6px; margin-top: 0.7rem; border-radius: 50%; background: var(--jt-accent); flex-shrink: 0; }
.jt-marker { font-family: monospace; font-weight: bold; color: var(--jt-accent); min-width: 1.5rem; }
.jt-callout { display: flex; gap: 1rem; margin: 1rem 0; padding: 1rem 1.25rem; border-radius: 0.75rem; border-left: 4px solid var(--jt-border); background: var(--jt-surface); }
.jt-callout-concept { border-color: #3b82f6; }
.jt-callout-analogy { border-color: var(--jt-orange); font-style: italic; }
.jt-callout-importance { border-color: #a855f7; }
.jt-callout-warning { border-color: #ef4444; }
.jt-callout-tip { border-color: #22c55e; }
.jt-callout-generic { border-left-width: 2px; color: var(--jt-muted); font-style: italic; }
.jt-code, .jt-diagram { border: 1px solid var(--jt-border); border-radius: 0.5rem; margin: 1rem 0; overflow-x: auto; }
.jt-code-header { padding: 0.3rem 1rem; font-size: 0.75rem; color: var(--jt-muted); background: var(--jt-surface); border-bottom: 1px solid var(--jt-border); }
.jt-code pre, .jt-diagram pre { margin: 0; padding: 1rem; white-space: pre; }
.jt-diagram { text-align: center; }
.jt-diagram-caption { font-size: 0.65rem; letter-spacing: 0.2em; text-transform: uppercase; color: var(--jt-muted); padding-bottom: 0.5rem; }
.jt-cursor { display: inline-block; width: 0.5rem; height: 1.1rem; background: var(--jt-accent); animation: jt-blink 1s infinite; vertical-align: middle; }
@keyframes jt-blink { 50% { opacity: 0; } }
.jt-msg { margin: 0.5rem 0; padding: 0.75rem 1rem; border-radius: 1rem; max-width: 85%; }
.jt-msg-user { margin-left: auto; background: var(--jt-accent); color: #000; white-space: pre-wrap; }
.jt-msg-assistant { background: var(--jt-surface); border: 1px solid var(--jt-border); }
.jt-banner { display: flex; gap: 1.5rem; align-items: center; padding: 1.5rem 2rem; border-radius: 1rem; background: linear-gradient(90deg, #f97316, #ef4444); color: #fff; }
.jt-banner-icon { font-size: 3rem; }
.jt-banner-category { font-size: 0.7rem; text-transform: uppercase; letter-spacing: 0.2em; }
.jt-flowchart svg { max-width: 100%; height: auto; }
"""


def create_interface():
    """Create the Gradio interface"""
    with gr.Blocks(title=f"{LANGUAGE} Tutorial", css=CSS) as app:
        gr.Markdown(f"""
        # ☕ {LANGUAGE} Tutorial
        AI-generated lessons, a simulated playground and quizzes.
        """)

        with gr.Tab("Learn"):
            with gr.Row():
                with gr.Column(scale=1):
                    progress_output = gr.Markdown(format_progress())
                    topic_input = gr.Dropdown(
                        choices=topic_choices(),
                        value=None,
                        label="Course Map",
                        interactive=True
                    )
                    difficulty_input = gr.Radio(
                        choices=[d.value for d in Difficulty],
                        value=Difficulty.BEGINNER.value,
                        label="Difficulty"
                    )
                with gr.Column(scale=3):
                    header_output = gr.HTML(format_topic_header(None))
                    lesson_status = gr.Markdown("")
                    lesson_output = gr.HTML("")
                    complete_btn = gr.Button("Mark as Complete", visible=False)

        with gr.Tab("Playground"):
            with gr.Row():
                with gr.Column(scale=1):
                    example_input = gr.Dropdown(
                        choices=[(e.title, e.id) for e in CODE_EXAMPLES],
                        value=CODE_EXAMPLES[0].id,
                        label="Examples"
                    )
                    share_output = gr.Textbox(label="Share Link", interactive=False)
                with gr.Column(scale=3):
                    code_input = gr.Textbox(
                        value=CODE_EXAMPLES[0].code,
                        label="Main.java",
                        lines=18,
                        max_lines=40
                    )
                    with gr.Row():
                        run_btn = gr.Button("▶ Run", variant="primary")
                        analyze_btn = gr.Button("Analyze")
                        visualize_btn = gr.Button("Visualize")
                        share_btn = gr.Button("Share")
                        clear_btn = gr.Button("Clear")
                    lab_status = gr.Markdown("")
                    with gr.Tab("Console"):
                        console_output = gr.Textbox(label="Output", lines=8, interactive=False)
                    with gr.Tab("Analysis"):
                        analysis_output = gr.HTML("")
                    with gr.Tab("Flowchart"):
                        flowchart_output = gr.HTML("")
            share_token = gr.Textbox(visible=False)

        with gr.Tab("Quiz"):
            with gr.Row():
                quiz_topic_input = gr.Dropdown(
                    choices=[(t.title, t.id) for t in TOPICS],
                    value=TOPICS[0].id,
                    label="Topic"
                )
                quiz_difficulty_input = gr.Dropdown(
                    choices=[d.value for d in Difficulty],
                    value=Difficulty.BEGINNER.value,
                    label="Difficulty"
                )
                quiz_start_btn = gr.Button("Start Quiz", variant="primary")
            quiz_status = gr.Markdown(format_quiz_status())
            question_inputs = [
                gr.Radio(choices=[], type="index", visible=False)
                for _ in range(QUIZ_QUESTION_COUNT)
            ]
            quiz_submit_btn = gr.Button("Submit Answers", visible=False)
            quiz_results = gr.HTML("")

        with gr.Accordion("💬 Ask JavaBot", open=False):
            chat_output = gr.HTML(render_chat_html(state.chat.messages))
            with gr.Row():
                chat_input = gr.Textbox(
                    placeholder=f"Ask about {LANGUAGE}...",
                    show_label=False,
                    scale=4
                )
                chat_send_btn = gr.Button("Send", scale=1)
                chat_clear_btn = gr.Button("Clear Chat", scale=1)
            gr.Markdown("AI can make mistakes. Verify critical code.")

        with gr.Accordion("⚙️ Settings", open=False):
            theme_input = gr.Radio(choices=THEMES, value=THEMES[0], label="Theme")
            gr.Markdown(f"{LANGUAGE} Tutorial v{APP_VERSION} • AI Chat Enabled")

        # Event handlers
        lesson_outputs = [header_output, lesson_output, lesson_status, complete_btn]
        topic_input.change(
            fn=explain_topic,
            inputs=[topic_input, difficulty_input],
            outputs=lesson_outputs,
            concurrency_limit=None
        )
        difficulty_input.change(
            fn=explain_topic,
            inputs=[topic_input, difficulty_input],
            outputs=lesson_outputs,
            concurrency_limit=None
        )
        complete_btn.click(
            fn=toggle_complete,
            inputs=[],
            outputs=[complete_btn, progress_output]
        )

        example_input.change(
            fn=load_example,
            inputs=[example_input],
            outputs=[code_input, console_output, analysis_output, lab_status]
        )
        run_btn.click(fn=run_code, inputs=[code_input], outputs=[console_output, lab_status])
        analyze_btn.click(fn=analyze_code, inputs=[code_input], outputs=[analysis_output, lab_status])
        visualize_btn.click(fn=visualize_code, inputs=[code_input], outputs=[flowchart_output, lab_status])
        share_btn.click(fn=share_code, inputs=[code_input], outputs=[share_output, lab_status])
        clear_btn.click(fn=lambda: "", inputs=[], outputs=[code_input])

        quiz_start_btn.click(
            fn=start_quiz,
            inputs=[quiz_topic_input, quiz_difficulty_input],
            outputs=[quiz_status, *question_inputs, quiz_submit_btn, quiz_results, quiz_start_btn]
        )
        for position, question_input in enumerate(question_inputs):
            question_input.change(
                fn=make_answer_handler(position),
                inputs=[question_input],
                outputs=[quiz_submit_btn]
            )
        quiz_submit_btn.click(
            fn=submit_quiz,
            inputs=[],
            outputs=[quiz_status, *question_inputs, quiz_submit_btn, quiz_results]
        )

        chat_send_btn.click(
            fn=send_chat,
            inputs=[chat_input],
            outputs=[chat_output, chat_input],
            concurrency_limit=None
        )
        chat_input.submit(
            fn=send_chat,
            inputs=[chat_input],
            outputs=[chat_output, chat_input],
            concurrency_limit=None
        )
        chat_clear_btn.click(fn=clear_chat, inputs=[], outputs=[chat_output])

        theme_input.change(fn=None, inputs=[theme_input], outputs=[], js=APPLY_THEME_JS)

        app.load(
            fn=load_shared_code,
            inputs=[share_token, code_input],
            outputs=[code_input, lab_status],
            js=READ_SHARE_PARAM_JS
        )

    return app


if __name__ == "__main__":
    app = create_interface()
    app.queue()
    app.launch(server_port=config.SERVER_PORT, show_error=True)
