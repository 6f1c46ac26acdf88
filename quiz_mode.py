import logging
from enum import Enum
from typing import Dict, List, Optional

from catalog import get_topic
from models import Difficulty, QuizQuestion

logger = logging.getLogger(__name__)

FALLBACK_TOPIC_TITLE = "General Java"


class QuizStatus(str, Enum):
    IDLE = "idle"            # nothing requested yet
    LOADING = "loading"
    FAILED = "failed"        # generation returned no questions
    ANSWERING = "answering"
    SUBMITTED = "submitted"


class QuizSession:
    def __init__(self):
        self.questions: List[QuizQuestion] = []
        self.answers: Dict[int, int] = {}
        self.submitted = False
        self.status = QuizStatus.IDLE
        self.topic_title: Optional[str] = None
        self.difficulty: Optional[Difficulty] = None

    def reset(self) -> None:
        """Discard questions and all answer state"""
        self.questions = []
        self.answers = {}
        self.submitted = False

    async def start(self, service, topic_id: str, difficulty: Difficulty) -> List[QuizQuestion]:
        """Request a new quiz, discarding any previous one"""
        topic = get_topic(topic_id)
        self.topic_title = topic.title if topic else FALLBACK_TOPIC_TITLE
        self.difficulty = difficulty
        self.reset()
        self.status = QuizStatus.LOADING

        questions = await service.generate_quiz(self.topic_title, difficulty)
        self.questions = list(questions)
        if self.questions:
            self.status = QuizStatus.ANSWERING
        else:
            logger.warning(f"No quiz generated for {self.topic_title} ({difficulty})")
            self.status = QuizStatus.FAILED
        return self.questions

    def get_question(self, question_id: int) -> Optional[QuizQuestion]:
        for question in self.questions:
            if question.id == question_id:
                return question
        return None

    def select(self, question_id: int, option_index: int) -> bool:
        """Record an answer; ignored once submitted or when out of range"""
        if self.submitted:
            return False
        question = self.get_question(question_id)
        if question is None or not 0 <= option_index < len(question.options):
            return False
        self.answers[question_id] = option_index
        return True

    @property
    def ready_to_submit(self) -> bool:
        return (not self.submitted and bool(self.questions)
                and all(q.id in self.answers for q in self.questions))

    def submit(self) -> bool:
        if not self.ready_to_submit:
            return False
        self.submitted = True
        self.status = QuizStatus.SUBMITTED
        logger.info(f"Quiz submitted: {self.score()}/{len(self.questions)}")
        return True

    def score(self) -> int:
        return sum(1 for q in self.questions if self.answers.get(q.id) == q.correct_answer_index)

    def is_correct(self, question_id: int) -> bool:
        question = self.get_question(question_id)
        return question is not None and self.answers.get(question_id) == question.correct_answer_index
