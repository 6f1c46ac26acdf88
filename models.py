from enum import Enum
from typing import List, NamedTuple, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator


class Difficulty(str, Enum):
    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"


class Topic(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    category: str
    description: str


class CodeExample(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: str
    code: str


class ExplanationRequest(NamedTuple):
    """Key into the explanation content cache"""
    topic_id: str
    difficulty: Difficulty


class QuizQuestion(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    question: str
    options: List[str]
    correct_answer_index: int = Field(alias="correctAnswerIndex")
    explanation: str

    @field_validator('options')
    @classmethod
    def validate_options(cls, v):
        if len(v) < 2:
            raise ValueError('A question needs at least two options')
        return v

    @model_validator(mode='after')
    def validate_answer_index(self):
        if not 0 <= self.correct_answer_index < len(self.options):
            raise ValueError(
                f'Correct answer index {self.correct_answer_index} is out of range '
                f'for {len(self.options)} options'
            )
        return self


class QuizPayload(BaseModel):
    questions: List[QuizQuestion]


class ChatRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ChatMessage(BaseModel):
    id: str
    role: ChatRole
    text: str
    streaming: bool = False


class BlockKind(str, Enum):
    PARAGRAPH = "paragraph"
    HEADER = "header"
    LIST_ITEM = "list_item"
    CALLOUT = "callout"
    CODE = "code"
    DIAGRAM = "diagram"
    SPACER = "spacer"


class CalloutKind(str, Enum):
    CONCEPT = "concept"
    ANALOGY = "analogy"
    IMPORTANCE = "importance"
    WARNING = "warning"
    TIP = "tip"
    GENERIC = "generic"


class Span(BaseModel):
    text: str
    bold: bool = False


class RenderBlock(BaseModel):
    kind: BlockKind
    text: str = ""
    spans: List[Span] = Field(default_factory=list)
    level: Optional[int] = None          # headers
    ordered: Optional[bool] = None       # list items
    marker: Optional[str] = None         # literal numeral of ordered items
    callout: Optional[CalloutKind] = None
    language: Optional[str] = None       # code blocks
    complete: bool = True                # False for a fence still being streamed

    @property
    def plain_text(self) -> str:
        if self.spans:
            return ''.join(span.text for span in self.spans)
        return self.text
