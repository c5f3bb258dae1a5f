from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

class QuestionKind(str, Enum):
    CHOICE = "choice"
    FREE_TEXT = "text"

class Question(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    kind: QuestionKind = Field(alias="type")
    prompt: str = Field(alias="content")
    options: Optional[List[str]] = None
    correct_answer: str = Field(alias="correctAnswer")
    explanation: Optional[str] = None

class QuestionSet(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    description: str = ""
    created_at: int = Field(alias="createdAt")
    questions: List[Question] = Field(default_factory=list)

class SetSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    description: str = ""
    created_at: int = Field(alias="createdAt")
    question_count: int = Field(alias="questionCount")

# ---------- request bodies ----------
class NewSet(BaseModel):
    title: str
    description: str = ""

class QuestionDraft(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    kind: QuestionKind = Field(QuestionKind.CHOICE, alias="type")
    prompt: str = Field("", alias="content")
    options: List[str] = Field(default_factory=list)
    correct_answer: str = Field("", alias="correctAnswer")
    explanation: Optional[str] = None

class GenerateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    source_text: str = Field(alias="sourceText")
    count: Optional[int] = None
    kind: QuestionKind = Field(QuestionKind.CHOICE, alias="type")

class SelectOption(BaseModel):
    option: str

class TypedAnswer(BaseModel):
    text: str

# ---------- AI wire formats ----------
class GeneratedQuestion(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    content: str
    options: List[str] = Field(default_factory=list)
    correct_answer: str = Field(alias="correctAnswer")
    explanation: str = ""

class GeneratedBatch(BaseModel):
    questions: List[GeneratedQuestion]

class GradingResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_correct: bool = Field(alias="isCorrect")
    feedback: str

# ---------- practice views ----------
class QuestionPrompt(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    kind: QuestionKind = Field(alias="type")
    prompt: str = Field(alias="content")
    options: Optional[List[str]] = None
    # revealed once the question has been submitted
    correct_answer: Optional[str] = Field(None, alias="correctAnswer")

class AnswerView(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    selected_option: Optional[str] = Field(None, alias="selectedOption")
    text_answer: str = Field("", alias="textAnswer")
    submitted: bool = False
    is_correct: Optional[bool] = Field(None, alias="isCorrect")
    feedback: Optional[str] = None
    feedback_pending: bool = Field(False, alias="feedbackPending")

class PracticeResultView(BaseModel):
    score: int
    total: int
    percentage: int

class PracticeView(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    set_id: str = Field(alias="setId")
    set_title: str = Field(alias="setTitle")
    phase: str
    index: int
    total: int
    score: int
    question: Optional[QuestionPrompt] = None
    answer: Optional[AnswerView] = None
    result: Optional[PracticeResultView] = None

class ShellView(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    view: str
    active_set_id: Optional[str] = Field(None, alias="activeSetId")
    practice_id: Optional[str] = Field(None, alias="practiceId")
    set_count: int = Field(alias="setCount")
