from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from examprep.schemas import GradingResult, Question, QuestionKind, QuestionSet  # noqa: E402

BATCH_REPLY = json.dumps(
    {
        "questions": [
            {
                "content": "What is 2 + 2?",
                "options": ["3", "4", "5", ""],
                "correctAnswer": "4",
                "explanation": "Basic arithmetic.",
            },
            {
                "content": "Capital of France?",
                "options": ["Paris", "Rome", "Berlin", "Madrid"],
                "correctAnswer": "Paris",
                "explanation": "",
            },
        ]
    }
)


class FakeLLM:
    """Stand-in for ``services.llm.llm`` that records every call."""

    def __init__(self, *replies: Any) -> None:
        self.replies = list(replies)
        self.calls: list[tuple[list[dict[str, Any]], dict[str, Any]]] = []

    async def __call__(self, messages: list[dict[str, Any]], **kw: Any) -> str:
        self.calls.append((messages, kw))
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, BaseException):
            raise reply
        return reply


class ScriptedLLM(FakeLLM):
    """Answers by structured-output schema name, like the mock mode does."""

    def __init__(self, batch: str = BATCH_REPLY, grading: str | None = None, text: str = "Because it is.") -> None:
        super().__init__(text)
        self.batch = batch
        self.grading = grading or json.dumps({"isCorrect": True, "feedback": "Well argued."})
        self.text = text

    async def __call__(self, messages: list[dict[str, Any]], **kw: Any) -> str:
        self.calls.append((messages, kw))
        name = ((kw.get("response_format") or {}).get("json_schema") or {}).get("name")
        if name == "question_batch":
            return self.batch
        if name == "grading":
            return self.grading
        return self.text


class FakeGateway:
    """Feedback gateway for engine tests; ``gate`` holds replies until set."""

    def __init__(self, grade_correct: bool = True, fail: bool = False) -> None:
        self.grade_correct = grade_correct
        self.fail = fail
        self.gate: asyncio.Event | None = None
        self.explained: list[tuple[str, str]] = []
        self.graded: list[tuple[str, str]] = []

    async def explain_answer(self, question: Question, user_answer: str) -> str:
        self.explained.append((question.id, user_answer))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise RuntimeError("explanation backend down")
        return f"The answer is {question.correct_answer}."

    async def grade_subjective_answer(self, question: Question, user_answer: str) -> GradingResult:
        self.graded.append((question.id, user_answer))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise RuntimeError("grading backend down")
        return GradingResult(is_correct=self.grade_correct, feedback="graded")


def choice(qid: str, answer: str = "B", options: list[str] | None = None, explanation: str | None = None) -> Question:
    return Question(
        id=qid,
        kind=QuestionKind.CHOICE,
        prompt=f"Question {qid}?",
        options=options or ["A", "B", "C", "D"],
        correct_answer=answer,
        explanation=explanation,
    )


def free_text(qid: str, answer: str = "photosynthesis") -> Question:
    return Question(id=qid, kind=QuestionKind.FREE_TEXT, prompt=f"Explain {qid}.", correct_answer=answer)


def make_set(set_id: str = "set-1", questions: list[Question] | None = None, title: str = "Biology") -> QuestionSet:
    return QuestionSet(id=set_id, title=title, description="", created_at=1700000000000, questions=questions or [])


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()
