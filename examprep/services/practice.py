"""Practice session engine: one shuffled quiz attempt over a question set.

A session walks ``preparing -> active(0..n-1) -> finished``; a set without
questions goes straight to ``empty``. ``exit()`` is allowed from every state
and moves to ``exited``. Nothing here writes to storage.

Feedback for a submitted question may arrive later (explanation or grading
requests go through the gateway). Each request is tagged with the attempt
generation and question index at the time it was issued; a result whose tag
no longer matches (the user advanced, restarted or exited) is dropped.
"""

from __future__ import annotations

import asyncio
import math
import random
from dataclasses import dataclass
from enum import Enum
from typing import Protocol, Sequence

from loguru import logger

from ..schemas import GradingResult, Question, QuestionKind
from .storage import new_id

EXPLANATION_FAILED = "Could not load AI explanation."
GRADING_FAILED = "AI Grading failed. Please compare with model answer manually."


class FeedbackGateway(Protocol):
    async def explain_answer(self, question: Question, user_answer: str) -> str: ...
    async def grade_subjective_answer(self, question: Question, user_answer: str) -> GradingResult: ...


class Phase(str, Enum):
    PREPARING = "preparing"
    ACTIVE = "active"
    FINISHED = "finished"
    EMPTY = "empty"
    EXITED = "exited"


@dataclass
class AnswerState:
    """Transient state for the question currently on screen."""

    selected_option: str | None = None
    text_answer: str = ""
    submitted: bool = False
    is_correct: bool | None = None
    feedback: str | None = None
    feedback_pending: bool = False


@dataclass(frozen=True)
class PracticeResult:
    score: int
    total: int

    @property
    def percentage(self) -> int:
        if self.total == 0:
            return 0
        # half-up, so 12.5 shows as 13
        return int(math.floor(100 * self.score / self.total + 0.5))


def shuffled_order(n: int, rng: random.Random) -> list[int]:
    """Uniform permutation of ``range(n)`` (Fisher-Yates)."""
    order = list(range(n))
    for i in range(n - 1, 0, -1):
        j = rng.randrange(i + 1)
        order[i], order[j] = order[j], order[i]
    return order


class PracticeSession:
    def __init__(
        self,
        questions: Sequence[Question],
        gateway: FeedbackGateway,
        *,
        set_id: str = "",
        set_title: str = "",
        rng: random.Random | None = None,
        session_id: str | None = None,
    ) -> None:
        self.id = session_id or new_id()
        self.set_id = set_id
        self.set_title = set_title
        self._questions: tuple[Question, ...] = tuple(questions)
        self._gateway = gateway
        self._rng = rng or random.Random()

        self.phase = Phase.PREPARING
        self.order: tuple[Question, ...] = ()
        self.index = 0
        self.score = 0
        self.answer = AnswerState()

        self._generation = 0
        self._pending: asyncio.Task | None = None

    # ---------- lifecycle ----------
    def start(self) -> Phase:
        """Shuffle the snapshot and enter ``active(0)``, or ``empty``."""
        if self.phase is not Phase.PREPARING:
            return self.phase
        self._begin()
        return self.phase

    def restart(self) -> bool:
        if self.phase is not Phase.FINISHED:
            return False
        self._begin()
        logger.info(f"[practice] session {self.id} restarted")
        return True

    def exit(self) -> None:
        self._invalidate()
        self.phase = Phase.EXITED
        logger.info(f"[practice] session {self.id} exited at {self.index}/{self.total}")

    def _begin(self) -> None:
        self._invalidate()
        self.order = tuple(self._questions[i] for i in shuffled_order(len(self._questions), self._rng))
        self.index = 0
        self.score = 0
        self.answer = AnswerState()
        self.phase = Phase.ACTIVE if self.order else Phase.EMPTY

    def _invalidate(self) -> None:
        self._generation += 1
        self._pending = None

    # ---------- queries ----------
    @property
    def total(self) -> int:
        return len(self.order)

    @property
    def current_question(self) -> Question | None:
        if self.phase is not Phase.ACTIVE or not 0 <= self.index < len(self.order):
            return None
        return self.order[self.index]

    @property
    def is_last(self) -> bool:
        return self.index == len(self.order) - 1

    @property
    def can_submit(self) -> bool:
        question = self.current_question
        if question is None or self.answer.submitted:
            return False
        if question.kind is QuestionKind.CHOICE:
            return bool(self.answer.selected_option)
        return bool(self.answer.text_answer.strip())

    @property
    def result(self) -> PracticeResult | None:
        if self.phase is not Phase.FINISHED:
            return None
        return PracticeResult(score=self.score, total=self.total)

    # ---------- per-question input ----------
    def select_option(self, option: str) -> bool:
        question = self.current_question
        if question is None or self.answer.submitted or question.kind is not QuestionKind.CHOICE:
            return False
        if option not in (question.options or []):
            return False
        self.answer.selected_option = option
        return True

    def type_answer(self, text: str) -> bool:
        question = self.current_question
        if question is None or self.answer.submitted or question.kind is not QuestionKind.FREE_TEXT:
            return False
        self.answer.text_answer = text
        return True

    def submit(self) -> asyncio.Task | None:
        """Lock in the current answer.

        Returns the feedback task when a gateway call was issued, ``None`` when
        feedback resolved on the spot or the submit was inert. Must run inside
        an event loop when a gateway call is needed.
        """
        if not self.can_submit:
            return None
        question = self.current_question
        assert question is not None
        answer = self.answer
        answer.submitted = True
        tag = (self._generation, self.index)

        if question.kind is QuestionKind.CHOICE:
            selected = answer.selected_option or ""
            answer.is_correct = selected == question.correct_answer
            if answer.is_correct:
                self.score += 1
            if answer.is_correct and question.explanation:
                answer.feedback = question.explanation
                return None
            answer.feedback_pending = True
            coro = self._explain(tag, question, selected)
        else:
            answer.feedback_pending = True
            coro = self._grade(tag, question, answer.text_answer)

        self._pending = asyncio.get_running_loop().create_task(coro)
        return self._pending

    async def wait_for_feedback(self) -> None:
        task = self._pending
        if task is not None:
            await task

    def advance(self) -> bool:
        if self.phase is not Phase.ACTIVE or not self.answer.submitted:
            return False
        self._invalidate()
        self.answer = AnswerState()
        if self.index >= len(self.order) - 1:
            self.phase = Phase.FINISHED
            self.index = len(self.order)
            result = self.result
            logger.info(f"[practice] session {self.id} finished {self.score}/{self.total} ({result.percentage}%)")
        else:
            self.index += 1
        return True

    # ---------- async feedback ----------
    def _is_current(self, tag: tuple[int, int]) -> bool:
        return self.phase is Phase.ACTIVE and tag == (self._generation, self.index)

    async def _explain(self, tag: tuple[int, int], question: Question, selected: str) -> None:
        try:
            feedback = await self._gateway.explain_answer(question, selected or "No answer")
        except Exception as e:
            logger.warning(f"[practice] explanation failed for {question.id}: {e!r}")
            feedback = EXPLANATION_FAILED
        if not self._is_current(tag):
            logger.debug(f"[practice] dropping stale explanation for {question.id}")
            return
        self.answer.feedback = feedback
        self.answer.feedback_pending = False

    async def _grade(self, tag: tuple[int, int], question: Question, text: str) -> None:
        try:
            graded = await self._gateway.grade_subjective_answer(question, text)
            is_correct, feedback = graded.is_correct, graded.feedback
        except Exception as e:
            logger.warning(f"[practice] grading failed for {question.id}: {e!r}")
            is_correct, feedback = False, GRADING_FAILED
        if not self._is_current(tag):
            logger.debug(f"[practice] dropping stale grading for {question.id}")
            return
        self.answer.is_correct = is_correct
        if is_correct:
            self.score += 1
        self.answer.feedback = feedback
        self.answer.feedback_pending = False
