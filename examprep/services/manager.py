from __future__ import annotations

import time
from typing import Callable, List, Optional

from loguru import logger

from ..errors import InvalidEntryError
from ..schemas import Question, QuestionDraft, QuestionKind, QuestionSet
from .gateway import AIGateway
from .pdf import extract_pdf_text
from .storage import SetStore, new_id

OnUpdate = Callable[[QuestionSet], None]
OnDelete = Callable[[str], None]


def _now_ms() -> int:
    return int(time.time() * 1000)


class QuestionSetManager:
    """Mutations over question sets; every change is persisted and reported."""

    def __init__(
        self,
        store: SetStore,
        gateway: AIGateway,
        on_update: Optional[OnUpdate] = None,
        on_delete: Optional[OnDelete] = None,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.on_update = on_update
        self.on_delete = on_delete

    def _commit(self, question_set: QuestionSet) -> QuestionSet:
        self.store.save_set(question_set)
        if self.on_update is not None:
            self.on_update(question_set)
        return question_set

    def get_set(self, set_id: str) -> QuestionSet | None:
        return next((s for s in self.store.list_sets() if s.id == set_id), None)

    # ---------- sets ----------
    def create_set(self, title: str, description: str = "") -> QuestionSet:
        if not title.strip():
            raise InvalidEntryError("Set title is required.")
        created = QuestionSet(
            id=new_id(),
            title=title.strip(),
            description=description.strip(),
            created_at=_now_ms(),
            questions=[],
        )
        logger.info(f"[sets] created set {created.id} {created.title!r}")
        return self._commit(created)

    def delete_set(self, set_id: str) -> None:
        self.store.delete_set(set_id)
        logger.info(f"[sets] deleted set {set_id}")
        if self.on_delete is not None:
            self.on_delete(set_id)

    # ---------- questions ----------
    def add_question(self, question_set: QuestionSet, draft: QuestionDraft) -> QuestionSet:
        if not draft.prompt.strip() or not draft.correct_answer.strip():
            raise InvalidEntryError("Question and correct answer are required.")
        options = None
        if draft.kind is QuestionKind.CHOICE:
            options = [opt for opt in draft.options if opt.strip()]
            if draft.correct_answer not in options:
                logger.warning(f"[sets] correct answer is not one of the options: {draft.prompt[:60]!r}")
        question = Question(
            id=new_id(),
            kind=draft.kind,
            prompt=draft.prompt,
            options=options,
            correct_answer=draft.correct_answer,
            explanation=draft.explanation or None,
        )
        updated = question_set.model_copy(update={"questions": [*question_set.questions, question]})
        return self._commit(updated)

    def delete_question(self, question_set: QuestionSet, question_id: str) -> QuestionSet:
        kept = [q for q in question_set.questions if q.id != question_id]
        updated = question_set.model_copy(update={"questions": kept})
        return self._commit(updated)

    def append_questions(self, question_set: QuestionSet, questions: List[Question]) -> QuestionSet:
        if not questions:
            return question_set
        updated = question_set.model_copy(update={"questions": [*question_set.questions, *questions]})
        logger.info(f"[sets] appended {len(questions)} generated question(s) to {question_set.id}")
        return self._commit(updated)

    # GenerationError propagates from the three helpers below; nothing is appended then.
    async def append_generated(
        self, question_set: QuestionSet, source_text: str, count: int, kind: QuestionKind = QuestionKind.CHOICE
    ) -> QuestionSet:
        questions = await self.gateway.generate_questions(source_text, count, kind)
        return self.append_questions(question_set, questions)

    async def append_generated_from_image(
        self,
        question_set: QuestionSet,
        image_bytes: bytes,
        mime_type: str,
        count: int,
        kind: QuestionKind = QuestionKind.CHOICE,
    ) -> QuestionSet:
        questions = await self.gateway.generate_questions_from_image(image_bytes, mime_type, count, kind)
        return self.append_questions(question_set, questions)

    async def append_generated_from_pdf(
        self, question_set: QuestionSet, pdf_bytes: bytes, count: int, kind: QuestionKind = QuestionKind.CHOICE
    ) -> QuestionSet:
        text = extract_pdf_text(pdf_bytes)
        return await self.append_generated(question_set, text, count, kind)
