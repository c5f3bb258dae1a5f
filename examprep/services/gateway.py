"""Generation/grading boundary over the chat-completions call in ``llm``."""

from __future__ import annotations

import base64
from typing import Awaitable, Callable, List

from loguru import logger
from openai import APIError, AuthenticationError, RateLimitError

from ..errors import ExplanationError, GenerationError, GradingError
from ..schemas import GeneratedQuestion, GradingResult, Question, QuestionKind
from ..settings import settings
from .llm import llm
from .parse import parse_grading, parse_questions
from .storage import new_id

LLM = Callable[..., Awaitable[str]]

PROFESSOR = "You are a strict and helpful professor preparing exam questions."

EXPLANATION_FALLBACK = "Could not retrieve explanation at this time."
NO_EXPLANATION = "No explanation available."
GRADING_FALLBACK = "AI grading failed."

QUESTION_BATCH_FORMAT = {
    "type": "json_schema",
    "json_schema": {
        "name": "question_batch",
        "strict": True,
        "schema": {
            "type": "object",
            "properties": {
                "questions": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "content": {"type": "string", "description": "The question text"},
                            "options": {
                                "type": "array",
                                "items": {"type": "string"},
                                "description": "Array of 4 possible options (only if multiple choice, else empty)",
                            },
                            "correctAnswer": {
                                "type": "string",
                                "description": "The correct answer text exactly matching one of the options or the model answer",
                            },
                            "explanation": {
                                "type": "string",
                                "description": "Brief explanation of why this answer is correct",
                            },
                        },
                        "required": ["content", "options", "correctAnswer", "explanation"],
                        "additionalProperties": False,
                    },
                }
            },
            "required": ["questions"],
            "additionalProperties": False,
        },
    },
}

GRADING_FORMAT = {
    "type": "json_schema",
    "json_schema": {
        "name": "grading",
        "strict": True,
        "schema": {
            "type": "object",
            "properties": {
                "isCorrect": {"type": "boolean"},
                "feedback": {"type": "string"},
            },
            "required": ["isCorrect", "feedback"],
            "additionalProperties": False,
        },
    },
}


def _generation_error(exc: Exception) -> GenerationError:
    if isinstance(exc, AuthenticationError):
        return GenerationError("OpenAI auth failed. Check OPENAI_API_KEY.", 401)
    if isinstance(exc, RateLimitError):
        return GenerationError("OpenAI quota/rate limit exceeded.", 429)
    if isinstance(exc, APIError):
        return GenerationError(f"OpenAI API error: {getattr(exc, 'message', str(exc))}", 502)
    return GenerationError("Failed to generate questions. Please try again.", 502)


def _question_brief(count: int, kind: QuestionKind) -> str:
    label = "multiple choice" if kind is QuestionKind.CHOICE else "short answer"
    return f"Generate {count} {label} questions"


class AIGateway:
    """Question generation, answer explanation and subjective grading.

    Every operation is one request/response round trip: no retries, no cache.
    Generation failures raise :class:`GenerationError`; explanation and
    grading never raise and fall back to fixed messages instead.
    """

    def __init__(self, llm: LLM = llm, *, max_source_chars: int | None = None):
        self._llm = llm
        self.max_source_chars = max_source_chars or settings.MAX_SOURCE_CHARS

    async def generate_questions(
        self, source_text: str, count: int = 5, kind: QuestionKind = QuestionKind.CHOICE
    ) -> List[Question]:
        if not source_text.strip():
            return []
        kind = QuestionKind(kind)
        prompt = (
            f"{_question_brief(count, kind)} based on the following text.\n\n"
            f"Text content:\n\"{source_text[:self.max_source_chars]}\"\n\n"
            "Ensure the questions are suitable for a final exam review."
        )
        return await self._generate(prompt, count, kind)

    async def generate_questions_from_image(
        self, image_bytes: bytes, mime_type: str, count: int = 5, kind: QuestionKind = QuestionKind.CHOICE
    ) -> List[Question]:
        if not image_bytes:
            return []
        kind = QuestionKind(kind)
        prompt = (
            f"{_question_brief(count, kind)} based on the content of the attached image "
            "(notes, slides or a textbook page).\n\n"
            "Ensure the questions are suitable for a final exam review."
        )
        data_url = f"data:{mime_type};base64,{base64.b64encode(image_bytes).decode('ascii')}"
        return await self._generate(prompt, count, kind, image_url=data_url)

    async def _generate(self, prompt: str, count: int, kind: QuestionKind, image_url: str | None = None) -> List[Question]:
        content: object = prompt
        if image_url is not None:
            content = [
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": image_url}},
            ]
        messages = [
            {"role": "system", "content": PROFESSOR},
            {"role": "user", "content": content},
        ]
        try:
            raw = await self._llm(
                messages,
                max_tokens=max(1000, 300 * count),
                temperature=0.2,
                response_format=QUESTION_BATCH_FORMAT,
            )
            batch = parse_questions(raw)
        except Exception as e:
            logger.warning(f"[gateway] generation failed: {e!r}")
            raise _generation_error(e) from e

        questions = [self._to_question(item, kind) for item in batch.questions]
        logger.info(f"[gateway] generated {len(questions)} {kind.value} question(s)")
        return questions

    @staticmethod
    def _to_question(item: GeneratedQuestion, kind: QuestionKind) -> Question:
        options = None
        if kind is QuestionKind.CHOICE:
            options = [opt for opt in item.options if opt.strip()]
            if item.correct_answer not in options:
                logger.warning(f"[gateway] generated answer not among options: {item.content[:60]!r}")
        return Question(
            id=new_id(),
            kind=kind,
            prompt=item.content,
            options=options,
            correct_answer=item.correct_answer,
            explanation=item.explanation or None,
        )

    async def explain_answer(self, question: Question, user_answer: str) -> str:
        try:
            return await self._explain(question, user_answer)
        except ExplanationError as e:
            logger.warning(f"[gateway] {e}")
            return EXPLANATION_FALLBACK

    async def _explain(self, question: Question, user_answer: str) -> str:
        prompt = (
            "The user is practicing exam questions.\n\n"
            f"Question: \"{question.prompt}\"\n"
            f"Correct Answer: \"{question.correct_answer}\"\n"
            f"User's Answer: \"{user_answer}\"\n\n"
            "Please explain why the correct answer is right.\n"
            "If the user's answer was wrong, briefly explain why their answer is incorrect.\n"
            "Keep it concise (under 100 words)."
        )
        try:
            text = await self._llm([{"role": "user", "content": prompt}], max_tokens=300)
        except Exception as e:
            raise ExplanationError(f"explanation failed: {e!r}") from e
        return (text or "").strip() or NO_EXPLANATION

    async def grade_subjective_answer(self, question: Question, user_answer: str) -> GradingResult:
        try:
            return await self._grade(question, user_answer)
        except GradingError as e:
            logger.warning(f"[gateway] {e}")
            return GradingResult(is_correct=False, feedback=GRADING_FALLBACK)

    async def _grade(self, question: Question, user_answer: str) -> GradingResult:
        prompt = (
            "You are grading a short answer exam question.\n\n"
            f"Question: \"{question.prompt}\"\n"
            f"Model Answer: \"{question.correct_answer}\"\n"
            f"Student Answer: \"{user_answer}\"\n\n"
            "1. Determine if the student's answer is essentially correct based on the model answer.\n"
            "2. Provide brief feedback.\n\n"
            "Output JSON."
        )
        try:
            raw = await self._llm(
                [{"role": "user", "content": prompt}],
                max_tokens=300,
                temperature=0.0,
                response_format=GRADING_FORMAT,
            )
            return parse_grading(raw)
        except Exception as e:
            raise GradingError(f"grading failed: {e!r}") from e
