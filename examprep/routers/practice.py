from fastapi import APIRouter, Depends, HTTPException

from ..deps import get_shell, require_set
from ..schemas import (
    AnswerView,
    PracticeResultView,
    PracticeView,
    QuestionPrompt,
    QuestionSet,
    SelectOption,
    ShellView,
    TypedAnswer,
)
from ..services.practice import PracticeSession
from ..shell import Shell
from .view import shell_view

router = APIRouter()

def practice_view(session: PracticeSession) -> PracticeView:
    question = session.current_question
    answer = session.answer
    prompt = None
    if question is not None:
        prompt = QuestionPrompt(
            id=question.id,
            kind=question.kind,
            prompt=question.prompt,
            options=question.options,
            correct_answer=question.correct_answer if answer.submitted else None,
        )
    result = session.result
    return PracticeView(
        id=session.id,
        set_id=session.set_id,
        set_title=session.set_title,
        phase=session.phase.value,
        index=session.index,
        total=session.total,
        score=session.score,
        question=prompt,
        answer=AnswerView(
            selected_option=answer.selected_option,
            text_answer=answer.text_answer,
            submitted=answer.submitted,
            is_correct=answer.is_correct,
            feedback=answer.feedback,
            feedback_pending=answer.feedback_pending,
        ) if question is not None else None,
        result=PracticeResultView(
            score=result.score, total=result.total, percentage=result.percentage
        ) if result is not None else None,
    )

def _session(session_id: str, shell: Shell = Depends(get_shell)) -> PracticeSession:
    session = shell.practice
    if session is None or session.id != session_id:
        raise HTTPException(404, "Practice session not found.")
    return session

@router.post("/sets/{set_id}/practice", response_model=PracticeView, status_code=201)
async def start_practice(question_set: QuestionSet = Depends(require_set), shell: Shell = Depends(get_shell)):
    shell.open_set(question_set.id)
    session = shell.start_practice()
    if session is None:
        raise HTTPException(404, "Question set not found.")
    return practice_view(session)

@router.get("/practice/{session_id}", response_model=PracticeView)
async def get_practice(session: PracticeSession = Depends(_session)):
    return practice_view(session)

@router.post("/practice/{session_id}/select", response_model=PracticeView)
async def select_option(body: SelectOption, session: PracticeSession = Depends(_session)):
    if not session.select_option(body.option):
        raise HTTPException(409, "Option cannot be selected now.")
    return practice_view(session)

@router.post("/practice/{session_id}/answer", response_model=PracticeView)
async def type_answer(body: TypedAnswer, session: PracticeSession = Depends(_session)):
    if not session.type_answer(body.text):
        raise HTTPException(409, "Answer cannot be changed now.")
    return practice_view(session)

@router.post("/practice/{session_id}/submit", response_model=PracticeView)
async def submit(wait: bool = False, session: PracticeSession = Depends(_session)):
    if not session.can_submit:
        raise HTTPException(409, "Nothing to submit.")
    session.submit()
    if wait:
        await session.wait_for_feedback()
    return practice_view(session)

@router.post("/practice/{session_id}/advance", response_model=PracticeView)
async def advance(session: PracticeSession = Depends(_session)):
    if not session.advance():
        raise HTTPException(409, "Submit an answer before moving on.")
    return practice_view(session)

@router.post("/practice/{session_id}/restart", response_model=PracticeView)
async def restart(session: PracticeSession = Depends(_session)):
    if not session.restart():
        raise HTTPException(409, "Only a finished session can be restarted.")
    return practice_view(session)

@router.delete("/practice/{session_id}", response_model=ShellView)
async def exit_practice(session: PracticeSession = Depends(_session), shell: Shell = Depends(get_shell)):
    shell.exit_practice()
    return shell_view(shell)
