from typing import List

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger

from ..deps import get_shell, require_set
from ..errors import InvalidEntryError
from ..schemas import NewSet, QuestionDraft, QuestionSet, SetSummary
from ..shell import Shell

router = APIRouter()

def _summary(s: QuestionSet) -> SetSummary:
    return SetSummary(
        id=s.id,
        title=s.title,
        description=s.description,
        created_at=s.created_at,
        question_count=len(s.questions),
    )

@router.get("/sets", response_model=List[SetSummary])
def list_sets(shell: Shell = Depends(get_shell)):
    return [_summary(s) for s in shell.refresh()]

@router.post("/sets", response_model=QuestionSet, status_code=201)
def create_set(body: NewSet, shell: Shell = Depends(get_shell)):
    try:
        return shell.manager.create_set(body.title, body.description)
    except InvalidEntryError as e:
        raise HTTPException(400, str(e))

@router.get("/sets/{set_id}", response_model=QuestionSet)
def open_set(question_set: QuestionSet = Depends(require_set), shell: Shell = Depends(get_shell)):
    return shell.open_set(question_set.id)

@router.delete("/sets/{set_id}")
def delete_set(question_set: QuestionSet = Depends(require_set), shell: Shell = Depends(get_shell)):
    shell.manager.delete_set(question_set.id)
    return {"deleted": True, "id": question_set.id}

@router.post("/sets/{set_id}/questions", response_model=QuestionSet, status_code=201)
def add_question(
    draft: QuestionDraft,
    question_set: QuestionSet = Depends(require_set),
    shell: Shell = Depends(get_shell),
):
    try:
        return shell.manager.add_question(question_set, draft)
    except InvalidEntryError as e:
        raise HTTPException(400, str(e))

@router.delete("/sets/{set_id}/questions/{question_id}", response_model=QuestionSet)
def delete_question(
    question_id: str,
    question_set: QuestionSet = Depends(require_set),
    shell: Shell = Depends(get_shell),
):
    if not any(q.id == question_id for q in question_set.questions):
        raise HTTPException(404, "Question not found.")
    logger.info(f"[sets] deleting question {question_id} from {question_set.id}")
    return shell.manager.delete_question(question_set, question_id)
