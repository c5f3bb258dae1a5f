from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from loguru import logger

from ..deps import get_shell, require_set
from ..errors import GenerationError
from ..schemas import GenerateRequest, QuestionKind, QuestionSet
from ..settings import settings
from ..shell import Shell

router = APIRouter()

def _clamp_count(count: int | None) -> int:
    if count is None: count = settings.DEFAULT_QUESTION_COUNT
    if count < 1: count = 1
    if count > settings.MAX_QUESTION_COUNT: count = settings.MAX_QUESTION_COUNT
    return count

async def _read_upload(file: UploadFile) -> bytes:
    raw = await file.read()
    if not raw: raise HTTPException(400, "Empty file.")
    if len(raw) > settings.MAX_UPLOAD_MB * 1024 * 1024:
        raise HTTPException(413, f"File too large. Max {settings.MAX_UPLOAD_MB} MB.")
    return raw

@router.post("/sets/{set_id}/generate", response_model=QuestionSet)
async def generate_from_text(
    body: GenerateRequest,
    question_set: QuestionSet = Depends(require_set),
    shell: Shell = Depends(get_shell),
):
    try:
        return await shell.manager.append_generated(
            question_set, body.source_text, _clamp_count(body.count), body.kind
        )
    except GenerationError as e:
        logger.warning(f"[generate] text generation failed for {question_set.id}: {e.message}")
        raise HTTPException(e.status_code, e.message)

@router.post("/sets/{set_id}/generate/image", response_model=QuestionSet)
async def generate_from_image(
    file: UploadFile = File(...),
    count: int = Form(5),
    kind: QuestionKind = Form(QuestionKind.CHOICE, alias="type"),
    question_set: QuestionSet = Depends(require_set),
    shell: Shell = Depends(get_shell),
):
    if not (file.content_type or "").startswith("image/"):
        raise HTTPException(400, "Only images supported.")
    raw = await _read_upload(file)
    try:
        return await shell.manager.append_generated_from_image(
            question_set, raw, file.content_type, _clamp_count(count), kind
        )
    except GenerationError as e:
        logger.warning(f"[generate] image generation failed for {question_set.id}: {e.message}")
        raise HTTPException(e.status_code, e.message)

@router.post("/sets/{set_id}/generate/pdf", response_model=QuestionSet)
async def generate_from_pdf(
    file: UploadFile = File(...),
    count: int = Form(5),
    kind: QuestionKind = Form(QuestionKind.CHOICE, alias="type"),
    question_set: QuestionSet = Depends(require_set),
    shell: Shell = Depends(get_shell),
):
    if not (file.filename or "").lower().endswith(".pdf"): raise HTTPException(400, "Only PDF supported.")
    raw = await _read_upload(file)
    try:
        return await shell.manager.append_generated_from_pdf(question_set, raw, _clamp_count(count), kind)
    except GenerationError as e:
        logger.warning(f"[generate] pdf generation failed for {question_set.id}: {e.message}")
        raise HTTPException(e.status_code, e.message)
