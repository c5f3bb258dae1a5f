from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from pathlib import Path
import io, csv, re, tempfile, os, hashlib
import genanki

from ..deps import require_set
from ..schemas import Question, QuestionKind, QuestionSet

router = APIRouter()

def int_id_from_hash(h: str, salt: int = 0) -> int:
    return int(hashlib.sha256(h.encode("utf-8")).hexdigest()[:10], 16) + salt

def _safe_name(title: str) -> str:
    return re.sub(r'[^A-Za-z0-9._-]+', '_', title) or "examprep"

def _front(q: Question) -> str:
    if q.kind is QuestionKind.CHOICE and q.options:
        items = "".join(f"<li>{opt}</li>" for opt in q.options)
        return f"{q.prompt}<ol type='A'>{items}</ol>"
    return q.prompt

def _require_questions(question_set: QuestionSet) -> None:
    if not question_set.questions: raise HTTPException(404, "No questions to export.")

@router.get("/sets/{set_id}/export/csv")
def export_csv(question_set: QuestionSet = Depends(require_set)):
    _require_questions(question_set)
    sio = io.StringIO(newline="")
    writer = csv.writer(sio)
    writer.writerow(["type", "content", "options", "correct_answer", "explanation"])
    for q in question_set.questions:
        writer.writerow([q.kind.value, q.prompt, " | ".join(q.options or []), q.correct_answer, q.explanation or ""])
    data = sio.getvalue().encode("utf-8-sig")
    filename = f"{_safe_name(question_set.title)}-questions.csv"
    headers = {"Content-Disposition": f'attachment; filename="{filename}"'}
    return StreamingResponse(io.BytesIO(data), media_type="text/csv", headers=headers)

@router.get("/sets/{set_id}/export/apkg")
def export_apkg(question_set: QuestionSet = Depends(require_set)):
    _require_questions(question_set)

    deck = genanki.Deck(int_id_from_hash(question_set.id, 1000), f"{question_set.title} – ExamPrep")
    model = genanki.Model(
        int_id_from_hash(question_set.id, 2000),
        "ExamPrep Question",
        fields=[{"name": "Question"}, {"name": "Answer"}, {"name": "Explanation"}],
        templates=[{
            "name": "Card 1",
            "qfmt": "{{Question}}",
            "afmt": "{{FrontSide}}<hr id=answer>{{Answer}}<div style='color:#6b7280;margin-top:6px'>{{Explanation}}</div>",
        }],
        css=".card { font-family: Inter, Arial; font-size: 18px; }",
    )
    for q in question_set.questions:
        deck.add_note(genanki.Note(model=model, fields=[_front(q), q.correct_answer, q.explanation or ""], guid=genanki.guid_for(q.id)))

    pkg = genanki.Package(deck)

    with tempfile.NamedTemporaryFile(delete=False, suffix=".apkg") as tmp:
        tmp_path = tmp.name
    try:
        pkg.write_to_file(tmp_path)
        data = Path(tmp_path).read_bytes()
    finally:
        os.remove(tmp_path)

    filename = f"{_safe_name(question_set.title)}-examprep.apkg"
    headers = {"Content-Disposition": f'attachment; filename="{filename}"'}
    return StreamingResponse(io.BytesIO(data), media_type="application/octet-stream", headers=headers)
