import json
import random

import pytest
from conftest import ScriptedLLM, choice, free_text, make_set
from fastapi.testclient import TestClient

from examprep.main import create_app
from examprep.services.gateway import AIGateway
from examprep.services.storage import MemoryStore
from examprep.shell import Shell


def _client(*sets, llm=None) -> tuple[TestClient, MemoryStore]:
    store = MemoryStore()
    for s in sets:
        store.save_set(s)
    shell = Shell(store, AIGateway(llm=llm or ScriptedLLM()), rng=random.Random(5))
    return TestClient(create_app(shell=shell)), store


def test_health() -> None:
    client, _ = _client()
    body = client.get("/health").json()
    assert body["ok"] is True
    assert body["sets"] == 0


def test_set_crud_flow() -> None:
    client, store = _client()
    assert client.post("/sets", json={"title": "  "}).status_code == 400

    created = client.post("/sets", json={"title": "Physics", "description": "Mechanics"})
    assert created.status_code == 201
    set_id = created.json()["id"]
    assert created.json()["createdAt"] > 0

    added = client.post(
        f"/sets/{set_id}/questions",
        json={"type": "choice", "content": "Unit of force?", "options": ["Newton", "", "Joule"], "correctAnswer": "Newton"},
    )
    assert added.status_code == 201
    question = added.json()["questions"][0]
    assert question["options"] == ["Newton", "Joule"]

    missing = client.post(f"/sets/{set_id}/questions", json={"type": "text", "content": "Why?"})
    assert missing.status_code == 400

    listing = client.get("/sets").json()
    assert listing == [
        {"id": set_id, "title": "Physics", "description": "Mechanics", "createdAt": created.json()["createdAt"], "questionCount": 1}
    ]

    assert client.delete(f"/sets/{set_id}/questions/nope").status_code == 404
    emptied = client.delete(f"/sets/{set_id}/questions/{question['id']}").json()
    assert emptied["questions"] == []

    assert client.delete(f"/sets/{set_id}").json() == {"deleted": True, "id": set_id}
    assert client.get(f"/sets/{set_id}").status_code == 404
    assert store.list_sets() == []


def test_generate_from_text_appends_questions() -> None:
    client, store = _client(make_set("a"))
    resp = client.post("/sets/a/generate", json={"sourceText": "Numbers and capitals", "count": 2})
    assert resp.status_code == 200
    assert [q["content"] for q in resp.json()["questions"]] == ["What is 2 + 2?", "Capital of France?"]
    assert len(store.list_sets()[0].questions) == 2


def test_generation_failure_surfaces_and_appends_nothing() -> None:
    client, store = _client(make_set("a", questions=[choice("q1")]), llm=ScriptedLLM(batch="garbage"))
    resp = client.post("/sets/a/generate", json={"sourceText": "Numbers", "count": 3})
    assert resp.status_code == 502
    assert "Failed to generate questions" in resp.json()["detail"]
    assert [q.id for q in store.list_sets()[0].questions] == ["q1"]


def test_generate_uploads_validate_file_type() -> None:
    client, _ = _client(make_set("a"))
    pdf = client.post("/sets/a/generate/pdf", files={"file": ("notes.txt", b"hello", "text/plain")})
    assert pdf.status_code == 400
    image = client.post("/sets/a/generate/image", files={"file": ("notes.txt", b"hello", "text/plain")})
    assert image.status_code == 400
    empty = client.post("/sets/a/generate/image", files={"file": ("a.png", b"", "image/png")})
    assert empty.status_code == 400


def test_generate_from_image() -> None:
    client, store = _client(make_set("a"))
    resp = client.post(
        "/sets/a/generate/image",
        files={"file": ("slide.png", b"\x89PNG\r\n", "image/png")},
        data={"count": "2", "type": "text"},
    )
    assert resp.status_code == 200
    questions = store.list_sets()[0].questions
    assert len(questions) == 2
    assert all(q.options is None for q in questions)


def test_practice_flow_scores_half() -> None:
    questions = [choice("q1", answer="A"), choice("q2", answer="C")]
    client, store = _client(make_set("a", questions=questions))
    writes = store.writes
    answers = {q.id: q.correct_answer for q in questions}

    started = client.post("/sets/a/practice")
    assert started.status_code == 201
    view = started.json()
    sid = view["id"]
    assert view["phase"] == "active"
    assert view["total"] == 2
    assert view["question"]["correctAnswer"] is None
    assert client.get("/view").json()["view"] == "practice"

    assert client.post(f"/practice/{sid}/submit").status_code == 409
    assert client.post(f"/practice/{sid}/advance").status_code == 409

    first = view["question"]
    client.post(f"/practice/{sid}/select", json={"option": answers[first["id"]]})
    submitted = client.post(f"/practice/{sid}/submit", params={"wait": "true"}).json()
    assert submitted["answer"]["isCorrect"] is True
    assert submitted["answer"]["feedbackPending"] is False
    assert submitted["answer"]["feedback"] == "Because it is."
    assert submitted["question"]["correctAnswer"] == answers[first["id"]]
    assert client.post(f"/practice/{sid}/select", json={"option": "B"}).status_code == 409

    second = client.post(f"/practice/{sid}/advance").json()["question"]
    wrong = next(opt for opt in second["options"] if opt != answers[second["id"]])
    client.post(f"/practice/{sid}/select", json={"option": wrong})
    client.post(f"/practice/{sid}/submit", params={"wait": "true"})
    finished = client.post(f"/practice/{sid}/advance").json()

    assert finished["phase"] == "finished"
    assert finished["question"] is None
    assert finished["result"] == {"score": 1, "total": 2, "percentage": 50}

    restarted = client.post(f"/practice/{sid}/restart").json()
    assert restarted["phase"] == "active"
    assert restarted["score"] == 0

    shell_view = client.delete(f"/practice/{sid}").json()
    assert shell_view["view"] == "set_details"
    assert shell_view["practiceId"] is None
    assert client.get(f"/practice/{sid}").status_code == 404
    assert store.writes == writes


def test_free_text_practice_is_graded() -> None:
    llm = ScriptedLLM(grading=json.dumps({"isCorrect": False, "feedback": "Missing the role of light."}))
    client, _ = _client(make_set("a", questions=[free_text("t1")]), llm=llm)
    sid = client.post("/sets/a/practice").json()["id"]
    assert client.post(f"/practice/{sid}/answer", json={"text": "plants eat"}).status_code == 200
    graded = client.post(f"/practice/{sid}/submit", params={"wait": "true"}).json()
    assert graded["answer"]["isCorrect"] is False
    assert graded["answer"]["feedback"] == "Missing the role of light."
    assert graded["score"] == 0
    assert graded["question"]["correctAnswer"] == "photosynthesis"


def test_empty_set_practice() -> None:
    client, _ = _client(make_set("a"))
    view = client.post("/sets/a/practice").json()
    assert view["phase"] == "empty"
    assert view["question"] is None
    assert client.post(f"/practice/{view['id']}/restart").status_code == 409
    assert client.delete(f"/practice/{view['id']}").json()["view"] == "set_details"


def test_navigation_endpoints() -> None:
    client, _ = _client(make_set("a"))
    assert client.get("/view").json() == {"view": "dashboard", "activeSetId": None, "practiceId": None, "setCount": 1}
    assert client.post("/view/sets/missing").status_code == 404
    assert client.post("/view/sets/a").json()["activeSetId"] == "a"
    assert client.post("/view/dashboard").json()["view"] == "dashboard"


def test_get_set_opens_it_in_the_shell() -> None:
    client, _ = _client(make_set("a", questions=[choice("q1")]))
    opened = client.get("/sets/a")
    assert opened.status_code == 200
    assert [q["id"] for q in opened.json()["questions"]] == ["q1"]
    view = client.get("/view").json()
    assert view["view"] == "set_details"
    assert view["activeSetId"] == "a"


@pytest.mark.parametrize("fmt", ["csv", "apkg"])
def test_export_requires_questions(fmt: str) -> None:
    client, _ = _client(make_set("a"))
    assert client.get(f"/sets/a/export/{fmt}").status_code == 404


def test_export_csv_and_apkg() -> None:
    client, _ = _client(make_set("a", title="Cell Bio", questions=[choice("q1", explanation="why"), free_text("t1")]))
    csv_resp = client.get("/sets/a/export/csv")
    assert csv_resp.status_code == 200
    assert "Cell_Bio-questions.csv" in csv_resp.headers["content-disposition"]
    lines = csv_resp.content.decode("utf-8-sig").splitlines()
    assert lines[0] == "type,content,options,correct_answer,explanation"
    assert lines[1] == "choice,Question q1?,A | B | C | D,B,why"
    assert lines[2].startswith("text,Explain t1.,,photosynthesis")

    apkg = client.get("/sets/a/export/apkg")
    assert apkg.status_code == 200
    assert apkg.content[:2] == b"PK"
