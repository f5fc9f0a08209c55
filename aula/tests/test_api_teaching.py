"""
Teaching API: draft editing endpoints, submission and owned courses.
"""
from __future__ import annotations

import httpx
import pytest
from httpx import ASGITransport

from aula.gateway.memory import InMemoryGateway
from aula.identity_access.stores import SessionStore
from aula.teaching.drafts import DraftStore
from aula.web import main
from aula.web.routes import teaching

pytestmark = pytest.mark.anyio("asyncio")


@pytest.fixture(autouse=True)
def _fresh_stores():
    main.SESSION_STORE = SessionStore()
    teaching.set_draft_store(DraftStore())
    yield
    teaching.set_draft_store(None)


async def _client(session_id: str | None = None) -> httpx.AsyncClient:
    client = httpx.AsyncClient(transport=ASGITransport(app=main.app), base_url="http://test")
    if session_id:
        client.cookies.set(main.SESSION_COOKIE_NAME, session_id)
    return client


def _teacher(sub: str = "teacher-1") -> str:
    return main.SESSION_STORE.create(sub=sub, name="Ana", roles=["teacher"]).session_id


async def _new_draft(client: httpx.AsyncClient) -> str:
    resp = await client.post("/api/teaching/drafts")
    assert resp.status_code == 201
    return resp.json()["draft_id"]


async def test_students_cannot_author():
    sid = main.SESSION_STORE.create(sub="s1", name="Rita", roles=["student"]).session_id
    async with (await _client(sid)) as client:
        resp = await client.post("/api/teaching/drafts")
    assert resp.status_code == 403


async def test_draft_editing_flow_keeps_positions_dense():
    async with (await _client(_teacher())) as client:
        draft_id = await _new_draft(client)
        base = f"/api/teaching/drafts/{draft_id}"
        for _ in range(3):
            resp = await client.post(f"{base}/modules")
            assert resp.status_code == 200
        await client.patch(f"{base}/modules/0", json={"title": "Intro"})
        await client.patch(f"{base}/modules/2", json={"title": "Recap"})

        resp = await client.post(f"{base}/modules/0/move", json={"direction": "Down"})
        modules = resp.json()["draft"]["modules"]
        assert [m["order_index"] for m in modules] == [0, 1, 2]
        assert modules[1]["title"] == "Intro"

        resp = await client.delete(f"{base}/modules/1")
        modules = resp.json()["draft"]["modules"]
        assert [m["title"] for m in modules] == ["", "Recap"]
        assert [m["order_index"] for m in modules] == [0, 1]


async def test_edit_errors_map_to_contract():
    async with (await _client(_teacher())) as client:
        draft_id = await _new_draft(client)
        base = f"/api/teaching/drafts/{draft_id}"

        out_of_range = await client.delete(f"{base}/modules/4")
        assert out_of_range.status_code == 400
        assert out_of_range.json()["error"] == "index_out_of_range"
        assert out_of_range.json()["detail"] == {"index": 4, "length": 0}

        await client.post(f"{base}/modules")
        bad_direction = await client.post(f"{base}/modules/0/move", json={"direction": "sideways"})
        assert bad_direction.status_code == 400

        no_quiz = await client.post(f"{base}/modules/0/quiz/questions")
        assert no_quiz.status_code == 400
        assert no_quiz.json()["detail"] == "quiz_not_enabled"

        missing = await client.get("/api/teaching/drafts/unknown")
        assert missing.status_code == 404
        assert missing.json()["redirect"] == "/explore"


async def test_other_teachers_cannot_see_a_draft():
    async with (await _client(_teacher("teacher-1"))) as client:
        draft_id = await _new_draft(client)
    async with (await _client(_teacher("teacher-2"))) as client:
        resp = await client.get(f"/api/teaching/drafts/{draft_id}")
    assert resp.status_code == 404


async def test_quiz_builder_and_submit(gateway: InMemoryGateway):
    async with (await _client(_teacher())) as client:
        draft_id = await _new_draft(client)
        base = f"/api/teaching/drafts/{draft_id}"
        await client.patch(base, json={"title": "Python 101", "description": "Basics"})
        await client.post(f"{base}/modules")
        await client.patch(f"{base}/modules/0", json={"title": "Loops"})

        resp = await client.post(f"{base}/modules/0/quiz/toggle")
        quiz = resp.json()["draft"]["modules"][0]["quiz"]
        assert quiz["title"] == "Quiz - Loops"
        assert quiz["passing_score"] == 70

        await client.post(f"{base}/modules/0/quiz/questions")
        await client.patch(
            f"{base}/modules/0/quiz/questions/0",
            json={"question": "Which loop?", "options": ["for", "while"], "correct_option": 1},
        )
        resp = await client.patch(f"{base}/modules/0/quiz/questions/0/options/0", json={"value": "for-in"})
        assert resp.json()["draft"]["modules"][0]["quiz"]["questions"][0]["options"] == ["for-in", "while"]
        resp = await client.patch(f"{base}/modules/0/quiz", json={"passing_score": 150})
        assert resp.json()["draft"]["modules"][0]["quiz"]["passing_score"] == 150

        submitted = await client.post(f"{base}/submit", json={"status": "published"})
        assert submitted.status_code == 201
        body = submitted.json()
        assert body["status"] == "published"
        assert body["question_count"] == 1

        gone = await client.get(base)
        assert gone.status_code == 404

        course = await client.get(f"/api/teaching/courses/{body['course_id']}")
        assert course.status_code == 200
        draft = course.json()["draft"]
        assert draft["title"] == "Python 101"
        assert draft["modules"][0]["quiz"]["passing_score"] == 100
        assert draft["modules"][0]["quiz"]["questions"][0]["correct_option"] == 1

        listing = await client.get("/api/teaching/courses")
        assert [c["module_count"] for c in listing.json()] == [1]

    assert len(gateway.tables["courses"]) == 1


async def test_submit_with_empty_title_writes_nothing(gateway: InMemoryGateway):
    async with (await _client(_teacher())) as client:
        draft_id = await _new_draft(client)
        resp = await client.post(f"/api/teaching/drafts/{draft_id}/submit", json={"status": "draft"})
        assert resp.status_code == 400
        assert resp.json()["detail"] == "invalid_title"
        still_there = await client.get(f"/api/teaching/drafts/{draft_id}")
        assert still_there.status_code == 200
    assert gateway.tables["courses"] == []


async def test_submit_gateway_failure_is_502_and_compensated(gateway: InMemoryGateway):
    gateway.fail_writes("modules", "permission denied for table modules")
    async with (await _client(_teacher())) as client:
        draft_id = await _new_draft(client)
        base = f"/api/teaching/drafts/{draft_id}"
        await client.patch(base, json={"title": "Python"})
        await client.post(f"{base}/modules")
        resp = await client.post(f"{base}/submit", json={"status": "draft"})
    assert resp.status_code == 502
    assert resp.json() == {"error": "gateway_error", "detail": "permission denied for table modules"}
    assert gateway.tables["courses"] == []


async def test_nan_passing_score_is_rejected_and_draft_kept(gateway: InMemoryGateway):
    async with (await _client(_teacher())) as client:
        draft_id = await _new_draft(client)
        base = f"/api/teaching/drafts/{draft_id}"
        await client.patch(base, json={"title": "Python"})
        await client.post(f"{base}/modules")
        await client.post(f"{base}/modules/0/quiz/toggle")
        await client.post(f"{base}/modules/0/quiz/questions")

        resp = await client.patch(
            f"{base}/modules/0/quiz",
            content=b'{"passing_score": NaN}',
            headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 400
        assert resp.json()["detail"] == "invalid_passing_score"

        current = await client.get(base)
        assert current.json()["draft"]["modules"][0]["quiz"]["passing_score"] == 70

        submitted = await client.post(f"{base}/submit", json={"status": "draft"})
        assert submitted.status_code == 201
    assert gateway.tables["quizzes"][0]["passing_score"] == 70


async def test_delete_course_is_owner_only(gateway: InMemoryGateway):
    course = gateway.insert("courses", {"title": "T", "teacher_id": "teacher-1"})
    async with (await _client(_teacher("teacher-2"))) as client:
        forbidden = await client.delete(f"/api/teaching/courses/{course['id']}")
    assert forbidden.status_code == 403
    async with (await _client(_teacher("teacher-1"))) as client:
        deleted = await client.delete(f"/api/teaching/courses/{course['id']}")
    assert deleted.status_code == 204
    assert gateway.tables["courses"] == []
