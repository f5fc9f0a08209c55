from __future__ import annotations

import pytest

from aula.errors import GatewayError, NotFoundError, ValidationError
from aula.gateway.memory import InMemoryGateway
from aula.learning.usecases import (
    AddCommentInput,
    AddCommentUseCase,
    CourseViewInput,
    DashboardInput,
    DeleteCommentInput,
    DeleteCommentUseCase,
    EnrollInput,
    EnrollUseCase,
    GetCourseViewUseCase,
    GetDashboardUseCase,
    ListCatalogInput,
    ListCatalogUseCase,
    ListCommentsUseCase,
    MarkModuleCompleteInput,
    MarkModuleCompleteUseCase,
)


def _course(gateway: InMemoryGateway, *, title="Python", status="published", teacher="teacher-1", created_at=None, modules=3):
    row = {"title": title, "teacher_id": teacher, "status": status}
    if created_at:
        row["created_at"] = created_at
    course = gateway.insert("courses", row)
    ids = [
        gateway.insert("modules", {"course_id": course["id"], "title": f"M{i}", "order_index": i})["id"]
        for i in reversed(range(modules))
    ]
    return course, list(reversed(ids))


# --- Catalog & enrollment ---------------------------------------------------------


def test_catalog_lists_published_newest_first(gateway: InMemoryGateway):
    old, _ = _course(gateway, title="Old", created_at="2024-01-01T00:00:00+00:00")
    new, _ = _course(gateway, title="New", created_at="2024-06-01T00:00:00+00:00", modules=1)
    _course(gateway, title="Hidden", status="draft")
    gateway.insert("profiles", {"id": "teacher-1", "full_name": "Ana Lima", "role": "teacher"})
    gateway.insert("course_enrollments", {"course_id": old["id"], "student_id": "s1"})

    items = ListCatalogUseCase(gateway).execute(ListCatalogInput(viewer_sub="s1"))

    assert [i["title"] for i in items] == ["New", "Old"]
    assert items[0]["module_count"] == 1
    assert items[1]["enrollment_count"] == 1
    assert items[1]["is_enrolled"] is True
    assert items[0]["is_enrolled"] is False
    assert items[0]["teacher_name"] == "Ana Lima"


def test_catalog_teacher_name_falls_back(gateway: InMemoryGateway):
    _course(gateway)
    items = ListCatalogUseCase(gateway).execute(ListCatalogInput(viewer_sub=None))
    assert items[0]["teacher_name"] == "Professor"


def test_enroll_twice_is_rejected(gateway: InMemoryGateway):
    course, _ = _course(gateway)
    use_case = EnrollUseCase(gateway)
    row = use_case.execute(EnrollInput(course_id=course["id"], student_sub="s1"))
    assert row["progress"] == 0
    with pytest.raises(ValidationError) as exc:
        use_case.execute(EnrollInput(course_id=course["id"], student_sub="s1"))
    assert str(exc.value) == "already_enrolled"


def test_enroll_in_draft_course_is_not_found(gateway: InMemoryGateway):
    course, _ = _course(gateway, status="draft")
    with pytest.raises(NotFoundError):
        EnrollUseCase(gateway).execute(EnrollInput(course_id=course["id"], student_sub="s1"))


# --- Course view & progress -------------------------------------------------------


def test_course_view_orders_modules_and_reports_progress(gateway: InMemoryGateway):
    course, modules = _course(gateway)
    gateway.insert("course_enrollments", {"course_id": course["id"], "student_id": "s1"})
    gateway.insert("quizzes", {"module_id": modules[1], "title": "Quiz - M1", "passing_score": 70})
    MarkModuleCompleteUseCase(gateway).execute(MarkModuleCompleteInput(module_id=modules[0], student_sub="s1"))

    view = GetCourseViewUseCase(gateway).execute(CourseViewInput(course_id=course["id"], viewer_sub="s1"))

    assert [m["title"] for m in view.modules] == ["M0", "M1", "M2"]
    assert view.is_enrolled is True
    assert view.completed_module_ids == [modules[0]]
    assert view.progress == 33
    assert set(view.quizzes) == {modules[1]}
    payload = view.to_dict()
    assert [m["completed"] for m in payload["modules"]] == [True, False, False]
    assert payload["teacher_name"] == "Professor"


def test_course_view_draft_is_owner_only(gateway: InMemoryGateway):
    course, _ = _course(gateway, status="draft")
    with pytest.raises(NotFoundError):
        GetCourseViewUseCase(gateway).execute(CourseViewInput(course_id=course["id"], viewer_sub="s1"))
    view = GetCourseViewUseCase(gateway).execute(CourseViewInput(course_id=course["id"], viewer_sub="teacher-1"))
    assert view.is_enrolled is True


def test_course_view_unknown_course(gateway: InMemoryGateway):
    with pytest.raises(NotFoundError):
        GetCourseViewUseCase(gateway).execute(CourseViewInput(course_id="nope", viewer_sub="s1"))


def test_mark_complete_updates_enrollment_progress(gateway: InMemoryGateway):
    course, modules = _course(gateway)
    gateway.insert("course_enrollments", {"course_id": course["id"], "student_id": "s1"})
    use_case = MarkModuleCompleteUseCase(gateway)

    first = use_case.execute(MarkModuleCompleteInput(module_id=modules[0], student_sub="s1"))
    again = use_case.execute(MarkModuleCompleteInput(module_id=modules[0], student_sub="s1"))
    second = use_case.execute(MarkModuleCompleteInput(module_id=modules[1], student_sub="s1"))

    assert first.progress == 33
    assert again.completed_count == 1
    assert second.progress == 67
    assert len(gateway.tables["module_progress"]) == 2
    assert gateway.tables["course_enrollments"][0]["progress"] == 67


def test_mark_complete_unknown_module(gateway: InMemoryGateway):
    with pytest.raises(NotFoundError):
        MarkModuleCompleteUseCase(gateway).execute(MarkModuleCompleteInput(module_id="x", student_sub="s1"))


def test_mark_complete_on_draft_course_is_owner_only(gateway: InMemoryGateway):
    _, modules = _course(gateway, status="draft", modules=1)
    with pytest.raises(NotFoundError):
        MarkModuleCompleteUseCase(gateway).execute(MarkModuleCompleteInput(module_id=modules[0], student_sub="s1"))
    assert gateway.tables["module_progress"] == []
    result = MarkModuleCompleteUseCase(gateway).execute(
        MarkModuleCompleteInput(module_id=modules[0], student_sub="teacher-1")
    )
    assert result.progress == 100


# --- Comments ---------------------------------------------------------------------


def test_comments_round_trip_with_author_names(gateway: InMemoryGateway):
    _, modules = _course(gateway, modules=1)
    gateway.insert("profiles", {"id": "s1", "full_name": "Rita", "role": "student"})
    add = AddCommentUseCase(gateway)
    add.execute(AddCommentInput(module_id=modules[0], author_sub="s1", content="  first  "))
    add.execute(AddCommentInput(module_id=modules[0], author_sub="s2", content="second"))

    items = ListCommentsUseCase(gateway).execute(modules[0], viewer_sub="s1")

    assert [c["content"] for c in items] == ["first", "second"]
    assert [c["author_name"] for c in items] == ["Rita", "Utilizador"]


@pytest.mark.parametrize("content", ["", "   ", "x" * 2001])
def test_comment_content_is_validated(gateway: InMemoryGateway, content: str):
    _, modules = _course(gateway, modules=1)
    with pytest.raises(ValidationError):
        AddCommentUseCase(gateway).execute(AddCommentInput(module_id=modules[0], author_sub="s1", content=content))


def test_only_author_deletes_comment(gateway: InMemoryGateway):
    _, modules = _course(gateway, modules=1)
    row = AddCommentUseCase(gateway).execute(AddCommentInput(module_id=modules[0], author_sub="s1", content="hi"))
    delete = DeleteCommentUseCase(gateway)
    with pytest.raises(PermissionError):
        delete.execute(DeleteCommentInput(comment_id=row["id"], caller_sub="s2"))
    delete.execute(DeleteCommentInput(comment_id=row["id"], caller_sub="s1"))
    assert gateway.tables["module_comments"] == []
    with pytest.raises(NotFoundError):
        delete.execute(DeleteCommentInput(comment_id=row["id"], caller_sub="s1"))


def test_comments_on_unknown_module(gateway: InMemoryGateway):
    with pytest.raises(NotFoundError):
        ListCommentsUseCase(gateway).execute("missing", viewer_sub="s1")


def test_comments_on_draft_course_are_owner_only(gateway: InMemoryGateway):
    _, modules = _course(gateway, status="draft", modules=1)
    with pytest.raises(NotFoundError):
        ListCommentsUseCase(gateway).execute(modules[0], viewer_sub="s1")
    with pytest.raises(NotFoundError):
        ListCommentsUseCase(gateway).execute(modules[0], viewer_sub=None)
    with pytest.raises(NotFoundError):
        AddCommentUseCase(gateway).execute(AddCommentInput(module_id=modules[0], author_sub="s1", content="hi"))
    assert gateway.tables["module_comments"] == []

    AddCommentUseCase(gateway).execute(AddCommentInput(module_id=modules[0], author_sub="teacher-1", content="note"))
    assert len(ListCommentsUseCase(gateway).execute(modules[0], viewer_sub="teacher-1")) == 1


def test_deleting_course_cascades_to_learning_rows(gateway: InMemoryGateway):
    course, modules = _course(gateway, modules=1)
    gateway.insert("course_enrollments", {"course_id": course["id"], "student_id": "s1"})
    MarkModuleCompleteUseCase(gateway).execute(MarkModuleCompleteInput(module_id=modules[0], student_sub="s1"))
    AddCommentUseCase(gateway).execute(AddCommentInput(module_id=modules[0], author_sub="s1", content="hi"))

    gateway.delete("courses", eq={"id": course["id"]})

    for table in ("modules", "course_enrollments", "module_progress", "module_comments"):
        assert gateway.tables[table] == []


# --- Dashboards -------------------------------------------------------------------


def test_student_dashboard_splits_active_and_completed(gateway: InMemoryGateway):
    a, _ = _course(gateway, title="A")
    b, _ = _course(gateway, title="B")
    gateway.insert(
        "course_enrollments",
        {"course_id": a["id"], "student_id": "s1", "progress": 100, "enrolled_at": "2024-01-01T00:00:00+00:00"},
    )
    gateway.insert(
        "course_enrollments",
        {"course_id": b["id"], "student_id": "s1", "progress": 40, "enrolled_at": "2024-02-01T00:00:00+00:00"},
    )

    summary = GetDashboardUseCase(gateway).execute(DashboardInput(sub="s1", role="student"))

    assert [e["title"] for e in summary["active"]] == ["B"]
    assert [e["title"] for e in summary["completed"]] == ["A"]
    assert summary["last_course"]["course_id"] == b["id"]


def test_teacher_dashboard_counts_own_courses(gateway: InMemoryGateway):
    pub, _ = _course(gateway, status="published")
    _course(gateway, status="draft")
    _course(gateway, teacher="someone-else")
    gateway.insert("course_enrollments", {"course_id": pub["id"], "student_id": "s1"})

    summary = GetDashboardUseCase(gateway).execute(DashboardInput(sub="teacher-1", role="teacher"))

    assert summary["courses"] == {"total": 2, "draft": 1, "published": 1, "archived": 0}
    assert summary["enrollments"] == 1
    assert len(summary["recent_courses"]) == 2


def test_admin_dashboard_totals(gateway: InMemoryGateway):
    _course(gateway)
    gateway.insert("profiles", {"id": "t", "full_name": "T", "role": "teacher"})
    gateway.insert("profiles", {"id": "s", "full_name": "S", "role": "student"})

    summary = GetDashboardUseCase(gateway).execute(DashboardInput(sub="admin", role="admin"))

    assert summary["courses"]["total"] == 1
    assert summary["profiles"] == {"total": 2, "admin": 0, "student": 1, "teacher": 1}


def test_gateway_failure_propagates(gateway: InMemoryGateway):
    course, _ = _course(gateway)
    gateway.fail_writes("course_enrollments")
    with pytest.raises(GatewayError):
        EnrollUseCase(gateway).execute(EnrollInput(course_id=course["id"], student_sub="s1"))
