from __future__ import annotations

import pytest

from accounts.models import Role
from courses.models import Course


@pytest.mark.django_db
def test_list_is_active_only_and_filterable(client_for, student, course_factory, semester_factory):
    s2 = semester_factory(2)
    course_factory("A100")
    course_factory("B200", semester=s2, department="Maths")
    course_factory("C300", is_active=False)
    c = client_for(student)
    r = c.get("/api/v1/courses/")
    assert r.status_code == 200
    body = r.json()
    assert body["count"] == 2
    assert {x["code"] for x in body["results"]} == {"A100", "B200"}
    r = c.get("/api/v1/courses/", {"semester_number": 2})
    assert [x["code"] for x in r.json()["results"]] == ["B200"]
    r = c.get("/api/v1/courses/", {"department": "maths"})
    assert [x["code"] for x in r.json()["results"]] == ["B200"]


@pytest.mark.django_db
def test_retrieve_inactive_course_forbidden_missing_404(client_for, student, course_factory):
    hidden = course_factory("H1", is_active=False)
    c = client_for(student)
    r = c.get(f"/api/v1/courses/{hidden.id}/")
    assert r.status_code == 403
    assert r.json()["code"] == "forbidden_by_ownership"
    assert c.get("/api/v1/courses/424242/").status_code == 404


@pytest.mark.django_db
def test_teacher_creates_course_for_self(client_for, teacher, semester_factory):
    s1 = semester_factory(1)
    r = client_for(teacher).post(
        "/api/v1/courses/",
        {"name": "Algorithms", "code": " cs201 ", "semester": s1.id, "credits": 4},
        format="json",
    )
    assert r.status_code == 201, r.content
    assert r.json()["code"] == "CS201"
    assert r.json()["teacher"] == teacher.id
    assert r.json()["enrolled_count"] == 0


@pytest.mark.django_db
def test_admin_creates_course_for_teacher(client_for, admin_user, teacher, semester_factory):
    s1 = semester_factory(1)
    r = client_for(admin_user).post(
        "/api/v1/courses/",
        {"name": "Networks", "code": "NET1", "semester": s1.id, "teacher": teacher.id},
        format="json",
    )
    assert r.status_code == 201
    assert Course.objects.get(code="NET1").teacher == teacher


@pytest.mark.django_db
def test_student_cannot_create_course(client_for, student, semester_factory):
    s1 = semester_factory(1)
    r = client_for(student).post("/api/v1/courses/", {"name": "x", "code": "X1", "semester": s1.id}, format="json")
    assert r.status_code == 403


@pytest.mark.django_db
def test_duplicate_code_in_semester_conflicts(client_for, teacher, course_factory, semester_factory):
    s1 = semester_factory(1)
    s2 = semester_factory(2)
    course_factory("DUP1", semester=s1)
    c = client_for(teacher)
    r = c.post("/api/v1/courses/", {"name": "again", "code": "dup1", "semester": s1.id}, format="json")
    assert r.status_code == 409
    assert r.json()["invariant"] == "course_code"
    r = c.post("/api/v1/courses/", {"name": "again", "code": "dup1", "semester": s2.id}, format="json")
    assert r.status_code == 201


@pytest.mark.django_db
def test_update_requires_ownership(client_for, teacher, user_factory, admin_user, course_factory):
    other = user_factory("other", Role.TEACHER)
    course = course_factory("OWN1", teacher=teacher)
    r = client_for(other).patch(f"/api/v1/courses/{course.id}/", {"name": "Hijack"}, format="json")
    assert r.status_code == 403
    r = client_for(teacher).patch(f"/api/v1/courses/{course.id}/", {"name": "Renamed"}, format="json")
    assert r.status_code == 200
    assert r.json()["name"] == "Renamed"
    r = client_for(admin_user).patch(f"/api/v1/courses/{course.id}/", {"credits": 5}, format="json")
    assert r.status_code == 200
    assert r.json()["credits"] == 5


@pytest.mark.django_db
def test_teacher_cannot_reassign_course(client_for, teacher, user_factory, course_factory):
    other = user_factory("other", Role.TEACHER)
    course = course_factory("KEEP", teacher=teacher)
    r = client_for(teacher).patch(f"/api/v1/courses/{course.id}/", {"teacher": other.id}, format="json")
    assert r.status_code == 200
    course.refresh_from_db()
    assert course.teacher == teacher


@pytest.mark.django_db
def test_soft_delete(client_for, teacher, course_factory):
    course = course_factory("GONE", teacher=teacher)
    assert client_for(teacher).delete(f"/api/v1/courses/{course.id}/").status_code == 204
    course.refresh_from_db()
    assert course.is_active is False


@pytest.mark.django_db
def test_enroll_and_enrolled(client_for, student, course_factory):
    course = course_factory("EN1")
    c = client_for(student)
    r = c.post(f"/api/v1/courses/{course.id}/enroll/")
    assert r.status_code == 200
    assert r.json()["enrolled_count"] == 1
    r = c.post(f"/api/v1/courses/{course.id}/enroll/")
    assert r.status_code == 409
    assert r.json()["invariant"] == "already_enrolled"
    r = c.get("/api/v1/courses/enrolled/")
    assert [x["code"] for x in r.json()["results"]] == ["EN1"]


@pytest.mark.django_db
def test_enroll_full_course(client_for, user_factory, course_factory):
    course = course_factory("FULL", max_enrollment=1)
    first = user_factory("first")
    second = user_factory("second")
    assert client_for(first).post(f"/api/v1/courses/{course.id}/enroll/").status_code == 200
    r = client_for(second).post(f"/api/v1/courses/{course.id}/enroll/")
    assert r.status_code == 409
    assert r.json()["invariant"] == "course_full"


@pytest.mark.django_db
def test_teacher_cannot_enroll(client_for, teacher, course_factory):
    course = course_factory("EN2")
    assert client_for(teacher).post(f"/api/v1/courses/{course.id}/enroll/").status_code == 403


@pytest.mark.django_db
def test_teaching_get_put_and_stats(client_for, teacher, student, course_factory):
    a = course_factory("T1", credits=4, is_core=True)
    b = course_factory("T2", credits=2, is_core=False)
    kept = course_factory("T3", teacher=teacher)
    a.students.add(student)
    b.students.add(student)
    c = client_for(teacher)
    r = c.put("/api/v1/courses/teaching/", {"course_ids": [a.id, b.id]}, format="json")
    assert r.status_code == 200
    assert {x["code"] for x in r.json()["results"]} == {"T1", "T2"}
    kept.refresh_from_db()
    assert kept.teacher is None

    r = c.get("/api/v1/courses/teaching/stats/")
    assert r.status_code == 200
    assert r.json() == {
        "total_courses": 2,
        "total_students": 2,
        "total_credits": 6,
        "core_courses": 1,
        "average_enrollment": 1,
    }


@pytest.mark.django_db
def test_teaching_put_rejects_unknown_ids_and_admins(client_for, teacher, admin_user):
    r = client_for(teacher).put("/api/v1/courses/teaching/", {"course_ids": [9999]}, format="json")
    assert r.status_code == 400
    r = client_for(admin_user).put("/api/v1/courses/teaching/", {"course_ids": []}, format="json")
    assert r.status_code == 403


@pytest.mark.django_db
def test_count_admin_only(client_for, admin_user, student, course_factory):
    course_factory("N1")
    course_factory("N2", is_active=False)
    assert client_for(student).get("/api/v1/courses/count/").status_code == 403
    r = client_for(admin_user).get("/api/v1/courses/count/")
    assert r.json() == {"total": 2}
