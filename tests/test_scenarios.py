"""End-to-end walkthroughs of the core academic flows over the HTTP API."""
from __future__ import annotations

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile

from accounts.models import Role
from activity.models import Announcement
from assignments.models import Submission
from courses.models import Semester
from timetable.models import TimetableEntry


@pytest.mark.django_db
def test_switching_current_semester(client_for, admin_user, semester_factory):
    s1 = semester_factory(1, is_current=True)
    s3 = semester_factory(3)
    r = client_for(admin_user).post(f"/api/v1/semesters/{s3.id}/set-current/")
    assert r.status_code == 200
    s1.refresh_from_db()
    assert s1.is_current is False
    assert client_for(None).get("/api/v1/semesters/current/").json()["number"] == 3
    assert Semester.objects.filter(is_current=True).count() == 1


@pytest.mark.django_db
def test_teacher_double_booking(client_for, teacher, course_factory):
    c1 = course_factory("BK1", teacher=teacher)
    c2 = course_factory("BK2", teacher=teacher)
    c3 = course_factory("BK3", teacher=teacher)
    c = client_for(teacher)
    base = {"day": "Monday", "room": "101"}

    r = c.post("/api/v1/timetable/", {**base, "course": c1.id, "start_time": "09:00", "end_time": "10:00"}, format="json")
    assert r.status_code == 201
    r = c.post("/api/v1/timetable/", {**base, "course": c2.id, "start_time": "09:30", "end_time": "10:30"}, format="json")
    assert r.status_code == 409
    r = c.post("/api/v1/timetable/", {**base, "course": c3.id, "start_time": "10:00", "end_time": "11:00"}, format="json")
    assert r.status_code == 201
    assert TimetableEntry.objects.count() == 2


@pytest.mark.django_db
def test_student_announcements_follow_enrolment(client_for, student, teacher, course_factory, semester_factory):
    s2 = semester_factory(2)
    s3 = semester_factory(3)
    course_factory("X200", semester=s2, teacher=teacher).students.add(student)
    mine = Announcement.objects.create(title="s2", content="c", semester=s2, author=teacher)
    Announcement.objects.create(title="s3", content="c", semester=s3, author=teacher)

    r = client_for(student).get("/api/v1/announcements/")
    assert r.status_code == 200
    assert [a["id"] for a in r.json()["results"]] == [mine.id]


@pytest.mark.django_db
def test_single_submission_per_student(client_for, student, teacher, course_factory, assignment_factory):
    course = course_factory("SUB1", teacher=teacher)
    course.students.add(student)
    assignment = assignment_factory(course)
    c = client_for(student)
    url = f"/api/v1/assignments/{assignment.id}/submit/"

    first = c.post(url, {"file": SimpleUploadedFile("v1.txt", b"first")}, format="multipart")
    assert first.status_code == 201
    second = c.post(url, {"file": SimpleUploadedFile("v2.txt", b"second")}, format="multipart")
    assert second.status_code == 409

    sub = Submission.objects.get(assignment=assignment, student=student)
    assert sub.id == first.json()["id"]
    with sub.file.open("rb") as fh:
        assert fh.read() == b"first"


@pytest.mark.django_db
def test_teacher_without_courses_sees_whole_timetable(client_for, user_factory, teacher, course_factory, entry_factory):
    a = entry_factory(course_factory("WT1", teacher=teacher), teacher, "Monday")
    b = entry_factory(course_factory("WT2", teacher=teacher), teacher, "Tuesday")
    entry_factory(course_factory("WT3", teacher=teacher), teacher, "Wednesday", is_active=False)
    newcomer = user_factory("newcomer", Role.TEACHER)

    r = client_for(newcomer).get("/api/v1/timetable/")
    assert r.status_code == 200
    assert [e["id"] for e in r.json()] == [a.id, b.id]
