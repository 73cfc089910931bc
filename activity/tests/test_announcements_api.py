from __future__ import annotations

from datetime import timedelta

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from django.utils import timezone
from freezegun import freeze_time

from accounts.models import Role
from activity.models import Announcement, AnnouncementAttachment, AnnouncementRead, Priority


@pytest.fixture
def sem(semester_factory):
    return semester_factory(1)


@pytest.fixture
def enrolled(student, teacher, course_factory, sem):
    course = course_factory("AN1", semester=sem, teacher=teacher)
    course.students.add(student)
    return course


def announce(author, semester, **extra):
    extra.setdefault("title", "Notice")
    extra.setdefault("content", "Body")
    return Announcement.objects.create(author=author, semester=semester, **extra)


@pytest.mark.django_db
def test_listing_ordered_by_priority_then_newest(client_for, student, teacher, enrolled, sem):
    now = timezone.now()
    low = announce(teacher, sem, priority=Priority.LOW, publish_date=now - timedelta(hours=1))
    urgent_old = announce(teacher, sem, priority=Priority.URGENT, publish_date=now - timedelta(days=2))
    urgent_new = announce(teacher, sem, priority=Priority.URGENT, publish_date=now - timedelta(days=1))
    medium = announce(teacher, sem, priority=Priority.MEDIUM, publish_date=now - timedelta(hours=2))
    high = announce(teacher, sem, priority=Priority.HIGH, publish_date=now - timedelta(hours=3))

    r = client_for(student).get("/api/v1/announcements/")
    assert r.status_code == 200
    assert [a["id"] for a in r.json()["results"]] == [urgent_new.id, urgent_old.id, high.id, medium.id, low.id]


@pytest.mark.django_db
def test_student_scope_and_expiry(client_for, student, teacher, enrolled, sem, semester_factory):
    other = semester_factory(2)
    visible = announce(teacher, sem)
    announce(teacher, other, title="Elsewhere")
    announce(teacher, sem, title="Draft", is_published=False)
    with freeze_time(timezone.now() - timedelta(days=40)):
        announce(teacher, sem, title="Stale")  # expires after the default TTL

    r = client_for(student).get("/api/v1/announcements/")
    assert [a["id"] for a in r.json()["results"]] == [visible.id]


@pytest.mark.django_db
def test_default_expiry_uses_ttl(teacher, sem, settings):
    settings.EDUTRACK_ANNOUNCEMENT_TTL_DAYS = 7
    with freeze_time("2026-01-01 12:00:00"):
        a = announce(teacher, sem)
        assert a.expiry_date == timezone.now() + timedelta(days=7)
        assert not a.is_expired
    with freeze_time("2026-01-09 12:00:00"):
        assert a.is_expired


@pytest.mark.django_db
def test_read_receipts_and_unread(client_for, student, teacher, enrolled, sem):
    first = announce(teacher, sem, title="First")
    second = announce(teacher, sem, title="Second")
    c = client_for(student)

    r = c.post(f"/api/v1/announcements/{first.id}/read/")
    assert r.status_code == 200
    read_at = r.json()["read_at"]
    # Idempotent: the first read time is kept.
    r = c.post(f"/api/v1/announcements/{first.id}/read/")
    assert r.json()["read_at"] == read_at
    assert AnnouncementRead.objects.count() == 1

    r = c.get("/api/v1/announcements/unread/")
    assert [a["id"] for a in r.json()["results"]] == [second.id]

    flags = {a["id"]: a["is_read"] for a in c.get("/api/v1/announcements/").json()["results"]}
    assert flags == {first.id: True, second.id: False}


@pytest.mark.django_db
def test_read_outside_scope_forbidden(client_for, user_factory, teacher, sem):
    a = announce(teacher, sem)
    outsider = user_factory("outsider")
    c = client_for(outsider)
    assert c.post(f"/api/v1/announcements/{a.id}/read/").status_code == 403
    assert c.post("/api/v1/announcements/987654/read/").status_code == 404
    assert client_for(teacher).post(f"/api/v1/announcements/{a.id}/read/").status_code == 403


@pytest.mark.django_db
def test_create_with_attachments(client_for, teacher, sem):
    files = [
        SimpleUploadedFile("slides.pdf", b"%PDF", content_type="application/pdf"),
        SimpleUploadedFile("photo.png", b"\x89PNG", content_type="image/png"),
    ]
    r = client_for(teacher).post(
        "/api/v1/announcements/",
        {"title": "Exam", "content": "Room 4", "semester": sem.id, "priority": "high", "attachments": files},
        format="multipart",
    )
    assert r.status_code == 201, r.content
    body = r.json()
    assert body["author"] == teacher.id
    assert sorted(a["original_name"] for a in body["attachments"]) == ["photo.png", "slides.pdf"]
    assert AnnouncementAttachment.objects.count() == 2


@pytest.mark.django_db
def test_attachment_rules(client_for, teacher, sem, settings):
    c = client_for(teacher)
    bad = SimpleUploadedFile("run.exe", b"MZ", content_type="application/octet-stream")
    r = c.post(
        "/api/v1/announcements/",
        {"title": "x", "content": "y", "semester": sem.id, "attachments": [bad]},
        format="multipart",
    )
    assert r.status_code == 400
    assert "attachments" in r.json()["errors"]

    settings.EDUTRACK_ATTACHMENT_MAX_COUNT = 1
    many = [SimpleUploadedFile(f"{i}.txt", b"t", content_type="text/plain") for i in range(2)]
    r = c.post(
        "/api/v1/announcements/",
        {"title": "x", "content": "y", "semester": sem.id, "attachments": many},
        format="multipart",
    )
    assert r.status_code == 400
    assert not Announcement.objects.exists()


@pytest.mark.django_db
def test_expiry_must_follow_publish(client_for, teacher, sem):
    r = client_for(teacher).post(
        "/api/v1/announcements/",
        {
            "title": "x",
            "content": "y",
            "semester": sem.id,
            "publish_date": "2026-05-02T10:00:00Z",
            "expiry_date": "2026-05-01T10:00:00Z",
        },
        format="json",
    )
    assert r.status_code == 400
    assert "expiry_date" in r.json()["errors"]


@pytest.mark.django_db
def test_update_by_author_only_and_soft_delete(client_for, teacher, user_factory, admin_user, sem):
    a = announce(teacher, sem)
    other = user_factory("other", Role.TEACHER)
    url = f"/api/v1/announcements/{a.id}/"
    assert client_for(other).patch(url, {"title": "Mine now"}, format="json").status_code == 403
    r = client_for(teacher).patch(url, {"priority": "urgent"}, format="json")
    assert r.status_code == 200
    assert r.json()["priority"] == "urgent"
    assert client_for(admin_user).delete(url).status_code == 204
    a.refresh_from_db()
    assert a.is_active is False


@pytest.mark.django_db
def test_attachment_download_is_scoped(client_for, student, teacher, user_factory, enrolled, sem):
    a = announce(teacher, sem)
    att = AnnouncementAttachment.objects.create(
        announcement=a, file=SimpleUploadedFile("notes.txt", b"hello", content_type="text/plain")
    )
    url = f"/api/v1/announcements/{a.id}/attachments/{att.id}/download/"
    r = client_for(student).get(url)
    assert r.status_code == 200
    assert b"".join(r.streaming_content) == b"hello"
    assert client_for(user_factory("outsider")).get(url).status_code == 403


@pytest.mark.django_db
def test_count_admin_only(client_for, admin_user, student, teacher, sem):
    announce(teacher, sem)
    announce(teacher, sem, is_active=False)
    assert client_for(student).get("/api/v1/announcements/count/").status_code == 403
    assert client_for(admin_user).get("/api/v1/announcements/count/").json() == {"total": 2}


@pytest.mark.django_db
def test_update_stores_both_attachment_fields(client_for, teacher, sem):
    a = announce(teacher, sem)
    r = client_for(teacher).patch(
        f"/api/v1/announcements/{a.id}/",
        {
            "attachments": [SimpleUploadedFile("agenda.pdf", b"%PDF", content_type="application/pdf")],
            "new_attachments": [SimpleUploadedFile("notes.txt", b"n", content_type="text/plain")],
        },
        format="multipart",
    )
    assert r.status_code == 200, r.content
    names = sorted(a.attachments.values_list("original_name", flat=True))
    assert names == ["agenda.pdf", "notes.txt"]
