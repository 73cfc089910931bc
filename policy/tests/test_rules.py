from __future__ import annotations

from datetime import time

import pytest

from accounts.models import Role
from assignments.models import Submission
from courses.models import Semester
from policy.exceptions import ConflictError, RuleViolation
from policy.rules import (
    check_course_code_unique,
    check_enrollment,
    check_grade_range,
    check_semester_number_unique,
    check_single_submission,
    check_time_range,
    check_timetable_conflict,
    intervals_overlap,
    set_current_semester,
)


def t(value: str) -> time:
    return time.fromisoformat(value)


@pytest.mark.parametrize(
    "a,b,expected",
    [
        (("09:00", "10:00"), ("09:30", "10:30"), True),
        (("09:00", "10:00"), ("10:00", "11:00"), False),
        (("10:00", "11:00"), ("09:00", "10:00"), False),
        (("09:00", "12:00"), ("10:00", "11:00"), True),
        (("09:00", "10:00"), ("11:00", "12:00"), False),
    ],
)
def test_intervals_overlap_half_open(a, b, expected):
    assert intervals_overlap(t(a[0]), t(a[1]), t(b[0]), t(b[1])) is expected


def test_time_range_requires_start_before_end():
    check_time_range(t("09:00"), t("09:01"))
    with pytest.raises(RuleViolation):
        check_time_range(t("10:00"), t("10:00"))
    with pytest.raises(RuleViolation):
        check_time_range(t("11:00"), t("10:00"))


@pytest.mark.django_db
class TestTimetableConflicts:
    @pytest.fixture(autouse=True)
    def _setup(self, user_factory, course_factory, entry_factory):
        self.t1 = user_factory("t1", Role.TEACHER)
        self.t2 = user_factory("t2", Role.TEACHER)
        self.c1 = course_factory("C1", teacher=self.t1)
        self.c2 = course_factory("C2", teacher=self.t2)
        self.entry = entry_factory(self.c1, self.t1, "Monday", "09:00", "10:00", room="101")

    def candidate(self, **overrides):
        data = {
            "day": "Monday",
            "start_time": t("09:30"),
            "end_time": t("10:30"),
            "course_id": self.c2.id,
            "teacher_id": self.t2.id,
            "room": "202",
        }
        data.update(overrides)
        return data

    def test_same_teacher_overlap_rejected(self):
        with pytest.raises(ConflictError) as info:
            check_timetable_conflict(**self.candidate(teacher_id=self.t1.id))
        assert info.value.invariant == "timetable_overlap"
        assert info.value.details["conflicting_entry"] == self.entry.id

    def test_same_course_and_room_rejected(self):
        with pytest.raises(ConflictError):
            check_timetable_conflict(**self.candidate(course_id=self.c1.id, room="101"))

    def test_same_room_different_course_and_teacher_allowed(self):
        check_timetable_conflict(**self.candidate(room="101"))

    def test_touching_boundary_allowed(self):
        check_timetable_conflict(**self.candidate(teacher_id=self.t1.id, start_time=t("10:00"), end_time=t("11:00")))

    def test_other_day_allowed(self):
        check_timetable_conflict(**self.candidate(teacher_id=self.t1.id, day="Tuesday"))

    def test_inactive_entries_ignored(self):
        self.entry.is_active = False
        self.entry.save()
        check_timetable_conflict(**self.candidate(teacher_id=self.t1.id))

    def test_update_excludes_self(self):
        check_timetable_conflict(
            **self.candidate(
                course_id=self.c1.id,
                teacher_id=self.t1.id,
                room="101",
                start_time=t("09:15"),
                end_time=t("10:15"),
                exclude_id=self.entry.id,
            )
        )


@pytest.mark.django_db
def test_set_current_semester_is_singleton(semester_factory):
    s1 = semester_factory(1, is_current=True)
    s2 = semester_factory(2)
    s3 = semester_factory(3)
    for target in (s3, s2, s3, s1):
        set_current_semester(target)
        assert list(Semester.objects.filter(is_current=True).values_list("id", flat=True)) == [target.id]


@pytest.mark.django_db
def test_saving_current_semester_clears_others(semester_factory):
    s1 = semester_factory(1, is_current=True)
    s3 = semester_factory(3, is_current=True)
    s1.refresh_from_db()
    assert not s1.is_current
    assert Semester.objects.get(is_current=True) == s3


@pytest.mark.django_db
def test_semester_number_unique(semester_factory):
    s1 = semester_factory(1)
    with pytest.raises(ConflictError) as info:
        check_semester_number_unique(1)
    assert info.value.invariant == "semester_number"
    check_semester_number_unique(1, exclude_id=s1.id)


@pytest.mark.django_db
def test_course_code_unique_per_semester(course_factory, semester_factory):
    s1 = semester_factory(1)
    s2 = semester_factory(2)
    c = course_factory("cs101", semester=s1)
    assert c.code == "CS101"
    with pytest.raises(ConflictError) as info:
        check_course_code_unique(" Cs101 ", s1.id)
    assert info.value.invariant == "course_code"
    check_course_code_unique("CS101", s2.id)
    check_course_code_unique("CS101", s1.id, exclude_id=c.id)


@pytest.mark.django_db
def test_single_submission(student, course_factory, assignment_factory, teacher):
    a = assignment_factory(course_factory("A1", teacher=teacher))
    check_single_submission(a.id, student.id)
    Submission.objects.create(assignment=a, student=student, file="assignment_submissions/x.pdf")
    with pytest.raises(ConflictError) as info:
        check_single_submission(a.id, student.id)
    assert info.value.invariant == "duplicate_submission"


@pytest.mark.parametrize("grade,ok", [(0, True), (50, True), (100, True), (-1, False), (100.5, False), (None, False)])
def test_grade_range(grade, ok):
    if ok:
        check_grade_range(grade, 100)
    else:
        with pytest.raises(RuleViolation) as info:
            check_grade_range(grade, 100)
        assert info.value.field == "grade"


@pytest.mark.django_db
def test_enrollment_rules(user_factory, course_factory):
    course = course_factory("SMALL", max_enrollment=1)
    a = user_factory("a")
    b = user_factory("b")
    check_enrollment(course, a.id)
    course.students.add(a)
    with pytest.raises(ConflictError) as dup:
        check_enrollment(course, a.id)
    assert dup.value.invariant == "already_enrolled"
    with pytest.raises(ConflictError) as full:
        check_enrollment(course, b.id)
    assert full.value.invariant == "course_full"
    course.is_active = False
    course.save()
    with pytest.raises(RuleViolation):
        check_enrollment(course, b.id)
