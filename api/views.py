"""REST API v1 viewsets.

List endpoints are narrowed by the visibility policy; single-object
endpoints resolve the id against the whole table (404 when missing) and
then check read or write rights on the instance (403 when outside the
caller's reach). Role gates sit on each action via `role_required`.
"""
from __future__ import annotations

import logging

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import Count, Prefetch
from django.http import FileResponse
from django.shortcuts import get_object_or_404
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from accounts.decorators import role_required
from accounts.models import Role
from activity.models import Announcement, AnnouncementAttachment, validate_attachment
from activity.utils import by_priority, mark_read, unread_for, with_read_flag
from assignments.models import Assignment, Grade, Submission
from assignments.utils import combine_due, grade_submission, submit, upsert_grade
from courses.models import Course, Semester
from courses.utils import enroll_student, set_teaching_courses, teacher_stats
from materials.models import Material
from policy.exceptions import ConflictError, ForbiddenByOwnership, RuleViolation
from policy.identity import resolve_identity
from policy.ownership import ensure_can_mutate, ensure_can_read, ensure_role
from policy.rules import (
    check_can_be_current,
    check_course_code_unique,
    check_max_points_covers_grades,
    check_semester_number_unique,
    check_time_range,
    check_timetable_conflict,
    set_current_semester,
)
from policy.visibility import EntityKind, scope
from timetable.models import TimetableEntry

from .filters import (
    AnnouncementFilter,
    AssignmentFilter,
    CourseFilter,
    GradeFilter,
    MaterialFilter,
    TimetableFilter,
)
from .permissions import PublicReadOnly
from .serializers import (
    AnnouncementSerializer,
    AssignmentSerializer,
    CourseBriefSerializer,
    CourseSerializer,
    GradeSerializer,
    GradeSubmissionSerializer,
    MaterialSerializer,
    MaterialUpdateSerializer,
    ProfileUpdateSerializer,
    SemesterSelectionSerializer,
    SemesterSerializer,
    SubmissionSerializer,
    SubmitSerializer,
    TeachingCoursesSerializer,
    TimetableEntrySerializer,
    UserBriefSerializer,
    UserSerializer,
    UserStatusSerializer,
)

User = get_user_model()
logger = logging.getLogger(__name__)

STUDENT, TEACHER, ADMIN = Role.STUDENT.value, Role.TEACHER.value, Role.ADMIN.value

READ_ACTIONS = {"retrieve"}
WRITE_ACTIONS = {"update", "partial_update", "destroy"}


def _download(file_field, filename: str) -> FileResponse:
    return FileResponse(file_field.open("rb"), as_attachment=True, filename=filename or None)


class ScopedViewSetMixin:
    """Visibility-scoped lists plus per-instance read/write checks."""

    entity_kind: EntityKind

    @property
    def identity(self):
        return resolve_identity(self.request)

    def get_serializer_context(self):
        context = super().get_serializer_context()
        if self.request.user.is_authenticated:
            context["identity"] = self.identity
        return context

    def scoped(self, queryset):
        return scope(self.entity_kind, self.identity, queryset)

    def get_queryset(self):
        queryset = super().get_queryset()
        if getattr(self, "swagger_fake_view", False):
            return queryset.none()
        if self.action == "list":
            return self.scoped(queryset)
        return queryset

    def get_object(self):
        obj = super().get_object()
        if self.action in READ_ACTIONS:
            ensure_can_read(self.identity, obj)
        elif self.action in WRITE_ACTIONS:
            ensure_can_mutate(self.identity, obj)
        return obj

    def paginated(self, queryset, serializer_class=None):
        serializer_class = serializer_class or self.get_serializer_class()
        context = self.get_serializer_context()
        page = self.paginate_queryset(queryset)
        if page is not None:
            return self.get_paginated_response(serializer_class(page, many=True, context=context).data)
        return Response(serializer_class(queryset, many=True, context=context).data)

    def soft_delete(self, instance):
        instance.is_active = False
        instance.save(update_fields=["is_active", "updated_at"])
        logger.info("%s %s deactivated by user=%s", type(instance).__name__, instance.pk, self.identity.id)


class UserViewSet(mixins.ListModelMixin, mixins.DestroyModelMixin, viewsets.GenericViewSet):
    queryset = User.objects.select_related("profile").order_by("username")
    serializer_class = UserSerializer
    search_fields = ["username", "email", "profile__full_name"]
    ordering_fields = ["username", "id", "date_joined"]

    @role_required(ADMIN)
    def list(self, request, *args, **kwargs):
        return super().list(request, *args, **kwargs)

    @role_required(ADMIN)
    def destroy(self, request, *args, **kwargs):
        user = self.get_object()
        if user.pk == request.user.pk:
            raise RuleViolation("Administrators cannot delete their own account.")
        logger.info("User %s deleted by admin=%s", user.pk, request.user.pk)
        user.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=False, methods=["get"])
    @role_required(TEACHER, ADMIN)
    def students(self, request):
        qs = self.filter_queryset(self.get_queryset().filter(profile__role=Role.STUDENT, is_active=True))
        page = self.paginate_queryset(qs)
        data = UserSerializer(page if page is not None else qs, many=True).data
        return self.get_paginated_response(data) if page is not None else Response(data)

    @action(detail=False, methods=["get", "patch"])
    def me(self, request):
        user = request.user
        if request.method == "PATCH":
            serializer = ProfileUpdateSerializer(user, data=request.data, partial=True)
            serializer.is_valid(raise_exception=True)
            serializer.save()
            user = self.get_queryset().get(pk=user.pk)
        return Response(UserSerializer(user).data)

    @action(detail=False, methods=["post"], url_path="me/semester")
    @role_required(STUDENT)
    def select_semester(self, request):
        """One-time semester selection for students."""
        serializer = SemesterSelectionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        with transaction.atomic():
            profile = type(request.user.profile).objects.select_for_update().get(pk=request.user.profile.pk)
            if profile.current_semester_id is not None:
                raise ConflictError("Semester already selected.", invariant="semester_already_selected")
            profile.current_semester = serializer.validated_data["semester"]
            profile.save(update_fields=["current_semester", "updated_at"])
        return Response(UserSerializer(self.get_queryset().get(pk=request.user.pk)).data)

    @action(detail=True, methods=["patch"], url_path="status")
    @role_required(ADMIN)
    def set_status(self, request, pk=None):
        user = self.get_object()
        serializer = UserStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user.is_active = serializer.validated_data["is_active"]
        user.save(update_fields=["is_active"])
        logger.info("User %s is_active=%s set by admin=%s", user.pk, user.is_active, request.user.pk)
        return Response(UserSerializer(user).data)


class SemesterViewSet(viewsets.ModelViewSet):
    serializer_class = SemesterSerializer
    permission_classes = [PublicReadOnly]
    ordering_fields = ["number", "academic_year"]
    pagination_class = None

    def get_queryset(self):
        qs = Semester.objects.all()
        if self.action in ("list", "current"):
            qs = qs.filter(is_active=True)
        return qs.order_by("number")

    @action(detail=False, methods=["get"])
    def current(self, request):
        semester = Semester.objects.filter(is_current=True, is_active=True).first()
        if semester is None:
            return Response(
                {"detail": "No current semester set.", "code": "not_found"}, status=status.HTTP_404_NOT_FOUND
            )
        return Response(self.get_serializer(semester).data)

    @role_required(ADMIN)
    def create(self, request, *args, **kwargs):
        return super().create(request, *args, **kwargs)

    @role_required(ADMIN)
    def update(self, request, *args, **kwargs):
        return super().update(request, *args, **kwargs)

    @role_required(ADMIN)
    def destroy(self, request, *args, **kwargs):
        semester = self.get_object()
        semester.is_active = False
        semester.is_current = False
        semester.save(update_fields=["is_active", "is_current", "updated_at"])
        return Response(status=status.HTTP_204_NO_CONTENT)

    def perform_create(self, serializer):
        data = serializer.validated_data
        check_semester_number_unique(data["number"])
        if data.get("is_current"):
            check_can_be_current(data.get("is_active", True))
        semester = serializer.save()
        if semester.is_current:
            logger.info("Semester %s created as current", semester.pk)

    def perform_update(self, serializer):
        number = serializer.validated_data.get("number")
        if number is not None:
            check_semester_number_unique(number, exclude_id=serializer.instance.pk)
        instance = serializer.instance
        data = serializer.validated_data
        if data.get("is_current", instance.is_current):
            check_can_be_current(data.get("is_active", instance.is_active))
        serializer.save()

    @action(detail=True, methods=["post"], url_path="set-current")
    @role_required(ADMIN)
    def set_current(self, request, pk=None):
        semester = self.get_object()
        check_can_be_current(semester.is_active)
        set_current_semester(semester)
        logger.info("Current semester set to %s by admin=%s", semester.pk, request.user.pk)
        return Response(self.get_serializer(semester).data)


class CourseViewSet(ScopedViewSetMixin, viewsets.ModelViewSet):
    entity_kind = EntityKind.COURSE
    queryset = (
        Course.objects.select_related("semester", "teacher__profile")
        .annotate(student_count=Count("students", distinct=True))
        .order_by("semester__number", "code")
    )
    serializer_class = CourseSerializer
    filterset_class = CourseFilter
    search_fields = ["name", "code", "department"]
    ordering_fields = ["code", "name", "credits", "created_at"]

    @role_required(TEACHER, ADMIN)
    def create(self, request, *args, **kwargs):
        return super().create(request, *args, **kwargs)

    @role_required(TEACHER, ADMIN)
    def update(self, request, *args, **kwargs):
        return super().update(request, *args, **kwargs)

    @role_required(TEACHER, ADMIN)
    def destroy(self, request, *args, **kwargs):
        self.soft_delete(self.get_object())
        return Response(status=status.HTTP_204_NO_CONTENT)

    def perform_create(self, serializer):
        data = serializer.validated_data
        check_course_code_unique(data["code"], data["semester"].pk)
        if self.identity.is_teacher:
            serializer.save(teacher=self.request.user)
        else:
            serializer.save()

    def perform_update(self, serializer):
        instance = serializer.instance
        data = serializer.validated_data
        code = data.get("code", instance.code)
        semester_id = data["semester"].pk if "semester" in data else instance.semester_id
        check_course_code_unique(code, semester_id, exclude_id=instance.pk)
        if self.identity.is_teacher:
            # Teachers cannot hand their course to someone else here.
            data.pop("teacher", None)
        serializer.save()

    @action(detail=True, methods=["post"])
    @role_required(STUDENT)
    def enroll(self, request, pk=None):
        course = self.get_object()
        course = enroll_student(course, request.user)
        return Response(self.get_serializer(course).data)

    @action(detail=False, methods=["get"])
    @role_required(STUDENT)
    def enrolled(self, request):
        qs = self.get_queryset().filter(students=request.user, is_active=True)
        return self.paginated(qs)

    @action(detail=False, methods=["get", "put"])
    @role_required(TEACHER, ADMIN)
    def teaching(self, request):
        if request.method == "PUT":
            ensure_role(self.identity, TEACHER)
            serializer = TeachingCoursesSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            set_teaching_courses(request.user, serializer.validated_data["course_ids"])
        qs = self.get_queryset().filter(teacher=request.user, is_active=True)
        return self.paginated(qs)

    @action(detail=False, methods=["get"], url_path="teaching/stats")
    @role_required(TEACHER, ADMIN)
    def teaching_stats(self, request):
        return Response(teacher_stats(request.user))

    @action(detail=False, methods=["get"])
    @role_required(ADMIN)
    def count(self, request):
        return Response({"total": Course.objects.count()})


class AssignmentViewSet(ScopedViewSetMixin, viewsets.ModelViewSet):
    entity_kind = EntityKind.ASSIGNMENT
    queryset = Assignment.objects.select_related("course", "semester", "teacher").prefetch_related(
        Prefetch("submissions", queryset=Submission.objects.select_related("student__profile"))
    )
    serializer_class = AssignmentSerializer
    filterset_class = AssignmentFilter
    search_fields = ["title", "description", "course__code", "course__name"]
    ordering_fields = ["due_date", "title", "created_at"]

    @role_required(TEACHER, ADMIN)
    def create(self, request, *args, **kwargs):
        return super().create(request, *args, **kwargs)

    @role_required(TEACHER, ADMIN)
    def update(self, request, *args, **kwargs):
        return super().update(request, *args, **kwargs)

    @role_required(TEACHER, ADMIN)
    def destroy(self, request, *args, **kwargs):
        self.soft_delete(self.get_object())
        return Response(status=status.HTTP_204_NO_CONTENT)

    def _due(self, data, instance=None):
        due_time = data.pop("due_time", None)
        if "due_date" in data:
            return combine_due(data["due_date"], due_time)
        if due_time is not None and instance is not None:
            return combine_due(instance.due_date, due_time)
        return None

    def perform_create(self, serializer):
        data = serializer.validated_data
        data["due_date"] = self._due(data)
        course = data["course"]
        teacher = self.request.user if self.identity.is_teacher else (course.teacher or self.request.user)
        serializer.save(teacher=teacher, semester=course.semester)

    def perform_update(self, serializer):
        data = serializer.validated_data
        due = self._due(data, serializer.instance)
        if due is not None:
            data["due_date"] = due
        if "max_points" in data:
            check_max_points_covers_grades(serializer.instance.pk, data["max_points"])
        extra = {"semester": data["course"].semester} if "course" in data else {}
        serializer.save(**extra)

    @action(detail=True, methods=["post"], serializer_class=SubmitSerializer)
    @role_required(STUDENT)
    def submit(self, request, pk=None):
        assignment = self.get_object()
        ensure_can_read(self.identity, assignment)
        serializer = SubmitSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        submission = submit(assignment, request.user, serializer.validated_data["file"])
        return Response(SubmissionSerializer(submission).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"], serializer_class=GradeSubmissionSerializer)
    @role_required(TEACHER)
    def grade(self, request, pk=None):
        # Any teacher may grade; ownership is deliberately not checked.
        assignment = self.get_object()
        serializer = GradeSubmissionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        submission = grade_submission(assignment, data["student"], data["grade"], request.user, data["feedback"])
        return Response(SubmissionSerializer(submission).data)

    @action(detail=True, methods=["get"], url_path=r"submissions/(?P<student_id>\d+)/download")
    def download_submission(self, request, pk=None, student_id=None):
        assignment = self.get_object()
        submission = get_object_or_404(Submission, assignment=assignment, student_id=student_id)
        identity = self.identity
        if not (identity.is_admin or identity.is_teacher or submission.student_id == identity.id):
            raise ForbiddenByOwnership()
        return _download(submission.file, submission.original_name)


class GradeViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    serializer_class = GradeSerializer
    filterset_class = GradeFilter
    ordering_fields = ["created_at", "grade"]

    def get_queryset(self):
        qs = Grade.objects.select_related("assignment", "student__profile")
        if getattr(self, "swagger_fake_view", False):
            return qs.none()
        identity = resolve_identity(self.request)
        if self.action == "list" and identity.is_student:
            qs = qs.filter(student_id=identity.id)
        return qs

    def get_object(self):
        obj = super().get_object()
        identity = resolve_identity(self.request)
        if identity.is_student and obj.student_id != identity.id:
            raise ForbiddenByOwnership()
        return obj

    @role_required(TEACHER, ADMIN)
    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        record, created = upsert_grade(data["assignment"], data["student"], data["grade"])
        return Response(
            self.get_serializer(record).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )

    @role_required(TEACHER, ADMIN)
    def destroy(self, request, *args, **kwargs):
        return super().destroy(request, *args, **kwargs)


class AnnouncementViewSet(ScopedViewSetMixin, viewsets.ModelViewSet):
    entity_kind = EntityKind.ANNOUNCEMENT
    queryset = Announcement.objects.select_related("author__profile", "semester").prefetch_related("attachments")
    serializer_class = AnnouncementSerializer
    filterset_class = AnnouncementFilter
    search_fields = ["title", "content"]

    def get_queryset(self):
        qs = super().get_queryset()
        if self.request.user.is_authenticated and self.identity.is_student:
            qs = with_read_flag(qs, self.request.user)
        return by_priority(qs)

    def _attachments(self, field: str = "attachments"):
        files = self.request.FILES.getlist(field)
        limit = settings.EDUTRACK_ATTACHMENT_MAX_COUNT
        if len(files) > limit:
            raise RuleViolation(f"At most {limit} attachments are allowed.", field=field)
        for f in files:
            try:
                validate_attachment(f)
            except DjangoValidationError as exc:
                raise RuleViolation(f"{f.name}: {' '.join(exc.messages)}", field=field) from exc
        return files

    def _store_attachments(self, announcement, files):
        for f in files:
            AnnouncementAttachment.objects.create(announcement=announcement, file=f, original_name=f.name)

    @role_required(TEACHER, ADMIN)
    def create(self, request, *args, **kwargs):
        return super().create(request, *args, **kwargs)

    @role_required(TEACHER, ADMIN)
    def update(self, request, *args, **kwargs):
        return super().update(request, *args, **kwargs)

    @role_required(TEACHER, ADMIN)
    def destroy(self, request, *args, **kwargs):
        self.soft_delete(self.get_object())
        return Response(status=status.HTTP_204_NO_CONTENT)

    def perform_create(self, serializer):
        files = self._attachments()
        with transaction.atomic():
            announcement = serializer.save(author=self.request.user)
            self._store_attachments(announcement, files)

    def perform_update(self, serializer):
        files = self._attachments() + self._attachments("new_attachments")
        existing = serializer.instance.attachments.count()
        if existing + len(files) > settings.EDUTRACK_ATTACHMENT_MAX_COUNT:
            raise RuleViolation(
                f"At most {settings.EDUTRACK_ATTACHMENT_MAX_COUNT} attachments are allowed.", field="attachments"
            )
        with transaction.atomic():
            announcement = serializer.save()
            self._store_attachments(announcement, files)

    @action(detail=True, methods=["post"])
    @role_required(STUDENT)
    def read(self, request, pk=None):
        announcement = get_object_or_404(Announcement, pk=pk)
        ensure_can_read(self.identity, announcement)
        receipt = mark_read(announcement, request.user)
        return Response({"detail": "Announcement marked as read.", "read_at": receipt.read_at})

    @action(detail=False, methods=["get"])
    @role_required(STUDENT)
    def unread(self, request):
        qs = unread_for(self.scoped(self.get_queryset()), request.user)
        return self.paginated(self.filter_queryset(qs))

    @action(detail=False, methods=["get"])
    @role_required(ADMIN)
    def count(self, request):
        return Response({"total": Announcement.objects.count()})

    @action(detail=True, methods=["get"], url_path=r"attachments/(?P<attachment_id>\d+)/download")
    def download_attachment(self, request, pk=None, attachment_id=None):
        announcement = get_object_or_404(Announcement, pk=pk)
        ensure_can_read(self.identity, announcement)
        attachment = get_object_or_404(AnnouncementAttachment, pk=attachment_id, announcement=announcement)
        return _download(attachment.file, attachment.original_name)


class MaterialViewSet(ScopedViewSetMixin, viewsets.ModelViewSet):
    entity_kind = EntityKind.MATERIAL
    queryset = Material.objects.select_related("course", "semester", "teacher__profile")
    serializer_class = MaterialSerializer
    filterset_class = MaterialFilter
    search_fields = ["title", "description", "tags"]
    ordering_fields = ["created_at", "title", "download_count"]
    http_method_names = ["get", "post", "patch", "delete", "head", "options"]

    def get_serializer_class(self):
        if self.action in ("update", "partial_update"):
            return MaterialUpdateSerializer
        return super().get_serializer_class()

    @role_required(TEACHER, ADMIN)
    def create(self, request, *args, **kwargs):
        return super().create(request, *args, **kwargs)

    @role_required(TEACHER, ADMIN)
    def update(self, request, *args, **kwargs):
        response = super().update(request, *args, **kwargs)
        response.data = MaterialSerializer(self.get_object(), context=self.get_serializer_context()).data
        return response

    @role_required(TEACHER, ADMIN)
    def destroy(self, request, *args, **kwargs):
        self.soft_delete(self.get_object())
        return Response(status=status.HTTP_204_NO_CONTENT)

    def perform_create(self, serializer):
        course = serializer.validated_data["course"]
        if self.identity.is_teacher and course.teacher_id != self.identity.id:
            raise ForbiddenByOwnership("You can only upload materials to courses you teach.")
        semester = serializer.validated_data.get("semester") or course.semester
        material = serializer.save(teacher=self.request.user, semester=semester)
        logger.info("Material %s uploaded to course=%s by user=%s", material.pk, course.pk, self.identity.id)

    @action(detail=True, methods=["get"])
    def download(self, request, pk=None):
        material = get_object_or_404(Material, pk=pk)
        ensure_can_read(self.identity, material)
        material.record_download()
        return _download(material.file, material.original_name)


class TimetableViewSet(ScopedViewSetMixin, viewsets.ModelViewSet):
    entity_kind = EntityKind.TIMETABLE
    queryset = TimetableEntry.objects.select_related("course", "teacher__profile")
    serializer_class = TimetableEntrySerializer
    filterset_class = TimetableFilter
    ordering_fields = ["start_time", "room"]
    pagination_class = None

    def get_queryset(self):
        return super().get_queryset().in_week_order()

    @role_required(TEACHER, ADMIN)
    def create(self, request, *args, **kwargs):
        return super().create(request, *args, **kwargs)

    @role_required(TEACHER, ADMIN)
    def update(self, request, *args, **kwargs):
        return super().update(request, *args, **kwargs)

    @role_required(ADMIN)
    def destroy(self, request, *args, **kwargs):
        return super().destroy(request, *args, **kwargs)

    def _candidate(self, data, instance=None) -> dict:
        """Merge submitted fields over the stored entry before checking."""

        def pick(name, attr=None):
            if name in data:
                value = data[name]
                return value.pk if hasattr(value, "pk") else value
            return getattr(instance, attr or name) if instance is not None else None

        return {
            "day": pick("day"),
            "start_time": pick("start_time"),
            "end_time": pick("end_time"),
            "course_id": pick("course", "course_id"),
            "teacher_id": pick("teacher", "teacher_id"),
            "room": pick("room"),
            "exclude_id": instance.pk if instance is not None else None,
        }

    def perform_create(self, serializer):
        data = serializer.validated_data
        if "teacher" not in data:
            if not self.identity.is_teacher:
                raise RuleViolation("A teacher is required.", field="teacher")
            data["teacher"] = self.request.user
        candidate = self._candidate(data)
        check_time_range(candidate["start_time"], candidate["end_time"])
        with transaction.atomic():
            if data.get("is_active", True):
                check_timetable_conflict(**candidate)
            serializer.save()

    def perform_update(self, serializer):
        instance = serializer.instance
        data = serializer.validated_data
        candidate = self._candidate(data, instance)
        check_time_range(candidate["start_time"], candidate["end_time"])
        with transaction.atomic():
            if data.get("is_active", instance.is_active):
                check_timetable_conflict(**candidate)
            serializer.save()

    @action(detail=False, methods=["get"])
    @role_required(TEACHER, ADMIN)
    def courses(self, request):
        qs = Course.objects.filter(is_active=True).order_by("code")
        return Response(CourseBriefSerializer(qs, many=True).data)

    @action(detail=False, methods=["get"])
    @role_required(ADMIN)
    def teachers(self, request):
        qs = User.objects.filter(profile__role=Role.TEACHER, is_active=True).select_related("profile")
        return Response(UserBriefSerializer(qs.order_by("username"), many=True).data)
