"""Serializers for REST API v1.

Serializers validate shape only. Cross-record rules (uniqueness,
overlaps, ranges) are enforced by `policy.rules` in the views, so the
model-derived unique validators are switched off here to keep conflicts
reported as 409 rather than 400.
"""
from __future__ import annotations

from django.contrib.auth import get_user_model
from django.core.validators import MaxValueValidator, MinValueValidator
from rest_framework import serializers

from accounts.models import Role
from activity.models import Announcement, AnnouncementAttachment
from assignments.models import Assignment, Grade, Submission
from courses.models import Course, Semester
from materials.models import Material, parse_tags, validate_upload
from timetable.models import TimetableEntry

User = get_user_model()

HHMM = "%H:%M"


class UserSerializer(serializers.ModelSerializer):
    name = serializers.SerializerMethodField()
    role = serializers.SerializerMethodField()
    student_number = serializers.CharField(source="profile.student_number", read_only=True)
    instructor_id = serializers.CharField(source="profile.instructor_id", read_only=True)
    current_semester = serializers.PrimaryKeyRelatedField(source="profile.current_semester", read_only=True)

    class Meta:
        model = User
        fields = (
            "id",
            "username",
            "email",
            "name",
            "role",
            "is_active",
            "student_number",
            "instructor_id",
            "current_semester",
        )

    def get_name(self, obj) -> str:
        profile = getattr(obj, "profile", None)
        return profile.display_name if profile else obj.get_username()

    def get_role(self, obj) -> str | None:
        profile = getattr(obj, "profile", None)
        return getattr(profile, "role", None)


class UserBriefSerializer(serializers.ModelSerializer):
    name = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ("id", "name", "email")

    def get_name(self, obj) -> str:
        profile = getattr(obj, "profile", None)
        return profile.display_name if profile else obj.get_username()


class ProfileUpdateSerializer(serializers.Serializer):
    full_name = serializers.CharField(max_length=200, required=False, allow_blank=True)
    email = serializers.EmailField(required=False, allow_blank=True)
    phone = serializers.CharField(max_length=50, required=False, allow_blank=True)
    department = serializers.CharField(max_length=100, required=False, allow_blank=True)
    current_semester = serializers.PrimaryKeyRelatedField(
        queryset=Semester.objects.filter(is_active=True), required=False, allow_null=True
    )

    def update(self, user, validated_data):
        profile = user.profile
        if "email" in validated_data:
            user.email = validated_data.pop("email")
            user.save(update_fields=["email"])
        for field, value in validated_data.items():
            setattr(profile, field, value)
        profile.save()
        return user


class SemesterSelectionSerializer(serializers.Serializer):
    semester = serializers.PrimaryKeyRelatedField(queryset=Semester.objects.filter(is_active=True))


class UserStatusSerializer(serializers.Serializer):
    is_active = serializers.BooleanField()


class SemesterSerializer(serializers.ModelSerializer):
    class Meta:
        model = Semester
        fields = ("id", "number", "name", "academic_year", "is_active", "is_current", "created_at", "updated_at")
        read_only_fields = ("created_at", "updated_at")
        # Replacing the validators drops the implicit UniqueValidator.
        extra_kwargs = {"number": {"validators": [MinValueValidator(1), MaxValueValidator(8)]}}


class CourseSerializer(serializers.ModelSerializer):
    teacher = serializers.PrimaryKeyRelatedField(
        queryset=User.objects.filter(profile__role=Role.TEACHER), required=False, allow_null=True
    )
    teacher_detail = UserBriefSerializer(source="teacher", read_only=True)
    semester_number = serializers.IntegerField(source="semester.number", read_only=True)
    enrolled_count = serializers.SerializerMethodField()

    class Meta:
        model = Course
        fields = (
            "id",
            "name",
            "code",
            "description",
            "semester",
            "semester_number",
            "teacher",
            "teacher_detail",
            "prerequisites",
            "credits",
            "department",
            "is_core",
            "max_enrollment",
            "enrolled_count",
            "is_active",
            "created_at",
            "updated_at",
        )
        read_only_fields = ("created_at", "updated_at")
        validators = []

    def get_enrolled_count(self, obj) -> int:
        annotated = getattr(obj, "student_count", None)
        return annotated if annotated is not None else obj.enrolled_count

    def validate_code(self, value: str) -> str:
        code = Course.normalise_code(value)
        if not code:
            raise serializers.ValidationError("Course code is required.")
        return code


class CourseBriefSerializer(serializers.ModelSerializer):
    class Meta:
        model = Course
        fields = ("id", "name", "code")


class TeachingCoursesSerializer(serializers.Serializer):
    course_ids = serializers.ListField(child=serializers.IntegerField(min_value=1), allow_empty=True)

    def validate_course_ids(self, value):
        ids = set(value)
        found = set(Course.objects.filter(pk__in=ids).values_list("pk", flat=True))
        missing = sorted(ids - found)
        if missing:
            raise serializers.ValidationError(f"Unknown course ids: {missing}")
        return sorted(ids)


class SubmissionSerializer(serializers.ModelSerializer):
    student_detail = UserBriefSerializer(source="student", read_only=True)

    class Meta:
        model = Submission
        fields = (
            "id",
            "student",
            "student_detail",
            "original_name",
            "submitted_at",
            "grade",
            "feedback",
            "graded_at",
            "graded_by",
        )
        read_only_fields = fields


class SubmitSerializer(serializers.Serializer):
    file = serializers.FileField()


class GradeSubmissionSerializer(serializers.Serializer):
    student = serializers.IntegerField(min_value=1)
    grade = serializers.FloatField()
    feedback = serializers.CharField(required=False, allow_blank=True, default="")


class AssignmentSerializer(serializers.ModelSerializer):
    due_date = serializers.DateTimeField(input_formats=["iso-8601", "%Y-%m-%d"])
    due_time = serializers.TimeField(input_formats=[HHMM], write_only=True, required=False)
    course_detail = CourseBriefSerializer(source="course", read_only=True)
    submissions = serializers.SerializerMethodField()

    class Meta:
        model = Assignment
        fields = (
            "id",
            "title",
            "description",
            "course",
            "course_detail",
            "semester",
            "teacher",
            "due_date",
            "due_time",
            "max_points",
            "is_active",
            "submissions",
            "created_at",
            "updated_at",
        )
        read_only_fields = ("semester", "teacher", "created_at", "updated_at")

    def get_submissions(self, obj) -> list[dict]:
        """Teachers and admins see every submission; students only their own."""
        identity = self.context.get("identity")
        if identity is None:
            return []
        subs = obj.submissions.all()
        if identity.is_student:
            subs = [s for s in subs if s.student_id == identity.id]
        return SubmissionSerializer(subs, many=True).data


class GradeSerializer(serializers.ModelSerializer):
    assignment_title = serializers.CharField(source="assignment.title", read_only=True)
    max_points = serializers.IntegerField(source="assignment.max_points", read_only=True)
    student_detail = UserBriefSerializer(source="student", read_only=True)

    class Meta:
        model = Grade
        fields = (
            "id",
            "assignment",
            "assignment_title",
            "max_points",
            "student",
            "student_detail",
            "grade",
            "created_at",
            "updated_at",
        )
        read_only_fields = ("created_at", "updated_at")
        validators = []


class AttachmentSerializer(serializers.ModelSerializer):
    class Meta:
        model = AnnouncementAttachment
        fields = ("id", "original_name", "size_bytes", "uploaded_at")
        read_only_fields = fields


class AnnouncementSerializer(serializers.ModelSerializer):
    author_detail = UserBriefSerializer(source="author", read_only=True)
    attachments = AttachmentSerializer(many=True, read_only=True)
    is_expired = serializers.BooleanField(read_only=True)
    is_read = serializers.SerializerMethodField()
    read_count = serializers.SerializerMethodField()

    class Meta:
        model = Announcement
        fields = (
            "id",
            "title",
            "content",
            "semester",
            "author",
            "author_detail",
            "priority",
            "type",
            "is_active",
            "is_published",
            "publish_date",
            "expiry_date",
            "is_expired",
            "is_read",
            "read_count",
            "attachments",
            "created_at",
            "updated_at",
        )
        read_only_fields = ("author", "created_at", "updated_at")

    def get_is_read(self, obj) -> bool | None:
        """Only meaningful for students; annotated on their querysets."""
        return getattr(obj, "is_read", None)

    def get_read_count(self, obj) -> int:
        return obj.reads.count()

    def validate(self, attrs):
        publish = attrs.get("publish_date", getattr(self.instance, "publish_date", None))
        expiry = attrs.get("expiry_date", getattr(self.instance, "expiry_date", None))
        if publish and expiry and expiry <= publish:
            raise serializers.ValidationError({"expiry_date": "Expiry must be after the publish date."})
        return attrs


class TagsField(serializers.Field):
    """Tags as a JSON list or a comma-separated string."""

    def to_representation(self, value):
        return list(value or [])

    def to_internal_value(self, data):
        if not isinstance(data, (str, list, tuple)):
            raise serializers.ValidationError("Expected a list of tags or a comma-separated string.")
        return parse_tags(data)


class MaterialSerializer(serializers.ModelSerializer):
    file = serializers.FileField(write_only=True, validators=[validate_upload])
    tags = TagsField(required=False)
    semester = serializers.PrimaryKeyRelatedField(queryset=Semester.objects.all(), required=False)
    course_detail = CourseBriefSerializer(source="course", read_only=True)
    teacher_detail = UserBriefSerializer(source="teacher", read_only=True)

    class Meta:
        model = Material
        fields = (
            "id",
            "title",
            "description",
            "course",
            "course_detail",
            "semester",
            "teacher",
            "teacher_detail",
            "file",
            "original_name",
            "mime",
            "size_bytes",
            "tags",
            "download_count",
            "created_at",
        )
        read_only_fields = ("teacher", "original_name", "mime", "size_bytes", "download_count", "created_at")


class MaterialUpdateSerializer(serializers.ModelSerializer):
    tags = TagsField(required=False)

    class Meta:
        model = Material
        fields = ("title", "description", "tags")


class TimetableEntrySerializer(serializers.ModelSerializer):
    start_time = serializers.TimeField(format=HHMM, input_formats=[HHMM])
    end_time = serializers.TimeField(format=HHMM, input_formats=[HHMM])
    teacher = serializers.PrimaryKeyRelatedField(
        queryset=User.objects.filter(profile__role=Role.TEACHER, is_active=True), required=False
    )
    course_detail = CourseBriefSerializer(source="course", read_only=True)
    teacher_detail = UserBriefSerializer(source="teacher", read_only=True)

    class Meta:
        model = TimetableEntry
        fields = (
            "id",
            "day",
            "start_time",
            "end_time",
            "course",
            "course_detail",
            "teacher",
            "teacher_detail",
            "room",
            "type",
            "is_active",
            "created_at",
            "updated_at",
        )
        read_only_fields = ("created_at", "updated_at")
