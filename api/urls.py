"""API routes for EduTrack.

Versioned REST endpoints live under /api/v1/; the OpenAPI schema and its
interactive documentation are served alongside.
"""
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView, SpectacularSwaggerView
from rest_framework.routers import DefaultRouter

from .views import (
    AnnouncementViewSet,
    AssignmentViewSet,
    CourseViewSet,
    GradeViewSet,
    MaterialViewSet,
    SemesterViewSet,
    TimetableViewSet,
    UserViewSet,
)

router = DefaultRouter()
router.register(r"api/v1/users", UserViewSet, basename="users")
router.register(r"api/v1/semesters", SemesterViewSet, basename="semesters")
router.register(r"api/v1/courses", CourseViewSet, basename="courses")
router.register(r"api/v1/assignments", AssignmentViewSet, basename="assignments")
router.register(r"api/v1/grades", GradeViewSet, basename="grades")
router.register(r"api/v1/announcements", AnnouncementViewSet, basename="announcements")
router.register(r"api/v1/materials", MaterialViewSet, basename="materials")
router.register(r"api/v1/timetable", TimetableViewSet, basename="timetable")

urlpatterns = [
    path("api/schema/", SpectacularAPIView.as_view(), name="schema"),
    path("docs/", SpectacularSwaggerView.as_view(url_name="schema"), name="swagger-ui"),
    path("redoc/", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("", include(router.urls)),
]
