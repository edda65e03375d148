from django.urls import include, path

urlpatterns = [
    path("api/", include("exam_scheduling.api.urls")),
    path("", include("exam_scheduling.urls")),
]
