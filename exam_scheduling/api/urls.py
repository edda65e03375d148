from django.urls import path

from .views import (
    CapacityReportView,
    ConflictReportView,
    ExamExportView,
    ExamImportView,
    RoomCapacityView,
    UtilizationReportView,
)

urlpatterns = [
    path("exams/import/", ExamImportView.as_view(), name="api-exam-import"),
    path("exams/export/", ExamExportView.as_view(), name="api-exam-export"),
    path("rooms/<int:room_id>/capacity/", RoomCapacityView.as_view(), name="api-room-capacity"),
    path("reports/conflicts/", ConflictReportView.as_view(), name="api-report-conflicts"),
    path("reports/capacity/", CapacityReportView.as_view(), name="api-report-capacity"),
    path("reports/utilization/", UtilizationReportView.as_view(), name="api-report-utilization"),
]
