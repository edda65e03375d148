import logging
from typing import Optional

from django.conf import settings
from django.http import HttpResponse
from rest_framework import status
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.response import Response
from rest_framework.views import APIView

from exam_scheduling.entities import active_terms
from exam_scheduling.services.backend import BackendError, BackendUnavailable, ExamboardClient
from exam_scheduling.services.conflicts import available_capacity, default_duration
from exam_scheduling.services.export import export_workbook
from exam_scheduling.services.import_processor import import_exam_workbook
from exam_scheduling.services.reports import capacity_report, conflict_report, utilization_report

from .serializers import (
    ExamExportQuerySerializer,
    ExamImportSerializer,
    ReportQuerySerializer,
    RoomCapacityQuerySerializer,
)

logger = logging.getLogger(__name__)

XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _first_error(errors) -> str:
    for field, messages in errors.items():
        if isinstance(messages, (list, tuple)) and messages:
            return str(messages[0])
        return str(messages)
    return "Invalid request."


def _invalid(serializer) -> Response:
    return Response(
        {"status": "error", "message": _first_error(serializer.errors), "errors": serializer.errors},
        status=status.HTTP_400_BAD_REQUEST,
    )


def _backend_failure(exc: BackendError) -> Response:
    """Pass client errors from the examboard API through; anything else is a bad gateway."""
    if isinstance(exc, BackendUnavailable):
        logger.error("Examboard API unreachable: %s", exc)
        return Response(
            {"status": "error", "message": "The examboard API is unreachable."},
            status=status.HTTP_502_BAD_GATEWAY,
        )
    http_status = exc.status_code if exc.status_code and 400 <= exc.status_code < 500 else status.HTTP_502_BAD_GATEWAY
    return Response({"status": "error", "message": exc.describe()}, status=http_status)


def _term_param(data) -> Optional[str]:
    return data.get("term_id") or data.get("termId")


def _with_term(data, **values) -> dict:
    """Serializer input holding only the values actually supplied (``termId`` accepted too)."""
    term_id = _term_param(data)
    if term_id not in (None, ""):
        values["term_id"] = term_id
    return {key: value for key, value in values.items() if value is not None}


class ExamImportView(APIView):
    """Accepts an exam workbook and imports its rows into a term."""

    parser_classes = (MultiPartParser, FormParser)

    def post(self, request, *args, **kwargs):
        serializer = ExamImportSerializer(
            data=_with_term(request.data, file=request.FILES.get("file"))
        )
        if not serializer.is_valid():
            return _invalid(serializer)

        upload = serializer.validated_data["file"]
        term_id = serializer.validated_data["term_id"]
        if hasattr(upload, "seek"):
            upload.seek(0)

        try:
            with ExamboardClient.from_request(request) as backend:
                result = import_exam_workbook(upload, backend, term_id)
        except BackendError as exc:
            return _backend_failure(exc)

        http_status = status.HTTP_200_OK if result.get("status") == "ok" else status.HTTP_400_BAD_REQUEST
        return Response(result, status=http_status)


class ExamExportView(APIView):
    """Streams the term's exams as an xlsx workbook."""

    def get(self, request, *args, **kwargs):
        serializer = ExamExportQuerySerializer(
            data=_with_term(request.query_params, lang=request.query_params.get("lang") or None)
        )
        if not serializer.is_valid():
            return _invalid(serializer)
        term_id = serializer.validated_data["term_id"]
        language = serializer.validated_data["lang"]

        try:
            with ExamboardClient.from_request(request) as backend:
                exams = backend.list_exams(term_id)
                if not exams:
                    return Response(
                        {"status": "error", "message": "No exams found for this term."},
                        status=status.HTTP_404_NOT_FOUND,
                    )
                rooms = _optional_read(backend.list_rooms)
                allocations = _optional_read(backend.list_allocations)
        except BackendError as exc:
            return _backend_failure(exc)

        exam_ids = {exam.id for exam in exams}
        content = export_workbook(
            exams,
            [allocation for allocation in allocations if allocation.exam_id in exam_ids],
            rooms,
            language,
        )
        response = HttpResponse(content, content_type=XLSX_CONTENT_TYPE)
        response["Content-Disposition"] = f'attachment; filename="exams-term-{term_id}.xlsx"'
        return response


def _optional_read(reader) -> list:
    try:
        return reader()
    except BackendUnavailable:
        raise
    except BackendError as exc:
        logger.warning("Optional examboard read failed: %s", exc.describe())
        return []


class RoomCapacityView(APIView):
    """Free seats in a room for a given slot."""

    def get(self, request, room_id: int, *args, **kwargs):
        serializer = RoomCapacityQuerySerializer(data=request.query_params)
        if not serializer.is_valid():
            return _invalid(serializer)
        params = serializer.validated_data

        try:
            with ExamboardClient.from_request(request) as backend:
                room = next((room for room in backend.list_rooms() if room.id == room_id), None)
                if room is None:
                    return Response(
                        {"status": "error", "message": "Room not found."},
                        status=status.HTTP_404_NOT_FOUND,
                    )
                allocations = backend.list_allocations()
                exams = _optional_read(backend.list_exams)
        except BackendError as exc:
            return _backend_failure(exc)

        info = available_capacity(
            room,
            params.get("date"),
            params.get("time"),
            params.get("duration") or default_duration(),
            allocations,
            exams,
            exclude_exam_id=params.get("exclude_exam"),
        )
        payload = info.as_dict()
        payload["room"] = {"id": room.id, "name": room.name}
        return Response(payload, status=status.HTTP_200_OK)


class TermReportView(APIView):
    """Loads a term's exams, their allocations and all rooms, then builds a report."""

    def build(self, exams, allocations, rooms):
        raise NotImplementedError

    def get(self, request, *args, **kwargs):
        serializer = ReportQuerySerializer(data=_with_term(request.query_params))
        if not serializer.is_valid():
            return _invalid(serializer)
        term_id = serializer.validated_data.get("term_id")

        try:
            with ExamboardClient.from_request(request) as backend:
                if term_id is None:
                    terms = active_terms(backend.list_terms())
                    if not terms:
                        return Response(
                            {"status": "error", "message": "No active term found."},
                            status=status.HTTP_404_NOT_FOUND,
                        )
                    term_id = terms[0].id
                exams = backend.list_exams(term_id)
                allocations = backend.list_allocations()
                rooms = backend.list_rooms()
        except BackendError as exc:
            return _backend_failure(exc)

        exam_ids = {exam.id for exam in exams}
        allocations = [allocation for allocation in allocations if allocation.exam_id in exam_ids]
        return Response(
            {"term_id": term_id, "results": self.build(exams, allocations, rooms)},
            status=status.HTTP_200_OK,
        )


class ConflictReportView(TermReportView):
    def build(self, exams, allocations, rooms):
        return conflict_report(exams, allocations, rooms)


class CapacityReportView(TermReportView):
    def build(self, exams, allocations, rooms):
        return capacity_report(exams, allocations, rooms)


class UtilizationReportView(TermReportView):
    def build(self, exams, allocations, rooms):
        return utilization_report(
            allocations,
            rooms,
            working_days=settings.EXAM_REPORT_WORKING_DAYS,
            hours_per_day=settings.EXAM_REPORT_HOURS_PER_DAY,
            exams=exams,
        )
