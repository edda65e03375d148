import os

from rest_framework import serializers

from exam_scheduling.services.export import EXPORT_LANGUAGES
from exam_scheduling.utils.temporal import coerce_gregorian_date, coerce_jalali_date, coerce_time

ALLOWED_UPLOAD_EXTENSIONS = (".xlsx", ".xls")


class ExamImportSerializer(serializers.Serializer):
    file = serializers.FileField(error_messages={"required": "No file uploaded."})
    term_id = serializers.IntegerField(min_value=1, error_messages={"required": "Select a term before importing."})

    def validate_file(self, upload):
        name = getattr(upload, "name", "") or ""
        if os.path.splitext(name.lower())[1] not in ALLOWED_UPLOAD_EXTENSIONS:
            raise serializers.ValidationError("Only Excel files (.xlsx, .xls) are supported.")
        return upload


class ExamExportQuerySerializer(serializers.Serializer):
    term_id = serializers.IntegerField(min_value=1)
    lang = serializers.ChoiceField(choices=EXPORT_LANGUAGES, default="fa", required=False)


class ReportQuerySerializer(serializers.Serializer):
    term_id = serializers.IntegerField(min_value=1, required=False)


class RoomCapacityQuerySerializer(serializers.Serializer):
    date = serializers.CharField(required=False, allow_blank=True)
    time = serializers.CharField(required=False, allow_blank=True)
    duration = serializers.IntegerField(min_value=1, required=False)
    exclude_exam = serializers.IntegerField(min_value=1, required=False)

    def validate_date(self, value):
        if not value:
            return None
        parsed = coerce_gregorian_date(value) or coerce_jalali_date(value)
        if parsed is None:
            raise serializers.ValidationError("Use YYYY-MM-DD or a Jalali YYYY/MM/DD date.")
        return parsed

    def validate_time(self, value):
        if not value:
            return None
        parsed = coerce_time(value)
        if parsed is None:
            raise serializers.ValidationError("Use HH:MM.")
        return parsed
