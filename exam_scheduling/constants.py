from django.db import models


class CanonicalField(models.TextChoices):
    TITLE = "title", "Title"
    COURSE_CODE = "course_code", "Course code"
    EXAM_DATETIME = "exam_datetime", "Exam date and time range"
    DATE_JALALI = "date_jalali", "Date (Jalali)"
    DATE = "date", "Date (Gregorian)"
    TIME = "time", "Start time"
    DURATION_MINUTES = "duration_minutes", "Duration (minutes)"
    EXPECTED_STUDENTS = "expected_students", "Expected students"
    LOCATION = "location", "Location"


class RowStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    SKIPPED = "skipped", "Skipped"
    DUPLICATE = "duplicate", "Duplicate"
    CREATED = "created", "Created"
    CREATE_FAILED = "create_failed", "Create failed"


class UnallocatedPolicy(models.TextChoices):
    SILENT = "silent", "Silent"
    WARN = "warn", "Warn"


class ConflictPolicy(models.TextChoices):
    REPORT = "report", "Report"
    SKIP = "skip", "Skip"


DEFAULT_DURATION_MINUTES = 120
MINUTES_PER_DAY = 24 * 60

EXPORT_SHEET_NAME = "امتحانات"
