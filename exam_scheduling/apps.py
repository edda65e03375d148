from django.apps import AppConfig


class ExamSchedulingConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "exam_scheduling"
    verbose_name = "Exam scheduling"
