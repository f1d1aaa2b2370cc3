from django.db import models


class Student(models.Model):
    student_id = models.CharField(max_length=64, unique=True)
    name = models.CharField(max_length=255)
    class_label = models.CharField(max_length=64)
    fingerprint_template = models.CharField(max_length=255, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.name} ({self.student_id})"
