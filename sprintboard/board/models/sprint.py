# ============================================
# board/models/sprint.py
# ============================================
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q

from .mixins import SoftDeleteModel


class Sprint(SoftDeleteModel):
    class SprintStatus(models.TextChoices):
        PLANNED = 'planned', 'Planned'
        ACTIVE = 'active', 'Active'
        COMPLETED = 'completed', 'Completed'

    project = models.ForeignKey(
        'Project',
        on_delete=models.CASCADE,
        related_name='sprints'
    )
    key = models.CharField(max_length=30, blank=True)
    name = models.CharField(max_length=255)
    goal = models.TextField(blank=True)
    status = models.CharField(
        max_length=10,
        choices=SprintStatus.choices,
        default=SprintStatus.PLANNED
    )
    start_date = models.DateField()
    end_date = models.DateField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'sprints'
        ordering = ['start_date']
        indexes = [
            models.Index(fields=['project', 'status']),
            models.Index(fields=['start_date', 'end_date']),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(start_date__lte=F('end_date')),
                name='sprint_start_before_end',
            ),
        ]

    def __str__(self):
        return f"{self.project.key} - {self.name}"

    def clean(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValidationError("end_date must be on or after start_date")

    @property
    def display_key(self) -> str:
        return self.key or f"SPRINT-{self.pk}"
