# ============================================
# board/models/issue.py
# ============================================
from django.db import models
from django.db.models import Q

from .mixins import SoftDeleteModel


class Issue(SoftDeleteModel):
    class IssueType(models.TextChoices):
        TASK = 'task', 'Task'
        BUG = 'bug', 'Bug'
        STORY = 'story', 'Story'
        EPIC = 'epic', 'Epic'
        SUBTASK = 'subtask', 'Sub-task'

    class Status(models.TextChoices):
        # declaration order is the column order on the board
        BACKLOG = 'backlog', 'Backlog'
        TODO = 'todo', 'To Do'
        IN_PROGRESS = 'in-progress', 'In Progress'
        DONE = 'done', 'Done'

    class Priority(models.TextChoices):
        LOW = 'low', 'Low'
        MEDIUM = 'medium', 'Medium'
        HIGH = 'high', 'High'
        CRITICAL = 'critical', 'Critical'

    class Resolution(models.TextChoices):
        UNRESOLVED = 'unresolved', 'Unresolved'
        DONE = 'done', 'Done'
        WONT_FIX = 'wont-fix', "Won't fix"
        DUPLICATE = 'duplicate', 'Duplicate'
        INCOMPLETE = 'incomplete', 'Incomplete'

    project = models.ForeignKey(
        'Project',
        on_delete=models.CASCADE,
        related_name='issues'
    )
    number = models.PositiveIntegerField()
    key = models.CharField(max_length=20, db_index=True)
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    issue_type = models.CharField(
        max_length=10,
        choices=IssueType.choices,
        default=IssueType.TASK
    )
    priority = models.CharField(
        max_length=10,
        choices=Priority.choices,
        default=Priority.MEDIUM
    )
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.BACKLOG,
        db_index=True
    )
    rank = models.CharField(max_length=64)
    labels = models.JSONField(default=list, blank=True)
    story_points = models.DecimalField(max_digits=6, decimal_places=1, null=True, blank=True)
    due_date = models.DateField(null=True, blank=True)
    sprint = models.ForeignKey(
        'Sprint',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='issues'
    )
    assignee_id = models.CharField(max_length=64, null=True, blank=True, db_index=True)
    reporter_id = models.CharField(max_length=64, db_index=True)
    parent = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='subtasks'
    )
    epic = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='epic_issues'
    )
    linked_issues = models.ManyToManyField('self', symmetrical=True, blank=True)
    resolution = models.CharField(
        max_length=12,
        choices=Resolution.choices,
        default=Resolution.UNRESOLVED
    )
    resolution_date = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'issues'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['project', 'status', 'rank']),
            models.Index(fields=['project', 'issue_type']),
            models.Index(fields=['sprint']),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['project', 'number'],
                name='uniq_issue_number_per_project',
            ),
            models.UniqueConstraint(
                fields=['project', 'key'],
                condition=Q(deleted_at__isnull=True),
                name='uniq_active_issue_key',
            ),
            models.UniqueConstraint(
                fields=['project', 'status', 'rank'],
                condition=Q(deleted_at__isnull=True),
                name='uniq_active_issue_rank',
            ),
            models.CheckConstraint(
                condition=Q(story_points__isnull=True) | Q(story_points__gte=0),
                name='issue_story_points_non_negative',
            ),
        ]

    def __str__(self):
        return f"{self.key} - {self.title}"

    @property
    def is_epic(self) -> bool:
        return self.issue_type == self.IssueType.EPIC

    @property
    def is_done(self) -> bool:
        return self.status == self.Status.DONE
