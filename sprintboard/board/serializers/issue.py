# ============================================
# board/serializers/issue.py
# ============================================
from rest_framework import serializers

from board.models import ActivityLog, ChangeLogEntry, Issue


class IssueCreateSerializer(serializers.Serializer):
    project = serializers.CharField(max_length=10, help_text="Project key")
    title = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    issue_type = serializers.ChoiceField(
        choices=Issue.IssueType.choices,
        default=Issue.IssueType.TASK
    )
    priority = serializers.ChoiceField(
        choices=Issue.Priority.choices,
        default=Issue.Priority.MEDIUM
    )
    assignee_id = serializers.CharField(max_length=64, required=False, allow_null=True)
    labels = serializers.ListField(child=serializers.CharField(max_length=50), required=False)
    story_points = serializers.DecimalField(
        max_digits=6, decimal_places=1, min_value=0, required=False, allow_null=True
    )
    due_date = serializers.DateField(required=False, allow_null=True)
    sprint_id = serializers.IntegerField(required=False, allow_null=True)
    epic = serializers.CharField(required=False, allow_null=True, help_text="Epic key or id")
    parent = serializers.CharField(required=False, allow_null=True, help_text="Parent key or id")


class IssueUpdateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255, required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    priority = serializers.ChoiceField(
        choices=Issue.Priority.choices,
        required=False
    )
    status = serializers.ChoiceField(choices=Issue.Status.choices, required=False)
    assignee_id = serializers.CharField(max_length=64, required=False, allow_null=True)
    labels = serializers.ListField(child=serializers.CharField(max_length=50), required=False)
    story_points = serializers.DecimalField(
        max_digits=6, decimal_places=1, min_value=0, required=False, allow_null=True
    )
    due_date = serializers.DateField(required=False, allow_null=True)
    sprint_id = serializers.IntegerField(required=False, allow_null=True)


class IssueMoveSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Issue.Status.choices)
    after = serializers.CharField(required=False, allow_null=True, help_text="Place directly after this issue")
    before = serializers.CharField(required=False, allow_null=True, help_text="Place directly before this issue")


class IssueTransitionSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Issue.Status.choices)


class IssueEpicSerializer(serializers.Serializer):
    epic = serializers.CharField(allow_null=True, help_text="Epic key or id, null to clear")


class IssueParentSerializer(serializers.Serializer):
    parent = serializers.CharField(allow_null=True, help_text="Parent key or id, null to clear")


class IssueSprintSerializer(serializers.Serializer):
    sprint_id = serializers.IntegerField(allow_null=True)


class IssueLinkSerializer(serializers.Serializer):
    other = serializers.CharField(help_text="Key or id of the issue to link")


class IssueOutputSerializer(serializers.ModelSerializer):
    project = serializers.CharField(source='project.key', read_only=True)
    sprint = serializers.CharField(source='sprint.display_key', read_only=True, default=None)
    epic = serializers.CharField(source='epic.key', read_only=True, default=None)
    parent = serializers.CharField(source='parent.key', read_only=True, default=None)
    assignee = serializers.SerializerMethodField()
    reporter = serializers.SerializerMethodField()

    class Meta:
        model = Issue
        fields = [
            'id', 'key', 'project', 'title', 'description', 'issue_type',
            'priority', 'status', 'rank', 'labels', 'story_points', 'due_date',
            'sprint', 'sprint_id', 'epic', 'parent', 'assignee_id', 'reporter_id',
            'assignee', 'reporter', 'resolution', 'resolution_date',
            'created_at', 'updated_at'
        ]

    def get_assignee(self, obj):
        return getattr(obj, 'assignee_data', None)

    def get_reporter(self, obj):
        return getattr(obj, 'reporter_data', None)


class IssueListOutputSerializer(serializers.ModelSerializer):
    """Lighter serializer for board columns"""

    class Meta:
        model = Issue
        fields = [
            'id', 'key', 'title', 'issue_type', 'priority', 'status',
            'rank', 'story_points', 'assignee_id', 'sprint_id', 'created_at'
        ]


class ChangeLogEntrySerializer(serializers.ModelSerializer):
    class Meta:
        model = ChangeLogEntry
        fields = ['id', 'field', 'old_value', 'new_value', 'actor_id', 'at']


class ActivityLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = ActivityLog
        fields = ['id', 'action', 'actor_id', 'from_value', 'to_value', 'meta', 'at']
