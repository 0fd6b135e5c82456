# ============================================
# board/serializers/analytics.py
# ============================================
from rest_framework import serializers

from board.models import Sprint


class SprintSummarySerializer(serializers.Serializer):
    id = serializers.CharField()
    key = serializers.CharField()
    name = serializers.CharField()
    start_date = serializers.DateField()
    end_date = serializers.DateField()


class BurndownPointSerializer(serializers.Serializer):
    day = serializers.DateField()
    ideal = serializers.IntegerField()
    actual = serializers.FloatField()


class BurndownSerializer(serializers.Serializer):
    sprint = SprintSummarySerializer()
    points = BurndownPointSerializer(many=True)


class CFDDaySerializer(serializers.Serializer):
    day = serializers.DateField()
    todo = serializers.FloatField()
    in_progress = serializers.FloatField(source='in-progress')
    review = serializers.FloatField()
    done = serializers.FloatField()

    def to_representation(self, instance):
        data = super().to_representation(instance)
        data['in-progress'] = data.pop('in_progress')
        return data


class CFDSerializer(serializers.Serializer):
    buckets = serializers.ListField(child=serializers.CharField())
    days = CFDDaySerializer(many=True)


class SprintKPISerializer(serializers.Serializer):
    sprint_id = serializers.CharField()
    key = serializers.CharField()
    name = serializers.CharField()
    status = serializers.CharField()
    start_date = serializers.DateField()
    end_date = serializers.DateField()
    committed_points = serializers.FloatField()
    completed_points = serializers.FloatField()
    added_scope_points = serializers.FloatField()
    removed_scope_points = serializers.FloatField()
    spillover_points = serializers.FloatField()
    commitment_reliability = serializers.FloatField()
    throughput_issues = serializers.IntegerField()
    cycle_time_days = serializers.FloatField()
    lead_time_days = serializers.FloatField()


class VelocityStatsSerializer(serializers.Serializer):
    series = serializers.ListField(child=serializers.FloatField())
    avg = serializers.FloatField()
    median = serializers.FloatField()
    last5_avg = serializers.FloatField()
    last5_median = serializers.FloatField()


class SprintAnalyticsSerializer(serializers.Serializer):
    per_sprint = SprintKPISerializer(many=True)
    velocity = VelocityStatsSerializer()
    forecast = serializers.FloatField()


class VelocityPointSerializer(serializers.Serializer):
    sprint = serializers.CharField()
    sprint_name = serializers.CharField()
    points = serializers.FloatField()
    start_date = serializers.DateField()
    end_date = serializers.DateField()


class VelocitySeriesSerializer(serializers.Serializer):
    series = VelocityPointSerializer(many=True)


class AnalyticsFilterSerializer(serializers.Serializer):
    """Query-string filters for the sprint analytics endpoint (comma separated lists)."""
    status = serializers.CharField(required=False)
    assignee_ids = serializers.CharField(required=False)
    labels = serializers.CharField(required=False)
    epic_ids = serializers.CharField(required=False)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        # "from" is a keyword, so the date bounds are declared here
        self.fields['from'] = serializers.DateField(required=False, source='from_date')
        self.fields['to'] = serializers.DateField(required=False, source='to_date')

    @staticmethod
    def _split(value):
        return tuple(v.strip() for v in (value or '').split(',') if v.strip())

    def validate_status(self, value):
        statuses = self._split(value)
        unknown = set(statuses) - set(Sprint.SprintStatus.values)
        if unknown:
            raise serializers.ValidationError(f"Unknown sprint status: {', '.join(sorted(unknown))}")
        return statuses

    def validate_assignee_ids(self, value):
        return self._split(value)

    def validate_labels(self, value):
        return self._split(value)

    def validate_epic_ids(self, value):
        return self._split(value)
