# ============================================
# board/serializers/review.py
# ============================================
from rest_framework import serializers

from board.models import Review, ReviewChecklistItem, ReviewReviewer


class ReviewCreateSerializer(serializers.Serializer):
    reviewers = serializers.ListField(
        child=serializers.CharField(max_length=64),
        allow_empty=False
    )
    required_approvals = serializers.IntegerField(min_value=1, default=1)
    due_date = serializers.DateTimeField(required=False, allow_null=True)
    checklist = serializers.ListField(
        child=serializers.CharField(max_length=255),
        required=False
    )


class ReviewActionSerializer(serializers.Serializer):
    comment = serializers.CharField(required=False, allow_blank=True, default='')


class ChecklistToggleSerializer(serializers.Serializer):
    index = serializers.IntegerField()
    done = serializers.BooleanField()


class ReviewerAddSerializer(serializers.Serializer):
    user_id = serializers.CharField(max_length=64)


class ReviewReviewerSerializer(serializers.ModelSerializer):
    user = serializers.SerializerMethodField()

    class Meta:
        model = ReviewReviewer
        fields = ['user_id', 'user', 'status', 'comment', 'acted_at']

    def get_user(self, obj):
        return self.context.get('users', {}).get(obj.user_id)


class ReviewChecklistItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = ReviewChecklistItem
        fields = ['position', 'label', 'done', 'done_by', 'done_at']


class ReviewOutputSerializer(serializers.ModelSerializer):
    issue = serializers.CharField(source='issue.key', read_only=True)
    reviewers = ReviewReviewerSerializer(many=True, read_only=True)
    checklist = ReviewChecklistItemSerializer(many=True, read_only=True)

    class Meta:
        model = Review
        fields = [
            'id', 'issue', 'requested_by', 'required_approvals', 'due_date',
            'status', 'reviewers', 'checklist', 'created_at', 'updated_at'
        ]
