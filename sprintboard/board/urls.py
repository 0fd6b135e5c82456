# ============================================
# board/urls.py
# ============================================
from django.urls import path

from board.views.analytics import (
    SprintAnalyticsAPIView,
    SprintBurndownAPIView,
    SprintCFDAPIView,
    SprintVelocityAPIView,
)
from board.views.issue import (
    IssueActivityAPIView,
    IssueChangeLogAPIView,
    IssueDetailAPIView,
    IssueEpicAPIView,
    IssueLinkCreateAPIView,
    IssueLinkDeleteAPIView,
    IssueListCreateAPIView,
    IssueMoveAPIView,
    IssueParentAPIView,
    IssueSprintAPIView,
    IssueTransitionAPIView,
)
from board.views.review import (
    IssueReviewListCreateAPIView,
    ReviewApproveAPIView,
    ReviewCancelAPIView,
    ReviewChecklistAPIView,
    ReviewRequestChangesAPIView,
    ReviewReviewerAddAPIView,
    ReviewReviewerRemoveAPIView,
)

app_name = 'board'

urlpatterns = [
    # Issues
    path('issues/', IssueListCreateAPIView.as_view(), name='issue-list-create'),
    path('issues/<str:ref>/', IssueDetailAPIView.as_view(), name='issue-detail'),
    path('issues/<str:ref>/move/', IssueMoveAPIView.as_view(), name='issue-move'),
    path('issues/<str:ref>/transition/', IssueTransitionAPIView.as_view(), name='issue-transition'),
    path('issues/<str:ref>/epic/', IssueEpicAPIView.as_view(), name='issue-epic'),
    path('issues/<str:ref>/parent/', IssueParentAPIView.as_view(), name='issue-parent'),
    path('issues/<str:ref>/sprint/', IssueSprintAPIView.as_view(), name='issue-sprint'),
    path('issues/<str:ref>/links/', IssueLinkCreateAPIView.as_view(), name='issue-link-create'),
    path('issues/<str:ref>/links/<str:other>/', IssueLinkDeleteAPIView.as_view(), name='issue-link-delete'),
    path('issues/<str:ref>/changelog/', IssueChangeLogAPIView.as_view(), name='issue-changelog'),
    path('issues/<str:ref>/activities/', IssueActivityAPIView.as_view(), name='issue-activities'),

    # Reviews
    path('issues/<str:ref>/reviews/', IssueReviewListCreateAPIView.as_view(), name='issue-review-list-create'),
    path('reviews/<int:review_id>/approve/', ReviewApproveAPIView.as_view(), name='review-approve'),
    path('reviews/<int:review_id>/request-changes/', ReviewRequestChangesAPIView.as_view(), name='review-request-changes'),
    path('reviews/<int:review_id>/cancel/', ReviewCancelAPIView.as_view(), name='review-cancel'),
    path('reviews/<int:review_id>/checklist/', ReviewChecklistAPIView.as_view(), name='review-checklist'),
    path('reviews/<int:review_id>/reviewers/', ReviewReviewerAddAPIView.as_view(), name='review-reviewer-add'),
    path('reviews/<int:review_id>/reviewers/<str:user_id>/', ReviewReviewerRemoveAPIView.as_view(), name='review-reviewer-remove'),

    # Sprint analytics
    path('projects/<str:project_key>/sprints/analytics/', SprintAnalyticsAPIView.as_view(), name='sprint-analytics'),
    path('projects/<str:project_key>/sprints/velocity/', SprintVelocityAPIView.as_view(), name='sprint-velocity'),
    path('projects/<str:project_key>/sprints/<int:sprint_id>/burndown/', SprintBurndownAPIView.as_view(), name='sprint-burndown'),
    path('projects/<str:project_key>/sprints/<int:sprint_id>/cfd/', SprintCFDAPIView.as_view(), name='sprint-cfd'),
]
