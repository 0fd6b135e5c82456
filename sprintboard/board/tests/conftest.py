import pytest
from datetime import timedelta
from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APIClient

from board.models import Project, Sprint
from board.services.issue import IssueService

User = get_user_model()


@pytest.fixture
def user(db):
    return User.objects.create_user(username="tester", password="pass")


@pytest.fixture
def reviewer_user(db):
    return User.objects.create_user(username="reviewer", password="pass")


@pytest.fixture
def api_client(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


@pytest.fixture
def project(db):
    return Project.objects.create(key="P", name="Project P")


@pytest.fixture
def sprint(project):
    today = timezone.localdate()
    return Sprint.objects.create(
        project=project, key="P-S1", name="Sprint 1",
        start_date=today, end_date=today + timedelta(days=9),
        status=Sprint.SprintStatus.ACTIVE,
    )


@pytest.fixture
def make_issue(project):
    def _make(title="Issue", actor="u1", **kwargs):
        kwargs.setdefault("project_id", project.pk)
        return IssueService.create_issue(title=title, reporter_id=actor, **kwargs)
    return _make


@pytest.fixture
def board_settings(settings):
    """Override single BOARD knobs: board_settings(RANK_MAX_LENGTH=1)."""
    def _set(**overrides):
        settings.BOARD = {**settings.BOARD, **overrides}
    return _set
