import pytest
from rest_framework.test import APIClient

BASE = "/api/board"


@pytest.fixture
def reviewer_client(reviewer_user):
    client = APIClient()
    client.force_authenticate(user=reviewer_user)
    return client


def create_issue(client, title, **extra):
    res = client.post(f"{BASE}/issues/", {"project": "P", "title": title, **extra}, format="json")
    assert res.status_code == 201, res.content
    return res.json()


@pytest.mark.django_db
class TestIssueEndpoints:

    def test_requires_authentication(self, project):
        res = APIClient().get(f"{BASE}/issues/")
        assert res.status_code in (401, 403)

    def test_create_get_and_list(self, api_client, user, project):
        created = create_issue(api_client, "First", story_points="3", labels=["api"])
        create_issue(api_client, "Second")

        assert created["key"] == "P-1"
        assert created["status"] == "backlog"
        assert created["reporter_id"] == str(user.pk)
        assert created["labels"] == ["api"]

        res = api_client.get(f"{BASE}/issues/P-1/")
        assert res.status_code == 200
        assert res.json()["title"] == "First"

        res = api_client.get(f"{BASE}/issues/", {"project": "P", "status": "backlog"})
        assert res.status_code == 200
        assert [i["key"] for i in res.json()["results"]] == ["P-1", "P-2"]

    def test_unknown_issue_is_404(self, api_client, project):
        res = api_client.get(f"{BASE}/issues/P-99/")
        assert res.status_code == 404

    def test_create_validates_payload(self, api_client, project):
        res = api_client.post(f"{BASE}/issues/", {"project": "P"}, format="json")
        assert res.status_code == 400
        assert "title" in res.json()

    def test_move_and_changelog(self, api_client, project):
        create_issue(api_client, "A")
        create_issue(api_client, "B")

        res = api_client.post(f"{BASE}/issues/P-2/move/", {"status": "todo"}, format="json")
        assert res.status_code == 200
        res = api_client.post(f"{BASE}/issues/P-1/move/", {"status": "todo", "before": "P-2"}, format="json")
        assert res.status_code == 200

        res = api_client.get(f"{BASE}/issues/", {"project": "P", "status": "todo"})
        assert [i["key"] for i in res.json()["results"]] == ["P-1", "P-2"]

        res = api_client.get(f"{BASE}/issues/P-1/changelog/")
        assert res.status_code == 200
        fields = [e["field"] for e in res.json()]
        assert fields[:2] == ["created", "status"]
        assert "rank" in fields

        res = api_client.get(f"{BASE}/issues/P-1/activities/")
        assert res.status_code == 200
        assert res.json()[0]["action"] == "moved"

    def test_patch_and_delete(self, api_client, project):
        create_issue(api_client, "A")

        res = api_client.patch(f"{BASE}/issues/P-1/", {"title": "Renamed", "status": "in-progress"}, format="json")
        assert res.status_code == 200
        assert res.json()["title"] == "Renamed"
        assert res.json()["status"] == "in-progress"

        assert api_client.delete(f"{BASE}/issues/P-1/").status_code == 204
        assert api_client.get(f"{BASE}/issues/P-1/").status_code == 404

    def test_relations(self, api_client, project, sprint):
        create_issue(api_client, "Epic", issue_type="epic")
        create_issue(api_client, "Task")
        create_issue(api_client, "Other")

        res = api_client.put(f"{BASE}/issues/P-2/epic/", {"epic": "P-1"}, format="json")
        assert res.status_code == 200 and res.json()["epic"] == "P-1"

        res = api_client.put(f"{BASE}/issues/P-2/parent/", {"parent": "P-1"}, format="json")
        assert res.status_code == 400

        res = api_client.put(f"{BASE}/issues/P-3/parent/", {"parent": "P-2"}, format="json")
        assert res.status_code == 200 and res.json()["parent"] == "P-2"

        res = api_client.put(f"{BASE}/issues/P-2/sprint/", {"sprint_id": sprint.pk}, format="json")
        assert res.status_code == 200 and res.json()["sprint"] == "P-S1"

        res = api_client.post(f"{BASE}/issues/P-2/links/", {"other": "P-3"}, format="json")
        assert res.status_code == 201
        assert api_client.delete(f"{BASE}/issues/P-3/links/P-2/").status_code == 204


@pytest.mark.django_db
def test_review_gate_flow_end_to_end(api_client, reviewer_client, reviewer_user, project, sprint):
    create_issue(api_client, "Ship it", story_points="5", sprint_id=sprint.pk)

    res = api_client.post(f"{BASE}/issues/P-1/move/", {"status": "in-progress"}, format="json")
    assert res.status_code == 200

    res = api_client.post(
        f"{BASE}/issues/P-1/reviews/",
        {"reviewers": [str(reviewer_user.pk)], "checklist": ["Tests pass"]},
        format="json",
    )
    assert res.status_code == 201
    review = res.json()
    assert review["status"] == "pending"

    res = api_client.post(f"{BASE}/issues/P-1/transition/", {"status": "done"}, format="json")
    assert res.status_code == 400
    assert "1 pending review(s)" in res.json()["detail"]

    # only the assigned reviewer may approve
    res = api_client.post(f"{BASE}/reviews/{review['id']}/approve/", {}, format="json")
    assert res.status_code == 403

    res = reviewer_client.post(f"{BASE}/reviews/{review['id']}/checklist/", {"index": 0, "done": True}, format="json")
    assert res.status_code == 200
    res = reviewer_client.post(f"{BASE}/reviews/{review['id']}/approve/", {"comment": "ok"}, format="json")
    assert res.status_code == 200
    assert res.json()["status"] == "approved"

    res = api_client.post(f"{BASE}/issues/P-1/transition/", {"status": "done"}, format="json")
    assert res.status_code == 200
    assert res.json()["resolution"] == "done"
    assert res.json()["resolution_date"] is not None

    res = api_client.get(f"{BASE}/projects/P/sprints/analytics/")
    assert res.status_code == 200
    kpi = res.json()["per_sprint"][0]
    assert kpi["completed_points"] == 5.0
    assert kpi["throughput_issues"] == 1

    res = api_client.get(f"{BASE}/projects/P/sprints/{sprint.pk}/burndown/")
    assert res.status_code == 200
    assert len(res.json()["points"]) == 10

    res = api_client.get(f"{BASE}/projects/P/sprints/{sprint.pk}/cfd/")
    assert res.status_code == 200
    assert set(res.json()["days"][0]) == {"day", "todo", "in-progress", "review", "done"}

    res = api_client.get(f"{BASE}/projects/P/sprints/velocity/")
    assert res.status_code == 200
    assert res.json() == {"series": []}


@pytest.mark.django_db
def test_analytics_filters_are_validated(api_client, project, sprint):
    res = api_client.get(f"{BASE}/projects/P/sprints/analytics/", {"status": "bogus"})
    assert res.status_code == 400

    res = api_client.get(f"{BASE}/projects/P/sprints/analytics/", {"from": "2999-01-01"})
    assert res.status_code == 200
    assert res.json()["per_sprint"] == []
