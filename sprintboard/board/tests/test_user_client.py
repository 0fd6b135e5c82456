from unittest import mock

import pytest
import requests
from django.core.cache import cache

from board.clients.user_client import UserServiceClient


@pytest.fixture(autouse=True)
def clear_cache():
    cache.clear()
    yield
    cache.clear()


def response_with(users):
    response = mock.Mock()
    response.json.return_value = users
    response.raise_for_status.return_value = None
    return response


def test_disabled_without_url(settings):
    settings.USER_SERVICE_URL = ""
    with mock.patch("board.clients.user_client.requests.post") as post:
        assert UserServiceClient.get_users_by_ids(["1"]) == {}
    post.assert_not_called()


def test_batch_lookup_is_cached(settings):
    settings.USER_SERVICE_URL = "http://users.local/"
    users = [{"id": 1, "name": "Ada"}, {"id": "2", "name": "Linus"}]

    with mock.patch("board.clients.user_client.requests.post", return_value=response_with(users)) as post:
        first = UserServiceClient.get_users_by_ids(["1", 2])
        second = UserServiceClient.get_users_by_ids(["2", "1"])

    assert first == {"1": users[0], "2": users[1]}
    assert second == first
    post.assert_called_once_with(
        "http://users.local/users/batch", json={"ids": ["1", "2"]}, timeout=UserServiceClient.TIMEOUT
    )


def test_directory_failure_yields_no_users(settings, caplog):
    settings.USER_SERVICE_URL = "http://users.local"
    with mock.patch(
        "board.clients.user_client.requests.post",
        side_effect=requests.ConnectionError("refused"),
    ):
        assert UserServiceClient.get_users_by_ids(["1"]) == {}
    assert "batch user lookup failed" in caplog.text


def test_empty_ids_skip_the_call(settings):
    settings.USER_SERVICE_URL = "http://users.local"
    with mock.patch("board.clients.user_client.requests.post") as post:
        assert UserServiceClient.get_users_by_ids([]) == {}
    post.assert_not_called()
