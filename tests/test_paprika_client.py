"""Tests for PaprikaClient request handling, with the HTTP session mocked."""
import gzip
import json
from unittest.mock import MagicMock

import pytest
import requests

from paprika_client import PaprikaAPIError, PaprikaClient, PaprikaClientError, PaprikaResponseError


def _response(payload=None, status_code=200, content=None, text=""):
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    response.content = content if content is not None else json.dumps(payload).encode("utf-8")
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(
            f"{status_code} Client Error", response=response
        )
    else:
        response.raise_for_status.return_value = None
    return response


@pytest.fixture
def client():
    client = PaprikaClient("cook@example.com", "secret", base_url="http://example.invalid/api/v1/", timeout=5)
    client._api.session = MagicMock()
    yield client
    client.close()


@pytest.mark.readonly
class TestRequests:

    def test_basic_auth_is_configured(self):
        client = PaprikaClient("cook@example.com", "secret", base_url="http://example.invalid")
        try:
            assert client._api.session.auth == ("cook@example.com", "secret")
        finally:
            client.close()

    def test_list_recipes_unwraps_result(self, client):
        client._api.session.request.return_value = _response({"result": [{"uid": "A", "hash": "h"}]})

        assert client.list_recipes() == [{"uid": "A", "hash": "h"}]
        client._api.session.request.assert_called_once_with(
            "GET", "http://example.invalid/api/v1/sync/recipes", json=None, timeout=5
        )

    def test_bare_payload_is_accepted(self, client):
        client._api.session.request.return_value = _response([{"uid": "c1", "name": "Soups"}])
        assert client.list_categories() == [{"uid": "c1", "name": "Soups"}]

    def test_gzip_body_without_header_is_decoded(self, client):
        body = gzip.compress(json.dumps({"result": {"uid": "A", "name": "Soup"}}).encode("utf-8"))
        client._api.session.request.return_value = _response(content=body)

        detail = client.get_recipe_detail("A")

        assert detail == {"uid": "A", "name": "Soup"}
        args, _ = client._api.session.request.call_args
        assert args == ("GET", "http://example.invalid/api/v1/sync/recipe/A")

    def test_detail_without_uid_is_rejected(self, client):
        client._api.session.request.return_value = _response({"result": {"name": "No uid"}})
        with pytest.raises(PaprikaResponseError):
            client.get_recipe_detail("A")

    def test_list_entry_without_uid_is_rejected(self, client):
        client._api.session.request.return_value = _response({"result": [{"name": "x"}]})
        with pytest.raises(PaprikaResponseError):
            client.list_recipes()

    def test_invalid_json_is_a_client_error(self, client):
        client._api.session.request.return_value = _response(content=b"<html>oops</html>")
        with pytest.raises(PaprikaClientError):
            client.list_recipes()

    def test_update_posts_to_recipe_endpoint(self, client):
        client._api.session.request.return_value = _response({"result": True})

        assert client.update_recipe("A", {"uid": "A", "name": "Soup"}) is True
        client._api.session.request.assert_called_once_with(
            "POST", "http://example.invalid/api/v1/recipes/A", json={"uid": "A", "name": "Soup"}, timeout=5
        )

    def test_create_requires_name(self, client):
        with pytest.raises(PaprikaClientError):
            client.create_recipe({"uid": "A"})
        client._api.session.request.assert_not_called()

    def test_delete_returns_true(self, client):
        client._api.session.request.return_value = _response(content=b"")
        assert client.delete_recipe("A") is True
        args, _ = client._api.session.request.call_args
        assert args == ("DELETE", "http://example.invalid/api/v1/recipes/A")


@pytest.mark.readonly
class TestErrors:

    def test_http_error_carries_status_and_truncated_body(self, client):
        client._api.session.request.return_value = _response(status_code=401, text="x" * 500)

        with pytest.raises(PaprikaAPIError) as exc_info:
            client.list_recipes()

        error = exc_info.value
        assert error.status_code == 401
        assert error.operation == "GET"
        assert error.details["endpoint"] == "/sync/recipes"
        assert len(error.details["response"]) == 203
        assert "[GET]" in str(error)

    def test_timeout_is_wrapped(self, client):
        client._api.session.request.side_effect = requests.exceptions.Timeout("slow")

        with pytest.raises(PaprikaAPIError) as exc_info:
            client.get_recipe_detail("A")

        assert "timed out" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, requests.exceptions.Timeout)

    def test_connection_error_is_wrapped(self, client):
        client._api.session.request.side_effect = requests.exceptions.ConnectionError("refused")
        with pytest.raises(PaprikaAPIError):
            client.list_categories()

    def test_no_retry_on_failure(self, client):
        client._api.session.request.return_value = _response(status_code=503, text="down")
        with pytest.raises(PaprikaAPIError):
            client.list_recipes()
        assert client._api.session.request.call_count == 1

    def test_error_message_format(self):
        error = PaprikaClientError("went wrong", operation="list_recipes", details={"status_code": 500})
        assert str(error) == "[list_recipes] went wrong (status_code=500)"
