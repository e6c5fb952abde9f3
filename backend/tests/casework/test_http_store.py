"""
HTTP store adapter against a mocked REST backend.

The adapter must translate every failure into `StoreResult.error` and never
raise, so the use cases see one failure shape regardless of transport.
"""
from __future__ import annotations

import json

import httpx
import pytest

from backend.casework.errors import NotFoundError
from backend.casework.store_http import HttpStore
from backend.casework.usecases.options import AssignmentConfigResolver


def _store(handler) -> HttpStore:
    return HttpStore("http://store.test/api/", token="t0ken", transport=httpx.MockTransport(handler))


def test_select_sends_equality_params_and_auth_header():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = request.url
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(200, json={"data": [{"section_id": "s1"}], "error": None})

    result = _store(handler).select("section_cases", eq={"section_id": "s1", "active": True, "chat_options": None})
    assert result.ok and result.data == [{"section_id": "s1"}]
    assert seen["url"].path == "/api/section_cases"
    assert seen["url"].params["active"] == "true"
    assert seen["url"].params["chat_options"] == "null"
    assert seen["auth"] == "Bearer t0ken"


def test_select_null_data_is_empty_list():
    result = _store(lambda r: httpx.Response(200, json={"data": None})).select("sections")
    assert result.data == []


def test_get_uses_quoted_composite_key_and_maps_404_to_none():
    paths = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.raw_path.decode())
        return httpx.Response(404, json={"data": None})

    result = _store(handler).get("section_cases", {"section_id": "other:x/1", "case_id": "c1"})
    assert result.ok and result.data is None
    assert paths == ["/api/section_cases/other%3Ax%2F1/c1"]


def test_get_404_with_error_envelope_is_absent():
    handler = lambda r: httpx.Response(404, json={"data": None, "error": {"message": "Case assignment not found"}})
    result = _store(handler).get("section_cases", {"section_id": "s1", "case_id": "zz"})
    assert result.ok and result.data is None


def test_unknown_assignment_over_http_is_not_found():
    handler = lambda r: httpx.Response(404, json={"data": None, "error": {"message": "Case assignment not found"}})
    with pytest.raises(NotFoundError) as exc:
        AssignmentConfigResolver(_store(handler)).resolve_effective_options("s1", "zz")
    assert exc.value.code == "assignment_not_found"


def test_404_on_select_is_still_an_error():
    handler = lambda r: httpx.Response(404, json={"data": None, "error": {"message": "no such table"}})
    assert _store(handler).select("sections").error == "no such table"


def test_error_envelope_message_is_passed_through():
    handler = lambda r: httpx.Response(409, json={"data": None, "error": {"message": "duplicate key"}})
    result = _store(handler).insert("sections", {"section_id": "s1"})
    assert result.error == "duplicate key"


def test_non_json_error_body_maps_to_status():
    result = _store(lambda r: httpx.Response(503, text="<html>down</html>")).select("sections")
    assert result.error == "http_503"


def test_non_envelope_success_body_is_malformed():
    result = _store(lambda r: httpx.Response(200, json=[1, 2])).select("sections")
    assert result.error == "malformed_response"


def test_transport_error_is_reported_not_raised():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    result = _store(handler).select("sections")
    assert result.error == "transport_error: ConnectError"


def test_update_sends_values_as_json_body():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["method"] = request.method
        captured["body"] = json.loads(request.content)
        captured["params"] = dict(request.url.params)
        return httpx.Response(200, json={"data": [{"id": "e1", "allow_rechat": True}]})

    result = _store(handler).update("evaluations", eq={"id": "e1"}, values={"allow_rechat": True})
    assert result.data == [{"id": "e1", "allow_rechat": True}]
    assert captured == {"method": "PATCH", "body": {"allow_rechat": True}, "params": {"id": "e1"}}


def test_delete_accepts_count_shapes():
    assert _store(lambda r: httpx.Response(200, json={"data": 2})).delete("sections", eq={"section_id": "s1"}).data == 2
    assert (
        _store(lambda r: httpx.Response(200, json={"data": {"deleted": 3}})).delete("sections", eq={"section_id": "s1"}).data
        == 3
    )
    assert _store(lambda r: httpx.Response(200, json={"data": None})).delete("sections", eq={"section_id": "s1"}).data == 0
