from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient
from pydantic import BaseModel

from holdthread.common.error_envelope import build_error_envelope, envelope_from_error
from holdthread.common.errors import InvalidInput, InvalidState, NotFound, UpstreamFailure, require_text
from holdthread.server import register_error_handlers

import pytest


def _build_test_app() -> FastAPI:
    app = FastAPI()
    register_error_handlers(app)
    return app


def test_build_error_envelope_defaults():
    envelope = build_error_envelope(code="x.y", message="nope")
    assert envelope.error.http_status == 400
    assert envelope.error.details == {}
    assert envelope.error.resource_kind is None


def test_not_found_carries_kind_and_id():
    exc = NotFound("digression", "abc")
    envelope = envelope_from_error(exc)
    assert envelope.error.code == "digression.not_found"
    assert envelope.error.http_status == 404
    assert envelope.error.resource_kind == "digression"
    assert envelope.error.details == {"id": "abc"}


def test_require_text_rejects_blank():
    assert require_text("hi", "userInput") == "hi"
    with pytest.raises(InvalidInput):
        require_text("   ", "userInput")
    with pytest.raises(InvalidInput):
        require_text(None, "userInput")


@pytest.mark.parametrize(
    "exc, status, code",
    [
        (InvalidInput("bad"), 400, "invalid_input"),
        (NotFound("session", "s1"), 404, "session.not_found"),
        (InvalidState("empty"), 409, "invalid_state"),
        (UpstreamFailure("down"), 502, "upstream_failure"),
    ],
)
def test_domain_errors_map_to_envelope(exc, status, code):
    app = _build_test_app()

    @app.get("/boom")
    def _boom() -> None:
        raise exc

    response = TestClient(app).get("/boom")
    assert response.status_code == status
    assert response.json()["error"]["code"] == code
    assert response.json()["error"]["http_status"] == status


def test_http_exception_wrapped():
    app = _build_test_app()

    @app.get("/teapot")
    def _teapot() -> None:
        raise HTTPException(status_code=418, detail="short and stout")

    response = TestClient(app).get("/teapot")
    assert response.status_code == 418
    assert response.json()["error"] == {
        "code": "http.exception",
        "message": "short and stout",
        "http_status": 418,
        "resource_kind": None,
        "details": {},
    }


def test_validation_error_returns_400_envelope():
    app = _build_test_app()

    class InputModel(BaseModel):
        value: int

    @app.post("/validate")
    def _validate(payload: InputModel) -> dict:
        return {"ok": True}

    response = TestClient(app).post("/validate", json={"value": "nope"})
    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "validation.error"
    assert error["details"]["errors"]


def test_unhandled_error_is_500_envelope():
    app = _build_test_app()

    @app.get("/crash")
    def _crash() -> None:
        raise RuntimeError("kaput")

    response = TestClient(app, raise_server_exceptions=False).get("/crash")
    assert response.status_code == 500
    assert response.json()["error"]["code"] == "internal.error"
