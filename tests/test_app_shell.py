import logging

from fastapi import Request
from fastapi.testclient import TestClient

from tasks_api.logging_config import JSONFormatter
from tasks_api.main import create_app

from .conftest import make_settings


def add_whoami(app):
    async def whoami(request: Request):
        user = request.state.user
        session = request.state.session
        return {
            "email": user["email"] if user else None,
            "hasSession": session is not None,
        }

    app.add_api_route("/api/whoami", whoami, methods=["GET"])


def add_boom(app):
    async def boom():
        raise RuntimeError("kaboom: secret internals")

    app.add_api_route("/api/boom", boom, methods=["GET"])


class TestNotFound:
    def test_unknown_route_uniform_body(self, client):
        res = client.get("/api/nope")
        assert res.status_code == 404
        assert res.json() == {"message": "Not Found - /api/nope"}

    def test_method_not_allowed(self, client):
        res = client.put("/api/tasks/1", json={"name": "x"})
        assert res.status_code == 405
        assert res.json() == {"message": "Method Not Allowed"}


class TestErrorHandling:
    def test_unhandled_error_in_development_includes_details(self):
        app = create_app(make_settings(env="development"))
        add_boom(app)
        with TestClient(app, raise_server_exceptions=False) as c:
            res = c.get("/api/boom")
        assert res.status_code == 500
        body = res.json()
        assert body["message"] == "Internal Server Error"
        assert "kaboom" in body["detail"]
        assert "RuntimeError" in body["stack"]

    def test_unhandled_error_in_production_hides_details(self):
        app = create_app(make_settings(env="production"))
        add_boom(app)
        with TestClient(app, raise_server_exceptions=False) as c:
            res = c.get("/api/boom")
        assert res.status_code == 500
        assert res.json() == {"message": "Internal Server Error"}
        assert "kaboom" not in res.text

    def test_unhandled_error_is_logged_with_request_id(self, caplog):
        app = create_app(make_settings(env="production"))
        add_boom(app)
        with caplog.at_level(logging.INFO, logger="tasks_api.request"):
            with TestClient(app, raise_server_exceptions=False) as c:
                res = c.get("/api/boom", headers={"X-Request-Id": "boom-1"})
        assert res.status_code == 500
        assert res.headers["x-request-id"] == "boom-1"
        records = [r for r in caplog.records if r.name == "tasks_api.request"]
        assert records[-1].request_id == "boom-1"
        assert records[-1].status_code == 500
        assert records[-1].path == "/api/boom"


class TestMiddleware:
    def test_favicon(self, client):
        res = client.get("/favicon.ico")
        assert res.status_code == 200
        assert res.headers["content-type"].startswith("image/svg+xml")

    def test_request_id_generated_and_echoed(self, client):
        res = client.get("/api/tasks")
        assert len(res.headers["x-request-id"]) == 32

        res = client.get("/api/tasks", headers={"X-Request-Id": "abc-123"})
        assert res.headers["x-request-id"] == "abc-123"

    def test_request_is_logged(self, client, caplog):
        with caplog.at_level(logging.INFO, logger="tasks_api.request"):
            client.get("/api/tasks", headers={"X-Request-Id": "req-1"})
        records = [r for r in caplog.records if r.name == "tasks_api.request"]
        assert records
        assert records[-1].request_id == "req-1"
        assert records[-1].status_code == 200
        assert records[-1].path == "/api/tasks"

    def test_cors_applies_to_auth_prefix_only(self, client):
        origin = {"Origin": "http://localhost:3001"}
        auth_res = client.get("/api/auth/ok", headers=origin)
        assert auth_res.headers["access-control-allow-origin"] == "http://localhost:3001"
        assert auth_res.headers["access-control-allow-credentials"] == "true"

        tasks_res = client.get("/api/tasks", headers=origin)
        assert "access-control-allow-origin" not in tasks_res.headers

    def test_cors_preflight_on_auth(self, client):
        res = client.options(
            "/api/auth/sign-in/email",
            headers={
                "Origin": "http://localhost:3000",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "Content-Type",
            },
        )
        assert res.status_code == 200
        assert res.headers["access-control-allow-origin"] == "http://localhost:3000"
        assert res.headers["access-control-max-age"] == "600"

    def test_cors_rejects_unknown_origin(self, client):
        res = client.get("/api/auth/ok", headers={"Origin": "http://evil.example"})
        assert "access-control-allow-origin" not in res.headers


class TestSessionAttachment:
    def test_anonymous_request_gets_null_user_and_session(self, app):
        add_whoami(app)
        with TestClient(app) as c:
            assert c.get("/api/whoami").json() == {"email": None, "hasSession": False}

    def test_signed_in_request_gets_user(self, app):
        add_whoami(app)
        with TestClient(app) as c:
            res = c.post(
                "/api/auth/sign-up/email",
                json={"name": "Ada", "email": "ada@example.com", "password": "correct horse"},
            )
            assert res.status_code == 200
            assert c.get("/api/whoami").json() == {"email": "ada@example.com", "hasSession": True}

    def test_failing_session_lookup_never_aborts(self, app):
        add_whoami(app)

        async def broken(headers):
            raise RuntimeError("session store down")

        app.state.auth.get_session = broken
        with TestClient(app) as c:
            assert c.get("/api/whoami").json() == {"email": None, "hasSession": False}
            assert c.get("/api/tasks").status_code == 200

    def test_task_routes_are_public(self, client):
        assert client.post("/api/tasks", json={"name": "anon"}).status_code == 200


class TestAuthIsolation:
    def test_auth_paths_never_reach_task_router(self, client):
        client.post("/api/tasks", json={"name": "x"})
        for method in ("GET", "POST", "PUT", "PATCH", "DELETE"):
            res = client.request(method, "/api/auth/tasks")
            assert res.status_code == 404
            assert res.json() == {"message": "Not Found"}


class TestJSONFormatter:
    def test_includes_request_fields(self):
        record = logging.LogRecord("tasks_api.request", logging.INFO, __file__, 1, "GET /x 200", None, None)
        record.request_id = "r1"
        record.status_code = 200
        import json

        data = json.loads(JSONFormatter().format(record))
        assert data["message"] == "GET /x 200"
        assert data["request_id"] == "r1"
        assert data["status_code"] == 200
        assert data["level"] == "INFO"
