"""End-to-end tests for the proxy pipeline through the FastAPI app."""

import json

import httpx
import pytest
from fastapi.testclient import TestClient

from app import create_app
from conftest import UpstreamRecorder, stream_response
from core.config import Config, ProxySettings
from core.cors import CORS_HEADERS
from core.routes import build_route_table


@pytest.fixture
def make_client(config, route_table, logger):
    def _make(upstream: UpstreamRecorder, *, config: Config = config, table=route_table) -> TestClient:
        app = create_app(config, logger, route_table=table, transport=upstream.transport)
        return TestClient(app)

    return _make


@pytest.fixture
def secret_config() -> Config:
    return Config(proxy=ProxySettings(shared_secret="s3cret"))


def _assert_cors(response):
    for key, value in CORS_HEADERS.items():
        assert response.headers[key] == value


class TestPreflight:
    @pytest.mark.parametrize("path", ["/claude/v1/messages", "/", "/unknown/path"])
    def test_options_short_circuits(self, make_client, path):
        upstream = UpstreamRecorder()
        with make_client(upstream) as client:
            resp = client.options(path, headers={"Origin": "https://app.example"})

        assert resp.status_code == 204
        assert resp.content == b""
        assert resp.headers["access-control-max-age"] == "86400"
        _assert_cors(resp)
        assert upstream.calls == []

    def test_options_bypasses_shared_secret(self, make_client, secret_config, route_table):
        upstream = UpstreamRecorder()
        with make_client(upstream, config=secret_config) as client:
            resp = client.options("/chatgpt/v1/chat/completions")

        assert resp.status_code == 204
        assert upstream.calls == []


class TestRouting:
    def test_gemini_scenario(self, make_client):
        upstream = UpstreamRecorder()
        with make_client(upstream) as client:
            resp = client.get("/gemini/v1beta/models", headers={"Authorization": "Bearer client"})

        assert resp.status_code == 200
        sent = upstream.calls[0]
        assert str(sent.url) == "https://generativelanguage.googleapis.com/v1beta/models"
        assert sent.headers["x-goog-api-key"] == "gem-test"
        assert "authorization" not in sent.headers

    def test_claude_bare_prefix(self, make_client):
        upstream = UpstreamRecorder()
        with make_client(upstream) as client:
            resp = client.post("/claude", content=b'{"ping": true}')

        assert resp.status_code == 200
        sent = upstream.calls[0]
        assert str(sent.url) == "https://api.anthropic.com/v1"
        assert sent.method == "POST"
        assert sent.content == b'{"ping": true}'
        assert sent.headers["authorization"] == "Bearer sk-ant-test"

    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            ("/chatgpt/chat/completions", "https://api.openai.com/v1/chat/completions"),
            ("/claude/v1/messages", "https://api.anthropic.com/v1/messages"),
            ("/groq/chat/completions", "https://api.groq.com/openai/v1/chat/completions"),
            ("/grok/chat/completions", "https://api.x.ai/v1/chat/completions"),
        ],
    )
    def test_each_prefix_reaches_its_upstream(self, make_client, path, expected):
        upstream = UpstreamRecorder()
        with make_client(upstream) as client:
            client.post(path, json={"model": "m"})

        assert str(upstream.calls[0].url) == expected

    def test_query_string_forwarded(self, make_client):
        upstream = UpstreamRecorder()
        with make_client(upstream) as client:
            client.post("/gemini/models/gemini-pro:streamGenerateContent?alt=sse", json={})

        assert upstream.calls[0].url.params["alt"] == "sse"
        assert upstream.calls[0].url.path == "/v1beta/models/gemini-pro:streamGenerateContent"

    @pytest.mark.parametrize("method", ["PUT", "DELETE", "PATCH"])
    def test_other_methods(self, make_client, method):
        upstream = UpstreamRecorder()
        with make_client(upstream) as client:
            resp = client.request(method, "/chatgpt/files/file-1")

        assert resp.status_code == 200
        assert upstream.calls[0].method == method

    def test_client_transport_headers_not_forwarded(self, make_client):
        upstream = UpstreamRecorder()
        with make_client(upstream) as client:
            client.post(
                "/chatgpt/chat/completions",
                json={},
                headers={
                    "cf-ray": "8a1b2c3d4e5f",
                    "cf-connecting-ip": "203.0.113.9",
                    "x-forwarded-host": "relay.example",
                    "x-forwarded-for": "203.0.113.9",
                    "proxy-connection": "keep-alive",
                    "upgrade": "h2c",
                },
            )

        sent = upstream.calls[0].headers
        for name in ("cf-ray", "cf-connecting-ip", "x-forwarded-host", "proxy-connection", "upgrade"):
            assert name not in sent
        assert sent["x-forwarded-for"] == "203.0.113.9"
        assert sent["host"] == "api.openai.com"
        assert sent.get_list("authorization") == ["Bearer sk-openai-test"]


class TestStreaming:
    def test_chunks_round_trip(self, make_client):
        chunks = [f"data: {{\"delta\": \"tok{i}\"}}\n\n".encode() for i in range(25)]

        async def events():
            for chunk in chunks:
                yield chunk

        upstream = UpstreamRecorder(
            lambda request: httpx.Response(
                200, headers={"content-type": "text/event-stream"}, content=events()
            )
        )
        with make_client(upstream) as client:
            with client.stream("POST", "/claude/v1/messages", json={"stream": True}) as resp:
                body = b"".join(resp.iter_bytes())

        assert resp.status_code == 200
        assert resp.headers["content-type"] == "text/event-stream"
        assert body == b"".join(chunks)

    def test_upstream_status_and_headers_preserved(self, make_client):
        upstream = UpstreamRecorder(
            lambda request: stream_response(
                429,
                b'{"error": {"type": "rate_limit_error"}}',
                {"content-type": "application/json", "retry-after": "7"},
            )
        )
        with make_client(upstream) as client:
            resp = client.post("/claude/v1/messages", json={})

        assert resp.status_code == 429
        assert resp.headers["retry-after"] == "7"
        assert resp.json() == {"error": {"type": "rate_limit_error"}}
        _assert_cors(resp)

    def test_redirect_surfaced_to_caller(self, make_client):
        upstream = UpstreamRecorder(
            lambda request: stream_response(302, b"", {"location": "https://elsewhere.example/v1/models"})
        )
        with make_client(upstream) as client:
            resp = client.get("/chatgpt/models", follow_redirects=False)

        assert resp.status_code == 302
        assert resp.headers["location"] == "https://elsewhere.example/v1/models"
        assert len(upstream.calls) == 1


class TestSharedSecret:
    def test_wrong_secret_rejected_without_upstream_call(self, make_client, secret_config):
        upstream = UpstreamRecorder()
        with make_client(upstream, config=secret_config) as client:
            resp = client.post("/claude/v1/messages", json={}, headers={"Authorization": "Bearer wrong"})

        assert resp.status_code == 401
        assert upstream.calls == []
        _assert_cors(resp)

    def test_missing_secret_rejected(self, make_client, secret_config):
        upstream = UpstreamRecorder()
        with make_client(upstream, config=secret_config) as client:
            resp = client.get("/groq/models")

        assert resp.status_code == 401
        assert upstream.calls == []

    def test_correct_secret_replaced_by_provider_key(self, make_client, secret_config):
        upstream = UpstreamRecorder()
        with make_client(upstream, config=secret_config) as client:
            resp = client.get("/groq/models", headers={"Authorization": "Bearer s3cret"})

        assert resp.status_code == 200
        assert upstream.calls[0].headers.get_list("authorization") == ["Bearer gsk-test"]

    def test_secret_never_reaches_custom_header_upstream(self, make_client, secret_config):
        upstream = UpstreamRecorder()
        with make_client(upstream, config=secret_config) as client:
            client.get("/gemini/models", headers={"Authorization": "Bearer s3cret"})

        assert "authorization" not in upstream.calls[0].headers

    def test_home_page_is_public(self, make_client, secret_config):
        with make_client(UpstreamRecorder(), config=secret_config) as client:
            resp = client.get("/")

        assert resp.status_code == 200


class TestErrors:
    def test_unknown_path_404(self, make_client):
        upstream = UpstreamRecorder()
        with make_client(upstream) as client:
            resp = client.get("/mistral/v1/models")

        assert resp.status_code == 404
        assert resp.headers["content-type"].startswith("text/plain")
        _assert_cors(resp)
        assert upstream.calls == []

    def test_missing_key_500_names_provider(self, make_client, config, logger):
        upstream = UpstreamRecorder()
        table = build_route_table(config, {})
        with make_client(upstream, table=table) as client:
            resp = client.post("/claude/v1/messages", json={})

        assert resp.status_code == 500
        assert "claude" in resp.text
        _assert_cors(resp)
        assert upstream.calls == []
        assert logger.errors[0][:2] == ("claude", 500)

    def test_connection_refused_502(self, make_client, logger):
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("[Errno 111] Connection refused", request=request)

        with make_client(UpstreamRecorder(refuse)) as client:
            resp = client.post("/chatgpt/chat/completions", json={})

        assert resp.status_code == 502
        body = resp.json()
        assert body["error"] == "Proxy request failed"
        assert "Connection refused" in body["detail"]
        assert "Traceback" not in resp.text
        _assert_cors(resp)
        assert logger.errors[0][:2] == ("chatgpt", 502)

    def test_service_survives_failures(self, make_client):
        calls = {"n": 0}

        def flaky(request: httpx.Request) -> httpx.Response:
            calls["n"] += 1
            if calls["n"] == 1:
                raise httpx.ReadTimeout("timed out", request=request)
            return stream_response(200, b"ok")

        with make_client(UpstreamRecorder(flaky)) as client:
            first = client.get("/grok/models")
            second = client.get("/grok/models")

        assert first.status_code == 502
        assert second.status_code == 200
        assert second.content == b"ok"


class TestHomeAndLogging:
    @pytest.mark.parametrize("path", ["/", "/index.html"])
    def test_landing_page(self, make_client, path):
        with make_client(UpstreamRecorder()) as client:
            resp = client.get(path)

        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/html")
        assert "/gemini" in resp.text
        _assert_cors(resp)

    def test_logs_never_contain_credentials(self, make_client, logger):
        with make_client(UpstreamRecorder()) as client:
            client.get("/gemini/models?key=client-secret&pageSize=2")
            client.post("/claude/v1/messages", json={})

        logged = json.dumps([logger.requests, logger.responses, logger.errors])
        assert "client-secret" not in logged
        assert "gem-test" not in logged
        assert "sk-ant-test" not in logged
        assert logger.requests[0][0] == "gemini"
        assert "key=***" in logger.requests[0][2]
        assert logger.responses == [("gemini", "GET", 200), ("claude", "POST", 200)]


class TestEncodedPaths:
    def test_encoded_delimiters_reach_upstream_intact(self, make_client):
        upstream = UpstreamRecorder()
        with make_client(upstream) as client:
            resp = client.get("/chatgpt/v1/files/a%3Fb%2Fc%23d?limit=1")

        assert resp.status_code == 200
        sent = upstream.calls[0].url
        assert sent.raw_path == b"/v1/files/a%3Fb%2Fc%23d?limit=1"
        assert sent.params["limit"] == "1"
        assert sent.fragment == ""

    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            ("/claude/v1/files/caf%C3%A9", b"/v1/files/caf%C3%A9"),
            ("/claude/v1/files/a%20b", b"/v1/files/a%20b"),
            ("/gemini/models/gemini-pro%3AstreamGenerateContent", b"/v1beta/models/gemini-pro%3AstreamGenerateContent"),
            ("/groq/files/x%25y", b"/openai/v1/files/x%25y"),
        ],
    )
    def test_escapes_preserved(self, make_client, path, expected):
        upstream = UpstreamRecorder()
        with make_client(upstream) as client:
            client.post(path, json={})

        assert upstream.calls[0].url.raw_path == expected

    def test_encoded_slash_after_prefix_is_not_routed(self, make_client):
        upstream = UpstreamRecorder()
        with make_client(upstream) as client:
            resp = client.post("/claude%2Fv1/messages", json={})

        assert resp.status_code == 404
        assert upstream.calls == []


class TestErrorContext:
    def test_not_found_logged_with_path(self, make_client, logger):
        with make_client(UpstreamRecorder()) as client:
            client.get("/mistral/v1/models")

        assert logger.errors == [("/mistral/v1/models", 404, "No route for /mistral/v1/models")]

    def test_unauthorized_logged_with_redacted_query(self, make_client, secret_config, logger):
        with make_client(UpstreamRecorder(), config=secret_config) as client:
            client.get("/gemini/models?key=client-secret&pageSize=2")

        route, status, _ = logger.errors[0]
        assert status == 401
        assert route == "/gemini/models?key=***&pageSize=2"
        assert "client-secret" not in json.dumps(logger.errors)
