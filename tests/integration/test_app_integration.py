from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import pytest
from fastapi.testclient import TestClient

from repo_scan import operations
from repo_scan.app import create_app

if TYPE_CHECKING:
    from conftest import FakeUpstream
    from pytest_mock import MockerFixture

    from repo_scan.settings import Settings

ANALYSIS = {
    "stage": "prototype",
    "stage_reasoning": "Exploring",
    "top_recommendation": {"title": "Add tests", "description": "Cover the parser", "impact": "high", "effort": "3h"},
    "secondary_recommendations": [],
}


def _client(upstream: FakeUpstream, settings: Settings) -> TestClient:
    return TestClient(create_app(settings, transport=upstream.transport()))


def _upstream(make_upstream: type[FakeUpstream], **kwargs: Any) -> FakeUpstream:  # noqa: ANN401
    return make_upstream(
        files={"README.md": "# Demo\n", "src/index.ts": "export {};\n", "logo.png": "\x89PNG"},
        **kwargs,
    )


@pytest.mark.integration
def test_pack_endpoint(make_upstream: type[FakeUpstream], settings: Settings) -> None:
    client = _client(_upstream(make_upstream), settings)

    response = client.post("/api/pack/octo/demo", json={"accessToken": "ghp"})

    assert response.status_code == 200  # noqa: PLR2004
    body = response.json()
    assert body["success"] is True
    assert body["meta"]["filesIncluded"] == 2  # noqa: PLR2004
    assert body["meta"]["totalFiles"] == 3  # noqa: PLR2004
    assert set(body["meta"]) == {"filesIncluded", "totalFiles", "lines", "chars", "words", "sizeKB", "estimatedTokens"}
    assert "### src/index.ts" in body["content"]


@pytest.mark.integration
def test_pack_endpoint_xml_format(make_upstream: type[FakeUpstream], settings: Settings) -> None:
    client = _client(_upstream(make_upstream), settings)

    response = client.post("/api/pack/octo/demo", json={"accessToken": "ghp", "format": "xml"})

    assert response.json()["content"].startswith('<repository name="octo/demo">')


@pytest.mark.integration
def test_pack_endpoint_missing_token(make_upstream: type[FakeUpstream], settings: Settings) -> None:
    upstream = _upstream(make_upstream)
    client = _client(upstream, settings)

    response = client.post("/api/pack/octo/demo", json={})

    assert response.status_code == 400  # noqa: PLR2004
    assert response.json() == {"error": "Missing accessToken"}
    assert upstream.requests == []


@pytest.mark.integration
def test_invalid_body(make_upstream: type[FakeUpstream], settings: Settings) -> None:
    client = _client(_upstream(make_upstream), settings)

    response = client.post(
        "/api/pack/octo/demo",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400  # noqa: PLR2004
    assert response.json() == {"error": "Invalid request body"}


@pytest.mark.integration
def test_tree_failure_is_a_500(make_upstream: type[FakeUpstream], settings: Settings) -> None:
    client = _client(_upstream(make_upstream, tree_status=404), settings)

    response = client.post("/api/pack/octo/missing", json={"accessToken": "ghp"})

    assert response.status_code == 500  # noqa: PLR2004
    assert response.json() == {"error": "Failed to fetch file tree: 404"}


@pytest.mark.integration
def test_scan_endpoint(make_upstream: type[FakeUpstream], settings: Settings) -> None:
    upstream = _upstream(make_upstream, completion_text=f"Analysis: {json.dumps(ANALYSIS)}")
    client = _client(upstream, settings)

    response = client.post("/api/scan/octo/demo", json={"accessToken": "ghp", "includePack": True})

    assert response.status_code == 200  # noqa: PLR2004
    body = response.json()
    assert body["success"] is True
    assert body["analysis"]["stage"] == "prototype"
    assert body["analysis"]["top_recommendation"]["title"] == "Add tests"
    assert body["meta"] == {"filesScanned": 2, "totalFiles": 3}
    assert body["packMeta"]["filesIncluded"] == 2  # noqa: PLR2004
    assert "packContent" in body


@pytest.mark.integration
def test_scan_endpoint_without_completion_key(make_upstream: type[FakeUpstream], settings: Settings) -> None:
    keyless = settings.model_copy(update={"openai_api_key": ""})
    upstream = _upstream(make_upstream)
    client = _client(upstream, keyless)

    response = client.post("/api/scan/octo/demo", json={"accessToken": "ghp"})

    assert response.status_code == 500  # noqa: PLR2004
    assert response.json() == {"error": "OPENAI_API_KEY not configured"}
    assert upstream.requests == []


@pytest.mark.integration
def test_scan_endpoint_parse_failure(make_upstream: type[FakeUpstream], settings: Settings) -> None:
    client = _client(_upstream(make_upstream, completion_text="no json here"), settings)

    response = client.post("/api/scan/octo/demo", json={"accessToken": "ghp"})

    assert response.status_code == 500  # noqa: PLR2004
    assert response.json() == {"error": "Failed to parse analysis result"}


@pytest.mark.integration
def test_scan_endpoint_completion_error(make_upstream: type[FakeUpstream], settings: Settings) -> None:
    client = _client(_upstream(make_upstream, completion_status=503), settings)

    response = client.post("/api/scan/octo/demo", json={"accessToken": "ghp"})

    assert response.status_code == 500  # noqa: PLR2004
    assert response.json() == {"error": "Completion API error: 503"}


@pytest.mark.integration
def test_chat_endpoint(make_upstream: type[FakeUpstream], settings: Settings) -> None:
    client = _client(_upstream(make_upstream, completion_text="Use vitest."), settings)

    response = client.post(
        "/api/chat",
        json={
            "recommendation": ANALYSIS["top_recommendation"],
            "userMessage": "Which framework?",
            "relevantFiles": ["src/index.ts"],
            "repoContext": {"owner": "octo", "repo": "demo", "stage": "prototype", "accessToken": "ghp"},
        },
    )

    assert response.status_code == 200  # noqa: PLR2004
    assert response.json() == {"reply": "Use vitest."}


@pytest.mark.integration
def test_chat_endpoint_missing_fields(make_upstream: type[FakeUpstream], settings: Settings) -> None:
    client = _client(_upstream(make_upstream), settings)

    response = client.post("/api/chat", json={"userMessage": "hi", "repoContext": {"owner": "octo", "repo": "demo"}})

    assert response.status_code == 400  # noqa: PLR2004
    assert response.json() == {"error": "Missing required fields"}


@pytest.mark.integration
def test_issue_endpoints(make_upstream: type[FakeUpstream], settings: Settings) -> None:
    client = _client(_upstream(make_upstream), settings)

    by_path = client.post("/api/issues/octo/demo", json={"accessToken": "ghp", "title": "Add CI", "description": "d"})
    by_body = client.post(
        "/api/create-issue",
        json={"accessToken": "ghp", "owner": "octo", "repo": "demo", "title": "Add CI", "labels": ["ci"]},
    )

    expected = {"success": True, "issueUrl": "https://github.com/octo/demo/issues/7", "issueNumber": 7}
    assert by_path.json() == expected
    assert by_body.json() == expected


@pytest.mark.integration
def test_issue_endpoint_forwards_upstream_status(make_upstream: type[FakeUpstream], settings: Settings) -> None:
    upstream = _upstream(make_upstream, issue_status=422, issue_payload={"message": "Validation Failed"})
    client = _client(upstream, settings)

    response = client.post("/api/create-issue", json={"accessToken": "ghp", "owner": "octo", "repo": "demo", "title": "x"})

    assert response.status_code == 422  # noqa: PLR2004
    assert response.json() == {"error": "Validation Failed"}


@pytest.mark.integration
def test_issue_endpoint_missing_title(make_upstream: type[FakeUpstream], settings: Settings) -> None:
    client = _client(_upstream(make_upstream), settings)

    response = client.post("/api/create-issue", json={"accessToken": "ghp", "owner": "octo", "repo": "demo"})

    assert response.status_code == 400  # noqa: PLR2004
    assert response.json() == {"error": "Missing required fields"}


@pytest.mark.integration
def test_ping(make_upstream: type[FakeUpstream], settings: Settings) -> None:
    client = _client(_upstream(make_upstream), settings)

    get = client.get("/api/ping").json()
    post = client.post("/api/ping", json={"hello": "world"}).json()
    bad = client.post("/api/ping", content=b"nope").json()

    assert get["pong"] is True
    assert get["method"] == "GET"
    assert isinstance(get["timestamp"], int)
    assert post["echo"] == {"hello": "world"}
    assert bad["echo"] == {}


@pytest.mark.integration
def test_issue_endpoint_unreachable_github(make_upstream: type[FakeUpstream], settings: Settings) -> None:
    client = _client(_upstream(make_upstream, broken={"issues"}), settings)

    response = client.post("/api/create-issue", json={"accessToken": "t", "owner": "o", "repo": "r", "title": "x"})

    assert response.status_code == 502  # noqa: PLR2004
    assert response.json() == {"error": "Failed to create issue"}


@pytest.mark.integration
def test_pack_endpoint_unreadable_tree(make_upstream: type[FakeUpstream], settings: Settings) -> None:
    client = _client(_upstream(make_upstream, garbled={"tree"}), settings)

    response = client.post("/api/pack/octo/demo", json={"accessToken": "ghp"})

    assert response.status_code == 500  # noqa: PLR2004
    assert response.json() == {"error": "Failed to fetch file tree: invalid tree listing"}


@pytest.mark.integration
def test_scan_endpoint_unreadable_completion(make_upstream: type[FakeUpstream], settings: Settings) -> None:
    client = _client(_upstream(make_upstream, garbled={"completion"}), settings)

    response = client.post("/api/scan/octo/demo", json={"accessToken": "ghp"})

    assert response.status_code == 500  # noqa: PLR2004
    assert response.json() == {"error": "Completion API error: invalid response body"}


@pytest.mark.integration
def test_scan_endpoint_unreachable_completion(make_upstream: type[FakeUpstream], settings: Settings) -> None:
    client = _client(_upstream(make_upstream, broken={"completion"}), settings)

    response = client.post("/api/scan/octo/demo", json={"accessToken": "ghp"})

    assert response.status_code == 500  # noqa: PLR2004
    assert response.json()["error"].startswith("Completion API error: ")


@pytest.mark.integration
def test_unexpected_error_keeps_json_envelope(
    make_upstream: type[FakeUpstream],
    settings: Settings,
    mocker: MockerFixture,
) -> None:
    mocker.patch.object(operations, "pack_repository", side_effect=RuntimeError("boom"))
    app = create_app(settings, transport=_upstream(make_upstream).transport())
    client = TestClient(app, raise_server_exceptions=False)

    response = client.post("/api/pack/octo/demo", json={"accessToken": "ghp"})

    assert response.status_code == 500  # noqa: PLR2004
    assert response.json() == {"error": "Internal server error"}


@pytest.mark.integration
def test_chat_endpoint_without_completion_key(make_upstream: type[FakeUpstream], settings: Settings) -> None:
    keyless = settings.model_copy(update={"openai_api_key": ""})
    client = _client(_upstream(make_upstream), keyless)

    response = client.post("/api/chat", json={"userMessage": "hi"})

    assert response.status_code == 500  # noqa: PLR2004
    assert response.json() == {"error": "OPENAI_API_KEY not configured"}
