"""HTTP surface tests using Flask's test client."""

import pytest

import app as app_module
import compiler


@pytest.fixture
def client():
    app_module.app.config["TESTING"] = True
    with app_module.app.test_client() as client:
        yield client


def test_analyze_sample(client):
    resp = client.post("/analyze", json={"code": compiler.SAMPLE_PROGRAM})
    assert resp.status_code == 200
    data = resp.get_json()
    assert {"lexical", "syntactic", "semantic", "intermediate", "optimized", "stats",
            "diagnostics", "tokens", "ast", "errors"} <= set(data)
    assert data["stats"]["syntaxErrors"] == 0
    assert data["stats"]["semanticErrors"] >= 1
    assert data["intermediate"]
    for row in data["optimized"]:
        assert set(row) == {"op", "arg1", "arg2", "res"}
    assert data["ast"]["type"] == "Program"
    assert data["tokens"][0] == {"kind": "keyword", "lexeme": "class", "line": 1, "column": 1}
    assert any("undeclaredVariable" in e for e in data["errors"])


def test_analyze_empty_source(client):
    resp = client.post("/analyze", json={"code": ""})
    assert resp.status_code == 200
    data = resp.get_json()
    assert set(data["stats"].values()) == {0}
    assert data["intermediate"] == []
    assert data["tokens"] == []


def test_missing_code_is_a_bad_request(client):
    assert client.post("/analyze", json={}).status_code == 400
    assert client.post("/analyze", json={"code": 42}).status_code == 400
    assert client.post("/analyze", data="not json").status_code == 400


def test_source_over_limit(client, monkeypatch):
    monkeypatch.setitem(app_module.app.config, "MAX_SOURCE_CHARS", 5)
    resp = client.post("/analyze", json={"code": "let x = 1;"})
    assert resp.status_code == 413
    assert resp.get_json()["errors"]


def test_optional_sections_can_be_disabled(client, monkeypatch):
    monkeypatch.setitem(app_module.app.config, "INCLUDE_TOKENS", False)
    monkeypatch.setitem(app_module.app.config, "INCLUDE_AST", False)
    data = client.post("/analyze", json={"code": "let x = 1;"}).get_json()
    assert "tokens" not in data
    assert "ast" not in data


def test_internal_failure_is_reported(client, monkeypatch):
    def boom(code):
        raise RuntimeError("stage exploded")

    monkeypatch.setattr(compiler, "analyze_source", boom)
    resp = client.post("/analyze", json={"code": "let x = 1;"})
    assert resp.status_code == 500
    assert resp.get_json()["errors"] == ["Unexpected error: stage exploded"]


def test_sample_endpoint(client):
    resp = client.get("/sample")
    assert resp.status_code == 200
    assert resp.get_json() == {"code": compiler.SAMPLE_PROGRAM}
