import logging

from flask import Flask, jsonify

from api.middleware.request_logging import setup_request_logging_middleware


def _build_test_app():
    app = Flask(__name__)

    @app.route("/api/properties", methods=["GET"])
    def properties():
        return jsonify({"properties": []})

    setup_request_logging_middleware(app)
    return app


def test_request_logging_sample_rate(monkeypatch, caplog):
    monkeypatch.setenv("REQUEST_LOG_ENABLED", "true")
    monkeypatch.setenv("REQUEST_LOG_SAMPLE_RATE", "1.0")
    monkeypatch.setenv("REQUEST_LOG_ENDPOINTS", "")

    client = _build_test_app().test_client()
    with caplog.at_level(logging.INFO, logger="roiscout.request"):
        response = client.get("/api/properties")

    assert response.status_code == 200
    assert any(
        "api_request path=/api/properties" in record.getMessage()
        for record in caplog.records
    )


def test_request_logging_watchlist(monkeypatch, caplog):
    monkeypatch.setenv("REQUEST_LOG_ENABLED", "true")
    monkeypatch.setenv("REQUEST_LOG_SAMPLE_RATE", "0.0")
    monkeypatch.setenv("REQUEST_LOG_ENDPOINTS", "/api/properties")

    client = _build_test_app().test_client()
    with caplog.at_level(logging.INFO, logger="roiscout.request"):
        client.get("/api/properties")

    assert any("api_request" in record.getMessage() for record in caplog.records)


def test_request_logging_silent_without_sampling(monkeypatch, caplog):
    monkeypatch.setenv("REQUEST_LOG_ENABLED", "true")
    monkeypatch.setenv("REQUEST_LOG_SAMPLE_RATE", "0.0")
    monkeypatch.setenv("REQUEST_LOG_ENDPOINTS", "")

    client = _build_test_app().test_client()
    with caplog.at_level(logging.INFO, logger="roiscout.request"):
        client.get("/api/properties")

    assert not any("api_request" in record.getMessage() for record in caplog.records)


def test_query_timing_headers(client, seeded):
    r = client.get('/api/properties')
    assert int(r.headers['X-Query-Count']) >= 2
    assert float(r.headers['X-DB-Time-Ms']) >= 0
