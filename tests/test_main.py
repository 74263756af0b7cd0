"""Smoke tests for the Flask application."""

from datetime import datetime

from audit_service.config import reset_config
from audit_service.main import create_app
from audit_service.services.audit import AuditLogger
from audit_service.services.audit_sink import AuditSink


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    data = response.get_json()
    assert data["status"] == "ok"
    assert data["service"] == "audit-service"
    assert data["audit_sink"] == {"state": "running", "pending": 0}
    timestamp = datetime.fromisoformat(data["timestamp"])
    assert timestamp.tzinfo is not None


def test_metrics_exposes_audit_counters(client):
    client.get("/health")
    response = client.get("/metrics")
    assert response.status_code == 200
    body = response.get_data(as_text=True)
    assert "audit_records_submitted_total" in body
    assert "audit_service_requests_total" in body


def test_not_found(client):
    response = client.get("/missing")
    assert response.status_code == 404
    payload = response.get_json()
    assert payload["error"]["code"] == 404


def test_cors_headers(client):
    response = client.get("/health")
    assert response.headers["Access-Control-Allow-Origin"] == "*"


def test_app_owns_a_running_sink(app):
    sink = app.extensions["audit_sink"]
    assert isinstance(sink, AuditSink)
    assert isinstance(app.extensions["audit_logger"], AuditLogger)
    assert sink.state.value == "running"


def test_sink_settings_come_from_environment(provider):
    reset_config(
        {
            "AUDIT_QUEUE_MAX_SIZE": "25",
            "AUDIT_OVERFLOW_POLICY": "drop-oldest",
        }
    )
    try:
        app = create_app(connection_provider=provider)
        sink = app.extensions["audit_sink"]
        assert sink.capacity == 25
        assert sink.overflow_policy == "drop_oldest"
        sink.shutdown(timeout=5)
    finally:
        reset_config(
            {"AUDIT_QUEUE_MAX_SIZE": None, "AUDIT_OVERFLOW_POLICY": None}
        )
