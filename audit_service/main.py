# -*- coding: utf-8 -*-
"""Main application file for the Audit Service."""

import atexit
import logging
import time
from datetime import datetime, timezone

from flask import Flask, Response, g, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from audit_service.config import Config, get_config
from audit_service.db.connections import ConnectionProvider, EngineConnectionProvider
from audit_service.routes.audit_logs import audit_logs_bp
from audit_service.routes.helpers import error_response
from audit_service.services.audit import EXTENSION_KEY, AuditLogger
from audit_service.services.audit_sink import AuditSink

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Histogram,
    generate_latest,
)


REQUEST_COUNT = Counter(
    "audit_service_requests_total",
    "Total number of HTTP requests processed.",
    labelnames=("method", "endpoint", "status"),
)
REQUEST_LATENCY = Histogram(
    "audit_service_request_duration_seconds",
    "Request latency in seconds.",
    labelnames=("method", "endpoint"),
)


def create_app(
    config: Config | None = None,
    *,
    connection_provider: ConnectionProvider | None = None,
) -> Flask:
    """Create and configure the Flask application.

    The application owns the audit sink: it is built and started here and
    drained when the interpreter exits.

    Returns:
        Flask: The configured Flask application.
    """
    config = config or get_config()
    logging.basicConfig(level=config.log_level)
    app = Flask(__name__)
    app.secret_key = config.flask_secret
    app.config["APP_CONFIG"] = config

    CORS(app, origins=config.cors_origins)

    sink = AuditSink.from_config(
        config,
        connection_provider or EngineConnectionProvider(),
    )
    sink.start()
    atexit.register(sink.shutdown, timeout=config.audit_shutdown_timeout)
    app.extensions["audit_sink"] = sink
    app.extensions[EXTENSION_KEY] = AuditLogger(sink)

    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        """Handle HTTP exceptions by returning JSON."""
        message = err.description or err.name
        return error_response(err.code or 500, message)

    @app.errorhandler(Exception)
    def handle_exception(err: Exception):
        """Handle unexpected exceptions by returning JSON."""
        app.logger.exception("unhandled error")
        return error_response(500, "internal server error")

    @app.route("/health")
    def health():
        """Health check endpoint."""
        return jsonify(
            {
                "status": "ok",
                "service": "audit-service",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "audit_sink": {
                    "state": sink.state.value,
                    "pending": sink.pending,
                },
            }
        )

    @app.route("/metrics")
    def metrics() -> Response:
        """Expose Prometheus metrics."""
        return Response(generate_latest(), mimetype=CONTENT_TYPE_LATEST)

    @app.before_request
    def start_timer() -> None:
        g._request_start_time = time.perf_counter()

    @app.after_request
    def log_and_record(response: Response) -> Response:
        endpoint = request.endpoint or "unknown"
        method = request.method
        status = str(response.status_code)
        start = getattr(g, "_request_start_time", None)
        REQUEST_COUNT.labels(
            method=method,
            endpoint=endpoint,
            status=status,
        ).inc()
        if start is not None:
            duration = time.perf_counter() - start
            REQUEST_LATENCY.labels(
                method=method,
                endpoint=endpoint,
            ).observe(duration)
            app.logger.info(
                "request.completed",
                extra={
                    "endpoint": endpoint,
                    "method": method,
                    "status": status,
                    "duration_ms": duration * 1000,
                },
            )
        return response

    app.register_blueprint(audit_logs_bp)

    return app


app = create_app()


if __name__ == "__main__":
    app.run(debug=True, port=app.config["APP_CONFIG"].app_port)
