"""Admission webhook HTTP server: the Flask app factory.

Routes:

- ``POST /pods``: AdmissionReview in, AdmissionReview out.
- ``GET /healthz``: empty 200.
- ``GET /metrics``: Prometheus exposition, unless telemetry is served on a
  separate address.
"""

from __future__ import annotations

import logging
import threading

from flask import Flask, Response, jsonify, request

from ssm_env_injector.core.config.webhook import WebhookConfig
from ssm_env_injector.core.metrics.exporters import PrometheusRegistry
from ssm_env_injector.webhook.admission import InvalidAdmissionReview, PodAdmissionHandler

logger = logging.getLogger(__name__)


def parse_listen_address(address: str) -> tuple[str, int]:
    """Split a ``host:port`` listen address; an empty host means all interfaces.

    ``":8443"`` → ``("0.0.0.0", 8443)``, ``"[::1]:8443"`` → ``("::1", 8443)``.

    Raises:
        ValueError: If the port is missing or not a number.
    """
    host, sep, port = address.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"invalid listen address: {address!r}")
    host = host.strip("[]") or "0.0.0.0"
    return host, int(port)


def _register_metrics_route(app: Flask, metrics: PrometheusRegistry) -> None:
    @app.get("/metrics")
    def metrics_endpoint() -> Response:
        return Response(metrics.exposition(), mimetype=metrics.content_type)


def create_app(
    handler: PodAdmissionHandler,
    metrics: PrometheusRegistry | None = None,
) -> Flask:
    """Create the admission webhook application.

    Args:
        handler: Pod admission logic.
        metrics: When given, ``/metrics`` is served by this app.

    Returns:
        Configured Flask application.
    """
    app = Flask(__name__)

    @app.post("/pods")
    def mutate_pods() -> tuple[Response, int]:
        body = request.get_json(silent=True)
        if body is None:
            return jsonify({"error": "request body must be a JSON AdmissionReview"}), 400
        try:
            review = handler.review(body)
        except InvalidAdmissionReview as exc:
            logger.warning("Rejected malformed AdmissionReview: %s", exc)
            return jsonify({"error": str(exc)}), 400
        return jsonify(review), 200

    @app.get("/healthz")
    def healthz() -> tuple[str, int]:
        return "", 200

    if metrics is not None:
        _register_metrics_route(app, metrics)

    return app


def create_telemetry_app(metrics: PrometheusRegistry) -> Flask:
    """Create the plain-HTTP app serving only ``/metrics``."""
    app = Flask(f"{__name__}.telemetry")
    _register_metrics_route(app, metrics)
    return app


def run_server(config: WebhookConfig, handler: PodAdmissionHandler, metrics: PrometheusRegistry) -> None:
    """Serve the webhook until interrupted.

    Telemetry goes to its own plain-HTTP listener on a daemon thread when
    ``telemetry_listen_address`` is set; otherwise ``/metrics`` is served
    next to ``/pods``.
    """
    if config.telemetry_listen_address:
        telemetry_host, telemetry_port = parse_listen_address(config.telemetry_listen_address)
        telemetry_app = create_telemetry_app(metrics)
        logger.info("Telemetry on http://%s", config.telemetry_listen_address)
        threading.Thread(
            target=telemetry_app.run,
            kwargs={"host": telemetry_host, "port": telemetry_port, "use_reloader": False},
            name="telemetry",
            daemon=True,
        ).start()
        app = create_app(handler)
    else:
        app = create_app(handler, metrics)

    host, port = parse_listen_address(config.listen_address)
    ssl_context = None
    if config.tls_enabled:
        ssl_context = (config.tls_cert_file, config.tls_private_key_file)
        logger.info("Listening on https://%s", config.listen_address)
    else:
        logger.info("Listening on http://%s", config.listen_address)
    app.run(host=host, port=port, ssl_context=ssl_context, threaded=True, use_reloader=False)
