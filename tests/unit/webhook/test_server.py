"""Tests for the Flask webhook application."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from prometheus_client import CollectorRegistry

from ssm_env_injector.core.config.webhook import WebhookConfig
from ssm_env_injector.core.metrics.exporters import PrometheusRegistry
from ssm_env_injector.webhook.admission import PodAdmissionHandler
from ssm_env_injector.webhook.server import (
    create_app,
    create_telemetry_app,
    parse_listen_address,
    run_server,
)
from tests.factories import make_container, make_mutators, make_pod, make_review


@pytest.fixture
def metrics() -> PrometheusRegistry:
    return PrometheusRegistry(CollectorRegistry())


@pytest.fixture
def handler(metrics: PrometheusRegistry) -> PodAdmissionHandler:
    _, pod_mutator = make_mutators()
    return PodAdmissionHandler(pod_mutator, meter_registry=metrics)


class TestParseListenAddress:
    @pytest.mark.parametrize(
        ("address", "expected"),
        [
            (":8443", ("0.0.0.0", 8443)),
            ("127.0.0.1:9000", ("127.0.0.1", 9000)),
            ("[::1]:8443", ("::1", 8443)),
        ],
    )
    def test_valid(self, address: str, expected: tuple[str, int]) -> None:
        assert parse_listen_address(address) == expected

    @pytest.mark.parametrize("address", ["8443", "localhost:", "host:https"])
    def test_invalid(self, address: str) -> None:
        with pytest.raises(ValueError, match="invalid listen address"):
            parse_listen_address(address)


class TestWebhookApp:
    def test_pods_mutates(self, handler: PodAdmissionHandler) -> None:
        client = create_app(handler).test_client()
        pod = make_pod([make_container(command=["/bin/app"], env=[{"name": "A", "value": "ssm:/a"}])])

        response = client.post("/pods", json=make_review(pod))

        assert response.status_code == 200
        body = response.get_json()
        assert body["kind"] == "AdmissionReview"
        assert body["response"]["uid"] == "uid-1"
        assert body["response"]["patchType"] == "JSONPatch"

    def test_pods_rejects_non_json(self, handler: PodAdmissionHandler) -> None:
        client = create_app(handler).test_client()

        response = client.post("/pods", data="not json", content_type="text/plain")

        assert response.status_code == 400

    def test_pods_rejects_review_without_request(self, handler: PodAdmissionHandler) -> None:
        client = create_app(handler).test_client()

        response = client.post("/pods", json={"kind": "AdmissionReview"})

        assert response.status_code == 400
        assert "no request" in response.get_json()["error"]

    def test_pods_rejects_non_object_kind(self, handler: PodAdmissionHandler) -> None:
        client = create_app(handler).test_client()

        response = client.post("/pods", json={"request": {"uid": "u", "kind": "Pod"}})

        assert response.status_code == 400
        assert "kind" in response.get_json()["error"]

    def test_healthz(self, handler: PodAdmissionHandler) -> None:
        response = create_app(handler).test_client().get("/healthz")

        assert response.status_code == 200
        assert response.data == b""

    def test_metrics_served_when_given(self, handler: PodAdmissionHandler, metrics: PrometheusRegistry) -> None:
        client = create_app(handler, metrics).test_client()
        client.post("/pods", json=make_review(make_pod([make_container(command=["/bin/app"])])))

        response = client.get("/metrics")

        assert response.status_code == 200
        assert b"ssm_webhook_admission_reviews_total" in response.data

    def test_metrics_absent_without_registry(self, handler: PodAdmissionHandler) -> None:
        assert create_app(handler).test_client().get("/metrics").status_code == 404

    def test_telemetry_app_serves_only_metrics(self, metrics: PrometheusRegistry) -> None:
        client = create_telemetry_app(metrics).test_client()

        assert client.get("/metrics").status_code == 200
        assert client.get("/healthz").status_code == 404


class TestRunServer:
    @patch("ssm_env_injector.webhook.server.Flask.run")
    def test_tls_and_inline_metrics(
        self, mock_run: MagicMock, handler: PodAdmissionHandler, metrics: PrometheusRegistry
    ) -> None:
        config = WebhookConfig(tls_cert_file="/tls/cert.pem", tls_private_key_file="/tls/key.pem")

        run_server(config, handler, metrics)

        mock_run.assert_called_once_with(
            host="0.0.0.0",
            port=8443,
            ssl_context=("/tls/cert.pem", "/tls/key.pem"),
            threaded=True,
            use_reloader=False,
        )

    @patch("ssm_env_injector.webhook.server.threading.Thread")
    @patch("ssm_env_injector.webhook.server.Flask.run")
    def test_separate_telemetry_listener(
        self,
        mock_run: MagicMock,
        mock_thread: MagicMock,
        handler: PodAdmissionHandler,
        metrics: PrometheusRegistry,
    ) -> None:
        config = WebhookConfig(listen_address=":8080", telemetry_listen_address=":9102")

        run_server(config, handler, metrics)

        kwargs = mock_thread.call_args.kwargs
        assert kwargs["kwargs"] == {"host": "0.0.0.0", "port": 9102, "use_reloader": False}
        assert kwargs["daemon"] is True
        mock_thread.return_value.start.assert_called_once()
        assert mock_run.call_args.kwargs["ssl_context"] is None
        assert mock_run.call_args.kwargs["port"] == 8080
