from __future__ import annotations

import socket
import time
from dataclasses import dataclass, field
from typing import Callable, Mapping, Tuple

import httpx

from .credentials import CredentialProvider
from .db import log_event
from .docker_ops import ComposeRuntime, ProbeError
from .settings import Settings

# A check returns (is_healthy, message).
Check = Callable[[], Tuple[bool, str]]


def check_http(
    url: str,
    timeout_s: float = 2.0,
    expect_json_status: str | None = None,
    client: httpx.Client | None = None,
) -> tuple[bool, str, float | None]:
    """Call an HTTP endpoint.

    Any 2xx is healthy unless `expect_json_status` is given, in which case the
    body must be JSON with a matching (case-insensitive) "status" field, as
    Spring actuator and most /health endpoints return.
    Returns (is_healthy, message, latency_ms).
    """
    start = time.time()
    try:
        if client is None:
            with httpx.Client(timeout=timeout_s, follow_redirects=False) as c:
                resp = c.get(url)
        else:
            resp = client.get(url, timeout=timeout_s)
        latency_ms = round((time.time() - start) * 1000.0, 2)
        if not 200 <= resp.status_code < 300:
            return False, f"HTTP {resp.status_code}", latency_ms
        if expect_json_status is None:
            return True, f"HTTP {resp.status_code}", latency_ms
        try:
            data = resp.json()
        except ValueError:
            return False, "Invalid JSON", latency_ms
        status = data.get("status") if isinstance(data, dict) else None
        if isinstance(status, str) and status.lower() == expect_json_status.lower():
            return True, "Healthy", latency_ms
        return False, f"Unhealthy payload: {data!r}", latency_ms
    except (httpx.ConnectError, httpx.TimeoutException):
        latency_ms = round((time.time() - start) * 1000.0, 2)
        return False, "No response", latency_ms
    except httpx.HTTPError as e:
        latency_ms = round((time.time() - start) * 1000.0, 2)
        return False, f"Error: {type(e).__name__}: {e}", latency_ms


def check_tcp(host: str, port: int, timeout_s: float = 2.0) -> tuple[bool, str, float | None]:
    """Open and close a TCP connection. Returns (is_open, message, latency_ms)."""
    start = time.time()
    try:
        with socket.create_connection((host, int(port)), timeout=timeout_s):
            pass
    except OSError as e:
        return False, f"Port {port} closed: {e}", None
    return True, f"Port {port} open", round((time.time() - start) * 1000.0, 2)


def mysql_check(runtime: ComposeRuntime, service: str, user: str, password: str | None, timeout_s: float) -> Check:
    def _check() -> tuple[bool, str]:
        # Password goes through the exec environment so it never shows up in argv.
        env = {"MYSQL_PWD": password} if password else {}
        cmd = ["mysql", f"--connect-timeout={int(max(1, timeout_s))}", "-u", user, "-e", "SELECT 1;"]
        res = runtime.exec(service, cmd, environment=env)
        return res.ok, "SELECT 1 ok" if res.ok else f"mysql exited with {res.exit_code}"

    return _check


def kafka_check(runtime: ComposeRuntime, service: str, topics_bin: str, bootstrap: str, timeout_s: float) -> Check:
    def _check() -> tuple[bool, str]:
        cmd = [
            topics_bin,
            "--list",
            "--bootstrap-server",
            bootstrap,
            "--timeout-ms",
            str(int(timeout_s * 1000)),
        ]
        res = runtime.exec(service, cmd)
        return res.ok, "topic listing ok" if res.ok else f"kafka-topics exited with {res.exit_code}"

    return _check


def running_check(runtime: ComposeRuntime, service: str) -> Check:
    def _check() -> tuple[bool, str]:
        ok = runtime.is_running(service)
        return ok, "container running" if ok else "container not running"

    return _check


def http_check(url: str, timeout_s: float, expect_json_status: str | None = None) -> Check:
    def _check() -> tuple[bool, str]:
        ok, msg, _ = check_http(url, timeout_s=timeout_s, expect_json_status=expect_json_status)
        return ok, msg

    return _check


def tcp_check(host: str, port: int, timeout_s: float) -> Check:
    def _check() -> tuple[bool, str]:
        ok, msg, _ = check_tcp(host, port, timeout_s=timeout_s)
        return ok, msg

    return _check


class ServiceHealthProbe:
    """Per-service liveness checks. Fails closed."""

    def __init__(self, checks: Mapping[str, Check], fallback: Callable[[str], Check] | None = None):
        self.checks = dict(checks)
        self.fallback = fallback

    def run(self, name: str) -> tuple[bool, str]:
        check = self.checks.get(name)
        if check is None and self.fallback is not None:
            check = self.fallback(name)
        if check is None:
            return False, "no health check configured"
        try:
            return check()
        except ProbeError as e:
            return False, str(e)
        except Exception as e:
            return False, f"Error: {type(e).__name__}: {e}"

    def check_healthy(self, name: str) -> bool:
        ok, msg = self.run(name)
        if not ok:
            log_event("WARN", f"Health check failed: {msg}", service_name=name)
        return ok


def build_health_probe(cfg: Settings, runtime: ComposeRuntime, credentials: CredentialProvider) -> ServiceHealthProbe:
    checks: dict[str, Check] = {}

    def _db() -> tuple[bool, str]:
        # Resolve the secret per call so a rotated password is picked up.
        password = credentials.get(cfg.db_password_key)
        return mysql_check(runtime, cfg.database_service, cfg.db_user, password, cfg.probe_timeout_s)()

    checks[cfg.database_service] = _db
    checks[cfg.broker_service] = kafka_check(
        runtime, cfg.broker_service, cfg.kafka_topics_bin, cfg.broker_bootstrap, cfg.probe_timeout_s
    )
    return ServiceHealthProbe(checks, fallback=lambda name: running_check(runtime, name))


@dataclass
class SurveyReport:
    results: dict[str, tuple[bool, str]] = field(default_factory=dict)

    @property
    def passed(self) -> int:
        return sum(1 for ok, _ in self.results.values() if ok)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def rating(self) -> str:
        if self.total and self.passed == self.total:
            return "operational"
        if self.total and self.passed * 2 >= self.total:
            return "degraded"
        return "down"

    def to_dict(self) -> dict:
        return {
            "rating": self.rating,
            "passed": self.passed,
            "total": self.total,
            "checks": {k: {"ok": ok, "message": msg} for k, (ok, msg) in sorted(self.results.items())},
        }


def survey(checks: Mapping[str, Check]) -> SurveyReport:
    """Run every check once and collect the outcomes. Never raises."""
    report = SurveyReport()
    probe = ServiceHealthProbe(checks)
    for name in checks:
        report.results[name] = probe.run(name)
    return report


def survey_checks(cfg: Settings, required: list[str], health: ServiceHealthProbe) -> dict[str, Check]:
    checks: dict[str, Check] = {}
    for name in required:
        checks[f"service:{name}"] = lambda name=name: health.run(name)
    if cfg.ui_url:
        checks["http:broker-ui"] = http_check(cfg.ui_url, cfg.probe_timeout_s)
    if cfg.gateway_url:
        checks["http:gateway"] = http_check(cfg.gateway_url, cfg.probe_timeout_s, expect_json_status="UP")
    for port in cfg.survey_ports:
        try:
            p = int(port)
        except ValueError:
            continue
        checks[f"tcp:{cfg.survey_host}:{p}"] = tcp_check(cfg.survey_host, p, cfg.probe_timeout_s)
    return checks
