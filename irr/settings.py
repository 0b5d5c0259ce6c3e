from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: str) -> tuple[str, ...]:
    raw = os.getenv(name, default)
    return tuple(x.strip() for x in raw.split(",") if x.strip())


@dataclass(frozen=True)
class Settings:
    # Compose project
    compose_file: str = os.getenv("IRR_COMPOSE_FILE", "docker-compose.yml")
    compose_project: str = os.getenv("IRR_COMPOSE_PROJECT", "infra")
    env_file: str = os.getenv("IRR_ENV_FILE", ".env")
    env_example: str = os.getenv("IRR_ENV_EXAMPLE", ".env.example")
    network: str = os.getenv("IRR_NETWORK", "app-network")

    # Required set and probe kinds
    required_services: tuple[str, ...] = _env_list("IRR_REQUIRED_SERVICES", "mysql,kafka")
    database_service: str = os.getenv("IRR_DATABASE_SERVICE", "mysql")
    broker_service: str = os.getenv("IRR_BROKER_SERVICE", "kafka")

    # Readiness budgets. The broker needs a much longer warm-up than the database.
    db_timeout_s: float = _env_float("IRR_DB_TIMEOUT_S", 120)
    db_interval_s: float = _env_float("IRR_DB_INTERVAL_S", 5)
    broker_timeout_s: float = _env_float("IRR_BROKER_TIMEOUT_S", 240)
    broker_interval_s: float = _env_float("IRR_BROKER_INTERVAL_S", 15)
    default_timeout_s: float = _env_float("IRR_DEFAULT_TIMEOUT_S", 120)
    default_interval_s: float = _env_float("IRR_DEFAULT_INTERVAL_S", 5)
    settle_s: float = _env_float("IRR_SETTLE_S", 10)
    probe_timeout_s: float = _env_float("IRR_PROBE_TIMEOUT_S", 5)

    # Probe details
    db_user: str = os.getenv("IRR_DB_USER", "root")
    db_password_key: str = os.getenv("IRR_DB_PASSWORD_KEY", "MYSQL_ROOT_PASSWORD")
    broker_bootstrap: str = os.getenv("IRR_BROKER_BOOTSTRAP", "localhost:9092")
    kafka_topics_bin: str = os.getenv("IRR_KAFKA_TOPICS_BIN", "/opt/kafka/bin/kafka-topics.sh")

    # Survey-only checks (not part of the required set)
    ui_url: str = os.getenv("IRR_UI_URL", "http://localhost:8082")
    gateway_url: str = os.getenv("IRR_GATEWAY_URL", "")
    survey_host: str = os.getenv("IRR_SURVEY_HOST", "localhost")
    survey_ports: tuple[str, ...] = _env_list("IRR_PORTS", "3306,9092,8082")

    # Event log
    db_path: str = os.getenv("IRR_DB_PATH", "irr.db")

    # HTTP API
    api_user: str = os.getenv("IRR_API_USER", "admin")
    api_password: str | None = os.getenv("IRR_API_PASSWORD")

    # Email alerting (optional)
    enable_email: bool = _env_bool("IRR_ENABLE_EMAIL", False)
    smtp_host: str = os.getenv("IRR_SMTP_HOST", "smtp.gmail.com")
    smtp_port: int = _env_int("IRR_SMTP_PORT", 587)
    smtp_user: str | None = os.getenv("IRR_SMTP_USER")
    smtp_password: str | None = os.getenv("IRR_SMTP_PASSWORD")
    email_from: str | None = os.getenv("IRR_EMAIL_FROM")
    email_to: str | None = os.getenv("IRR_EMAIL_TO")


settings = Settings()
