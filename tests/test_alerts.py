import dataclasses

from irr import alerts
from irr.status import RunningButUnhealthy


class _SMTP:
    sent = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        pass

    def login(self, user, password):
        pass

    def sendmail(self, sender, to, msg):
        _SMTP.sent.append((sender, to, msg))


def _enable(monkeypatch):
    cfg = dataclasses.replace(
        alerts.settings,
        enable_email=True,
        smtp_user="u",
        smtp_password="p",
        email_from="irr@example.com",
        email_to="ops@example.com",
    )
    monkeypatch.setattr(alerts, "settings", cfg)


def test_disabled_by_default():
    assert alerts.send_email("s", "b") is False


def test_incomplete_smtp_settings(monkeypatch):
    monkeypatch.setattr(alerts, "settings", dataclasses.replace(alerts.settings, enable_email=True, smtp_user=None))
    assert alerts.send_email("s", "b") is False


def test_notify_failure_sends_status(monkeypatch):
    _enable(monkeypatch)
    _SMTP.sent = []
    monkeypatch.setattr(alerts.smtplib, "SMTP", _SMTP)

    assert alerts.notify_failure("deploy", RunningButUnhealthy(frozenset({"kafka"})), "timed out") is True

    sender, to, msg = _SMTP.sent[0]
    assert to == ["ops@example.com"]
    assert "deploy failed (running_but_unhealthy)" in msg
    assert "kafka" in msg


def test_smtp_failure_returns_false(monkeypatch):
    _enable(monkeypatch)

    def refuse(*args, **kwargs):
        raise ConnectionRefusedError("nope")

    monkeypatch.setattr(alerts.smtplib, "SMTP", refuse)
    assert alerts.notify_failure("destroy", None, "x") is False
