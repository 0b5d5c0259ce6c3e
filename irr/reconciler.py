from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Iterable, Protocol

from . import db
from .alerts import notify_failure
from .credentials import CredentialProvider
from .docker_ops import ComposeDriver, ComposeRuntime, DriverError, ProbeError, validate_service_name
from .health import ServiceHealthProbe, build_health_probe
from .polling import poll_until
from .settings import Settings, settings
from .status import (
    Error,
    Healthy,
    InfrastructureStatus,
    NotRunning,
    Partial,
    RunningButUnhealthy,
    classify,
    describe,
)


class RuntimeProbe(Protocol):
    def list_running(self) -> set[str]: ...


class HealthProbe(Protocol):
    def check_healthy(self, name: str) -> bool: ...


class DeploymentDriver(Protocol):
    def up(self, services: Iterable[str]) -> None: ...

    def down(self, remove_network: bool = False) -> None: ...


class DeployError(Exception):
    """Infrastructure did not reach a healthy state after deploy."""

    def __init__(self, message: str, status: InfrastructureStatus | None = None):
        super().__init__(message)
        self.status = status


class DeployTimeout(DeployError):
    def __init__(self, stage: str, timeout_s: float, status: InfrastructureStatus):
        super().__init__(f"Stage '{stage}' not healthy within {timeout_s:g}s: {describe(status)}", status)
        self.stage = stage
        self.timeout_s = timeout_s


@dataclass(frozen=True)
class ReadinessStage:
    name: str
    services: frozenset[str]
    timeout_s: float
    interval_s: float


@dataclass(frozen=True)
class ReconcileOutcome:
    initial: InfrastructureStatus
    final: InfrastructureStatus
    deployed: bool


def should_deploy(status: InfrastructureStatus, force: bool = False) -> bool:
    """Only a healthy infrastructure without a forced redeploy is left alone."""
    if force:
        return True
    if isinstance(status, (NotRunning, Error, Partial, RunningButUnhealthy)):
        return True
    if isinstance(status, Healthy):
        return False
    raise TypeError(f"Unknown infrastructure status: {status!r}")


class Reconciler:
    """Observes the backing services and drives them to a healthy state.

    Holds no state between calls; every decision is made on a fresh
    observation. Not safe for concurrent deploy/destroy calls.
    """

    def __init__(
        self,
        runtime: RuntimeProbe,
        health: HealthProbe,
        driver: DeploymentDriver,
        required: Iterable[str],
        stages: Iterable[ReadinessStage] = (),
        default_timeout_s: float = 120,
        default_interval_s: float = 5,
        settle_s: float = 0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.runtime = runtime
        self.health = health
        self.driver = driver
        self.required = frozenset(required)
        if not self.required:
            raise ValueError("required set must not be empty")
        # Checked before anything is torn down.
        for name in self.required:
            validate_service_name(name)
        self.stages = list(stages)
        self.default_timeout_s = default_timeout_s
        self.default_interval_s = default_interval_s
        self.settle_s = settle_s
        self._sleep = sleep
        self._clock = clock

    def compute_status(self, required: Iterable[str] | None = None) -> InfrastructureStatus:
        req = self.required if required is None else frozenset(required)
        if not req:
            raise ValueError("required set must not be empty")
        try:
            running = set(self.runtime.list_running())
        except ProbeError as e:
            return Error(reason=str(e))

        if not (req & running) or (req - running):
            return classify(req, running)
        health = {name: self.health.check_healthy(name) for name in sorted(req)}
        return classify(req, running, health)

    def stages_for(self, required: frozenset[str]) -> list[ReadinessStage]:
        out: list[ReadinessStage] = []
        covered: set[str] = set()
        for st in self.stages:
            services = st.services & required
            if not services:
                continue
            out.append(ReadinessStage(st.name, services, st.timeout_s, st.interval_s))
            covered |= services
        rest = required - covered
        if rest:
            out.append(ReadinessStage("services", frozenset(rest), self.default_timeout_s, self.default_interval_s))
        return out

    def deploy(self, required: Iterable[str] | None = None) -> InfrastructureStatus:
        """Tear down (if anything is up), bring `required` up and wait for health.

        Raises DriverError if `up` fails, DeployTimeout if a stage runs out of
        time, DeployError if the final verification is not healthy. On failure
        the containers are left as they are for inspection.
        """
        req = self.required if required is None else frozenset(required)
        for name in req:
            validate_service_name(name)

        current = self.compute_status(req)
        if not isinstance(current, NotRunning):
            try:
                self.driver.down()
                db.log_event("INFO", f"Tore down existing deployment ({describe(current)})")
            except DriverError as e:
                # Nothing to tear down is not an error.
                db.log_event("WARN", f"Teardown before redeploy failed, continuing: {e}")

        try:
            self.driver.up(req)
        except DriverError as e:
            db.log_event("ERROR", f"Deploy failed: {e}")
            notify_failure("deploy", current, f"{e}\n{e.stderr}")
            raise

        for stage in self.stages_for(req):
            seen: list[str] = []

            def _log_change(attempt: int, st: InfrastructureStatus, stage: ReadinessStage = stage) -> None:
                text = describe(st)
                if not seen or seen[-1] != text:
                    seen.append(text)
                    db.log_event("INFO", f"Stage '{stage.name}' check {attempt}: {text}")

            result = poll_until(
                lambda: self.compute_status(stage.services),
                lambda st: isinstance(st, Healthy),
                timeout_s=stage.timeout_s,
                interval_s=stage.interval_s,
                sleep=self._sleep,
                clock=self._clock,
                on_attempt=_log_change,
            )
            if not result.satisfied:
                err = DeployTimeout(stage.name, stage.timeout_s, result.value)
                db.log_event("ERROR", str(err))
                notify_failure("deploy", result.value, str(err))
                raise err
            db.log_event(
                "INFO",
                f"Stage '{stage.name}' healthy after {result.attempts} check(s)",
                service_name=",".join(sorted(stage.services)),
            )

        if self.settle_s > 0:
            self._sleep(self.settle_s)

        final = self.compute_status(req)
        if not isinstance(final, Healthy):
            msg = f"Post-deploy verification failed: {describe(final)}"
            db.log_event("ERROR", msg)
            notify_failure("deploy", final, msg)
            raise DeployError(msg, final)
        db.log_event("INFO", "Deploy completed, infrastructure healthy")
        return final

    def destroy(self, remove_network: bool = False) -> None:
        try:
            self.driver.down(remove_network=remove_network)
        except DriverError as e:
            db.log_event("ERROR", f"Destroy failed: {e}")
            notify_failure("destroy", None, f"{e}\n{e.stderr}")
            raise
        db.log_event("INFO", "Infrastructure destroyed")

    def reconcile(self, force: bool = False) -> ReconcileOutcome:
        initial = self.compute_status()
        db.log_event("INFO", describe(initial))
        if not should_deploy(initial, force):
            db.log_event("INFO", "Infrastructure healthy, skipping deploy")
            return ReconcileOutcome(initial=initial, final=initial, deployed=False)
        final = self.deploy()
        return ReconcileOutcome(initial=initial, final=final, deployed=True)


def default_stages(cfg: Settings) -> list[ReadinessStage]:
    return [
        ReadinessStage("database", frozenset({cfg.database_service}), cfg.db_timeout_s, cfg.db_interval_s),
        ReadinessStage("broker", frozenset({cfg.broker_service}), cfg.broker_timeout_s, cfg.broker_interval_s),
    ]


def build_reconciler(cfg: Settings = settings) -> Reconciler:
    runtime = ComposeRuntime(cfg.compose_project)
    credentials = CredentialProvider(cfg.env_file)
    driver = ComposeDriver(
        cfg.compose_file,
        cfg.compose_project,
        env_file=cfg.env_file,
        network=cfg.network,
    )
    return Reconciler(
        runtime=runtime,
        health=build_health_probe(cfg, runtime, credentials),
        driver=driver,
        required=cfg.required_services,
        stages=default_stages(cfg),
        default_timeout_s=cfg.default_timeout_s,
        default_interval_s=cfg.default_interval_s,
        settle_s=cfg.settle_s,
    )
