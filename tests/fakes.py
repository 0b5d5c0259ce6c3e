"""In-memory collaborators for reconciler tests."""
from irr.docker_ops import DriverError, ProbeError


class FakeRuntime:
    def __init__(self, running=(), error=None):
        self.running = set(running)
        self.error = error
        self.calls = 0

    def list_running(self):
        self.calls += 1
        if self.error:
            raise ProbeError(self.error)
        return set(self.running)


class FakeHealth:
    def __init__(self, healthy=None):
        self.healthy = dict(healthy or {})
        self.calls = []

    def check_healthy(self, name):
        self.calls.append(name)
        return self.healthy.get(name, False)

    def run(self, name):
        ok = self.healthy.get(name, False)
        return ok, "ok" if ok else "down"


class FakeDriver:
    """Records calls; on `up` optionally starts services in a FakeRuntime."""

    def __init__(self, runtime=None, health=None, healthy_after_up=None, up_error=None, down_error=None):
        self.runtime = runtime
        self.health = health
        self.healthy_after_up = healthy_after_up
        self.up_error = up_error
        self.down_error = down_error
        self.calls = []

    def up(self, services):
        self.calls.append(("up", sorted(services)))
        if self.up_error:
            raise DriverError(self.up_error, stderr="boom")
        if self.runtime is not None:
            self.runtime.error = None
            self.runtime.running |= set(services)
        if self.health is not None and self.healthy_after_up is not None:
            self.health.healthy.update(self.healthy_after_up)

    def down(self, remove_network=False):
        self.calls.append(("down", remove_network))
        if self.down_error:
            raise DriverError(self.down_error)
        if self.runtime is not None:
            self.runtime.running.clear()


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds
