import pytest

from irr.status import (
    Error,
    Healthy,
    NotRunning,
    Partial,
    RunningButUnhealthy,
    classify,
    describe,
    format_status,
    status_label,
    status_to_dict,
)

R = {"db", "broker"}


@pytest.mark.parametrize("running", [set(), {"ui"}, {"other", "ui"}])
def test_disjoint_running_set_is_not_running(running):
    assert classify(R, running) == NotRunning()


@pytest.mark.parametrize(
    "running,missing",
    [
        ({"db"}, {"broker"}),
        ({"broker", "ui"}, {"db"}),
    ],
)
def test_partial_reports_exact_missing(running, missing):
    st = classify(R, running)
    assert st == Partial(missing=frozenset(missing))
    assert st.missing == frozenset(R - running)


def test_healthy_only_when_all_running_and_passing():
    assert classify(R, R | {"ui"}, {"db": True, "broker": True}) == Healthy()
    assert classify(R, R, {"db": True, "broker": False}) == RunningButUnhealthy(frozenset({"broker"}))


def test_missing_health_result_counts_as_unhealthy():
    assert classify(R, R, {"db": True}) == RunningButUnhealthy(frozenset({"broker"}))


def test_health_ignored_until_everything_runs():
    # A healthy db does not turn a partial deployment into anything else.
    assert classify(R, {"db"}, {"db": True, "broker": True}) == Partial(frozenset({"broker"}))


def test_empty_required_set_rejected():
    with pytest.raises(ValueError):
        classify(set(), {"db"})


def test_status_values_compare_by_value():
    assert Partial(frozenset({"a", "b"})) == Partial(frozenset({"b", "a"}))
    assert NotRunning() != Healthy()


def test_status_to_dict():
    assert status_to_dict(Partial(frozenset({"b", "a"}))) == {
        "state": "partial",
        "missing": ["a", "b"],
        "unhealthy": [],
        "reason": None,
    }
    assert status_to_dict(Error("daemon down"))["reason"] == "daemon down"


def test_unknown_status_rejected():
    with pytest.raises(TypeError):
        status_label("partial:missing-a,b")
    with pytest.raises(TypeError):
        describe(object())


def test_format_status_marks_each_service():
    text = format_status(RunningButUnhealthy(frozenset({"broker"})), R)
    assert "running_but_unhealthy" in text
    assert "- broker: unhealthy" in text
    assert "- db: healthy" in text

    text = format_status(Partial(frozenset({"db"})), R)
    assert "- db: down" in text
    assert "- broker: running" in text

    text = format_status(Error("x"), R)
    assert "- db: unknown" in text
