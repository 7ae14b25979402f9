import pytest

from conftest import FakeClock, FakePinger
from hostnet.oracle.probe import ReachabilityOracle


def _oracle(pinger, clock: FakeClock, settle: float = 0.0) -> ReachabilityOracle:
    return ReachabilityOracle(pinger, settle_delay=settle, sleep=clock.sleep, clock=clock)


def test_all_failing_probe_takes_full_budget(clock) -> None:
    pinger = FakePinger(False, clock, cost=0.5)
    verdict = _oracle(pinger, clock).probe("10.1.41.1", attempts=3, timeout=2.0)
    assert not verdict.reachable
    assert verdict.attempts == 3
    assert verdict.error == "100% packet loss"
    assert clock.now >= 6.0
    assert len(pinger.calls) == 3


def test_settle_delay_precedes_first_probe(clock) -> None:
    pinger = FakePinger(True, clock)
    verdict = _oracle(pinger, clock, settle=20.0).probe("10.1.41.1")
    assert verdict.reachable
    assert clock.sleeps == [20.0]


def test_first_success_stops_probing(clock) -> None:
    pinger = FakePinger([False, True, True], clock, cost=0.25)
    verdict = _oracle(pinger, clock).probe("10.1.41.1", attempts=3, timeout=2.0)
    assert verdict.reachable
    assert verdict.attempts == 2
    assert verdict.latency == pytest.approx(0.25)
    assert len(pinger.calls) == 2


def test_slow_failure_is_not_padded(clock) -> None:
    pinger = FakePinger(False, clock, cost=2.5)
    _oracle(pinger, clock).probe("10.1.41.1", attempts=2, timeout=2.0)
    assert clock.sleeps == []


@pytest.mark.parametrize("attempts, timeout", [(0, 2.0), (3, 0.0), (3, -1.0)])
def test_invalid_probe_arguments(clock, attempts, timeout) -> None:
    with pytest.raises(ValueError):
        _oracle(FakePinger(True), clock).probe("10.1.41.1", attempts=attempts, timeout=timeout)
