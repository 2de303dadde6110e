"""Unit tests for the verification engine."""

from typing import List

import pytest

from conftest import FakeExplorer
from symmetric_deployments.exceptions import VerificationTransientError
from symmetric_deployments.ledger import DeploymentLedger
from symmetric_deployments.types import (
    DeploymentRecord,
    ExplorerResult,
    ExplorerStatus,
    VerificationStatus,
    VerificationTask,
)
from symmetric_deployments.verification import MinimumIntervalGate, VerificationEngine

LB_CANDIDATES = [
    "contracts/core/stubs/Stub.sol:Stub",
    "contracts/core/additional/factories/LBPoolFactory.sol:LBPoolFactory",
]


class FakeClock:
    """Monotonic clock that only moves when something sleeps."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def address(i: int) -> str:
    return "0x" + f"{i:040x}"


def make_engine(explorer, clock: FakeClock, **kwargs) -> VerificationEngine:
    kwargs.setdefault("task_delay", 0)
    kwargs.setdefault("retry_delay", 5.0)
    return VerificationEngine(explorer, sleep=clock.sleep, clock=clock, **kwargs)


def result(status: ExplorerStatus, message: str = "", candidates=None) -> ExplorerResult:
    return ExplorerResult(status=status, message=message, candidates=candidates or [])


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


class TestVerifyTask:
    """Test the retry and disambiguation loop of a single contract."""

    def test_verified_first_try(self, clock: FakeClock):
        explorer = FakeExplorer()
        outcome = make_engine(explorer, clock).verify_task(VerificationTask("Vault", address(1)))

        assert outcome.status is VerificationStatus.VERIFIED
        assert outcome.attempts == 1
        assert clock.sleeps == []

    def test_already_verified_is_success(self, clock: FakeClock):
        explorer = FakeExplorer(lambda **kw: result(ExplorerStatus.ALREADY_VERIFIED, "Already Verified"))

        outcome = make_engine(explorer, clock).verify_task(VerificationTask("Vault", address(1)))

        assert outcome.status is VerificationStatus.ALREADY_VERIFIED
        assert outcome.succeeded
        assert len(explorer.calls) == 1

    def test_transient_failure_gives_exactly_max_retries_calls(self, clock: FakeClock):
        explorer = FakeExplorer(lambda **kw: result(ExplorerStatus.TRANSIENT, "rate limited"))

        outcome = make_engine(explorer, clock, max_retries=3).verify_task(VerificationTask("Vault", address(1)))

        assert outcome.status is VerificationStatus.FAILED
        assert outcome.attempts == 3
        assert outcome.message == "rate limited"
        assert len(explorer.calls) == 3
        assert clock.sleeps == [5.0, 5.0]

    def test_transient_then_verified(self, clock: FakeClock):
        answers = iter([result(ExplorerStatus.TRANSIENT), result(ExplorerStatus.VERIFIED)])
        explorer = FakeExplorer(lambda **kw: next(answers))

        outcome = make_engine(explorer, clock).verify_task(VerificationTask("Vault", address(1)))

        assert outcome.status is VerificationStatus.VERIFIED
        assert outcome.attempts == 2

    def test_explorer_exceptions_are_transient(self, clock: FakeClock):
        def responder(**kw):
            raise ConnectionError("explorer down")

        explorer = FakeExplorer(responder)

        outcome = make_engine(explorer, clock, max_retries=2).verify_task(VerificationTask("Vault", address(1)))

        assert outcome.status is VerificationStatus.FAILED
        assert "explorer down" in outcome.message
        assert len(explorer.calls) == 2

    def test_transient_error_type_is_transient(self, clock: FakeClock):
        def responder(**kw):
            raise VerificationTransientError("Unable to locate ContractCode")

        explorer = FakeExplorer(responder)
        outcome = make_engine(explorer, clock, max_retries=1).verify_task(VerificationTask("Vault", address(1)))

        assert outcome.status is VerificationStatus.FAILED
        assert outcome.message == "Unable to locate ContractCode"

    def test_ambiguous_retried_with_hint(self, clock: FakeClock):
        hint = "contracts/core/additional/factories/LBPoolFactory.sol:LBPoolFactory"

        def responder(contract_path=None, **kw):
            if contract_path is None:
                return result(ExplorerStatus.AMBIGUOUS, "More than one contract was found")
            return result(ExplorerStatus.VERIFIED)

        explorer = FakeExplorer(responder)
        engine = make_engine(explorer, clock, contract_path_hints={"LBPoolFactory": hint})

        outcome = engine.verify_task(VerificationTask("LBPoolFactory", address(1), contract_name="LBPoolFactory"))

        assert outcome.status is VerificationStatus.VERIFIED
        assert outcome.contract_path == hint
        assert [c["contract_path"] for c in explorer.calls] == [None, hint]
        assert clock.sleeps == []

    def test_ambiguous_retried_with_matching_candidate(self, clock: FakeClock):
        def responder(contract_path=None, **kw):
            if contract_path is None:
                return result(ExplorerStatus.AMBIGUOUS, "multiple", LB_CANDIDATES)
            return result(ExplorerStatus.VERIFIED)

        explorer = FakeExplorer(responder)
        engine = make_engine(explorer, clock, contract_path_hints={})

        outcome = engine.verify_task(VerificationTask("LBPoolFactory", address(1), contract_name="LBPoolFactory"))

        assert outcome.status is VerificationStatus.VERIFIED
        assert explorer.calls[1]["contract_path"] == LB_CANDIDATES[1]

    def test_ambiguous_retry_happens_once(self, clock: FakeClock):
        explorer = FakeExplorer(lambda **kw: result(ExplorerStatus.AMBIGUOUS, "multiple", LB_CANDIDATES))
        engine = make_engine(explorer, clock, contract_path_hints={})

        outcome = engine.verify_task(VerificationTask("LBPoolFactory", address(1), contract_name="LBPoolFactory"))

        assert outcome.status is VerificationStatus.FAILED
        assert len(explorer.calls) == 2

    def test_ambiguous_without_any_path_fails(self, clock: FakeClock):
        explorer = FakeExplorer(lambda **kw: result(ExplorerStatus.AMBIGUOUS, "multiple"))
        engine = make_engine(explorer, clock, contract_path_hints={})

        outcome = engine.verify_task(VerificationTask("Vault", address(1)))

        assert outcome.status is VerificationStatus.FAILED
        assert len(explorer.calls) == 1

    def test_ambiguous_retry_does_not_use_retry_budget(self, clock: FakeClock):
        def responder(contract_path=None, **kw):
            if contract_path is None:
                return result(ExplorerStatus.AMBIGUOUS, "multiple", LB_CANDIDATES)
            return result(ExplorerStatus.TRANSIENT, "rate limited")

        explorer = FakeExplorer(responder)
        engine = make_engine(explorer, clock, max_retries=3, contract_path_hints={})

        outcome = engine.verify_task(VerificationTask("LBPoolFactory", address(1), contract_name="LBPoolFactory"))

        assert outcome.status is VerificationStatus.FAILED
        assert len(explorer.calls) == 1 + 3

    def test_rejects_invalid_settings(self):
        with pytest.raises(ValueError):
            VerificationEngine(FakeExplorer(), max_retries=0)
        with pytest.raises(ValueError):
            VerificationEngine(FakeExplorer(), workers=0)


class TestVerifyAll:
    """Test verifying a whole ledger."""

    def test_empty_ledger_gives_empty_report(self, ledger: DeploymentLedger, clock: FakeClock):
        explorer = FakeExplorer()
        report = make_engine(explorer, clock).verify_all(ledger)

        assert report.outcomes == []
        assert report.succeeded
        assert explorer.calls == []

    def test_priority_order_then_ledger_order(self, ledger: DeploymentLedger, clock: FakeClock):
        for i, name in enumerate(["Router", "CustomHook", "Vault"]):
            ledger.append(DeploymentRecord(name=name, address=address(i)))

        explorer = FakeExplorer()
        report = make_engine(explorer, clock).verify_all(ledger)

        assert [o.name for o in report.outcomes] == ["Vault", "Router", "CustomHook"]
        assert report.success_count == 3

    def test_task_uses_ledger_args_and_artifact_name(self, ledger: DeploymentLedger, clock: FakeClock):
        ledger.append(
            DeploymentRecord(
                name="StablePoolV2Factory",
                address=address(1),
                constructor_args=[address(2), 2592000, "Factory v2"],
                contract="StablePoolFactory",
            )
        )

        explorer = FakeExplorer()
        make_engine(explorer, clock).verify_all(ledger)

        assert explorer.calls == [
            {
                "address": address(1),
                "constructor_args": [address(2), 2592000, "Factory v2"],
                "contract_path": None,
                "contract_name": "StablePoolFactory",
            }
        ]

    def test_hinted_contracts_start_with_their_path(self, ledger: DeploymentLedger, clock: FakeClock):
        ledger.append(DeploymentRecord(name="ReClammPoolFactory", address=address(1)))

        explorer = FakeExplorer()
        make_engine(explorer, clock).verify_all(ledger)

        assert explorer.calls[0]["contract_path"] == (
            "contracts/core/additional/factories/ReClammPoolFactory.sol:ReClammPoolFactory"
        )

    def test_non_critical_failures_do_not_fail_the_run(self, ledger: DeploymentLedger, clock: FakeClock):
        ledger.append(DeploymentRecord(name="Vault", address=address(1)))
        ledger.append(DeploymentRecord(name="LBPoolFactory", address=address(2)))

        lb_address = address(2)

        def responder(**kw):
            if kw["address"] == lb_address:
                return result(ExplorerStatus.TRANSIENT, "Fail - Unable to verify")
            return result(ExplorerStatus.VERIFIED)

        report = make_engine(FakeExplorer(responder), clock, max_retries=1).verify_all(ledger)

        assert report.succeeded
        assert [o.name for o in report.non_critical_failures] == ["LBPoolFactory"]
        assert report.critical_failures == []
        assert report.success_count == 1

    def test_critical_failure_fails_the_run(self, ledger: DeploymentLedger, clock: FakeClock):
        ledger.append(DeploymentRecord(name="Vault", address=address(1)))
        ledger.append(DeploymentRecord(name="Router", address=address(2)))

        explorer = FakeExplorer(lambda **kw: result(ExplorerStatus.TRANSIENT, "Fail - Unable to verify"))
        report = make_engine(explorer, clock, max_retries=1).verify_all(ledger)

        assert not report.succeeded
        assert [o.name for o in report.critical_failures] == ["Vault", "Router"]

    def test_task_starts_are_spaced(self, ledger: DeploymentLedger, clock: FakeClock):
        for i, name in enumerate(["Vault", "Router", "BatchRouter"]):
            ledger.append(DeploymentRecord(name=name, address=address(i)))

        make_engine(FakeExplorer(), clock, task_delay=3.0).verify_all(ledger)

        assert clock.sleeps == [3.0, 3.0]

    def test_parallel_workers_keep_task_order(self, ledger: DeploymentLedger, clock: FakeClock):
        names = ["Vault", "Router", "BatchRouter", "WeightedPoolFactory"]
        for i, name in enumerate(names):
            ledger.append(DeploymentRecord(name=name, address=address(i)))

        explorer = FakeExplorer()
        report = make_engine(explorer, clock, workers=3).verify_all(ledger)

        assert [o.name for o in report.outcomes] == names
        assert len(explorer.calls) == 4
        assert report.succeeded


class TestMinimumIntervalGate:
    """Test the MinimumIntervalGate class."""

    def test_first_caller_passes_immediately(self, clock: FakeClock):
        MinimumIntervalGate(3.0, clock=clock, sleep=clock.sleep).wait()
        assert clock.sleeps == []

    def test_waits_remaining_interval(self, clock: FakeClock):
        gate = MinimumIntervalGate(3.0, clock=clock, sleep=clock.sleep)

        gate.wait()
        clock.now += 1.0
        gate.wait()

        assert clock.sleeps == [2.0]

    def test_no_wait_after_interval_elapsed(self, clock: FakeClock):
        gate = MinimumIntervalGate(3.0, clock=clock, sleep=clock.sleep)

        gate.wait()
        clock.now += 10.0
        gate.wait()

        assert clock.sleeps == []
