"""Replay a deployment ledger against a block explorer.

- Transient failures are retried with a fixed delay.

- "Already verified" counts as success.

- Contracts sharing bytecode with another contract are retried once with a
  fully qualified contract path, from hints or from the explorer's answer.

- Task starts are spaced by a minimum interval to stay under explorer
  rate limits, also when tasks run on several threads.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, Iterable, List, Optional

from .constants import (
    CONTRACT_PATH_HINTS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_DELAY,
    DEFAULT_TASK_DELAY,
    NON_CRITICAL_CONTRACTS,
    VERIFICATION_ORDER,
)
from .exceptions import VerificationAmbiguousError, VerificationTransientError
from .explorer import Explorer
from .ledger import DeploymentLedger
from .types import (
    ExplorerResult,
    ExplorerStatus,
    VerificationOutcome,
    VerificationReport,
    VerificationStatus,
    VerificationTask,
)

logger = logging.getLogger(__name__)


class MinimumIntervalGate:
    """Lets callers through no more often than once per ``interval`` seconds."""

    def __init__(
        self,
        interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.interval = interval
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._last: Optional[float] = None

    def wait(self) -> None:
        with self._lock:
            if self._last is not None and self.interval > 0:
                remaining = self._last + self.interval - self._clock()
                if remaining > 0:
                    logger.info("Waiting %.1f seconds to avoid rate limiting", remaining)
                    self._sleep(remaining)
            self._last = self._clock()


class VerificationEngine:
    """Verifies every contract of a ledger and reports the outcome."""

    def __init__(
        self,
        explorer: Explorer,
        *,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        task_delay: float = DEFAULT_TASK_DELAY,
        contract_path_hints: Optional[Dict[str, str]] = None,
        non_critical: Iterable[str] = NON_CRITICAL_CONTRACTS,
        order: Iterable[str] = VERIFICATION_ORDER,
        workers: int = 1,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            explorer: Verification service
            max_retries: Attempts per contract before a transient failure is final
            retry_delay: Seconds between attempts of one contract
            task_delay: Minimum seconds between two contracts
            contract_path_hints: Contract name -> fully qualified name
            non_critical: Contracts whose failure does not fail the run
            order: Contracts to verify first, in this order
            workers: Parallel tasks, 1 runs strictly sequentially
            sleep: Sleep function, replaced in tests
            clock: Monotonic clock, replaced in tests
        """
        if max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {max_retries}")
        if workers < 1:
            raise ValueError(f"workers must be at least 1, got {workers}")

        self.explorer = explorer
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.task_delay = task_delay
        self.contract_path_hints = dict(
            CONTRACT_PATH_HINTS if contract_path_hints is None else contract_path_hints
        )
        self.non_critical = frozenset(non_critical)
        self.order = list(order)
        self.workers = workers
        self._sleep = sleep
        self._clock = clock

    def build_tasks(self, ledger: DeploymentLedger) -> List[VerificationTask]:
        """Tasks for every ledger record, priority contracts first."""
        records = {r.name: r for r in ledger.all()}
        names = [n for n in self.order if n in records]
        names += [n for n in records if n not in names]

        return [
            VerificationTask(
                name=name,
                address=records[name].address,
                constructor_args=list(records[name].constructor_args),
                contract_path=self.contract_path_hints.get(name),
                contract_name=records[name].contract_name,
            )
            for name in names
        ]

    def verify_all(self, ledger: DeploymentLedger) -> VerificationReport:
        """
        Verify all contracts recorded in a ledger.

        Args:
            ledger: Ledger of the network to verify

        Returns:
            VerificationReport
        """
        tasks = self.build_tasks(ledger)
        report = VerificationReport(non_critical=self.non_critical)
        if not tasks:
            logger.info("No contracts found in ledger of %s", ledger.network)
            return report

        logger.info("Found %d contracts to verify on %s", len(tasks), ledger.network)
        gate = MinimumIntervalGate(self.task_delay, clock=self._clock, sleep=self._sleep)

        def run(task: VerificationTask) -> VerificationOutcome:
            gate.wait()
            return self.verify_task(task)

        if self.workers == 1:
            report.outcomes = [run(task) for task in tasks]
        else:
            with ThreadPoolExecutor(max_workers=self.workers) as pool:
                report.outcomes = list(pool.map(run, tasks))

        logger.info(
            "Verification summary: %d verified, %d already verified, %d failed of %d",
            len(report.verified),
            len(report.already_verified),
            len(report.failed),
            len(report.outcomes),
        )
        for outcome in report.non_critical_failures:
            logger.info(
                "%s is a minimal stub contract with shared bytecode, its failure is not fatal",
                outcome.name,
            )
        for outcome in report.critical_failures:
            logger.error("Critical contract %s at %s failed verification", outcome.name, outcome.address)
        return report

    def verify_task(self, task: VerificationTask) -> VerificationOutcome:
        """
        Verify one contract, retrying and disambiguating as needed.

        Args:
            task: Task to run, its attempt counter is updated

        Returns:
            VerificationOutcome
        """
        path = task.contract_path
        disambiguated = False
        transient_failures = 0

        while True:
            task.attempts += 1
            logger.info(
                "Verifying %s at %s (attempt %d/%d)%s",
                task.name,
                task.address,
                task.attempts,
                self.max_retries,
                f" using contract path {path}" if path else "",
            )
            result = self._submit(task, path)

            if result.status is ExplorerStatus.VERIFIED:
                logger.info("%s verified successfully", task.name)
                return self._outcome(task, VerificationStatus.VERIFIED, path, result.message)

            if result.status is ExplorerStatus.ALREADY_VERIFIED:
                logger.info("%s already verified, skipping", task.name)
                return self._outcome(task, VerificationStatus.ALREADY_VERIFIED, path, result.message)

            if result.status is ExplorerStatus.AMBIGUOUS:
                logger.warning("Multiple contracts with the same bytecode match %s", task.name)
                resolved = None if disambiguated else self._resolve_path(task, result, path)
                if resolved is None:
                    logger.warning("Could not disambiguate %s: %s", task.name, result.message)
                    return self._outcome(task, VerificationStatus.FAILED, path, result.message)
                path = resolved
                disambiguated = True
                continue

            transient_failures += 1
            if transient_failures >= self.max_retries:
                logger.warning(
                    "Verification failed for %s after %d attempts: %s",
                    task.name,
                    task.attempts,
                    result.message,
                )
                return self._outcome(task, VerificationStatus.FAILED, path, result.message)

            logger.warning(
                "Attempt %d for %s failed: %s. Retrying in %s seconds",
                task.attempts,
                task.name,
                result.message,
                self.retry_delay,
            )
            self._sleep(self.retry_delay)

    def _submit(self, task: VerificationTask, path: Optional[str]) -> ExplorerResult:
        try:
            return self.explorer.verify(
                task.address,
                task.constructor_args,
                contract_path=path,
                contract_name=task.contract_name,
            )
        except VerificationAmbiguousError as e:
            return ExplorerResult(ExplorerStatus.AMBIGUOUS, str(e), list(e.candidates))
        except VerificationTransientError as e:
            return ExplorerResult(ExplorerStatus.TRANSIENT, str(e))
        except Exception as e:
            # Explorer outages, HTTP errors and timeouts all get retried
            return ExplorerResult(ExplorerStatus.TRANSIENT, f"{type(e).__name__}: {e}")

    def _resolve_path(
        self, task: VerificationTask, result: ExplorerResult, current: Optional[str]
    ) -> Optional[str]:
        hint = self.contract_path_hints.get(task.name)
        if hint and hint != current:
            return hint

        suffix = f":{task.contract_name or task.name}"
        for candidate in result.candidates:
            if candidate.endswith(suffix) and candidate != current:
                return candidate
        return None

    @staticmethod
    def _outcome(
        task: VerificationTask,
        status: VerificationStatus,
        path: Optional[str],
        message: str,
    ) -> VerificationOutcome:
        return VerificationOutcome(
            name=task.name,
            address=task.address,
            status=status,
            attempts=task.attempts,
            contract_path=path,
            message=message,
        )
