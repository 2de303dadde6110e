"""Phased, resumable deployment pipeline.

Runs an ordered list of :py:class:`PipelinePhase`, deploying each step through
a contract factory and recording every success in the ledger right away.

- Steps already in the ledger are skipped, so a crashed run can simply be
  started again.

- Circular constructor dependencies are broken with CREATE address
  prediction. The nonce offset of a future contract is its position in the
  list of steps this run will actually deploy, never a hand-written constant.

- A failing step aborts the run in a required phase and is recorded and
  skipped in an optional one.

Example:

.. code-block:: python

    predictor = AddressPredictor.from_web3(web3, account.address)
    pipeline = DeploymentPipeline(factory, ledger, predictor, config=config)
    result = pipeline.run(build_phases())
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from eth_utils import to_checksum_address

from .config import NetworkConfig
from .exceptions import (
    AddressMismatchError,
    ContractNotFoundError,
    DeploymentError,
    NetworkIdentityMismatchError,
    RequiredStepFailedError,
)
from .factory import ContractFactory
from .ledger import DeploymentLedger
from .predictor import AddressPredictor
from .types import (
    AddressMismatch,
    DeploymentRecord,
    DeployStep,
    PipelinePhase,
    PipelineResult,
    PredictedAddress,
    StepOutcome,
    StepStatus,
)

logger = logging.getLogger(__name__)


class MismatchPolicy(Enum):
    """What to do when a deployed address differs from its prediction."""

    WARN = "warn"
    ABORT = "abort"


@dataclass
class _RunState:
    plan: List[str]
    addresses: Dict[str, str] = field(default_factory=dict)
    predictions: Dict[str, PredictedAddress] = field(default_factory=dict)


class StepContext:
    """What a step's args builder can see: earlier results and future addresses."""

    def __init__(
        self,
        pipeline: "DeploymentPipeline",
        state: _RunState,
        phase: PipelinePhase,
        step: DeployStep,
    ):
        self._pipeline = pipeline
        self._state = state
        self.phase = phase
        self.step = step

    @property
    def deployer(self) -> str:
        return self._pipeline.factory.deployer

    @property
    def config(self) -> Optional[NetworkConfig]:
        return self._pipeline.config

    @property
    def ledger(self) -> DeploymentLedger:
        return self._pipeline.ledger

    def address(self, name: str) -> str:
        """
        Address of a contract.

        Real addresses (deployed in this run or found in the ledger) win.
        A contract this run has yet to deploy resolves to its predicted address.

        Raises:
            ContractNotFoundError: If the contract is neither deployed nor scheduled
        """
        if name in self._state.addresses:
            return self._state.addresses[name]

        record = self._pipeline.ledger.get(name)
        if record is not None and name not in self._state.plan:
            return record.address

        return self.predict(name)

    def predict(self, name: str) -> str:
        """
        Predicted address of a contract scheduled later in this run.

        Raises:
            ContractNotFoundError: If the contract is not scheduled in this run
            DeploymentError: If the pipeline has no address predictor
        """
        if name not in self._state.plan:
            raise ContractNotFoundError(
                f"{self.step.name} needs {name}, which is neither deployed nor scheduled"
            )

        predictor = self._pipeline.predictor
        if predictor is None:
            raise DeploymentError(
                f"{self.step.name} needs the future address of {name}, "
                "but no address predictor is configured"
            )

        prediction = self._state.predictions.get(name)
        if prediction is None:
            prediction = predictor.predict(self._state.plan.index(name))
            self._state.predictions[name] = prediction
            logger.info(
                "Calculated future %s address: %s (nonce %d, offset %d)",
                name,
                prediction.computed_address,
                prediction.nonce,
                prediction.nonce_offset,
            )
        return prediction.computed_address


class DeploymentPipeline:
    """Deploys phases of contracts against one ledger with one deployer."""

    def __init__(
        self,
        factory: ContractFactory,
        ledger: DeploymentLedger,
        predictor: Optional[AddressPredictor] = None,
        *,
        force: Iterable[str] = (),
        mismatch_policy: MismatchPolicy = MismatchPolicy.WARN,
        expected_chain_id: Optional[int] = None,
        config: Optional[NetworkConfig] = None,
    ):
        """
        Args:
            factory: Deploys one named contract and returns its address
            ledger: Ledger of the target network
            predictor: Address predictor for the deployer, read right before the run
            force: Contract names to redeploy even if they are in the ledger
            mismatch_policy: Warn or abort on a wrong address prediction
            expected_chain_id: Chain the factory must be connected to.
                Defaults to the chain id of ``config``.
            config: Network configuration made available to args builders
        """
        self.factory = factory
        self.ledger = ledger
        self.predictor = predictor
        self.force = frozenset(force)
        self.mismatch_policy = mismatch_policy
        self.config = config
        if expected_chain_id is None and config is not None:
            expected_chain_id = config.chain_id
        self.expected_chain_id = expected_chain_id

    def check_network(self) -> None:
        """
        Make sure we talk to the requested chain as the predicted sender.

        Raises:
            NetworkIdentityMismatchError: On a chain id mismatch
            DeploymentError: If the predictor belongs to another account
        """
        if self.expected_chain_id is not None:
            actual = self.factory.chain_id
            if actual != self.expected_chain_id:
                raise NetworkIdentityMismatchError(
                    f"Network mismatch! Expected chain {self.expected_chain_id} for "
                    f"'{self.ledger.network}', but connected to chain {actual}"
                )

        if self.predictor is not None:
            deployer = to_checksum_address(self.factory.deployer)
            if deployer != self.predictor.sender:
                raise DeploymentError(
                    f"Predictor is for {self.predictor.sender}, but contracts are "
                    f"deployed by {deployer}"
                )

    def should_deploy(self, step: DeployStep) -> bool:
        return step.name in self.force or not self.ledger.has(step.name)

    def plan(self, phases: List[PipelinePhase]) -> List[str]:
        """Names of the steps a run over ``phases`` would deploy, in order."""
        return [s.name for p in phases for s in p.steps if self.should_deploy(s)]

    def run(
        self, phases: List[PipelinePhase], only: Optional[Iterable[str]] = None
    ) -> PipelineResult:
        """
        Deploy all phases in order.

        Args:
            phases: Phases to run, in dependency order
            only: Restrict the run to these phase names

        Returns:
            PipelineResult with per-contract outcomes

        Raises:
            NetworkIdentityMismatchError: Before any transaction, on wrong chain
            RequiredStepFailedError: A step of a required phase failed
            AddressMismatchError: A prediction was wrong and the policy is ABORT
            ValueError: Unknown phase names in ``only`` or duplicate step names
        """
        selected = _select_phases(phases, only)
        self.check_network()

        state = _RunState(plan=self.plan(selected))
        result = PipelineResult(network=self.ledger.network)
        started = time.monotonic()

        logger.info(
            "Deploying %d contracts on %s, %d already recorded",
            len(state.plan),
            self.ledger.network,
            sum(len(p.steps) for p in selected) - len(state.plan),
        )

        try:
            for phase in selected:
                logger.info(
                    "Phase %s (%s)", phase.name, "required" if phase.required else "optional"
                )
                for step in phase.steps:
                    outcome, error = self._run_step(phase, step, state, result)
                    if error is not None and phase.required:
                        raise RequiredStepFailedError(phase.name, step.name, error, result) from error
        finally:
            result.elapsed = time.monotonic() - started
            result.addresses = self.ledger.addresses()

        logger.info(
            "Deployment finished in %.2fs: %d deployed, %d skipped, %d failed",
            result.elapsed,
            len(result.deployed),
            len(result.skipped),
            len(result.failed),
        )
        return result

    def _run_step(
        self,
        phase: PipelinePhase,
        step: DeployStep,
        state: _RunState,
        result: PipelineResult,
    ) -> Tuple[StepOutcome, Optional[Exception]]:
        if not self.should_deploy(step):
            record = self.ledger.get(step.name)
            logger.info("Skipping %s, already deployed at %s", step.name, record.address)
            outcome = StepOutcome(
                phase=phase.name,
                name=step.name,
                status=StepStatus.SKIPPED,
                address=record.address,
                transaction_hash=record.transaction_hash,
                required=phase.required,
            )
            result.outcomes.append(outcome)
            return outcome, None

        started = time.monotonic()
        ctx = StepContext(self, state, phase, step)
        try:
            args = list(step.args_builder(ctx))
            logger.info("Deploying %s", step.name)
            deployed = self.factory.deploy(step.contract_name, args)
        except Exception as e:
            outcome = StepOutcome(
                phase=phase.name,
                name=step.name,
                status=StepStatus.FAILED,
                error=f"{type(e).__name__}: {e}",
                elapsed=time.monotonic() - started,
                required=phase.required,
            )
            result.outcomes.append(outcome)
            if phase.required:
                logger.error("%s deployment failed: %s", step.name, e)
            else:
                logger.warning(
                    "%s deployment failed: %s. Continuing with other contracts", step.name, e
                )
                self._warn_pending_predictions(state)
            return outcome, e

        record = self.ledger.append(
            DeploymentRecord(
                name=step.name,
                address=to_checksum_address(deployed.address),
                constructor_args=args,
                transaction_hash=deployed.transaction_hash,
                contract=step.contract,
            )
        )
        state.addresses[step.name] = record.address

        outcome = StepOutcome(
            phase=phase.name,
            name=step.name,
            status=StepStatus.DEPLOYED,
            address=record.address,
            transaction_hash=record.transaction_hash,
            elapsed=time.monotonic() - started,
            required=phase.required,
        )
        result.outcomes.append(outcome)
        self._check_prediction(step.name, record.address, state, result)
        return outcome, None

    def _check_prediction(
        self, name: str, actual: str, state: _RunState, result: PipelineResult
    ) -> None:
        prediction = state.predictions.get(name)
        if prediction is None:
            return

        if prediction.computed_address.lower() == actual.lower():
            logger.info("Address calculation for %s was correct", name)
            return

        mismatch = AddressMismatch(
            name=name,
            predicted=prediction.computed_address,
            actual=actual,
            nonce_offset=prediction.nonce_offset,
        )
        result.mismatches.append(mismatch)
        logger.warning(
            "Address calculation mismatch for %s! Expected %s, actual %s. "
            "Contracts deployed with the predicted address reference the wrong contract.",
            name,
            mismatch.predicted,
            mismatch.actual,
        )
        if self.mismatch_policy is MismatchPolicy.ABORT:
            raise AddressMismatchError(name, mismatch.predicted, mismatch.actual)

    def _warn_pending_predictions(self, state: _RunState) -> None:
        pending = [n for n in state.predictions if n not in state.addresses]
        if pending:
            logger.warning(
                "A failed step may have shifted the deployer nonce, predictions for %s "
                "will be checked after deployment",
                ", ".join(pending),
            )


def _select_phases(
    phases: List[PipelinePhase], only: Optional[Iterable[str]]
) -> List[PipelinePhase]:
    names = [s.name for p in phases for s in p.steps]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ValueError(f"Duplicate step names: {', '.join(duplicates)}")

    if only is None:
        return list(phases)

    wanted = list(only)
    known = {p.name for p in phases}
    unknown = [n for n in wanted if n not in known]
    if unknown:
        raise ValueError(
            f"Unknown phases: {', '.join(unknown)}. Available: {', '.join(p.name for p in phases)}"
        )
    return [p for p in phases if p.name in wanted]


def summarize(result: PipelineResult) -> Dict[str, Any]:
    """Plain-dict summary of a pipeline run, for reports."""
    return {
        "network": result.network,
        "elapsed": round(result.elapsed, 2),
        "deployed": [o.name for o in result.deployed],
        "skipped": [o.name for o in result.skipped],
        "failed": {o.name: o.error for o in result.failed},
        "mismatches": [
            {"name": m.name, "predicted": m.predicted, "actual": m.actual} for m in result.mismatches
        ],
        "addresses": dict(result.addresses),
    }
