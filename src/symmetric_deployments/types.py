"""Data types and dataclasses for symmetric-deployments library."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional


@dataclass
class DeploymentRecord:
    """A contract recorded in the deployment ledger."""

    name: str  # Ledger key, unique within a network
    address: str  # Checksummed address
    constructor_args: List[Any] = field(default_factory=list)
    transaction_hash: Optional[str] = None
    deployed_at: Optional[datetime] = None
    # Artifact name when it differs from the ledger key,
    # e.g. a second StablePoolFactory recorded as StablePoolV2Factory
    contract: Optional[str] = None

    @property
    def contract_name(self) -> str:
        return self.contract or self.name


@dataclass(frozen=True)
class PredictedAddress:
    """Address a contract will get from the sender's upcoming CREATE transaction."""

    sender: str
    nonce_offset: int
    nonce: int
    computed_address: str


@dataclass(frozen=True)
class DeployResult:
    """What a contract factory returns for one successful creation."""

    address: str
    transaction_hash: Optional[str] = None


@dataclass
class DeployStep:
    """One contract creation inside a phase.

    ``args_builder`` receives a :class:`symmetric_deployments.pipeline.StepContext`
    and returns the constructor arguments.
    """

    name: str
    args_builder: Callable[[Any], List[Any]] = lambda ctx: []
    contract: Optional[str] = None

    @property
    def contract_name(self) -> str:
        return self.contract or self.name


@dataclass
class PipelinePhase:
    """A dependency-ordered group of steps executed as a unit."""

    name: str
    steps: List[DeployStep]
    required: bool = True


class StepStatus(Enum):
    """
    Outcome of a single pipeline step.

    Value strings are used in reports.
    """

    DEPLOYED = "deployed"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class StepOutcome:
    """What happened to one step during a pipeline run."""

    phase: str
    name: str
    status: StepStatus
    address: Optional[str] = None
    transaction_hash: Optional[str] = None
    error: Optional[str] = None
    elapsed: float = 0.0
    required: bool = True

    @property
    def optional_failure(self) -> bool:
        return self.status is StepStatus.FAILED and not self.required


@dataclass(frozen=True)
class AddressMismatch:
    """A predicted address that did not match the real deployment."""

    name: str
    predicted: str
    actual: str
    nonce_offset: int


@dataclass
class PipelineResult:
    """Summary of a pipeline run."""

    network: str
    outcomes: List[StepOutcome] = field(default_factory=list)
    mismatches: List[AddressMismatch] = field(default_factory=list)
    elapsed: float = 0.0
    addresses: Dict[str, str] = field(default_factory=dict)

    def _with_status(self, status: StepStatus) -> List[StepOutcome]:
        return [o for o in self.outcomes if o.status is status]

    @property
    def deployed(self) -> List[StepOutcome]:
        return self._with_status(StepStatus.DEPLOYED)

    @property
    def skipped(self) -> List[StepOutcome]:
        return self._with_status(StepStatus.SKIPPED)

    @property
    def failed(self) -> List[StepOutcome]:
        return self._with_status(StepStatus.FAILED)


class ExplorerStatus(Enum):
    """Structured answer of an explorer to a verification request."""

    VERIFIED = "verified"
    ALREADY_VERIFIED = "already_verified"
    AMBIGUOUS = "ambiguous"
    TRANSIENT = "transient"


@dataclass(frozen=True)
class ExplorerResult:
    """Explorer answer, already translated out of raw response text."""

    status: ExplorerStatus
    message: str = ""
    candidates: List[str] = field(default_factory=list)


class VerificationStatus(Enum):
    """Final outcome of a verification task."""

    VERIFIED = "verified"
    ALREADY_VERIFIED = "already_verified"
    FAILED = "failed"


@dataclass
class VerificationTask:
    """A ledger record queued for explorer verification."""

    name: str
    address: str
    constructor_args: List[Any] = field(default_factory=list)
    contract_path: Optional[str] = None
    contract_name: Optional[str] = None
    attempts: int = 0


@dataclass
class VerificationOutcome:
    """Result of verifying one contract."""

    name: str
    address: str
    status: VerificationStatus
    attempts: int = 0
    contract_path: Optional[str] = None
    message: str = ""

    @property
    def succeeded(self) -> bool:
        return self.status is not VerificationStatus.FAILED


@dataclass
class VerificationReport:
    """Aggregated result of a verification run."""

    outcomes: List[VerificationOutcome] = field(default_factory=list)
    non_critical: frozenset = frozenset()

    def _with_status(self, status: VerificationStatus) -> List[VerificationOutcome]:
        return [o for o in self.outcomes if o.status is status]

    @property
    def verified(self) -> List[VerificationOutcome]:
        return self._with_status(VerificationStatus.VERIFIED)

    @property
    def already_verified(self) -> List[VerificationOutcome]:
        return self._with_status(VerificationStatus.ALREADY_VERIFIED)

    @property
    def failed(self) -> List[VerificationOutcome]:
        return self._with_status(VerificationStatus.FAILED)

    @property
    def success_count(self) -> int:
        return len(self.verified) + len(self.already_verified)

    @property
    def critical_failures(self) -> List[VerificationOutcome]:
        return [o for o in self.failed if o.name not in self.non_critical]

    @property
    def non_critical_failures(self) -> List[VerificationOutcome]:
        return [o for o in self.failed if o.name in self.non_critical]

    @property
    def succeeded(self) -> bool:
        """True unless a core infrastructure contract failed verification."""
        return not self.critical_failures
