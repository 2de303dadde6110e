"""
symmetric-deployments: resumable deployment and verification of Symmetric V4 contracts
"""

from importlib.metadata import PackageNotFoundError, version

from .config import NetworkConfig, load_network_config
from .exceptions import (
    AddressMismatchError,
    ContractNotFoundError,
    DeploymentError,
    LedgerCorruptError,
    LedgerLockedError,
    NetworkIdentityMismatchError,
    NetworkNotFoundError,
    RequiredStepFailedError,
)
from .ledger import DeploymentLedger
from .phases import build_phases
from .pipeline import DeploymentPipeline, MismatchPolicy, StepContext
from .predictor import AddressPredictor, compute_create_address
from .types import (
    DeploymentRecord,
    DeployStep,
    PipelinePhase,
    PipelineResult,
    VerificationReport,
)
from .verification import VerificationEngine

try:
    __version__ = version("symmetric-deployments")
except PackageNotFoundError:
    __version__ = None

__all__ = [
    "AddressPredictor",
    "compute_create_address",
    "DeploymentLedger",
    "DeploymentRecord",
    "DeployStep",
    "PipelinePhase",
    "PipelineResult",
    "DeploymentPipeline",
    "MismatchPolicy",
    "StepContext",
    "build_phases",
    "VerificationEngine",
    "VerificationReport",
    "NetworkConfig",
    "load_network_config",
    "DeploymentError",
    "AddressMismatchError",
    "ContractNotFoundError",
    "LedgerCorruptError",
    "LedgerLockedError",
    "NetworkIdentityMismatchError",
    "NetworkNotFoundError",
    "RequiredStepFailedError",
]
