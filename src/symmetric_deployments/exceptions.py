"""Custom exception classes for symmetric-deployments library."""


class DeploymentError(Exception):
    """Base exception for deployment-related errors."""

    pass


class NetworkNotFoundError(DeploymentError, FileNotFoundError):
    """Raised when no configuration document exists for the requested network."""

    pass


class ContractNotFoundError(DeploymentError, ValueError):
    """Raised when requested contract is not recorded in the ledger."""

    pass


class LedgerCorruptError(DeploymentError, ValueError):
    """Raised when a persisted ledger does not parse as the expected structure."""

    pass


class LedgerLockedError(DeploymentError, RuntimeError):
    """Raised when another process holds the write lock of a ledger."""

    pass


class NetworkIdentityMismatchError(DeploymentError, RuntimeError):
    """Raised when the connected chain is not the requested target network."""

    pass


class AddressMismatchError(DeploymentError, RuntimeError):
    """Raised when a deployed address differs from its prediction and the policy is strict."""

    def __init__(self, name: str, predicted: str, actual: str):
        super().__init__(
            f"Address prediction for {name} was wrong: predicted {predicted}, got {actual}"
        )
        self.name = name
        self.predicted = predicted
        self.actual = actual


class RequiredStepFailedError(DeploymentError, RuntimeError):
    """Raised when a step of a required phase fails. Aborts the pipeline."""

    def __init__(self, phase: str, step: str, cause: BaseException, result=None):
        super().__init__(f"Required step {step} in phase '{phase}' failed: {cause}")
        self.phase = phase
        self.step = step
        self.cause = cause
        # Partial PipelineResult up to and including the failed step
        self.result = result


class ContractDeploymentFailed(DeploymentError, RuntimeError):
    """Did not get successful tx receipt from a deployment."""

    def __init__(self, tx_hash, msg):
        super().__init__(msg)
        self.tx_hash = tx_hash


class ArtifactNotFoundError(DeploymentError, FileNotFoundError):
    """Raised when no compiler artifact matches a contract name."""

    pass


class AmbiguousArtifactError(DeploymentError, ValueError):
    """Raised when several artifacts share a contract name."""

    def __init__(self, name: str, candidates: list):
        super().__init__(
            f"There are multiple artifacts for contract {name}, use a fully "
            f"qualified name: {', '.join(candidates)}"
        )
        self.name = name
        self.candidates = candidates


class VerificationTransientError(DeploymentError, RuntimeError):
    """Raised by an explorer adapter for a failure worth retrying."""

    pass


class VerificationAmbiguousError(DeploymentError, ValueError):
    """Raised when the explorer cannot tell which source matches the bytecode."""

    def __init__(self, msg: str, candidates: list = None):
        super().__init__(msg)
        self.candidates = candidates or []
