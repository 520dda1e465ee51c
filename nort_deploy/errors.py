"""
Deployment errors and step results
"""

from dataclasses import dataclass
from typing import Any, Optional


class DeployScriptError(Exception):
    """Base class for every failure raised by the deployment scripts"""


class SecretsError(DeployScriptError):
    """secrets.json is missing, unreadable or lacks a required key"""


class PlanValidationError(DeployScriptError, ValueError):
    """A deployment plan value breaks one of its invariants"""


class NetworkSelectionError(DeployScriptError):
    """Unknown network profile, unreachable RPC, or chain id mismatch"""


class ArtifactError(DeployScriptError):
    """A compiled contract artifact is missing or malformed"""


class TransactionFailedError(DeployScriptError):
    """A transaction was mined with a failing status"""

    def __init__(self, message: str, tx_hash: Optional[str] = None):
        super().__init__(message)
        self.tx_hash = tx_hash


class CredentialResolutionError(DeployScriptError):
    pass


class DeploymentError(DeployScriptError):
    pass


class TransferError(DeployScriptError):
    pass


class ConfigurationError(DeployScriptError):
    pass


@dataclass(frozen=True)
class StepResult:
    """Outcome of one sequencer step: a value on success, an error otherwise"""
    step: str
    value: Any = None
    error: Optional[DeployScriptError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, step: str, value: Any = None) -> "StepResult":
        return cls(step=step, value=value)

    @classmethod
    def failure(cls, step: str, error: DeployScriptError) -> "StepResult":
        return cls(step=step, error=error)
