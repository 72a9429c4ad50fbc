from pathlib import Path
from typing import Dict, Optional


class DeploymentConfigError(ValueError):
    """Raised when the deployment configuration is missing or malformed."""


class DeploymentError(Exception):
    """Base class for failures of a deployment run."""


class SignerResolutionFailure(DeploymentError):
    """No usable signing identity; raised before anything is deployed."""


class DeploymentFailure(DeploymentError):
    """A contract creation transaction was rejected or reverted."""

    def __init__(self, message: str, contract_name: str, deployed: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.contract_name = contract_name
        # contracts that made it on-chain before the failure; never recorded
        self.deployed = dict(deployed or {})


class OwnershipTransferFailure(DeploymentError):
    """Factory ownership could not be handed to the main contract."""

    def __init__(self, message: str, factory_address: str, main_address: str):
        super().__init__(message)
        self.factory_address = factory_address
        self.main_address = main_address


class PersistenceFailure(DeploymentError):
    """The deployment record could not be written."""

    def __init__(self, message: str, filepath: Path, record=None):
        super().__init__(message)
        self.filepath = filepath
        self.record = record


class VerificationFailure(DeploymentError):
    """Explorer verification failed for a single contract. Never fatal."""

    def __init__(self, message: str, contract_name: str):
        super().__init__(message)
        self.contract_name = contract_name
