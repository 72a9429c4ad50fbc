from typing import Any, List, NamedTuple, Optional, Protocol

from eth_typing import ChecksumAddress

from pumpfun_deployment.constants import (
    FACTORY_CONTRACT,
    FACTORY_CONTRACT_ID,
    MAIN_CONTRACT,
    MAIN_CONTRACT_ID,
)
from pumpfun_deployment.exceptions import VerificationFailure
from pumpfun_deployment.registry import DeploymentRecord


class VerificationRequest(NamedTuple):
    """What a block explorer needs to match deployed bytecode against its source."""

    contract_name: str
    address: ChecksumAddress
    constructor_arguments: List[Any]
    fully_qualified_contract_id: str  # "<path>:<name>"


class VerificationResult(NamedTuple):
    request: VerificationRequest
    error: Optional[VerificationFailure] = None

    @property
    def verified(self) -> bool:
        return self.error is None


class Verifier(Protocol):
    def verify(self, request: VerificationRequest) -> None:
        """Submits a single contract for verification; raises on failure."""


def verification_requests(record: DeploymentRecord) -> List[VerificationRequest]:
    """Returns the verification requests for both contracts of a deployment, factory first."""
    return [
        VerificationRequest(
            contract_name=FACTORY_CONTRACT,
            address=record.factory_address,
            constructor_arguments=[record.fee_recipient],
            fully_qualified_contract_id=FACTORY_CONTRACT_ID,
        ),
        VerificationRequest(
            contract_name=MAIN_CONTRACT,
            address=record.main_contract_address,
            constructor_arguments=[record.factory_address],
            fully_qualified_contract_id=MAIN_CONTRACT_ID,
        ),
    ]


def _verify(verifier: Verifier, request: VerificationRequest) -> VerificationResult:
    try:
        verifier.verify(request)
    except VerificationFailure as e:
        return VerificationResult(request=request, error=e)
    except Exception as e:
        # any verifier error stays confined to this contract
        failure = VerificationFailure(str(e) or type(e).__name__, contract_name=request.contract_name)
        failure.__cause__ = e
        return VerificationResult(request=request, error=failure)
    return VerificationResult(request=request)


def verify_contracts(
    verifier: Verifier, requests: List[VerificationRequest]
) -> List[VerificationResult]:
    """
    Verifies each contract independently and in order. A failure for one contract
    is captured in its result and never prevents the others from being attempted.
    """
    results = list()
    for request in requests:
        print(f"(i) Verifying {request.contract_name} at {request.address}...")
        results.append(_verify(verifier, request))
    return results


def report_verification(results: List[VerificationResult]) -> None:
    for result in results:
        name = result.request.contract_name
        if result.verified:
            print(f"{name} verified successfully")
        else:
            print(f"Error verifying {name}: {result.error}")
