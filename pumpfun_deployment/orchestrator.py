from datetime import datetime, timezone
from enum import IntEnum
from pathlib import Path
from typing import Any, Callable, List, NamedTuple, Optional, Protocol

from eth_typing import ChecksumAddress

from pumpfun_deployment.config import DeploymentConfig
from pumpfun_deployment.constants import FACTORY_CONTRACT, MAIN_CONTRACT
from pumpfun_deployment.exceptions import (
    DeploymentError,
    DeploymentFailure,
    OwnershipTransferFailure,
    SignerResolutionFailure,
)
from pumpfun_deployment.registry import (
    DeploymentRecord,
    record_filepath,
    utc_timestamp,
    write_record,
)
from pumpfun_deployment.verification import (
    VerificationResult,
    Verifier,
    report_verification,
    verification_requests,
    verify_contracts,
)


class Signer(NamedTuple):
    address: ChecksumAddress
    balance: int  # wei


class SignerResolver(Protocol):
    def resolve(self) -> Signer:
        ...


class DeployedContract(Protocol):
    address: ChecksumAddress

    def transfer_ownership(self, new_owner: ChecksumAddress) -> None:
        ...

    def owner(self) -> ChecksumAddress:
        ...


class ContractDeployer(Protocol):
    def deploy(self, contract_name: str, *args: Any) -> DeployedContract:
        """Submits a creation transaction and blocks until it is confirmed."""


class DeploymentState(IntEnum):
    INIT = 0
    FACTORY_DEPLOYED = 1
    MAIN_DEPLOYED = 2
    OWNERSHIP_TRANSFERRED = 3
    RECORDED = 4
    VERIFYING = 5
    DONE = 6


_TRANSITIONS = {
    DeploymentState.INIT: {DeploymentState.FACTORY_DEPLOYED},
    DeploymentState.FACTORY_DEPLOYED: {DeploymentState.MAIN_DEPLOYED},
    DeploymentState.MAIN_DEPLOYED: {DeploymentState.OWNERSHIP_TRANSFERRED},
    DeploymentState.OWNERSHIP_TRANSFERRED: {DeploymentState.RECORDED},
    DeploymentState.RECORDED: {DeploymentState.VERIFYING, DeploymentState.DONE},
    DeploymentState.VERIFYING: {DeploymentState.DONE},
    DeploymentState.DONE: set(),
}


class DeploymentOutcome(NamedTuple):
    record: DeploymentRecord
    record_filepath: Path
    verification_results: List[VerificationResult]


def _describe(error: Exception) -> str:
    return str(error) or type(error).__name__


class DeploymentOrchestrator:
    """
    Deploys PumpFunFactory, then PumpFun against it, hands factory ownership to
    PumpFun, records the result and optionally verifies both contracts.

    Every step before verification is fatal on failure. Verification is
    best-effort and isolated per contract. An instance runs exactly once.
    """

    def __init__(
        self,
        config: DeploymentConfig,
        signer_resolver: SignerResolver,
        contract_deployer: ContractDeployer,
        verifier: Optional[Verifier] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.config = config
        self.signer_resolver = signer_resolver
        self.contract_deployer = contract_deployer
        self.verifier = verifier
        self.clock = clock
        self._state = DeploymentState.INIT

    @property
    def state(self) -> DeploymentState:
        return self._state

    @property
    def record_filepath(self) -> Path:
        return record_filepath(self.config.network_name, self.config.artifacts_dir)

    def _advance(self, state: DeploymentState) -> None:
        if state not in _TRANSITIONS[self._state]:
            raise RuntimeError(f"Invalid deployment state transition {self._state.name} -> {state.name}")
        self._state = state

    def run(self) -> DeploymentOutcome:
        if self._state != DeploymentState.INIT:
            raise RuntimeError(f"Deployment already started (state {self._state.name})")

        print(f"Deploying PumpFun contracts to {self.config.network_name}...")
        signer = self._resolve_signer()

        fee_recipient = signer.address
        factory = self._deploy(FACTORY_CONTRACT, fee_recipient)
        self._advance(DeploymentState.FACTORY_DEPLOYED)

        main = self._deploy(MAIN_CONTRACT, factory.address, deployed={FACTORY_CONTRACT: factory})
        self._advance(DeploymentState.MAIN_DEPLOYED)

        self._transfer_ownership(factory, main)
        self._advance(DeploymentState.OWNERSHIP_TRANSFERRED)

        record = DeploymentRecord(
            network=self.config.network_name,
            factory_address=factory.address,
            main_contract_address=main.address,
            fee_recipient=fee_recipient,
            deployer_address=signer.address,
            timestamp=utc_timestamp(self.clock()),
        )
        self._print_summary(record)
        filepath = write_record(record, self.record_filepath)
        print(f"\nDeployment info saved to {filepath}")
        self._advance(DeploymentState.RECORDED)

        results = list()
        if self.config.verification_enabled and self.verifier is not None:
            self._advance(DeploymentState.VERIFYING)
            print("\nVerifying contracts...")
            results = verify_contracts(self.verifier, verification_requests(record))
            report_verification(results)
        else:
            print("\n(i) No verification credential configured; skipping verification.")

        self._advance(DeploymentState.DONE)
        self._print_completion(record)
        return DeploymentOutcome(record=record, record_filepath=filepath, verification_results=results)

    def _resolve_signer(self) -> Signer:
        try:
            signer = self.signer_resolver.resolve()
        except SignerResolutionFailure:
            raise
        except Exception as e:
            raise SignerResolutionFailure(f"Could not resolve deployer account: {_describe(e)}") from e
        if signer is None:
            raise SignerResolutionFailure(
                f"No signer available for network '{self.config.network_name}'."
            )
        print(f"Deploying contracts with the account: {signer.address}")
        print(f"Account balance: {signer.balance}")
        return signer

    def _deploy(self, contract_name: str, *args: Any, deployed=None) -> DeployedContract:
        deployed = deployed or dict()
        print(f"\nDeploying {contract_name}...")
        try:
            instance = self.contract_deployer.deploy(contract_name, *args)
        except DeploymentError:
            raise
        except Exception as e:
            raise DeploymentFailure(
                f"Failed to deploy {contract_name}: {_describe(e)}",
                contract_name=contract_name,
                deployed={name: c.address for name, c in deployed.items()},
            ) from e
        print(f"{contract_name} deployed to: {instance.address}")
        return instance

    def _transfer_ownership(self, factory: DeployedContract, main: DeployedContract) -> None:
        print(f"\nTransferring {FACTORY_CONTRACT} ownership to {MAIN_CONTRACT}...")
        try:
            factory.transfer_ownership(main.address)
            owner = factory.owner()
        except DeploymentError:
            raise
        except Exception as e:
            raise OwnershipTransferFailure(
                f"Failed to transfer {FACTORY_CONTRACT} ownership: {_describe(e)}",
                factory_address=factory.address,
                main_address=main.address,
            ) from e
        if owner != main.address:
            raise OwnershipTransferFailure(
                f"{FACTORY_CONTRACT} owner is {owner}, expected {main.address}",
                factory_address=factory.address,
                main_address=main.address,
            )
        print(f"Factory ownership transferred to: {owner}")

    @staticmethod
    def _print_summary(record: DeploymentRecord) -> None:
        print(
            "\n=== Deployment Summary ===",
            f"Network: {record.network}",
            f"{FACTORY_CONTRACT}: {record.factory_address}",
            f"{MAIN_CONTRACT} Main Contract: {record.main_contract_address}",
            f"Fee Recipient: {record.fee_recipient}",
            f"Deployer: {record.deployer_address}",
            sep="\n",
        )

    @staticmethod
    def _print_completion(record: DeploymentRecord) -> None:
        print(
            "\n=== Deployment Complete ===",
            f"You can now interact with the PumpFun contracts using the main contract address: "
            f"{record.main_contract_address}",
            "\nNext steps:",
            "1. Fund your account with native tokens for the target network",
            "2. Use the PumpFun main contract to create tokens",
            "3. Test buying and selling tokens through the bonding curve",
            "\nContract Addresses:",
            f"- PumpFun Main: {record.main_contract_address}",
            f"- PumpFun Factory: {record.factory_address}",
            f"- Fee Recipient: {record.fee_recipient}",
            sep="\n",
        )
