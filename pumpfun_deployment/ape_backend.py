import os
from contextlib import contextmanager
from typing import Any, Dict, Iterator

from ape import accounts, networks, project
from ape.api import AccountAPI
from ape.contracts import ContractContainer, ContractInstance
from eth_typing import ChecksumAddress

from pumpfun_deployment.config import DeploymentConfig
from pumpfun_deployment.exceptions import (
    DeploymentConfigError,
    SignerResolutionFailure,
    VerificationFailure,
)
from pumpfun_deployment.orchestrator import DeploymentOrchestrator, Signer
from pumpfun_deployment.verification import VerificationRequest


def get_contract_container(contract: str) -> ContractContainer:
    try:
        return getattr(project, contract)
    except AttributeError:
        raise ValueError(f"No contract found with name '{contract}'.")


def validate_network(config: DeploymentConfig) -> None:
    """Checks that the connected provider is the chain the config was written for."""
    if not config.is_live:
        return  # local chain ids are not meaningful
    provider_chain_id = networks.provider.chain_id
    if provider_chain_id != config.chain_id:
        raise DeploymentConfigError(
            f"chain_id in config ({config.chain_id}) does not match "
            f"chain_id of current network ({provider_chain_id})."
        )


def check_etherscan_plugin(config: DeploymentConfig) -> None:
    """
    Checks that the ape-etherscan plugin is installed and exposes the
    verification credential under the variable the plugin reads.
    """
    if not config.is_live:
        return  # unnecessary for local deployment
    try:
        import ape_etherscan  # noqa: F401
        from ape_etherscan.utils import API_KEY_ENV_KEY_MAP
    except ImportError:
        raise ImportError("Please install the ape-etherscan plugin to verify contracts.")
    ecosystem_name = networks.provider.network.ecosystem.name
    explorer_envvar = API_KEY_ENV_KEY_MAP.get(ecosystem_name)
    if not explorer_envvar:
        raise DeploymentConfigError(f"No explorer API key mapping for ecosystem '{ecosystem_name}'.")
    os.environ.setdefault(explorer_envvar, config.verification_credential)


@contextmanager
def network_session(config: DeploymentConfig) -> Iterator[Any]:
    """Connects to the configured network for the duration of the block."""
    print(f"Connecting to {config.network_name} ({config.preset.choice})...")
    with networks.parse_network_choice(config.network_choice) as provider:
        validate_network(config)
        yield provider


class ApeSignerResolver:
    """
    Resolves the deploying account: ape's test accounts on the local chain,
    otherwise the keyfile account named by the signing credential.
    """

    def __init__(self, config: DeploymentConfig):
        self.config = config
        self._account = None

    def get_account(self) -> AccountAPI:
        if self._account is not None:
            return self._account

        if not self.config.is_live:
            test_accounts = list(accounts.test_accounts)
            if not test_accounts:
                raise SignerResolutionFailure("No test accounts available on the local network.")
            self._account = test_accounts[0]
            return self._account

        if not self.config.signing_credential:
            raise SignerResolutionFailure(
                f"No signing credential configured for network '{self.config.network_name}'."
            )
        account = accounts.load(self.config.signing_credential)
        if self.config.signing_passphrase:
            account.set_autosign(True, passphrase=self.config.signing_passphrase)
        self._account = account
        return self._account

    def resolve(self) -> Signer:
        account = self.get_account()
        return Signer(address=account.address, balance=account.balance)


class ApeDeployedContract:
    def __init__(self, instance: ContractInstance, sender: AccountAPI, txn_kwargs: Dict[str, Any]):
        self.instance = instance
        self.sender = sender
        self.txn_kwargs = txn_kwargs

    @property
    def address(self) -> ChecksumAddress:
        return self.instance.address

    def transfer_ownership(self, new_owner: ChecksumAddress) -> None:
        self.instance.transferOwnership(new_owner, sender=self.sender, **self.txn_kwargs)

    def owner(self) -> ChecksumAddress:
        return self.instance.owner()


class ApeContractDeployer:
    """Deploys project contracts from the resolved account, applying the configured gas hints."""

    def __init__(self, signer_resolver: ApeSignerResolver, config: DeploymentConfig):
        self.signer_resolver = signer_resolver
        self.txn_kwargs = config.gas_hints.as_kwargs()

    def deploy(self, contract_name: str, *args: Any) -> ApeDeployedContract:
        container = get_contract_container(contract_name)
        account = self.signer_resolver.get_account()
        instance = account.deploy(container, *args, **self.txn_kwargs)
        return ApeDeployedContract(instance, sender=account, txn_kwargs=self.txn_kwargs)


class ExplorerVerifier:
    """Publishes contract sources to the network's block explorer through ape."""

    def __init__(self, config: DeploymentConfig):
        self.config = config

    def verify(self, request: VerificationRequest) -> None:
        # plugin problems fail this contract's verification only, never the deployment
        check_etherscan_plugin(self.config)

        explorer = networks.provider.network.explorer
        if explorer is None:
            raise VerificationFailure(
                f"No block explorer available for {networks.provider.network.name}",
                contract_name=request.contract_name,
            )

        _, _, name = request.fully_qualified_contract_id.rpartition(":")
        container = get_contract_container(name)
        if container.contract_type.name != request.contract_name:
            raise VerificationFailure(
                f"{request.fully_qualified_contract_id} does not identify {request.contract_name}",
                contract_name=request.contract_name,
            )
        # arguments must encode against the compiled constructor ABI
        container.constructor.encode_input(*request.constructor_arguments)

        explorer.publish_contract(request.address)


def build_orchestrator(config: DeploymentConfig) -> DeploymentOrchestrator:
    """Wires the ape collaborators into an orchestrator. Requires a connected provider."""
    signer_resolver = ApeSignerResolver(config)
    verifier = ExplorerVerifier(config) if config.verification_enabled else None
    return DeploymentOrchestrator(
        config=config,
        signer_resolver=signer_resolver,
        contract_deployer=ApeContractDeployer(signer_resolver, config),
        verifier=verifier,
    )
