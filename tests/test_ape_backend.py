from types import SimpleNamespace

import pytest

from pumpfun_deployment import ape_backend
from pumpfun_deployment.config import DeploymentConfig, GasHints
from pumpfun_deployment.exceptions import (
    DeploymentConfigError,
    SignerResolutionFailure,
    VerificationFailure,
)
from pumpfun_deployment.verification import VerificationRequest, verify_contracts

FACTORY_REQUEST = VerificationRequest(
    contract_name="PumpFunFactory",
    address="0xF",
    constructor_arguments=["0xD"],
    fully_qualified_contract_id="contracts/src/PumpFunFactory.sol:PumpFunFactory",
)


class FakeAccount:
    def __init__(self, address="0xD", balance=5):
        self.address = address
        self.balance = balance
        self.autosign = None
        self.deployments = []

    def set_autosign(self, enabled, passphrase=None):
        self.autosign = (enabled, passphrase)

    def deploy(self, container, *args, **kwargs):
        self.deployments.append((container, args, kwargs))
        return FakeInstance(address="0xF")


class FakeInstance:
    def __init__(self, address):
        self.address = address
        self.transfers = []
        self._owner = "0xD"

    def transferOwnership(self, new_owner, sender=None, **kwargs):
        self.transfers.append((new_owner, sender, kwargs))
        self._owner = new_owner

    def owner(self):
        return self._owner


class FakeContainer:
    def __init__(self, name):
        self.contract_type = SimpleNamespace(name=name)
        self.encoded = []
        self.constructor = SimpleNamespace(encode_input=self._encode_input)

    def _encode_input(self, *args):
        self.encoded.append(args)
        return b""


class FakeExplorer:
    def __init__(self):
        self.published = []

    def publish_contract(self, address):
        self.published.append(address)


@pytest.fixture
def live_config():
    return DeploymentConfig.for_network(
        "bsctestnet",
        environ={},
        signing_credential="deployer",
        signing_passphrase="secret",
        gas_hints=GasHints(gas_limit=2_100_000, gas_price=20_000_000_000),
    )


@pytest.fixture
def local_config():
    return DeploymentConfig.for_network("local", environ={})


@pytest.fixture
def fake_accounts(monkeypatch):
    loaded = dict(deployer=FakeAccount())
    fake = SimpleNamespace(test_accounts=[FakeAccount(address="0xT")], load=lambda alias: loaded[alias])
    monkeypatch.setattr(ape_backend, "accounts", fake)
    return fake


@pytest.fixture
def fake_project(monkeypatch):
    project = SimpleNamespace(
        PumpFunFactory=FakeContainer("PumpFunFactory"), PumpFun=FakeContainer("PumpFun")
    )
    monkeypatch.setattr(ape_backend, "project", project)
    return project


@pytest.fixture
def fake_networks(monkeypatch):
    explorer = FakeExplorer()
    network = SimpleNamespace(name="testnet", explorer=explorer, ecosystem=SimpleNamespace(name="bsc"))
    fake = SimpleNamespace(provider=SimpleNamespace(chain_id=97, network=network))
    monkeypatch.setattr(ape_backend, "networks", fake)
    return fake


def test_live_signer_requires_credential(live_config, fake_accounts):
    resolver = ape_backend.ApeSignerResolver(live_config._replace(signing_credential=None))
    with pytest.raises(SignerResolutionFailure, match="No signing credential"):
        resolver.resolve()


def test_live_signer_loads_keyfile_account(live_config, fake_accounts):
    signer = ape_backend.ApeSignerResolver(live_config).resolve()

    assert signer.address == "0xD"
    assert signer.balance == 5
    assert fake_accounts.load("deployer").autosign == (True, "secret")


def test_local_signer_uses_test_account(local_config, fake_accounts):
    signer = ape_backend.ApeSignerResolver(local_config).resolve()
    assert signer.address == "0xT"


def test_local_signer_without_test_accounts(local_config, fake_accounts):
    fake_accounts.test_accounts = []
    with pytest.raises(SignerResolutionFailure):
        ape_backend.ApeSignerResolver(local_config).resolve()


def test_deployer_applies_gas_hints(live_config, fake_accounts, fake_project):
    resolver = ape_backend.ApeSignerResolver(live_config)
    deployer = ape_backend.ApeContractDeployer(resolver, live_config)

    factory = deployer.deploy("PumpFunFactory", "0xD")
    factory.transfer_ownership("0xM")

    account = fake_accounts.load("deployer")
    container, args, kwargs = account.deployments[0]
    assert container is fake_project.PumpFunFactory
    assert args == ("0xD",)
    assert kwargs == {"gas_limit": 2_100_000, "gas_price": 20_000_000_000}
    assert factory.instance.transfers == [("0xM", account, kwargs)]
    assert factory.owner() == "0xM"


def test_unknown_contract(fake_project):
    with pytest.raises(ValueError, match="No contract found with name 'Nope'"):
        ape_backend.get_contract_container("Nope")


def test_validate_network_chain_id_mismatch(live_config, fake_networks):
    fake_networks.provider.chain_id = 56
    with pytest.raises(DeploymentConfigError, match="does not match"):
        ape_backend.validate_network(live_config)


def test_validate_network_ignores_local_chain_id(local_config, fake_networks):
    fake_networks.provider.chain_id = 31337
    ape_backend.validate_network(local_config)


def test_explorer_verifier_publishes(local_config, fake_networks, fake_project):
    verifier = ape_backend.ExplorerVerifier(local_config)
    verifier.verify(FACTORY_REQUEST)

    assert fake_networks.provider.network.explorer.published == ["0xF"]
    assert fake_project.PumpFunFactory.encoded == [("0xD",)]


def test_explorer_verifier_rejects_mismatched_identifier(local_config, fake_networks, fake_project):
    request = FACTORY_REQUEST._replace(fully_qualified_contract_id="contracts/src/PumpFun.sol:PumpFun")
    with pytest.raises(VerificationFailure, match="does not identify PumpFunFactory"):
        ape_backend.ExplorerVerifier(local_config).verify(request)
    assert fake_networks.provider.network.explorer.published == []


def test_explorer_verifier_without_explorer(local_config, fake_networks, fake_project):
    fake_networks.provider.network.explorer = None
    with pytest.raises(VerificationFailure, match="No block explorer"):
        ape_backend.ExplorerVerifier(local_config).verify(FACTORY_REQUEST)


def test_build_orchestrator_skips_verifier_without_credential(local_config):
    orchestrator = ape_backend.build_orchestrator(local_config)
    assert orchestrator.verifier is None
    assert isinstance(orchestrator.signer_resolver, ape_backend.ApeSignerResolver)


def test_build_orchestrator_wires_verifier_without_checking_plugin(live_config, monkeypatch):
    checks = []
    monkeypatch.setattr(ape_backend, "check_etherscan_plugin", checks.append)

    orchestrator = ape_backend.build_orchestrator(live_config._replace(verification_credential="key"))

    assert isinstance(orchestrator.verifier, ape_backend.ExplorerVerifier)
    assert checks == []


def test_missing_explorer_plugin_fails_each_verification(
    live_config, fake_networks, fake_project, monkeypatch
):
    def check_etherscan_plugin(config):
        raise ImportError("Please install the ape-etherscan plugin to verify contracts.")

    monkeypatch.setattr(ape_backend, "check_etherscan_plugin", check_etherscan_plugin)
    verifier = ape_backend.ExplorerVerifier(live_config._replace(verification_credential="key"))
    main_request = FACTORY_REQUEST._replace(
        contract_name="PumpFun",
        address="0xM",
        constructor_arguments=["0xF"],
        fully_qualified_contract_id="contracts/src/PumpFun.sol:PumpFun",
    )

    results = verify_contracts(verifier, [FACTORY_REQUEST, main_request])

    assert [result.verified for result in results] == [False, False]
    assert all(isinstance(result.error.__cause__, ImportError) for result in results)
    assert fake_networks.provider.network.explorer.published == []
