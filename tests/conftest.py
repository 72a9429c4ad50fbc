from datetime import datetime, timezone

import pytest

from pumpfun_deployment.config import DeploymentConfig, GasHints
from pumpfun_deployment.constants import BSC_TESTNET, BSC_TESTNET_CHAIN_ID
from pumpfun_deployment.orchestrator import DeploymentOrchestrator, Signer

DEPLOYER = "0xD"
FIXED_TIME = datetime(2024, 5, 1, 12, 0, 0, 123456, tzinfo=timezone.utc)
FIXED_TIMESTAMP = "2024-05-01T12:00:00.123Z"


class FakeContract:
    def __init__(self, name, address, args, owner, fail_transfer=None):
        self.name = name
        self.address = address
        self.args = list(args)
        self._owner = owner
        self.fail_transfer = fail_transfer
        self.transfers = []

    def transfer_ownership(self, new_owner):
        self.transfers.append(new_owner)
        if self.fail_transfer is not None:
            raise self.fail_transfer
        self._owner = new_owner

    def owner(self):
        return self._owner


class FakeChain:
    """In-memory stand-in for the signer and contract deployer collaborators."""

    DEFAULT_ADDRESSES = {"PumpFunFactory": "0xF", "PumpFun": "0xM"}

    def __init__(self, signer=Signer(address=DEPLOYER, balance=10**18)):
        self.signer = signer
        self.contracts = {}
        self.deploy_calls = []
        self.deploy_failures = {}
        self.transfer_failure = None
        self.resolve_calls = 0

    def resolve(self):
        self.resolve_calls += 1
        return self.signer

    def deploy(self, contract_name, *args):
        self.deploy_calls.append((contract_name, list(args)))
        if contract_name in self.deploy_failures:
            raise self.deploy_failures[contract_name]
        contract = FakeContract(
            name=contract_name,
            address=self.DEFAULT_ADDRESSES[contract_name],
            args=args,
            owner=self.signer.address,
            fail_transfer=self.transfer_failure,
        )
        self.contracts[contract_name] = contract
        return contract


class FakeVerifier:
    def __init__(self, failures=None):
        self.failures = failures or dict()
        self.requests = []

    def verify(self, request):
        self.requests.append(request)
        if request.contract_name in self.failures:
            raise self.failures[request.contract_name]


@pytest.fixture
def chain():
    return FakeChain()


@pytest.fixture
def verifier():
    return FakeVerifier()


@pytest.fixture
def config(tmp_path):
    return DeploymentConfig(
        network_name=BSC_TESTNET,
        rpc_endpoint="http://localhost:8545",
        chain_id=BSC_TESTNET_CHAIN_ID,
        gas_hints=GasHints(gas_limit=2_100_000, gas_price=20_000_000_000),
        artifacts_dir=tmp_path / "artifacts",
    )


@pytest.fixture
def verifying_config(config):
    return config._replace(verification_credential="bscscan-api-key")


@pytest.fixture
def make_orchestrator(chain, verifier):
    def _make(config, **kwargs):
        params = dict(
            config=config,
            signer_resolver=chain,
            contract_deployer=chain,
            verifier=verifier,
            clock=lambda: FIXED_TIME,
        )
        params.update(kwargs)
        return DeploymentOrchestrator(**params)

    return _make
