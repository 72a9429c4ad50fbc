import os
from pathlib import Path
from typing import Any, Dict, Mapping, NamedTuple, Optional

import yaml

from pumpfun_deployment.constants import (
    ARTIFACTS_DIR,
    ARTIFACTS_DIR_ENVVAR,
    BSC_TESTNET,
    BSC_TESTNET_CHAIN_ID,
    BSC_TESTNET_GAS_LIMIT,
    BSC_TESTNET_GAS_PRICE,
    BSC_TESTNET_RPC_URL,
    CONFIG_FILE_ENVVAR,
    DEFAULT_NETWORK,
    GAS_LIMIT_ENVVAR,
    GAS_PRICE_ENVVAR,
    LOCAL,
    LOCAL_CHAIN_ID,
    NETWORK_ENVVAR,
    RPC_URL_ENVVAR,
    SIGNING_CREDENTIAL_ENVVAR,
    SIGNING_PASSPHRASE_ENVVAR,
    VERIFICATION_CREDENTIAL_ENVVAR,
)
from pumpfun_deployment.exceptions import DeploymentConfigError


class GasHints(NamedTuple):
    gas_limit: Optional[int] = None
    gas_price: Optional[int] = None

    def as_kwargs(self) -> Dict[str, int]:
        """Returns the hints as ape transaction kwargs, omitting unset values."""
        kwargs = dict()
        if self.gas_limit is not None:
            kwargs["gas_limit"] = self.gas_limit
        if self.gas_price is not None:
            kwargs["gas_price"] = self.gas_price
        return kwargs


class NetworkPreset(NamedTuple):
    """Static parameters of a supported network."""

    choice: str  # ape "<ecosystem>:<network>[:<provider>]" choice
    rpc_endpoint: Optional[str]
    chain_id: int
    gas_hints: GasHints
    live: bool


NETWORK_PRESETS = {
    BSC_TESTNET: NetworkPreset(
        choice="bsc:testnet",
        rpc_endpoint=BSC_TESTNET_RPC_URL,
        chain_id=BSC_TESTNET_CHAIN_ID,
        gas_hints=GasHints(gas_limit=BSC_TESTNET_GAS_LIMIT, gas_price=BSC_TESTNET_GAS_PRICE),
        live=True,
    ),
    LOCAL: NetworkPreset(
        choice="ethereum:local:test",
        rpc_endpoint=None,
        chain_id=LOCAL_CHAIN_ID,
        gas_hints=GasHints(),
        live=False,
    ),
}


def _load_yaml(filepath: Path) -> dict:
    """Loads a YAML file."""
    with open(filepath, "r") as file:
        return yaml.safe_load(file) or dict()


def _get_preset(network_name: str) -> NetworkPreset:
    try:
        return NETWORK_PRESETS[network_name]
    except KeyError:
        raise DeploymentConfigError(
            f"Unsupported network '{network_name}'; expected one of {', '.join(NETWORK_PRESETS)}."
        )


def _to_int(value: Any, name: str) -> Optional[int]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise DeploymentConfigError(f"{name} must be an integer, got {value!r}.")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise DeploymentConfigError(f"{name} must be an integer, got {value!r}.")


class DeploymentConfig(NamedTuple):
    """
    Everything a deployment run consumes, passed explicitly into the orchestrator.
    Credentials are only ever read from the environment.
    """

    network_name: str
    rpc_endpoint: Optional[str]
    chain_id: int
    signing_credential: Optional[str] = None
    verification_credential: Optional[str] = None
    gas_hints: GasHints = GasHints()
    signing_passphrase: Optional[str] = None
    artifacts_dir: Path = ARTIFACTS_DIR

    @property
    def preset(self) -> NetworkPreset:
        return _get_preset(self.network_name)

    @property
    def is_live(self) -> bool:
        return self.preset.live

    @property
    def verification_enabled(self) -> bool:
        return bool(self.verification_credential)

    @property
    def network_choice(self) -> str:
        """The ape network choice, pinned to the configured RPC endpoint when there is one."""
        choice = self.preset.choice
        if self.rpc_endpoint:
            return f"{choice}:{self.rpc_endpoint}"
        return choice

    @classmethod
    def for_network(
        cls, network_name: str, environ: Optional[Mapping[str, str]] = None, **overrides
    ) -> "DeploymentConfig":
        """Builds a config from a network preset plus credentials found in the environment."""
        environ = os.environ if environ is None else environ
        preset = _get_preset(network_name)

        rpc_endpoint = preset.rpc_endpoint
        if preset.live:
            rpc_endpoint = environ.get(RPC_URL_ENVVAR) or rpc_endpoint

        gas_hints = GasHints(
            gas_limit=_to_int(environ.get(GAS_LIMIT_ENVVAR), GAS_LIMIT_ENVVAR)
            or preset.gas_hints.gas_limit,
            gas_price=_to_int(environ.get(GAS_PRICE_ENVVAR), GAS_PRICE_ENVVAR)
            or preset.gas_hints.gas_price,
        )

        artifacts_dir = environ.get(ARTIFACTS_DIR_ENVVAR)
        params = dict(
            network_name=network_name,
            rpc_endpoint=rpc_endpoint,
            chain_id=preset.chain_id,
            signing_credential=environ.get(SIGNING_CREDENTIAL_ENVVAR) or None,
            verification_credential=environ.get(VERIFICATION_CREDENTIAL_ENVVAR) or None,
            gas_hints=gas_hints,
            signing_passphrase=environ.get(SIGNING_PASSPHRASE_ENVVAR) or None,
            artifacts_dir=Path(artifacts_dir) if artifacts_dir else ARTIFACTS_DIR,
        )
        params.update(overrides)
        return cls(**params)

    @classmethod
    def from_environment(cls, environ: Optional[Mapping[str, str]] = None) -> "DeploymentConfig":
        environ = os.environ if environ is None else environ
        config_filepath = environ.get(CONFIG_FILE_ENVVAR)
        if config_filepath:
            return cls.from_yaml(Path(config_filepath), environ=environ)
        network_name = environ.get(NETWORK_ENVVAR) or DEFAULT_NETWORK
        return cls.for_network(network_name, environ=environ)

    @classmethod
    def from_yaml(
        cls, filepath: Path, environ: Optional[Mapping[str, str]] = None
    ) -> "DeploymentConfig":
        """
        Loads network parameters from a YAML params file. Values in the file take
        precedence over the network preset; credentials still come from the environment.
        """
        print(f"(i) Loading deployment parameters from {filepath}")
        config = _load_yaml(filepath)

        deployment = config.get("deployment")
        if not deployment:
            raise DeploymentConfigError("deployment is not set in params file.")

        network_name = deployment.get("network")
        if not network_name:
            raise DeploymentConfigError("network is not set in params file.")

        chain_id = _to_int(deployment.get("chain_id"), "chain_id")
        if chain_id is None:
            raise DeploymentConfigError("chain_id is not set in params file.")

        overrides: Dict[str, Any] = dict(chain_id=chain_id)
        if deployment.get("rpc_endpoint"):
            overrides["rpc_endpoint"] = deployment["rpc_endpoint"]

        gas = deployment.get("gas") or dict()
        if gas:
            overrides["gas_hints"] = GasHints(
                gas_limit=_to_int(gas.get("limit"), "gas.limit"),
                gas_price=_to_int(gas.get("price"), "gas.price"),
            )

        artifacts_dir = (config.get("artifacts") or dict()).get("dir")
        if artifacts_dir:
            overrides["artifacts_dir"] = Path(artifacts_dir)

        return cls.for_network(network_name, environ=environ, **overrides)
