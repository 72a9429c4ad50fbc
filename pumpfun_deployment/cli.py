import sys
from pathlib import Path

import click
from ape.cli import ConnectedProviderCommand, network_option

from pumpfun_deployment import ape_backend
from pumpfun_deployment.config import DeploymentConfig
from pumpfun_deployment.constants import SUPPORTED_NETWORKS
from pumpfun_deployment.exceptions import (
    DeploymentFailure,
    OwnershipTransferFailure,
    PersistenceFailure,
)
from pumpfun_deployment.registry import (
    DeploymentRecord,
    read_record,
    record_filepath,
    utc_timestamp,
    write_record,
)
from pumpfun_deployment.types import ChecksumAddress
from pumpfun_deployment.verification import (
    report_verification,
    verification_requests,
    verify_contracts,
)

record_network_option = click.option(
    "--network",
    "-n",
    "network_name",
    help="Deployment network",
    type=click.Choice(SUPPORTED_NETWORKS),
    required=True,
)

artifacts_dir_option = click.option(
    "--artifacts-dir",
    help="Directory holding deployment records",
    type=click.Path(file_okay=False, path_type=Path),
    required=False,
)


def _report_partial_progress(error: Exception) -> None:
    """Points the operator at on-chain state the aborted run left unrecorded."""
    if isinstance(error, DeploymentFailure):
        for contract_name, address in error.deployed.items():
            click.echo(f"! {contract_name} remains deployed (unrecorded) at {address}", err=True)
    elif isinstance(error, OwnershipTransferFailure):
        click.echo(
            f"! Factory at {error.factory_address} is still owned by the deployer; "
            f"transfer ownership to {error.main_address} manually.",
            err=True,
        )
    elif isinstance(error, PersistenceFailure) and error.record is not None:
        click.echo(
            f"! Contracts are deployed but unrecorded: factory {error.record.factory_address}, "
            f"main {error.record.main_contract_address}. Use pumpfun-adopt to record them.",
            err=True,
        )


@click.command(name="pumpfun-deploy")
def deploy():
    """Deploy PumpFunFactory and PumpFun, and hand factory ownership to PumpFun."""
    try:
        config = DeploymentConfig.from_environment()
        with ape_backend.network_session(config):
            orchestrator = ape_backend.build_orchestrator(config)
            orchestrator.run()
    except Exception as e:
        click.echo(f"Deployment failed: {e}", err=True)
        _report_partial_progress(e)
        sys.exit(1)


@click.command(cls=ConnectedProviderCommand, name="pumpfun-verify")
@network_option(required=True)
@click.option(
    "--deployment",
    "-d",
    "deployment_name",
    help="Network name the deployment record is keyed by",
    type=click.Choice(SUPPORTED_NETWORKS),
    required=True,
)
@artifacts_dir_option
def verify(network, deployment_name, artifacts_dir):
    """Verify the recorded PumpFun deployment on the connected network's block explorer."""
    config = DeploymentConfig.for_network(deployment_name)
    if artifacts_dir:
        config = config._replace(artifacts_dir=artifacts_dir)

    filepath = record_filepath(deployment_name, config.artifacts_dir)
    if not filepath.exists():
        raise click.ClickException(
            f"No deployment record found for '{deployment_name}' at {filepath}"
        )
    if not config.verification_enabled:
        raise click.ClickException("No verification credential configured.")

    click.echo(f"Connected to {network.name} network.")
    ape_backend.validate_network(config)
    record = read_record(filepath)
    verifier = ape_backend.ExplorerVerifier(config)
    results = verify_contracts(verifier, verification_requests(record))
    report_verification(results)


@click.command(name="pumpfun-adopt")
@record_network_option
@click.option("--factory", help="PumpFunFactory address", type=ChecksumAddress(), required=True)
@click.option("--main", help="PumpFun main contract address", type=ChecksumAddress(), required=True)
@click.option("--deployer", help="Deploying account address", type=ChecksumAddress(), required=True)
@click.option(
    "--fee-recipient",
    help="Fee recipient the factory was constructed with; defaults to the deployer.",
    type=ChecksumAddress(),
    required=False,
)
@artifacts_dir_option
def adopt(network_name, factory, main, deployer, fee_recipient, artifacts_dir):
    """Record an existing on-chain deployment whose record was never written."""
    record = DeploymentRecord(
        network=network_name,
        factory_address=factory,
        main_contract_address=main,
        fee_recipient=fee_recipient or deployer,
        deployer_address=deployer,
        timestamp=utc_timestamp(),
    )
    try:
        filepath = write_record(record, record_filepath(network_name, artifacts_dir))
    except PersistenceFailure as e:
        raise click.ClickException(str(e))
    click.echo(f"(i) Deployment record written to {filepath}")
