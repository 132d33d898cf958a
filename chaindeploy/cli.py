import sys
from pathlib import Path

import click

from chaindeploy.accounts import derive_accounts, get_named_account
from chaindeploy.artifacts import ArtifactStore
from chaindeploy.chain import ChainClient
from chaindeploy.confirm import confirm
from chaindeploy.constants import DEPLOYER, NAMED_ACCOUNTS
from chaindeploy.exceptions import ConfigurationError
from chaindeploy.executor import DeploymentExecutor
from chaindeploy.networks import (
    MnemonicDerivation,
    NetworkProfile,
    NetworkResolver,
    RunConfig,
    load_environment,
    verification_enabled,
)
from chaindeploy.options import (
    artifacts_dir_option,
    autosign_option,
    contract_names_option,
    deployments_dir_option,
    network_option,
    tags_option,
    tasks_file_option,
    timeout_option,
    verify_option,
)
from chaindeploy.params import load_tasks
from chaindeploy.pipeline import DEPLOYED, FAILED, SKIPPED, DeploymentPipeline, RunReport
from chaindeploy.registry import DeploymentStore, export_registry
from chaindeploy.types import MinInt
from chaindeploy.utils import check_explorer_api_key
from chaindeploy.verify import VerificationSubmitter

STATUS_COLORS = {
    SKIPPED: "yellow",
    DEPLOYED: "green",
    FAILED: "red",
}


def _resolve_network(network: str) -> NetworkProfile:
    try:
        return NetworkResolver(RunConfig.from_env()).resolve(network)
    except ConfigurationError as e:
        raise click.ClickException(str(e))


def _print_deployment_info(profile, deployer, tasks_file, deployments_dir, verify) -> None:
    print(
        f"Account: {deployer.address}",
        f"Tasks: {tasks_file}",
        f"Deployments: {deployments_dir}",
        f"Verify: {verify and verification_enabled(profile)}",
        f"Network: {profile.name}",
        f"Chain ID: {profile.chain_id}",
        f"Live: {profile.is_live}",
        sep="\n",
    )


def _display_report(report: RunReport) -> None:
    click.secho(f"\nDeployments on {report.network}", fg="green")
    for entry in report:
        color = STATUS_COLORS.get(entry.status, "magenta")
        line = f"    {entry.name}: {entry.status}"
        if entry.address:
            line += f" {entry.address}"
        click.secho(line, fg=color)
        if entry.detail:
            click.secho(f"        {entry.detail}", fg=color)


@click.group()
def cli():
    """Idempotent, dependency-ordered smart-contract deployments."""
    load_environment()


@cli.command()
@network_option
@tags_option
@tasks_file_option
@artifacts_dir_option
@deployments_dir_option
@autosign_option
@verify_option
@timeout_option
def deploy(network, tags, tasks_file, artifacts_dir, deployments_dir, autosign, verify, timeout):
    """Deploy every selected task that is new or has changed."""
    profile = _resolve_network(network)
    try:
        tasks = load_tasks(tasks_file)
        accounts = derive_accounts(profile.account_strategy)
        artifacts = ArtifactStore(artifacts_dir)
        store = DeploymentStore(deployments_dir)
        executor = DeploymentExecutor(
            artifacts=artifacts,
            chain=ChainClient(profile, timeout=timeout),
            accounts=accounts,
            autosign=autosign,
        )

        verifier = None
        if verify and verification_enabled(profile):
            check_explorer_api_key(profile)
            verifier = VerificationSubmitter(artifacts)

        pipeline = DeploymentPipeline(
            profile=profile, store=store, executor=executor, verifier=verifier
        )
        # nothing is sent before every task, tag and artifact checks out
        pipeline.plan(tasks, tags)
        deployer = get_named_account(accounts, DEPLOYER)
        _print_deployment_info(profile, deployer, tasks_file, deployments_dir, verify)
        if profile.is_live and not autosign:
            confirm("Continue Y/N? ")

        report = pipeline.run(tasks, tags)
    except ConfigurationError as e:
        raise click.ClickException(str(e))

    _display_report(report)
    if not report.success:
        sys.exit(1)


@cli.command(name="list")
@click.option("--network", "-n", help="Only list deployments on this network.")
@deployments_dir_option
def list_contracts(network, deployments_dir):
    """List recorded deployments, grouped by network."""
    store = DeploymentStore(deployments_dir)
    networks = [network] if network else store.networks()
    for network_name in networks:
        records = store.records(network_name)
        if not records:
            continue
        click.secho(f"\n{network_name} (chain {records[0].chain_id})", fg="green")
        for index, record in enumerate(records, start=1):
            click.secho(f"    {index}. {record.name} {record.address}", fg="cyan")


@cli.command()
@network_option
@contract_names_option
@artifacts_dir_option
@deployments_dir_option
def verify(network, contract_names, artifacts_dir, deployments_dir):
    """Verify recorded deployments on the network's block explorer."""
    profile = _resolve_network(network)
    if not verification_enabled(profile):
        raise click.ClickException(f"Verification is not available on {network}.")

    store = DeploymentStore(deployments_dir)
    records = list()
    for contract_name in contract_names:
        record = store.get(network, contract_name)
        if record is None:
            raise click.ClickException(
                f"Contract '{contract_name}' not found in '{deployments_dir}' for {network}"
            )
        records.append(record)

    verifier = VerificationSubmitter(ArtifactStore(artifacts_dir))
    outcomes = [verifier.submit(record, record.name, profile) for record in records]
    if not all(outcome.ok for outcome in outcomes):
        sys.exit(1)


@cli.command()
@network_option
@click.option(
    "--count", "-c", help="Number of accounts to derive from the mnemonic.", type=MinInt(1)
)
def accounts(network, count):
    """Show the signer accounts a deployment would use."""
    profile = _resolve_network(network)
    strategy = profile.account_strategy
    if count and isinstance(strategy, MnemonicDerivation):
        strategy = strategy._replace(count=count)

    try:
        signers = derive_accounts(strategy)
    except ConfigurationError as e:
        raise click.ClickException(str(e))

    names = {index: name for name, index in NAMED_ACCOUNTS.items()}
    for index, account in enumerate(signers):
        label = f" ({names[index]})" if index in names else ""
        print(f"Account {index}{label}: {account.address}")


@cli.command()
@network_option
@deployments_dir_option
@click.option(
    "--output",
    "-o",
    help="Registry file to write.",
    type=click.Path(dir_okay=False, path_type=Path),
    required=True,
)
def export(network, deployments_dir, output):
    """Export the recorded deployments of a network as a single registry file."""
    _resolve_network(network)
    export_registry(store=DeploymentStore(deployments_dir), network=network, filepath=output)


if __name__ == "__main__":
    cli()
