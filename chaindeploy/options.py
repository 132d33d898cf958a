from pathlib import Path

import click

from chaindeploy.constants import (
    ALL_TAG,
    ARTIFACTS_DIR,
    CONFIRMATION_TIMEOUT,
    DEPLOYMENTS_DIR,
    SUPPORTED_NETWORKS,
    TASKS_FILEPATH,
)
from chaindeploy.types import MinInt, Tag

network_option = click.option(
    "--network",
    "-n",
    help=f"Network name; one of {', '.join(SUPPORTED_NETWORKS)}.",
    type=click.STRING,
    required=True,
)

tags_option = click.option(
    "--tags",
    "-t",
    help="Only deploy tasks with this tag (and what they depend on). Repeatable.",
    type=Tag(),
    multiple=True,
    default=(ALL_TAG,),
    show_default=True,
)

tasks_file_option = click.option(
    "--tasks-file",
    "-f",
    help="YAML file declaring the deployment tasks.",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    default=TASKS_FILEPATH,
    show_default=True,
)

artifacts_dir_option = click.option(
    "--artifacts-dir",
    help="Directory holding compiled contract artifacts.",
    type=click.Path(file_okay=False, path_type=Path),
    default=ARTIFACTS_DIR,
    show_default=True,
)

deployments_dir_option = click.option(
    "--deployments-dir",
    help="Directory holding deployment records.",
    type=click.Path(file_okay=False, path_type=Path),
    default=DEPLOYMENTS_DIR,
    show_default=True,
)

autosign_option = click.option(
    "--autosign",
    help="Do not ask for confirmation before sending transactions.",
    is_flag=True,
    default=False,
)

verify_option = click.option(
    "--verify/--no-verify",
    help="Publish new deployments to the block explorer on live networks.",
    default=True,
    show_default=True,
)

timeout_option = click.option(
    "--timeout",
    help="Seconds to wait for a deployment to be mined and confirmed.",
    type=MinInt(1),
    default=CONFIRMATION_TIMEOUT,
    show_default=True,
)

contract_names_option = click.option(
    "--contract-name",
    "-c",
    "contract_names",
    help="Contract to verify. Repeatable.",
    type=click.STRING,
    required=True,
    multiple=True,
)
