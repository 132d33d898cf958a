from enum import Enum
from typing import Any, List, NamedTuple, Optional, Sequence, Tuple

from eth_account.signers.local import LocalAccount

from chaindeploy.accounts import get_named_account
from chaindeploy.artifacts import Artifact, ArtifactStore
from chaindeploy.chain import ChainClient
from chaindeploy.confirm import confirm_resolution
from chaindeploy.constants import DEPLOYER
from chaindeploy.exceptions import DeploymentError, DeploymentTransactionError
from chaindeploy.networks import NetworkProfile, required_confirmations
from chaindeploy.params import DeploymentTask, ResolutionContext
from chaindeploy.registry import (
    DeploymentRecord,
    DeploymentStore,
    PendingDeployment,
    normalize_args,
)


class TaskState(Enum):
    PENDING = "pending"
    FINGERPRINTING = "fingerprinting"
    SKIPPED = "skipped"
    DEPLOYING = "deploying"
    CONFIRMING = "confirming"
    RECORDED = "recorded"
    FAILED = "failed"


class DeploymentOutcome(NamedTuple):
    task: DeploymentTask
    state: TaskState
    record: Optional[DeploymentRecord] = None
    error: Optional[Exception] = None
    history: Tuple[TaskState, ...] = ()

    @property
    def skipped(self) -> bool:
        return self.state == TaskState.SKIPPED

    @property
    def recorded(self) -> bool:
        return self.state == TaskState.RECORDED

    @property
    def failed(self) -> bool:
        return self.state == TaskState.FAILED


def needs_deployment(
    record: Optional[DeploymentRecord], fingerprint: str, constructor_args: Sequence[Any]
) -> bool:
    """
    The idempotency check. A deployment is current only if a record exists
    with the same artifact fingerprint and the same constructor arguments;
    a difference in either one means the contract must be deployed again.
    """
    if record is None:
        return True
    if record.fingerprint != fingerprint:
        return True
    return record.constructor_args != normalize_args(list(constructor_args))


class DeploymentExecutor:
    """Runs one deployment task at a time against a resolved network."""

    def __init__(
        self,
        artifacts: ArtifactStore,
        chain: ChainClient,
        accounts: List[LocalAccount],
        autosign: bool = True,
    ):
        self.artifacts = artifacts
        self.chain = chain
        self.accounts = accounts
        self.autosign = autosign

    def _is_current(
        self,
        record: Optional[DeploymentRecord],
        fingerprint: str,
        args: Sequence[Any],
        profile: NetworkProfile,
    ) -> bool:
        if needs_deployment(record, fingerprint, args):
            return False
        if not profile.is_live and not self.chain.is_deployed(record.address):
            # the local node was restarted since the record was written
            print(f"(i) No code at {record.address} for {record.name} on {profile.name}")
            return False
        return True

    def _send(
        self,
        task: DeploymentTask,
        artifact: Artifact,
        fingerprint: str,
        args: List[Any],
        profile: NetworkProfile,
        store: DeploymentStore,
    ) -> str:
        """Returns the hash of the creation transaction to wait for, reusing a pending one."""
        pending = store.get_pending(profile.name, task.contract_name)
        if (
            pending is not None
            and pending.fingerprint == fingerprint
            and pending.constructor_args == normalize_args(args)
        ):
            if self.chain.transaction_exists(pending.tx_hash):
                print(
                    f"(i) Resuming pending deployment of {task.contract_name} ({pending.tx_hash})"
                )
                return pending.tx_hash
            print(f"(i) Pending transaction {pending.tx_hash} was dropped; deploying again")
            store.clear_pending(profile.name, task.contract_name)

        if profile.is_live and not self.autosign:
            confirm_resolution(task.named_args(args), task.contract_name, profile.name)

        deployer = get_named_account(self.accounts, DEPLOYER)
        tx_hash = self.chain.send_deployment(artifact, args, deployer)
        print(f"(i) Deploying {task.contract_name} (tx: {tx_hash})...")
        store.put_pending(
            PendingDeployment(
                name=task.contract_name,
                network=profile.name,
                tx_hash=tx_hash,
                fingerprint=fingerprint,
                constructor_args=args,
            )
        )
        return tx_hash

    def execute(
        self, task: DeploymentTask, profile: NetworkProfile, store: DeploymentStore
    ) -> DeploymentOutcome:
        history = [TaskState.PENDING]
        try:
            history.append(TaskState.FINGERPRINTING)
            artifact = self.artifacts.get(task.contract_name)
            fingerprint = artifact.fingerprint
            record = store.get(profile.name, task.contract_name)
            context = ResolutionContext(network=profile.name, accounts=self.accounts, store=store)
            args = task.resolve_args(context)

            if self._is_current(record, fingerprint, args, profile):
                history.append(TaskState.SKIPPED)
                print(f"(i) Reusing {task.contract_name} at {record.address}")
                return DeploymentOutcome(
                    task=task, state=TaskState.SKIPPED, record=record, history=tuple(history)
                )

            history.append(TaskState.DEPLOYING)
            tx_hash = self._send(task, artifact, fingerprint, args, profile, store)

            history.append(TaskState.CONFIRMING)
            confirmations = required_confirmations(profile)
            if confirmations:
                print(f"(i) Waiting for {confirmations} confirmations...")
            try:
                receipt = self.chain.await_deployment(tx_hash, confirmations)
            except DeploymentTransactionError:
                store.clear_pending(profile.name, task.contract_name)
                raise

            new_record = DeploymentRecord(
                name=task.contract_name,
                network=profile.name,
                chain_id=profile.chain_id,
                address=receipt.address,
                fingerprint=fingerprint,
                constructor_args=normalize_args(args),
                confirmations=receipt.confirmations,
                tx_hash=receipt.tx_hash,
                block_number=receipt.block_number,
                deployer=receipt.deployer,
                abi=artifact.abi,
            )
            store.put(new_record)
            store.clear_pending(profile.name, task.contract_name)
            history.append(TaskState.RECORDED)
            print(f"(i) Deployed {task.contract_name} at {receipt.address}")
            return DeploymentOutcome(
                task=task, state=TaskState.RECORDED, record=new_record, history=tuple(history)
            )

        except DeploymentError as e:
            history.append(TaskState.FAILED)
            print(f"ERROR: {task.contract_name} failed: {e}")
            return DeploymentOutcome(
                task=task, state=TaskState.FAILED, error=e, history=tuple(history)
            )
