from types import SimpleNamespace

import pytest
from requests.exceptions import ConnectionError

from chaindeploy.artifacts import ArtifactStore
from chaindeploy.chain import ChainClient
from chaindeploy.constants import VERIFICATION_BLOCK_CONFIRMATIONS
from chaindeploy.exceptions import (
    ArtifactNotFoundError,
    ConfirmationTimeoutError,
    DeploymentTransactionError,
    UnconfirmedDeploymentError,
    UnresolvedVariableError,
)
from chaindeploy.executor import DeploymentExecutor, TaskState, needs_deployment
from chaindeploy.params import DeploymentTask, tasks_from_config
from tests.conftest import GREETER_ABI, HARDHAT_DEPLOYER, write_artifact
from tests.test_chain import CONTRACT_ADDRESS, TX_HASH, FakeEth
from tests.test_registry import make_record


def test_first_run_deploys(executor, chain, store, local_profile, greeter_task):
    outcome = executor.execute(greeter_task, local_profile, store)

    assert outcome.recorded
    assert outcome.history == (
        TaskState.PENDING,
        TaskState.FINGERPRINTING,
        TaskState.DEPLOYING,
        TaskState.CONFIRMING,
        TaskState.RECORDED,
    )
    assert chain.sent_names() == ["Greeter"]
    assert chain.sent[0].args == ["Hello, World!"]
    assert chain.sent[0].sender == HARDHAT_DEPLOYER

    record = store.get("hardhat", "Greeter")
    assert record == outcome.record
    assert record.confirmations == 0
    assert record.chain_id == 31337
    assert record.constructor_args == ["Hello, World!"]
    assert record.deployer == HARDHAT_DEPLOYER
    assert store.get_pending("hardhat", "Greeter") is None


def test_second_run_skips(executor, chain, store, local_profile, greeter_task):
    first = executor.execute(greeter_task, local_profile, store)
    second = executor.execute(greeter_task, local_profile, store)

    assert second.skipped
    assert second.history[-1] == TaskState.SKIPPED
    assert TaskState.DEPLOYING not in second.history
    assert len(chain.sent) == 1
    assert second.record == first.record


def test_changed_bytecode_redeploys(
    executor, chain, store, local_profile, greeter_task, artifacts_dir
):
    first = executor.execute(greeter_task, local_profile, store)
    write_artifact(artifacts_dir, "Greeter", GREETER_ABI, "0x6080604052600a")
    executor.artifacts = ArtifactStore(artifacts_dir)

    second = executor.execute(greeter_task, local_profile, store)
    assert second.recorded
    assert len(chain.sent) == 2
    assert second.record.address != first.record.address
    assert second.record.fingerprint != first.record.fingerprint
    assert store.get("hardhat", "Greeter").address == second.record.address


def test_changed_args_redeploy(executor, chain, store, local_profile, greeter_task):
    executor.execute(greeter_task, local_profile, store)
    changed = DeploymentTask("Greeter", constructor_args=["Hola, Mundo!"])

    outcome = executor.execute(changed, local_profile, store)
    assert outcome.recorded
    assert len(chain.sent) == 2
    assert store.get("hardhat", "Greeter").constructor_args == ["Hola, Mundo!"]


def test_restarted_local_node_redeploys(executor, chain, store, local_profile, greeter_task):
    executor.execute(greeter_task, local_profile, store)
    chain.restart()

    outcome = executor.execute(greeter_task, local_profile, store)
    assert outcome.recorded
    assert len(chain.sent) == 2


def test_live_network_waits_for_confirmations(
    executor, chain, store, live_profile, greeter_task
):
    outcome = executor.execute(greeter_task, live_profile, store)
    assert outcome.recorded
    assert chain.waited == [VERIFICATION_BLOCK_CONFIRMATIONS]
    assert outcome.record.confirmations == VERIFICATION_BLOCK_CONFIRMATIONS


def test_local_network_does_not_wait(executor, chain, store, local_profile, greeter_task):
    executor.execute(greeter_task, local_profile, store)
    assert chain.waited == [0]


def test_rejected_transaction(executor, chain, store, local_profile, greeter_task):
    chain.failures["Greeter"] = DeploymentTransactionError("insufficient funds")

    outcome = executor.execute(greeter_task, local_profile, store)
    assert outcome.failed
    assert outcome.history[-2:] == (TaskState.DEPLOYING, TaskState.FAILED)
    assert isinstance(outcome.error, DeploymentTransactionError)
    assert store.get("hardhat", "Greeter") is None
    assert store.get_pending("hardhat", "Greeter") is None


def test_timeout_is_resumed_on_next_run(executor, chain, store, live_profile, greeter_task):
    chain.stall_next = True
    outcome = executor.execute(greeter_task, live_profile, store)

    assert outcome.failed
    assert outcome.history[-2:] == (TaskState.CONFIRMING, TaskState.FAILED)
    assert isinstance(outcome.error, ConfirmationTimeoutError)
    assert outcome.error.tx_hash == chain.sent[0].tx_hash
    assert store.get("goerli", "Greeter") is None
    pending = store.get_pending("goerli", "Greeter")
    assert pending.tx_hash == chain.sent[0].tx_hash

    # the sent transaction is waited for again instead of deploying twice
    resumed = executor.execute(greeter_task, live_profile, store)
    assert resumed.recorded
    assert len(chain.sent) == 1
    assert resumed.record.tx_hash == pending.tx_hash
    assert store.get_pending("goerli", "Greeter") is None


def test_stale_pending_transaction_is_not_resumed(
    executor, chain, store, live_profile, greeter_task
):
    chain.stall_next = True
    executor.execute(greeter_task, live_profile, store)

    changed = DeploymentTask("Greeter", constructor_args=["Hola, Mundo!"])
    outcome = executor.execute(changed, live_profile, store)
    assert outcome.recorded
    assert len(chain.sent) == 2
    assert outcome.record.tx_hash == chain.sent[1].tx_hash


def test_missing_artifact_fails_task(executor, chain, store, local_profile):
    outcome = executor.execute(DeploymentTask("Missing"), local_profile, store)
    assert outcome.failed
    assert isinstance(outcome.error, ArtifactNotFoundError)
    assert outcome.history == (TaskState.PENDING, TaskState.FINGERPRINTING, TaskState.FAILED)
    assert chain.sent == []


def test_unresolved_contract_variable(executor, chain, store, local_profile):
    config = {"contracts": ["Greeter", {"Registry": {"constructor": ["$Greeter"]}}]}
    registry = tasks_from_config(config)[1]
    outcome = executor.execute(registry, local_profile, store)
    assert outcome.failed
    assert isinstance(outcome.error, UnresolvedVariableError)
    assert chain.sent == []


def test_live_deployment_asks_for_confirmation(
    artifacts, chain, accounts, store, live_profile, greeter_task, monkeypatch
):
    prompts = list()

    def answer(prompt):
        prompts.append(prompt)
        return "y"

    monkeypatch.setattr("builtins.input", answer)
    executor = DeploymentExecutor(
        artifacts=artifacts, chain=chain, accounts=accounts, autosign=False
    )
    outcome = executor.execute(greeter_task, live_profile, store)

    assert outcome.recorded
    assert prompts == ["Deploy Greeter to goerli Y/N? "]


def test_declined_live_deployment_aborts(
    artifacts, chain, accounts, store, live_profile, greeter_task, monkeypatch
):
    monkeypatch.setattr("builtins.input", lambda prompt: "n")
    executor = DeploymentExecutor(
        artifacts=artifacts, chain=chain, accounts=accounts, autosign=False
    )
    with pytest.raises(SystemExit):
        executor.execute(greeter_task, live_profile, store)
    assert chain.sent == []


def test_dropped_pending_transaction_is_sent_again(
    executor, chain, store, live_profile, greeter_task
):
    chain.stall_next = True
    executor.execute(greeter_task, live_profile, store)
    chain.drop(chain.sent[0].tx_hash)

    outcome = executor.execute(greeter_task, live_profile, store)
    assert outcome.recorded
    assert len(chain.sent) == 2
    assert outcome.record.tx_hash == chain.sent[1].tx_hash
    assert store.get_pending("goerli", "Greeter") is None

def test_needs_deployment():
    record = make_record(constructor_args=["Hello, World!", "0x01"])
    fingerprint = record.fingerprint
    assert needs_deployment(None, fingerprint, [])
    assert not needs_deployment(record, fingerprint, ["Hello, World!", b"\x01"])
    assert needs_deployment(record, "0x" + "22" * 32, ["Hello, World!", b"\x01"])
    assert needs_deployment(record, fingerprint, ["Hello, World!", b"\x02"])


@pytest.fixture()
def node():
    return FakeEth()


@pytest.fixture()
def node_executor(artifacts, node, live_profile):
    """An executor talking to a scripted node through the real ChainClient."""

    def advance(seconds):
        node.block_number += 1

    signer = SimpleNamespace(
        address=HARDHAT_DEPLOYER,
        sign_transaction=lambda tx: SimpleNamespace(raw_transaction=b"signed"),
    )
    client = ChainClient(live_profile, w3=SimpleNamespace(eth=node), sleep=advance)
    return DeploymentExecutor(artifacts=artifacts, chain=client, accounts=[signer])


def test_receipt_lookup_failure_keeps_pending(
    node_executor, node, store, live_profile, greeter_task
):
    node.receipt_error = ConnectionError("connection reset by peer")
    outcome = node_executor.execute(greeter_task, live_profile, store)

    assert outcome.failed
    assert outcome.history[-2:] == (TaskState.CONFIRMING, TaskState.FAILED)
    assert isinstance(outcome.error, UnconfirmedDeploymentError)
    assert store.get_pending("goerli", "Greeter").tx_hash == TX_HASH

    # the node recovers; the broadcast transaction is reconciled, not sent twice
    node.receipt_error = None
    resumed = node_executor.execute(greeter_task, live_profile, store)
    assert resumed.recorded
    assert node.raw == [b"signed"]
    assert resumed.record.tx_hash == TX_HASH
    assert resumed.record.address == CONTRACT_ADDRESS
    assert store.get_pending("goerli", "Greeter") is None


def test_block_number_failure_keeps_pending(
    node_executor, node, store, live_profile, greeter_task
):
    node.block_error = ConnectionError("connection reset by peer")
    outcome = node_executor.execute(greeter_task, live_profile, store)

    assert outcome.failed
    assert isinstance(outcome.error, UnconfirmedDeploymentError)
    assert store.get("goerli", "Greeter") is None
    assert store.get_pending("goerli", "Greeter").tx_hash == TX_HASH

    node.block_error = None
    resumed = node_executor.execute(greeter_task, live_profile, store)
    assert resumed.recorded
    assert len(node.raw) == 1


def test_reverted_transaction_clears_pending(
    node_executor, node, store, live_profile, greeter_task
):
    node.receipt = dict(node.receipt, status=0)
    outcome = node_executor.execute(greeter_task, live_profile, store)

    assert outcome.failed
    assert isinstance(outcome.error, DeploymentTransactionError)
    assert store.get_pending("goerli", "Greeter") is None


def test_transaction_unknown_to_node_is_sent_again(
    node_executor, node, store, live_profile, greeter_task
):
    node.receipt_error = ConnectionError("connection reset by peer")
    node_executor.execute(greeter_task, live_profile, store)

    node.receipt_error = None
    node.known = False
    outcome = node_executor.execute(greeter_task, live_profile, store)
    assert outcome.recorded
    assert node.raw == [b"signed", b"signed"]
