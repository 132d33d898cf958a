import json
from pathlib import Path
from typing import NamedTuple

import pytest
from eth_utils import encode_hex, keccak, to_checksum_address

from chaindeploy.accounts import derive_accounts
from chaindeploy.artifacts import ArtifactStore
from chaindeploy.chain import DeploymentReceipt
from chaindeploy.constants import DEFAULT_MNEMONIC
from chaindeploy.exceptions import ConfirmationTimeoutError
from chaindeploy.executor import DeploymentExecutor
from chaindeploy.networks import MnemonicDerivation, NetworkResolver, RunConfig
from chaindeploy.params import DeploymentTask
from chaindeploy.registry import DeploymentStore
from chaindeploy.verify import VerificationOutcome, VerificationStatus

# Common constants
HARDHAT_DEPLOYER = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
HARDHAT_FEE_COLLECTOR = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
SOLC_VERSION = "0.8.15+commit.e14f2714"
EXPLORER_API_KEY = "TESTKEY"
TASKS_FILEPATH = Path(__file__).parent.parent / "deploy" / "tasks.yml"

GREETER_BYTECODE = "0x608060405234801561001057600080fd5b50"
DROP_ALBUM_BYTECODE = "0x608060405234801561001057600080fd5b5061"
REGISTRY_BYTECODE = "0x608060405234801561001057600080fd5b506100"

GREETER_ABI = [
    {
        "type": "constructor",
        "inputs": [{"internalType": "string", "name": "_greeting", "type": "string"}],
        "stateMutability": "nonpayable",
    },
    {
        "type": "function",
        "name": "greet",
        "inputs": [],
        "outputs": [{"internalType": "string", "name": "", "type": "string"}],
        "stateMutability": "view",
    },
]

DROP_ALBUM_ABI = [
    {
        "type": "constructor",
        "inputs": [
            {"internalType": "string", "name": "name", "type": "string"},
            {"internalType": "string", "name": "symbol", "type": "string"},
            {"internalType": "address", "name": "owner", "type": "address"},
            {"internalType": "uint96", "name": "royalty", "type": "uint96"},
        ],
        "stateMutability": "nonpayable",
    },
]

# depends on another contract by address
REGISTRY_ABI = [
    {
        "type": "constructor",
        "inputs": [{"internalType": "address", "name": "_greeter", "type": "address"}],
        "stateMutability": "nonpayable",
    },
]


# Utility functions
def write_artifact(artifacts_dir, name, abi, bytecode, metadata=None, build_info=True):
    """Writes a hardhat-style artifact, with its debug file and build-info."""
    source_name = f"contracts/{name}.sol"
    metadata = metadata or json.dumps({"compiler": {"version": SOLC_VERSION}, "name": name})
    contract_dir = Path(artifacts_dir) / source_name
    contract_dir.mkdir(parents=True, exist_ok=True)

    artifact_filepath = contract_dir / f"{name}.json"
    artifact = {
        "_format": "hh-sol-artifact-1",
        "contractName": name,
        "sourceName": source_name,
        "abi": abi,
        "bytecode": bytecode,
        "deployedBytecode": bytecode,
        "linkReferences": {},
        "deployedLinkReferences": {},
    }
    artifact_filepath.write_text(json.dumps(artifact))
    if not build_info:
        return artifact_filepath

    build_id = name.lower()
    build_info_dir = Path(artifacts_dir) / "build-info"
    build_info_dir.mkdir(parents=True, exist_ok=True)
    (build_info_dir / f"{build_id}.json").write_text(
        json.dumps(
            {
                "id": build_id,
                "solcVersion": SOLC_VERSION.split("+")[0],
                "solcLongVersion": SOLC_VERSION,
                "input": {
                    "language": "Solidity",
                    "sources": {source_name: {"content": f"contract {name} {{}}"}},
                    "settings": {"optimizer": {"enabled": True, "runs": 200}},
                },
                "output": {"contracts": {source_name: {name: {"metadata": metadata}}}},
            }
        )
    )
    (contract_dir / f"{name}.dbg.json").write_text(
        json.dumps(
            {"_format": "hh-sol-dbg-1", "buildInfo": f"../../build-info/{build_id}.json"}
        )
    )
    return artifact_filepath


class SentTransaction(NamedTuple):
    contract_name: str
    args: list
    sender: str
    tx_hash: str


class FakeChain:
    """In-memory stand-in for ChainClient: every creation transaction mines instantly."""

    def __init__(self):
        self.sent = list()
        self.waited = list()
        self.code = dict()
        self.receipts = dict()
        self.block_number = 0
        self.failures = dict()
        self.stall_next = False
        self.dropped = set()

    def send_deployment(self, artifact, args, account):
        if artifact.name in self.failures:
            raise self.failures[artifact.name]
        nonce = len(self.sent)
        address = to_checksum_address(
            encode_hex(keccak(text=f"{account.address}:{nonce}")[-20:])
        )
        tx_hash = encode_hex(keccak(text=f"tx:{nonce}"))
        self.sent.append(SentTransaction(artifact.name, list(args), account.address, tx_hash))
        self.block_number += 1
        self.receipts[tx_hash] = (address, self.block_number, account.address)
        return tx_hash

    def await_deployment(self, tx_hash, confirmations):
        if self.stall_next:
            self.stall_next = False
            raise ConfirmationTimeoutError(f"Transaction {tx_hash} timed out", tx_hash=tx_hash)
        self.waited.append(confirmations)
        address, block_number, sender = self.receipts[tx_hash]
        self.code[address] = True
        return DeploymentReceipt(
            address=address,
            tx_hash=tx_hash,
            block_number=block_number,
            confirmations=confirmations,
            deployer=sender,
        )

    def is_deployed(self, address):
        return self.code.get(address, False)

    def transaction_exists(self, tx_hash):
        return tx_hash in self.receipts and tx_hash not in self.dropped

    def drop(self, tx_hash):
        """Simulates a transaction evicted from the mempool before it was mined."""
        self.dropped.add(tx_hash)

    def restart(self):
        """Simulates a restarted local node: all code is gone."""
        self.code.clear()

    def sent_names(self):
        return [tx.contract_name for tx in self.sent]


class FakeVerifier:
    def __init__(self, status=VerificationStatus.VERIFIED, message=""):
        self.outcome = VerificationOutcome(status=status, message=message)
        self.calls = list()

    def submit(self, record, contract_name, profile):
        self.calls.append((contract_name, record.address, profile.name))
        return self.outcome


# Fixtures
@pytest.fixture(scope="session")
def accounts():
    return derive_accounts(MnemonicDerivation(mnemonic=DEFAULT_MNEMONIC, count=2))


@pytest.fixture()
def deployer(accounts):
    return accounts[0]


@pytest.fixture()
def artifacts_dir(tmp_path):
    directory = tmp_path / "artifacts"
    write_artifact(directory, "Greeter", GREETER_ABI, GREETER_BYTECODE)
    write_artifact(directory, "DropAlbum", DROP_ALBUM_ABI, DROP_ALBUM_BYTECODE)
    write_artifact(directory, "Registry", REGISTRY_ABI, REGISTRY_BYTECODE)
    return directory


@pytest.fixture()
def artifacts(artifacts_dir):
    return ArtifactStore(artifacts_dir)


@pytest.fixture()
def deployments_dir(tmp_path):
    return tmp_path / "deployments"


@pytest.fixture()
def store(deployments_dir):
    return DeploymentStore(deployments_dir)


@pytest.fixture()
def resolver():
    return NetworkResolver(RunConfig(explorer_api_keys={"ETHERSCAN_API_KEY": EXPLORER_API_KEY}))


@pytest.fixture()
def local_profile(resolver):
    return resolver.resolve("hardhat")


@pytest.fixture()
def live_profile(resolver):
    return resolver.resolve("goerli")


@pytest.fixture()
def chain():
    return FakeChain()


@pytest.fixture()
def executor(artifacts, chain, accounts):
    return DeploymentExecutor(artifacts=artifacts, chain=chain, accounts=accounts, autosign=True)


@pytest.fixture()
def greeter_task():
    return DeploymentTask(
        "Greeter", constructor_args=["Hello, World!"], parameter_names=["_greeting"]
    )


@pytest.fixture()
def drop_album_task():
    return DeploymentTask(
        "DropAlbum",
        constructor_args=["TestDropAlbum", "TDA", HARDHAT_DEPLOYER, 500],
        parameter_names=["name", "symbol", "owner", "royalty"],
    )
