import time
from typing import Any, Callable, NamedTuple, Sequence

from eth_account.signers.local import LocalAccount
from eth_utils import encode_hex, to_checksum_address
from requests.exceptions import RequestException
from web3 import Web3
from web3.exceptions import TimeExhausted, TransactionNotFound, Web3Exception

from chaindeploy.artifacts import Artifact
from chaindeploy.constants import CONFIRMATION_POLL_INTERVAL, CONFIRMATION_TIMEOUT
from chaindeploy.exceptions import (
    ConfirmationTimeoutError,
    DeploymentTransactionError,
    UnconfirmedDeploymentError,
)
from chaindeploy.networks import NetworkProfile


class DeploymentReceipt(NamedTuple):
    address: str
    tx_hash: str
    block_number: int
    confirmations: int
    deployer: str


class ChainClient:
    """
    Sends contract-creation transactions over JSON-RPC and blocks until they
    are buried under the requested number of blocks.
    """

    def __init__(
        self,
        profile: NetworkProfile,
        w3: Web3 = None,
        timeout: float = CONFIRMATION_TIMEOUT,
        poll_interval: float = CONFIRMATION_POLL_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.profile = profile
        self.w3 = w3 if w3 is not None else Web3(Web3.HTTPProvider(profile.rpc_url))
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._sleep = sleep
        self._clock = clock

    def send_deployment(
        self, artifact: Artifact, args: Sequence[Any], account: LocalAccount
    ) -> str:
        """Signs and broadcasts a creation transaction; returns its hash."""
        try:
            contract = self.w3.eth.contract(abi=artifact.abi, bytecode=artifact.bytecode)
            tx = contract.constructor(*args).build_transaction(
                {
                    "from": account.address,
                    "nonce": self.w3.eth.get_transaction_count(account.address),
                    "chainId": self.profile.chain_id,
                }
            )
            signed = account.sign_transaction(tx)
            tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
        except (Web3Exception, ValueError, TypeError, RequestException) as e:
            raise DeploymentTransactionError(
                f"Creation transaction for {artifact.name} was rejected: {e}"
            ) from e
        return encode_hex(tx_hash)

    def await_deployment(self, tx_hash: str, confirmations: int) -> DeploymentReceipt:
        """Waits for a creation transaction to be mined and then for the requested depth."""
        try:
            receipt = self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.timeout, poll_latency=self.poll_interval
            )
        except TimeExhausted as e:
            raise ConfirmationTimeoutError(
                f"Transaction {tx_hash} was not mined within {self.timeout}s", tx_hash=tx_hash
            ) from e
        except (Web3Exception, ValueError, RequestException) as e:
            # already broadcast, so it may still be mined
            raise UnconfirmedDeploymentError(
                f"Could not fetch receipt for {tx_hash}: {e}", tx_hash=tx_hash
            ) from e

        if receipt["status"] != 1:
            raise DeploymentTransactionError(f"Creation transaction {tx_hash} reverted.")

        block_number = int(receipt["blockNumber"])
        depth = self.wait_for_confirmations(block_number, confirmations, tx_hash=tx_hash)
        return DeploymentReceipt(
            address=to_checksum_address(receipt["contractAddress"]),
            tx_hash=tx_hash,
            block_number=block_number,
            confirmations=depth,
            deployer=to_checksum_address(receipt["from"]),
        )

    def wait_for_confirmations(
        self, block_number: int, confirmations: int, tx_hash: str = None
    ) -> int:
        """Blocks until the block is `confirmations` deep; returns the observed depth."""
        if confirmations <= 0:
            return 0  # auto-mined networks do not wait
        deadline = self._clock() + self.timeout
        while True:
            try:
                head = self.w3.eth.block_number
            except (Web3Exception, ValueError, RequestException) as e:
                raise UnconfirmedDeploymentError(
                    f"Could not fetch block number while confirming {tx_hash}: {e}",
                    tx_hash=tx_hash,
                ) from e
            depth = head - block_number + 1
            if depth >= confirmations:
                return depth
            if self._clock() >= deadline:
                raise ConfirmationTimeoutError(
                    f"Transaction {tx_hash} reached {depth} of {confirmations} "
                    f"confirmations within {self.timeout}s",
                    tx_hash=tx_hash,
                )
            self._sleep(self.poll_interval)

    def is_deployed(self, address: str) -> bool:
        """Returns True if there is code at the address."""
        try:
            code = self.w3.eth.get_code(to_checksum_address(address))
        except (Web3Exception, ValueError, RequestException) as e:
            raise DeploymentTransactionError(f"Could not fetch code at {address}: {e}") from e
        return len(code) > 0

    def transaction_exists(self, tx_hash: str) -> bool:
        """Returns False if the node does not know the transaction, e.g. it was dropped."""
        try:
            self.w3.eth.get_transaction(tx_hash)
        except TransactionNotFound:
            return False
        except (Web3Exception, ValueError, RequestException) as e:
            raise UnconfirmedDeploymentError(
                f"Could not look up pending transaction {tx_hash}: {e}", tx_hash=tx_hash
            ) from e
        return True
