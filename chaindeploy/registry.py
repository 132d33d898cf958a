from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Optional

from eth_typing import ChecksumAddress
from eth_utils import encode_hex, to_checksum_address

from chaindeploy.artifacts import ABI
from chaindeploy.constants import DEPLOYMENTS_DIR
from chaindeploy.exceptions import ConfigurationError
from chaindeploy.utils import _load_json, _write_json

ChainId = int
ContractName = str
NetworkName = str


class DeploymentRecord(NamedTuple):
    """The last confirmed deployment of a contract on a network."""

    name: ContractName
    network: NetworkName
    chain_id: ChainId
    address: ChecksumAddress
    fingerprint: str
    constructor_args: List[Any]
    confirmations: int
    tx_hash: str
    block_number: int
    deployer: str
    abi: ABI


class PendingDeployment(NamedTuple):
    """A creation transaction that was sent but never confirmed."""

    name: ContractName
    network: NetworkName
    tx_hash: str
    fingerprint: str
    constructor_args: List[Any]


def normalize_args(args: Any) -> Any:
    """Returns a JSON-compatible snapshot of constructor arguments, used for comparison."""
    if isinstance(args, (bytes, bytearray)):
        return encode_hex(bytes(args))
    if isinstance(args, (list, tuple)):
        return [normalize_args(arg) for arg in args]
    if isinstance(args, dict):
        return {str(key): normalize_args(value) for key, value in args.items()}
    return args


def _sorted_abi(abi: ABI) -> ABI:
    entries = list(abi)
    entries.sort(key=lambda d: (d["type"], d.get("name", "")))
    return entries


def _record_to_dict(record: DeploymentRecord) -> Dict[str, Any]:
    return {
        "address": record.address,
        "chain_id": record.chain_id,
        "fingerprint": record.fingerprint,
        "constructor_args": normalize_args(record.constructor_args),
        "confirmations": int(record.confirmations),
        "tx_hash": record.tx_hash,
        "block_number": int(record.block_number),
        "deployer": record.deployer,
        "abi": _sorted_abi(record.abi),
    }


def _record_from_dict(name: ContractName, network: NetworkName, data: Dict) -> DeploymentRecord:
    return DeploymentRecord(
        name=name,
        network=network,
        chain_id=int(data["chain_id"]),
        address=to_checksum_address(data["address"]),
        fingerprint=data["fingerprint"],
        constructor_args=data["constructor_args"],
        confirmations=int(data["confirmations"]),
        tx_hash=data["tx_hash"],
        block_number=int(data["block_number"]),
        deployer=data["deployer"],
        abi=data.get("abi", []),
    )


class DeploymentStore:
    """
    Persisted deployment records, one JSON file per contract per network:

        <directory>/<network>/.chainId
        <directory>/<network>/<ContractName>.json
        <directory>/<network>/.pendingTransactions.json
    """

    CHAIN_ID_FILENAME = ".chainId"
    PENDING_FILENAME = ".pendingTransactions.json"

    def __init__(self, directory: Path = DEPLOYMENTS_DIR):
        self.directory = Path(directory)

    def _network_dir(self, network: NetworkName) -> Path:
        return self.directory / network

    def _filepath(self, network: NetworkName, name: ContractName) -> Path:
        return self._network_dir(network) / f"{name}.json"

    def _chain_id_filepath(self, network: NetworkName) -> Path:
        return self._network_dir(network) / self.CHAIN_ID_FILENAME

    def check_chain_id(self, network: NetworkName, chain_id: ChainId) -> None:
        """Refuses to mix records of different chains under one network name."""
        chain_id_filepath = self._chain_id_filepath(network)
        if not chain_id_filepath.exists():
            return
        recorded_chain_id = int(chain_id_filepath.read_text().strip())
        if recorded_chain_id != chain_id:
            raise ConfigurationError(
                f"Deployments for '{network}' were recorded on chain {recorded_chain_id}, "
                f"not {chain_id}."
            )

    def get(self, network: NetworkName, name: ContractName) -> Optional[DeploymentRecord]:
        filepath = self._filepath(network, name)
        if not filepath.exists():
            return None
        return _record_from_dict(name=name, network=network, data=_load_json(filepath))

    def put(self, record: DeploymentRecord) -> Path:
        """Stores a record, replacing any previous record for the same contract and network."""
        self.check_chain_id(record.network, record.chain_id)
        chain_id_filepath = self._chain_id_filepath(record.network)
        if not chain_id_filepath.exists():
            chain_id_filepath.parent.mkdir(parents=True, exist_ok=True)
            chain_id_filepath.write_text(str(record.chain_id))
        filepath = self._filepath(record.network, record.name)
        return _write_json(_record_to_dict(record), filepath)

    def records(self, network: NetworkName) -> List[DeploymentRecord]:
        network_dir = self._network_dir(network)
        if not network_dir.is_dir():
            return []
        records = list()
        for filepath in sorted(network_dir.glob("*.json")):
            if filepath.name.startswith("."):
                continue
            records.append(
                _record_from_dict(name=filepath.stem, network=network, data=_load_json(filepath))
            )
        return records

    def networks(self) -> List[NetworkName]:
        if not self.directory.is_dir():
            return []
        return sorted(path.name for path in self.directory.iterdir() if path.is_dir())

    #
    # Pending transactions
    #

    def _pending_filepath(self, network: NetworkName) -> Path:
        return self._network_dir(network) / self.PENDING_FILENAME

    def _load_pending(self, network: NetworkName) -> Dict[str, Dict[str, Any]]:
        filepath = self._pending_filepath(network)
        if not filepath.exists():
            return dict()
        return _load_json(filepath)

    def get_pending(self, network: NetworkName, name: ContractName) -> Optional[PendingDeployment]:
        entry = self._load_pending(network).get(name)
        if entry is None:
            return None
        return PendingDeployment(
            name=name,
            network=network,
            tx_hash=entry["tx_hash"],
            fingerprint=entry["fingerprint"],
            constructor_args=entry["constructor_args"],
        )

    def put_pending(self, pending: PendingDeployment) -> Path:
        data = self._load_pending(pending.network)
        data[pending.name] = {
            "tx_hash": pending.tx_hash,
            "fingerprint": pending.fingerprint,
            "constructor_args": normalize_args(pending.constructor_args),
        }
        return _write_json(data, self._pending_filepath(pending.network))

    def clear_pending(self, network: NetworkName, name: ContractName) -> None:
        data = self._load_pending(network)
        if name not in data:
            return
        del data[name]
        filepath = self._pending_filepath(network)
        if data:
            _write_json(data, filepath)
        else:
            filepath.unlink()


def export_registry(store: DeploymentStore, network: NetworkName, filepath: Path) -> Path:
    """
    Writes the records of a network as a combined contract registry,
    keyed by chain ID and then by contract name.
    """
    records = store.records(network)
    if not records:
        print(f"No deployments recorded for '{network}'.")
        return filepath

    data = defaultdict(dict)
    for record in records:
        data[str(record.chain_id)][record.name] = {
            "address": record.address,
            "abi": _sorted_abi(record.abi),
            "tx_hash": record.tx_hash,
            "block_number": int(record.block_number),
            "deployer": record.deployer,
        }

    if filepath.exists():
        print(f"Updating existing registry at {filepath}.")
        existing_data = _load_json(filepath)
        existing_data.update(data)
        data = existing_data
    else:
        print(f"Creating new registry at {filepath}.")

    _write_json(dict(data), filepath)
    print(f"(i) Registry written to {filepath}!")
    return filepath
