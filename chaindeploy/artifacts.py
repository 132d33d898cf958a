import json
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Optional

from eth_utils import add_0x_prefix, encode_hex, keccak

from chaindeploy.constants import ARTIFACTS_DIR
from chaindeploy.exceptions import ArtifactNotFoundError, ConfigurationError
from chaindeploy.utils import _load_json

ABI = List[Dict[str, Any]]

DEBUG_SUFFIX = ".dbg.json"
BUILD_INFO_DIRNAME = "build-info"


def compute_fingerprint(bytecode: str, metadata: Any) -> str:
    """Content-derived identifier of a compiled contract: keccak of its bytecode and metadata."""
    payload = json.dumps(
        {"bytecode": bytecode.lower(), "metadata": metadata},
        sort_keys=True,
        separators=(",", ":"),
    )
    return encode_hex(keccak(text=payload))


class Artifact(NamedTuple):
    """Compiler output for a single contract."""

    name: str
    abi: ABI
    bytecode: str
    source_name: Optional[str] = None
    metadata: Any = None
    compiler_version: Optional[str] = None
    standard_json_input: Optional[Dict[str, Any]] = None

    @property
    def fingerprint(self) -> str:
        return compute_fingerprint(self.bytecode, self.metadata)

    @property
    def constructor_inputs(self) -> List[Dict[str, Any]]:
        for entry in self.abi:
            if entry.get("type") == "constructor":
                return list(entry.get("inputs", []))
        return []


def _get_bytecode(data: Dict[str, Any]) -> str:
    bytecode = data.get("bytecode", "")
    if isinstance(bytecode, dict):
        # raw solc output
        bytecode = bytecode.get("object", "")
    return add_0x_prefix(bytecode) if bytecode else "0x"


def _read_build_info(artifact_filepath: Path) -> Optional[Dict[str, Any]]:
    """Follows the hardhat debug file of an artifact to its build-info, if any."""
    debug_filepath = artifact_filepath.with_name(artifact_filepath.stem + DEBUG_SUFFIX)
    if not debug_filepath.exists():
        return None
    build_info_pointer = _load_json(debug_filepath).get("buildInfo")
    if not build_info_pointer:
        return None
    build_info_filepath = (debug_filepath.parent / build_info_pointer).resolve()
    if not build_info_filepath.exists():
        return None
    return _load_json(build_info_filepath)


def read_artifact(filepath: Path) -> Artifact:
    """Reads a hardhat-style artifact, enriched with its build-info when available."""
    data = _load_json(filepath)
    name = data.get("contractName", filepath.stem)
    source_name = data.get("sourceName")
    metadata = data.get("metadata")
    compiler_version, standard_json_input = None, None

    build_info = _read_build_info(filepath)
    if build_info:
        solc_version = build_info.get("solcLongVersion") or build_info.get("solcVersion")
        if solc_version:
            compiler_version = f"v{solc_version}"
        standard_json_input = build_info.get("input")
        output_contracts = build_info.get("output", {}).get("contracts", {})
        contract_output = output_contracts.get(source_name, {}).get(name, {})
        metadata = contract_output.get("metadata", metadata)

    return Artifact(
        name=name,
        abi=data.get("abi", []),
        bytecode=_get_bytecode(data),
        source_name=source_name,
        metadata=metadata,
        compiler_version=compiler_version,
        standard_json_input=standard_json_input,
    )


class ArtifactStore:
    """Build output lookup by contract name."""

    def __init__(self, directory: Path = ARTIFACTS_DIR):
        self.directory = Path(directory)
        self._artifacts: Dict[str, Artifact] = dict()

    def _find(self, contract_name: str) -> Path:
        candidates = [
            path
            for path in self.directory.rglob(f"{contract_name}.json")
            if BUILD_INFO_DIRNAME not in path.parts
        ]
        if not candidates:
            raise ArtifactNotFoundError(
                f"No artifact found for '{contract_name}' in {self.directory}; "
                "has the project been compiled?"
            )
        if len(candidates) > 1:
            locations = ", ".join(str(path) for path in sorted(candidates))
            raise ConfigurationError(f"Ambiguous artifacts for '{contract_name}': {locations}")
        return candidates[0]

    def get(self, contract_name: str) -> Artifact:
        if contract_name not in self._artifacts:
            artifact = read_artifact(self._find(contract_name))
            if artifact.bytecode == "0x":
                raise ConfigurationError(
                    f"'{contract_name}' has no creation bytecode; is it abstract or an interface?"
                )
            self._artifacts[contract_name] = artifact
        return self._artifacts[contract_name]

    def fingerprint(self, contract_name: str) -> str:
        return self.get(contract_name).fingerprint
