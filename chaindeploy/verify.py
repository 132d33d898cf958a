import json
import time
from enum import Enum
from typing import Any, Callable, Dict, List, NamedTuple, Sequence

import requests
from eth_abi import encode
from eth_abi.exceptions import EncodingError
from eth_utils import to_bytes
from eth_utils.abi import collapse_if_tuple
from requests.exceptions import RequestException

from chaindeploy.artifacts import Artifact, ArtifactStore
from chaindeploy.constants import (
    VERIFICATION_POLL_ATTEMPTS,
    VERIFICATION_POLL_INTERVAL,
    VERIFICATION_RETRIES,
)
from chaindeploy.exceptions import DeploymentError, MissingApiKeyError, VerificationError
from chaindeploy.networks import NetworkProfile, verification_enabled
from chaindeploy.registry import DeploymentRecord

# explorer responses, compared case-insensitively
ALREADY_VERIFIED = "already verified"
VERIFIED = "pass - verified"
PENDING = "pending"
NOT_INDEXED = "unable to locate contractcode"


class VerificationRequest(NamedTuple):
    address: str
    constructor_args: List[Any]
    contract_name: str


class VerificationStatus(Enum):
    VERIFIED = "verified"
    ALREADY_VERIFIED = "already-verified"
    MISSING_API_KEY = "missing-api-key"
    FAILED = "failed"


class VerificationOutcome(NamedTuple):
    status: VerificationStatus
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status in (VerificationStatus.VERIFIED, VerificationStatus.ALREADY_VERIFIED)


def _coerce(abi_type: str, value: Any) -> Any:
    """Turns hex strings back into bytes for bytes-typed parameters."""
    if abi_type.endswith("]") and isinstance(value, list):
        inner_type = abi_type[: abi_type.rindex("[")]
        return [_coerce(inner_type, v) for v in value]
    if abi_type.startswith("bytes") and isinstance(value, str):
        return to_bytes(hexstr=value)
    return value


def encode_constructor_args(artifact: Artifact, args: Sequence[Any]) -> str:
    """ABI-encodes constructor arguments as unprefixed hex, the form explorers expect."""
    inputs = artifact.constructor_inputs
    if len(inputs) != len(args):
        raise VerificationError(
            f"{artifact.name} constructor takes {len(inputs)} argument(s), got {len(args)}."
        )
    if not inputs:
        return ""
    types = [collapse_if_tuple(abi_input) for abi_input in inputs]
    values = [_coerce(abi_type, value) for abi_type, value in zip(types, args)]
    try:
        return encode(types, values).hex()
    except (EncodingError, TypeError, ValueError) as e:
        raise VerificationError(f"Cannot encode constructor arguments of {artifact.name}: {e}")


class VerificationSubmitter:
    """
    Publishes deployed contracts to an etherscan-compatible explorer.
    Failures are reported, never raised: verification cannot fail a run.
    """

    def __init__(
        self,
        artifacts: ArtifactStore,
        session: requests.Session = None,
        retries: int = VERIFICATION_RETRIES,
        poll_attempts: int = VERIFICATION_POLL_ATTEMPTS,
        poll_interval: float = VERIFICATION_POLL_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.artifacts = artifacts
        self.session = session if session is not None else requests.Session()
        self.retries = retries
        self.poll_attempts = poll_attempts
        self.poll_interval = poll_interval
        self._sleep = sleep

    def submit(
        self, record: DeploymentRecord, contract_name: str, profile: NetworkProfile
    ) -> VerificationOutcome:
        request = VerificationRequest(
            address=record.address,
            constructor_args=record.constructor_args,
            contract_name=contract_name,
        )
        print(f"(i) Verifying {contract_name} at {record.address}...")
        try:
            status = self._submit(request, profile)
        except MissingApiKeyError as e:
            print(f"WARNING: {e}")
            return VerificationOutcome(status=VerificationStatus.MISSING_API_KEY, message=str(e))
        except VerificationError as e:
            print(f"WARNING: Verification of {contract_name} failed: {e}")
            return VerificationOutcome(status=VerificationStatus.FAILED, message=str(e))

        if status == VerificationStatus.ALREADY_VERIFIED:
            print(f"(i) {contract_name} is already verified.")
        else:
            print(f"(i) {contract_name} verified.")
        return VerificationOutcome(status=status)

    def _payload(self, request: VerificationRequest, profile: NetworkProfile) -> Dict[str, Any]:
        try:
            artifact = self.artifacts.get(request.contract_name)
        except DeploymentError as e:
            raise VerificationError(str(e))
        if not artifact.standard_json_input or not artifact.compiler_version:
            raise VerificationError(
                f"No compiler build-info for {request.contract_name}; cannot submit sources."
            )
        return {
            "apikey": profile.explorer_api_key,
            "module": "contract",
            "action": "verifysourcecode",
            "contractaddress": request.address,
            "sourceCode": json.dumps(artifact.standard_json_input),
            "codeformat": "solidity-standard-json-input",
            "contractname": f"{artifact.source_name}:{artifact.name}",
            "compilerversion": artifact.compiler_version,
            # sic, the explorer API spells it this way
            "constructorArguements": encode_constructor_args(artifact, request.constructor_args),
        }

    def _call(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        response = self.session.request(method, url, **kwargs)
        response.raise_for_status()
        return response.json()

    def _submit(self, request: VerificationRequest, profile: NetworkProfile) -> VerificationStatus:
        if not verification_enabled(profile):
            raise VerificationError(f"Verification is not available on {profile.name}.")
        if not profile.explorer_api_url or not profile.explorer_api_key:
            raise MissingApiKeyError(
                f"No explorer API key configured for {profile.name}; "
                f"skipping verification of {request.contract_name}."
            )

        payload = self._payload(request, profile)
        last_error = None
        for attempt in range(1, self.retries + 1):
            try:
                data = self._call("POST", profile.explorer_api_url, data=payload)
            except RequestException as e:
                last_error = e
                print(f"(i) Verification request failed ({attempt}/{self.retries}): {e}")
                self._sleep(self.poll_interval)
                continue

            result = str(data.get("result", ""))
            if data.get("status") == "1":
                return self._poll(guid=result, profile=profile)
            if ALREADY_VERIFIED in result.lower():
                return VerificationStatus.ALREADY_VERIFIED
            if NOT_INDEXED in result.lower():
                # explorer has not indexed the bytecode yet
                last_error = result
                print(f"(i) Explorer is not ready ({attempt}/{self.retries}); waiting...")
                self._sleep(self.poll_interval)
                continue
            raise VerificationError(result)

        raise VerificationError(f"gave up after {self.retries} attempt(s): {last_error}")

    def _poll(self, guid: str, profile: NetworkProfile) -> VerificationStatus:
        params = {
            "apikey": profile.explorer_api_key,
            "module": "contract",
            "action": "checkverifystatus",
            "guid": guid,
        }
        for _ in range(self.poll_attempts):
            self._sleep(self.poll_interval)
            try:
                data = self._call("GET", profile.explorer_api_url, params=params)
            except RequestException as e:
                print(f"(i) Verification status check failed: {e}")
                continue
            result = str(data.get("result", "")).lower()
            if VERIFIED in result:
                return VerificationStatus.VERIFIED
            if ALREADY_VERIFIED in result:
                return VerificationStatus.ALREADY_VERIFIED
            if PENDING in result:
                continue
            raise VerificationError(data.get("result"))
        raise VerificationError(f"verification {guid} still pending")
