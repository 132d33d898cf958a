import os
from pathlib import Path
from typing import Dict, Mapping, NamedTuple, Optional, Union

from dotenv import load_dotenv

from chaindeploy.constants import (
    CHAIN_IDS,
    DEFAULT_ACCOUNT_COUNT,
    DEFAULT_DERIVATION_PATH,
    DEFAULT_DOTENV_FILENAME,
    DEFAULT_MNEMONIC,
    DOTENV_CONFIG_PATH_ENVVAR,
    EXPLORER_API_KEY_ENVVARS,
    EXPLORER_APIS,
    INFURA_API_KEY_ENVVAR,
    INFURA_RPC_URL_TEMPLATE,
    LOCAL_NETWORKS,
    MNEMONIC_ENVVAR,
    NETWORKS,
    PRIVATE_KEY_ENVVAR,
    RPC_URLS,
    VERIFICATION_BLOCK_CONFIRMATIONS,
)
from chaindeploy.exceptions import UnknownNetworkError


class ExplicitPrivateKey(NamedTuple):
    """Single-signer mode."""

    private_key: str


class MnemonicDerivation(NamedTuple):
    mnemonic: str
    count: int = DEFAULT_ACCOUNT_COUNT
    path: str = DEFAULT_DERIVATION_PATH


AccountStrategy = Union[ExplicitPrivateKey, MnemonicDerivation]


class NetworkProfile(NamedTuple):
    """Connection parameters for one run against one network."""

    name: str
    chain_id: int
    rpc_url: str
    is_live: bool
    account_strategy: AccountStrategy
    explorer_api_url: Optional[str] = None
    explorer_api_key: Optional[str] = None


class RunConfig(NamedTuple):
    """Environment-derived configuration, read once at startup."""

    mnemonic: str = DEFAULT_MNEMONIC
    private_key: Optional[str] = None
    infura_api_key: str = ""
    explorer_api_keys: Dict[str, str] = {}

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "RunConfig":
        environ = os.environ if environ is None else environ
        explorer_api_keys = {
            envvar: environ[envvar] for envvar in EXPLORER_API_KEY_ENVVARS if environ.get(envvar)
        }
        return cls(
            mnemonic=environ.get(MNEMONIC_ENVVAR) or DEFAULT_MNEMONIC,
            private_key=environ.get(PRIVATE_KEY_ENVVAR) or None,
            infura_api_key=environ.get(INFURA_API_KEY_ENVVAR, ""),
            explorer_api_keys=explorer_api_keys,
        )


def load_environment(dotenv_path: Optional[Path] = None) -> Optional[Path]:
    """Loads a dotenv file into the process environment, if one exists."""
    if dotenv_path is None:
        dotenv_path = Path(os.environ.get(DOTENV_CONFIG_PATH_ENVVAR, DEFAULT_DOTENV_FILENAME))
    if not dotenv_path.exists():
        return None
    load_dotenv(dotenv_path=dotenv_path)
    return dotenv_path


def is_local_network(network_name: str) -> bool:
    return network_name in LOCAL_NETWORKS


def required_confirmations(profile: NetworkProfile) -> int:
    """Number of blocks a creation transaction must be buried under before it is recorded."""
    if profile.is_live:
        return VERIFICATION_BLOCK_CONFIRMATIONS
    return 0  # auto-mined


def verification_enabled(profile: NetworkProfile) -> bool:
    return profile.is_live


class NetworkResolver:
    """Turns a logical network name into a NetworkProfile using the static chain table."""

    def __init__(
        self,
        config: RunConfig,
        networks: Optional[Mapping[str, str]] = None,
        chain_ids: Optional[Mapping[str, int]] = None,
    ):
        self.config = config
        self.networks = NETWORKS if networks is None else networks
        self.chain_ids = CHAIN_IDS if chain_ids is None else chain_ids

    def resolve(self, network_name: str) -> NetworkProfile:
        try:
            chain = self.networks[network_name]
            chain_id = self.chain_ids[chain]
        except KeyError:
            raise UnknownNetworkError(
                f"Unknown network '{network_name}'; "
                f"expected one of {', '.join(sorted(self.networks))}."
            )

        explorer_api_url, explorer_api_key = None, None
        if network_name in EXPLORER_APIS:
            explorer_api_url, envvar = EXPLORER_APIS[network_name]
            explorer_api_key = self.config.explorer_api_keys.get(envvar)

        return NetworkProfile(
            name=network_name,
            chain_id=chain_id,
            rpc_url=self._rpc_url(chain),
            is_live=not is_local_network(network_name),
            account_strategy=self._account_strategy(),
            explorer_api_url=explorer_api_url,
            explorer_api_key=explorer_api_key,
        )

    def _rpc_url(self, chain: str) -> str:
        if chain in RPC_URLS:
            return RPC_URLS[chain]
        return INFURA_RPC_URL_TEMPLATE.format(chain=chain, api_key=self.config.infura_api_key)

    def _account_strategy(self) -> AccountStrategy:
        if self.config.private_key:
            return ExplicitPrivateKey(private_key=self.config.private_key)
        return MnemonicDerivation(mnemonic=self.config.mnemonic)
