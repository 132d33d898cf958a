from pathlib import Path

#
# Filesystem
#

ARTIFACTS_DIR = Path("artifacts")
DEPLOYMENTS_DIR = Path("deployments")
TASKS_FILEPATH = Path("deploy") / "tasks.yml"

#
# Environment
#

DOTENV_CONFIG_PATH_ENVVAR = "DOTENV_CONFIG_PATH"
DEFAULT_DOTENV_FILENAME = ".env"
PRIVATE_KEY_ENVVAR = "PRIVATE_KEY"
MNEMONIC_ENVVAR = "MNEMONIC"
INFURA_API_KEY_ENVVAR = "INFURA_API_KEY"

#
# Networks
#

HARDHAT = "hardhat"
LOCALHOST = "localhost"

# ephemeral networks; everything else is live
LOCAL_NETWORKS = (HARDHAT, LOCALHOST)

LOCAL_RPC_URL = "http://127.0.0.1:8545"
INFURA_RPC_URL_TEMPLATE = "https://{chain}.infura.io/v3/{api_key}"

CHAIN_IDS = {
    "arbitrum-mainnet": 42161,
    "aurora-mainnet": 1313161554,
    "aurora-testnet": 1313161555,
    "avalanche": 43114,
    "bsc": 56,
    HARDHAT: 31337,
    "fantom-opera": 250,
    "fantom-testnet": 4002,
    "mainnet": 1,
    "optimism-mainnet": 10,
    "polygon-mainnet": 137,
    "polygon-mumbai": 80001,
    "goerli": 5,
    LOCALHOST: 1337,
}

# chains not served through infura
RPC_URLS = {
    "avalanche": "https://api.avax.network/ext/bc/C/rpc",
    "bsc": "https://bsc-dataseed1.binance.org",
    "fantom-opera": "https://rpc.ankr.com/fantom",
    "fantom-testnet": "https://rpc.testnet.fantom.network",
    HARDHAT: LOCAL_RPC_URL,
    LOCALHOST: LOCAL_RPC_URL,
}

# network name -> chain
NETWORKS = {
    HARDHAT: HARDHAT,
    LOCALHOST: LOCALHOST,
    "arbitrum": "arbitrum-mainnet",
    "avalanche": "avalanche",
    "bsc": "bsc",
    "mainnet": "mainnet",
    "optimism": "optimism-mainnet",
    "polygon-mainnet": "polygon-mainnet",
    "polygon-mumbai": "polygon-mumbai",
    "goerli": "goerli",
    "fantom-opera": "fantom-opera",
    "fantom-testnet": "fantom-testnet",
    "aurora-mainnet": "aurora-mainnet",
    "aurora-testnet": "aurora-testnet",
}

SUPPORTED_NETWORKS = list(NETWORKS)

#
# Block explorers
#

# network name -> (verification API endpoint, API key environment variable)
EXPLORER_APIS = {
    "arbitrum": ("https://api.arbiscan.io/api", "ARBISCAN_API_KEY"),
    "avalanche": ("https://api.snowtrace.io/api", "SNOWTRACE_API_KEY"),
    "bsc": ("https://api.bscscan.com/api", "BSCSCAN_API_KEY"),
    "mainnet": ("https://api.etherscan.io/api", "ETHERSCAN_API_KEY"),
    "optimism": ("https://api-optimistic.etherscan.io/api", "OPTIMISM_API_KEY"),
    "polygon-mainnet": ("https://api.polygonscan.com/api", "POLYGONSCAN_API_KEY"),
    "polygon-mumbai": ("https://api-testnet.polygonscan.com/api", "POLYGONSCAN_API_KEY"),
    "goerli": ("https://api-goerli.etherscan.io/api", "ETHERSCAN_API_KEY"),
    "fantom-opera": ("https://api.ftmscan.com/api", "FTMSCAN_API_KEY"),
    "fantom-testnet": ("https://api-testnet.ftmscan.com/api", "FTMSCAN_API_KEY"),
    "aurora-mainnet": ("https://explorer.mainnet.aurora.dev/api", "AURORASCAN_API_KEY"),
    "aurora-testnet": ("https://explorer.testnet.aurora.dev/api", "AURORASCAN_API_KEY"),
}

EXPLORER_API_KEY_ENVVARS = sorted({envvar for _, envvar in EXPLORER_APIS.values()})

#
# Confirmations
#

# live deployments must be this deep before they are recorded and verified
VERIFICATION_BLOCK_CONFIRMATIONS = 6
CONFIRMATION_TIMEOUT = 600  # seconds
CONFIRMATION_POLL_INTERVAL = 2  # seconds

#
# Accounts
#

DEFAULT_MNEMONIC = "test " * 11 + "junk"
DEFAULT_DERIVATION_PATH = "m/44'/60'/0'/0"
DEFAULT_ACCOUNT_COUNT = 10

NAMED_ACCOUNTS = {
    "deployer": 0,
    "feeCollector": 1,
}
DEPLOYER = "deployer"

#
# Tasks
#

ALL_TAG = "all"

#
# Verification
#

VERIFICATION_RETRIES = 3
VERIFICATION_POLL_ATTEMPTS = 12
VERIFICATION_POLL_INTERVAL = 5  # seconds
