"""Configuration constants for symmetric-deployments library."""

# Time constants (seconds)
DAY = 24 * 60 * 60
WEEK = 7 * DAY
MONTH = 30 * DAY

# Default deployment parameters
DEFAULT_PAUSE_WINDOW_DURATION = 90 * DAY
DEFAULT_BUFFER_PERIOD_DURATION = 30 * DAY
DEFAULT_FACTORY_PAUSE_WINDOW_DURATION = MONTH

# Fixed-point values are 18 decimals (wei-style)
ONE = 10**18
DEFAULT_MINIMUM_TRADE_AMOUNT = 10**12  # 0.000001
DEFAULT_MINIMUM_WRAP_AMOUNT = 10**12  # 0.000001
DEFAULT_SWAP_FEE_PERCENTAGE = 25 * 10**14  # 0.25%
DEFAULT_YIELD_FEE_PERCENTAGE = 5 * 10**15  # 0.5%

ROUTER_VERSION = "1.0.0"

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Explorer politeness and retry policy
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY = 5.0
DEFAULT_TASK_DELAY = 3.0

# Fully qualified source paths for contracts whose bytecode collides with another
CONTRACT_PATH_HINTS = {
    "Gyro2CLPPoolFactory": "contracts/core/additional/factories/Gyro2CLPPoolFactory.sol:Gyro2CLPPoolFactory",
    "GyroECLPPoolFactory": "contracts/core/additional/factories/GyroECLPPoolFactory.sol:GyroECLPPoolFactory",
    "LBPoolFactory": "contracts/core/additional/factories/LBPoolFactory.sol:LBPoolFactory",
    "QuantAMMWeightedPoolFactory": "contracts/core/additional/factories/QuantAMMWeightedPoolFactory.sol:QuantAMMWeightedPoolFactory",
    "ReClammPoolFactory": "contracts/core/additional/factories/ReClammPoolFactory.sol:ReClammPoolFactory",
}

# Minimal stub factories with identical bytecode. Failing to verify them is not fatal.
NON_CRITICAL_CONTRACTS = frozenset(
    {
        "Gyro2CLPPoolFactory",
        "GyroECLPPoolFactory",
        "LBPoolFactory",
        "QuantAMMWeightedPoolFactory",
    }
)

# Verification priority: core first, then routers, then factories, stubs last
VERIFICATION_ORDER = [
    "Vault",
    "VaultAdmin",
    "VaultExtension",
    "ProtocolFeeController",
    "Router",
    "BatchRouter",
    "WeightedPoolFactory",
    "StablePoolFactory",
    "ReClammPoolFactory",
    "Gyro2CLPPoolFactory",
    "GyroECLPPoolFactory",
    "LBPoolFactory",
    "QuantAMMWeightedPoolFactory",
]

# Known networks. The per-network configuration document overrides these.
NETWORK_CONFIG = {
    "moksha": {
        "chain_id": 14800,
        "chain_name": "Vana Moksha Testnet",
        "block_explorer_url": "https://moksha.vanascan.io",
        "explorer_api_url": "https://moksha.vanascan.io/api",
        "default_rpc_env": "MOKSHA_RPC_URL",
    },
    "vana": {
        "chain_id": 1480,
        "chain_name": "Vana",
        "block_explorer_url": "https://vanascan.io",
        "explorer_api_url": "https://vanascan.io/api",
        "default_rpc_env": "VANA_RPC_URL",
    },
    "sepolia": {
        "chain_id": 11155111,
        "chain_name": "Sepolia",
        "block_explorer_url": "https://sepolia.etherscan.io",
        "explorer_api_url": "https://api-sepolia.etherscan.io/api",
        "default_rpc_env": "SEPOLIA_RPC_URL",
    },
    "mainnet": {
        "chain_id": 1,
        "chain_name": "Ethereum",
        "block_explorer_url": "https://etherscan.io",
        "explorer_api_url": "https://api.etherscan.io/api",
        "default_rpc_env": "MAINNET_RPC_URL",
    },
    "swellchain": {
        "chain_id": 1923,
        "chain_name": "Swellchain",
        "block_explorer_url": "https://swellchainscan.io",
        "explorer_api_url": "https://swellchainscan.io/api",
        "default_rpc_env": "SWELLCHAIN_RPC_URL",
    },
    "swellchain_testnet": {
        "chain_id": 1924,
        "chain_name": "Swellchain Testnet",
        "block_explorer_url": "https://sepolia.swellchainscan.io",
        "explorer_api_url": "https://sepolia.swellchainscan.io/api",
        "default_rpc_env": "SWELLCHAIN_TESTNET_RPC_URL",
    },
}
