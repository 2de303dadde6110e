"""Network configuration documents for symmetric-deployments library."""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .constants import (
    DEFAULT_BUFFER_PERIOD_DURATION,
    DEFAULT_FACTORY_PAUSE_WINDOW_DURATION,
    DEFAULT_MINIMUM_TRADE_AMOUNT,
    DEFAULT_MINIMUM_WRAP_AMOUNT,
    DEFAULT_PAUSE_WINDOW_DURATION,
    DEFAULT_SWAP_FEE_PERCENTAGE,
    DEFAULT_YIELD_FEE_PERCENTAGE,
    NETWORK_CONFIG,
    ZERO_ADDRESS,
)
from .exceptions import NetworkNotFoundError
from .paths import get_network_config_path


@dataclass
class NetworkConfig:
    """Per-network deployment parameters."""

    # Required fields
    network: str  # e.g. "moksha"
    chain_id: int

    # Optional fields
    name: Optional[str] = None  # Human readable chain name
    explorer: Optional[str] = None  # Block explorer URL
    explorer_api_url: Optional[str] = None  # Etherscan-compatible API
    rpc_env: Optional[str] = None  # Environment variable holding the RPC URL
    tokens: Dict[str, str] = field(default_factory=dict)  # e.g. {"WETH": "0x..."}
    deployments: Dict[str, Any] = field(default_factory=dict)

    def token(self, symbol: str, default: str = ZERO_ADDRESS) -> str:
        """Well-known token address, zero address when not configured."""
        return self.tokens.get(symbol) or default

    @property
    def vault(self) -> Dict[str, Any]:
        return self.deployments.get("vault", {})

    @property
    def pause_window_duration(self) -> int:
        return int(self.vault.get("pauseWindowDuration", DEFAULT_PAUSE_WINDOW_DURATION))

    @property
    def buffer_period_duration(self) -> int:
        return int(self.vault.get("bufferPeriodDuration", DEFAULT_BUFFER_PERIOD_DURATION))

    @property
    def minimum_trade_amount(self) -> int:
        return int(self.vault.get("minimumTradeAmount", DEFAULT_MINIMUM_TRADE_AMOUNT))

    @property
    def minimum_wrap_amount(self) -> int:
        return int(self.vault.get("minimumWrapAmount", DEFAULT_MINIMUM_WRAP_AMOUNT))

    @property
    def swap_fee_percentage(self) -> int:
        fees = self.deployments.get("protocolFees", {})
        return int(fees.get("swapFeePercentage", DEFAULT_SWAP_FEE_PERCENTAGE))

    @property
    def yield_fee_percentage(self) -> int:
        fees = self.deployments.get("protocolFees", {})
        return int(fees.get("yieldFeePercentage", DEFAULT_YIELD_FEE_PERCENTAGE))

    def factory_pause_window(self, factory_key: str) -> int:
        """
        Pause window of a pool factory.

        Args:
            factory_key: Key under deployments.pools, e.g. "weightedPoolFactory"

        Returns:
            Duration in seconds, 30 days when not configured
        """
        pools = self.deployments.get("pools", {})
        factory = pools.get(factory_key) or {}
        return int(factory.get("pauseWindowDuration", DEFAULT_FACTORY_PAUSE_WINDOW_DURATION))

    def address_url(self, address: str) -> Optional[str]:
        """Explorer link for an address."""
        if not self.explorer:
            return None
        return f"{self.explorer.rstrip('/')}/address/{address}"

    def rpc_url(self) -> Optional[str]:
        """
        RPC endpoint from the environment.

        Reads the configured variable, falling back to <NETWORK>_RPC_URL.
        """
        env_name = self.rpc_env or f"{self.network.upper()}_RPC_URL"
        return os.environ.get(env_name)


def load_network_config(
    network: str, config_dir: Optional[Union[Path, str]] = None
) -> NetworkConfig:
    """
    Load the configuration document of a network.

    Values from the document win over the built-in network presets.

    Args:
        network: Network name
        config_dir: Directory holding <network>.json documents

    Returns:
        NetworkConfig

    Raises:
        NetworkNotFoundError: If there is neither a document nor a preset
        ValueError: If the document has no chain id
    """
    preset = NETWORK_CONFIG.get(network, {})
    config_path = get_network_config_path(network, config_dir)

    try:
        with open(config_path) as f:
            data = json.load(f)
    except FileNotFoundError:
        if not preset:
            raise NetworkNotFoundError(f"Network config not found: {config_path}")
        data = {}

    return parse_network_config(network, data, preset)


def parse_network_config(
    network: str, data: Dict[str, Any], preset: Optional[Dict[str, Any]] = None
) -> NetworkConfig:
    """
    Build a NetworkConfig from a configuration document.

    Args:
        network: Network name
        data: Parsed document (camelCase keys)
        preset: Built-in defaults for the network

    Returns:
        NetworkConfig
    """
    preset = preset or {}

    chain_id = data.get("chainId", preset.get("chain_id"))
    if chain_id is None:
        raise ValueError(f"Network config for '{network}' has no chainId")

    return NetworkConfig(
        network=network,
        chain_id=int(chain_id),
        name=data.get("name", preset.get("chain_name")),
        explorer=data.get("explorer", preset.get("block_explorer_url")),
        explorer_api_url=data.get("explorerApiUrl", preset.get("explorer_api_url")),
        rpc_env=data.get("rpcEnv", preset.get("default_rpc_env")),
        tokens=dict(data.get("tokens") or {}),
        deployments=dict(data.get("deployments") or {}),
    )
