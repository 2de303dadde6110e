"""Path management utilities for symmetric-deployments library."""

from pathlib import Path
from typing import Optional, Union


def get_default_deployments_dir() -> Path:
    """
    Get default ledger directory.

    Returns:
        Path to ./deployments
    """
    return Path.cwd() / "deployments"


def get_default_config_dir() -> Path:
    """
    Get default network configuration directory.

    Returns:
        Path to ./config/networks
    """
    return Path.cwd() / "config" / "networks"


def get_ledger_path(
    network: str, deployments_dir: Optional[Union[Path, str]] = None
) -> Path:
    """
    Get the ledger file path of a network.

    Args:
        network: Network name, e.g. "moksha"
        deployments_dir: Custom ledger directory (defaults to ./deployments)

    Returns:
        Path to <deployments_dir>/<network>.json
    """
    if deployments_dir is None:
        deployments_dir = get_default_deployments_dir()
    else:
        deployments_dir = Path(deployments_dir).absolute()

    return deployments_dir / f"{network}.json"


def get_lock_path(ledger_path: Path) -> Path:
    """Advisory lock file living next to a ledger."""
    return ledger_path.with_name(ledger_path.name + ".lock")


def get_network_config_path(
    network: str, config_dir: Optional[Union[Path, str]] = None
) -> Path:
    """
    Get the configuration document path of a network.

    Args:
        network: Network name
        config_dir: Custom config directory (defaults to ./config/networks)

    Returns:
        Path to <config_dir>/<network>.json
    """
    if config_dir is None:
        config_dir = get_default_config_dir()
    else:
        config_dir = Path(config_dir).absolute()

    return config_dir / f"{network}.json"
