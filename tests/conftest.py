"""Shared pytest fixtures for symmetric-deployments tests."""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from symmetric_deployments.config import NetworkConfig, parse_network_config
from symmetric_deployments.ledger import DeploymentLedger
from symmetric_deployments.predictor import AddressPredictor, compute_create_address
from symmetric_deployments.types import DeployResult, ExplorerResult, ExplorerStatus

#: Deployer with published CREATE address vectors
DEPLOYER = "0x6ac7ea33f8831ea9dcc53393aaa88b25a785dbf0"

CHAIN_ID = 31337
NETWORK = "localtest"


class FakeFactory:
    """Contract factory simulating a chain: addresses follow the deployer nonce."""

    def __init__(self, deployer: str = DEPLOYER, nonce: int = 0, chain_id: int = CHAIN_ID):
        self.deployer = deployer
        self.nonce = nonce
        self.chain_id = chain_id
        self.calls: List[tuple] = []
        # Names that fail before a transaction is sent
        self.fail = set()

    def deploy(self, contract_name: str, constructor_args: List[Any]) -> DeployResult:
        self.calls.append((contract_name, list(constructor_args)))
        if contract_name in self.fail:
            raise RuntimeError(f"execution reverted: {contract_name}")

        address = compute_create_address(self.deployer, self.nonce)
        self.nonce += 1
        return DeployResult(address=address, transaction_hash="0x" + f"{self.nonce:064x}")

    def send_unrelated_transaction(self) -> None:
        """Spend a nonce outside the pipeline, e.g. a manual top-up."""
        self.nonce += 1

    def predictor(self) -> AddressPredictor:
        return AddressPredictor(self.deployer, self.nonce)

    @property
    def deployed_names(self) -> List[str]:
        return [name for name, _ in self.calls if name not in self.fail]


class FakeExplorer:
    """Explorer answering from a script of results per call."""

    def __init__(self, responder=None):
        self.responder = responder or (lambda **kw: ExplorerResult(ExplorerStatus.VERIFIED))
        self.calls: List[Dict[str, Any]] = []

    def verify(
        self,
        address: str,
        constructor_args: List[Any],
        contract_path: Optional[str] = None,
        contract_name: Optional[str] = None,
    ) -> ExplorerResult:
        call = {
            "address": address,
            "constructor_args": constructor_args,
            "contract_path": contract_path,
            "contract_name": contract_name,
        }
        self.calls.append(call)
        return self.responder(**call)


@pytest.fixture
def deployments_dir(tmp_path: Path) -> Path:
    """Create a temporary ledger directory for tests."""
    path = tmp_path / "deployments"
    path.mkdir(parents=True, exist_ok=True)
    return path


@pytest.fixture
def ledger(deployments_dir: Path) -> DeploymentLedger:
    """Empty ledger of the local test network."""
    return DeploymentLedger.load(NETWORK, deployments_dir)


@pytest.fixture
def factory() -> FakeFactory:
    return FakeFactory(nonce=7)


@pytest.fixture
def network_config_json() -> Dict[str, Any]:
    return {
        "name": "Local Test",
        "chainId": CHAIN_ID,
        "explorer": "https://explorer.example.com",
        "explorerApiUrl": "https://explorer.example.com/api",
        "tokens": {"WETH": "0x4200000000000000000000000000000000000006"},
        "deployments": {
            "vault": {"pauseWindowDuration": 7776000, "bufferPeriodDuration": 2592000},
            "pools": {"weightedPoolFactory": {"pauseWindowDuration": 1000}},
        },
    }


@pytest.fixture
def network_config(network_config_json: Dict[str, Any]) -> NetworkConfig:
    return parse_network_config(NETWORK, network_config_json)


@pytest.fixture
def config_dir(tmp_path: Path, network_config_json: Dict[str, Any]) -> Path:
    """Directory with a <network>.json configuration document."""
    path = tmp_path / "config" / "networks"
    path.mkdir(parents=True)
    with open(path / f"{NETWORK}.json", "w") as f:
        json.dump(network_config_json, f, indent=2)
    return path


@pytest.fixture
def artifacts_dir(tmp_path: Path) -> Path:
    """Minimal Hardhat artifacts tree with build info."""
    root = tmp_path / "artifacts"
    build_info_dir = root / "build-info"
    build_info_dir.mkdir(parents=True)
    with open(build_info_dir / "abc123.json", "w") as f:
        json.dump(
            {
                "solcVersion": "0.8.24",
                "solcLongVersion": "0.8.24+commit.e11b9ed9",
                "input": {"language": "Solidity", "sources": {}},
            },
            f,
        )

    def write(source: str, name: str, abi: list) -> None:
        folder = root / source
        folder.mkdir(parents=True, exist_ok=True)
        with open(folder / f"{name}.json", "w") as f:
            json.dump(
                {
                    "_format": "hh-sol-artifact-1",
                    "contractName": name,
                    "sourceName": source,
                    "abi": abi,
                    "bytecode": "0x6080",
                    "deployedBytecode": "0x6080",
                },
                f,
            )
        depth = len(Path(source).parts)
        with open(folder / f"{name}.dbg.json", "w") as f:
            json.dump(
                {"_format": "hh-sol-dbg-1", "buildInfo": "../" * depth + "build-info/abc123.json"},
                f,
            )

    constructor = [
        {
            "type": "constructor",
            "inputs": [
                {"name": "vault", "type": "address"},
                {"name": "duration", "type": "uint32"},
            ],
        }
    ]
    write("contracts/core/Router.sol", "Router", constructor)
    write("contracts/core/additional/factories/LBPoolFactory.sol", "LBPoolFactory", constructor)
    write("contracts/core/stubs/LBPoolFactory.sol", "LBPoolFactory", constructor)
    write("contracts/core/Empty.sol", "Empty", [])
    return root
