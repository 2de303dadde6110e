"""Hardhat compiler artifact reader for symmetric-deployments library."""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import eth_abi
from eth_utils import to_bytes

from .exceptions import AmbiguousArtifactError, ArtifactNotFoundError


@dataclass
class Artifact:
    """A compiled contract."""

    contract_name: str  # e.g. "Vault"
    source_name: str  # e.g. "contracts/core/Vault.sol"
    abi: List[Dict[str, Any]]
    bytecode: str
    deployed_bytecode: Optional[str] = None
    path: Optional[Path] = None

    @property
    def fully_qualified_name(self) -> str:
        return f"{self.source_name}:{self.contract_name}"


def parse_artifact(file_path: Path) -> Optional[Artifact]:
    """
    Parse a Hardhat artifact JSON file.

    Args:
        file_path: Path to <Name>.json under the artifacts directory

    Returns:
        Artifact, or None if the file is not a contract artifact
    """
    with open(file_path) as f:
        data = json.load(f)

    if not isinstance(data, dict) or "contractName" not in data or "abi" not in data:
        return None

    bytecode = data.get("bytecode") or "0x"
    if isinstance(bytecode, dict):
        # Forge style, contains keys object, sourceMap, linkReferences
        bytecode = bytecode["object"]

    return Artifact(
        contract_name=data["contractName"],
        source_name=data.get("sourceName", ""),
        abi=data["abi"],
        bytecode=bytecode,
        deployed_bytecode=data.get("deployedBytecode"),
        path=file_path,
    )


class HardhatArtifacts:
    """Index of the artifacts directory produced by ``hardhat compile``."""

    def __init__(self, root: Union[Path, str]):
        self.root = Path(root)
        self._index: Optional[Dict[str, List[Artifact]]] = None

    def _load_index(self) -> Dict[str, List[Artifact]]:
        if self._index is None:
            index: Dict[str, List[Artifact]] = {}
            for file_path in sorted(self.root.rglob("*.json")):
                if file_path.name.endswith(".dbg.json") or "build-info" in file_path.parts:
                    continue
                artifact = parse_artifact(file_path)
                if artifact is not None:
                    index.setdefault(artifact.contract_name, []).append(artifact)
            self._index = index
        return self._index

    def names(self) -> List[str]:
        return sorted(self._load_index().keys())

    def find(self, name: str) -> Artifact:
        """
        Find an artifact by contract name or fully qualified name.

        Args:
            name: "Vault" or "contracts/core/Vault.sol:Vault"

        Returns:
            Artifact

        Raises:
            ArtifactNotFoundError: If nothing matches
            AmbiguousArtifactError: If a short name matches several sources
        """
        contract_name = name.split(":")[-1]
        candidates = self._load_index().get(contract_name, [])

        if ":" in name:
            candidates = [a for a in candidates if a.fully_qualified_name == name]

        if not candidates:
            raise ArtifactNotFoundError(f"Artifact for contract {name} not found in {self.root}")
        if len(candidates) > 1:
            raise AmbiguousArtifactError(
                name, sorted(a.fully_qualified_name for a in candidates)
            )
        return candidates[0]

    def build_info(self, artifact: Artifact) -> Dict[str, Any]:
        """
        Load the build info (solc version and standard JSON input) of an artifact.

        Raises:
            ArtifactNotFoundError: If the debug file or build info is missing
        """
        if artifact.path is None:
            raise ArtifactNotFoundError(f"Artifact {artifact.fully_qualified_name} has no file")

        dbg_path = artifact.path.with_name(artifact.path.stem + ".dbg.json")
        try:
            with open(dbg_path) as f:
                build_info_ref = json.load(f)["buildInfo"]
            with open((dbg_path.parent / build_info_ref).resolve()) as f:
                return json.load(f)
        except (FileNotFoundError, KeyError) as e:
            raise ArtifactNotFoundError(
                f"Build info for {artifact.fully_qualified_name} not found: {e}"
            ) from e


def _abi_type(param: Dict[str, Any]) -> str:
    abi_type = param["type"]
    if abi_type.startswith("tuple"):
        inner = ",".join(_abi_type(c) for c in param.get("components", []))
        return f"({inner}){abi_type[len('tuple'):]}"
    return abi_type


def _coerce(value: Any, abi_type: str) -> Any:
    # Ledger stores bytes as 0x hex strings
    if abi_type.endswith("]") and isinstance(value, list):
        inner = abi_type[: abi_type.rindex("[")]
        return [_coerce(v, inner) for v in value]
    if abi_type.startswith("(") and isinstance(value, list):
        return tuple(value)
    if abi_type.startswith("bytes") and isinstance(value, str):
        return to_bytes(hexstr=value)
    return value


def encode_constructor_args(artifact: Artifact, args: List[Any]) -> str:
    """
    ABI-encode constructor arguments the way explorers expect them.

    Args:
        artifact: Contract artifact with ABI
        args: Constructor arguments as stored in the ledger

    Returns:
        Hex string without 0x prefix, empty when there are no arguments
    """
    constructor = next((item for item in artifact.abi if item.get("type") == "constructor"), None)
    inputs = constructor.get("inputs", []) if constructor else []
    if len(inputs) != len(args):
        raise ValueError(
            f"{artifact.contract_name} constructor takes {len(inputs)} arguments, got {len(args)}"
        )
    if not inputs:
        return ""

    types = [_abi_type(i) for i in inputs]
    values = [_coerce(v, t) for v, t in zip(args, types)]
    return eth_abi.encode(types, values).hex()
