"""Explorer adapters: the only place where explorer response text is read.

Everything an explorer says is translated into an :py:class:`ExplorerResult`
here. The verification engine never looks at message strings.
"""

import json
import logging
import re
import time
from typing import Any, Dict, List, Optional, Protocol

import requests

from .artifacts import HardhatArtifacts, encode_constructor_args
from .exceptions import AmbiguousArtifactError
from .types import ExplorerResult, ExplorerStatus

logger = logging.getLogger(__name__)


class Explorer(Protocol):
    """Remote source-code verification service."""

    def verify(
        self,
        address: str,
        constructor_args: List[Any],
        contract_path: Optional[str] = None,
        contract_name: Optional[str] = None,
    ) -> ExplorerResult:
        """Submit one contract. Raising counts as a transient failure."""
        ...


#: Lower case fragments -> status, checked in order
_MESSAGE_PATTERNS = [
    ("already verified", ExplorerStatus.ALREADY_VERIFIED),
    ("more than one contract", ExplorerStatus.AMBIGUOUS),
    ("multiple artifacts", ExplorerStatus.AMBIGUOUS),
    ("pass - verified", ExplorerStatus.VERIFIED),
    ("successfully verified", ExplorerStatus.VERIFIED),
]


def classify_explorer_message(message: str) -> ExplorerStatus:
    """
    Translate explorer text into a status.

    Anything not recognised is transient: rate limits, pending queues,
    compiler mismatches and outages all go through the retry path.

    Args:
        message: Raw error or result text

    Returns:
        ExplorerStatus
    """
    text = (message or "").lower()
    for fragment, status in _MESSAGE_PATTERNS:
        if fragment in text:
            return status
    return ExplorerStatus.TRANSIENT


def extract_contract_paths(message: str, contract_name: Optional[str] = None) -> List[str]:
    """
    Find fully qualified contract names in an explorer message.

    Args:
        message: Raw text, e.g. a "more than one contract was found" error
        contract_name: Only return paths ending in this contract

    Returns:
        Unique paths like "contracts/core/Foo.sol:Foo", in order of appearance
    """
    name_pattern = re.escape(contract_name) if contract_name else r"[A-Za-z_$][\w$]*"
    pattern = re.compile(rf"(?:[\w.@-]+/)*[\w.@-]+\.sol:{name_pattern}\b")
    seen: List[str] = []
    for match in pattern.findall(message or ""):
        if match not in seen:
            seen.append(match)
    return seen


def result_from_message(message: str, contract_name: Optional[str] = None) -> ExplorerResult:
    """Build an ExplorerResult from raw explorer text."""
    status = classify_explorer_message(message)
    candidates = []
    if status is ExplorerStatus.AMBIGUOUS:
        candidates = extract_contract_paths(message, contract_name)
    return ExplorerResult(status=status, message=message, candidates=candidates)


class EtherscanExplorer:
    """Verify Hardhat-compiled contracts through an Etherscan-compatible API.

    Submits the standard JSON input of the contract's build and polls the
    verification GUID until the explorer gives a final answer.
    """

    def __init__(
        self,
        api_url: str,
        api_key: str,
        artifacts: HardhatArtifacts,
        session: Optional[requests.Session] = None,
        poll_interval: float = 5.0,
        poll_attempts: int = 10,
        timeout: float = 30,
        sleep=time.sleep,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.artifacts = artifacts
        self.session = session or requests.Session()
        self.poll_interval = poll_interval
        self.poll_attempts = poll_attempts
        self.timeout = timeout
        self._sleep = sleep

    def verify(
        self,
        address: str,
        constructor_args: List[Any],
        contract_path: Optional[str] = None,
        contract_name: Optional[str] = None,
    ) -> ExplorerResult:
        """
        Submit a contract for verification and wait for the verdict.

        Args:
            address: Deployed address
            constructor_args: Constructor arguments from the ledger
            contract_path: Fully qualified name, needed when several sources
                           share the contract name or bytecode
            contract_name: Artifact name, used when no path is given

        Returns:
            ExplorerResult

        Raises:
            requests.RequestException: On network errors, retried by the engine
        """
        name = contract_path or contract_name
        if name is None:
            raise ValueError("Either contract_path or contract_name is needed")

        try:
            artifact = self.artifacts.find(name)
        except AmbiguousArtifactError as e:
            return ExplorerResult(
                status=ExplorerStatus.AMBIGUOUS, message=str(e), candidates=e.candidates
            )

        build_info = self.artifacts.build_info(artifact)
        payload = {
            "apikey": self.api_key,
            "module": "contract",
            "action": "verifysourcecode",
            "contractaddress": address,
            "sourceCode": json.dumps(build_info["input"]),
            "codeformat": "solidity-standard-json-input",
            "contractname": artifact.fully_qualified_name,
            "compilerversion": f"v{build_info['solcLongVersion']}",
            "constructorArguements": encode_constructor_args(artifact, constructor_args),
        }

        response = self._post(payload)
        if str(response.get("status")) != "1":
            return result_from_message(str(response.get("result", "")), artifact.contract_name)

        guid = response["result"]
        logger.info("Submitted %s for verification, GUID %s", artifact.contract_name, guid)
        return self._poll(guid, artifact.contract_name)

    def _poll(self, guid: str, contract_name: str) -> ExplorerResult:
        message = ""
        for _ in range(self.poll_attempts):
            self._sleep(self.poll_interval)
            response = self._get(
                {
                    "apikey": self.api_key,
                    "module": "contract",
                    "action": "checkverifystatus",
                    "guid": guid,
                }
            )
            message = str(response.get("result", ""))
            if "pending" in message.lower():
                logger.debug("Verification %s: %s", guid, message)
                continue
            if str(response.get("status")) == "1":
                return ExplorerResult(status=ExplorerStatus.VERIFIED, message=message)
            return result_from_message(message, contract_name)

        return ExplorerResult(
            status=ExplorerStatus.TRANSIENT,
            message=f"Verification {guid} still pending after {self.poll_attempts} checks: {message}",
        )

    def _post(self, data: Dict[str, Any]) -> Dict[str, Any]:
        response = self.session.post(self.api_url, data=data, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def _get(self, params: Dict[str, Any]) -> Dict[str, Any]:
        response = self.session.get(self.api_url, params=params, timeout=self.timeout)
        response.raise_for_status()
        return response.json()
