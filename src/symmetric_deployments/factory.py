"""Contract factories: the chain-facing side of a deployment.

The pipeline only needs :py:class:`ContractFactory`. :py:class:`Web3ContractFactory`
is the production implementation deploying Hardhat artifacts with a local key.
"""

import logging
from typing import Any, List, Optional, Protocol

from eth_account.signers.local import LocalAccount
from web3 import Web3

from .artifacts import HardhatArtifacts
from .exceptions import ContractDeploymentFailed
from .types import DeployResult

logger = logging.getLogger(__name__)


class ContractFactory(Protocol):
    """Deploys one named contract and reports where it landed."""

    #: Chain id of the connected network
    chain_id: int

    #: Address sending the creation transactions
    deployer: str

    def deploy(self, contract_name: str, constructor_args: List[Any]) -> DeployResult:
        """Deploy and wait for confirmation. Raise on any failure."""
        ...


class Web3ContractFactory:
    """Deploy Hardhat artifacts with a locally signing account.

    Transactions are sent one at a time and each one is confirmed before
    returning, so the deployer nonce advances by exactly one per deployment.
    """

    def __init__(
        self,
        web3: Web3,
        account: LocalAccount,
        artifacts: HardhatArtifacts,
        confirmation_timeout: float = 120,
        gas: Optional[int] = None,
    ):
        """
        Args:
            web3: Connected Web3 instance
            account: Deployer account
            artifacts: Compiled contracts
            confirmation_timeout: Seconds to wait for a receipt.
                A timeout is raised as a step failure.
            gas: Fixed gas limit, estimated when not set
        """
        self.web3 = web3
        self.account = account
        self.artifacts = artifacts
        self.confirmation_timeout = confirmation_timeout
        self.gas = gas
        self._chain_id = None

    @property
    def chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = self.web3.eth.chain_id
        return self._chain_id

    @property
    def deployer(self) -> str:
        return self.account.address

    def deploy(self, contract_name: str, constructor_args: List[Any]) -> DeployResult:
        """
        Deploy a contract.

        Args:
            contract_name: Artifact name or fully qualified name
            constructor_args: Constructor arguments

        Returns:
            DeployResult with the receipt's contract address

        Raises:
            ContractDeploymentFailed: If the creation transaction reverted
            web3.exceptions.TimeExhausted: If no receipt within the timeout
        """
        artifact = self.artifacts.find(contract_name)
        Contract = self.web3.eth.contract(abi=artifact.abi, bytecode=artifact.bytecode)

        nonce = self.web3.eth.get_transaction_count(self.account.address, "pending")
        tx_params = {
            "from": self.account.address,
            "nonce": nonce,
            "chainId": self.chain_id,
        }
        if self.gas:
            tx_params["gas"] = self.gas

        tx_data = Contract.constructor(*constructor_args).build_transaction(tx_params)
        signed_tx = self.account.sign_transaction(tx_data)
        tx_hash = self.web3.eth.send_raw_transaction(signed_tx.raw_transaction)
        logger.info("Sent %s creation tx %s (nonce %d)", contract_name, tx_hash.hex(), nonce)

        receipt = self.web3.eth.wait_for_transaction_receipt(
            tx_hash, timeout=self.confirmation_timeout
        )
        if receipt["status"] != 1:
            raise ContractDeploymentFailed(
                tx_hash,
                f"Contract {contract_name} deployment failed with args {constructor_args}, "
                f"tx hash is {tx_hash.hex()}",
            )

        return DeployResult(
            address=receipt["contractAddress"],
            transaction_hash=Web3.to_hex(tx_hash),
        )
