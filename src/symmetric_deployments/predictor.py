"""CREATE address prediction from a deployer's nonce sequence.

A contract created by a plain transaction lands at

    keccak256(rlp([sender, nonce]))[12:]

so the address of the deployer's k-th next contract is known before it exists,
as long as nothing else spends the deployer's nonces in between.
"""

import logging

import rlp
from eth_typing import ChecksumAddress
from eth_utils import keccak, to_canonical_address, to_checksum_address
from web3 import Web3

from .types import PredictedAddress

logger = logging.getLogger(__name__)


def compute_create_address(sender: str, nonce: int) -> ChecksumAddress:
    """
    Compute the address of a contract created by ``sender`` at ``nonce``.

    Args:
        sender: Deployer address, any hex casing
        nonce: Transaction count of the sender at creation time

    Returns:
        Checksummed contract address

    Raises:
        ValueError: If nonce is negative or sender is not a 20-byte address
    """
    if nonce < 0:
        raise ValueError(f"Nonce must be non-negative, got {nonce}")

    sender_bytes = to_canonical_address(sender)
    encoded = rlp.encode([sender_bytes, nonce])
    return to_checksum_address(keccak(encoded)[12:])


class AddressPredictor:
    """Predicts future contract addresses of one deployer.

    The base nonce is read once, at the start of a deployment run.
    """

    def __init__(self, sender: str, nonce: int):
        if nonce < 0:
            raise ValueError(f"Nonce must be non-negative, got {nonce}")
        self.sender = to_checksum_address(sender)
        self.nonce = nonce

    @classmethod
    def from_web3(cls, web3: Web3, sender: str) -> "AddressPredictor":
        """Read the sender's pending transaction count once and build a predictor."""
        sender = to_checksum_address(sender)
        nonce = web3.eth.get_transaction_count(sender, "pending")
        logger.info("Deployer %s nonce is %d", sender, nonce)
        return cls(sender, nonce)

    def predict(self, nonce_offset: int) -> PredictedAddress:
        """
        Predict the address created after ``nonce_offset`` other creations.

        Args:
            nonce_offset: Number of creation transactions the sender sends
                          before the predicted one

        Returns:
            PredictedAddress

        Raises:
            ValueError: If nonce_offset is negative
        """
        if nonce_offset < 0:
            raise ValueError(f"Nonce offset must be non-negative, got {nonce_offset}")

        nonce = self.nonce + nonce_offset
        return PredictedAddress(
            sender=self.sender,
            nonce_offset=nonce_offset,
            nonce=nonce,
            computed_address=compute_create_address(self.sender, nonce),
        )

    def __repr__(self) -> str:
        return f"<AddressPredictor {self.sender} nonce={self.nonce}>"
