"""
Chain Client
------------
Web3 connection plus the treasury's signing account. The on-chain gateway
builds contract calls; this client fills in nonce, gas and chain id, signs,
sends and waits for receipts.
"""

from typing import Any

from eth_account import Account
from loguru import logger
from web3 import Web3

from autocfo.core.config import NetworkConfig, settings
from autocfo.core.exceptions import ConfigurationError, NetworkError

# Multiplier applied to node gas estimates
GAS_ESTIMATE_MARGIN = 1.2


class ChainClient:
    """Web3 client bound to one network and, optionally, one signing account."""

    def __init__(
        self,
        network: NetworkConfig | None = None,
        private_key: str | None = None,
        w3: Web3 | None = None,
    ):
        """
        Args:
            network: Defaults to ``settings.network``
            private_key: Defaults to ``settings.private_key``; ``0x`` prefix optional
            w3: Ready Web3 instance; skips provider setup and the chain-id check

        Raises:
            ConfigurationError: No RPC URL configured
            NetworkError: Node unreachable or on the wrong chain
        """
        self.network = network or settings.network
        if not self.network or not self.network.rpc_url:
            raise ConfigurationError("RPC URL is required but not provided")

        key = private_key or settings.private_key
        self.private_key = key if not key or key.startswith("0x") else f"0x{key}"
        self.account: Any = Account.from_key(self.private_key) if self.private_key else None
        if self.account:
            logger.info("Treasury signer: {}", self.account.address)

        if w3 is not None:
            self.w3 = w3
            return

        self.w3 = Web3(Web3.HTTPProvider(self.network.rpc_url))
        self._check_chain()

    def _check_chain(self) -> None:
        try:
            connected = self.w3.is_connected()
            chain_id = self.w3.eth.chain_id if connected else None
        except Exception as e:
            raise NetworkError(f"Connection verification failed: {e}")

        if not connected:
            raise NetworkError("Web3 client is not connected", {"rpc_url": self.network.rpc_url})
        if chain_id != self.network.chain_id:
            raise NetworkError(
                "Connected to the wrong chain",
                {"expected": self.network.chain_id, "actual": chain_id},
            )
        logger.info("Connected to {} (chain {})", self.network.name, chain_id)

    @property
    def address(self) -> str | None:
        return self.account.address if self.account else None

    def get_gas_price(self) -> int:
        """Configured gas price if set, otherwise the node's current price (wei)."""
        if self.network.gas_price_gwei:
            return Web3.to_wei(self.network.gas_price_gwei, "gwei")
        try:
            return self.w3.eth.gas_price
        except Exception as e:
            raise NetworkError(f"Failed to get gas price: {e}")

    def estimate_gas(self, transaction: dict[str, Any]) -> int:
        try:
            return int(self.w3.eth.estimate_gas(transaction) * GAS_ESTIMATE_MARGIN)
        except Exception as e:
            raise NetworkError(f"Gas estimation failed: {e}")

    def _fill_defaults(self, transaction: dict[str, Any]) -> None:
        transaction.setdefault("from", self.account.address)
        transaction.setdefault("chainId", self.network.chain_id)
        if "nonce" not in transaction:
            transaction["nonce"] = self.w3.eth.get_transaction_count(self.account.address)
        if "gasPrice" not in transaction and "maxFeePerGas" not in transaction:
            transaction["gasPrice"] = self.get_gas_price()
        if "gas" not in transaction:
            transaction["gas"] = min(self.estimate_gas(transaction), self.network.max_gas_limit)

    def send_transaction(self, transaction: dict[str, Any]) -> str:
        """Fill in missing fields, sign and broadcast. Returns the tx hash (hex).

        Raises:
            ConfigurationError: No signing account
            NetworkError: Gas above the network cap, or the node rejected it
        """
        if not self.account:
            raise ConfigurationError("No account connected for signing transactions")

        try:
            self._fill_defaults(transaction)
        except NetworkError:
            raise
        except Exception as e:
            raise NetworkError(f"Transaction preparation failed: {e}")

        if transaction["gas"] > self.network.max_gas_limit:
            raise NetworkError(
                f"Gas limit {transaction['gas']} exceeds maximum {self.network.max_gas_limit}"
            )

        try:
            signed = self.account.sign_transaction(transaction)
            tx_hash = Web3.to_hex(self.w3.eth.send_raw_transaction(signed.raw_transaction))
        except Exception as e:
            raise NetworkError(f"Transaction failed: {e}")

        logger.info("Transaction sent: {}", tx_hash)
        return tx_hash

    def wait_for_receipt(self, tx_hash: str, timeout: int = 120) -> dict[str, Any]:
        try:
            receipt = dict(self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout))
        except Exception as e:
            raise NetworkError(f"Failed to get receipt for {tx_hash}: {e}")

        if receipt.get("status") == 1:
            logger.info("Confirmed in block {}: {}", receipt.get("blockNumber"), self.network.tx_link(tx_hash))
        else:
            logger.error("Transaction reverted: {}", self.network.tx_link(tx_hash))
        return receipt

    def get_contract(self, address: str, abi: list) -> Any:
        try:
            return self.w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)
        except Exception as e:
            raise NetworkError(f"Failed to create contract instance for {address}: {e}")
