"""
On-Chain Gateway
----------------
ExternalGateway backed by the RWA vault, a swap router, the reserve ERC20
and ENS, all reached through a ChainClient.
"""

import time
from decimal import Decimal
from typing import Optional

from loguru import logger
from web3 import Web3

from autocfo.agents.treasury.gateway import SwapQuote
from autocfo.agents.treasury.swapper import to_base_units
from autocfo.core.config import ConfigManager, TokenConfig, TreasuryConfig, config_manager
from autocfo.core.exceptions import (
    ConfigurationError,
    SwapExecutionError,
    TransferError,
    YieldSourceError,
)
from .client import ChainClient

# Vault reports APY in basis points (650 = 6.5%)
VAULT_ABI = [
    {
        "name": "getAPY",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "apy", "type": "uint256"}],
    },
    {
        "name": "balanceOf",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "account", "type": "address"}],
        "outputs": [{"name": "balance", "type": "uint256"}],
    },
]

ROUTER_ABI = [
    {
        "name": "getAmountsOut",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "amountIn", "type": "uint256"},
            {"name": "path", "type": "address[]"},
        ],
        "outputs": [{"name": "amounts", "type": "uint256[]"}],
    },
    {
        "name": "swapExactTokensForTokens",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "amountIn", "type": "uint256"},
            {"name": "amountOutMin", "type": "uint256"},
            {"name": "path", "type": "address[]"},
            {"name": "to", "type": "address"},
            {"name": "deadline", "type": "uint256"},
        ],
        "outputs": [{"name": "amounts", "type": "uint256[]"}],
    },
]

ERC20_ABI = [
    {
        "name": "transfer",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "to", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [{"name": "success", "type": "bool"}],
    },
    {
        "name": "approve",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "spender", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [{"name": "success", "type": "bool"}],
    },
    {
        "name": "allowance",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "owner", "type": "address"},
            {"name": "spender", "type": "address"},
        ],
        "outputs": [{"name": "remaining", "type": "uint256"}],
    },
]

BPS = Decimal("10000")


class OnChainGateway:
    """
    Treasury gateway talking to deployed contracts.

    Quotes come from the router's ``getAmountsOut``; swaps are sent with a
    minimum output reduced by ``max_slippage_bps``. Every call either returns
    a value or raises a GatewayError subclass.
    """

    def __init__(
        self,
        client: ChainClient,
        vault_address: str,
        router_address: str,
        reserve_token: TokenConfig,
        treasury: TreasuryConfig,
        receipt_timeout: int = 120,
    ):
        if not client.address:
            raise ConfigurationError("On-chain gateway needs a signing account")

        self.client = client
        self.treasury = treasury
        self.reserve_token = reserve_token
        self.receipt_timeout = receipt_timeout

        self.vault = client.get_contract(vault_address, VAULT_ABI)
        self.router = client.get_contract(router_address, ROUTER_ABI)
        self.reserve_contract = client.get_contract(reserve_token.address, ERC20_ABI)

        logger.info(
            "On-chain gateway ready (vault: {}, router: {}, reserve: {})",
            vault_address, router_address, reserve_token.symbol
        )

    @classmethod
    def from_config(cls, client: ChainClient, manager: ConfigManager | None = None) -> "OnChainGateway":
        manager = manager or config_manager
        manager.validate_onchain_configuration()
        treasury = manager.treasury
        return cls(
            client=client,
            vault_address=manager.get_contract("ARC_VAULT").address,
            router_address=manager.get_contract("SWAP_ROUTER").address,
            reserve_token=manager.get_token(treasury.reserve_token),
            treasury=treasury,
        )

    def get_yield_rate(self) -> Decimal:
        try:
            apy_bps = self.vault.functions.getAPY().call()
        except Exception as e:
            raise YieldSourceError(f"Vault APY lookup failed: {e}") from e
        return Decimal(apy_bps) / Decimal(100)

    def get_swap_quote(self, amount_in: int, token_in: str, token_out: str) -> SwapQuote:
        path = [Web3.to_checksum_address(token_in), Web3.to_checksum_address(token_out)]
        try:
            amounts = self.router.functions.getAmountsOut(amount_in, path).call()
        except Exception as e:
            raise SwapExecutionError(f"Quote failed: {e}") from e

        return SwapQuote(
            amount_in=amount_in,
            amount_out=int(amounts[-1]),
            token_in=path[0],
            token_out=path[1],
            slippage=Decimal(self.treasury.max_slippage_bps) / Decimal(100),
        )

    def execute_swap(self, quote: SwapQuote) -> str:
        min_out = int(Decimal(quote.amount_out) * (BPS - self.treasury.max_slippage_bps) / BPS)
        deadline = int(time.time()) + self.treasury.swap_deadline_minutes * 60

        try:
            self._ensure_allowance(quote.token_in, quote.amount_in)
            tx = self.router.functions.swapExactTokensForTokens(
                quote.amount_in,
                min_out,
                [quote.token_in, quote.token_out],
                self.client.address,
                deadline,
            ).build_transaction({"from": self.client.address})
            tx_hash = self.client.send_transaction(tx)
        except Exception as e:
            raise SwapExecutionError(f"Swap failed: {e}") from e

        receipt = self.client.wait_for_receipt(tx_hash, timeout=self.receipt_timeout)
        if receipt.get("status") != 1:
            raise SwapExecutionError("Swap transaction reverted", tx_hash=tx_hash)
        return tx_hash

    def _ensure_allowance(self, token: str, amount: int) -> None:
        erc20 = self.client.get_contract(token, ERC20_ABI)
        spender = self.router.address
        current = erc20.functions.allowance(self.client.address, spender).call()
        if current >= amount:
            return

        logger.info("Approving router for {} base units of {}", amount, token)
        tx = erc20.functions.approve(spender, amount).build_transaction({"from": self.client.address})
        tx_hash = self.client.send_transaction(tx)
        receipt = self.client.wait_for_receipt(tx_hash, timeout=self.receipt_timeout)
        if receipt.get("status") != 1:
            raise SwapExecutionError("Router approval reverted", tx_hash=tx_hash)

    def transfer(self, to_address: str, amount: Decimal) -> str:
        base_units = to_base_units(amount, self.reserve_token.decimals)
        try:
            tx = self.reserve_contract.functions.transfer(
                Web3.to_checksum_address(to_address), base_units
            ).build_transaction({"from": self.client.address})
            tx_hash = self.client.send_transaction(tx)
        except Exception as e:
            raise TransferError(f"Transfer to {to_address} failed: {e}") from e

        receipt = self.client.wait_for_receipt(tx_hash, timeout=self.receipt_timeout)
        if receipt.get("status") != 1:
            raise TransferError("Transfer transaction reverted", {"tx_hash": tx_hash})
        return tx_hash

    def resolve_name(self, name: str) -> Optional[str]:
        if Web3.is_address(name):
            return Web3.to_checksum_address(name)
        try:
            address = self.client.w3.ens.address(name)
        except Exception as e:
            logger.warning("Failed to resolve ENS name {}: {}", name, e)
            return None
        return address or None
