"""Trade Execution Pipeline — one buy per MatchEvent.

Flow (strictly sequential, any failure aborts):
    0. Validate the amount and floor it to lamports
    1. Jupiter quote (dry-run stops here)
    2. Jupiter swap instructions
    3. Lookup tables from chain (missing ones skipped)
    4. Tip, compile v0, sign, encode
    5. Relay sendTransaction (never resent)

`execute()` never raises: every outcome is a TradeResult. A failed buy is
not retried; a resend after an ambiguous relay failure could double-spend.
"""

from __future__ import annotations

import logging
import math
from decimal import ROUND_FLOOR, Decimal, InvalidOperation
from enum import Enum
from typing import Any

from solders.keypair import Keypair
from solders.pubkey import Pubkey

from tweetsniper.clients.base import APIError
from tweetsniper.clients.jupiter import JupiterClient
from tweetsniper.clients.relay import RelayClient
from tweetsniper.clients.solana_rpc import SolanaRPCClient
from tweetsniper.config import DEFAULT_TIP_ACCOUNT, SOL_MINT, ConfigError, Settings
from tweetsniper.execution.instructions import ordered_swap_instructions
from tweetsniper.execution.lookup_tables import resolve_lookup_tables
from tweetsniper.execution.tx_builder import build_tipped_transaction
from tweetsniper.models import TradeResult, TradeStatus
from tweetsniper.signer.wallet import load_keypair

log = logging.getLogger("tweetsniper.pipeline")

LAMPORTS_PER_SOL = 1_000_000_000


class Stage(str, Enum):
    VALIDATE = "validate"
    QUOTE = "quote"
    INSTRUCTIONS = "instructions"
    LOOKUP_TABLES = "lookup_tables"
    BUILD = "build"
    SUBMIT = "submit"


class StageError(Exception):
    def __init__(self, stage: Stage, reason: str):
        super().__init__(f"{stage.value}: {reason}")
        self.stage = stage
        self.reason = reason


def sol_to_lamports(amount: Any) -> int:
    """Fractional SOL -> integer lamports, always rounding down.

    Raises:
        ValueError: non-numeric, non-finite or non-positive amount.
    """
    if isinstance(amount, bool):
        raise ValueError(f"Invalid amount: {amount!r}")
    try:
        value = Decimal(str(amount).strip())
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Invalid amount: {amount!r}") from e
    if not value.is_finite() or value <= 0:
        raise ValueError(f"Invalid amount: {amount!r}. Must be a positive number.")
    return int((value * LAMPORTS_PER_SOL).to_integral_value(rounding=ROUND_FLOOR))


class TradeExecutionPipeline:
    def __init__(
        self,
        jupiter: JupiterClient,
        rpc: SolanaRPCClient | None,
        relay: RelayClient | None,
        keypair: Keypair | None,
        input_mint: str = SOL_MINT,
        slippage_bps: int = 100,
        tip_account: str = DEFAULT_TIP_ACCOUNT,
        tip_lamports: int = 100_000,
        min_amount_sol: float = 0.0,
        dry_run: bool = False,
    ):
        self.jupiter = jupiter
        self.rpc = rpc
        self.relay = relay
        self.keypair = keypair
        self.input_mint = input_mint
        self.slippage_bps = slippage_bps
        self.tip_account = Pubkey.from_string(tip_account)
        self.tip_lamports = tip_lamports
        self.min_amount_sol = min_amount_sol
        self.dry_run = dry_run

    @classmethod
    def from_settings(cls, settings: Settings) -> TradeExecutionPipeline:
        """Wire real clients. Live trading needs wallet + relay; dry-run needs neither.

        Raises:
            WalletError: WALLET_PRIVATE_KEY is set but unreadable.
            ConfigError: TIP_ACCOUNT is not a valid address.
        """
        keypair = load_keypair(settings.wallet_private_key) if settings.wallet_private_key else None
        try:
            Pubkey.from_string(settings.tip_account)
        except ValueError as e:
            raise ConfigError(f"Invalid TIP_ACCOUNT: {settings.tip_account!r}") from e
        relay = (
            RelayClient(settings.relay_url, settings.relay_api_key)
            if settings.relay_url and settings.relay_api_key
            else None
        )
        return cls(
            jupiter=JupiterClient(settings.jupiter_api_base),
            rpc=SolanaRPCClient(settings.rpc_url, settings.fallback_rpc_url),
            relay=relay,
            keypair=keypair,
            input_mint=settings.input_mint,
            slippage_bps=settings.slippage_bps,
            tip_account=settings.tip_account,
            tip_lamports=settings.tip_lamports,
            min_amount_sol=settings.min_buy_amount,
            dry_run=settings.dry_run,
        )

    async def execute(self, target_asset_id: str, amount: Any) -> TradeResult:
        try:
            return await self._run(target_asset_id, amount)
        except StageError as e:
            log.error("Purchase of %s failed at %s: %s", target_asset_id, e.stage.value, e.reason)
            return self._failure(target_asset_id, amount, e.stage, e.reason)
        except Exception as e:  # noqa: BLE001
            log.exception("Unexpected error during purchase of %s", target_asset_id)
            return self._failure(target_asset_id, amount, None, f"unexpected error: {e}")

    async def _run(self, target_asset_id: str, amount: Any) -> TradeResult:
        lamports = self._validate(amount)
        log.info("Executing purchase of %s for %s SOL (%d lamports)", target_asset_id, amount, lamports)

        quote = await self._quote(target_asset_id, lamports)
        if self.dry_run:
            return TradeResult(
                target_asset_id=target_asset_id,
                amount=float(amount),
                status=TradeStatus.DRY_RUN,
                out_amount=str(quote.get("outAmount")),
            )

        if self.keypair is None or self.relay is None or self.rpc is None:
            raise StageError(Stage.VALIDATE, "trading disabled: wallet or relay not configured")

        swap_instructions = await self._instructions(quote)
        instructions = self._decode(swap_instructions)
        tables = await self._lookup_tables(swap_instructions.get("addressLookupTableAddresses") or [])
        built = await self._build(instructions, tables)
        tx_id = await self._submit(built.encoded)

        log.info("Purchase of %s submitted: %s", target_asset_id, tx_id)
        return TradeResult(
            target_asset_id=target_asset_id,
            amount=float(amount),
            status=TradeStatus.SUCCESS,
            transaction_id=tx_id,
            out_amount=str(quote.get("outAmount")),
        )

    # ── Stages ───────────────────────────────────────────────────────

    def _validate(self, amount: Any) -> int:
        try:
            lamports = sol_to_lamports(amount)
        except ValueError as e:
            raise StageError(Stage.VALIDATE, str(e)) from e
        if lamports <= 0:
            raise StageError(Stage.VALIDATE, f"amount {amount} SOL is below one lamport")
        if self.min_amount_sol > 0 and lamports < sol_to_lamports(self.min_amount_sol):
            raise StageError(Stage.VALIDATE, f"amount {amount} SOL is below minimum {self.min_amount_sol} SOL")
        return lamports

    async def _quote(self, target_asset_id: str, lamports: int) -> dict[str, Any]:
        try:
            quote = await self.jupiter.get_quote(
                input_mint=self.input_mint,
                output_mint=target_asset_id,
                amount=lamports,
                slippage_bps=self.slippage_bps,
            )
        except APIError as e:
            raise StageError(Stage.QUOTE, str(e)) from e
        if not isinstance(quote, dict) or not quote.get("outAmount"):
            raise StageError(Stage.QUOTE, "no valid quote received")
        log.info("Quote received: %s output tokens", quote["outAmount"])
        return quote

    async def _instructions(self, quote: dict[str, Any]) -> dict[str, Any]:
        try:
            data = await self.jupiter.get_swap_instructions(quote, str(self.keypair.pubkey()))
        except APIError as e:
            raise StageError(Stage.INSTRUCTIONS, str(e)) from e
        if not isinstance(data, dict) or data.get("error"):
            reason = data.get("error") if isinstance(data, dict) else data
            raise StageError(Stage.INSTRUCTIONS, f"swap-instructions error: {str(reason)[:200]}")
        return data

    def _decode(self, swap_instructions: dict[str, Any]) -> list:
        try:
            return ordered_swap_instructions(swap_instructions)
        except (KeyError, ValueError, TypeError) as e:
            raise StageError(Stage.INSTRUCTIONS, f"malformed instruction payload: {e}") from e

    async def _lookup_tables(self, addresses: list[str]) -> list:
        try:
            return await resolve_lookup_tables(self.rpc, addresses)
        except APIError as e:
            raise StageError(Stage.LOOKUP_TABLES, str(e)) from e

    async def _build(self, instructions: list, tables: list):
        try:
            blockhash = await self.rpc.get_latest_blockhash()
        except APIError as e:
            raise StageError(Stage.BUILD, str(e)) from e
        try:
            built = build_tipped_transaction(
                instructions,
                self.keypair,
                blockhash,
                tables,
                self.tip_account,
                self.tip_lamports,
            )
        except Exception as e:  # noqa: BLE001
            raise StageError(Stage.BUILD, f"could not compile transaction: {e}") from e
        log.info("Serialized transaction: %d bytes", built.size)
        return built

    async def _submit(self, encoded_tx: str) -> str:
        try:
            response = await self.relay.send_transaction(encoded_tx)
        except APIError as e:
            raise StageError(Stage.SUBMIT, str(e)) from e
        if not response.ok:
            raise StageError(Stage.SUBMIT, response.describe_error())
        return response.result

    def _failure(self, target_asset_id: str, amount: Any, stage: Stage | None, reason: str) -> TradeResult:
        try:
            amount_value = float(amount)
        except (TypeError, ValueError):
            amount_value = math.nan
        return TradeResult(
            target_asset_id=target_asset_id,
            amount=amount_value,
            status=TradeStatus.FAILED,
            failure_reason=reason,
            failed_stage=stage.value if stage else None,
        )

    async def close(self) -> None:
        await self.jupiter.close()
        if self.rpc is not None:
            await self.rpc.close()
        if self.relay is not None:
            await self.relay.close()
