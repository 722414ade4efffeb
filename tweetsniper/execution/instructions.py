"""Jupiter instruction payloads -> solders Instructions, plus the relay tip."""

from __future__ import annotations

import base64
from typing import Any

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer


def deserialize_instruction(payload: dict[str, Any]) -> Instruction:
    """``{programId, accounts: [{pubkey, isSigner, isWritable}], data: base64}``."""
    accounts = [
        AccountMeta(
            pubkey=Pubkey.from_string(acc["pubkey"]),
            is_signer=bool(acc.get("isSigner")),
            is_writable=bool(acc.get("isWritable")),
        )
        for acc in payload.get("accounts") or []
    ]
    return Instruction(
        program_id=Pubkey.from_string(payload["programId"]),
        data=base64.b64decode(payload.get("data") or ""),
        accounts=accounts,
    )


def ordered_swap_instructions(swap_instructions: dict[str, Any]) -> list[Instruction]:
    """compute-budget, setup, swap, cleanup — in that order.

    Raises:
        ValueError: the response carries no swap instruction.
    """
    swap = swap_instructions.get("swapInstruction")
    if not swap:
        raise ValueError("swap-instructions response has no swapInstruction")

    payloads: list[dict[str, Any]] = []
    payloads.extend(swap_instructions.get("computeBudgetInstructions") or [])
    payloads.extend(swap_instructions.get("setupInstructions") or [])
    payloads.append(swap)
    cleanup = swap_instructions.get("cleanupInstruction")
    if cleanup:
        payloads.append(cleanup)
    return [deserialize_instruction(p) for p in payloads]


def tip_instruction(payer: Pubkey, tip_account: Pubkey, lamports: int) -> Instruction:
    """System transfer the relay requires for priority handling."""
    return transfer(TransferParams(from_pubkey=payer, to_pubkey=tip_account, lamports=lamports))
