"""Transaction builder — tip, compile, sign, serialize.

Produces the base64 payload the relay accepts: a v0 message compiled
against the latest blockhash and the resolved lookup tables, signed by the
single configured wallet.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass

from solders.address_lookup_table_account import AddressLookupTableAccount
from solders.hash import Hash
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.pubkey import Pubkey

from tweetsniper.execution.instructions import tip_instruction
from tweetsniper.signer.wallet import sign_message


@dataclass(frozen=True)
class BuiltTransaction:
    raw: bytes
    encoded: str
    signature: str

    @property
    def size(self) -> int:
        return len(self.raw)


def build_tipped_transaction(
    instructions: list[Instruction],
    keypair: Keypair,
    recent_blockhash: str,
    lookup_tables: list[AddressLookupTableAccount],
    tip_account: Pubkey,
    tip_lamports: int,
) -> BuiltTransaction:
    """Append the tip, compile to v0, sign, encode.

    The input list is not modified.
    """
    payer = keypair.pubkey()
    ixs = [*instructions, tip_instruction(payer, tip_account, tip_lamports)]
    message = MessageV0.try_compile(
        payer,
        ixs,
        lookup_tables,
        Hash.from_string(recent_blockhash),
    )
    tx = sign_message(message, keypair)
    raw = bytes(tx)
    return BuiltTransaction(
        raw=raw,
        encoded=base64.b64encode(raw).decode("ascii"),
        signature=str(tx.signatures[0]),
    )
