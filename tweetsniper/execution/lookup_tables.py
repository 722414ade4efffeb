"""Address-table resolution.

Fetches the lookup tables a Jupiter route references. Tables that do not
exist on chain are skipped: compaction is an optimisation, the transaction
still compiles without them.
"""

from __future__ import annotations

import logging

from solders.address_lookup_table_account import AddressLookupTable, AddressLookupTableAccount
from solders.pubkey import Pubkey

from tweetsniper.clients.solana_rpc import SolanaRPCClient

log = logging.getLogger("tweetsniper.lookup_tables")


async def resolve_lookup_tables(
    rpc: SolanaRPCClient,
    addresses: list[str],
) -> list[AddressLookupTableAccount]:
    if not addresses:
        return []

    raw_accounts = await rpc.get_multiple_accounts(addresses)
    tables: list[AddressLookupTableAccount] = []
    for address, raw in zip(addresses, raw_accounts):
        if raw is None:
            log.info("Lookup table %s not found, skipping", address)
            continue
        try:
            state = AddressLookupTable.deserialize(raw)
        except ValueError as e:
            log.warning("Lookup table %s undecodable, skipping: %s", address, e)
            continue
        tables.append(
            AddressLookupTableAccount(key=Pubkey.from_string(address), addresses=list(state.addresses))
        )
    return tables
