"""Wallet key loading and transaction signing.

The secret key is read once from configuration and kept only inside the
solders Keypair. It is never logged, returned or included in an error
message.

Accepted encodings for WALLET_PRIVATE_KEY:
  - base58 64-byte secret key (Phantom / Solflare export)
  - JSON byte array, as written by `solana-keygen`
  - base64 64-byte secret key
"""

from __future__ import annotations

import base64
import binascii
import json

import base58
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.transaction import VersionedTransaction


class WalletError(Exception):
    """Key material could not be loaded. Never contains key material."""


def load_keypair(secret: str) -> Keypair:
    secret = (secret or "").strip()
    if not secret:
        raise WalletError("WALLET_PRIVATE_KEY is not set")

    if secret.startswith("["):
        try:
            return Keypair.from_bytes(bytes(json.loads(secret)))
        except (ValueError, TypeError) as e:
            raise WalletError("WALLET_PRIVATE_KEY JSON array is not a valid keypair") from e

    try:
        return Keypair.from_bytes(base58.b58decode(secret))
    except (ValueError, TypeError):
        pass

    try:
        raw = base64.b64decode(secret, validate=True)
        return Keypair.from_bytes(raw)
    except (binascii.Error, ValueError, TypeError) as e:
        raise WalletError("WALLET_PRIVATE_KEY is neither base58, base64 nor a JSON byte array") from e


def sign_message(message: MessageV0, keypair: Keypair) -> VersionedTransaction:
    """Sign a compiled v0 message.

    Uses the VersionedTransaction constructor, which applies Solana's
    versioned message signing. Do NOT sign the raw message bytes with
    keypair.sign_message(): that skips the version prefix and yields an
    invalid signature.
    """
    return VersionedTransaction(message, [keypair])
