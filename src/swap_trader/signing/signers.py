"""Signing strategies behind one ``Signer`` capability.

Key custody lives outside this package. A held-key signer wraps a signing
primitive supplied by the wallet integration; a client signer round-trips
the unsigned transaction to whoever holds the key (e.g. a browser wallet).
"""

from __future__ import annotations

import importlib
from typing import Callable, Protocol

from swap_trader.errors import SigningFailed

SignFn = Callable[[bytes], bytes]


class Signer(Protocol):
    """Signs serialized transactions for one public identity."""

    @property
    def public_id(self) -> str:
        """Public key / account address."""

    def sign(self, unsigned_tx: bytes) -> bytes:
        """Return the signed transaction bytes. Raises ``SigningFailed``."""


class HeldKeySigner:
    """Signs with key material held by this process."""

    def __init__(self, public_id: str, sign_fn: SignFn) -> None:
        if not public_id:
            raise ValueError("public_id_required")
        self._public_id = public_id
        self._sign_fn = sign_fn

    @property
    def public_id(self) -> str:
        return self._public_id

    def sign(self, unsigned_tx: bytes) -> bytes:
        return _checked_sign(self._sign_fn, unsigned_tx)


class ClientSigner:
    """Returns the unsigned transaction to the client and waits for its signature."""

    def __init__(self, public_id: str, request_signature: SignFn) -> None:
        if not public_id:
            raise ValueError("public_id_required")
        self._public_id = public_id
        self._request_signature = request_signature

    @property
    def public_id(self) -> str:
        return self._public_id

    def sign(self, unsigned_tx: bytes) -> bytes:
        return _checked_sign(self._request_signature, unsigned_tx)


def _checked_sign(fn: SignFn, unsigned_tx: bytes) -> bytes:
    try:
        signed = fn(unsigned_tx)
    except SigningFailed:
        raise
    except Exception as exc:  # noqa: BLE001 - any strategy failure is a signing failure.
        raise SigningFailed(f"signer_error: {exc}") from exc
    if not isinstance(signed, (bytes, bytearray)) or not signed:
        raise SigningFailed("signer_returned_empty")
    return bytes(signed)


def load_signer_factory(path: str) -> Callable[[], Signer]:
    """Resolve a ``module:callable`` path to a zero-argument signer factory."""
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"invalid_signer_factory: {path!r}")
    module = importlib.import_module(module_name)
    factory = getattr(module, attr)
    if not callable(factory):
        raise ValueError(f"signer_factory_not_callable: {path!r}")
    return factory
