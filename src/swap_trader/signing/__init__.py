"""Signing strategies."""

from swap_trader.signing.signers import ClientSigner, HeldKeySigner, Signer, load_signer_factory

__all__ = ["ClientSigner", "HeldKeySigner", "Signer", "load_signer_factory"]
