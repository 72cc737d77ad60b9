"""Signed bearer tokens."""

from leanapi.security.tokens import InvalidToken, TokenSigner

__all__ = ["InvalidToken", "TokenSigner"]
