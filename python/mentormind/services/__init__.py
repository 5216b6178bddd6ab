"""Business logic services.

Service-layer functions called by route handlers: model routing, credential
resolution, the streaming chat gateway, BYOK key management and the coin ledger.
"""
