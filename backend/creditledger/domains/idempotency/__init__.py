"""Idempotency domain: processed billing event markers."""

from creditledger.domains.idempotency.protocols import IdempotencyStoreProtocol
from creditledger.domains.idempotency.store import IdempotencyStore, run_purge_loop

__all__ = ["IdempotencyStore", "IdempotencyStoreProtocol", "run_purge_loop"]
