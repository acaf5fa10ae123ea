"""
auth/seed.py -- Startup bootstrap of well-known accounts.

The seed list is injected (core.config.Settings.effective_seed_accounts() in
the API lifespan, or any iterable of objects with username/password/role in
tests). Nothing here is a module-level global.

Existing accounts are never modified: re-running the bootstrap on every
process start is a no-op once the accounts exist.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Protocol

from auth.models import Account, Role
from auth.passwords import PasswordHasher
from auth.service import validate_registration
from auth.store import AccountStore

logger = logging.getLogger("tokengate.auth")


class SeedSpec(Protocol):
    username: str
    password: str
    role: str


def bootstrap_seed_accounts(store: AccountStore, hasher: PasswordHasher, seeds: Iterable[SeedSpec]) -> list[Account]:
    """Create any seed account that does not exist yet. Returns the ones created."""
    pending: list[tuple[str, str, str]] = []
    for seed in seeds:
        validate_registration(seed.username, seed.password)
        if store.find_by_username(seed.username) is not None:
            continue
        pending.append((seed.username, hasher.hash(seed.password), Role(seed.role).value))
    if not pending:
        logger.info("Seed accounts already present")
        return []
    created = store.bootstrap_seed(pending)
    logger.info("Seeded %d account(s): %s", len(created), ", ".join(a.username for a in created))
    return created
