"""
Tier — account classification to basket capacity.

    from cartflow import tier as T

    policy = T.resolve_tier("business", verified=True)
    policy.max_items  # 1000

The identity provider's metadata is normalized once, here, into an
Identity. Nothing else in cartflow reads raw provider metadata.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

# ═══════════════════════════════════════════════════════════════════════════════
# Account Tier
# ═══════════════════════════════════════════════════════════════════════════════


class AccountTier(Enum):
    """Capacity class of an account."""

    GUEST = "guest"
    INDIVIDUAL = "individual"
    BUSINESS = "business"
    VERIFIED_BUSINESS = "verified_business"


MAX_GUEST_ITEMS = 1
MAX_INDIVIDUAL_ITEMS = 10
MAX_BUSINESS_ITEMS = 50
MAX_VERIFIED_ITEMS = 1000  # effectively unbounded


@dataclass(frozen=True, slots=True)
class TierPolicy:
    """Resolved tier with its row limit."""

    tier: AccountTier
    max_items: int

    @property
    def is_guest(self) -> bool:
        return self.tier is AccountTier.GUEST

    @property
    def is_business(self) -> bool:
        return self.tier in (AccountTier.BUSINESS, AccountTier.VERIFIED_BUSINESS)


_POLICIES: dict[AccountTier, TierPolicy] = {
    AccountTier.GUEST: TierPolicy(AccountTier.GUEST, MAX_GUEST_ITEMS),
    AccountTier.INDIVIDUAL: TierPolicy(AccountTier.INDIVIDUAL, MAX_INDIVIDUAL_ITEMS),
    AccountTier.BUSINESS: TierPolicy(AccountTier.BUSINESS, MAX_BUSINESS_ITEMS),
    AccountTier.VERIFIED_BUSINESS: TierPolicy(
        AccountTier.VERIFIED_BUSINESS, MAX_VERIFIED_ITEMS
    ),
}

# (classification, verified) -> tier
_TABLE: dict[tuple[str, bool], AccountTier] = {
    ("individual", False): AccountTier.INDIVIDUAL,
    ("individual", True): AccountTier.INDIVIDUAL,
    ("business", False): AccountTier.BUSINESS,
    ("business", True): AccountTier.VERIFIED_BUSINESS,
}

GUEST_POLICY = _POLICIES[AccountTier.GUEST]


# ═══════════════════════════════════════════════════════════════════════════════
# Identity: normalized provider data
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Identity:
    """A signed-in account, as cartflow sees it."""

    account_id: str
    classification: str | None = None
    verified: bool = False


def normalize_identity(
    account_id: str,
    public_metadata: Mapping[str, Any] | None = None,
    unsafe_metadata: Mapping[str, Any] | None = None,
) -> Identity:
    """
    Build an Identity from identity-provider metadata.

    `accountType` is read from user-editable metadata first, where sign-up
    writes it, then from public metadata. `isVerified` comes from public
    metadata when set there, so an explicit `False` is never overridden
    by the user-editable copy.

    Example:
        normalize_identity("user_1", {"accountType": "business", "isVerified": True})
    """
    public = public_metadata or {}
    unsafe = unsafe_metadata or {}

    classification = unsafe.get("accountType") or public.get("accountType")
    verified = public.get("isVerified")
    if verified is None:
        verified = unsafe.get("isVerified", False)

    return Identity(
        account_id=account_id,
        classification=str(classification).lower() if classification else None,
        verified=bool(verified),
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Resolution
# ═══════════════════════════════════════════════════════════════════════════════


def resolve_tier(classification: str | None, verified: bool = False) -> TierPolicy:
    """
    Map classification + verification flag to a TierPolicy.

    Total: anything unrecognized resolves to guest.
    """
    if classification is None:
        return GUEST_POLICY
    tier = _TABLE.get((classification, bool(verified)), AccountTier.GUEST)
    return _POLICIES[tier]


def policy_for(identity: Identity | None) -> TierPolicy:
    """Tier policy for a (possibly absent) identity."""
    if identity is None:
        return GUEST_POLICY
    return resolve_tier(identity.classification, identity.verified)


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "AccountTier",
    "TierPolicy",
    "GUEST_POLICY",
    "MAX_GUEST_ITEMS",
    "MAX_INDIVIDUAL_ITEMS",
    "MAX_BUSINESS_ITEMS",
    "MAX_VERIFIED_ITEMS",
    "Identity",
    "normalize_identity",
    "resolve_tier",
    "policy_for",
)
