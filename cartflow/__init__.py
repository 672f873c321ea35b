"""
cartflow — quote basket and checkout orchestration for a parts storefront.

    from cartflow import tier as T        # Account class → basket limit
    from cartflow import basket as B      # Basket values and rules
    from cartflow import persist as P     # Device and server storage
    from cartflow import optimistic as O  # Apply, commit, roll back
    from cartflow import checkout as C    # Entry graph and step machine

    session = ShopSession(identity, local, server, services)
"""

from cartflow import tier
from cartflow import basket
from cartflow import persist
from cartflow import optimistic
from cartflow import checkout
from cartflow._types import Lazy, Clock, utcnow
from cartflow.basket._store import BasketStore
from cartflow.merge import IdentityMerger, MergeReport, MergeError
from cartflow.session import ShopSession

__version__ = "0.1.0"

__all__ = (
    "tier",
    "basket",
    "persist",
    "optimistic",
    "checkout",
    "Lazy",
    "Clock",
    "utcnow",
    "BasketStore",
    "IdentityMerger",
    "MergeReport",
    "MergeError",
    "ShopSession",
)
