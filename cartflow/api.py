"""
HTTP surface — FastAPI app over per-session ShopSessions.

    app = create_app()            # settings from the environment
    uvicorn.run(app)

A session is named by the `X-Session-Id` header. Identity arrives with
each request in `X-Account-Id`, `X-Account-Type`, `X-Account-Verified`;
a change between requests is a sign-in or sign-out.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Annotated, Any, Literal, NoReturn

import fastapi
from fastapi import Depends, Header, HTTPException, Request
from pydantic import BaseModel, Field
from kungfu import Result, Ok, Error

from cartflow.basket._types import BasketError, BasketErrorKind, BasketItem, NewItem
from cartflow.checkout import (
    CheckoutError,
    CheckoutErrorKind,
    CheckoutServices,
    CheckoutSession,
    CheckoutSource,
    EntryRejection,
)
from cartflow.config import Settings, configure_logging, load_settings
from cartflow.memory import (
    MemoryAddressBook,
    MemoryCatalog,
    MemoryIdentityProvider,
    MemoryOrderService,
    MemoryPaymentGateway,
    MemoryQuoteService,
    RecordingNavigator,
    RecordingNotifier,
)
from cartflow.persist import (
    FileLocalStorage,
    LocalBasketBackend,
    LocalStorage,
    MemoryLocalStorage,
    ServerBasketStore,
    create_database,
)
from cartflow.services import (
    Address,
    AddressService,
    CatalogLookup,
    CheckoutLine,
    CheckoutSummary,
    OrderService,
    PaymentGateway,
    QuoteService,
)
from cartflow.session import ShopSession
from cartflow.tier import normalize_identity

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════════
# Request / Response models
# ═══════════════════════════════════════════════════════════════════════════════


class AddItemIn(BaseModel):
    """Without `name` the item is looked up in the catalog."""

    product_id: str
    variant_id: str | None = None
    quantity: int = Field(default=1, ge=1)
    name: str | None = None
    sku: str | None = None
    thumbnail: str | None = None
    unit_price: int | None = Field(default=None, ge=0)
    notes: str | None = None

    def to_domain(self) -> NewItem | None:
        if self.name is None:
            return None
        return NewItem(
            product_id=self.product_id,
            name=self.name,
            quantity=self.quantity,
            variant_id=self.variant_id,
            sku=self.sku,
            thumbnail=self.thumbnail,
            unit_price=self.unit_price,
            notes=self.notes,
        )


class QuantityIn(BaseModel):
    quantity: int  # zero or less removes the row


class BasketItemOut(BaseModel):
    id: str
    product_id: str
    variant_id: str | None
    name: str
    quantity: int
    sku: str | None
    thumbnail: str | None
    unit_price: int | None
    bulk_pricing_requested: bool
    notes: str | None

    @classmethod
    def from_domain(cls, item: BasketItem) -> "BasketItemOut":
        return cls(
            id=item.id,
            product_id=item.product_id,
            variant_id=item.variant_id,
            name=item.name,
            quantity=item.quantity,
            sku=item.sku,
            thumbnail=item.thumbnail,
            unit_price=item.unit_price,
            bulk_pricing_requested=item.bulk_pricing_requested,
            notes=item.notes,
        )


class BasketOut(BaseModel):
    items: list[BasketItemOut]
    item_count: int
    tier: str
    max_items: int
    updated_at: datetime

    @classmethod
    def from_domain(cls, session: ShopSession) -> "BasketOut":
        store = session.basket
        policy = store.policy
        return cls(
            items=[BasketItemOut.from_domain(i) for i in store.items],
            item_count=store.item_count,
            tier=policy.tier.value,
            max_items=policy.max_items,
            updated_at=store.basket.updated_at,
        )


class CheckoutIn(BaseModel):
    source: Literal["cart", "quote"]
    quote_id: str | None = None


class AddressesIn(BaseModel):
    shipping_address_id: str | None = None
    billing_address_id: str | None = None
    use_same_address: bool | None = None


class TermsIn(BaseModel):
    accepted: bool


class AddressOut(BaseModel):
    id: str
    contact_name: str
    line1: str
    line2: str | None
    city: str
    state: str
    postal_code: str
    phone: str
    address_type: str
    is_default: bool

    @classmethod
    def from_domain(cls, a: Address) -> "AddressOut":
        return cls(
            id=a.id,
            contact_name=a.contact_name,
            line1=a.line1,
            line2=a.line2,
            city=a.city,
            state=a.state,
            postal_code=a.postal_code,
            phone=a.phone,
            address_type=a.address_type.value,
            is_default=a.is_default,
        )


class LineOut(BaseModel):
    product_id: str
    variant_id: str | None
    name: str
    quantity: int
    unit_price: int
    total_price: int

    @classmethod
    def from_domain(cls, line: CheckoutLine) -> "LineOut":
        return cls(
            product_id=line.product_id,
            variant_id=line.variant_id,
            name=line.name,
            quantity=line.quantity,
            unit_price=line.unit_price,
            total_price=line.total_price,
        )


class SummaryOut(BaseModel):
    subtotal: int
    tax: int
    tax_rate: int
    shipping: int
    discount: int
    total: int
    currency: str

    @classmethod
    def from_domain(cls, s: CheckoutSummary) -> "SummaryOut":
        return cls(
            subtotal=s.subtotal,
            tax=s.tax,
            tax_rate=s.tax_rate,
            shipping=s.shipping,
            discount=s.discount,
            total=s.total,
            currency=s.currency,
        )


class CheckoutOut(BaseModel):
    source: str
    step: str
    quote_id: str | None
    shipping_address_id: str | None
    billing_address_id: str | None
    use_same_address: bool
    terms_accepted: bool
    can_advance: bool
    addresses: list[AddressOut]
    lines: list[LineOut]
    summary: SummaryOut
    order_id: str | None
    order_number: str | None

    @classmethod
    def from_domain(cls, c: CheckoutSession) -> "CheckoutOut":
        ws = c.working_set
        return cls(
            source=c.source.value,
            step=c.step.value,
            quote_id=ws.quote_id,
            shipping_address_id=c.shipping_address_id,
            billing_address_id=c.billing_address_id,
            use_same_address=c.use_same_address,
            terms_accepted=c.terms_accepted,
            can_advance=c.can_advance,
            addresses=[AddressOut.from_domain(a) for a in c.addresses],
            lines=[LineOut.from_domain(line) for line in ws.lines],
            summary=SummaryOut.from_domain(ws.summary),
            order_id=c.order.order_id if c.order else None,
            order_number=c.order.order_number if c.order else None,
        )


class PaymentOut(BaseModel):
    success: bool
    order_id: str
    transaction_id: str | None
    redirect_to: str | None


class NoticeOut(BaseModel):
    level: str
    message: str


class NotificationsOut(BaseModel):
    notices: list[NoticeOut]
    redirect_to: str | None


# ═══════════════════════════════════════════════════════════════════════════════
# Error mapping
# ═══════════════════════════════════════════════════════════════════════════════

_BASKET_STATUS = {
    BasketErrorKind.CAPACITY: 409,
    BasketErrorKind.PERSISTENCE: 503,
    BasketErrorKind.CATALOG: 404,
}

_CHECKOUT_STATUS = {
    CheckoutErrorKind.PRECONDITION: 409,
    CheckoutErrorKind.VALIDATION: 422,
    CheckoutErrorKind.ORDER_FAILED: 409,
    CheckoutErrorKind.PAYMENT_FAILED: 402,
}


def _raise_basket(error: BasketError) -> NoReturn:
    raise HTTPException(
        _BASKET_STATUS[error.kind],
        detail={"kind": error.kind.name.lower(), "message": error.message},
    )


def _raise_checkout(error: CheckoutError) -> NoReturn:
    raise HTTPException(
        _CHECKOUT_STATUS[error.kind],
        detail={"kind": error.kind.name.lower(), "message": error.message},
    )


def _raise_rejection(rejection: EntryRejection) -> NoReturn:
    raise HTTPException(
        409,
        detail={
            "kind": "precondition",
            "reason": rejection.reason.name.lower(),
            "message": rejection.message,
            "redirect_to": rejection.redirect_to,
        },
    )


def _unwrap_basket[T](result: Result[T, BasketError]) -> T:
    match result:
        case Ok(value):
            return value
        case Error(e):
            _raise_basket(e)


def _unwrap_checkout[T](result: Result[T, CheckoutError]) -> T:
    match result:
        case Ok(value):
            return value
        case Error(e):
            _raise_checkout(e)


# ═══════════════════════════════════════════════════════════════════════════════
# Session registry
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass
class Collaborators:
    """Shared across sessions. Defaults are the in-memory ones."""

    catalog: CatalogLookup = field(default_factory=MemoryCatalog)
    quotes: QuoteService = field(default_factory=MemoryQuoteService)
    addresses: AddressService = field(default_factory=MemoryAddressBook)
    orders: OrderService = field(default_factory=MemoryOrderService)
    payments: PaymentGateway = field(default_factory=MemoryPaymentGateway)


@dataclass
class SessionEntry:
    shop: ShopSession
    identity: MemoryIdentityProvider
    notifier: RecordingNotifier
    navigator: RecordingNavigator


MAX_NOTICES = 50
MAX_ROUTES = 10


class SessionRegistry:
    """
    Live sessions by `X-Session-Id`, least recently used evicted first.

    An evicted session keeps nothing in memory. Its account basket is on
    the server, and its guest basket survives only with file storage.
    """

    def __init__(self, settings: Settings, collaborators: Collaborators) -> None:
        self._settings = settings
        self._collaborators = collaborators
        self._max_sessions = settings.max_sessions
        self._sessions: dict[str, SessionEntry] = {}
        self._order: list[str] = []
        self.server: ServerBasketStore | None = None

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def _local_storage(self, session_id: str) -> LocalStorage:
        if self._settings.local_storage_path is None:
            return MemoryLocalStorage()
        return FileLocalStorage(Path(self._settings.local_storage_path) / f"{session_id}.json")

    def get(self, session_id: str) -> SessionEntry:
        entry = self._sessions.get(session_id)
        if entry is not None:
            self._order.remove(session_id)
            self._order.append(session_id)
            return entry
        if self.server is None:
            raise RuntimeError("server basket store not initialised")

        c = self._collaborators
        identity = MemoryIdentityProvider()
        notifier = RecordingNotifier(limit=MAX_NOTICES)
        navigator = RecordingNavigator(limit=MAX_ROUTES)
        services = CheckoutServices(
            quotes=c.quotes,
            addresses=c.addresses,
            orders=c.orders,
            payments=c.payments,
            notifier=notifier,
            navigator=navigator,
        )
        local = LocalBasketBackend(
            self._local_storage(session_id), key=self._settings.guest_basket_key
        )
        shop = ShopSession(
            identity,
            local,
            self.server,
            services,
            catalog=c.catalog,
            gst_percentage=self._settings.gst_percentage,
            currency=self._settings.currency,
        )
        entry = SessionEntry(shop, identity, notifier, navigator)
        if len(self._sessions) >= self._max_sessions:
            oldest = self._order.pop(0)
            del self._sessions[oldest]
            logger.info("evicted idle session %s", oldest)
        self._sessions[session_id] = entry
        self._order.append(session_id)
        logger.info("new session %s", session_id)
        return entry


def _truthy(value: str | None) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes")


async def current_session(
    request: Request,
    x_session_id: Annotated[str, Header()],
    x_account_id: Annotated[str | None, Header()] = None,
    x_account_type: Annotated[str | None, Header()] = None,
    x_account_verified: Annotated[str | None, Header()] = None,
) -> SessionEntry:
    """Resolve the session and apply this request's identity to it."""
    registry: SessionRegistry = request.app.state.registry
    entry = registry.get(x_session_id)

    if x_account_id:
        entry.identity.sign_in(
            normalize_identity(
                x_account_id,
                {"accountType": x_account_type, "isVerified": _truthy(x_account_verified)},
            )
        )
    else:
        entry.identity.sign_out()

    await entry.shop.sync_identity()
    return entry


Session = Annotated[SessionEntry, Depends(current_session)]


def _checkout(entry: SessionEntry) -> CheckoutSession:
    if entry.shop.checkout is None:
        raise HTTPException(409, detail={"kind": "precondition", "message": "No checkout in progress"})
    return entry.shop.checkout


# ═══════════════════════════════════════════════════════════════════════════════
# App
# ═══════════════════════════════════════════════════════════════════════════════


def create_app(
    settings: Settings | None = None,
    collaborators: Collaborators | None = None,
) -> fastapi.FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level)
    registry = SessionRegistry(settings, collaborators or Collaborators())

    @asynccontextmanager
    async def lifespan(app: fastapi.FastAPI) -> AsyncIterator[None]:
        session_factory, engine = await create_database(settings.database_url)
        registry.server = ServerBasketStore(session_factory)
        try:
            yield
        finally:
            await engine.dispose()

    app = fastapi.FastAPI(title="cartflow", lifespan=lifespan)
    app.state.registry = registry
    app.state.settings = settings

    # ── basket ──────────────────────────────────────────────────────────────

    @app.get("/basket")
    async def get_basket(s: Session) -> BasketOut:
        return BasketOut.from_domain(s.shop)

    @app.post("/basket/items", status_code=201)
    async def add_item(body: AddItemIn, s: Session) -> BasketItemOut:
        store = s.shop.basket
        item = body.to_domain()
        if item is None:
            result = await store.add_from_catalog(body.product_id, body.variant_id, body.quantity)
        else:
            result = await store.add_item(item)
        return BasketItemOut.from_domain(_unwrap_basket(result))

    @app.patch("/basket/items/{item_id}")
    async def update_quantity(item_id: str, body: QuantityIn, s: Session) -> BasketOut:
        _found(_unwrap_basket(await s.shop.basket.update_quantity(item_id, body.quantity)))
        return BasketOut.from_domain(s.shop)

    @app.post("/basket/items/{item_id}/bulk-pricing")
    async def toggle_bulk_pricing(item_id: str, s: Session) -> BasketOut:
        _found(_unwrap_basket(await s.shop.basket.toggle_bulk_pricing(item_id)))
        return BasketOut.from_domain(s.shop)

    @app.delete("/basket/items/{item_id}")
    async def remove_item(item_id: str, s: Session) -> BasketOut:
        _found(_unwrap_basket(await s.shop.basket.remove_item(item_id)))
        return BasketOut.from_domain(s.shop)

    @app.delete("/basket")
    async def clear_basket(s: Session) -> BasketOut:
        _unwrap_basket(await s.shop.basket.clear())
        return BasketOut.from_domain(s.shop)

    # ── checkout ────────────────────────────────────────────────────────────

    @app.post("/checkout")
    async def begin(body: CheckoutIn, s: Session) -> CheckoutOut:
        match await s.shop.begin_checkout(CheckoutSource(body.source), body.quote_id):
            case Error(rejection):
                _raise_rejection(rejection)
            case Ok(session):
                return CheckoutOut.from_domain(session)

    @app.post("/checkout/addresses")
    async def choose_addresses(body: AddressesIn, s: Session) -> CheckoutOut:
        c = _checkout(s)
        if body.use_same_address is not None:
            _unwrap_checkout(c.set_use_same_address(body.use_same_address))
        if body.shipping_address_id is not None:
            _unwrap_checkout(c.select_shipping(body.shipping_address_id))
        if body.billing_address_id is not None:
            _unwrap_checkout(c.select_billing(body.billing_address_id))
        return CheckoutOut.from_domain(c)

    @app.post("/checkout/advance")
    async def advance(s: Session) -> CheckoutOut:
        c = _checkout(s)
        _unwrap_checkout(c.advance())
        return CheckoutOut.from_domain(c)

    @app.post("/checkout/back")
    async def back(s: Session) -> CheckoutOut:
        c = _checkout(s)
        _unwrap_checkout(c.back())
        return CheckoutOut.from_domain(c)

    @app.post("/checkout/terms")
    async def terms(body: TermsIn, s: Session) -> CheckoutOut:
        c = _checkout(s)
        _unwrap_checkout(c.accept_terms(body.accepted))
        return CheckoutOut.from_domain(c)

    @app.post("/checkout/place-order")
    async def place_order(s: Session) -> CheckoutOut:
        c = _checkout(s)
        _unwrap_checkout(await c.place_order())
        return CheckoutOut.from_domain(c)

    @app.post("/checkout/payment")
    async def pay(s: Session) -> PaymentOut:
        c = _checkout(s)
        outcome = _unwrap_checkout(await c.pay())
        return PaymentOut(
            success=outcome.success,
            order_id=outcome.order_id,
            transaction_id=outcome.transaction_id,
            redirect_to=s.navigator.last,
        )

    # ── notifications ───────────────────────────────────────────────────────

    @app.get("/notifications")
    async def notifications(s: Session) -> NotificationsOut:
        notices = [NoticeOut(level=n.level, message=n.message) for n in s.notifier.drain()]
        redirect_to = s.navigator.last
        s.navigator.routes.clear()
        return NotificationsOut(notices=notices, redirect_to=redirect_to)

    return app


def _found(changed: Any) -> None:
    if changed is False:
        raise HTTPException(404, detail={"kind": "not_found", "message": "No such basket item"})


__all__ = (
    "Collaborators",
    "SessionRegistry",
    "create_app",
)
