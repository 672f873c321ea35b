"""Shared pytest fixtures for cartflow tests."""

import itertools
from datetime import datetime, timedelta, timezone

import pytest

from cartflow.basket import ProductSnapshot
from cartflow.basket._store import BasketStore
from cartflow.checkout import CheckoutServices
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
    LocalBasketBackend,
    MemoryLocalStorage,
    PersistenceAdapter,
    ServerBasketStore,
    create_database,
)
from cartflow.services import Address, AddressType, Quote, QuoteLine, QuoteStatus
from cartflow.session import ShopSession
from cartflow.tier import Identity


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 1) -> None:
        self.now += timedelta(seconds=seconds)


class FlakyStorage(MemoryLocalStorage):
    """Device storage whose writes can be switched to fail."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_writes = False
        self.writes = 0

    def set_item(self, key: str, value: str) -> None:
        if self.fail_writes:
            raise OSError("quota exceeded")
        self.writes += 1
        super().set_item(key, value)

    def remove_item(self, key: str) -> None:
        if self.fail_writes:
            raise OSError("quota exceeded")
        self.writes += 1
        super().remove_item(key)


# ─── time & ids ─────────────────────────────────────────────────────────────


@pytest.fixture
def clock():
    """A frozen clock at a fixed instant."""
    return FrozenClock(datetime(2026, 3, 14, 9, 30, tzinfo=timezone.utc))


@pytest.fixture
def ids():
    """Deterministic basket row ids."""
    counter = itertools.count(1)
    return lambda: f"basket_test_{next(counter)}"


# ─── identities ─────────────────────────────────────────────────────────────


@pytest.fixture
def individual():
    """A signed-in individual account."""
    return Identity("user_ind", "individual", verified=False)


@pytest.fixture
def business():
    """A signed-in business account awaiting verification."""
    return Identity("user_biz", "business", verified=False)


@pytest.fixture
def verified():
    """A signed-in verified business account."""
    return Identity("user_vb", "business", verified=True)


@pytest.fixture
def identity():
    """Identity provider, starting as a guest."""
    return MemoryIdentityProvider()


# ─── collaborators ──────────────────────────────────────────────────────────


@pytest.fixture
def notifier():
    """Records every notice."""
    return RecordingNotifier()


@pytest.fixture
def navigator():
    """Records every route change."""
    return RecordingNavigator()


@pytest.fixture
def catalog():
    """Catalog with a door operator (two variants) and a landing button."""
    c = MemoryCatalog()
    c.add(ProductSnapshot("door-op", "Door Operator", "v1", "DO-100", unit_price=125000))
    c.add(ProductSnapshot("door-op", "Door Operator", "v2", "DO-200", unit_price=150000))
    c.add(ProductSnapshot("button", "Landing Button", None, "LB-1", unit_price=2500))
    return c


@pytest.fixture
def quotes(individual, verified):
    """Quotes for the individual (approved, pending) and verified business."""
    q = MemoryQuoteService()
    line = QuoteLine("door-op", "Door Operator", 2, 120000, 240000, variant_id="v1")
    q.add(Quote("q_approved", individual.account_id, QuoteStatus.APPROVED, (line,)))
    q.add(Quote("q_pending", individual.account_id, QuoteStatus.PENDING, (line,)))
    q.add(Quote("q_vb", verified.account_id, QuoteStatus.APPROVED, (line,)))
    return q


@pytest.fixture
def addresses(individual, verified):
    """Address book: two business addresses, one individual address."""
    book = MemoryAddressBook()
    book.business[verified.account_id] = [
        Address("addr_ship", "Plant Manager", "12 Mill Rd", "Pune", "MH", "411001",
                address_type=AddressType.SHIPPING, is_default=True),
        Address("addr_bill", "Accounts", "1 Tower St", "Mumbai", "MH", "400001",
                address_type=AddressType.BILLING, is_default=True),
    ]
    book.individual[individual.account_id] = Address(
        "addr_home", "Asha Rao", "7 Lake View", "Bengaluru", "KA", "560001", is_default=True
    )
    return book


@pytest.fixture
def orders(quotes, clock):
    """Order service that converts quotes it orders from."""
    return MemoryOrderService(quotes=quotes, clock=clock)


@pytest.fixture
def payments():
    """Payment gateway that approves by default."""
    return MemoryPaymentGateway()


@pytest.fixture
def services(quotes, addresses, orders, payments, notifier, navigator):
    """Checkout collaborators bundled."""
    return CheckoutServices(quotes, addresses, orders, payments, notifier, navigator)


# ─── persistence ────────────────────────────────────────────────────────────


@pytest.fixture
def device_storage():
    """Device-local storage that can be made to fail."""
    return FlakyStorage()


@pytest.fixture
def local(device_storage, clock):
    """Anonymous basket backend over device storage."""
    return LocalBasketBackend(device_storage, clock=clock)


@pytest.fixture
async def session_factory():
    """In-memory SQLite with the quote_baskets table."""
    factory, engine = await create_database("sqlite+aiosqlite:///:memory:")
    yield factory
    await engine.dispose()


@pytest.fixture
def server(session_factory, clock):
    """Server basket store."""
    return ServerBasketStore(session_factory, clock=clock)


@pytest.fixture
def adapter(local, server, identity):
    """Persistence adapter routing by current identity."""
    return PersistenceAdapter(local, server, identity)


@pytest.fixture
def store(adapter, identity, notifier, catalog, clock, ids):
    """Basket store with deterministic clock and ids."""
    return BasketStore(adapter, identity, notifier, catalog=catalog, clock=clock, new_id=ids)


@pytest.fixture
async def shop(identity, local, server, services, catalog, clock, ids):
    """Started shop session for a guest."""
    s = ShopSession(identity, local, server, services, catalog=catalog, clock=clock, new_id=ids)
    await s.start()
    return s
