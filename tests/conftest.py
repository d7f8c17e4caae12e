"""
Shared fixtures: in-memory SQLite database, a fake Stripe gateway,
model factories and auth helpers.
"""

import hashlib
import hmac
import json
import os
import time
from datetime import timedelta

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")
os.environ.setdefault("CRON_SECRET", "cron-test-secret")
os.environ.setdefault("STRIPE_PRICE_ID", "price_test_standard")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app import app
from core.exceptions import PaymentProviderError
from core.security import TokenData, create_access_token, get_password_hash
from core.tenant import clear_current_school, setup_school_events
from database import Base, get_db, utcnow
from database.models import (
    BeltRank, Event, Family, Profile, Role, School, StudentProfile
)
from services.stripe_gateway import (
    CardInfo, ConnectAccountStatus, PaymentIntentResult,
    SetupIntentResult, StripeGateway, get_stripe_gateway
)

WEBHOOK_SECRET = os.environ["STRIPE_WEBHOOK_SECRET"]
CRON_SECRET = os.environ["CRON_SECRET"]
TEST_PASSWORD = "password123"
PASSWORD_HASH = get_password_hash(TEST_PASSWORD)


# ==================== FAKE STRIPE ====================

class FakeStripeGateway(StripeGateway):
    """In-memory Stripe: customers, cards and intents, no network."""

    def __init__(self):
        super().__init__(api_key="sk_test_fake", webhook_secret=WEBHOOK_SECRET, currency="usd")
        self.customers = {}
        self.calls = []
        self.next_status = "succeeded"
        self.decline_message = None
        self.connect_account = ConnectAccountStatus(id="acct_test")
        self._seq = 0

    def _next_id(self, prefix: str) -> str:
        self._seq += 1
        return f"{prefix}_test_{self._seq}"

    def calls_of(self, name: str) -> list:
        return [params for call, params in self.calls if call == name]

    # Customers and cards

    def create_customer(self, email, name, metadata=None):
        customer_id = self._next_id("cus")
        self.customers[customer_id] = {
            "email": email, "name": name, "metadata": metadata or {},
            "cards": [], "default": None,
        }
        self.calls.append(("create_customer", {"email": email, "name": name, "metadata": metadata}))
        return customer_id

    def add_card(self, customer_id: str, last4: str = "4242") -> str:
        card_id = self._next_id("pm")
        self.customers[customer_id]["cards"].append(
            CardInfo(id=card_id, brand="visa", last4=last4, exp_month=12, exp_year=2030)
        )
        return card_id

    def list_cards(self, customer_id):
        customer = self.customers.get(customer_id)
        return list(customer["cards"]) if customer else []

    def get_default_payment_method(self, customer_id):
        customer = self.customers.get(customer_id)
        if not customer:
            return None
        if customer["default"]:
            return customer["default"]
        return customer["cards"][0].id if customer["cards"] else None

    def set_default_payment_method(self, customer_id, payment_method_id):
        self.customers[customer_id]["default"] = payment_method_id
        self.calls.append(("set_default_payment_method", {"customer_id": customer_id, "pm": payment_method_id}))

    def detach_payment_method(self, payment_method_id):
        for customer in self.customers.values():
            customer["cards"] = [c for c in customer["cards"] if c.id != payment_method_id]
            if customer["default"] == payment_method_id:
                customer["default"] = None
        self.calls.append(("detach_payment_method", {"pm": payment_method_id}))

    def create_setup_intent(self, customer_id):
        setup_id = self._next_id("seti")
        return SetupIntentResult(id=setup_id, client_secret=f"{setup_id}_secret")

    # Payment intents

    def _intent(self, call: str, status: str, params: dict) -> PaymentIntentResult:
        self.calls.append((call, params))
        if self.decline_message:
            raise PaymentProviderError(self.decline_message, code="card_declined")
        intent_id = self._next_id("pi")
        return PaymentIntentResult(
            id=intent_id, status=status,
            client_secret=f"{intent_id}_secret", amount=params["amount"],
        )

    def create_payment_intent(self, amount, customer_id, metadata=None, save_card=False):
        return self._intent("create_payment_intent", "requires_payment_method", dict(
            amount=amount, customer_id=customer_id, metadata=metadata, save_card=save_card,
        ))

    def create_and_confirm_payment(self, amount, customer_id, payment_method_id, metadata=None):
        return self._intent("create_and_confirm_payment", self.next_status, dict(
            amount=amount, customer_id=customer_id,
            payment_method_id=payment_method_id, metadata=metadata,
        ))

    def create_connect_payment_intent(self, amount, connected_account_id, application_fee,
                                      customer_id, metadata=None, save_card=False):
        return self._intent("create_connect_payment_intent", "requires_payment_method", dict(
            amount=amount, account=connected_account_id, application_fee=application_fee,
            customer_id=customer_id, metadata=metadata, save_card=save_card,
        ))

    def create_and_confirm_connect_payment(self, amount, connected_account_id, application_fee,
                                           customer_id, payment_method_id, metadata=None):
        return self._intent("create_and_confirm_connect_payment", self.next_status, dict(
            amount=amount, account=connected_account_id, application_fee=application_fee,
            customer_id=customer_id, payment_method_id=payment_method_id, metadata=metadata,
        ))

    # Subscription and Connect

    def create_checkout_session(self, customer_id, price_id, success_url, cancel_url, metadata=None):
        self.calls.append(("create_checkout_session", dict(
            customer_id=customer_id, price_id=price_id, metadata=metadata,
        )))
        return "https://checkout.stripe.test/session"

    def create_portal_session(self, customer_id, return_url):
        return "https://billing.stripe.test/portal"

    def create_connect_account(self, email, metadata=None):
        self.calls.append(("create_connect_account", {"email": email}))
        return self.connect_account.id

    def create_account_link(self, account_id, refresh_url, return_url):
        return f"https://connect.stripe.test/{account_id}"

    def get_connect_account(self, account_id):
        return self.connect_account


# ==================== DATABASE & CLIENT ====================

@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    setup_school_events()
    session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()
    yield session
    session.close()
    clear_current_school()


@pytest.fixture
def gateway():
    return FakeStripeGateway()


@pytest.fixture
def client(db, gateway):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_stripe_gateway] = lambda: gateway
    yield TestClient(app)
    app.dependency_overrides.clear()


# ==================== FACTORIES ====================

class Factory:
    """Creates committed rows with sensible defaults."""

    def __init__(self, db):
        self.db = db
        self._seq = 0

    def _n(self) -> int:
        self._seq += 1
        return self._seq

    def _save(self, obj):
        self.db.add(obj)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    def school(self, **kwargs) -> School:
        n = self._n()
        values = dict(
            name=f"Dojo {n}",
            subdomain=f"dojo{n}",
            subscription_plan="standard",
            subscription_status="active",
            stripe_account_id="acct_test",
            settings={},
        )
        values.update(kwargs)
        return self._save(School(**values))

    def profile(self, school, role: str = Role.PARENT.value, **kwargs) -> Profile:
        n = self._n()
        values = dict(
            school_id=school.id if school else None,
            email=f"user{n}@example.com",
            password_hash=PASSWORD_HASH,
            full_name=f"User {n}",
            role=role,
            sub_roles=[],
            is_active=True,
        )
        values.update(kwargs)
        return self._save(Profile(**values))

    def owner(self, school, **kwargs) -> Profile:
        return self.profile(school, Role.OWNER.value, **kwargs)

    def admin(self, **kwargs) -> Profile:
        return self.profile(None, Role.ADMIN.value, **kwargs)

    def family(self, school, *members, name: str = None, **kwargs) -> Family:
        family = self._save(Family(
            school_id=school.id,
            name=name or f"Family {self._n()}",
            primary_holder_id=members[0].id if members else None,
            **kwargs
        ))
        for member in members:
            member.family_id = family.id
        self.db.commit()
        return family

    def student(self, school, profile=None, belt=None, **kwargs) -> StudentProfile:
        if profile is None:
            profile = self.profile(school, Role.STUDENT.value)
        return self._save(StudentProfile(
            school_id=school.id,
            profile_id=profile.id,
            belt_rank_id=belt.id if belt else None,
            is_active=True,
            **kwargs
        ))

    def belt(self, school, name: str, sort_order: int) -> BeltRank:
        return self._save(BeltRank(school_id=school.id, name=name, sort_order=sort_order))

    def event(self, school, fee=None, **kwargs) -> Event:
        values = dict(
            school_id=school.id,
            title=f"Tournament {self._n()}",
            starts_at=utcnow() + timedelta(days=14),
            fee=fee,
        )
        values.update(kwargs)
        return self._save(Event(**values))


@pytest.fixture
def factory(db):
    return Factory(db)


@pytest.fixture
def school(factory):
    return factory.school()


@pytest.fixture
def owner(factory, school):
    return factory.owner(school)


# ==================== HELPERS ====================

def auth_headers(profile) -> dict:
    token = create_access_token(TokenData.from_profile(profile).to_dict())
    return {"Authorization": f"Bearer {token}"}


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int = None) -> str:
    timestamp = timestamp or int(time.time())
    signature = hmac.new(
        secret.encode("utf-8"), f"{timestamp}.{payload}".encode("utf-8"), hashlib.sha256
    ).hexdigest()
    return f"t={timestamp},v1={signature}"


def post_webhook(client, event: dict):
    payload = json.dumps(event)
    return client.post(
        "/api/billing/webhook",
        content=payload,
        headers={"stripe-signature": sign_payload(payload), "Content-Type": "application/json"},
    )


def stripe_event(event_type: str, obj: dict, event_id: str = "evt_test") -> dict:
    return {"id": event_id, "type": event_type, "data": {"object": obj}}
