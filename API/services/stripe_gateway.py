"""
Stripe client for the API.

Every Stripe call goes through StripeGateway so routes and services never
touch the SDK directly. Results are reduced to small dataclasses; Stripe
errors become PaymentProviderError, a missing key becomes ConfigurationError.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import stripe

from core.config import settings
from core.exceptions import ConfigurationError, PaymentProviderError

logger = logging.getLogger(__name__)


@dataclass
class PaymentIntentResult:
    id: str
    status: str
    client_secret: Optional[str] = None
    amount: Optional[int] = None


@dataclass
class CardInfo:
    id: str
    brand: Optional[str] = None
    last4: Optional[str] = None
    exp_month: Optional[int] = None
    exp_year: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "brand": self.brand,
            "last4": self.last4,
            "exp_month": self.exp_month,
            "exp_year": self.exp_year,
        }


@dataclass
class SetupIntentResult:
    id: str
    client_secret: str


@dataclass
class ConnectAccountStatus:
    id: str
    charges_enabled: bool = False
    payouts_enabled: bool = False
    details_submitted: bool = False
    requirements: List[str] = field(default_factory=list)


def _card_from_stripe(pm) -> CardInfo:
    card = pm.get("card") or {}
    return CardInfo(
        id=pm["id"],
        brand=card.get("brand"),
        last4=card.get("last4"),
        exp_month=card.get("exp_month"),
        exp_year=card.get("exp_year"),
    )


def _intent_from_stripe(intent) -> PaymentIntentResult:
    return PaymentIntentResult(
        id=intent["id"],
        status=intent["status"],
        client_secret=intent.get("client_secret"),
        amount=intent.get("amount"),
    )


def _stringify(metadata: Optional[Dict]) -> Dict[str, str]:
    return {k: str(v) for k, v in (metadata or {}).items() if v is not None}


class StripeGateway:
    """Thin wrapper over the Stripe SDK."""

    def __init__(self, api_key: Optional[str] = None, webhook_secret: Optional[str] = None,
                 currency: Optional[str] = None):
        self._api_key = api_key if api_key is not None else settings.stripe_secret_key
        self._webhook_secret = webhook_secret if webhook_secret is not None else settings.stripe_webhook_secret
        self.currency = currency or settings.currency

    @property
    def api_key(self) -> str:
        if not self._api_key:
            logger.error("STRIPE_SECRET_KEY is not configured")
            raise ConfigurationError("Payment processing is not configured")
        return self._api_key

    def _call(self, fn, *args, **kwargs):
        try:
            return fn(*args, api_key=self.api_key, **kwargs)
        except stripe.StripeError as e:
            logger.warning(f"Stripe request failed: {e}")
            raise PaymentProviderError(e.user_message or str(e) or "Payment failed",
                                       code=getattr(e, "code", None))

    # ==================== CUSTOMERS ====================

    def create_customer(self, email: Optional[str], name: str,
                        metadata: Optional[Dict] = None) -> str:
        customer = self._call(
            stripe.Customer.create,
            email=email or None,
            name=name,
            metadata=_stringify(metadata),
        )
        return customer["id"]

    def list_cards(self, customer_id: str) -> List[CardInfo]:
        result = self._call(stripe.PaymentMethod.list, customer=customer_id, type="card")
        return [_card_from_stripe(pm) for pm in result["data"]]

    def get_default_payment_method(self, customer_id: str) -> Optional[str]:
        """invoice_settings default, else the first saved card."""
        customer = self._call(stripe.Customer.retrieve, customer_id)
        invoice_settings = customer.get("invoice_settings") or {}
        default = invoice_settings.get("default_payment_method")
        if isinstance(default, dict):
            default = default.get("id")
        if default:
            return default
        cards = self.list_cards(customer_id)
        return cards[0].id if cards else None

    def set_default_payment_method(self, customer_id: str, payment_method_id: str) -> None:
        self._call(
            stripe.Customer.modify,
            customer_id,
            invoice_settings={"default_payment_method": payment_method_id},
        )

    def detach_payment_method(self, payment_method_id: str) -> None:
        self._call(stripe.PaymentMethod.detach, payment_method_id)

    def create_setup_intent(self, customer_id: str) -> SetupIntentResult:
        intent = self._call(
            stripe.SetupIntent.create,
            customer=customer_id,
            usage="off_session",
            automatic_payment_methods={"enabled": True},
        )
        return SetupIntentResult(id=intent["id"], client_secret=intent["client_secret"])

    # ==================== PAYMENT INTENTS ====================

    def create_payment_intent(self, amount: int, customer_id: str,
                              metadata: Optional[Dict] = None,
                              save_card: bool = False) -> PaymentIntentResult:
        """Platform-billed intent the client confirms with a new card."""
        params = dict(
            amount=amount,
            currency=self.currency,
            customer=customer_id,
            metadata=_stringify(metadata),
            automatic_payment_methods={"enabled": True, "allow_redirects": "never"},
        )
        if save_card:
            params["setup_future_usage"] = "off_session"
        return _intent_from_stripe(self._call(stripe.PaymentIntent.create, **params))

    def create_and_confirm_payment(self, amount: int, customer_id: str,
                                   payment_method_id: str,
                                   metadata: Optional[Dict] = None) -> PaymentIntentResult:
        """Charge a saved card for platform billing."""
        intent = self._call(
            stripe.PaymentIntent.create,
            amount=amount,
            currency=self.currency,
            customer=customer_id,
            payment_method=payment_method_id,
            confirm=True,
            off_session=True,
            metadata=_stringify(metadata),
        )
        return _intent_from_stripe(intent)

    def create_connect_payment_intent(self, amount: int, connected_account_id: str,
                                      application_fee: int, customer_id: str,
                                      metadata: Optional[Dict] = None,
                                      save_card: bool = False) -> PaymentIntentResult:
        """School-collected intent: funds go to the school's Connect account."""
        params = dict(
            amount=amount,
            currency=self.currency,
            customer=customer_id,
            metadata=_stringify(metadata),
            automatic_payment_methods={"enabled": True},
            transfer_data={"destination": connected_account_id},
        )
        if application_fee:
            params["application_fee_amount"] = application_fee
        if save_card:
            params["setup_future_usage"] = "off_session"
        return _intent_from_stripe(self._call(stripe.PaymentIntent.create, **params))

    def create_and_confirm_connect_payment(self, amount: int, connected_account_id: str,
                                           application_fee: int, customer_id: str,
                                           payment_method_id: str,
                                           metadata: Optional[Dict] = None) -> PaymentIntentResult:
        params = dict(
            amount=amount,
            currency=self.currency,
            customer=customer_id,
            payment_method=payment_method_id,
            confirm=True,
            off_session=True,
            metadata=_stringify(metadata),
            transfer_data={"destination": connected_account_id},
        )
        if application_fee:
            params["application_fee_amount"] = application_fee
        return _intent_from_stripe(self._call(stripe.PaymentIntent.create, **params))

    # ==================== PLATFORM SUBSCRIPTION ====================

    def create_checkout_session(self, customer_id: str, price_id: str,
                                success_url: str, cancel_url: str,
                                metadata: Optional[Dict] = None) -> str:
        session = self._call(
            stripe.checkout.Session.create,
            mode="subscription",
            customer=customer_id,
            line_items=[{"price": price_id, "quantity": 1}],
            success_url=success_url,
            cancel_url=cancel_url,
            metadata=_stringify(metadata),
            subscription_data={"metadata": _stringify(metadata)},
        )
        return session["url"]

    def create_portal_session(self, customer_id: str, return_url: str) -> str:
        session = self._call(
            stripe.billing_portal.Session.create,
            customer=customer_id,
            return_url=return_url,
        )
        return session["url"]

    # ==================== CONNECT ====================

    def create_connect_account(self, email: Optional[str], metadata: Optional[Dict] = None) -> str:
        account = self._call(
            stripe.Account.create,
            type="express",
            email=email or None,
            metadata=_stringify(metadata),
            capabilities={
                "card_payments": {"requested": True},
                "transfers": {"requested": True},
            },
        )
        return account["id"]

    def create_account_link(self, account_id: str, refresh_url: str, return_url: str) -> str:
        link = self._call(
            stripe.AccountLink.create,
            account=account_id,
            refresh_url=refresh_url,
            return_url=return_url,
            type="account_onboarding",
        )
        return link["url"]

    def get_connect_account(self, account_id: str) -> ConnectAccountStatus:
        account = self._call(stripe.Account.retrieve, account_id)
        requirements = account.get("requirements") or {}
        return ConnectAccountStatus(
            id=account["id"],
            charges_enabled=bool(account.get("charges_enabled")),
            payouts_enabled=bool(account.get("payouts_enabled")),
            details_submitted=bool(account.get("details_submitted")),
            requirements=list(requirements.get("currently_due") or []),
        )

    # ==================== WEBHOOKS ====================

    def construct_event(self, payload: bytes, signature: Optional[str]) -> dict:
        """
        Verify the stripe-signature header against the raw body.
        Raises ValueError on a missing or invalid signature.
        """
        if not self._webhook_secret:
            logger.error("STRIPE_WEBHOOK_SECRET is not configured")
            raise ConfigurationError("Webhook processing is not configured")
        if not signature:
            raise ValueError("Missing stripe-signature header")

        body = payload.decode("utf-8") if isinstance(payload, bytes) else payload
        try:
            stripe.WebhookSignature.verify_header(body, signature, self._webhook_secret)
        except stripe.SignatureVerificationError as e:
            raise ValueError(f"Invalid signature: {e}")

        try:
            event = json.loads(body)
        except json.JSONDecodeError:
            raise ValueError("Invalid payload")
        if not isinstance(event, dict) or "type" not in event:
            raise ValueError("Invalid payload")
        return event


def get_stripe_gateway() -> StripeGateway:
    """FastAPI dependency; tests override it with a fake."""
    return StripeGateway()
