"""
Billing entity resolution and lazy Stripe customer creation.

Whoever pays is a BillingEntity: the school (owner paying the platform),
a family, or an individual profile. Each entity owns at most one Stripe
customer id, created on first use and stored back on the row.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Union

from sqlalchemy.orm import Session

from core.exceptions import NotFound, ValidationFailed
from database.models import Family, Profile, School, Role
from .stripe_gateway import StripeGateway

logger = logging.getLogger(__name__)

NO_BILLING_ACCOUNT = "No billing account found"


@dataclass
class BillingEntity:
    type: str  # school | family | individual
    record: Union[School, Family, Profile]
    email: Optional[str]
    name: str

    @property
    def id(self) -> int:
        return self.record.id

    @property
    def customer_id(self) -> Optional[str]:
        return self.record.stripe_customer_id

    @property
    def family_id(self) -> Optional[int]:
        return self.record.id if self.type == "family" else None

    @property
    def profile_id(self) -> Optional[int]:
        return self.record.id if self.type == "individual" else None


class CustomerService:
    """Resolves who pays and makes sure they exist in Stripe."""

    def __init__(self, db: Session, gateway: StripeGateway):
        self.db = db
        self.gateway = gateway

    def _family_entity(self, profile: Profile) -> BillingEntity:
        family = self.db.query(Family).filter(Family.id == profile.family_id).first()
        if family is None:
            logger.warning(f"Profile {profile.id} points at missing family {profile.family_id}")
            raise ValidationFailed(NO_BILLING_ACCOUNT)
        return BillingEntity(
            type="family",
            record=family,
            email=family.billing_email or profile.email,
            name=family.name,
        )

    @staticmethod
    def _individual_entity(profile: Profile) -> BillingEntity:
        return BillingEntity(
            type="individual", record=profile,
            email=profile.email, name=profile.full_name,
        )

    def resolve_payer(self, profile: Profile) -> BillingEntity:
        """Pay-for-X precedence: family, else the profile itself."""
        if profile.family_id is not None:
            return self._family_entity(profile)
        return self._individual_entity(profile)

    def resolve_for_payment_methods(self, profile: Profile) -> BillingEntity:
        """Card management precedence: owner -> school, else family, else individual."""
        if profile.role == Role.OWNER.value and profile.school_id is not None:
            school = self.db.query(School).filter(School.id == profile.school_id).first()
            if school is None:
                raise ValidationFailed(NO_BILLING_ACCOUNT)
            return self.school_entity(school, profile)
        return self.resolve_payer(profile)

    @staticmethod
    def school_entity(school: School, owner: Optional[Profile] = None) -> BillingEntity:
        return BillingEntity(
            type="school", record=school,
            email=school.email or (owner.email if owner else None),
            name=school.name,
        )

    def ensure_customer(self, entity: BillingEntity) -> str:
        """Return the entity's Stripe customer id, creating it once if missing."""
        if entity.customer_id:
            return entity.customer_id

        customer_id = self.gateway.create_customer(
            entity.email, entity.name,
            metadata={f"{entity.type}_id": entity.id, "type": entity.type},
        )
        entity.record.stripe_customer_id = customer_id
        self.db.commit()
        logger.info(f"Created Stripe customer {customer_id} for {entity.type} {entity.id}")
        return customer_id

    def existing_customer_for(self, profile: Profile) -> Optional[str]:
        """Customer id for auto-charging: family first, else the profile; never created."""
        if profile.family_id is not None:
            family = self.db.query(Family).filter(Family.id == profile.family_id).first()
            if family is not None and family.stripe_customer_id:
                return family.stripe_customer_id
        return profile.stripe_customer_id


class PaymentMethodService:
    """Saved cards of whoever the profile pays as."""

    def __init__(self, db: Session, gateway: StripeGateway):
        self.gateway = gateway
        self.customers = CustomerService(db, gateway)

    def list_methods(self, profile: Profile) -> dict:
        entity = self.customers.resolve_for_payment_methods(profile)
        if not entity.customer_id:
            return {"payment_methods": [], "default_payment_method": None}

        cards = self.gateway.list_cards(entity.customer_id)
        default = self.gateway.get_default_payment_method(entity.customer_id) if cards else None
        return {
            "payment_methods": [card.to_dict() for card in cards],
            "default_payment_method": default,
        }

    def start_setup(self, profile: Profile) -> dict:
        entity = self.customers.resolve_for_payment_methods(profile)
        customer_id = self.customers.ensure_customer(entity)
        setup = self.gateway.create_setup_intent(customer_id)
        return {
            "client_secret": setup.client_secret,
            "setup_intent_id": setup.id,
            "customer_id": customer_id,
            "entity_type": entity.type,
            "entity_id": entity.id,
        }

    def _owned_customer(self, profile: Profile, payment_method_id: str) -> str:
        entity = self.customers.resolve_for_payment_methods(profile)
        if not entity.customer_id:
            raise NotFound("Payment method not found")
        cards = self.gateway.list_cards(entity.customer_id)
        if payment_method_id not in {card.id for card in cards}:
            raise NotFound("Payment method not found")
        return entity.customer_id

    def set_default(self, profile: Profile, payment_method_id: str):
        customer_id = self._owned_customer(profile, payment_method_id)
        self.gateway.set_default_payment_method(customer_id, payment_method_id)
        logger.info(f"Default payment method of customer {customer_id} set to {payment_method_id}")

    def detach(self, profile: Profile, payment_method_id: str):
        customer_id = self._owned_customer(profile, payment_method_id)
        self.gateway.detach_payment_method(payment_method_id)
        logger.info(f"Payment method {payment_method_id} detached from customer {customer_id}")
