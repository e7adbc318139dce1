import json
import logging
import os
from typing import Optional, Tuple

import stripe
from dotenv import load_dotenv
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy import func
from sqlalchemy.orm import Session

from src.agency_crm import models, schemas
from src.agency_crm.api.deps import get_current_agency, get_current_user
from src.agency_crm.core.database import get_db

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Load environment variables
load_dotenv()

# Initialize Stripe
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
stripe.api_key = STRIPE_SECRET_KEY
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

# Stripe price id -> (plan, seats)
FREE_PLAN = ("free", 1)
PLAN_BY_PRICE = {
    os.getenv("STRIPE_PRICE_STARTER", "price_starter_monthly"): ("starter", 5),
    os.getenv("STRIPE_PRICE_PROFESSIONAL", "price_professional_monthly"): (
        "professional",
        15,
    ),
    # Enterprise is "unlimited"
    os.getenv("STRIPE_PRICE_ENTERPRISE", "price_enterprise_monthly"): (
        "enterprise",
        999,
    ),
}

router = APIRouter(prefix="/billing", tags=["Billing"])


def plan_for_price(price_id: Optional[str]) -> Tuple[str, int]:
    return PLAN_BY_PRICE.get(price_id, FREE_PLAN)


def _subscription_price_id(subscription) -> Optional[str]:
    try:
        return subscription["items"]["data"][0]["price"]["id"]
    except (KeyError, IndexError, TypeError):
        return None


@router.post("/checkout", response_model=schemas.CreateCheckoutSessionResponse)
def create_checkout_session(
    data: schemas.CreateCheckoutSessionRequest,
    request: Request,
    current_user: models.Profile = Depends(get_current_user),
    agency: models.Agency = Depends(get_current_agency),
    db: Session = Depends(get_db),
):
    """
    Create a Stripe Checkout Session for a subscription plan.

    Reuses the Stripe customer matching the caller's email, or creates one
    and stores it on the agency. Returns the hosted checkout URL.
    """
    if not STRIPE_SECRET_KEY:
        raise HTTPException(
            status_code=500, detail="Missing required environment variables"
        )

    logger.info(
        f"Creating checkout session: price={data.price_id} plan={data.plan_id} "
        f"agency={agency.id}"
    )

    try:
        customers = stripe.Customer.list(email=current_user.email, limit=1)
        if customers.data:
            customer_id = customers.data[0].id
            logger.info(f"Found existing customer {customer_id}")
        else:
            customer = stripe.Customer.create(
                email=current_user.email,
                metadata={"user_id": current_user.id, "agency_id": agency.id},
            )
            customer_id = customer.id
            logger.info(f"Created new customer {customer_id}")

        if agency.stripe_customer_id != customer_id:
            agency.stripe_customer_id = customer_id
            db.commit()

        origin = request.headers.get("origin") or FRONTEND_URL
        checkout_session = stripe.checkout.Session.create(
            customer=customer_id,
            line_items=[{"price": data.price_id, "quantity": 1}],
            mode="subscription",
            success_url=f"{origin}/billing?success=true&session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{origin}/billing?canceled=true",
            metadata={
                "plan_id": data.plan_id,
                "agency_id": agency.id,
                "user_id": current_user.id,
            },
        )
    except stripe.StripeError as e:
        logger.error(f"Stripe error creating checkout session: {e}")
        raise HTTPException(status_code=400, detail=f"Stripe error: {str(e)}")

    logger.info(f"Checkout session created: {checkout_session.id}")
    return {"url": checkout_session.url}


@router.api_route("/webhook", methods=["GET", "POST", "PUT", "PATCH", "DELETE"])
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(None, alias="stripe-signature"),
    db: Session = Depends(get_db),
):
    """
    Handle Stripe webhook events.

    GET is a health check and never touches the signature. POST bodies must
    carry a valid `stripe-signature` header; anything that fails
    verification is dropped with a 400 before any event handling.

    Handled events:
    - checkout.session.completed: link subscription, set plan and seats
    - customer.subscription.updated: recompute plan and seats
    - customer.subscription.deleted: reset to the free plan
    - invoice.payment_succeeded / invoice.payment_failed: logged
    """
    if request.method == "GET":
        return PlainTextResponse("OK")
    if request.method != "POST":
        return JSONResponse(
            status_code=405,
            content={"error": "Method Not Allowed"},
            headers={"Allow": "POST, GET"},
        )

    if not STRIPE_WEBHOOK_SECRET:
        logger.error("STRIPE_WEBHOOK_SECRET is not configured")
        return JSONResponse(
            status_code=500, content={"error": "Missing STRIPE_WEBHOOK_SECRET"}
        )

    if not stripe_signature:
        logger.error("Webhook rejected: missing stripe-signature header")
        return JSONResponse(
            status_code=400, content={"error": "Missing stripe-signature header"}
        )

    payload = await request.body()
    logger.info(f"Webhook received: payload_len={len(payload)}")

    try:
        stripe.WebhookSignature.verify_header(
            payload.decode("utf-8"),
            stripe_signature,
            STRIPE_WEBHOOK_SECRET,
            stripe.Webhook.DEFAULT_TOLERANCE,
        )
        event = json.loads(payload)
    except stripe.SignatureVerificationError as e:
        logger.error(f"Webhook signature verification failed: {e}")
        return JSONResponse(status_code=400, content={"error": f"Webhook Error: {e}"})
    except ValueError as e:
        # Undecodable body or invalid JSON
        logger.error(f"Invalid payload: {e}")
        return JSONResponse(status_code=400, content={"error": "Invalid payload"})

    if not isinstance(event, dict):
        logger.error(f"Invalid payload: expected an event object, got {type(event).__name__}")
        return JSONResponse(status_code=400, content={"error": "Invalid payload"})

    event_type = event.get("type")
    data = event.get("data")
    event_object = (data.get("object") if isinstance(data, dict) else None) or {}
    logger.info(f"Received Stripe webhook event: {event_type} id={event.get('id')}")

    try:
        if event_type == "checkout.session.completed":
            await handle_checkout_session_completed(event_object, db)

        elif event_type == "customer.subscription.updated":
            await handle_subscription_updated(event_object, db)

        elif event_type == "customer.subscription.deleted":
            await handle_subscription_deleted(event_object, db)

        elif event_type == "invoice.payment_succeeded":
            logger.info(f"Invoice payment succeeded: {event_object.get('id')}")

        elif event_type == "invoice.payment_failed":
            logger.info(f"Invoice payment failed: {event_object.get('id')}")

        else:
            # Acknowledge so Stripe stops resending
            logger.info(f"Unhandled webhook event type: {event_type}")

        return {"received": True}

    except Exception as e:
        logger.exception(
            "Unhandled exception while processing webhook event id=%s type=%s: %s",
            event.get("id"),
            event_type,
            str(e),
        )
        db.rollback()
        # Return 500 so Stripe will retry
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal handler error",
                "event_id": event.get("id"),
                "event_type": event_type,
            },
        )


def _find_agency_for_checkout(session: dict, customer_id: Optional[str], db: Session):
    metadata = session.get("metadata") or {}
    agency_id = metadata.get("agency_id")
    if agency_id:
        agency = db.query(models.Agency).filter(models.Agency.id == agency_id).first()
        if agency:
            return agency

    if customer_id:
        agency = (
            db.query(models.Agency)
            .filter(models.Agency.stripe_customer_id == customer_id)
            .first()
        )
        if agency:
            return agency

        # Last resort: the agency owned by the customer's email
        customer = stripe.Customer.retrieve(customer_id)
        if customer.get("deleted"):
            logger.info(f"Customer was deleted: {customer_id}")
            return None
        email = customer.get("email")
        if email:
            return (
                db.query(models.Agency)
                .join(models.Profile, models.Profile.id == models.Agency.owner_user_id)
                .filter(func.lower(models.Profile.email) == email.lower())
                .first()
            )
    return None


async def handle_checkout_session_completed(session: dict, db: Session):
    """Link the new subscription to its agency and apply the plan's seats."""
    logger.info(f"Processing checkout.session.completed for session {session.get('id')}")

    subscription_id = session.get("subscription")
    if not subscription_id:
        logger.info(f"No subscription on session {session.get('id')}, skipping")
        return

    subscription = stripe.Subscription.retrieve(subscription_id)
    customer_id = subscription["customer"] or session.get("customer")

    agency = _find_agency_for_checkout(session, customer_id, db)
    if not agency:
        logger.warning(
            f"Could not find agency for session {session.get('id')} customer={customer_id}"
        )
        return

    plan, seats = plan_for_price(_subscription_price_id(subscription))
    agency.stripe_customer_id = customer_id
    agency.stripe_subscription_id = subscription["id"]
    agency.plan = plan
    agency.seats = seats
    db.commit()

    logger.info(f"Agency {agency.id} updated: plan={plan} seats={seats}")


async def handle_subscription_updated(subscription: dict, db: Session):
    """Recompute plan and seats; inactive subscriptions fall back to free."""
    agency = (
        db.query(models.Agency)
        .filter(models.Agency.stripe_subscription_id == subscription.get("id"))
        .first()
    )
    if not agency:
        logger.warning(
            f"Could not find agency by subscription ID {subscription.get('id')}"
        )
        return

    if subscription.get("status") == "active":
        plan, seats = plan_for_price(_subscription_price_id(subscription))
    else:
        plan, seats = FREE_PLAN

    agency.plan = plan
    agency.seats = seats
    db.commit()

    logger.info(f"Agency {agency.id} plan updated: plan={plan} seats={seats}")


async def handle_subscription_deleted(subscription: dict, db: Session):
    """Reset the agency to the free plan."""
    agency = (
        db.query(models.Agency)
        .filter(models.Agency.stripe_subscription_id == subscription.get("id"))
        .first()
    )
    if not agency:
        logger.warning(
            f"Could not find agency by subscription ID {subscription.get('id')}"
        )
        return

    agency.plan, agency.seats = FREE_PLAN
    agency.stripe_subscription_id = None
    db.commit()

    logger.info(f"Agency {agency.id} reset to free plan")
