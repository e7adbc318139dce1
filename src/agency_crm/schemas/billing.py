from pydantic import BaseModel


# Stripe Checkout Schemas
class CreateCheckoutSessionRequest(BaseModel):
    price_id: str
    plan_id: str


class CreateCheckoutSessionResponse(BaseModel):
    url: str
