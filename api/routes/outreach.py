"""
api/routes/outreach.py -- Public marketing-site forms.

  POST /feedback           -- star rating + optional message
  POST /contactUs          -- contact form
  POST /emailSubscription  -- newsletter signup (409 on a known email)

Mounted under /api/v2. No session required; every submission is cleaned by
outreach.models before it reaches the store.
"""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from api.limiter import email_limit, limiter
from api.models import ContactRequest, FeedbackRequest, SubscriptionRequest
from outreach.models import clean_contact, clean_feedback, clean_subscription

logger = logging.getLogger("degenius.outreach")

router = APIRouter()


def _created(message: str) -> JSONResponse:
    return JSONResponse(status_code=201, content={"success": True, "status": 201, "message": message})


@router.post("/feedback", status_code=201)
def submit_feedback(request: Request, body: FeedbackRequest) -> JSONResponse:
    feedback = request.app.state.outreach_store.add_feedback(clean_feedback(body.model_dump()))
    logger.info("Feedback %d received (rating=%d)", feedback.id, feedback.rating)
    return _created("Thank you for the feedback")


@router.post("/contactUs", status_code=201)
def contact_us(request: Request, body: ContactRequest) -> JSONResponse:
    msg = request.app.state.outreach_store.add_contact_message(clean_contact(body.model_dump()))
    logger.info("Contact message %d received", msg.id)
    return _created("Thank you for contacting us, we will soon get back to you")


@router.post("/emailSubscription", status_code=201)
@limiter.limit(email_limit)
def email_subscription(request: Request, body: SubscriptionRequest) -> JSONResponse:
    store = request.app.state.outreach_store
    sub = store.add_subscription(clean_subscription(body.model_dump()))
    logger.info("Subscription %d added (%d subscribers)", sub.id, store.count_subscriptions())
    return _created("Subscription successful")
