"""
twilio_handler.py
-----------------
Handles inbound WhatsApp/SMS webhooks from Twilio and renders the TwiML
messaging reply.
"""

import logging

from fastapi import Request
from fastapi.responses import HTMLResponse
from starlette.concurrency import run_in_threadpool
from twilio.request_validator import RequestValidator
from twilio.twiml.messaging_response import MessagingResponse

import conversation
from config import load_clean_config

logger = logging.getLogger(__name__)
config = load_clean_config()


def build_twiml_reply(text):
    response = MessagingResponse()
    response.message(text)
    return str(response)


def twiml_response(text, status_code=200):
    return HTMLResponse(content=build_twiml_reply(text), media_type="application/xml", status_code=status_code)


def is_valid_twilio_request(request: Request, form):
    """Checks X-Twilio-Signature when request validation is switched on."""
    if not config["TWILIO_VALIDATE_REQUESTS"]:
        return True
    if not config["TWILIO_AUTH_TOKEN"]:
        logger.error("TWILIO_VALIDATE_REQUESTS is set but TWILIO_AUTH_TOKEN is missing")
        return False
    validator = RequestValidator(config["TWILIO_AUTH_TOKEN"])
    signature = request.headers.get("X-Twilio-Signature", "")
    return validator.validate(str(request.url), dict(form), signature)


async def handle_incoming_message(request: Request):
    """
    Handles messages sent TO your Twilio number.
    Reads the Body and From form fields and responds with TwiML.
    """
    form = await request.form()
    if not is_valid_twilio_request(request, form):
        logger.warning("Rejected inbound message with invalid Twilio signature")
        return twiml_response("Forbidden", status_code=403)

    body = form.get("Body", "")
    sender = form.get("From", "")
    logger.info("Received inbound message from %s", sender)

    reply = await run_in_threadpool(conversation.handle_incoming_message, body, sender)
    return twiml_response(reply)
