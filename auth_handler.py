"""
auth_handler.py
---------------
Google OAuth sign-in that delegates calendar access to the assistant.
The callback exchanges the authorization code and stores the token where
calendar_handler.load_credentials looks for it.
"""

import logging
from pathlib import Path

from fastapi import Request
from fastapi.responses import RedirectResponse
from google_auth_oauthlib.flow import Flow

from calendar_handler import SCOPES
from config import load_clean_config

logger = logging.getLogger(__name__)
config = load_clean_config()


def build_flow():
    client_config = {
        "web": {
            "client_id": config["GOOGLE_CLIENT_ID"],
            "client_secret": config["GOOGLE_CLIENT_SECRET"],
            "auth_uri": "https://accounts.google.com/o/oauth2/auth",
            "token_uri": "https://oauth2.googleapis.com/token",
            "redirect_uris": [config["GOOGLE_REDIRECT_URI"]],
        }
    }
    return Flow.from_client_config(
        client_config,
        scopes=SCOPES,
        redirect_uri=config["GOOGLE_REDIRECT_URI"],
        autogenerate_code_verifier=False,
    )


def exchange_code(code):
    """Trades an authorization code for credentials and persists them."""
    flow = build_flow()
    flow.fetch_token(code=code)
    creds = flow.credentials
    Path(config["GOOGLE_TOKEN_FILE"]).write_text(creds.to_json())
    logger.info("Stored Google OAuth token for calendar access")
    return creds


async def handle_login():
    flow = build_flow()
    authorization_url, _state = flow.authorization_url(access_type="offline", prompt="consent")
    logger.info("Redirecting to Google consent screen")
    return RedirectResponse(authorization_url)


async def handle_callback(request: Request):
    code = request.query_params.get("code")
    if not code:
        logger.warning(f"OAuth callback without code (error={request.query_params.get('error')})")
        return RedirectResponse("/?error=no_code")

    try:
        exchange_code(code)
    except Exception as e:
        logger.error(f"OAuth code exchange failed: {e}", exc_info=True)
        return RedirectResponse("/?error=auth_error")
    return RedirectResponse("/")
