"""Identity lookups against Google and LinkedIn."""
import logging

import requests

from .. import models
from ..config import settings
from ..errors import InternalError, ValidationError
from .users import OAuthProfile

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
LINKEDIN_USERINFO_URL = "https://api.linkedin.com/v2/userinfo"

REQUEST_TIMEOUT = 10


def _exchange_google_code(code: str) -> str:
    if not settings.google_client_id or not settings.google_client_secret:
        raise InternalError("Google OAuth credentials not configured on server")
    try:
        response = requests.post(
            GOOGLE_TOKEN_URL,
            data={
                "client_id": settings.google_client_id,
                "client_secret": settings.google_client_secret,
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": f"{settings.frontend_url}/auth/google/callback",
            },
            timeout=REQUEST_TIMEOUT,
        )
        response.raise_for_status()
        return response.json()["access_token"]
    except (requests.RequestException, KeyError, ValueError) as exc:
        logger.error("Google token exchange failed: %s", exc)
        raise InternalError("Google token exchange failed")


def fetch_google_profile(access_token: str | None = None, code: str | None = None) -> OAuthProfile:
    if code:
        access_token = _exchange_google_code(code)
    if not access_token:
        raise ValidationError("Google authorization code or access token is required")

    try:
        response = requests.get(
            GOOGLE_USERINFO_URL,
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=REQUEST_TIMEOUT,
        )
        response.raise_for_status()
        info = response.json()
    except (requests.RequestException, ValueError) as exc:
        logger.error("Google userinfo request failed: %s", exc)
        raise InternalError("Google login failed")

    if not info.get("email"):
        raise ValidationError("Unable to get email from Google")
    return OAuthProfile(
        provider=models.AuthProvider.GOOGLE,
        provider_id=str(info.get("id") or info.get("sub")),
        email=info["email"],
        name=info.get("name") or "",
        avatar_url=info.get("picture"),
    )


def fetch_linkedin_profile(access_token: str | None) -> OAuthProfile:
    if not access_token:
        raise ValidationError("LinkedIn access token is required")

    try:
        response = requests.get(
            LINKEDIN_USERINFO_URL,
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=REQUEST_TIMEOUT,
        )
        response.raise_for_status()
        info = response.json()
    except (requests.RequestException, ValueError) as exc:
        logger.error("LinkedIn userinfo request failed: %s", exc)
        raise InternalError("LinkedIn login failed")

    if not info.get("email"):
        raise ValidationError("Unable to get email from LinkedIn")
    name = info.get("name") or f"{info.get('given_name', '')} {info.get('family_name', '')}".strip()
    return OAuthProfile(
        provider=models.AuthProvider.LINKEDIN,
        provider_id=str(info.get("sub") or info.get("id")),
        email=info["email"],
        name=name,
        avatar_url=info.get("picture"),
    )
