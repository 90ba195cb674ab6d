# CUI // SP-PROPIN
"""Caller identification for the ranking API.

A request is authenticated when it names the caller in ``X-User-Email``
and, if PROPOSAL_RANKING_API_KEY is set, presents the same key in
``X-Api-Key`` (or the ``api_key`` query parameter).
"""

import hmac
import os


def configured_api_key():
    return os.environ.get("PROPOSAL_RANKING_API_KEY", "").strip()


def get_current_user(request):
    """Return ``{"email": ...}`` for an authenticated caller, else None."""
    email = (request.headers.get("X-User-Email") or "").strip()
    if not email:
        return None
    api_key = configured_api_key()
    if api_key:
        provided = request.headers.get("X-Api-Key", "") or request.args.get("api_key", "")
        if not hmac.compare_digest(provided.encode(), api_key.encode()):
            return None
    return {"email": email}
