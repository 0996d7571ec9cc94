# crosspost/platforms/oauth1.py
"""OAuth 1.0a request signing (HMAC-SHA1), as used by X."""
import base64
import hashlib
import hmac
import secrets
import time
from typing import Dict, Optional
from urllib.parse import quote


def percent_encode(value: str) -> str:
    # RFC 3986 unreserved characters only
    return quote(str(value), safe="~")


def signature_base_string(method: str, url: str, params: Dict[str, str]) -> str:
    encoded = sorted((percent_encode(k), percent_encode(v)) for k, v in params.items())
    param_string = "&".join(f"{k}={v}" for k, v in encoded)
    return "&".join([method.upper(), percent_encode(url), percent_encode(param_string)])


def sign(method: str, url: str, params: Dict[str, str], consumer_secret: str, token_secret: str = "") -> str:
    key = f"{percent_encode(consumer_secret)}&{percent_encode(token_secret)}"
    base = signature_base_string(method, url, params)
    digest = hmac.new(key.encode(), base.encode(), hashlib.sha1).digest()
    return base64.b64encode(digest).decode()


def authorization_header(
    method: str,
    url: str,
    consumer_key: str,
    consumer_secret: str,
    token: Optional[str] = None,
    token_secret: str = "",
    extra_oauth_params: Optional[Dict[str, str]] = None,
    body_params: Optional[Dict[str, str]] = None,
    nonce: Optional[str] = None,
    timestamp: Optional[str] = None,
) -> str:
    """
    Build the ``Authorization: OAuth ...`` value. ``body_params`` are the
    form-encoded body (or query) parameters that take part in the signature
    but are not sent in the header.
    """
    oauth_params = {
        "oauth_consumer_key": consumer_key,
        "oauth_nonce": nonce or secrets.token_hex(16),
        "oauth_signature_method": "HMAC-SHA1",
        "oauth_timestamp": timestamp or str(int(time.time())),
        "oauth_version": "1.0",
    }
    if token:
        oauth_params["oauth_token"] = token
    if extra_oauth_params:
        oauth_params.update(extra_oauth_params)

    signed_params = dict(oauth_params)
    if body_params:
        signed_params.update(body_params)
    oauth_params["oauth_signature"] = sign(method, url, signed_params, consumer_secret, token_secret)

    return "OAuth " + ", ".join(
        f'{percent_encode(k)}="{percent_encode(v)}"' for k, v in sorted(oauth_params.items())
    )
