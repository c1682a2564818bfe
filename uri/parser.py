"""
Parse and build otpauth:// URIs (Google Authenticator Key URI Format).

Only the ``totp`` type is accepted.

Reference: https://github.com/google/google-authenticator/wiki/Key-Uri-Format
"""

import urllib.parse
from typing import Dict

from core.totp import DEFAULT_DIGITS, DEFAULT_PERIOD, Algorithm
from core.utils import clean_secret, sanitise_label, validate_digits, validate_period
from storage.accounts import OTPConfig


def _int_param(params: Dict[str, str], name: str, default: int) -> int:
    raw = params.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"'{name}' must be an integer, got '{raw}'.")


def parse_otpauth_uri(uri: str) -> OTPConfig:
    """
    Parse and validate an ``otpauth://totp/...`` URI.

    The account label is the URL-decoded path, kept whole (``Issuer:name``
    stays ``Issuer:name``) so it matches what the issuer displays.  When no
    ``issuer`` query parameter is present the label prefix is used instead.

    Args:
        uri: Full otpauth URI string.

    Returns:
        Populated :class:`~storage.accounts.OTPConfig`.

    Raises:
        ValueError: If the URI is malformed or contains invalid values.
    """
    uri = uri.strip()
    parsed = urllib.parse.urlparse(uri)

    if parsed.scheme.lower() != "otpauth":
        raise ValueError(f"Expected 'otpauth' scheme, got '{parsed.scheme}'.")

    otp_type = parsed.netloc.lower()
    if otp_type != "totp":
        raise ValueError(f"Unsupported OTP type '{otp_type}'. Only totp is supported.")

    label = sanitise_label(urllib.parse.unquote(parsed.path.lstrip("/")))
    if not label:
        raise ValueError("Missing label in otpauth URI.")

    params = dict(urllib.parse.parse_qsl(parsed.query))

    raw_secret = params.get("secret", "")
    if not raw_secret:
        raise ValueError("Missing 'secret' parameter in otpauth URI.")
    secret = clean_secret(raw_secret)

    label_issuer = label.split(":", 1)[0].strip() if ":" in label else ""
    issuer = sanitise_label(params.get("issuer", label_issuer))

    algorithm = Algorithm.parse(params.get("algorithm") or "SHA1")

    digits = _int_param(params, "digits", DEFAULT_DIGITS)
    validate_digits(digits)

    period = _int_param(params, "period", DEFAULT_PERIOD)
    validate_period(period)

    return OTPConfig(
        label=label,
        secret=secret,
        algorithm=algorithm,
        period=period,
        digits=digits,
        issuer=issuer,
    )


def build_otpauth_uri(config: OTPConfig) -> str:
    """Render *config* back into an ``otpauth://totp/`` URI."""
    params: Dict[str, str] = {
        "secret": config.secret.upper().replace("=", ""),
        "algorithm": Algorithm(config.algorithm).value,
        "digits": str(config.digits),
        "period": str(config.period),
    }
    if config.issuer:
        params["issuer"] = config.issuer

    query = urllib.parse.urlencode(params, quote_via=urllib.parse.quote)
    label_encoded = urllib.parse.quote(config.label, safe="")
    return f"otpauth://totp/{label_encoded}?{query}"
