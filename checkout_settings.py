"""Shared checkout configuration pulled from environment variables."""
import os


def _bool_env(name: str, default: str = "false") -> bool:
    value = os.getenv(name, default)
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def _get_env_setting(key: str, default: str = "") -> str:
    value = os.getenv(key)
    if value is None:
        return default.strip()
    return value.strip()


def _float_env(name: str, default: float | None) -> float | None:
    raw = _get_env_setting(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


BRAND_NAME = _get_env_setting("BRAND_NAME", "Industrial Immersion")
UPI_ID = _get_env_setting("UPI_ID", "industrialimmersion@upi")
UPI_PAYEE_NAME = _get_env_setting("UPI_PAYEE_NAME", "Industrial Immersion")
UPI_CURRENCY = "INR"

PAYMENT_WINDOW_SECONDS = int(_get_env_setting("PAYMENT_WINDOW_SECONDS", "300"))
# "completed" for trust-based confirmation, "pending" when ops verify payments by hand
PAYMENT_STATUS_TAG = _get_env_setting("PAYMENT_STATUS_TAG", "completed") or "completed"

LOCAL_FALLBACK_ENABLED = _bool_env("LOCAL_FALLBACK_ENABLED", "true")
LOCAL_FALLBACK_DELAY = _float_env("LOCAL_FALLBACK_DELAY", 1.0) or 0.0
SUBMISSION_TIMEOUT = _float_env("SUBMISSION_TIMEOUT", None)
