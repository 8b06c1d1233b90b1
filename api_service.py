"""Submission client for the hosted applications table.

Applications are pushed to a Supabase-style REST endpoint with a single POST.
Configuration is resolved from the environment once and passed into the
client explicitly so tests can inject their own.
"""
from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Sequence

import httpx

log = logging.getLogger(__name__)

REST_PATH_MARKER = "/rest/v1"
APPLICATIONS_PATH = "/rest/v1/applications"

# Ordered: the first non-empty value wins.
URL_ENV_CANDIDATES: Sequence[str] = (
    "BACKEND_API_URL",
    "VITE_BACKEND_API_URL",
    "REACT_APP_BACKEND_API_URL",
    "NEXT_PUBLIC_BACKEND_API_URL",
    "SUPABASE_URL",
    "VITE_SUPABASE_URL",
    "NEXT_PUBLIC_SUPABASE_URL",
)
KEY_ENV_CANDIDATES: Sequence[str] = (
    "BACKEND_API_KEY",
    "VITE_BACKEND_API_KEY",
    "REACT_APP_BACKEND_API_KEY",
    "NEXT_PUBLIC_BACKEND_API_KEY",
    "SUPABASE_ANON_KEY",
    "VITE_SUPABASE_ANON_KEY",
    "NEXT_PUBLIC_SUPABASE_ANON_KEY",
)

LOCAL_HOSTNAMES = {"localhost", "127.0.0.1"}

MISSING_CONFIG_MESSAGE = (
    "Database credentials missing. Please add BACKEND_API_URL and BACKEND_API_KEY "
    "to the environment variables of your deployment, and then RE-DEPLOY your site."
)
NETWORK_ERROR_MESSAGE = "Network error. Check your internet or DB URL."

ERROR_CONFIGURATION_MISSING = "configuration_missing"
ERROR_REMOTE_REJECTED = "remote_rejected"
ERROR_NETWORK_FAILURE = "network_failure"


class SubmissionError(Exception):
    """Base class for failures that end a submission attempt."""

    kind = "submission_error"


class ConfigurationMissing(SubmissionError):
    """Raised when no endpoint URL or access key could be resolved."""

    kind = ERROR_CONFIGURATION_MISSING

    def __init__(self, message: str = MISSING_CONFIG_MESSAGE):
        super().__init__(message)


class RemoteRejected(SubmissionError):
    """Raised when the REST endpoint answers with a non-2xx status."""

    kind = ERROR_REMOTE_REJECTED

    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"DB Error: {body}")


class NetworkFailure(SubmissionError):
    """Raised when the request could not be completed at all."""

    kind = ERROR_NETWORK_FAILURE

    def __init__(self, message: str = NETWORK_ERROR_MESSAGE):
        super().__init__(message)


@dataclass(frozen=True)
class ApiConfig:
    url: str = ""
    key: str = ""
    timeout: Optional[float] = None

    @property
    def is_complete(self) -> bool:
        return bool(self.url and self.key)


@dataclass(frozen=True)
class SubmissionResult:
    success: bool
    error: Optional[str] = None
    error_kind: Optional[str] = None
    simulated: bool = False

    def as_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"success": self.success}
        if self.error:
            data["error"] = self.error
            data["error_kind"] = self.error_kind
        if self.simulated:
            data["simulated"] = True
        return data


def _first_env(env: Mapping[str, str], names: Sequence[str]) -> str:
    for name in names:
        value = (env.get(name) or "").strip()
        if value:
            return value
    return ""


def _applications_url(base_url: str) -> str:
    if base_url and REST_PATH_MARKER not in base_url:
        return base_url.rstrip("/") + APPLICATIONS_PATH
    return base_url


def resolve_api_config(
    env: Optional[Mapping[str, str]] = None,
    timeout: Optional[float] = None,
) -> ApiConfig:
    """Build an ApiConfig from the first matching environment variables.

    A bare project URL (no ``/rest/v1`` in it) is pointed at the applications
    table. Missing values come back as empty strings; that is reported when a
    submission is attempted, not here.
    """
    env = os.environ if env is None else env
    url = _applications_url(_first_env(env, URL_ENV_CANDIDATES))
    key = _first_env(env, KEY_ENV_CANDIDATES)
    return ApiConfig(url=url, key=key, timeout=timeout)


def _or_none(value: Any) -> Any:
    return value if value else None


def to_external_payload(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Translate the internal field names into the table's column names."""
    return {
        "full_name": data.get("fullName"),
        "email": data.get("email"),
        "phone": data.get("phone"),
        "linkedin": _or_none(data.get("linkedin")),
        "current_status": data.get("currentStatus"),
        "work_experience": _or_none(data.get("workExperience")),
        "career_goals": data.get("careerGoals"),
        "track_key": data.get("track"),
        "payment_status": data.get("paymentStatus") or "completed",
    }


def is_local_hostname(hostname: str | None) -> bool:
    if not hostname:
        return False
    host = hostname.strip().lower()
    return host in LOCAL_HOSTNAMES or "stackblitz" in host


class SubmissionClient:
    """Posts one application per call. No retries."""

    def __init__(
        self,
        config: ApiConfig,
        http_client: Optional[httpx.Client] = None,
        local_fallback: bool = True,
        local_fallback_delay: float = 1.0,
    ):
        self.config = config
        self._http = http_client
        self.local_fallback = local_fallback
        self.local_fallback_delay = local_fallback_delay

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "apikey": self.config.key,
            "Authorization": f"Bearer {self.config.key}",
            "Prefer": "return=minimal",
        }

    def _post(self, payload: Dict[str, Any]) -> None:
        try:
            if self._http is not None:
                extra = {"timeout": self.config.timeout} if self.config.timeout is not None else {}
                response = self._http.post(self.config.url, json=payload, headers=self._headers(), **extra)
            else:
                with httpx.Client(timeout=self.config.timeout) as client:
                    response = client.post(self.config.url, json=payload, headers=self._headers())
        except httpx.HTTPError as exc:
            log.warning("Application POST to %s failed: %s", self.config.url, exc)
            raise NetworkFailure() from exc
        except (httpx.InvalidURL, ValueError, UnicodeError) as exc:
            # Bad URL or a key that cannot go into a header; the request never left.
            log.warning("Application POST could not be built: %s", type(exc).__name__)
            raise NetworkFailure() from exc

        if not response.is_success:
            log.warning("Application POST rejected with HTTP %s", response.status_code)
            raise RemoteRejected(response.status_code, response.text)

    def submit(self, data: Mapping[str, Any], hostname: str | None = None) -> SubmissionResult:
        """Push one application and report the outcome as a SubmissionResult."""
        try:
            if not self.config.is_complete:
                log.error(
                    "Missing submission config (url set: %s, key set: %s)",
                    bool(self.config.url),
                    bool(self.config.key),
                )
                if self.local_fallback and is_local_hostname(hostname):
                    log.info("Simulating a successful submission on local host %s", hostname)
                    if self.local_fallback_delay > 0:
                        time.sleep(self.local_fallback_delay)
                    return SubmissionResult(success=True, simulated=True)
                raise ConfigurationMissing()

            self._post(to_external_payload(data))
        except SubmissionError as exc:
            return SubmissionResult(success=False, error=str(exc), error_kind=exc.kind)

        log.info("Application submitted for track %s", data.get("track"))
        return SubmissionResult(success=True)


__all__ = [
    "ApiConfig",
    "SubmissionResult",
    "SubmissionClient",
    "SubmissionError",
    "ConfigurationMissing",
    "RemoteRejected",
    "NetworkFailure",
    "resolve_api_config",
    "to_external_payload",
    "is_local_hostname",
]
