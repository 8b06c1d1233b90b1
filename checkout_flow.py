"""Enrollment checkout wizard.

Profile -> Review -> Payment -> Success. The wizard only holds state and
enforces the transitions; rendering and HTTP live in ``checkout.py`` and the
outbound call lives in ``api_service.py``.
"""
from __future__ import annotations

import logging
import time
import uuid
from enum import IntEnum
from typing import Any, Dict, Optional
from urllib.parse import quote

from api_service import SubmissionClient, SubmissionResult
from checkout_settings import (
    PAYMENT_STATUS_TAG,
    PAYMENT_WINDOW_SECONDS,
    UPI_CURRENCY,
    UPI_ID,
    UPI_PAYEE_NAME,
)
from track_catalog import CURRENT_STATUSES

log = logging.getLogger(__name__)

REQUIRED_FIELDS = ("fullName", "email", "phone", "currentStatus", "careerGoals")
OPTIONAL_FIELDS = ("linkedin", "workExperience")
FORM_FIELDS = REQUIRED_FIELDS + OPTIONAL_FIELDS

REQUIRED_FIELDS_MESSAGE = "Please complete all required fields (*)"


class CheckoutStep(IntEnum):
    PROFILE = 1
    REVIEW = 2
    PAYMENT = 3
    SUCCESS = 4


STEP_TITLES = {
    CheckoutStep.PROFILE: "Personal Profile",
    CheckoutStep.REVIEW: "Final Review",
    CheckoutStep.PAYMENT: "Complete Payment",
    CheckoutStep.SUCCESS: "Application Secured",
}


class ValidationFailed(Exception):
    """Raised when required profile fields are empty."""

    def __init__(self, missing: tuple[str, ...]):
        self.missing = missing
        super().__init__(REQUIRED_FIELDS_MESSAGE)


def empty_record() -> Dict[str, str]:
    record = {name: "" for name in FORM_FIELDS}
    record["currentStatus"] = CURRENT_STATUSES[0]
    return record


def format_time(seconds: int) -> str:
    """Render a countdown as m:ss."""
    seconds = max(0, int(seconds))
    return f"{seconds // 60}:{seconds % 60:02d}"


class CheckoutWizard:
    """State container for one applicant going through checkout of one track."""

    def __init__(
        self,
        track_key: str,
        payment_status: str = PAYMENT_STATUS_TAG,
        time_left: int = PAYMENT_WINDOW_SECONDS,
    ):
        self.wizard_id = uuid.uuid4().hex
        self.track_key = track_key
        self.payment_status = payment_status
        self.fields: Dict[str, str] = empty_record()
        self.step = CheckoutStep.PROFILE
        self.submitting = False
        self.error: Optional[str] = None
        self.time_left = time_left
        self.clock_synced_at: Optional[float] = None

    # ── profile ─────────────────────────────────────────────
    def update_field(self, name: str, value: Any) -> None:
        if name not in FORM_FIELDS:
            raise KeyError(name)
        self.fields[name] = "" if value is None else str(value)
        if self.error:
            self.error = None

    def missing_fields(self) -> tuple[str, ...]:
        return tuple(f for f in REQUIRED_FIELDS if not (self.fields.get(f) or "").strip())

    def validate(self) -> None:
        missing = self.missing_fields()
        if missing:
            raise ValidationFailed(missing)

    def validate_and_advance(self) -> bool:
        try:
            self.validate()
        except ValidationFailed as exc:
            log.debug("Profile incomplete for track %s: %s", self.track_key, ", ".join(exc.missing))
            self.error = str(exc)
            return False
        self._set_step(CheckoutStep.REVIEW)
        return True

    # ── navigation ──────────────────────────────────────────
    def go_to_step(self, step: int) -> None:
        try:
            target = CheckoutStep(int(step))
        except ValueError:
            raise ValueError(f"Unknown checkout step: {step!r}") from None
        self._set_step(target)

    def _set_step(self, step: CheckoutStep, now: Optional[float] = None) -> None:
        now = time.time() if now is None else now
        if self.step == CheckoutStep.PAYMENT and step != CheckoutStep.PAYMENT:
            self.advance_clock(now)
            self.clock_synced_at = None
        elif step == CheckoutStep.PAYMENT and self.step != CheckoutStep.PAYMENT:
            self.clock_synced_at = now
        self.step = step

    # ── countdown ───────────────────────────────────────────
    def tick(self) -> None:
        if self.step != CheckoutStep.PAYMENT or self.time_left <= 0:
            return
        self.time_left -= 1
        if self.time_left == 0:
            # Expiry is informational only; submission stays open.
            log.warning("Payment window elapsed for track %s", self.track_key)

    def advance_clock(self, now: Optional[float] = None) -> None:
        """Apply one tick per whole second elapsed on the payment step."""
        if self.step != CheckoutStep.PAYMENT or self.clock_synced_at is None:
            return
        now = time.time() if now is None else now
        elapsed = int(now - self.clock_synced_at)
        if elapsed <= 0:
            return
        self.clock_synced_at += elapsed
        for _ in range(min(elapsed, self.time_left)):
            self.tick()

    @property
    def expired(self) -> bool:
        return self.time_left <= 0

    @property
    def time_left_display(self) -> str:
        return format_time(self.time_left)

    # ── payment ─────────────────────────────────────────────
    def payment_link(self, track: Dict[str, Any]) -> str:
        first_name = (self.fields.get("fullName") or "").split(" ")[0]
        return (
            f"upi://pay?pa={UPI_ID}&pn={quote(UPI_PAYEE_NAME)}&am={track['price']}"
            f"&cu={UPI_CURRENCY}&tn=Enroll_{quote(first_name)}"
        )

    def submission_payload(self) -> Dict[str, Any]:
        data: Dict[str, Any] = dict(self.fields)
        data["track"] = self.track_key
        data["paymentStatus"] = self.payment_status
        return data

    def submit(self, client: SubmissionClient, hostname: str | None = None) -> Optional[SubmissionResult]:
        """Send the application once. Returns None if a submission is already running."""
        if self.submitting:
            log.info("Ignoring duplicate submit for track %s", self.track_key)
            return None
        self.submitting = True
        self.error = None
        try:
            result = client.submit(self.submission_payload(), hostname=hostname)
        finally:
            self.submitting = False

        if result.success:
            self._set_step(CheckoutStep.SUCCESS)
        else:
            self.error = result.error
        return result

    # ── session (de)serialization ───────────────────────────
    def to_dict(self) -> Dict[str, Any]:
        return {
            "wizard_id": self.wizard_id,
            "track_key": self.track_key,
            "payment_status": self.payment_status,
            "fields": dict(self.fields),
            "step": int(self.step),
            "error": self.error,
            "time_left": self.time_left,
            "clock_synced_at": self.clock_synced_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CheckoutWizard":
        wizard = cls(
            data["track_key"],
            payment_status=data.get("payment_status") or PAYMENT_STATUS_TAG,
            time_left=int(data.get("time_left", PAYMENT_WINDOW_SECONDS)),
        )
        if data.get("wizard_id"):
            wizard.wizard_id = str(data["wizard_id"])
        fields = data.get("fields") or {}
        for name in FORM_FIELDS:
            if name in fields:
                wizard.fields[name] = fields[name] or ""
        wizard.step = CheckoutStep(int(data.get("step", CheckoutStep.PROFILE)))
        wizard.error = data.get("error")
        wizard.clock_synced_at = data.get("clock_synced_at")
        return wizard

    def state(self) -> Dict[str, Any]:
        """Public view of the wizard for JSON responses."""
        return {
            "track": self.track_key,
            "step": int(self.step),
            "step_title": STEP_TITLES[self.step],
            "fields": dict(self.fields),
            "submitting": self.submitting,
            "error": self.error,
            "time_left": self.time_left,
            "time_left_display": self.time_left_display,
            "expired": self.expired,
        }
