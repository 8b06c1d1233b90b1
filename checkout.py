# checkout.py (Blueprint: checkout)
# Multi-step enrollment checkout: profile -> review -> UPI payment -> success.
# Wizard state lives in the session, keyed by track.

from __future__ import annotations

import logging
import threading
from typing import Any, Dict
from urllib.parse import urlsplit

from flask import (
    Blueprint,
    abort,
    current_app,
    jsonify,
    redirect,
    render_template,
    request,
    session,
    url_for,
)

from api_service import SubmissionClient, resolve_api_config
from checkout_flow import FORM_FIELDS, STEP_TITLES, CheckoutStep, CheckoutWizard
from checkout_settings import (
    BRAND_NAME,
    LOCAL_FALLBACK_DELAY,
    LOCAL_FALLBACK_ENABLED,
    SUBMISSION_TIMEOUT,
    UPI_ID,
)
from track_catalog import CURRENT_STATUSES, TRACKS, format_price, get_track

checkout_bp = Blueprint("checkout", __name__, template_folder="templates")

logger = logging.getLogger(__name__)

SESSION_KEY = "checkout"
WEB_NAVIGABLE_STEPS = {int(CheckoutStep.PROFILE), int(CheckoutStep.REVIEW), int(CheckoutStep.PAYMENT)}
ALREADY_SUBMITTED_MESSAGE = "This application has already been submitted."

_submission_lock = threading.Lock()
# Wizard ids with a submission in flight or already accepted by the REST table.
_claimed_wizards: set[str] = set()


# ───────────────────────────────────────────────────────────────
# Helpers
# ───────────────────────────────────────────────────────────────
def build_submission_client() -> SubmissionClient:
    return SubmissionClient(
        resolve_api_config(timeout=SUBMISSION_TIMEOUT),
        local_fallback=LOCAL_FALLBACK_ENABLED,
        local_fallback_delay=LOCAL_FALLBACK_DELAY,
    )


def _submission_client() -> SubmissionClient:
    client = current_app.config.get("SUBMISSION_CLIENT")
    if client is None:
        client = build_submission_client()
        current_app.config["SUBMISSION_CLIENT"] = client
    return client


def _wants_json_response() -> bool:
    if request.is_json:
        return True
    best = request.accept_mimetypes.best_match(["application/json", "text/html"])
    if not best:
        return False
    return best == "application/json" and (
        request.accept_mimetypes.quality(best)
        >= request.accept_mimetypes.quality("text/html")
    )


def _request_hostname() -> str | None:
    return urlsplit(request.host_url).hostname


def _track_or_404(track_key: str) -> Dict[str, Any]:
    track = get_track(track_key)
    if not track:
        abort(404)
    return track


def _load_wizard(track_key: str) -> CheckoutWizard:
    stored = (session.get(SESSION_KEY) or {}).get(track_key)
    if not stored:
        return CheckoutWizard(track_key)
    try:
        return CheckoutWizard.from_dict(stored)
    except (KeyError, TypeError, ValueError):
        logger.warning("Discarding unreadable checkout state for track %s", track_key)
        return CheckoutWizard(track_key)


def _save_wizard(wizard: CheckoutWizard) -> None:
    wizards = dict(session.get(SESSION_KEY) or {})
    wizards[wizard.track_key] = wizard.to_dict()
    session[SESSION_KEY] = wizards


def _discard_wizard(track_key: str) -> None:
    wizards = dict(session.get(SESSION_KEY) or {})
    if wizards.pop(track_key, None) is not None:
        session[SESSION_KEY] = wizards


def _claim_submission(wizard_id: str) -> bool:
    with _submission_lock:
        if wizard_id in _claimed_wizards:
            return False
        _claimed_wizards.add(wizard_id)
        return True


def _release_submission(wizard_id: str) -> None:
    with _submission_lock:
        _claimed_wizards.discard(wizard_id)


def _request_body():
    if request.is_json:
        body = request.get_json(silent=True)
        return body if isinstance(body, dict) else {}
    return request.form


def _form_payload() -> Dict[str, str]:
    source = _request_body()
    return {name: str(source.get(name) or "").strip() for name in FORM_FIELDS if name in source}


def _respond(wizard: CheckoutWizard, track: Dict[str, Any], status: int = 200):
    if _wants_json_response():
        return jsonify(wizard.state()), status
    if status == 200:
        return redirect(url_for("checkout.page", track_key=track["key"]))
    return _render(wizard, track)


def _render(wizard: CheckoutWizard, track: Dict[str, Any]):
    return render_template(
        "checkout.html",
        brand_name=BRAND_NAME,
        wizard=wizard,
        step=int(wizard.step),
        step_title=STEP_TITLES[wizard.step],
        track=track,
        price_display=format_price(track["price"]),
        statuses=CURRENT_STATUSES,
        upi_id=UPI_ID,
        upi_link=wizard.payment_link(track),
    )


# ───────────────────────────────────────────────────────────────
# Views
# ───────────────────────────────────────────────────────────────
@checkout_bp.get("/")
def tracks():
    catalog = [dict(get_track(key), price_display=format_price(TRACKS[key]["price"])) for key in TRACKS]
    if _wants_json_response():
        return jsonify({"tracks": catalog})
    return render_template("tracks.html", brand_name=BRAND_NAME, tracks=catalog)


@checkout_bp.get("/<track_key>")
def page(track_key: str):
    track = _track_or_404(track_key)
    wizard = _load_wizard(track_key)
    wizard.advance_clock()
    _save_wizard(wizard)
    if _wants_json_response():
        return jsonify(wizard.state())
    return _render(wizard, track)


@checkout_bp.post("/<track_key>/profile")
def profile(track_key: str):
    track = _track_or_404(track_key)
    wizard = _load_wizard(track_key)
    if wizard.step != CheckoutStep.PROFILE:
        return _respond(wizard, track, 409)

    for name, value in _form_payload().items():
        wizard.update_field(name, value)
    advanced = wizard.validate_and_advance()
    _save_wizard(wizard)
    return _respond(wizard, track, 200 if advanced else 400)


@checkout_bp.post("/<track_key>/step")
def step(track_key: str):
    track = _track_or_404(track_key)
    wizard = _load_wizard(track_key)
    raw = _request_body().get("step")
    try:
        target = int(raw)
    except (TypeError, ValueError):
        target = None
    if target not in WEB_NAVIGABLE_STEPS or wizard.step == CheckoutStep.SUCCESS:
        return _respond(wizard, track, 400)
    if target > int(CheckoutStep.PROFILE) and wizard.missing_fields():
        # The review and payment pages need a complete profile behind them.
        return _respond(wizard, track, 400)

    wizard.go_to_step(target)
    _save_wizard(wizard)
    return _respond(wizard, track)


@checkout_bp.post("/<track_key>/submit")
def submit(track_key: str):
    track = _track_or_404(track_key)
    wizard = _load_wizard(track_key)
    if wizard.step != CheckoutStep.PAYMENT:
        return _respond(wizard, track, 409)

    # The session cookie can be replayed, so the guard has to live server-side.
    if not _claim_submission(wizard.wizard_id):
        logger.info("Refusing repeat submit for track %s", track_key)
        wizard.error = ALREADY_SUBMITTED_MESSAGE
        return _respond(wizard, track, 409)

    wizard.advance_clock()
    accepted = False
    try:
        result = wizard.submit(_submission_client(), hostname=_request_hostname())
        accepted = bool(result and result.success)
    finally:
        if not accepted:
            _release_submission(wizard.wizard_id)
    _save_wizard(wizard)
    if not result.success:
        logger.warning("Checkout submission failed for track %s (%s)", track_key, result.error_kind)
        return _respond(wizard, track, 502)
    return _respond(wizard, track)


@checkout_bp.post("/<track_key>/close")
def close(track_key: str):
    _track_or_404(track_key)
    _discard_wizard(track_key)
    if _wants_json_response():
        return jsonify({"closed": True})
    return redirect(url_for("checkout.tracks"))
