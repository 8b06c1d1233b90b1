import os, logging

from flask import Flask, redirect, url_for
from werkzeug.middleware.proxy_fix import ProxyFix

# ---------------- App & config ----------------
app = Flask(__name__)
app.secret_key = os.getenv("SECRET_KEY", "dev-secret-change-me")
app.config.update(
    SESSION_COOKIE_SECURE=os.getenv("SESSION_COOKIE_SECURE", "true").strip().lower() in {"1", "true", "yes", "on"},
    SESSION_COOKIE_HTTPONLY=True,
    SESSION_COOKIE_SAMESITE="Lax",
)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(level=LOG_LEVEL)
log = logging.getLogger("industrial-immersion")

# -------------- Submission client --------------
# Resolved once at start-up; tests swap app.config["SUBMISSION_CLIENT"].
from checkout import build_submission_client

app.config["SUBMISSION_CLIENT"] = build_submission_client()
if not app.config["SUBMISSION_CLIENT"].config.is_complete:
    log.warning("BACKEND_API_URL / BACKEND_API_KEY not set; submissions only succeed on local hosts")

# -------------- Routes --------------
@app.get("/")
def index():
    return redirect(url_for("checkout.tracks"))

from checkout import checkout_bp
app.register_blueprint(checkout_bp, url_prefix="/checkout")

# Trust the platform proxy so scheme/host are correct
app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)


# ---------------------------------------------------------------
if __name__ == "__main__":
    app.run(host="0.0.0.0", port=int(os.getenv("PORT", 8080)), debug=False)
