# web_app/app.py
import os
from typing import Optional

from flask import Flask, jsonify, request

from subledger import config
from subledger.store import JsonFileStore, ObligationStore
from web_app.benefits_api import bp as benefits_bp
from web_app.subscriptions_api import bp as subscriptions_bp

# --- Auth exemptions (checked before the token gate) ---
EXEMPT_PATHS = {
    "/healthz",
}


def create_app(store: Optional[ObligationStore] = None, access_token: Optional[str] = None) -> Flask:
    app = Flask(__name__)
    app.config["STORE"] = store if store is not None else JsonFileStore(
        config.DATA_DIR, ledger_prefix=config.LEDGER_ID_PREFIX
    )
    app.config["APP_ACCESS_TOKEN"] = access_token if access_token is not None else config.APP_ACCESS_TOKEN

    @app.before_request
    def token_gate():
        required = app.config.get("APP_ACCESS_TOKEN")
        if not required:
            return None  # gate disabled when no token configured
        if request.method == "HEAD" or request.path in EXEMPT_PATHS:
            return None
        if (request.headers.get("Authorization") or "") == f"Bearer {required}":
            return None
        return jsonify({"error": "unauthorized"}), 401

    @app.get("/healthz")
    def healthz():
        return jsonify({"ok": True})

    app.register_blueprint(subscriptions_bp)
    app.register_blueprint(benefits_bp)
    app.logger.info("[Config] Using DATA_DIR=%s", config.DATA_DIR)
    return app


if __name__ == "__main__":
    config.configure_logging()
    config.data_dir()
    create_app().run(debug=bool(os.environ.get("FLASK_DEBUG")))
