"""
FLASK APP ENTRY POINT - OTP AUTHENTICATION SERVER
==================================================

Thin HTTP layer over otp_core.verifier. The engine decides; this file only
wires configuration, CORS and the API blueprint together.

CẤU HÌNH (environment, prefix OTP_AUTH_):
- OTP_AUTH_USERS_FILE    : đường dẫn users file (bắt buộc)
- OTP_AUTH_MAX_OFFSET    : counter window half-width (mặc định 4)
- OTP_AUTH_MAX_LINGER    : giây cho phép dùng lại OTP (mặc định 600)
- OTP_AUTH_LOCK_TIMEOUT  : giây chờ lock khi ghi users file (mặc định 10)
- OTP_AUTH_REALM         : realm trong WWW-Authenticate header

Chạy thử:
    OTP_AUTH_USERS_FILE=users.txt python -m otp_backend.app
"""

import logging
import os

from flask import Flask
from flask_cors import CORS

from otp_core.config import ENV_PREFIX, OTPConfig

DEFAULT_REALM = "OTP"


def create_app(test_config=None) -> Flask:
    """
    Tạo Flask app.

    Arguments:
        test_config: mapping overriding the environment (used by tests)
    """
    app = Flask(__name__)
    app.config.from_mapping(OTP_AUTH_REALM=DEFAULT_REALM)
    app.config.from_mapping({k: v for k, v in os.environ.items() if k.startswith(ENV_PREFIX)})
    if test_config is not None:
        app.config.from_mapping(test_config)

    # Bad settings fail here rather than on the first request
    app.extensions["otp_config"] = OTPConfig.from_mapping(app.config)
    if not app.extensions["otp_config"].users_file:
        app.logger.warning("OTP_AUTH_USERS_FILE is not set; every login will fail")

    # Cho phép frontend khác origin gọi API
    CORS(app)

    from otp_backend.routes import otp_bp
    app.register_blueprint(otp_bp)

    return app


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    create_app().run(debug=False, host="127.0.0.1", port=5000)
