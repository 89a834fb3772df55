"""
OTP BACKEND API ROUTES - FLASK BLUEPRINT

Endpoints:
- POST /api/verify   JSON {"username": "...", "otp": "<pin><otp>"} -> {"valid": bool}
- GET  /api/whoami   HTTP Basic (username / pin+otp) -> {"user": "..."}
- GET  /api/health   -> {"status": "ok"}

Unknown users and wrong OTPs get the same 401 answer; the difference only
shows up in the server log.

VÍ DỤ:
curl -X POST http://localhost:5000/api/verify -H "Content-Type: application/json" -d '{"username": "alice", "otp": "1234755224"}'
curl -u alice:1234755224 http://localhost:5000/api/whoami
"""

from flask import Blueprint, current_app, jsonify, request

from otp_core.verifier import AuthStatus, verify_password

otp_bp = Blueprint("otp", __name__, url_prefix="/api")


def _check(username: str, otp: str) -> AuthStatus:
    return verify_password(current_app.extensions["otp_config"], username, otp)


def _error_response(status: AuthStatus):
    if status is AuthStatus.GENERAL_ERROR:
        return jsonify({"valid": False, "error": "Authentication service unavailable"}), 500
    return jsonify({"valid": False}), 401


@otp_bp.route("/health", methods=["GET"])
def health():
    return jsonify({"status": "ok"})


@otp_bp.route("/verify", methods=["POST"])
def verify_route():
    """
    XÁC MINH OTP

    Input (JSON body):
      {
        "username": "alice",
        "otp": "1234755224"     # PIN + OTP (mOTP: chỉ OTP)
      }

    Output:
      200 {"valid": true} | 401 {"valid": false} | 500 khi users file lỗi
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "JSON body is required"}), 400
    username = data.get("username")
    otp = data.get("otp")
    if not isinstance(username, str) or not username or not isinstance(otp, str):
        return jsonify({"error": "username and otp are required strings"}), 400

    status = _check(username, otp)
    if status is not AuthStatus.GRANTED:
        return _error_response(status)
    return jsonify({"valid": True})


@otp_bp.route("/whoami", methods=["GET"])
def whoami():
    """HTTP Basic: password field carries PIN + OTP."""
    auth = request.authorization
    status = None
    if auth is not None and auth.type == "basic" and auth.username:
        status = _check(auth.username, auth.password or "")
        if status is AuthStatus.GRANTED:
            return jsonify({"user": auth.username})

    if status is AuthStatus.GENERAL_ERROR:
        return _error_response(status)
    response = jsonify({"error": "Authentication required"})
    response.status_code = 401
    realm = current_app.config["OTP_AUTH_REALM"]
    response.headers["WWW-Authenticate"] = f'Basic realm="{realm}"'
    return response
