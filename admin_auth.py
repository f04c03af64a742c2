from functools import wraps
import hmac
import logging

from flask import current_app, jsonify, request, session


logger = logging.getLogger(__name__)

SESSION_KEY = "admin"


def _matches(given, expected) -> bool:
    return hmac.compare_digest(str(given).encode("utf-8"), str(expected).encode("utf-8"))


def check_credentials(email, password) -> bool:
    admin_email = current_app.config.get("ADMIN_EMAIL")
    admin_password = current_app.config.get("ADMIN_PASSWORD")

    if not admin_email or not admin_password:
        logger.error("Admin credentials not configured in environment variables")
        return False
    if not email or not password:
        return False

    # compare both so timing does not reveal which one failed
    email_ok = _matches(str(email).strip().lower(), admin_email.lower())
    password_ok = _matches(password, admin_password)
    return email_ok and password_ok


def login_admin():
    session.clear()
    session.permanent = True
    session[SESSION_KEY] = {"email": current_app.config["ADMIN_EMAIL"], "role": "admin"}


def logout_admin():
    session.pop(SESSION_KEY, None)


def current_admin():
    admin = session.get(SESSION_KEY)
    if admin and admin.get("role") == "admin":
        return {"email": admin["email"], "name": "MindMosaic Admin", "authenticated": True}

    token = current_app.config.get("ADMIN_API_TOKEN")
    auth_header = request.headers.get("Authorization", "")
    if token and auth_header.startswith("Bearer ") and _matches(auth_header[len("Bearer "):], token):
        return {"email": current_app.config.get("ADMIN_EMAIL"), "name": "MindMosaic Admin", "authenticated": True}

    return None


def admin_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        if current_admin() is None:
            return jsonify({"error": "Unauthorized"}), 401
        logger.info(f"Admin route accessed: {request.path}")
        return view(*args, **kwargs)
    return wrapper
