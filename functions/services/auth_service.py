import logging
from firebase_admin import auth

from utils.errors import AuthenticationError

# Set up a module-level logger
log = logging.getLogger(__name__)

def verify_owner_token(authorization_header: str | None) -> dict:
    """
    Verifies the Firebase ID token sent as 'Authorization: Bearer <token>'.
    Returns the decoded token (uid, email, ...).
    """
    if not authorization_header or not authorization_header.startswith("Bearer "):
        raise AuthenticationError("Missing or malformed Authorization header.")

    id_token = authorization_header[len("Bearer "):].strip()
    if not id_token:
        raise AuthenticationError("Missing ID token.")

    try:
        return auth.verify_id_token(id_token)
    except (auth.InvalidIdTokenError, auth.ExpiredIdTokenError, auth.RevokedIdTokenError) as e:
        log.warning(f"Rejected ID token: {e}")
        raise AuthenticationError("Your session has expired. Please log in again.") from e
