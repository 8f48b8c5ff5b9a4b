"""
Admin Gate - shared-secret check for mutating endpoints and the admin UI.

This is a placeholder trust boundary: one process-wide secret, no
rotation, expiry or per-operator identity.
"""

import hmac


def is_authorized(supplied: str | None, secret: str | None) -> bool:
    """
    Compare a caller-supplied credential against the admin secret.

    Fails closed: an unset secret or a missing credential is never
    authorized. Comparison is constant-time.
    """
    if not secret or not supplied:
        return False
    return hmac.compare_digest(supplied.encode("utf-8"), secret.encode("utf-8"))
