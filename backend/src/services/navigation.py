"""Landing page and navigation bar contents for the current caller."""

from typing import Any

from models.session import Session
from services.access_policy import Action, allow, role_of

DASHBOARD_PATH = "/dashboard"
ADMIN_PATH = "/admin"
AUTH_PATH = "/auth"
SIGN_OUT_ENDPOINT = "/api/v1/auth/signout"


def build_navigation(session: Session | None) -> dict[str, Any]:
    """Describe what the landing page and nav bar offer to this caller.

    Anonymous callers are only pointed at the sign-in flow. Signed-in
    callers get the dashboard, the admin area if their role can view all
    feedback, and sign-out.
    """
    if session is None:
        return {
            "role": role_of(session).value,
            "primary_action": {"label": "Get Started", "path": AUTH_PATH},
            "items": [{"label": "Sign In", "path": AUTH_PATH}],
        }

    items = [{"label": "Dashboard", "path": DASHBOARD_PATH}]
    if allow(session, Action.VIEW_ALL):
        items.append({"label": "Admin", "path": ADMIN_PATH})
    items.append({"label": "Sign Out", "path": SIGN_OUT_ENDPOINT, "method": "POST"})

    return {
        "role": role_of(session).value,
        "primary_action": {"label": "Go to Dashboard", "path": DASHBOARD_PATH},
        "items": items,
    }
