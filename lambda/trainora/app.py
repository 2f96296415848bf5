import logging

from . import images, users, weights, workouts
from .responses import json_response, method_of, options_response, path_of

logger = logging.getLogger(__name__)

ROUTES = {
    ("GET", "/users"): users.get_user_profile,
    ("POST", "/users"): users.create_user_profile,
    ("PUT", "/users"): users.update_user_profile,
    ("GET", "/weights"): weights.get_weights,
    ("POST", "/weights"): weights.record_weight,
    ("GET", "/workouts"): workouts.get_workouts_by_date,
    ("POST", "/workouts"): workouts.record_workout,
    ("PUT", "/workouts"): workouts.update_workout,
    ("DELETE", "/workouts"): workouts.delete_workout,
    ("GET", "/workouts/month"): workouts.get_workout_dates_by_month,
    ("POST", "/images/upload-url"): images.create_upload_url,
}


def _allowed_methods(path: str) -> list:
    return sorted(m for (m, p) in ROUTES if p == path)


def handler(event, context):
    """Single entry point for the API: dispatch on method and path.

    Each route function is also usable as a Lambda handler of its own.
    """
    method = method_of(event)
    path = path_of(event)

    allowed = _allowed_methods(path)
    if not allowed:
        return json_response(404, {"error": f"No route for {path}"})

    if method == "OPTIONS":
        return options_response(",".join(allowed + ["OPTIONS"]))

    route = ROUTES.get((method, path))
    if route is None:
        return json_response(405, {"error": f"{method} not allowed on {path}"})

    logger.debug("%s %s", method, path)
    return route(event, context)
