import os


def _safe_int(value, default: int) -> int:
    try:
        return int(value) if value is not None else default
    except (TypeError, ValueError):
        return default


USERS_TABLE = os.environ.get("USERS_TABLE", "")
WEIGHT_HISTORY_TABLE = os.environ.get("WEIGHT_HISTORY_TABLE", "")
GOAL_HISTORY_TABLE = os.environ.get("GOAL_HISTORY_TABLE", "")
DAILY_LOGS_TABLE = os.environ.get("TRAINORA_DAILY_LOGS_TABLE", "")

ASSETS_BUCKET = os.environ.get("ASSETS_BUCKET", "")
AWS_REGION = os.environ.get("AWS_REGION") or None

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").strip().upper()

# seconds
UPLOAD_URL_EXPIRES = _safe_int(os.environ.get("UPLOAD_URL_EXPIRES"), 60)
IMAGE_URL_EXPIRES = _safe_int(os.environ.get("IMAGE_URL_EXPIRES"), 3600)
