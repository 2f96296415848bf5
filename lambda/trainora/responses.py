import base64
import json
from datetime import date, datetime
from decimal import Decimal

from .errors import ValidationError

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type",
}


class _DecimalEncoder(json.JSONEncoder):
    def default(self, o):
        if isinstance(o, Decimal):
            if o == o.to_integral_value():
                return int(o)
            return float(o)
        return super().default(o)


def _resp(status, body, methods="GET,POST,PUT,DELETE,OPTIONS", content_type="application/json"):
    return {
        "statusCode": status,
        "headers": {
            "Content-Type": content_type,
            "Access-Control-Allow-Methods": methods,
            **CORS_HEADERS,
        },
        "body": body,
    }


def json_response(status, obj, methods="GET,POST,PUT,DELETE,OPTIONS"):
    return _resp(status, json.dumps(obj, cls=_DecimalEncoder), methods=methods)


def options_response(methods="GET,POST,PUT,DELETE,OPTIONS"):
    return _resp(200, "", methods=methods)


def method_of(event) -> str:
    if event.get("httpMethod"):
        return event["httpMethod"].upper()
    return event.get("requestContext", {}).get("http", {}).get("method", "GET").upper()


def path_of(event) -> str:
    path = event.get("rawPath") or event.get("path") or "/"
    # HTTP API puts a named stage in rawPath
    stage = event.get("requestContext", {}).get("stage")
    if event.get("rawPath") and stage and stage != "$default":
        prefix = f"/{stage}"
        if path == prefix or path.startswith(prefix + "/"):
            path = path[len(prefix):]
    return path.rstrip("/") or "/"


def is_preflight(event) -> bool:
    return method_of(event) == "OPTIONS"


def query_params(event) -> dict:
    return event.get("queryStringParameters") or {}


def parse_body(event) -> dict:
    """Decode the JSON request body. A missing body is an empty object."""
    body = event.get("body") or ""
    if event.get("isBase64Encoded"):
        body = base64.b64decode(body).decode("utf-8", "ignore")
    if not body:
        return {}
    try:
        payload = json.loads(body)
    except ValueError:
        raise ValidationError("Invalid JSON")
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON")
    return payload


def claims_sub(event):
    return event.get("requestContext", {}).get("authorizer", {}).get("claims", {}).get("sub")


def _parse_date(s: str) -> date:
    return datetime.strptime(s, "%Y-%m-%d").date()


def is_valid_date(s) -> bool:
    if not isinstance(s, str):
        return False
    try:
        _parse_date(s)
    except ValueError:
        return False
    return True


def is_valid_month(s) -> bool:
    if not isinstance(s, str):
        return False
    try:
        datetime.strptime(s, "%Y-%m")
    except ValueError:
        return False
    return True
