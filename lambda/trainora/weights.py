import logging

from boto3.dynamodb.conditions import Key

from . import aws, config
from .daily_record import RecordOutcome, record_daily_weight
from .errors import ValidationError
from .responses import (
    claims_sub,
    is_preflight,
    is_valid_date,
    json_response,
    options_response,
    parse_body,
    query_params,
)

logger = logging.getLogger(__name__)


def record_weight(event, context):
    """POST /weights: log a weight once per day; 409 when the day is taken."""
    if is_preflight(event):
        return options_response("POST,OPTIONS")
    try:
        body = parse_body(event)
        user_id = body.get("userId")
        weight = body.get("weight")
        date = body.get("date")

        if date is not None and not is_valid_date(date):
            raise ValidationError("date must be YYYY-MM-DD")

        result = record_daily_weight(
            aws.table(config.WEIGHT_HISTORY_TABLE),
            user_id,
            weight,
            date=date,
        )

        if result is RecordOutcome.ALREADY_EXISTS:
            logger.info("Weight already recorded for user %s on %s", user_id, date or "today")
            return json_response(409, {"message": "Weight already recorded for today"}, "POST,OPTIONS")

        return json_response(200, {"message": "Weight recorded successfully"}, "POST,OPTIONS")

    except ValidationError as e:
        return json_response(400, {"error": e.message}, "POST,OPTIONS")
    except Exception as e:
        logger.exception("record-daily-weight error")
        return json_response(500, {"error": str(e) or "Internal server error"}, "POST,OPTIONS")


def get_weights(event, context):
    """GET /weights: the user's weight history, oldest first."""
    if is_preflight(event):
        return options_response("GET,OPTIONS")
    try:
        user_id = query_params(event).get("userId") or claims_sub(event)
        if not user_id:
            return json_response(400, {"error": "Missing userId"}, "GET,OPTIONS")

        resp = aws.table(config.WEIGHT_HISTORY_TABLE).query(
            KeyConditionExpression=Key("userId").eq(user_id),
            ScanIndexForward=True,
        )
        items = [{"date": it.get("date"), "weight": it.get("weight")} for it in resp.get("Items", [])]

        return json_response(200, {"userId": user_id, "count": len(items), "items": items}, "GET,OPTIONS")

    except Exception as e:
        logger.exception("get-daily-weight error")
        return json_response(500, {"error": str(e)}, "GET,OPTIONS")
