import logging
import uuid

from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError

from . import aws, config, daily_record
from .errors import ValidationError, is_conditional_check_failed
from .responses import (
    is_preflight,
    is_valid_date,
    is_valid_month,
    json_response,
    options_response,
    parse_body,
    query_params,
)

logger = logging.getLogger(__name__)

METHODS = "GET,POST,PUT,DELETE,OPTIONS"


def _sort_key(date: str, workout_id: str) -> str:
    return f"{date}#{workout_id}"


def _require_key_fields(body: dict):
    user_id = body.get("userId")
    date = body.get("date")
    workout_id = body.get("workoutId")
    if not user_id or not date or not workout_id:
        raise ValidationError("Missing userId, date, or workoutId")
    if not is_valid_date(date):
        raise ValidationError("date must be YYYY-MM-DD")
    return user_id, date, workout_id


def _failure(action: str, e: Exception):
    logger.exception("%s error", action)
    return json_response(500, {"error": f"Failed to {action}", "detail": str(e)}, METHODS)


def record_workout(event, context):
    if is_preflight(event):
        return options_response(METHODS)
    try:
        if not event.get("body"):
            raise ValidationError("Missing request body")
        body = parse_body(event)
        user_id = body.get("userId")
        date = body.get("date")
        body_parts = body.get("bodyParts")
        workouts = body.get("workouts")

        if not user_id:
            raise ValidationError("Missing userId")
        if not date:
            raise ValidationError("Missing date (YYYY-MM-DD)")
        if not is_valid_date(date):
            raise ValidationError("date must be YYYY-MM-DD")
        if not isinstance(workouts, list) or not workouts:
            raise ValidationError("Workouts must be a non-empty array")

        workout_id = str(uuid.uuid4())
        now = daily_record.iso_timestamp(daily_record.utc_now())

        aws.table(config.DAILY_LOGS_TABLE).put_item(
            Item=aws.to_dynamo(
                {
                    "userId": user_id,
                    "dateWorkoutId": _sort_key(date, workout_id),
                    "date": date,
                    "workoutId": workout_id,
                    "bodyParts": body_parts if isinstance(body_parts, list) else [],
                    "workouts": workouts,
                    "createdAt": now,
                    "updatedAt": now,
                }
            )
        )

        return json_response(201, {"message": "Workout recorded successfully", "workoutId": workout_id}, METHODS)

    except ValidationError as e:
        return json_response(400, {"error": e.message}, METHODS)
    except Exception as e:
        return _failure("record workout", e)


def get_workouts_by_date(event, context):
    """GET /workouts: every workout logged on one day, oldest first."""
    if is_preflight(event):
        return options_response(METHODS)
    try:
        qs = query_params(event)
        user_id = qs.get("userId")
        date = qs.get("date")
        if not user_id or not date:
            raise ValidationError("Missing userId or date")
        if not is_valid_date(date):
            raise ValidationError("date must be YYYY-MM-DD")

        resp = aws.table(config.DAILY_LOGS_TABLE).query(
            KeyConditionExpression=Key("userId").eq(user_id) & Key("dateWorkoutId").begins_with(f"{date}#"),
            ScanIndexForward=True,
        )
        return json_response(200, {"date": date, "workouts": resp.get("Items", [])}, METHODS)

    except ValidationError as e:
        return json_response(400, {"error": e.message}, METHODS)
    except Exception as e:
        return _failure("fetch workouts", e)


def get_workout_dates_by_month(event, context):
    """GET /workouts/month: the distinct days in a month that have a workout."""
    if is_preflight(event):
        return options_response(METHODS)
    try:
        qs = query_params(event)
        user_id = qs.get("userId")
        month = qs.get("month")
        if not user_id or not month:
            raise ValidationError("Missing userId or month")
        if not is_valid_month(month):
            raise ValidationError("month must be YYYY-MM")

        resp = aws.table(config.DAILY_LOGS_TABLE).query(
            KeyConditionExpression=Key("userId").eq(user_id) & Key("dateWorkoutId").begins_with(f"{month}-"),
            ProjectionExpression="#d",
            ExpressionAttributeNames={"#d": "date"},
        )
        dates = sorted({it["date"] for it in resp.get("Items", []) if it.get("date")})
        return json_response(200, {"month": month, "datesWithWorkout": dates}, METHODS)

    except ValidationError as e:
        return json_response(400, {"error": e.message}, METHODS)
    except Exception as e:
        return _failure("fetch workout dates", e)


def update_workout(event, context):
    if is_preflight(event):
        return options_response(METHODS)
    try:
        body = parse_body(event)
        user_id, date, workout_id = _require_key_fields(body)
        body_parts = body.get("bodyParts")
        workouts = body.get("workouts")
        if not isinstance(body_parts, list) or not isinstance(workouts, list):
            raise ValidationError("Invalid bodyParts or workouts format")

        now = daily_record.iso_timestamp(daily_record.utc_now())

        try:
            aws.table(config.DAILY_LOGS_TABLE).update_item(
                Key={"userId": user_id, "dateWorkoutId": _sort_key(date, workout_id)},
                UpdateExpression="SET bodyParts = :bodyParts, workouts = :workouts, updatedAt = :updatedAt",
                ExpressionAttributeValues=aws.to_dynamo(
                    {":bodyParts": body_parts, ":workouts": workouts, ":updatedAt": now}
                ),
                ConditionExpression=Attr("dateWorkoutId").exists(),
            )
        except ClientError as e:
            if is_conditional_check_failed(e):
                return json_response(404, {"error": "Workout not found"}, METHODS)
            raise

        return json_response(200, {"message": "Workout updated successfully", "workoutId": workout_id}, METHODS)

    except ValidationError as e:
        return json_response(400, {"error": e.message}, METHODS)
    except Exception as e:
        return _failure("update workout", e)


def delete_workout(event, context):
    if is_preflight(event):
        return options_response(METHODS)
    try:
        body = parse_body(event)
        user_id, date, workout_id = _require_key_fields(body)

        try:
            aws.table(config.DAILY_LOGS_TABLE).delete_item(
                Key={"userId": user_id, "dateWorkoutId": _sort_key(date, workout_id)},
                ConditionExpression=Attr("dateWorkoutId").exists(),
            )
        except ClientError as e:
            if is_conditional_check_failed(e):
                return json_response(404, {"error": "Workout not found"}, METHODS)
            raise

        return json_response(200, {"message": "Workout deleted successfully", "workoutId": workout_id}, METHODS)

    except ValidationError as e:
        return json_response(400, {"error": e.message}, METHODS)
    except Exception as e:
        return _failure("delete workout", e)
