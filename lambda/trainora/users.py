import logging

from boto3.dynamodb.conditions import Key

from . import aws, config, daily_record, images, nutrition
from .daily_record import RecordOutcome, record_daily_weight
from .errors import ValidationError
from .responses import (
    is_preflight,
    json_response,
    options_response,
    parse_body,
    query_params,
)

logger = logging.getLogger(__name__)

USER_FIELDS = (
    "userId",
    "name",
    "dateOfBirth",
    "gender",
    "height",
    "activity",
    "goal",
    "summary",
    "createdAt",
    "updatedAt",
)


def _object(body: dict, field: str) -> dict:
    value = body.get(field)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValidationError(f"{field} must be an object")
    return value


def _given(body: dict, field: str, prev: dict):
    value = body.get(field)
    return value if value is not None else prev.get(field)


def _latest(table_name: str, user_id: str):
    resp = aws.table(table_name).query(
        KeyConditionExpression=Key("userId").eq(user_id),
        ScanIndexForward=False,
        Limit=1,
    )
    items = resp.get("Items", [])
    return items[0] if items else None


def _record_weight_quietly(user_id: str, weight: float, now) -> None:
    result = record_daily_weight(
        aws.table(config.WEIGHT_HISTORY_TABLE),
        user_id,
        weight,
        now=lambda: now,
    )
    if result is RecordOutcome.ALREADY_EXISTS:
        logger.info("Weight already recorded today for user %s, skipping", user_id)


def _put_goal_history(user_id: str, goal: dict, changed_at: str) -> None:
    aws.table(config.GOAL_HISTORY_TABLE).put_item(
        Item=aws.to_dynamo({**goal, "userId": user_id, "changedAt": changed_at})
    )


def create_user_profile(event, context):
    """POST /users: store a new profile, its first weight and its first goal."""
    if is_preflight(event):
        return options_response("POST,OPTIONS")
    try:
        body = parse_body(event)
        user_id = body.get("userId")
        if not isinstance(user_id, str) or not user_id:
            return json_response(400, {"error": "Missing userId"}, "POST,OPTIONS")

        profile = _object(body, "profile")
        activity = _object(body, "activity")
        goal = _object(body, "goal")
        date_of_birth = body.get("dateOfBirth")

        ts = daily_record.utc_now()
        now = daily_record.iso_timestamp(ts)

        height = nutrition.to_number(profile.get("height"), "height")
        weight = nutrition.to_number(profile.get("weight"), "weight")
        gender = profile.get("gender")

        summary = nutrition.summarize(
            gender, weight, height, date_of_birth, activity, goal.get("goalType"), today=ts.date()
        )

        aws.table(config.USERS_TABLE).put_item(
            Item=aws.to_dynamo(
                {
                    "userId": user_id,
                    "name": body.get("name"),
                    "dateOfBirth": date_of_birth,
                    "height": height,
                    "gender": gender,
                    "profile": {"imageUrl": images.object_url(profile.get("imageKey"))},
                    "activity": activity,
                    "goal": goal,
                    "summary": summary,
                    "createdAt": now,
                    "updatedAt": now,
                }
            )
        )

        _record_weight_quietly(user_id, weight, ts)

        if goal:
            _put_goal_history(user_id, goal, now)

        return json_response(
            200, {"message": "User profile created successfully", "summary": summary}, "POST,OPTIONS"
        )

    except ValidationError as e:
        return json_response(400, {"error": e.message}, "POST,OPTIONS")
    except Exception as e:
        logger.exception("create-user-profile error")
        return json_response(500, {"error": str(e)}, "POST,OPTIONS")


def get_user_profile(event, context):
    """GET /users: profile with a signed image URL, latest weight and latest goal."""
    if is_preflight(event):
        return options_response("GET,OPTIONS")
    try:
        user_id = query_params(event).get("userId")
        if not isinstance(user_id, str) or not user_id:
            return json_response(400, {"error": "Missing userId"}, "GET,OPTIONS")

        item = aws.table(config.USERS_TABLE).get_item(Key={"userId": user_id}).get("Item")
        if not item:
            return json_response(404, {"error": "User not found"}, "GET,OPTIONS")

        profile = item.get("profile") or {}
        signed_image_url = None
        if profile.get("imageUrl"):
            try:
                signed_image_url = images.signed_get_url(profile["imageUrl"])
            except Exception:
                logger.exception("Failed to generate signed URL for user %s", user_id)

        user = {field: item.get(field) for field in USER_FIELDS}
        user["profile"] = {**profile, "signedImageUrl": signed_image_url}

        return json_response(
            200,
            {
                "user": user,
                "latestWeight": _latest(config.WEIGHT_HISTORY_TABLE, user_id),
                "latestGoal": _latest(config.GOAL_HISTORY_TABLE, user_id),
            },
            "GET,OPTIONS",
        )

    except Exception as e:
        logger.exception("get-user-profile error")
        return json_response(500, {"error": str(e)}, "GET,OPTIONS")


def update_user_profile(event, context):
    """PUT /users: merge changes over the stored profile and recompute the summary.

    A weight in the request is logged for today through the once-per-day
    writer; if today is already logged the update goes ahead regardless.
    Goal history gets a new entry only when the goal type changes.
    """
    if is_preflight(event):
        return options_response("PUT,OPTIONS")
    try:
        body = parse_body(event)
        user_id = body.get("userId")
        if not isinstance(user_id, str) or not user_id:
            return json_response(400, {"error": "Missing userId"}, "PUT,OPTIONS")

        profile = _object(body, "profile")
        activity = _object(body, "activity")
        goal = _object(body, "goal")

        prev = aws.table(config.USERS_TABLE).get_item(Key={"userId": user_id}).get("Item")
        if not prev:
            return json_response(404, {"error": "User not found"}, "PUT,OPTIONS")

        ts = daily_record.utc_now()
        now = daily_record.iso_timestamp(ts)

        prev_profile = prev.get("profile") or {}
        merged_profile = {**prev_profile, **profile}
        merged_activity = activity if body.get("activity") is not None else prev.get("activity") or {}
        merged_goal = goal if body.get("goal") is not None else prev.get("goal") or {}
        birth_date = _given(body, "dateOfBirth", prev)

        if merged_profile.get("imageKey"):
            image_url = images.object_url(merged_profile["imageKey"])
        else:
            image_url = prev_profile.get("imageUrl")

        height = merged_profile.get("height", prev.get("height"))
        gender = merged_profile.get("gender", prev.get("gender"))

        new_weight = profile.get("weight")
        if new_weight is not None:
            weight = nutrition.to_number(new_weight, "weight")
        else:
            weight = merged_profile.get("weight")
            if weight is None:
                latest = _latest(config.WEIGHT_HISTORY_TABLE, user_id)
                weight = latest.get("weight") if latest else None

        summary = nutrition.summarize(
            gender, weight, height, birth_date, merged_activity, merged_goal.get("goalType"), today=ts.date()
        )

        if new_weight is not None:
            _record_weight_quietly(user_id, weight, ts)

        aws.table(config.USERS_TABLE).update_item(
            Key={"userId": user_id},
            UpdateExpression=(
                "SET #name = :name, #dob = :dob, #profile = :profile, #gender = :gender, "
                "#height = :height, #activity = :activity, #goal = :goal, #summary = :summary, "
                "#updatedAt = :updatedAt"
            ),
            ExpressionAttributeNames={
                "#name": "name",
                "#dob": "dateOfBirth",
                "#profile": "profile",
                "#gender": "gender",
                "#height": "height",
                "#activity": "activity",
                "#goal": "goal",
                "#summary": "summary",
                "#updatedAt": "updatedAt",
            },
            ExpressionAttributeValues=aws.to_dynamo(
                {
                    ":name": _given(body, "name", prev),
                    ":dob": birth_date,
                    ":profile": {**merged_profile, "imageUrl": image_url},
                    ":gender": gender,
                    ":height": nutrition.to_number(height, "height"),
                    ":activity": merged_activity,
                    ":goal": merged_goal,
                    ":summary": summary,
                    ":updatedAt": now,
                }
            ),
        )

        prev_goal = prev.get("goal") or {}
        if merged_goal.get("goalType") != prev_goal.get("goalType"):
            _put_goal_history(user_id, merged_goal, now)

        return json_response(
            200, {"message": "User profile updated successfully", "summary": summary}, "PUT,OPTIONS"
        )

    except ValidationError as e:
        return json_response(400, {"error": e.message}, "PUT,OPTIONS")
    except Exception as e:
        logger.exception("update-user-profile error")
        return json_response(500, {"error": str(e)}, "PUT,OPTIONS")
