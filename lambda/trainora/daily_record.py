"""Once-per-day weight records.

A record is keyed on ``(userId, date)`` and is written at most once. The
guard is a single conditional put against the weight history table, so two
concurrent submissions for the same day cannot both succeed: DynamoDB
rejects the loser with ``ConditionalCheckFailedException`` and the first
record stands untouched.

Nothing here logs. Callers decide what an ``ALREADY_EXISTS`` outcome means
for them.
"""

import math
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from botocore.exceptions import ClientError

from .errors import ValidationError, is_conditional_check_failed


class RecordOutcome(str, Enum):
    RECORDED = "RECORDED"
    ALREADY_EXISTS = "ALREADY_EXISTS"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(ts: datetime) -> datetime:
    # naive datetimes are taken to already be UTC
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def iso_timestamp(ts: datetime) -> str:
    return _as_utc(ts).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def utc_date_str(ts: datetime) -> str:
    return _as_utc(ts).date().isoformat()


def is_finite_number(value) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, Decimal):
        return value.is_finite()
    if isinstance(value, (int, float)):
        try:
            return math.isfinite(value)
        except OverflowError:
            return False
    return False


def record_daily_weight(table, user_id, weight, date=None, now=None) -> RecordOutcome:
    """Create the weight record for ``(user_id, date)`` unless one exists.

    ``table`` is a DynamoDB Table (or anything with the same ``put_item``).
    ``date`` defaults to the current UTC calendar day taken from ``now``,
    a zero-argument callable returning a datetime.

    Returns ``RecordOutcome.RECORDED`` when the record was created and
    ``RecordOutcome.ALREADY_EXISTS`` when the day was already recorded.
    Raises ``ValidationError`` for bad input without touching the table.
    Any other store error propagates unchanged.
    """
    if not isinstance(user_id, str) or not user_id:
        raise ValidationError("userId is required")
    if not is_finite_number(weight):
        raise ValidationError("weight must be a valid number")
    if date is not None and (not isinstance(date, str) or not date):
        raise ValidationError("date must be a YYYY-MM-DD string")

    ts = (now or utc_now)()
    day = date if date is not None else utc_date_str(ts)

    try:
        table.put_item(
            Item={
                "userId": user_id,
                "date": day,
                "weight": Decimal(str(weight)),
                "createdAt": iso_timestamp(ts),
            },
            ConditionExpression="attribute_not_exists(#date)",
            ExpressionAttributeNames={"#date": "date"},
        )
    except ClientError as e:
        if is_conditional_check_failed(e):
            return RecordOutcome.ALREADY_EXISTS
        raise

    return RecordOutcome.RECORDED
