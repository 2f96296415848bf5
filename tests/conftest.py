import copy
import json
import re
import threading
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from boto3.dynamodb.conditions import ConditionBase
from botocore.exceptions import ClientError

from trainora import aws, config, daily_record

FIXED_NOW = datetime(2024, 3, 1, 12, 30, 0, tzinfo=timezone.utc)


def conditional_check_failed(operation="PutItem"):
    return ClientError(
        {"Error": {"Code": "ConditionalCheckFailedException", "Message": "The conditional request failed"}},
        operation,
    )


def _reject_floats(value):
    if isinstance(value, float):
        raise TypeError("Float types are not supported. Use Decimal types instead.")
    if isinstance(value, dict):
        for v in value.values():
            _reject_floats(v)
    if isinstance(value, list):
        for v in value:
            _reject_floats(v)


class FakeTable:
    """In-memory stand-in for a boto3 DynamoDB Table.

    Conditional writes are checked and applied under one lock, the way
    DynamoDB applies them atomically per item.
    """

    def __init__(self, name, hash_key, range_key=None):
        self.name = name
        self.hash_key = hash_key
        self.range_key = range_key
        self.items = {}
        self.calls = []
        self.fail_with = None
        self._lock = threading.Lock()

    def _key(self, item):
        if self.range_key:
            return (item[self.hash_key], item[self.range_key])
        return (item[self.hash_key],)

    def _record(self, op, kwargs):
        self.calls.append((op, kwargs))
        if self.fail_with is not None:
            raise self.fail_with

    def _check(self, condition, existing, names, operation):
        if condition is None:
            return
        if isinstance(condition, ConditionBase):
            expr = condition.get_expression()
            attr = expr["values"][0].name
            op = expr["operator"]
        else:
            m = re.fullmatch(r"(attribute_exists|attribute_not_exists)\((#?\w+)\)", condition.strip())
            op, attr = m.group(1), m.group(2)
            attr = (names or {}).get(attr, attr)
        present = existing is not None and attr in existing
        if (op == "attribute_exists") != present:
            raise conditional_check_failed(operation)

    def put_item(self, Item, ConditionExpression=None, ExpressionAttributeNames=None):
        self._record("put_item", {"Item": Item, "ConditionExpression": ConditionExpression})
        _reject_floats(Item)
        with self._lock:
            key = self._key(Item)
            self._check(ConditionExpression, self.items.get(key), ExpressionAttributeNames, "PutItem")
            self.items[key] = copy.deepcopy(Item)
        return {}

    def get_item(self, Key):
        self._record("get_item", {"Key": Key})
        item = self.items.get(self._key(Key))
        return {"Item": copy.deepcopy(item)} if item is not None else {}

    def update_item(self, Key, UpdateExpression, ExpressionAttributeValues,
                    ExpressionAttributeNames=None, ConditionExpression=None):
        self._record("update_item", {"Key": Key, "UpdateExpression": UpdateExpression})
        _reject_floats(ExpressionAttributeValues)
        names = ExpressionAttributeNames or {}
        assignments = UpdateExpression.strip()
        assert assignments.startswith("SET ")
        with self._lock:
            key = self._key(Key)
            existing = self.items.get(key)
            self._check(ConditionExpression, existing, names, "UpdateItem")
            item = copy.deepcopy(existing) if existing is not None else dict(Key)
            for part in assignments[4:].split(","):
                attr, placeholder = (s.strip() for s in part.split("="))
                item[names.get(attr, attr)] = copy.deepcopy(ExpressionAttributeValues[placeholder])
            self.items[key] = item
        return {}

    def delete_item(self, Key, ConditionExpression=None):
        self._record("delete_item", {"Key": Key})
        with self._lock:
            key = self._key(Key)
            self._check(ConditionExpression, self.items.get(key), None, "DeleteItem")
            self.items.pop(key, None)
        return {}

    def _matches(self, condition, item):
        expr = condition.get_expression()
        op = expr["operator"]
        values = expr["values"]
        if op == "AND":
            return all(self._matches(c, item) for c in values)
        value = item.get(values[0].name)
        if op == "=":
            return value == values[1]
        if op == "begins_with":
            return isinstance(value, str) and value.startswith(values[1])
        if op == "BETWEEN":
            return value is not None and values[1] <= value <= values[2]
        raise AssertionError(f"unsupported key condition {op}")

    def query(self, KeyConditionExpression, ScanIndexForward=True, Limit=None,
              ProjectionExpression=None, ExpressionAttributeNames=None):
        self._record("query", {"KeyConditionExpression": KeyConditionExpression})
        found = [copy.deepcopy(it) for it in self.items.values() if self._matches(KeyConditionExpression, it)]
        if self.range_key:
            found.sort(key=lambda it: it[self.range_key], reverse=not ScanIndexForward)
        if Limit is not None:
            found = found[:Limit]
        if ProjectionExpression:
            names = ExpressionAttributeNames or {}
            attrs = [names.get(a.strip(), a.strip()) for a in ProjectionExpression.split(",")]
            found = [{a: it[a] for a in attrs if a in it} for it in found]
        return {"Items": found, "Count": len(found)}

    def count(self, op):
        return sum(1 for name, _ in self.calls if name == op)


class FakeS3:
    def __init__(self):
        self.calls = []
        self.fail_with = None

    def generate_presigned_url(self, ClientMethod, Params=None, ExpiresIn=3600):
        self.calls.append((ClientMethod, Params, ExpiresIn))
        if self.fail_with is not None:
            raise self.fail_with
        return f"https://signed.example.com/{Params['Key']}?op={ClientMethod}&expires={ExpiresIn}"


@pytest.fixture
def tables(monkeypatch):
    monkeypatch.setattr(config, "USERS_TABLE", "users")
    monkeypatch.setattr(config, "WEIGHT_HISTORY_TABLE", "weight-history")
    monkeypatch.setattr(config, "GOAL_HISTORY_TABLE", "goal-history")
    monkeypatch.setattr(config, "DAILY_LOGS_TABLE", "daily-logs")
    monkeypatch.setattr(config, "ASSETS_BUCKET", "assets")

    aws.reset()
    fakes = {
        "users": FakeTable("users", "userId"),
        "weights": FakeTable("weight-history", "userId", "date"),
        "goals": FakeTable("goal-history", "userId", "changedAt"),
        "logs": FakeTable("daily-logs", "userId", "dateWorkoutId"),
    }
    for fake in fakes.values():
        aws.set_table(fake.name, fake)
    fakes["s3"] = FakeS3()
    aws.set_s3_client(fakes["s3"])

    yield fakes
    aws.reset()


@pytest.fixture
def fixed_now(monkeypatch):
    monkeypatch.setattr(daily_record, "utc_now", lambda: FIXED_NOW)
    return FIXED_NOW


def api_event(method, path="/", body=None, query=None):
    event = {
        "httpMethod": method,
        "path": path,
        "queryStringParameters": query,
        "body": json.dumps(body, default=str) if body is not None else None,
    }
    return event


def response_json(resp):
    return json.loads(resp["body"]) if resp["body"] else None


def dec(value):
    return Decimal(str(value))
