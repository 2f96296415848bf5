from decimal import Decimal

import boto3

from . import config

_dynamodb = None
_s3 = None
_tables = {}


def dynamodb():
    global _dynamodb
    if _dynamodb is None:
        _dynamodb = boto3.resource("dynamodb", region_name=config.AWS_REGION)
    return _dynamodb


def table(name: str):
    """Return the cached Table handle for ``name``, building it on first use."""
    if name not in _tables:
        _tables[name] = dynamodb().Table(name)
    return _tables[name]


def set_table(name: str, handle) -> None:
    _tables[name] = handle


def s3():
    global _s3
    if _s3 is None:
        _s3 = boto3.client("s3", region_name=config.AWS_REGION)
    return _s3


def set_s3_client(client) -> None:
    global _s3
    _s3 = client


def reset() -> None:
    global _dynamodb, _s3
    _dynamodb = None
    _s3 = None
    _tables.clear()


def to_dynamo(value):
    """Convert floats (at any depth) to Decimal so the resource layer accepts them."""
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: to_dynamo(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_dynamo(v) for v in value]
    return value
