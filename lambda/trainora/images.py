import logging
import time
from urllib.parse import unquote, urlparse

from . import aws, config
from .errors import ValidationError
from .responses import is_preflight, json_response, options_response, parse_body

logger = logging.getLogger(__name__)


def object_url(key):
    if not key:
        return None
    return f"https://{config.ASSETS_BUCKET}.s3.amazonaws.com/{key}"


def key_from_url(url: str) -> str:
    return unquote(urlparse(url).path[1:])


def signed_get_url(image_url: str) -> str:
    return aws.s3().generate_presigned_url(
        "get_object",
        Params={"Bucket": config.ASSETS_BUCKET, "Key": key_from_url(image_url)},
        ExpiresIn=config.IMAGE_URL_EXPIRES,
    )


def create_upload_url(event, context):
    """POST /images/upload-url: a short-lived presigned PUT for a profile image."""
    if is_preflight(event):
        return options_response("POST,OPTIONS")
    try:
        body = parse_body(event)
        filename = body.get("filename")
        content_type = body.get("contentType")
        if not isinstance(filename, str) or not filename:
            raise ValidationError("Missing filename")
        if not isinstance(content_type, str) or not content_type:
            raise ValidationError("Missing contentType")

        key = f"users/{int(time.time() * 1000)}-{filename}"
        url = aws.s3().generate_presigned_url(
            "put_object",
            Params={"Bucket": config.ASSETS_BUCKET, "Key": key, "ContentType": content_type},
            ExpiresIn=config.UPLOAD_URL_EXPIRES,
        )
        return json_response(200, {"url": url, "key": key}, "POST,OPTIONS")

    except ValidationError as e:
        return json_response(400, {"error": e.message}, "POST,OPTIONS")
    except Exception as e:
        logger.exception("create-upload-url error")
        return json_response(500, {"error": str(e)}, "POST,OPTIONS")
