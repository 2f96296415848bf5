from conftest import api_event, response_json
from trainora import images


def test_create_upload_url(tables, monkeypatch):
    monkeypatch.setattr(images.time, "time", lambda: 1709296200.5)
    body = {"filename": "me.png", "contentType": "image/png"}
    resp = images.create_upload_url(api_event("POST", "/images/upload-url", body), None)

    assert resp["statusCode"] == 200
    data = response_json(resp)
    assert data["key"] == "users/1709296200500-me.png"
    assert data["url"].startswith("https://signed.example.com/users/1709296200500-me.png")

    method, params, expires = tables["s3"].calls[-1]
    assert method == "put_object"
    assert params == {"Bucket": "assets", "Key": "users/1709296200500-me.png", "ContentType": "image/png"}
    assert expires == 60


def test_create_upload_url_requires_filename_and_type(tables):
    resp = images.create_upload_url(api_event("POST", "/images/upload-url", {"filename": "me.png"}), None)
    assert resp["statusCode"] == 400
    assert response_json(resp) == {"error": "Missing contentType"}
    assert tables["s3"].calls == []


def test_object_url_round_trips_to_key(tables):
    url = images.object_url("users/1-my photo.png")
    assert url == "https://assets.s3.amazonaws.com/users/1-my photo.png"
    assert images.key_from_url("https://assets.s3.amazonaws.com/users/1-my%20photo.png") == "users/1-my photo.png"
    assert images.object_url(None) is None
