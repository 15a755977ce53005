import pytest
from sqlalchemy.exc import SQLAlchemyError

from .conftest import client, db, create_request, png_file, TestingSessionLocal, app, get_db, override_get_db
from automud.routes import images as image_routes
from automud.errors import InvalidInput
from automud.services import images
from automud.services.images import IncomingImage, validate_image_upload


def upload(client, request_id, files):
    return client.post(
        f"/api/request/{request_id}/images",
        files=[("images", f) for f in files],
    )


def test_upload_then_list(client, blob_store):
    request_id = create_request()
    resp = upload(client, request_id, [png_file("front.png"), png_file("back.jpg", size=10)])
    assert resp.status_code == 201
    body = resp.json()
    assert body["success"] is True
    assert len(body["uploaded"]) == 2
    assert body["errors"] == []

    for item in body["uploaded"]:
        assert blob_store.object_path(f"{request_id}/{item['name']}").exists()
        assert item["url"] == f"/blobs/automud-images/{request_id}/{item['name']}"
    assert body["uploaded"][0]["name"].endswith(".png")
    assert body["uploaded"][0]["original_name"] == "front.png"

    listing = client.get(f"/api/request/{request_id}/images").json()
    assert listing["count"] == 2
    ids = [image["id"] for image in listing["images"]]
    assert ids == sorted(ids)


def test_upload_partial_failure(client):
    request_id = create_request()
    files = [
        png_file("one.png"),
        ("notes.txt", b"not an image", "text/plain"),
        png_file("three.png"),
    ]
    resp = upload(client, request_id, files)
    assert resp.status_code == 201
    body = resp.json()
    assert len(body["uploaded"]) == 2
    assert len(body["errors"]) == 1
    assert body["errors"][0]["index"] == 1
    assert body["errors"][0]["filename"] == "notes.txt"


def test_upload_all_failed(client, blob_store):
    request_id = create_request()
    blob_store.fail_put = True
    resp = upload(client, request_id, [png_file("a.png"), png_file("b.png")])
    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    assert len(body["errors"]) == 2
    assert client.get(f"/api/request/{request_id}/images").json()["count"] == 0


def test_upload_rejects_empty_and_oversized_batches(client):
    request_id = create_request()
    empty = client.post(f"/api/request/{request_id}/images")
    assert empty.status_code == 400
    assert empty.json()["error"]["code"] == "INVALID_INPUT"

    too_many = upload(client, request_id, [png_file(f"{i}.png") for i in range(images.MAX_IMAGES_PER_UPLOAD + 1)])
    assert too_many.status_code == 400

    unknown = upload(client, "no-such-request", [png_file()])
    assert unknown.status_code == 404


def test_empty_upload_touches_no_store(db, blob_store):
    with pytest.raises(InvalidInput):
        images.upload(db, blob_store, "no-such-request", [])
    assert blob_store.calls == 0


def test_delete_survives_blob_failure(client, blob_store):
    request_id = create_request()
    image = upload(client, request_id, [png_file()]).json()["uploaded"][0]

    blob_store.fail_delete = True
    resp = client.delete(f"/api/request/{request_id}/images/{image['id']}")
    assert resp.status_code == 200
    assert resp.json()["blob_deleted"] is False
    assert client.get(f"/api/request/{request_id}/images").json()["count"] == 0

    again = client.delete(f"/api/request/{request_id}/images/{image['id']}")
    assert again.status_code == 404


def test_delete_removes_blob(client, blob_store):
    request_id = create_request()
    image = upload(client, request_id, [png_file()]).json()["uploaded"][0]
    resp = client.delete(f"/api/request/{request_id}/images/{image['id']}")
    assert resp.status_code == 200
    assert resp.json()["blob_deleted"] is True
    assert not blob_store.object_path(f"{request_id}/{image['name']}").exists()


def test_delete_all_twice(client):
    request_id = create_request()
    upload(client, request_id, [png_file("a.png"), png_file("b.png")])

    first = client.delete(f"/api/request/{request_id}/images")
    assert first.status_code == 200
    assert first.json()["rows_deleted"] == 2
    assert first.json()["blobs_deleted"] == 2
    assert first.json()["errors"] == []

    second = client.delete(f"/api/request/{request_id}/images")
    assert second.status_code == 200
    assert second.json()["rows_deleted"] == 0
    assert second.json()["blobs_deleted"] == 0


def test_delete_all_collects_blob_errors(client, blob_store):
    request_id = create_request()
    upload(client, request_id, [png_file("a.png"), png_file("b.png")])
    blob_store.fail_delete = True
    resp = client.delete(f"/api/request/{request_id}/images")
    assert resp.status_code == 200
    body = resp.json()
    assert body["rows_deleted"] == 2
    assert body["blobs_deleted"] == 0
    assert len(body["errors"]) == 2

    assert client.delete("/api/request/no-such-request/images").status_code == 404


def test_replace_then_info(client, blob_store):
    request_id = create_request()
    image = upload(client, request_id, [png_file("old.png")]).json()["uploaded"][0]

    resp = client.put(
        f"/api/request/{request_id}/images/{image['id']}/replace",
        files={"image": ("new.webp", b"RIFF\x00\x00\x00\x00WEBP" + b"\x00" * 196, "image/webp")},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["old_name"] == image["name"]
    assert body["new_name"] != image["name"]
    assert body["new_name"].endswith(".webp")
    assert body["warnings"] == []
    assert not blob_store.object_path(f"{request_id}/{image['name']}").exists()
    assert blob_store.object_path(f"{request_id}/{body['new_name']}").exists()

    info = client.get(f"/api/request/{request_id}/images/{image['id']}/info")
    assert info.status_code == 200
    data = info.json()["image"]
    assert data["name"] == body["new_name"]
    assert data["blob_info"]["content_type"] == "image/webp"
    assert data["blob_info"]["size"] == 208


def test_replace_failures(client, blob_store):
    request_id = create_request()
    image = upload(client, request_id, [png_file("old.png")]).json()["uploaded"][0]
    url = f"/api/request/{request_id}/images/{image['id']}/replace"

    assert client.put(url).status_code == 400
    bad = client.put(url, files={"image": ("doc.pdf", b"%PDF", "application/pdf")})
    assert bad.status_code == 400
    missing = client.put(f"/api/request/{request_id}/images/999999/replace", files={"image": png_file()})
    assert missing.status_code == 404

    blob_store.fail_put = True
    failed = client.put(url, files={"image": png_file("next.png")})
    assert failed.status_code == 500
    assert failed.json()["error"]["code"] == "STORE_UNAVAILABLE"
    info = client.get(f"/api/request/{request_id}/images/{image['id']}/info").json()["image"]
    assert info["name"] == image["name"]


def test_replace_warns_when_old_blob_stays(client, blob_store):
    request_id = create_request()
    image = upload(client, request_id, [png_file("old.png")]).json()["uploaded"][0]
    blob_store.fail_delete = True
    resp = client.put(
        f"/api/request/{request_id}/images/{image['id']}/replace",
        files={"image": png_file("next.png")},
    )
    assert resp.status_code == 200
    assert len(resp.json()["warnings"]) == 1
    assert blob_store.object_path(f"{request_id}/{image['name']}").exists()


def test_info_without_blob_metadata(client, blob_store):
    request_id = create_request()
    image = upload(client, request_id, [png_file()]).json()["uploaded"][0]
    blob_store.fail_stat = True
    resp = client.get(f"/api/request/{request_id}/images/{image['id']}/info")
    assert resp.status_code == 200
    assert resp.json()["image"]["blob_info"] is None

    other = create_request()
    assert client.get(f"/api/request/{other}/images/{image['id']}/info").status_code == 404


def test_validate_image_upload(monkeypatch):
    validate_image_upload(IncomingImage("car.JPG", "image/jpeg", b"x" * 10))
    with pytest.raises(InvalidInput):
        validate_image_upload(IncomingImage("car.png", "text/plain", b"x"))
    with pytest.raises(InvalidInput):
        validate_image_upload(IncomingImage("car.exe", "image/png", b"x"))
    with pytest.raises(InvalidInput):
        validate_image_upload(IncomingImage("car.png", "image/png", b""))
    monkeypatch.setattr(images, "MAX_IMAGE_BYTES", 4)
    with pytest.raises(InvalidInput):
        validate_image_upload(IncomingImage("car.png", "image/png", b"x" * 5))


@pytest.fixture
def broken_commits(monkeypatch):
    """Return a switch that makes the request session fail on commit."""

    session = TestingSessionLocal()

    def failing_commit():
        raise SQLAlchemyError("database is locked")

    def install():
        monkeypatch.setattr(session, "commit", failing_commit)
        app.dependency_overrides[get_db] = lambda: session

    yield install
    app.dependency_overrides[get_db] = override_get_db
    session.close()


def stored_files(blob_store, request_id):
    folder = blob_store.object_path(f"{request_id}/x").parent
    if not folder.exists():
        return []
    return sorted(p.name for p in folder.iterdir() if not p.name.endswith(".meta.json"))


def test_upload_row_failure_leaves_orphan_blob(client, blob_store, broken_commits):
    request_id = create_request()
    broken_commits()
    resp = upload(client, request_id, [png_file("front.png")])
    assert resp.status_code == 500
    assert resp.json()["error"]["code"] == "STORE_UNAVAILABLE"

    app.dependency_overrides[get_db] = override_get_db
    assert client.get(f"/api/request/{request_id}/images").json()["count"] == 0
    assert len(stored_files(blob_store, request_id)) == 1


def test_replace_row_failure_keeps_old_image(client, blob_store, broken_commits):
    request_id = create_request()
    image = upload(client, request_id, [png_file("old.png")]).json()["uploaded"][0]

    broken_commits()
    resp = client.put(
        f"/api/request/{request_id}/images/{image['id']}/replace",
        files={"image": png_file("next.png")},
    )
    assert resp.status_code == 500
    assert resp.json()["error"]["code"] == "STORE_UNAVAILABLE"

    app.dependency_overrides[get_db] = override_get_db
    info = client.get(f"/api/request/{request_id}/images/{image['id']}/info").json()["image"]
    assert info["name"] == image["name"]
    assert blob_store.object_path(f"{request_id}/{image['name']}").exists()
    files = stored_files(blob_store, request_id)
    assert len(files) == 2
    assert image["name"] in files


def test_batch_size_checked_before_reading(client, monkeypatch):
    request_id = create_request()
    reads = []
    real_incoming = image_routes._incoming

    async def counting_incoming(upload_file):
        reads.append(upload_file.filename)
        return await real_incoming(upload_file)

    monkeypatch.setattr(images, "MAX_IMAGES_PER_UPLOAD", 2)
    monkeypatch.setattr(image_routes, "_incoming", counting_incoming)
    resp = upload(client, request_id, [png_file(f"{i}.png") for i in range(3)])
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "INVALID_INPUT"
    assert reads == []

    ok = upload(client, request_id, [png_file("a.png"), png_file("b.png")])
    assert ok.status_code == 201
    assert reads == ["a.png", "b.png"]
