import boto3
from botocore.stub import Stubber
import pytest

from compressor_service.errors import StoreError
from compressor_service.sinks import LocalDirectorySink, ObjectStoreSink

ENDPOINT = "https://account.r2.example.com"


@pytest.fixture
def s3_client():
    return boto3.client(
        "s3",
        endpoint_url=ENDPOINT,
        region_name="us-east-1",
        aws_access_key_id="test",
        aws_secret_access_key="test",
    )


def test_local_sink_writes_and_returns_public_path(tmp_path):
    sink = LocalDirectorySink(tmp_path / "out")
    locator = sink.store("photo.webp", b"data", "image/webp")
    assert locator == "/compressed_images/photo.webp"
    assert (tmp_path / "out" / "photo.webp").read_bytes() == b"data"


def test_local_sink_overwrites_without_leftovers(tmp_path):
    sink = LocalDirectorySink(tmp_path, public_prefix="static/")
    sink.store("a.webp", b"first")
    assert sink.store("a.webp", b"second") == "/static/a.webp"
    assert (tmp_path / "a.webp").read_bytes() == b"second"
    assert sorted(p.name for p in tmp_path.iterdir()) == ["a.webp"]


def test_local_sink_strips_directories(tmp_path):
    sink = LocalDirectorySink(tmp_path / "out")
    sink.store("../escape.webp", b"x")
    assert (tmp_path / "out" / "escape.webp").exists()
    assert not (tmp_path / "escape.webp").exists()


def test_local_sink_failure_is_store_error(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_bytes(b"")
    with pytest.raises(StoreError):
        LocalDirectorySink(blocker).store("a.webp", b"x")


def test_object_store_upload_path_style_url(s3_client):
    sink = ObjectStoreSink(s3_client, bucket="images")
    with Stubber(s3_client) as stubber:
        stubber.add_response(
            "put_object",
            {},
            expected_params={
                "Bucket": "images",
                "Key": "compressed_a.jpg",
                "Body": b"jpeg",
                "ContentType": "image/jpeg",
            },
        )
        locator = sink.store("compressed_a.jpg", b"jpeg", "image/jpeg")
        stubber.assert_no_pending_responses()
    assert locator == f"{ENDPOINT}/images/compressed_a.jpg"


def test_object_store_public_base_url_and_prefix(s3_client):
    sink = ObjectStoreSink(s3_client, bucket="images", public_base_url="https://cdn.example.com/", key_prefix="/web/")
    with Stubber(s3_client) as stubber:
        stubber.add_response("put_object", {})
        locator = sink.store("a b.jpg", b"jpeg", "image/jpeg")
    assert locator == "https://cdn.example.com/web/a%20b.jpg"


def test_object_store_client_error_is_store_error(s3_client):
    sink = ObjectStoreSink(s3_client, bucket="images")
    with Stubber(s3_client) as stubber:
        stubber.add_client_error("put_object", service_error_code="AccessDenied", http_status_code=403)
        with pytest.raises(StoreError):
            sink.store("a.jpg", b"jpeg", "image/jpeg")
