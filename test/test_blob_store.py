from unittest.mock import Mock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from storage.blob_store import S3BlobStore, document_key, parse_s3_url
from core.errors import AdapterFailure, ValidationFailure


@pytest.fixture
def s3():
    client = Mock()
    client.generate_presigned_url.return_value = "https://docs.s3.amazonaws.com/documents/x.pdf?X-Amz-Signature=abc"
    return client


def test_store_uploads_and_returns_reference(s3):
    store = S3BlobStore("portal-docs", client=s3)

    url = store.store(b"%PDF-1.4", "../Enrollment Form.pdf", content_type="application/pdf")

    assert url.startswith("s3://portal-docs/documents/")
    assert url.endswith("_Enrollment_Form.pdf")
    args, kwargs = s3.upload_fileobj.call_args
    assert args[1] == "portal-docs"
    assert args[2] == url[len("s3://portal-docs/"):]
    assert kwargs["ExtraArgs"] == {"ContentType": "application/pdf"}


def test_store_wraps_client_errors(s3):
    s3.upload_fileobj.side_effect = ClientError(
        {"Error": {"Code": "500", "Message": "InternalError"}}, "PutObject"
    )
    store = S3BlobStore("portal-docs", client=s3)

    with pytest.raises(AdapterFailure):
        store.store(b"%PDF-1.4", "memo.pdf")


def test_store_wraps_connection_errors(s3):
    s3.upload_fileobj.side_effect = EndpointConnectionError(endpoint_url="http://minio:9000")
    store = S3BlobStore("portal-docs", client=s3)

    with pytest.raises(AdapterFailure):
        store.store(b"%PDF-1.4", "memo.pdf")


def test_missing_bucket_is_created_once(s3):
    s3.head_bucket.side_effect = ClientError({"Error": {"Code": "404", "Message": "Not Found"}}, "HeadBucket")
    store = S3BlobStore("portal-docs", client=s3)

    store.store(b"a", "a.pdf")
    store.store(b"b", "b.pdf")

    s3.create_bucket.assert_called_once_with(Bucket="portal-docs")


def test_presigned_url_for_stored_reference(s3):
    store = S3BlobStore("portal-docs", client=s3)

    url = store.presigned_url("s3://portal-docs/documents/1_memo.pdf", expires_in=600)

    assert url.startswith("https://")
    s3.generate_presigned_url.assert_called_once_with(
        "get_object",
        Params={"Bucket": "portal-docs", "Key": "documents/1_memo.pdf"},
        ExpiresIn=600,
    )


def test_parse_s3_url_rejects_other_schemes():
    assert parse_s3_url("s3://b/documents/k.pdf") == ("b", "documents/k.pdf")
    with pytest.raises(ValidationFailure):
        parse_s3_url("https://example.com/k.pdf")
    with pytest.raises(ValidationFailure):
        parse_s3_url("s3://bucket-only")


def test_document_key_sanitizes_name():
    key = document_key("C:\\Users\\me\\mid year memo.pdf")
    assert key.startswith("documents/")
    assert key.endswith("_mid_year_memo.pdf")
