"""
Tests for the S3 storage adapter.
"""
from datetime import datetime, timezone
from unittest.mock import patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from backend.core.config import settings
from backend.core.exceptions import ValidationError
from backend.services.storage import S3Storage, StorageError, UploadedFile, build_object_key, public_url

pytestmark = pytest.mark.asyncio


def upload(name: str = "report.pdf", content: bytes = b"%PDF-1.4 body") -> UploadedFile:
    return UploadedFile(filename=name, content=content, content_type="application/pdf")


class TestObjectKeys:
    async def test_key_layout(self):
        key = build_object_key("cvs", "My CV (final).pdf", now=datetime(2024, 5, 6, 7, 8, 9, tzinfo=timezone.utc))

        folder, name = key.split("/", 1)
        timestamp, token, safe_name = name.split("_", 2)
        assert folder == "cvs"
        assert timestamp == "20240506070809"
        assert len(token) == 8
        assert safe_name == "My_CV_final_.pdf"

    async def test_path_components_dropped(self):
        key = build_object_key("proposals", "../../etc/passwd")

        assert key.startswith("proposals/")
        assert key.endswith("_passwd")

    async def test_public_base_url_wins(self):
        with patch.object(settings, "s3_public_base_url", "https://cdn.example.org/"):
            assert public_url("proposals/a.pdf") == "https://cdn.example.org/proposals/a.pdf"


class TestUpload:
    async def test_puts_object_with_content_type(self, storage, s3_client):
        url = await storage.upload(upload(), "proposals")

        kwargs = s3_client.put_object.call_args.kwargs
        assert kwargs["Bucket"] == "test-bucket"
        assert kwargs["Key"].startswith("proposals/")
        assert kwargs["ContentType"] == "application/pdf"
        assert url.endswith(kwargs["Key"])

    async def test_url_points_at_the_bucket_written(self, s3_client):
        storage = S3Storage(client=s3_client, bucket="other-bucket")

        with patch.object(settings, "s3_public_base_url", None), patch.object(settings, "s3_endpoint_url", None):
            url = await storage.upload(upload(), "proposals")

        assert s3_client.put_object.call_args.kwargs["Bucket"] == "other-bucket"
        assert url.startswith("https://other-bucket.s3.")

    async def test_endpoint_url_includes_instance_bucket(self, s3_client):
        storage = S3Storage(client=s3_client, bucket="other-bucket")

        with patch.object(settings, "s3_public_base_url", None), patch.object(
            settings, "s3_endpoint_url", "http://minio:9000"
        ):
            url = await storage.upload(upload(), "cvs")

        assert url.startswith("http://minio:9000/other-bucket/cvs/")

    async def test_empty_file(self, storage, s3_client):
        with pytest.raises(ValidationError):
            await storage.upload(upload(content=b""), "proposals")
        s3_client.put_object.assert_not_called()

    async def test_size_limit(self, storage, s3_client):
        with patch.object(settings, "max_upload_size_mb", 1):
            with pytest.raises(ValidationError) as exc_info:
                await storage.upload(upload(content=b"x" * (1024 * 1024 + 1)), "proposals")

        assert "1 MB" in exc_info.value.detail
        s3_client.put_object.assert_not_called()

    async def test_rejected_upload(self, storage, s3_client):
        s3_client.put_object.side_effect = ClientError({"Error": {"Code": "NoSuchBucket"}}, "PutObject")

        with pytest.raises(StorageError):
            await storage.upload(upload(), "proposals")
        assert s3_client.put_object.call_count == 1

    async def test_transient_failure_retried(self, storage, s3_client):
        s3_client.put_object.side_effect = [EndpointConnectionError(endpoint_url="https://s3.test"), None]

        url = await storage.upload(upload(), "additional")

        assert "/additional/" in url
        assert s3_client.put_object.call_count == 2
