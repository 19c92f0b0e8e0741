import io
import unittest
from datetime import datetime, timezone

from botocore.exceptions import ClientError, EndpointConnectionError

from s3nav.models import Credentials, ErrorKind
from s3nav.services import (
    ACCOUNT_ID_HINT,
    StorageGateway,
    TransferCancelledError,
    classify_error,
    endpoint_account_id,
    normalize_endpoint,
)

CREDENTIALS = Credentials(
    endpoint="example.com/",
    access_key_id="0123456789abcdef0123456789abcdef",
    secret_access_key="a" * 64,
)


class FakeBody:
    def __init__(self, data: bytes = b""):
        self.data = data
        self.closed = False

    def close(self):
        self.closed = True


class FakeS3Client:
    def __init__(
        self,
        buckets=None,
        object_response=None,
        list_error=None,
        upload_error=None,
        get_error=None,
        delete_error=None,
    ):
        self.buckets = buckets or []
        self.object_response = object_response or {}
        self.list_error = list_error
        self.upload_error = upload_error
        self.get_error = get_error
        self.delete_error = delete_error
        self.list_objects_kwargs = []
        self.upload_calls = []
        self.get_object_calls = []
        self.delete_object_calls = []

    def list_buckets(self):
        if self.list_error:
            raise self.list_error
        return {"Buckets": self.buckets}

    def list_objects_v2(self, **kwargs):
        self.list_objects_kwargs.append(kwargs)
        if self.list_error:
            raise self.list_error
        return self.object_response

    def upload_fileobj(self, Fileobj, Bucket, Key, ExtraArgs=None, Callback=None, Config=None):
        data = Fileobj.read()
        self.upload_calls.append({"bucket": Bucket, "key": Key, "data": data, "extra_args": ExtraArgs})
        if self.upload_error:
            raise self.upload_error
        if Callback:
            Callback(len(data))

    def get_object(self, **kwargs):
        self.get_object_calls.append(kwargs)
        if self.get_error:
            raise self.get_error
        return {"Body": FakeBody(b"payload"), "ContentLength": 7, "ContentType": "text/plain"}

    def delete_object(self, **kwargs):
        self.delete_object_calls.append(kwargs)
        if self.delete_error:
            raise self.delete_error


class RecordingFactory:
    def __init__(self, client):
        self.client = client
        self.calls = []

    def __call__(self, service_name, **kwargs):
        self.calls.append((service_name, kwargs))
        return self.client


def client_error(code, status, operation="ListObjectsV2"):
    return ClientError(
        {
            "Error": {"Code": code, "Message": code},
            "ResponseMetadata": {"HTTPStatusCode": status},
        },
        operation,
    )


class NormalizeEndpointTests(unittest.TestCase):
    def test_adds_scheme_and_strips_trailing_slash(self):
        self.assertEqual("https://example.com", normalize_endpoint("  example.com/  "))

    def test_keeps_existing_scheme(self):
        self.assertEqual("http://localhost:9000", normalize_endpoint("http://localhost:9000/"))

    def test_strips_only_one_trailing_slash(self):
        self.assertEqual("https://example.com/", normalize_endpoint("https://example.com//"))

    def test_normalized_values_are_stable(self):
        for endpoint in ("https://example.com", "http://127.0.0.1:9000", "https://acc.r2.cloudflarestorage.com"):
            with self.subTest(endpoint=endpoint):
                once = normalize_endpoint(endpoint)
                self.assertEqual(once, normalize_endpoint(once))

    def test_account_id_is_first_host_label(self):
        self.assertEqual("acc123", endpoint_account_id("acc123.r2.cloudflarestorage.com"))


class ClassifyErrorTests(unittest.TestCase):
    def test_auth_codes_and_statuses(self):
        self.assertEqual(ErrorKind.AUTH, classify_error(client_error("InvalidAccessKeyId", 403)))
        self.assertEqual(ErrorKind.AUTH, classify_error(client_error("Whatever", 401)))

    def test_not_found(self):
        self.assertEqual(ErrorKind.NOT_FOUND, classify_error(client_error("NoSuchBucket", 404)))

    def test_network_errors(self):
        self.assertEqual(
            ErrorKind.NETWORK, classify_error(EndpointConnectionError(endpoint_url="https://example.com"))
        )

    def test_local_io(self):
        self.assertEqual(ErrorKind.LOCAL_IO, classify_error(FileNotFoundError("missing")))


class StorageGatewayTests(unittest.TestCase):
    def test_client_uses_path_style_auto_region_and_normalized_endpoint(self):
        factory = RecordingFactory(FakeS3Client())
        gateway = StorageGateway(client_factory=factory)

        gateway.list_buckets(CREDENTIALS)

        service_name, kwargs = factory.calls[0]
        self.assertEqual("s3", service_name)
        self.assertEqual("https://example.com", kwargs["endpoint_url"])
        self.assertEqual("auto", kwargs["region_name"])
        self.assertEqual(CREDENTIALS.access_key_id, kwargs["aws_access_key_id"])
        self.assertEqual({"addressing_style": "path"}, kwargs["config"].s3)

    def test_list_buckets_returns_names_and_dates(self):
        created = datetime(2024, 1, 1, tzinfo=timezone.utc)
        client = FakeS3Client(buckets=[{"Name": "photos", "CreationDate": created}])
        gateway = StorageGateway(client_factory=RecordingFactory(client))

        result = gateway.list_buckets(CREDENTIALS)

        self.assertTrue(result.success)
        self.assertEqual("photos", result.buckets[0].name)
        self.assertEqual(created, result.buckets[0].creation_date)

    def test_list_objects_drops_directory_marker(self):
        modified = datetime(2024, 5, 1, tzinfo=timezone.utc)
        client = FakeS3Client(
            object_response={
                "Contents": [
                    {"Key": "docs/", "Size": 0, "LastModified": modified},
                    {"Key": "docs/a.txt", "Size": 5, "LastModified": modified},
                ],
                "CommonPrefixes": [{"Prefix": "docs/img/"}],
            }
        )
        gateway = StorageGateway(client_factory=RecordingFactory(client))

        result = gateway.list_objects(CREDENTIALS, "bucket", "docs/")

        self.assertTrue(result.success)
        self.assertEqual(["docs/a.txt"], [entry.key for entry in result.files])
        self.assertEqual(5, result.files[0].size)
        self.assertEqual(["docs/img/"], result.folders)
        self.assertEqual(
            {"Bucket": "bucket", "Delimiter": "/", "Prefix": "docs/"},
            client.list_objects_kwargs[0],
        )

    def test_list_objects_at_root_omits_prefix(self):
        client = FakeS3Client(object_response={"Contents": [{"Key": "a.txt", "Size": 1}]})
        gateway = StorageGateway(client_factory=RecordingFactory(client))

        result = gateway.list_objects(CREDENTIALS, "bucket")

        self.assertEqual(["a.txt"], [entry.key for entry in result.files])
        self.assertNotIn("Prefix", client.list_objects_kwargs[0])

    def test_failures_are_returned_not_raised(self):
        client = FakeS3Client(list_error=client_error("NoSuchBucket", 404))
        gateway = StorageGateway(client_factory=RecordingFactory(client))

        result = gateway.list_objects(CREDENTIALS, "missing", "")

        self.assertFalse(result.success)
        self.assertEqual(ErrorKind.NOT_FOUND, result.error_kind)
        self.assertIn("NoSuchBucket", result.error)
        self.assertEqual([], result.files)

    def test_client_construction_errors_are_returned(self):
        def broken_factory(*_args, **_kwargs):
            raise RuntimeError("boom")

        gateway = StorageGateway(client_factory=broken_factory)

        result = gateway.list_buckets(CREDENTIALS)

        self.assertFalse(result.success)
        self.assertEqual(ErrorKind.UNKNOWN, result.error_kind)
        self.assertEqual("boom", result.error)

    def test_auth_failure_hints_at_account_id_confusion(self):
        account_id = "5f00811ec43d757ac0f57e31019e1583"
        credentials = Credentials(
            endpoint=f"https://{account_id}.r2.cloudflarestorage.com",
            access_key_id=account_id,
            secret_access_key="b" * 64,
        )
        client = FakeS3Client(list_error=client_error("Unauthorized", 401, "ListBuckets"))
        gateway = StorageGateway(client_factory=RecordingFactory(client))

        result = gateway.list_buckets(credentials)

        self.assertEqual(ErrorKind.AUTH, result.error_kind)
        self.assertIn(ACCOUNT_ID_HINT, result.error)

    def test_auth_failure_without_confusable_key_has_no_hint(self):
        client = FakeS3Client(list_error=client_error("AccessDenied", 403, "ListBuckets"))
        gateway = StorageGateway(client_factory=RecordingFactory(client))

        result = gateway.list_buckets(CREDENTIALS)

        self.assertEqual(ErrorKind.AUTH, result.error_kind)
        self.assertNotIn(ACCOUNT_ID_HINT, result.error)

    def test_put_object_streams_with_content_type_and_reports_progress(self):
        client = FakeS3Client()
        gateway = StorageGateway(client_factory=RecordingFactory(client))
        progress = []

        result = gateway.put_object(
            CREDENTIALS,
            "bucket",
            "docs/notes.txt",
            io.BytesIO(b"hello"),
            "text/plain",
            progress_callback=progress.append,
        )

        self.assertTrue(result.success)
        self.assertEqual(b"hello", client.upload_calls[0]["data"])
        self.assertEqual({"ContentType": "text/plain"}, client.upload_calls[0]["extra_args"])
        self.assertEqual([5], progress)

    def test_put_object_cancellation_is_not_an_error(self):
        client = FakeS3Client()
        gateway = StorageGateway(client_factory=RecordingFactory(client))

        result = gateway.put_object(
            CREDENTIALS,
            "bucket",
            "a.bin",
            io.BytesIO(b"data"),
            cancel_requested=lambda: True,
        )

        self.assertFalse(result.success)
        self.assertTrue(result.canceled)
        self.assertIsNone(result.error)

    def test_put_object_failure(self):
        client = FakeS3Client(upload_error=EndpointConnectionError(endpoint_url="https://example.com"))
        gateway = StorageGateway(client_factory=RecordingFactory(client))

        result = gateway.put_object(CREDENTIALS, "bucket", "a.bin", io.BytesIO(b"data"))

        self.assertFalse(result.success)
        self.assertEqual(ErrorKind.NETWORK, result.error_kind)

    def test_get_object_returns_open_body(self):
        client = FakeS3Client()
        gateway = StorageGateway(client_factory=RecordingFactory(client))

        result = gateway.get_object(CREDENTIALS, "bucket", "a.txt")

        self.assertTrue(result.success)
        self.assertEqual(b"payload", result.body.data)
        self.assertFalse(result.body.closed)
        self.assertEqual(7, result.content_length)
        self.assertEqual({"Bucket": "bucket", "Key": "a.txt"}, client.get_object_calls[0])

    def test_delete_object(self):
        client = FakeS3Client()
        gateway = StorageGateway(client_factory=RecordingFactory(client))

        result = gateway.delete_object(CREDENTIALS, "bucket", "a.txt")

        self.assertTrue(result.success)
        self.assertEqual([{"Bucket": "bucket", "Key": "a.txt"}], client.delete_object_calls)

    def test_delete_object_failure(self):
        client = FakeS3Client(delete_error=client_error("AccessDenied", 403, "DeleteObject"))
        gateway = StorageGateway(client_factory=RecordingFactory(client))

        result = gateway.delete_object(CREDENTIALS, "bucket", "a.txt")

        self.assertFalse(result.success)
        self.assertEqual(ErrorKind.AUTH, result.error_kind)

    def test_transfer_cancelled_error_is_runtime_error(self):
        self.assertTrue(issubclass(TransferCancelledError, RuntimeError))


if __name__ == "__main__":
    unittest.main()
