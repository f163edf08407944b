import os
import tempfile
import unittest

from requests.exceptions import ConnectionError as RequestsConnectionError
from swiftclient.exceptions import ClientException

from cdn_storage.cloudfiles import RACKSPACE_AUTH_URL, RackspaceAdapter, cdn_management_url
from cdn_storage.errors import (
    AlreadyExistsError,
    ConfigurationError,
    ConsistencyTimeoutError,
    NotFoundError,
    VendorError,
)
from cdn_storage.settings import CDNSettings

STORAGE_URL = "https://storage101.dfw1.clouddrive.com/v1/MossoCloudFS_abc"
CREDENTIALS = {"rackspace_username": "jason", "rackspace_api_key": "api-key"}


def not_found(message="Not Found"):
    return ClientException(message, http_status=404)


class FakeSwiftConnection:
    def __init__(self, containers=None, objects=None, visibility_delay=0):
        self.containers = containers or {}
        self.objects = objects or {}
        self.visibility_delay = visibility_delay
        self.hidden = {}
        self.get_auth_calls = 0
        self.get_account_calls = 0
        self.head_container_calls = []
        self.put_container_calls = []
        self.delete_container_calls = []
        self.put_object_calls = []
        self.delete_object_calls = []
        self.errors = {}

    def get_auth(self):
        self.get_auth_calls += 1
        return STORAGE_URL, "token"

    def get_account(self, full_listing=False):
        self.get_account_calls += 1
        listing = []
        for name, stats in self.containers.items():
            if self.hidden.get(name, 0) > 0:
                self.hidden[name] -= 1
                continue
            listing.append({"name": name, "count": stats.get("count", 0), "bytes": stats.get("bytes", 0)})
        return {}, listing

    def head_container(self, container):
        self.head_container_calls.append(container)
        if container not in self.containers:
            raise not_found("Container HEAD failed")
        return {"x-container-object-count": str(len(self.objects.get(container, [])))}

    def get_container(self, container, full_listing=False):
        error = self.errors.get("get_container")
        if error is not None:
            raise error
        if container not in self.containers:
            raise not_found("Container GET failed")
        listing = [
            {key: value for key, value in obj.items() if key != "body"}
            for obj in self.objects.get(container, [])
        ]
        return {}, listing

    def put_container(self, container, headers=None):
        self.put_container_calls.append(container)
        self.containers[container] = {}
        self.hidden[container] = self.visibility_delay

    def delete_container(self, container):
        self.delete_container_calls.append(container)
        error = self.errors.get("delete_container")
        if error is not None:
            raise error
        self.containers.pop(container, None)

    def _find(self, container, name):
        for obj in self.objects.get(container, []):
            if obj["name"] == name:
                return obj
        raise not_found("Object GET failed")

    def get_object(self, container, name):
        obj = self._find(container, name)
        return {"content-type": obj.get("content_type", "")}, obj.get("body", b"")

    def head_object(self, container, name):
        obj = self._find(container, name)
        return {"content-type": obj.get("content_type", ""), "content-length": str(obj.get("bytes", 0))}

    def put_object(self, container, name, contents=None, content_type=None):
        self.put_object_calls.append((container, name, contents.read(), content_type))

    def delete_object(self, container, name):
        self._find(container, name)
        self.delete_object_calls.append((container, name))


class FakeCdnConnection:
    def __init__(self, containers=None):
        self.containers = containers or {}
        self.get_account_calls = 0
        self.put_container_calls = []
        self.post_container_calls = []

    def get_account(self, full_listing=False):
        self.get_account_calls += 1
        listing = [
            {"name": name, "cdn_enabled": entry["cdn_enabled"], "cdn_uri": entry.get("cdn_uri", "")}
            for name, entry in self.containers.items()
        ]
        return {}, listing

    def head_container(self, container):
        entry = self.containers.get(container)
        if entry is None:
            raise not_found("CDN container HEAD failed")
        return {"x-cdn-enabled": str(entry["cdn_enabled"]), "x-cdn-uri": entry.get("cdn_uri", "")}

    def put_container(self, container, headers=None):
        self.put_container_calls.append((container, headers))
        entry = self.containers.setdefault(container, {"cdn_uri": f"https://cdn.example/{container}"})
        entry["cdn_enabled"] = True

    def post_container(self, container, headers):
        self.post_container_calls.append((container, headers))
        self.containers[container]["cdn_enabled"] = headers["X-CDN-Enabled"] == "True"


def make_factory(storage, cdn):
    calls = []

    def factory(**kwargs):
        calls.append(kwargs)
        return cdn if "preauthurl" in kwargs else storage

    return factory, calls


def make_adapter(storage, cdn=None, settings=None, sleeps=None):
    factory, _ = make_factory(storage, cdn or FakeCdnConnection())
    adapter = RackspaceAdapter(
        settings=settings,
        client_factory=factory,
        sleep=sleeps.append if sleeps is not None else (lambda _: None),
    )
    adapter.init(CREDENTIALS).unwrap()
    return adapter


class RackspaceInitTests(unittest.TestCase):
    def test_cdn_management_url_keeps_account_path(self):
        self.assertEqual(
            "https://cdn.clouddrive.com/v1/MossoCloudFS_abc",
            cdn_management_url(STORAGE_URL),
        )

    def test_init_authenticates_storage_and_cdn_connections(self):
        storage = FakeSwiftConnection()
        factory, calls = make_factory(storage, FakeCdnConnection())
        adapter = RackspaceAdapter(client_factory=factory)

        self.assertTrue(adapter.init(CREDENTIALS))

        self.assertEqual(
            {"authurl": RACKSPACE_AUTH_URL, "user": "jason", "key": "api-key", "auth_version": "1"},
            calls[0],
        )
        self.assertEqual(
            {"preauthurl": "https://cdn.clouddrive.com/v1/MossoCloudFS_abc", "preauthtoken": "token"},
            calls[1],
        )
        self.assertEqual(1, storage.get_auth_calls)

    def test_init_prefers_explicit_urls(self):
        factory, calls = make_factory(FakeSwiftConnection(), FakeCdnConnection())
        adapter = RackspaceAdapter(client_factory=factory)
        credentials = dict(
            CREDENTIALS,
            rackspace_auth_url="https://lon.auth.api.rackspacecloud.com/v1.0",
            rackspace_cdn_url="https://cdn3.clouddrive.com/v1/MossoCloudFS_abc",
        )

        adapter.init(credentials).unwrap()

        self.assertEqual("https://lon.auth.api.rackspacecloud.com/v1.0", calls[0]["authurl"])
        self.assertEqual("https://cdn3.clouddrive.com/v1/MossoCloudFS_abc", calls[1]["preauthurl"])

    def test_init_requires_username_and_api_key(self):
        factory, calls = make_factory(FakeSwiftConnection(), FakeCdnConnection())
        adapter = RackspaceAdapter(client_factory=factory)

        result = adapter.init({"rackspace_username": "jason", "rackspace_api_key": ""})

        self.assertIsInstance(result.error, ConfigurationError)
        self.assertIn("rackspace_api_key", adapter.last_error())
        self.assertEqual([], calls)

    def test_init_reports_authentication_failure(self):
        storage = FakeSwiftConnection()

        def failing_auth():
            raise ClientException("Unauthorized", http_status=401)

        storage.get_auth = failing_auth
        factory, _ = make_factory(storage, FakeCdnConnection())
        adapter = RackspaceAdapter(client_factory=factory)

        result = adapter.init(CREDENTIALS)

        self.assertIs(False, result.value)
        self.assertIsInstance(result.error, VendorError)
        self.assertEqual(401, result.error.status)

    def test_init_reports_connection_failure(self):
        storage = FakeSwiftConnection()

        def unreachable_auth():
            raise RequestsConnectionError("Failed to establish a new connection")

        storage.get_auth = unreachable_auth
        factory, calls = make_factory(storage, FakeCdnConnection())
        adapter = RackspaceAdapter(client_factory=factory)

        result = adapter.init(CREDENTIALS)

        self.assertFalse(result)
        self.assertIsInstance(result.error, VendorError)
        self.assertIsNone(result.error.status)
        self.assertTrue(adapter.has_error())
        self.assertIn("Failed to establish", adapter.last_error())
        self.assertEqual(1, len(calls))


class RackspaceListingTests(unittest.TestCase):
    def test_list_buckets_uses_cdn_listing_for_visibility(self):
        storage = FakeSwiftConnection(
            containers={
                "images": {"count": 3, "bytes": 2048},
                "backups": {"count": 1, "bytes": 10},
                "drafts": {},
            }
        )
        cdn = FakeCdnConnection(
            {
                "images": {"cdn_enabled": True},
                "backups": {"cdn_enabled": False},
                "drafts": {"cdn_enabled": "False"},
            }
        )
        adapter = make_adapter(storage, cdn)

        buckets = adapter.list_buckets().unwrap()

        self.assertEqual(
            [("images", 3, 2048, True), ("backups", 1, 10, False), ("drafts", 0, 0, False)],
            [(b.name, b.count, b.size, b.public) for b in buckets],
        )
        self.assertEqual(1, cdn.get_account_calls)

        adapter.list_buckets()
        self.assertEqual(2, cdn.get_account_calls)

    def test_list_objects_reports_cdn_urls(self):
        storage = FakeSwiftConnection(
            containers={"photos": {}},
            objects={
                "photos": [
                    {
                        "name": "2024/trip 1.jpg",
                        "bytes": 1024,
                        "last_modified": "2023-11-14T22:13:20.000000",
                        "content_type": "image/jpeg",
                    },
                    {
                        "name": "archive/",
                        "bytes": 0,
                        "last_modified": "2023-11-14T22:13:20.000000",
                        "content_type": "application/directory",
                    },
                ]
            },
        )
        cdn = FakeCdnConnection({"photos": {"cdn_enabled": True, "cdn_uri": "https://c0.r1.cf1.rackcdn.com"}})
        adapter = make_adapter(storage, cdn)

        objects = adapter.list_objects("photos").unwrap()

        trip = objects[0]
        self.assertEqual("2024/trip 1.jpg", trip.name)
        self.assertEqual(1024, trip.size)
        self.assertEqual(1700000000, trip.last_modified)
        self.assertEqual("https://c0.r1.cf1.rackcdn.com/2024/trip%201.jpg", trip.url)
        self.assertEqual("image/jpeg", trip.content_type)
        self.assertTrue(trip.public)
        self.assertFalse(trip.is_folder)
        self.assertTrue(objects[1].is_folder)

    def test_list_objects_in_container_without_cdn(self):
        storage = FakeSwiftConnection(
            containers={"private": {}},
            objects={"private": [{"name": "secret.txt", "bytes": 5, "content_type": "text/plain"}]},
        )
        adapter = make_adapter(storage)

        obj = adapter.list_objects("private").unwrap()[0]

        self.assertEqual("", obj.url)
        self.assertFalse(obj.public)
        self.assertEqual(0, obj.last_modified)

    def test_list_objects_on_empty_container_returns_empty_list(self):
        adapter = make_adapter(FakeSwiftConnection(containers={"empty": {}}))

        result = adapter.list_objects("empty")

        self.assertTrue(result.ok)
        self.assertEqual([], result.value)

    def test_list_objects_on_missing_container_reports_not_found(self):
        adapter = make_adapter(FakeSwiftConnection())

        result = adapter.list_objects("missing")

        self.assertEqual([], result.value)
        self.assertIsInstance(result.error, NotFoundError)
        self.assertIn("Container GET failed", adapter.last_error())

    def test_list_objects_reports_dropped_connection(self):
        storage = FakeSwiftConnection(containers={"photos": {}})
        adapter = make_adapter(storage)
        storage.errors["get_container"] = RequestsConnectionError("Connection reset by peer")

        result = adapter.list_objects("photos")

        self.assertEqual([], result.value)
        self.assertIsInstance(result.error, VendorError)
        self.assertIn("Connection reset by peer", adapter.last_error())


class RackspaceBucketTests(unittest.TestCase):
    def test_create_bucket_polls_listing_then_enables_cdn(self):
        storage = FakeSwiftConnection(visibility_delay=2)
        cdn = FakeCdnConnection()
        sleeps = []
        adapter = make_adapter(storage, cdn, sleeps=sleeps)

        result = adapter.create_bucket("media")

        self.assertTrue(result.ok)
        self.assertEqual(["media"], storage.put_container_calls)
        # one listing before creating, three while waiting
        self.assertEqual(4, storage.get_account_calls)
        self.assertEqual([2.0, 2.0], sleeps)
        self.assertEqual([("media", {"X-CDN-Enabled": "True", "X-TTL": "86400"})], cdn.put_container_calls)

    def test_create_private_bucket_leaves_cdn_untouched(self):
        storage = FakeSwiftConnection()
        cdn = FakeCdnConnection()
        adapter = make_adapter(storage, cdn)

        self.assertTrue(adapter.create_bucket("vault", public=False))
        self.assertEqual([], cdn.put_container_calls)
        self.assertEqual([], cdn.post_container_calls)

    def test_create_bucket_times_out_after_poll_budget(self):
        storage = FakeSwiftConnection(visibility_delay=5)
        cdn = FakeCdnConnection()
        sleeps = []
        adapter = make_adapter(storage, cdn, settings=CDNSettings(poll_attempts=3, poll_interval=0.5), sleeps=sleeps)

        result = adapter.create_bucket("slow")

        self.assertIs(False, result.value)
        self.assertIsInstance(result.error, ConsistencyTimeoutError)
        self.assertEqual([0.5, 0.5], sleeps)
        self.assertEqual([], cdn.put_container_calls)
        self.assertIn("slow", storage.containers)

    def test_create_bucket_fails_immediately_when_container_exists(self):
        storage = FakeSwiftConnection(containers={"media": {}})
        sleeps = []
        adapter = make_adapter(storage, sleeps=sleeps)

        result = adapter.create_bucket("media")

        self.assertIsInstance(result.error, AlreadyExistsError)
        self.assertEqual([], storage.put_container_calls)
        self.assertEqual(1, storage.get_account_calls)
        self.assertEqual([], sleeps)

    def test_delete_bucket_passes_vendor_conflict_through(self):
        storage = FakeSwiftConnection(containers={"full": {"count": 2}})
        storage.errors["delete_container"] = ClientException("Container DELETE failed", http_status=409)
        adapter = make_adapter(storage)

        result = adapter.delete_bucket("full")

        self.assertIsInstance(result.error, VendorError)
        self.assertEqual(409, result.error.status)
        self.assertEqual(["full"], storage.delete_container_calls)

    def test_make_public_and_private_toggle_cdn(self):
        storage = FakeSwiftConnection(containers={"site": {}})
        cdn = FakeCdnConnection()
        adapter = make_adapter(storage, cdn, settings=CDNSettings(cdn_ttl=3600))

        self.assertTrue(adapter.make_public("site"))
        self.assertTrue(adapter.is_public("site").value)
        self.assertTrue(adapter.make_private("site"))
        self.assertFalse(adapter.is_public("site").value)

        self.assertEqual([("site", {"X-CDN-Enabled": "True", "X-TTL": "3600"})], cdn.put_container_calls)
        self.assertEqual([("site", {"X-CDN-Enabled": "False"})], cdn.post_container_calls)

    def test_object_visibility_follows_container(self):
        storage = FakeSwiftConnection(containers={"site": {}}, objects={"site": [{"name": "index.html"}]})
        cdn = FakeCdnConnection({"site": {"cdn_enabled": True}})
        adapter = make_adapter(storage, cdn)

        self.assertTrue(adapter.is_public("site", "index.html").value)


class RackspaceContextTests(unittest.TestCase):
    def test_connect_bucket_heads_container_once_per_name(self):
        storage = FakeSwiftConnection(containers={"a": {}, "b": {}})
        adapter = make_adapter(storage)

        adapter.connect_bucket("a")
        adapter.connect_bucket("a")
        adapter.connect_bucket("b")

        self.assertEqual(["a", "b"], storage.head_container_calls)

    def test_connect_bucket_to_missing_container_fails(self):
        adapter = make_adapter(FakeSwiftConnection())

        result = adapter.connect_bucket("ghost")

        self.assertIsInstance(result.error, NotFoundError)
        self.assertEqual("", adapter.connected_bucket)


class RackspaceObjectTests(unittest.TestCase):
    def test_upload_file_streams_contents_and_returns_cdn_url(self):
        storage = FakeSwiftConnection(containers={"docs": {}})
        cdn = FakeCdnConnection({"docs": {"cdn_enabled": True, "cdn_uri": "https://cdn.example/docs"}})
        adapter = make_adapter(storage, cdn)
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "notes.txt")
            with open(path, "wb") as handle:
                handle.write(b"hello")

            url = adapter.upload_file(path, "docs").unwrap()

        self.assertEqual([("docs", "notes.txt", b"hello", "text/plain")], storage.put_object_calls)
        self.assertEqual("https://cdn.example/docs/notes.txt", url)

    def test_reads_contents_and_content_type(self):
        storage = FakeSwiftConnection(
            containers={"docs": {}},
            objects={"docs": [{"name": "a.json", "content_type": "application/json", "body": b"{}"}]},
        )
        adapter = make_adapter(storage)

        self.assertEqual(b"{}", adapter.get_file_contents("a.json", "docs").unwrap())
        self.assertEqual("application/json", adapter.get_content_type("a.json", "docs").unwrap())

    def test_delete_object(self):
        storage = FakeSwiftConnection(containers={"docs": {}}, objects={"docs": [{"name": "a.json"}]})
        adapter = make_adapter(storage)

        self.assertTrue(adapter.delete_object("a.json", "docs"))
        missing = adapter.delete_object("b.json", "docs")

        self.assertEqual([("docs", "a.json")], storage.delete_object_calls)
        self.assertIsInstance(missing.error, NotFoundError)
        self.assertIs(False, missing.value)


if __name__ == "__main__":
    unittest.main()
