"""Tests for the S3 upload bridge and the trek image sweep."""

import os
import sys
import unittest
from unittest.mock import MagicMock, patch

_project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

import mongomock
from botocore.exceptions import ClientError
from fastapi.testclient import TestClient

from database import REGION as REGION_COLLECTION, TREK, get_db
from errors import ConfigError, InvalidRequestError, UpstreamError
from main import app, get_storage
from storage import DEFAULT_REGION_IMAGE, DEFAULT_TREK_IMAGE, S3Storage, scrub_image_references

BUCKET = "trek-media"
REGION = "ap-south-1"


def make_storage(**kwargs):
    return S3Storage(BUCKET, REGION, client=MagicMock(), **kwargs)


class TestS3Storage(unittest.TestCase):

    def setUp(self):
        self.storage = make_storage()

    def test_upload_returns_reconstructed_url(self):
        url = self.storage.upload(b"png-bytes", "ridge.png", "image/png")

        call = self.storage.client.put_object.call_args.kwargs
        self.assertEqual(call["Bucket"], BUCKET)
        self.assertTrue(call["Key"].startswith("images/"))
        self.assertTrue(call["Key"].endswith("-ridge.png"))
        self.assertEqual(call["ContentType"], "image/png")
        self.assertEqual(url, f"https://s3.{REGION}.amazonaws.com/{BUCKET}/{call['Key']}")

    def test_pdfs_go_to_pdf_folder(self):
        self.storage.upload(b"%PDF", "itinerary.pdf", "application/pdf")
        self.assertTrue(self.storage.client.put_object.call_args.kwargs["Key"].startswith("pdfs/"))

    def test_folder_hint_wins(self):
        self.storage.upload(b"x", "a.jpg", "image/jpeg", folder="banners")
        self.assertTrue(self.storage.client.put_object.call_args.kwargs["Key"].startswith("banners/"))

    def test_rejects_other_types_and_oversized_files(self):
        with self.assertRaises(InvalidRequestError):
            self.storage.upload(b"x", "notes.txt", "text/plain")
        small = make_storage(max_bytes=4)
        with self.assertRaises(InvalidRequestError):
            small.upload(b"12345", "a.png", "image/png")
        small.client.put_object.assert_not_called()

    def test_upload_failure_carries_code(self):
        self.storage.client.put_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject"
        )
        with self.assertRaises(UpstreamError) as ctx:
            self.storage.upload(b"x", "a.png", "image/png")
        self.assertEqual(ctx.exception.code, "AccessDenied")

    def test_normalize_key(self):
        url = f"https://s3.{REGION}.amazonaws.com/{BUCKET}/images/1-a.jpg"
        self.assertEqual(self.storage.normalize_key(url), "images/1-a.jpg")
        self.assertEqual(self.storage.normalize_key(f"{BUCKET}/images/1-a.jpg"), "images/1-a.jpg")
        self.assertEqual(self.storage.normalize_key("images%2F1-a.jpg"), "images/1-a.jpg")
        with self.assertRaises(InvalidRequestError):
            self.storage.normalize_key(f"https://s3.{REGION}.amazonaws.com/{BUCKET}/")

    def test_from_env_requires_bucket_and_region(self):
        with patch.dict(os.environ, {"AWS_S3_BUCKET": "", "AWS_REGION": ""}):
            with self.assertRaises(ConfigError):
                S3Storage.from_env()


class TestScrubImageReferences(unittest.TestCase):

    def test_scrub_removes_url_and_resets_cover(self):
        db = mongomock.MongoClient().db
        url_a = "https://s3.ap-south-1.amazonaws.com/trek-media/images/a.jpg"
        url_b = "https://s3.ap-south-1.amazonaws.com/trek-media/images/b.jpg"
        trek_id = db[TREK].insert_one({"name": "Kudremukh", "imageUrl": url_a, "images": [url_a, url_b]}).inserted_id
        other_id = db[TREK].insert_one({"name": "Other", "imageUrl": url_b, "images": [url_b]}).inserted_id

        report = scrub_image_references(db, url_a)

        trek = db[TREK].find_one({"_id": trek_id})
        self.assertEqual(trek["images"], [url_b])
        self.assertEqual(trek["imageUrl"], DEFAULT_TREK_IMAGE)
        self.assertEqual(db[TREK].find_one({"_id": other_id})["imageUrl"], url_b)
        self.assertEqual(report["trekMatchedCount"], 1)
        self.assertEqual(report["regionMatchedCount"], 0)

    def test_scrub_covers_regions(self):
        db = mongomock.MongoClient().db
        url_a = "https://s3.ap-south-1.amazonaws.com/trek-media/images/a.jpg"
        url_b = "https://s3.ap-south-1.amazonaws.com/trek-media/images/b.jpg"
        region_id = db[REGION_COLLECTION].insert_one({
            "name": "Karnataka",
            "coverImage": url_a,
            "images": [url_a, url_b],
            "descriptionImages": [url_a],
        }).inserted_id

        report = scrub_image_references(db, url_a)

        region = db[REGION_COLLECTION].find_one({"_id": region_id})
        self.assertEqual(region["coverImage"], DEFAULT_REGION_IMAGE)
        self.assertEqual(region["images"], [url_b])
        self.assertEqual(region["descriptionImages"], [])
        self.assertEqual(report["regionMatchedCount"], 1)
        self.assertEqual(report["trekModifiedCount"], 0)


class TestUploadApi(unittest.TestCase):

    def setUp(self):
        self.db = mongomock.MongoClient().db
        self.storage = make_storage()
        self.env = patch.dict(os.environ, {"ADMIN_API_KEY": "test-key"})
        self.env.start()
        app.dependency_overrides[get_db] = lambda: self.db
        app.dependency_overrides[get_storage] = lambda: self.storage
        self.client = TestClient(app, headers={"X-Admin-Key": "test-key"})

    def tearDown(self):
        app.dependency_overrides.clear()
        self.env.stop()

    def test_upload(self):
        res = self.client.post("/api/upload", files={"image": ("ridge.png", b"png-bytes", "image/png")})
        self.assertEqual(res.status_code, 200)
        self.assertTrue(res.json()["url"].startswith(f"https://s3.{REGION}.amazonaws.com/{BUCKET}/images/"))

    def test_upload_without_file(self):
        res = self.client.post("/api/upload", data={"folder": "images"})
        self.assertEqual(res.status_code, 400)

    def test_upload_wrong_type(self):
        res = self.client.post("/api/upload", files={"image": ("notes.txt", b"hello", "text/plain")})
        self.assertEqual(res.status_code, 400)

    def test_delete_scrubs_treks(self):
        url_a = self.storage.public_url("images/a.jpg")
        url_b = self.storage.public_url("images/b.jpg")
        trek_id = self.db[TREK].insert_one({"imageUrl": url_a, "images": [url_a, url_b]}).inserted_id

        res = self.client.delete(f"/api/upload/{BUCKET}/images/a.jpg")

        self.assertEqual(res.status_code, 200)
        body = res.json()
        self.assertTrue(body["s3Deleted"])
        self.assertTrue(body["mongoUpdated"])
        self.assertEqual(body["details"]["actualKey"], "images/a.jpg")
        self.storage.client.delete_object.assert_called_once_with(Bucket=BUCKET, Key="images/a.jpg")
        trek = self.db[TREK].find_one({"_id": trek_id})
        self.assertEqual(trek["images"], [url_b])
        self.assertEqual(trek["imageUrl"], "default-trek.jpg")

    def test_delete_reports_region_only_updates(self):
        url_a = self.storage.public_url("images/a.jpg")
        self.db[REGION_COLLECTION].insert_one({"coverImage": url_a, "images": [], "descriptionImages": []})

        res = self.client.delete("/api/upload/images/a.jpg")

        body = res.json()
        self.assertTrue(body["mongoUpdated"])
        self.assertEqual(body["details"]["regionModifiedCount"], 1)

    def test_delete_failure_leaves_treks_alone(self):
        url_a = self.storage.public_url("images/a.jpg")
        trek_id = self.db[TREK].insert_one({"imageUrl": url_a, "images": [url_a]}).inserted_id
        self.storage.client.delete_object.side_effect = ClientError(
            {"Error": {"Code": "NoSuchBucket", "Message": "missing"}}, "DeleteObject"
        )

        res = self.client.delete("/api/upload/images/a.jpg")

        self.assertEqual(res.status_code, 500)
        self.assertEqual(res.json()["code"], "NoSuchBucket")
        self.assertEqual(self.db[TREK].find_one({"_id": trek_id})["imageUrl"], url_a)


if __name__ == "__main__":
    unittest.main()
