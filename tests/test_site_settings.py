"""Tests for the site settings singleton and its routes."""

import os
import sys
import unittest
from unittest.mock import patch

_project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

import mongomock
from fastapi.testclient import TestClient
from pydantic import ValidationError

from database import SETTINGS, ensure_indexes, get_db
from main import app
from schemas import SettingsUpdate
from site_settings import SettingsStore


class TestSettingsStore(unittest.TestCase):

    def setUp(self):
        self.db = mongomock.MongoClient().db
        ensure_indexes(self.db)
        self.store = SettingsStore(self.db)

    def test_first_access_creates_defaults(self):
        doc = self.store.get_instance()

        self.assertEqual(self.db[SETTINGS].count_documents({}), 1)
        self.assertFalse(doc["enquiryBanner"]["isActive"])
        self.assertTrue(doc["enquiryBanner"]["showOverlay"])
        self.assertEqual(doc["enquiryBanner"]["title"], "")
        self.assertEqual(doc["landingPage"], {"heroImage": "", "heroTitle": "", "heroSubtitle": ""})
        self.assertNotIn("singleton", doc)

    def test_repeated_access_returns_same_document(self):
        first = self.store.get_instance()
        second = self.store.get_instance()
        self.assertEqual(first["_id"], second["_id"])
        self.assertEqual(self.db[SETTINGS].count_documents({}), 1)

    def test_update_merges_only_provided_keys(self):
        self.store.update(SettingsUpdate.model_validate({
            "enquiryBanner": {"subtitle": "Book before June", "isActive": True},
            "landingPage": {"heroTitle": "Walk the Western Ghats"},
        }))

        doc = self.store.update(SettingsUpdate.model_validate({"enquiryBanner": {"title": "Monsoon Treks"}}))

        self.assertEqual(doc["enquiryBanner"]["title"], "Monsoon Treks")
        self.assertEqual(doc["enquiryBanner"]["subtitle"], "Book before June")
        self.assertTrue(doc["enquiryBanner"]["isActive"])
        self.assertTrue(doc["enquiryBanner"]["showOverlay"])
        self.assertEqual(doc["landingPage"]["heroTitle"], "Walk the Western Ghats")
        self.assertEqual(doc["blogPage"]["heroTitle"], "")
        self.assertEqual(doc["weekendGetawayPage"]["heroSubtitle"], "")

    def test_get_group_projects_single_group(self):
        self.store.update(SettingsUpdate.model_validate({"blogPage": {"heroTitle": "Stories"}}))
        self.assertEqual(self.store.get_group("blogPage")["heroTitle"], "Stories")
        with self.assertRaises(KeyError):
            self.store.get_group("aboutPage")


class TestSettingsValidation(unittest.TestCase):

    def test_image_must_look_like_image_url(self):
        with self.assertRaises(ValidationError):
            SettingsUpdate.model_validate({"enquiryBanner": {"image": "https://cdn.example.com/banner.txt"}})
        ok = SettingsUpdate.model_validate({"enquiryBanner": {"image": "https://cdn.example.com/Banner.JPG"}})
        self.assertEqual(ok.enquiry_banner.image, "https://cdn.example.com/Banner.JPG")

    def test_empty_image_is_allowed(self):
        SettingsUpdate.model_validate({"landingPage": {"heroImage": ""}})

    def test_header_max_length(self):
        with self.assertRaises(ValidationError):
            SettingsUpdate.model_validate({"enquiryBanner": {"header": "x" * 51}})

    def test_strings_are_trimmed(self):
        update = SettingsUpdate.model_validate({"enquiryBanner": {"title": "  Monsoon  "}})
        self.assertEqual(update.enquiry_banner.title, "Monsoon")


class TestSettingsApi(unittest.TestCase):

    def setUp(self):
        self.db = mongomock.MongoClient().db
        self.env = patch.dict(os.environ, {"ADMIN_API_KEY": "test-key"})
        self.env.start()
        app.dependency_overrides[get_db] = lambda: self.db
        self.client = TestClient(app, headers={"X-Admin-Key": "test-key"})

    def tearDown(self):
        app.dependency_overrides.clear()
        self.env.stop()

    def test_admin_key_required(self):
        res = TestClient(app).get("/api/settings")
        self.assertEqual(res.status_code, 401)

    def test_get_and_update(self):
        res = self.client.get("/api/settings")
        self.assertEqual(res.status_code, 200)
        settings_id = res.json()["id"]

        res = self.client.put("/api/settings", json={"enquiryBanner": {"title": "Monsoon Treks"}})
        self.assertEqual(res.status_code, 200)
        body = res.json()
        self.assertEqual(body["id"], settings_id)
        self.assertEqual(body["enquiryBanner"]["title"], "Monsoon Treks")
        self.assertTrue(body["enquiryBanner"]["showOverlay"])

    def test_invalid_update_rejected(self):
        res = self.client.put("/api/settings", json={"enquiryBanner": {"image": "not-a-url"}})
        self.assertEqual(res.status_code, 422)

    def test_public_group_routes(self):
        self.client.put("/api/settings", json={"weekendGetawayPage": {"heroTitle": "Quick escapes"}})
        public = TestClient(app)

        self.assertIn("enquiryBanner", public.get("/api/settings/enquiry-banner").json())
        self.assertEqual(public.get("/api/settings/landing-page").json()["landingPage"]["heroTitle"], "")
        self.assertIn("blogPage", public.get("/api/settings/blog-page").json())
        res = public.get("/api/settings/weekend-getaway-page")
        self.assertEqual(res.json()["weekendGetawayPage"]["heroTitle"], "Quick escapes")


if __name__ == "__main__":
    unittest.main()
