import json
import os
import tempfile
import unittest
from unittest import mock

from fastapi.testclient import TestClient

from mail_admin.admin_app import create_admin_app
from mail_admin.db import init_db
from mail_admin.settings import USER_SETTINGS_KEY, get_json_setting, save_json_setting


DOMAINS = ["example.com", "mail.example.org"]


class TestUserSettings(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self._env = mock.patch.dict(
            os.environ,
            {
                "MAIL_API_DATA_DIR": self._tmp.name,
                "MAIL_API_DOMAINS": ",".join(DOMAINS),
            },
        )
        self._env.start()
        os.environ.pop("MAIL_API_KV_URL", None)
        init_db()
        self.client = TestClient(create_admin_app())

    def tearDown(self):
        self._env.stop()
        self._tmp.cleanup()

    def _enable_kv(self):
        os.environ["MAIL_API_KV_URL"] = "redis://localhost:6379/0"

    def test_defaults_when_unset(self):
        r = self.client.get("/admin/user_settings")
        self.assertEqual(r.status_code, 200)
        body = r.json()
        self.assertFalse(body["enable"])
        self.assertFalse(body["enableMailVerify"])
        self.assertEqual(body["verifyMailSender"], "")
        self.assertEqual(body["maxAddressCount"], 5)

    def test_save_and_read_back(self):
        r = self.client.post(
            "/admin/user_settings",
            json={"enable": True, "maxAddressCount": 3, "mailAllowList": ["a.com"]},
        )
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json(), {"success": True})

        body = self.client.get("/admin/user_settings").json()
        self.assertTrue(body["enable"])
        self.assertEqual(body["maxAddressCount"], 3)
        self.assertEqual(body["mailAllowList"], ["a.com"])

    def test_save_replaces_whole_object(self):
        self.client.post("/admin/user_settings", json={"enable": True, "other": 1})
        self.client.post("/admin/user_settings", json={"maxAddressCount": 2})
        stored = get_json_setting(USER_SETTINGS_KEY)
        self.assertFalse(stored["enable"])
        self.assertNotIn("other", stored)

    def test_version_increments(self):
        self.assertEqual(save_json_setting("k", {"a": 1}), 1)
        self.assertEqual(save_json_setting("k", {"a": 2}), 2)
        self.assertEqual(get_json_setting("k"), {"a": 2})

    def test_negative_max_address_count(self):
        r = self.client.post("/admin/user_settings", json={"maxAddressCount": -1})
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.text, "Invalid maxAddressCount")
        self.assertIsNone(get_json_setting(USER_SETTINGS_KEY))

    def test_non_integer_max_address_count(self):
        r = self.client.post("/admin/user_settings", json={"maxAddressCount": "many"})
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.text, "Invalid maxAddressCount")

    def test_fractional_max_address_count_rejected(self):
        for value in (-0.5, 2.9, True):
            r = self.client.post("/admin/user_settings", json={"maxAddressCount": value})
            self.assertEqual(r.status_code, 400, value)
            self.assertEqual(r.text, "Invalid maxAddressCount")
        self.assertIsNone(get_json_setting(USER_SETTINGS_KEY))

    def test_integral_max_address_count_normalized(self):
        self.client.post("/admin/user_settings", json={"maxAddressCount": 3.0})
        self.assertEqual(get_json_setting(USER_SETTINGS_KEY)["maxAddressCount"], 3)
        self.client.post("/admin/user_settings", json={"maxAddressCount": "0"})
        self.assertEqual(get_json_setting(USER_SETTINGS_KEY)["maxAddressCount"], 0)

    def test_kv_check_precedes_count_check(self):
        r = self.client.post(
            "/admin/user_settings",
            json={"enableMailVerify": True, "maxAddressCount": "many"},
        )
        self.assertEqual(r.status_code, 403)
        self.assertEqual(r.text, "Please enable KV first if you want to enable mail verify")

    def test_mail_verify_requires_kv(self):
        r = self.client.post(
            "/admin/user_settings",
            json={
                "enableMailVerify": True,
                "verifyMailSender": "noreply@example.com",
                "maxAddressCount": -5,
            },
        )
        self.assertEqual(r.status_code, 403)
        self.assertIn("enable KV", r.text)

    def test_mail_verify_requires_sender(self):
        self._enable_kv()
        r = self.client.post("/admin/user_settings", json={"enableMailVerify": True})
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.text, "Please provide verifyMailSender")

    def test_mail_verify_sender_domain_must_be_configured(self):
        self._enable_kv()
        r = self.client.post(
            "/admin/user_settings",
            json={"enableMailVerify": True, "verifyMailSender": "noreply@other.net"},
        )
        self.assertEqual(r.status_code, 400)
        self.assertIn("noreply@other.net", r.text)
        self.assertIn(json.dumps(DOMAINS, indent=2), r.text)

    def test_mail_verify_with_valid_sender(self):
        self._enable_kv()
        r = self.client.post(
            "/admin/user_settings",
            json={"enableMailVerify": True, "verifyMailSender": "noreply@example.com"},
        )
        self.assertEqual(r.status_code, 200)
        stored = get_json_setting(USER_SETTINGS_KEY)
        self.assertTrue(stored["enableMailVerify"])
        self.assertEqual(stored["verifyMailSender"], "noreply@example.com")

    def test_invalid_json(self):
        r = self.client.post(
            "/admin/user_settings",
            content=b"not json",
            headers={"content-type": "application/json"},
        )
        self.assertEqual(r.status_code, 400)


if __name__ == "__main__":
    unittest.main()
