import os
import unittest
from unittest import mock

from mail_admin.config import get_domains, get_user_roles
from mail_admin.kv import get_kv
from mail_admin.security import PasswordPolicyError, check_user_password


class TestDomains(unittest.TestCase):
    def test_comma_separated(self):
        with mock.patch.dict(os.environ, {"MAIL_API_DOMAINS": "a.com, B.com,,"}):
            self.assertEqual(get_domains(), ["a.com", "b.com"])

    def test_json_list(self):
        with mock.patch.dict(os.environ, {"MAIL_API_DOMAINS": '["a.com", "c.org"]'}):
            self.assertEqual(get_domains(), ["a.com", "c.org"])

    def test_unset(self):
        with mock.patch.dict(os.environ, {"MAIL_API_DOMAINS": ""}):
            self.assertEqual(get_domains(), [])


class TestUserRoles(unittest.TestCase):
    def test_parses_definitions(self):
        raw = '[{"role": "vip", "domains": ["A.com"], "prefix": "v_"}, "plain", {"domains": []}]'
        with mock.patch.dict(os.environ, {"MAIL_API_USER_ROLES": raw}):
            roles = get_user_roles()
        self.assertEqual([r.role for r in roles], ["vip", "plain"])
        self.assertEqual(roles[0].domains, ["a.com"])
        self.assertEqual(roles[0].prefix, "v_")

    def test_invalid_json(self):
        with mock.patch.dict(os.environ, {"MAIL_API_USER_ROLES": "[not json"}):
            self.assertEqual(get_user_roles(), [])


class TestKv(unittest.TestCase):
    def test_unconfigured(self):
        with mock.patch.dict(os.environ, {"MAIL_API_KV_URL": ""}):
            self.assertIsNone(get_kv())

    def test_configured(self):
        with mock.patch.dict(os.environ, {"MAIL_API_KV_URL": "redis://localhost:6379/0"}):
            self.assertIsNotNone(get_kv())


class TestPasswordPolicy(unittest.TestCase):
    def test_accepts(self):
        self.assertEqual(check_user_password("abc"), "abc")

    def test_rejects(self):
        for bad in ("", None, 123, "x" * 101):
            with self.assertRaises(PasswordPolicyError):
                check_user_password(bad)


if __name__ == "__main__":
    unittest.main()
