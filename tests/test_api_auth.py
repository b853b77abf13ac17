import json
import shutil
import tempfile
import unittest
from pathlib import Path

from fastapi.testclient import TestClient

from backend.app.core.crypto import SessionTokenCodec
from backend.app.core.settings import Settings, get_settings
from backend.app.main import app

SECRET = "test-session-secret"
PASSWORD = "let-me-in"


class APITestCase(unittest.TestCase):
    """
    TestClient with settings overridden and a temporary audit directory.
    The lifespan is not run, so the real environment is never read.
    """

    def setUp(self):
        self.tmp = Path(tempfile.mkdtemp())
        self.settings = self.make_settings()
        app.dependency_overrides[get_settings] = lambda: self.settings
        self.client = TestClient(app)

    def tearDown(self):
        app.dependency_overrides.clear()
        shutil.rmtree(self.tmp, ignore_errors=True)

    def make_settings(self, **overrides) -> Settings:
        fields = dict(
            SESSION_SECRET=SECRET,
            AUTH_PASSWORD=PASSWORD,
            AUDIT_LOG_DIR=str(self.tmp / "logs"),
            LLMLITE_URL="http://upstream.test/v1",
            LLMLITE_API_KEY="upstream-key",
            ENVIRONMENT="development",
        )
        fields.update(overrides)
        return Settings(_env_file=None, **fields)

    def audit_records(self) -> list:
        index = self.tmp / "logs" / "interactions.json"
        if not index.exists():
            return []
        return json.loads(index.read_text())

    def login(self, user_id: str = "alice") -> str:
        resp = self.client.post("/auth/login", json={"userId": user_id, "password": PASSWORD})
        self.assertEqual(resp.status_code, 200)
        return resp.cookies.get("psim_session")


class TestLogin(APITestCase):

    def test_login_success_sets_cookie_and_audits(self):
        resp = self.client.post(
            "/auth/login",
            json={"userId": "alice", "password": PASSWORD},
            headers={"user-agent": "pytest-agent", "x-forwarded-for": "203.0.113.7"},
        )

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"userId": "alice"})

        set_cookie = resp.headers["set-cookie"]
        self.assertIn("psim_session=", set_cookie)
        self.assertIn("HttpOnly", set_cookie)
        self.assertIn("SameSite=lax", set_cookie)
        self.assertIn("Max-Age=43200", set_cookie)
        self.assertIn("Path=/", set_cookie)
        self.assertNotIn("Secure", set_cookie)

        token = resp.cookies.get("psim_session")
        payload = SessionTokenCodec(SECRET).verify(token)
        self.assertEqual(payload.user_id, "alice")

        records = self.audit_records()
        self.assertEqual(len(records), 1)
        self.assertEqual(records[0]["eventType"], "login")
        self.assertTrue(records[0]["ok"])
        self.assertEqual(records[0]["userId"], "alice")
        self.assertEqual(records[0]["sessionId"], payload.session_id)
        self.assertEqual(records[0]["clientIp"], "203.0.113.7")
        self.assertEqual(records[0]["userAgent"], "pytest-agent")
        self.assertEqual(records[0]["path"], "/auth/login")
        self.assertEqual(records[0]["method"], "POST")

    def test_login_wrong_password(self):
        resp = self.client.post("/auth/login", json={"userId": "alice", "password": "nope"})

        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json(), {"error": "Invalid credentials"})
        self.assertNotIn("set-cookie", resp.headers)

        records = self.audit_records()
        self.assertEqual(len(records), 1)
        self.assertEqual(records[0]["eventType"], "login")
        self.assertFalse(records[0]["ok"])
        self.assertEqual(json.loads(records[0]["errorJson"]), {"message": "Invalid credentials"})

    def test_login_user_id_is_trimmed(self):
        resp = self.client.post("/auth/login", json={"userId": "  alice  ", "password": PASSWORD})
        self.assertEqual(resp.json(), {"userId": "alice"})

    def test_login_rejects_overlong_user_id(self):
        resp = self.client.post("/auth/login", json={"userId": "a" * 129, "password": PASSWORD})
        self.assertEqual(resp.status_code, 401)

    def test_login_requires_both_fields(self):
        resp = self.client.post("/auth/login", json={"userId": "alice"})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json(), {"error": "userId and password required"})

    def test_login_rejects_non_string_fields(self):
        resp = self.client.post("/auth/login", json={"userId": 42, "password": PASSWORD})
        self.assertEqual(resp.status_code, 400)
        self.assertIn("error", resp.json())

    def test_secure_cookie_in_production(self):
        self.settings = self.make_settings(ENVIRONMENT="production")
        resp = self.client.post("/auth/login", json={"userId": "alice", "password": PASSWORD})
        self.assertIn("Secure", resp.headers["set-cookie"])

    def test_missing_password_configuration_is_a_500_and_audited(self):
        self.settings = self.make_settings(AUTH_PASSWORD=None)
        resp = self.client.post("/auth/login", json={"userId": "alice", "password": PASSWORD})

        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json(), {"error": "AUTH_PASSWORD is not set"})
        records = self.audit_records()
        self.assertEqual(len(records), 1)
        self.assertFalse(records[0]["ok"])
        self.assertEqual(json.loads(records[0]["errorJson"])["name"], "ConfigurationError")

    def test_missing_session_secret_is_a_500(self):
        self.settings = self.make_settings(SESSION_SECRET=None)
        resp = self.client.post("/auth/login", json={"userId": "alice", "password": PASSWORD})
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json(), {"error": "SESSION_SECRET is not set"})

    def test_login_succeeds_when_audit_write_fails(self):
        # A file where the directory should be makes every audit write fail
        blocked = self.tmp / "blocked"
        blocked.write_text("not a directory")
        self.settings = self.make_settings(AUDIT_LOG_DIR=str(blocked))

        resp = self.client.post("/auth/login", json={"userId": "alice", "password": PASSWORD})

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"userId": "alice"})


class TestMe(APITestCase):

    def test_me_with_valid_session(self):
        self.login("bob")
        resp = self.client.get("/auth/me")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"userId": "bob"})

    def test_me_without_cookie(self):
        resp = self.client.get("/auth/me")
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json(), {"error": "Not authenticated"})

    def test_me_with_forged_cookie(self):
        forged = SessionTokenCodec("someone-elses-secret").mint("mallory")
        self.client.cookies.set("psim_session", forged)
        resp = self.client.get("/auth/me")
        self.assertEqual(resp.status_code, 401)

    def test_me_with_expired_cookie(self):
        expired = SessionTokenCodec(SECRET).sign_payload(
            {"sessionId": "s1", "userId": "alice", "iat": 1, "exp": 2}
        )
        self.client.cookies.set("psim_session", expired)
        resp = self.client.get("/auth/me")
        self.assertEqual(resp.status_code, 401)


class TestLogout(APITestCase):

    def test_logout_clears_cookie_and_audits_session(self):
        token = self.login("carol")
        session_id = SessionTokenCodec(SECRET).verify(token).session_id

        resp = self.client.post("/auth/logout")

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"ok": True})
        self.assertIn("Max-Age=0", resp.headers["set-cookie"])

        logout_record = self.audit_records()[-1]
        self.assertEqual(logout_record["eventType"], "logout")
        self.assertTrue(logout_record["ok"])
        self.assertEqual(logout_record["userId"], "carol")
        self.assertEqual(logout_record["sessionId"], session_id)

    def test_logout_without_session_still_succeeds(self):
        resp = self.client.post("/auth/logout")

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"ok": True})
        records = self.audit_records()
        self.assertEqual(len(records), 1)
        self.assertIsNone(records[0]["userId"])

    def test_logout_without_session_secret_still_succeeds(self):
        self.login("erin")
        self.settings = self.make_settings(SESSION_SECRET=None)

        resp = self.client.post("/auth/logout")

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"ok": True})
        self.assertIn("Max-Age=0", resp.headers["set-cookie"])
        logout_record = self.audit_records()[-1]
        self.assertEqual(logout_record["eventType"], "logout")
        self.assertIsNone(logout_record["userId"])

    def test_token_stays_valid_after_logout(self):
        # No revocation list: logout only clears the client cookie
        token = self.login("dave")
        self.client.post("/auth/logout")
        self.client.cookies.set("psim_session", token)
        self.assertEqual(self.client.get("/auth/me").status_code, 200)


class TestRoot(APITestCase):

    def test_root(self):
        resp = self.client.get("/")
        self.assertEqual(resp.status_code, 200)
        self.assertIn("message", resp.json())


if __name__ == "__main__":
    unittest.main()
