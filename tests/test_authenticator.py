import unittest

from backend.app.auth.service import authenticate_login
from backend.app.core.exceptions import ConfigurationError

PASSWORD = "correct horse"


class TestAuthenticateLogin(unittest.TestCase):

    def test_correct_password_and_user_id(self):
        self.assertTrue(authenticate_login("alice", PASSWORD, PASSWORD))

    def test_wrong_password(self):
        self.assertFalse(authenticate_login("alice", "wrong", PASSWORD))
        self.assertFalse(authenticate_login("alice", "", PASSWORD))

    def test_password_is_compared_after_nfkc_normalization(self):
        # Fullwidth letters and a ligature normalize to plain ASCII under NFKC
        self.assertTrue(authenticate_login("alice", "ｐａｓｓ", "pass"))
        self.assertTrue(authenticate_login("alice", "ﬁle", "file"))
        # Decomposed and composed forms compare equal
        self.assertTrue(authenticate_login("alice", "cafe\u0301", "caf\u00e9"))

    def test_user_id_is_trimmed_and_must_not_be_empty(self):
        self.assertTrue(authenticate_login("  alice  ", PASSWORD, PASSWORD))
        self.assertFalse(authenticate_login("", PASSWORD, PASSWORD))
        self.assertFalse(authenticate_login("   ", PASSWORD, PASSWORD))

    def test_user_id_length_cap(self):
        self.assertTrue(authenticate_login("a" * 128, PASSWORD, PASSWORD))
        self.assertTrue(authenticate_login("  " + "a" * 128 + "  ", PASSWORD, PASSWORD))
        self.assertFalse(authenticate_login("a" * 129, PASSWORD, PASSWORD))

    def test_user_id_is_a_free_text_label(self):
        self.assertTrue(authenticate_login("Dr. Jane O'Neil (Group 3)", PASSWORD, PASSWORD))

    def test_missing_shared_password_is_a_configuration_error(self):
        for expected in [None, ""]:
            with self.assertRaises(ConfigurationError):
                authenticate_login("alice", PASSWORD, expected)


if __name__ == "__main__":
    unittest.main()
