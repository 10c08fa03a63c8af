"""
Unit tests for formharvest.dedup.
"""
from formharvest.dedup import is_duplicate, key_fields
from formharvest.ir import Session

URL = "https://example.com/signup"


def session(fields, url=URL, synced=True, id=1):
    return Session(id=id, timestamp="2024-01-01T00:00:00.000Z", url=url, fields=fields, synced=synced)


class TestKeyFields:

    def test_only_identity_roles(self, make_field):
        fields = [
            make_field("email", "a@b.co", "email"),
            make_field("notes", "hello"),
            make_field("aadhar", "1234 5678 9012"),
        ]
        assert key_fields(fields) == {"email": "a@b.co", "aadhar": "1234 5678 9012"}

    def test_last_occurrence_wins(self, make_field):
        fields = [make_field("email", "first@b.co", "email"), make_field("alt_email", "second@b.co", "email")]
        assert key_fields(fields) == {"email": "second@b.co"}


class TestIsDuplicate:

    def test_match_against_synced_session(self, make_field):
        history = [session([make_field("email", "a@b.co", "email"), make_field("phone", "9876543210", "phone")])]
        candidate = [make_field("email", "a@b.co", "email")]
        assert is_duplicate(URL, candidate, history) is True

    def test_history_may_have_extra_keys(self, make_field):
        history = [session([
            make_field("email", "a@b.co", "email"),
            make_field("name", "Asha Rao"),
        ])]
        assert is_duplicate(URL, [make_field("name", "Asha Rao")], history) is True

    def test_candidate_key_missing_from_history(self, make_field):
        history = [session([make_field("email", "a@b.co", "email")])]
        candidate = [make_field("email", "a@b.co", "email"), make_field("pan", "ABCDE1234F")]
        assert is_duplicate(URL, candidate, history) is False

    def test_different_value(self, make_field):
        history = [session([make_field("email", "a@b.co", "email")])]
        assert is_duplicate(URL, [make_field("email", "z@b.co", "email")], history) is False

    def test_unsynced_history_ignored(self, make_field):
        history = [session([make_field("email", "a@b.co", "email")], synced=False)]
        assert is_duplicate(URL, [make_field("email", "a@b.co", "email")], history) is False

    def test_different_url_ignored(self, make_field):
        history = [session([make_field("email", "a@b.co", "email")], url="https://example.com/other")]
        assert is_duplicate(URL, [make_field("email", "a@b.co", "email")], history) is False

    def test_no_key_fields_never_duplicate(self, make_field):
        history = [session([make_field("notes", "hello")])]
        assert is_duplicate(URL, [make_field("notes", "hello")], history) is False

    def test_empty_history(self, make_field):
        assert is_duplicate(URL, [make_field("email", "a@b.co", "email")], []) is False

    def test_name_and_email_pair(self, make_field):
        fields = [make_field("full name", "Asha Rao"), make_field("email", "a@b.co", "email")]
        history = [session(fields)]
        assert is_duplicate(URL, fields, history) is True
        assert is_duplicate("https://example.com/other", fields, history) is False
