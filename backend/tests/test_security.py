"""Tests for password hashing, access tokens and revocation."""

import pytest
from datetime import datetime, timedelta, timezone

import jwt

from repairdesk.core.config import settings
from repairdesk.core.exceptions import BadSignature, ExpiredToken, MalformedToken, TokenError
from repairdesk.core.security import (
    generate_reset_token,
    hash_password,
    hash_reset_token,
    is_token_revoked,
    issue_access_token,
    reset_token_matches,
    revoke_token,
    verify_access_token,
    verify_password,
)

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


# ============== Password hashing ==============

class TestPasswordHashing:
    def test_hash_and_verify(self):
        h = hash_password("secret123")
        assert verify_password("secret123", h)

    def test_wrong_password_rejected(self):
        h = hash_password("secret123")
        assert not verify_password("wrong", h)

    def test_hash_is_unique(self):
        assert hash_password("same") != hash_password("same")  # different salts

    def test_invalid_hash_returns_false(self):
        assert not verify_password("test", "not-a-hash")

    def test_hash_is_not_plaintext(self):
        assert "secret123" not in hash_password("secret123")


# ============== Access tokens ==============

class TestAccessTokens:
    def test_issue_and_verify(self):
        issued = issue_access_token(42, now=NOW)
        claims = verify_access_token(issued.token, now=NOW)
        assert claims.user_id == 42
        assert claims.jti == issued.jti
        assert claims.expires_at == issued.expires_at

    def test_default_ttl_from_settings(self):
        issued = issue_access_token(1, now=NOW)
        assert issued.expires_in == settings.access_token_expire_minutes * 60
        assert issued.expires_at == NOW + timedelta(minutes=settings.access_token_expire_minutes)

    def test_each_token_has_unique_jti(self):
        assert issue_access_token(1).jti != issue_access_token(1).jti

    def test_accepted_just_before_expiry(self):
        issued = issue_access_token(7, ttl_seconds=60, now=NOW)
        claims = verify_access_token(issued.token, now=NOW + timedelta(seconds=59))
        assert claims.user_id == 7

    def test_rejected_at_expiry(self):
        issued = issue_access_token(7, ttl_seconds=60, now=NOW)
        with pytest.raises(ExpiredToken):
            verify_access_token(issued.token, now=NOW + timedelta(seconds=60))

    def test_rejected_after_expiry(self):
        issued = issue_access_token(7, ttl_seconds=60, now=NOW)
        with pytest.raises(ExpiredToken):
            verify_access_token(issued.token, now=NOW + timedelta(seconds=61))

    def test_garbage_is_malformed(self):
        with pytest.raises(MalformedToken):
            verify_access_token("not-a-token")

    def test_empty_is_malformed(self):
        with pytest.raises(MalformedToken):
            verify_access_token("")

    def test_missing_claim_is_malformed(self):
        token = jwt.encode({"sub": "1"}, settings.secret_key, algorithm=settings.algorithm)
        with pytest.raises(MalformedToken):
            verify_access_token(token)

    def test_non_integer_subject_is_malformed(self):
        ts = int(NOW.timestamp())
        token = jwt.encode(
            {"sub": "abc", "iat": ts, "exp": ts + 60, "jti": "x"},
            settings.secret_key,
            algorithm=settings.algorithm,
        )
        with pytest.raises(MalformedToken):
            verify_access_token(token, now=NOW)

    def test_wrong_secret_is_bad_signature(self):
        ts = int(NOW.timestamp())
        token = jwt.encode(
            {"sub": "1", "iat": ts, "exp": ts + 60, "jti": "x"},
            "another-secret-key-that-is-long-enough-0123",
            algorithm=settings.algorithm,
        )
        with pytest.raises(BadSignature):
            verify_access_token(token, now=NOW)

    def test_signature_checked_before_expiry(self):
        ts = int(NOW.timestamp())
        token = jwt.encode(
            {"sub": "1", "iat": ts - 120, "exp": ts - 60, "jti": "x"},
            "another-secret-key-that-is-long-enough-0123",
            algorithm=settings.algorithm,
        )
        with pytest.raises(BadSignature):
            verify_access_token(token, now=NOW)

    def test_all_failures_share_base_class(self):
        for exc in (MalformedToken, BadSignature, ExpiredToken):
            assert issubclass(exc, TokenError)


# ============== Revocation ==============

class TestRevocation:
    def test_revoke_marks_jti(self, db_session, test_user):
        issued = issue_access_token(test_user.id)
        claims = verify_access_token(issued.token)
        assert not is_token_revoked(db_session, claims.jti)

        revoke_token(db_session, claims)
        assert is_token_revoked(db_session, claims.jti)

    def test_revoke_twice_is_harmless(self, db_session, test_user):
        claims = verify_access_token(issue_access_token(test_user.id).token)
        revoke_token(db_session, claims)
        revoke_token(db_session, claims)
        assert is_token_revoked(db_session, claims.jti)

    def test_expired_revocations_are_purged(self, db_session, test_user):
        old = verify_access_token(
            issue_access_token(test_user.id, ttl_seconds=60, now=NOW - timedelta(days=1)).token,
            now=NOW - timedelta(days=1),
        )
        revoke_token(db_session, old)
        fresh = verify_access_token(issue_access_token(test_user.id).token)
        revoke_token(db_session, fresh)

        assert not is_token_revoked(db_session, old.jti)
        assert is_token_revoked(db_session, fresh.jti)


# ============== Reset tokens ==============

class TestResetTokens:
    def test_token_has_enough_entropy(self):
        # 48 random bytes -> 64 url-safe characters
        assert len(generate_reset_token()) >= 43

    def test_tokens_are_unique(self):
        assert generate_reset_token() != generate_reset_token()

    def test_hash_matches_only_original(self):
        token = generate_reset_token()
        stored = hash_reset_token(token)
        assert stored != token
        assert reset_token_matches(token, stored)
        assert not reset_token_matches(token + "x", stored)
