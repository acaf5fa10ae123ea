"""Unit tests for auth/service.py and auth/seed.py -- account use cases.

Covers:
- registration validation order and error kinds
- register -> login -> verify yields matching claims
- unknown user and wrong password are indistinguishable
- a corrupt stored hash is treated as a failed login
- concurrent registration of one username: exactly one success
- admin-only listing, profile lookups
- seed bootstrap is idempotent and hashes passwords
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from types import SimpleNamespace

import pytest

from auth.errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    MissingFieldsError,
    NotFoundError,
    PasswordTooLongError,
    PasswordTooShortError,
    UsernameTooShortError,
    ValidationError,
)
from auth.passwords import PasswordHasher
from auth.seed import bootstrap_seed_accounts
from auth.service import AccountService
from auth.store import AccountStore

# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


class TestRegister:
    def test_register_creates_user_role_with_hashed_password(self, service: AccountService) -> None:
        account = service.register("alice", "secret1")
        assert account.id == 1
        assert account.role == "user"
        assert account.password_hash != "secret1"
        assert service.hasher.verify("secret1", account.password_hash)

    @pytest.mark.parametrize(
        "username,password,expected",
        [
            (None, "secret1", MissingFieldsError),
            ("alice", None, MissingFieldsError),
            ("", "", MissingFieldsError),
            ("al", "secret1", UsernameTooShortError),
            ("al", "123", UsernameTooShortError),
            ("alice", "12345", PasswordTooShortError),
            ("alice", "x" * 73, PasswordTooLongError),
            # 40 characters, 80 UTF-8 bytes
            ("alice", "\u00e9" * 40, PasswordTooLongError),
        ],
    )
    def test_validation_errors(self, service: AccountService, username, password, expected) -> None:
        with pytest.raises(expected) as exc_info:
            service.register(username, password)
        assert isinstance(exc_info.value, ValidationError)
        assert exc_info.value.status_code == 400
        assert service.store.count() == 0

    def test_minimum_lengths_accepted(self, service: AccountService) -> None:
        assert service.register("abc", "123456").username == "abc"

    def test_password_limit_counts_utf8_bytes(self, service: AccountService) -> None:
        assert service.register("maxbytes", "\u00e9" * 36).username == "maxbytes"
        assert service.login("maxbytes", "\u00e9" * 36).account.username == "maxbytes"
        with pytest.raises(PasswordTooLongError):
            service.register("overbytes", "\u00e9" * 36 + "x")

    def test_duplicate_username_conflicts(self, service: AccountService) -> None:
        service.register("alice", "secret1")
        with pytest.raises(ConflictError):
            service.register("alice", "another1")
        assert service.store.count() == 1

    def test_concurrent_registration_exactly_one_succeeds(self, service: AccountService) -> None:
        workers = 6
        barrier = threading.Barrier(workers)

        def attempt(_: int) -> str:
            barrier.wait()
            try:
                service.register("bob", "secret1")
            except ConflictError:
                return "conflict"
            return "created"

        with ThreadPoolExecutor(max_workers=workers) as pool:
            outcomes = list(pool.map(attempt, range(workers)))

        assert outcomes.count("created") == 1
        assert outcomes.count("conflict") == workers - 1
        assert [a.username for a in service.store.list_all()] == ["bob"]


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


class TestLogin:
    @pytest.mark.parametrize(
        "username,password",
        [("alice", "secret1"), ("bob_the_builder", "can-we-fix-it"), ("ünïcode", "pässwörd")],
    )
    def test_register_then_login_round_trip(self, service: AccountService, username: str, password: str) -> None:
        account = service.register(username, password)
        result = service.login(username, password)
        claims = service.tokens.verify(result.issued.token)
        assert claims.username == account.username
        assert claims.role == account.role
        assert claims.user_id == account.id
        assert result.account == account

    def test_wrong_password_and_unknown_user_are_identical(self, service: AccountService) -> None:
        service.register("alice", "secret1")
        with pytest.raises(AuthenticationError) as wrong_password:
            service.login("alice", "wrong-password")
        with pytest.raises(AuthenticationError) as unknown_user:
            service.login("mallory", "secret1")
        assert type(wrong_password.value) is type(unknown_user.value)
        assert wrong_password.value.code == unknown_user.value.code == "invalid_credentials"
        assert wrong_password.value.message == unknown_user.value.message

    def test_unknown_user_still_runs_bcrypt(self, service: AccountService, monkeypatch: pytest.MonkeyPatch) -> None:
        calls: list[str] = []
        original = service.hasher.verify

        def spy(plaintext: str, password_hash: str) -> bool:
            calls.append(password_hash)
            return original(plaintext, password_hash)

        monkeypatch.setattr(service.hasher, "verify", spy)
        with pytest.raises(AuthenticationError):
            service.login("mallory", "secret1")
        assert calls == [service.hasher.dummy_hash]

    @pytest.mark.parametrize("password", ["x" * 80, "é" * 40])
    def test_overlong_login_password_is_invalid_credentials(self, service: AccountService, password: str) -> None:
        service.register("alice", "secret1")
        with pytest.raises(AuthenticationError):
            service.login("alice", password)
        with pytest.raises(AuthenticationError):
            service.login("mallory", password)

    def test_login_is_case_sensitive(self, service: AccountService) -> None:
        service.register("alice", "secret1")
        with pytest.raises(AuthenticationError):
            service.login("Alice", "secret1")

    def test_corrupt_stored_hash_fails_like_wrong_password(self, service: AccountService) -> None:
        service.store.create("legacy", "$2b$10$testhashedpassword", "user")
        with pytest.raises(AuthenticationError):
            service.login("legacy", "test123")

    @pytest.mark.parametrize("username,password", [(None, "x"), ("alice", None), ("", ""), ("alice", "")])
    def test_missing_fields(self, service: AccountService, username, password) -> None:
        with pytest.raises(MissingFieldsError):
            service.login(username, password)


# ---------------------------------------------------------------------------
# Refresh, profile, listing
# ---------------------------------------------------------------------------


class TestSessionOperations:
    def test_refresh_keeps_identity(self, service: AccountService, clock) -> None:
        service.register("alice", "secret1")
        first = service.login("alice", "secret1").issued
        clock.advance(60)
        second = service.refresh(service.tokens.verify(first.token))
        assert second.token != first.token
        assert service.tokens.verify(second.token).username == "alice"
        assert second.expires_at > first.expires_at

    def test_profile(self, service: AccountService) -> None:
        service.register("alice", "secret1")
        claims = service.tokens.verify(service.login("alice", "secret1").issued.token)
        assert service.profile(claims).username == "alice"

    def test_profile_for_missing_account(self, service: AccountService) -> None:
        claims = service.tokens.issue(99, "ghost", "user").claims
        with pytest.raises(NotFoundError):
            service.profile(claims)

    def test_list_accounts_requires_admin(self, service: AccountService) -> None:
        service.register("alice", "secret1")
        service.register("root", "rootpass", role="admin")
        user_claims = service.tokens.issue(1, "alice", "user").claims
        admin_claims = service.tokens.issue(2, "root", "admin").claims
        with pytest.raises(AuthorizationError):
            service.list_accounts(user_claims)
        assert [a.username for a in service.list_accounts(admin_claims)] == ["alice", "root"]

    def test_unknown_role_rejected(self, service: AccountService) -> None:
        with pytest.raises(ValueError):
            service.register("alice", "secret1", role="superuser")


# ---------------------------------------------------------------------------
# Seed bootstrap
# ---------------------------------------------------------------------------


def _seed(username: str, password: str, role: str = "user") -> SimpleNamespace:
    return SimpleNamespace(username=username, password=password, role=role)


class TestSeed:
    def test_seed_creates_loginable_accounts(self, service: AccountService) -> None:
        created = bootstrap_seed_accounts(
            service.store,
            service.hasher,
            [_seed("testuser", "test123"), _seed("admin", "admin123", "admin")],
        )
        assert [(a.username, a.role) for a in created] == [("testuser", "user"), ("admin", "admin")]
        assert service.login("admin", "admin123").account.role == "admin"
        assert service.login("testuser", "test123").account.role == "user"

    def test_seed_is_idempotent(self, store: AccountStore, hasher: PasswordHasher) -> None:
        seeds = [_seed("testuser", "test123")]
        assert len(bootstrap_seed_accounts(store, hasher, seeds)) == 1
        original_hash = store.find_by_username("testuser").password_hash
        assert bootstrap_seed_accounts(store, hasher, seeds) == []
        assert store.find_by_username("testuser").password_hash == original_hash
        assert store.count() == 1

    def test_seed_never_resets_existing_password(self, service: AccountService) -> None:
        service.register("admin", "changed-password", role="admin")
        bootstrap_seed_accounts(service.store, service.hasher, [_seed("admin", "admin123", "admin")])
        with pytest.raises(AuthenticationError):
            service.login("admin", "admin123")
        assert service.login("admin", "changed-password").account.id == 1

    def test_seed_validates_input(self, store: AccountStore, hasher: PasswordHasher) -> None:
        with pytest.raises(PasswordTooShortError):
            bootstrap_seed_accounts(store, hasher, [_seed("admin", "123")])
        with pytest.raises(PasswordTooLongError):
            bootstrap_seed_accounts(store, hasher, [_seed("admin", "\u00e9" * 40)])
        assert store.count() == 0
