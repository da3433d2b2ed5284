"""
Unit tests for authentication primitives.

Tests:
- TOTP code computation against RFC 6238 vectors
- TOTP verification window and malformed input
- Provisioning URI encoding
- Backup codes
- Password policy and Argon2id hashing
"""

import hashlib
import re
from datetime import datetime, timedelta, timezone

import pyotp
import pytest

from crmguard.auth.totp import (
    TOTPGenerator,
    build_provisioning_uri,
    compute_code,
    generate_secret,
    get_time_step,
    hotp,
    matching_step,
    remaining_seconds,
    render_qr_ascii,
    verify,
)
from crmguard.auth.backup_codes import (
    find_backup_code,
    generate_backup_codes,
    hash_backup_code,
    verify_backup_code,
)
from crmguard.auth.password_policy import (
    PasswordHasher_,
    contains_personal_info,
    generate_secure_password,
    is_common_password,
    should_force_password_change,
    validate_password,
)
from crmguard.core_crypto import base32


# RFC 6238 Appendix B, SHA1 column truncated to 6 digits
RFC_SECRET = "GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ"
RFC_VECTORS = [
    (59, "287082"),
    (1111111109, "081804"),
    (1111111111, "050471"),
    (1234567890, "005924"),
    (2000000000, "279037"),
]

FIXED_TIME = 1_700_000_000


class TestTOTPCompute:
    """Code computation tests."""

    @pytest.mark.parametrize("timestamp,expected", RFC_VECTORS)
    def test_rfc6238_vectors(self, timestamp, expected):
        """Codes match the published SHA1 vectors."""
        assert compute_code(RFC_SECRET, 0, timestamp=timestamp) == expected

    def test_hotp_rfc4226_vector(self):
        """HOTP counter 0 matches RFC 4226 Appendix D."""
        assert hotp(b"12345678901234567890", 0) == "755224"

    def test_step_offset(self):
        """An offset of one step equals the code 30 seconds later."""
        assert compute_code(RFC_SECRET, 1, timestamp=59) == compute_code(RFC_SECRET, 0, timestamp=89)
        assert compute_code(RFC_SECRET, -1, timestamp=89) == compute_code(RFC_SECRET, 0, timestamp=59)

    def test_code_is_six_digits(self):
        """Codes are zero-padded to 6 ASCII digits."""
        code = compute_code(generate_secret(), timestamp=FIXED_TIME)
        assert len(code) == 6
        assert code.isdigit()

    def test_time_step(self):
        """Step is floor(t / 30)."""
        assert get_time_step(0) == 0
        assert get_time_step(29.9) == 0
        assert get_time_step(30) == 1
        assert get_time_step(59) == 1

    def test_remaining_seconds(self):
        """Seconds until the code rolls over."""
        assert remaining_seconds(59) == 1
        assert remaining_seconds(60) == 30

    def test_matches_pyotp(self):
        """Generated secrets produce the same codes as pyotp."""
        secret = generate_secret()
        reference = pyotp.TOTP(secret)
        for t in (FIXED_TIME, FIXED_TIME + 30, FIXED_TIME + 3600):
            assert compute_code(secret, timestamp=t) == reference.at(t)


class TestTOTPSecret:
    """Secret generation tests."""

    def test_secret_format(self):
        """32 random bytes encode to 52 base32 characters."""
        secret = generate_secret()
        assert len(secret) == 52
        assert re.fullmatch(r"[A-Z2-7]{52}", secret)
        assert len(base32.decode(secret)) == 32

    def test_secrets_unique(self):
        """Secrets do not repeat."""
        secrets_ = {generate_secret() for _ in range(50)}
        assert len(secrets_) == 50


class TestTOTPVerify:
    """Verification window tests."""

    @pytest.mark.parametrize("offset", [-1, 0, 1])
    def test_accepts_within_window(self, offset):
        """Codes one step either side are accepted."""
        code = compute_code(RFC_SECRET, offset, timestamp=FIXED_TIME)
        assert verify(RFC_SECRET, code, timestamp=FIXED_TIME)

    @pytest.mark.parametrize("offset", [-2, 2])
    def test_rejects_outside_window(self, offset):
        """Codes two steps away are rejected."""
        code = compute_code(RFC_SECRET, offset, timestamp=FIXED_TIME)
        assert not verify(RFC_SECRET, code, timestamp=FIXED_TIME)

    def test_wider_window(self):
        """A caller-supplied window widens acceptance."""
        code = compute_code(RFC_SECRET, 2, timestamp=FIXED_TIME)
        assert verify(RFC_SECRET, code, window=2, timestamp=FIXED_TIME)

    def test_wrong_code(self):
        """The previous vector's code does not verify at a different time."""
        assert not verify(RFC_SECRET, "287082", timestamp=2000000000)

    @pytest.mark.parametrize("candidate", [
        "",
        "12345",
        "1234567",
        "12345a",
        " 28708",
        "２８７０８２",  # fullwidth digits
        None,
        287082,
    ])
    def test_malformed_candidate(self, candidate):
        """Malformed candidates fail without raising."""
        assert verify(RFC_SECRET, candidate, timestamp=59) is False

    @pytest.mark.parametrize("secret", ["", "!!!!", "not a secret", None])
    def test_malformed_secret_never_raises(self, secret):
        """Malformed secrets return a boolean instead of raising."""
        assert isinstance(verify(secret, "123456", timestamp=FIXED_TIME), bool)

    def test_lowercase_secret(self):
        """Secrets are matched case-insensitively."""
        code = compute_code(RFC_SECRET, timestamp=59)
        assert verify(RFC_SECRET.lower(), code, timestamp=59)


class TestMatchingStep:
    """Replay bookkeeping support."""

    def test_returns_absolute_step(self):
        """The matched step is reported so callers can reject replays."""
        current = get_time_step(FIXED_TIME)
        previous = compute_code(RFC_SECRET, -1, timestamp=FIXED_TIME)
        assert matching_step(RFC_SECRET, previous, timestamp=FIXED_TIME) == current - 1

    def test_no_match(self):
        """No step matches a far-away code."""
        code = compute_code(RFC_SECRET, 10, timestamp=FIXED_TIME)
        assert matching_step(RFC_SECRET, code, timestamp=FIXED_TIME) is None

    def test_replay_rejected_by_caller(self):
        """A caller tracking the last step refuses the same code twice."""
        code = compute_code(RFC_SECRET, timestamp=FIXED_TIME)
        last_step = matching_step(RFC_SECRET, code, timestamp=FIXED_TIME)

        replay_step = matching_step(RFC_SECRET, code, timestamp=FIXED_TIME + 10)
        assert replay_step is not None
        assert replay_step <= last_step


class TestProvisioningURI:
    """otpauth:// URI tests."""

    def test_uri_format(self):
        """Issuer and account are percent-encoded; the secret is not."""
        uri = build_provisioning_uri("JBSWY3DPEHPK3PXP", "alice@example.com", "CRM Pro")
        assert uri == (
            "otpauth://totp/CRM%20Pro:alice%40example.com"
            "?secret=JBSWY3DPEHPK3PXP&issuer=CRM%20Pro"
        )

    def test_default_issuer(self):
        """Issuer defaults to CRM Pro."""
        uri = build_provisioning_uri("JBSWY3DPEHPK3PXP", "bob@example.com")
        assert uri.startswith("otpauth://totp/CRM%20Pro:bob%40example.com?")

    def test_uri_component_safe_characters(self):
        """Characters encodeURIComponent keeps are left alone."""
        uri = build_provisioning_uri("ABC", "O'Brien (Sales)!", "Acme*")
        assert uri == "otpauth://totp/Acme*:O'Brien%20(Sales)!?secret=ABC&issuer=Acme*"

    def test_reserved_characters_encoded(self):
        """Separators inside labels cannot break the URI."""
        uri = build_provisioning_uri("ABC", "a:b&c=d/e?", "X")
        assert "a%3Ab%26c%3Dd%2Fe%3F" in uri

    def test_unicode_account(self):
        """Non-ASCII labels are UTF-8 percent-encoded."""
        uri = build_provisioning_uri("ABC", "jürgen@example.com", "X")
        assert "j%C3%BCrgen%40example.com" in uri

    def test_pyotp_parses_uri(self):
        """pyotp reads back the secret and issuer."""
        secret = generate_secret()
        parsed = pyotp.parse_uri(build_provisioning_uri(secret, "alice@example.com"))
        assert parsed.secret == secret
        assert parsed.issuer == "CRM Pro"
        assert parsed.name == "alice@example.com"

    def test_qr_ascii(self):
        """QR rendering produces a multi-line block."""
        art = render_qr_ascii(build_provisioning_uri(generate_secret(), "alice@example.com"))
        assert art.count("\n") > 10


class TestTOTPGenerator:
    """Account-bound generator tests."""

    def test_generate_and_verify(self):
        """A generated code verifies at the same moment."""
        gen = TOTPGenerator(account_name="alice@example.com")
        code = gen.generate(timestamp=FIXED_TIME)
        assert gen.verify(code, timestamp=FIXED_TIME)

    def test_given_secret(self):
        """A supplied secret is kept."""
        gen = TOTPGenerator(secret=RFC_SECRET)
        assert gen.secret == RFC_SECRET
        assert gen.generate(timestamp=59) == "287082"

    def test_provisioning_uri(self):
        """URI uses the generator's issuer and account."""
        gen = TOTPGenerator(secret="ABC", account_name="bob@example.com", issuer="Acme")
        assert gen.provisioning_uri() == "otpauth://totp/Acme:bob%40example.com?secret=ABC&issuer=Acme"

    def test_repr_hides_secret(self):
        """repr() does not leak the secret."""
        gen = TOTPGenerator(account_name="alice@example.com")
        assert gen.secret not in repr(gen)


class TestBackupCodes:
    """Backup code tests."""

    def test_default_count_and_format(self):
        """Ten codes of the form XXXX-XXXX."""
        codes = generate_backup_codes()
        assert len(codes) == 10
        for code in codes:
            assert re.fullmatch(r"[0-9A-F]{4}-[0-9A-F]{4}", code)

    def test_custom_count(self):
        """Count is configurable."""
        assert len(generate_backup_codes(3)) == 3
        assert generate_backup_codes(0) == []

    def test_codes_unique(self):
        """Codes in a batch are distinct."""
        codes = generate_backup_codes(10)
        assert len(set(codes)) == 10

    def test_hash(self):
        """Hash is SHA-256 hex of the code including the dash."""
        assert hash_backup_code("ABCD-1234") == hashlib.sha256(b"ABCD-1234").hexdigest()

    def test_verify(self):
        """Only stored codes verify."""
        codes = generate_backup_codes()
        hashes = [hash_backup_code(c) for c in codes]

        assert verify_backup_code(codes[0], hashes)
        assert verify_backup_code(codes[-1], hashes)
        assert not verify_backup_code("0000-0000", hashes)

    def test_format_is_exact(self):
        """The dash and case are part of the code."""
        code = "ABCD-1234"
        hashes = [hash_backup_code(code)]

        assert not verify_backup_code("ABCD1234", hashes)
        assert not verify_backup_code("abcd-1234", hashes)

    def test_find_returns_hash_to_consume(self):
        """The caller removes the returned hash; the code then stops working."""
        codes = generate_backup_codes(3)
        hashes = [hash_backup_code(c) for c in codes]

        matched = find_backup_code(codes[1], hashes)
        assert matched == hashes[1]

        hashes.remove(matched)
        assert find_backup_code(codes[1], hashes) is None

    def test_empty_store(self):
        """Nothing verifies against an empty store."""
        assert not verify_backup_code("ABCD-1234", [])


class TestPasswordValidation:
    """Password policy tests."""

    def test_strong_password(self):
        """A long mixed password scores at the top."""
        result = validate_password("Correct-Horse-42")
        assert result.valid
        assert result.errors == []
        assert result.score == 100
        assert result.strength == 'very-strong'

    def test_missing_classes(self):
        """Each missing class adds an error."""
        result = validate_password("alllowercase")
        assert not result.valid
        assert len(result.errors) == 3
        assert result.score == 40
        assert result.strength == 'weak'

    def test_too_short(self):
        """Short passwords fail the length rule."""
        result = validate_password("Ab1!")
        assert not result.valid
        assert any("at least 12" in e for e in result.errors)

    def test_common_password(self):
        """Common passwords are detected as substrings."""
        assert is_common_password("MyPassword123!")
        assert is_common_password("QWERTY-2024")
        assert not is_common_password("Xk9#mQ2$vL7&")

    def test_personal_info(self):
        """Email, name and phone fragments are detected."""
        assert contains_personal_info("Jsmith-2024!", email="john.smith@example.com")
        assert contains_personal_info("lovelace99!", name="Ada Lovelace")
        assert contains_personal_info("Secret4567!", phone="+1 (555) 123-4567")
        assert not contains_personal_info(
            "Xk9#mQ2$vL7&", email="john.smith@example.com",
            name="Ada Lovelace", phone="+1 (555) 123-4567",
        )

    def test_short_fragments_ignored(self):
        """Two-letter fragments are too short to count."""
        assert not contains_personal_info("Zz9#mQ2$vL7&", email="jo@example.com", name="Al Bo")


class TestPasswordGeneration:
    """Secure generator tests."""

    @pytest.mark.parametrize("length", [12, 16, 32])
    def test_generated_passwords_pass_policy(self, length):
        """Generated passwords contain every class and validate."""
        password = generate_secure_password(length)
        assert len(password) == length
        assert validate_password(password).valid

    def test_minimum_length(self):
        """Fewer than four characters cannot cover every class."""
        with pytest.raises(ValueError):
            generate_secure_password(3)

    def test_unique(self):
        """Passwords do not repeat."""
        assert len({generate_secure_password() for _ in range(20)}) == 20


class TestPasswordAge:
    """Forced change tests."""

    NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)

    def test_never_changed(self):
        """Missing change date forces a change."""
        assert should_force_password_change(None, now=self.NOW)

    def test_old_password(self):
        """Passwords older than 90 days must change."""
        assert should_force_password_change(self.NOW - timedelta(days=91), now=self.NOW)

    def test_recent_password(self):
        """Recent passwords are fine."""
        assert not should_force_password_change(self.NOW - timedelta(days=10), now=self.NOW)

    def test_naive_datetime(self):
        """Naive datetimes are read as UTC."""
        changed = datetime(2024, 1, 1)
        assert should_force_password_change(changed, now=self.NOW)
        assert not should_force_password_change(changed, max_age_days=365, now=self.NOW)


class TestPasswordHasher:
    """Argon2id hashing tests."""

    @pytest.fixture
    def hasher(self):
        # Cheap parameters keep the suite fast
        return PasswordHasher_(time_cost=1, memory_cost=8192, parallelism=1)

    def test_hash_and_verify(self, hasher):
        """Correct password verifies; a wrong one does not."""
        stored = hasher.hash_password("Correct-Horse-42")
        assert stored.startswith("$argon2id$")
        assert hasher.verify_password("Correct-Horse-42", stored)
        assert not hasher.verify_password("Correct-Horse-43", stored)

    def test_salted(self, hasher):
        """Same password hashes differently each time."""
        assert hasher.hash_password("Correct-Horse-42") != hasher.hash_password("Correct-Horse-42")

    def test_weak_password_rejected(self, hasher):
        """Weak passwords are never hashed."""
        with pytest.raises(ValueError, match="too weak"):
            hasher.hash_password("short")

    def test_invalid_hash(self, hasher):
        """A garbage hash fails closed."""
        assert not hasher.verify_password("Correct-Horse-42", "not-a-hash")

    def test_needs_rehash(self, hasher):
        """Hashes from weaker parameters are flagged."""
        stored = hasher.hash_password("Correct-Horse-42")
        assert not hasher.needs_rehash(stored)

        stronger = PasswordHasher_(time_cost=2, memory_cost=8192, parallelism=1)
        assert stronger.needs_rehash(stored)
