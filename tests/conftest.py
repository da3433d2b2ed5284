import pytest

from crmguard.config import load_settings
from crmguard.vault.encryption import EncryptionService


TEST_PASSPHRASE = "test-passphrase-for-crmguard"


class FakeClock:
    """Epoch-millis clock that only moves when told to."""

    def __init__(self, now: int = 1_700_000_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return load_settings(_env_file=None, encryption_key=TEST_PASSPHRASE)


@pytest.fixture(scope="session")
def record_service():
    return EncryptionService(TEST_PASSPHRASE, key_derivation="record")


@pytest.fixture(scope="session")
def process_service():
    return EncryptionService(TEST_PASSPHRASE, key_derivation="process")


@pytest.fixture(params=["record", "process"])
def service(request, record_service, process_service):
    """Encryption service in each key derivation mode."""
    return record_service if request.param == "record" else process_service
