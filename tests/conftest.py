"""
Pytest configuration and fixtures for swift-transform-pipeline tests

This module provides shared fixtures for unit and integration tests.
"""
from typing import Generator

import pytest
from testcontainers.postgres import PostgresContainer

from swift_transform.crypto.envelope import EnvelopeEncryptor, generate_local_key
from swift_transform.crypto.key_service import RsaOaepKeyService
from swift_transform.messaging.publisher import InMemoryQueuePublisher
from swift_transform.storage.connection import DatabaseConnectionPool
from swift_transform.storage.object_store import InMemoryObjectStore
from swift_transform.storage.record_store import EncryptedRecordStore


# =======================
# PYTEST CONFIGURATION
# =======================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't require external services"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that require Docker containers"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take more than 5 seconds to run"
    )


# =======================
# MESSAGE FIXTURES
# =======================

MT103_MESSAGE = (
    "{1:F01BANKBEBBAXXX0000000000}{2:I103BANKDEFFXXXXN}{3:{108:MT103 REF}}{4:\n"
    ":20:REF123456789\n"
    ":23B:CRED\n"
    ":32A:241018EUR1000,00\n"
    ":50K:/12345678\n"
    "JOHN DOE\n"
    "1 MAIN STREET\n"
    ":59:/87654321\n"
    "JANE SMITH\n"
    ":70:INVOICE 4711\n"
    ":71A:OUR\n"
    "-}"
)

MT103_WITH_INSTITUTIONS = (
    "{1:F01BANKBEBBAXXX0000000000}{2:I103BANKDEFFXXXXN}{4:\n"
    ":20:REF987654321\n"
    ":21:RELATED01\n"
    ":32A:241018USD2500,00\n"
    ":52A:BANKBEBBXXX\n"
    ":57A:BANKDEFFXXX\n"
    ":71A:SHA\n"
    ":72:/ACC/PRIORITY\n"
    "-}"
)

MT103_MISSING_AMOUNT = (
    "{1:F01BANKBEBBAXXX0000000000}{2:I103BANKDEFFXXXXN}{4:\n"
    ":20:REF000000001\n"
    ":50K:/12345678\n"
    "JOHN DOE\n"
    "-}"
)

MT202_MESSAGE = (
    "{1:F01BANKUS33AXXX0000000000}{2:I202BANKDE55XXXXN}{4:\n"
    ":20:FIREF0001\n"
    ":21:RELREF0001\n"
    ":32A:241018GBP500,00\n"
    ":52A:BANKGB2LXXX\n"
    ":58A:BANKFRPPXXX\n"
    "-}"
)


@pytest.fixture
def mt103_message() -> str:
    return MT103_MESSAGE


@pytest.fixture
def mt103_with_institutions() -> str:
    return MT103_WITH_INSTITUTIONS


@pytest.fixture
def mt103_missing_amount() -> str:
    return MT103_MISSING_AMOUNT


@pytest.fixture
def mt202_message() -> str:
    return MT202_MESSAGE


# =======================
# ENCRYPTION FIXTURES
# =======================

@pytest.fixture(scope="session")
def local_key() -> str:
    """Base64 256-bit key shared by local mode encryptors"""
    return generate_local_key()


@pytest.fixture
def local_encryptor(local_key) -> EnvelopeEncryptor:
    return EnvelopeEncryptor.local(local_key)


@pytest.fixture(scope="session")
def key_service() -> RsaOaepKeyService:
    """RSA key generation is slow, so one key service serves the session"""
    return RsaOaepKeyService(key_name="test-kek")


@pytest.fixture
def kms_encryptor(key_service) -> EnvelopeEncryptor:
    return EnvelopeEncryptor(key_service=key_service, kms_key_name="test-kek")


# =======================
# STORAGE AND MESSAGING FIXTURES
# =======================

@pytest.fixture
def object_store() -> InMemoryObjectStore:
    return InMemoryObjectStore()


@pytest.fixture
def record_store(object_store, local_encryptor) -> EncryptedRecordStore:
    return EncryptedRecordStore(object_store, local_encryptor)


@pytest.fixture
def publisher() -> InMemoryQueuePublisher:
    return InMemoryQueuePublisher()


# =======================
# DATABASE FIXTURES (Testcontainers)
# =======================

@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    """
    Start PostgreSQL container for integration tests

    Yields:
        PostgresContainer instance
    """
    with PostgresContainer(
        image="postgres:16.2-alpine",
        username="test_swift",
        password="test_password",
        dbname="test_swift_audit",
    ) as postgres:
        # Wait for container to be ready
        postgres.get_connection_url()
        yield postgres


@pytest.fixture
def db_pool(postgres_container) -> Generator[DatabaseConnectionPool, None, None]:
    """
    Open connection pool against the test container, with an empty object table

    Yields:
        Open DatabaseConnectionPool
    """
    pool = DatabaseConnectionPool(
        host=postgres_container.get_container_host_ip(),
        port=int(postgres_container.get_exposed_port(5432)),
        database="test_swift_audit",
        user="test_swift",
        password="test_password",
    )
    pool.open()
    pool.execute_command("DROP TABLE IF EXISTS transformation_object")

    yield pool

    pool.close()

