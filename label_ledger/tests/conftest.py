from decimal import Decimal

import pytest

from label_ledger import LedgerService, LedgerStore
from label_ledger.config import Settings


@pytest.fixture
def settings(tmp_path):
    return Settings(
        DATABASE_URL=f"sqlite:///{tmp_path / 'ledger.sqlite'}",
        BACKUP_DIR=str(tmp_path / "backups"),
        UPLOADS_DIR=str(tmp_path / "uploads"),
    )


@pytest.fixture
def file_service(settings):
    """Service on a file-backed SQLite store, for tests that need real connections."""
    service = LedgerService(LedgerStore.from_settings(settings), settings)
    yield service
    service.store.close()


@pytest.fixture
def funded_user():
    def _make(service: LedgerService, amount: str = "100.00", email: str = "artist@example.com"):
        user = service.create_user(email)
        if Decimal(amount) > 0:
            service.create_earning(user.id, "2024-01", Decimal(amount))
        return user
    return _make
