from stockroom.config import Settings
from stockroom.db import Database
from stockroom.ledger.service import StockLedger
from stockroom.ledger.store import LedgerStore


def test_environment_overrides_defaults(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite:///./elsewhere.db")
    monkeypatch.setenv("LOCK_TIMEOUT_SECONDS", "0.5")
    monkeypatch.setenv("STORE_RETRY_ATTEMPTS", "7")
    monkeypatch.setenv("AUDIT_ASYNC", "false")

    settings = Settings(_env_file=None)

    assert settings.database_url == "sqlite:///./elsewhere.db"
    assert settings.lock_timeout_seconds == 0.5
    assert settings.store_retry_attempts == 7
    assert settings.audit_async is False


def test_ledger_takes_limits_from_settings(tmp_path):
    settings = Settings(
        database_url=f"sqlite:///{tmp_path / 'cfg.db'}",
        store_retry_attempts=4,
        max_page_size=25,
        _env_file=None,
    )
    database = Database.from_settings(settings)
    try:
        ledger = StockLedger.from_settings(LedgerStore(database), settings)
        assert ledger.recorder.retry_attempts == 4
        assert ledger.queries.max_page_size == 25
    finally:
        database.dispose()
