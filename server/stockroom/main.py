from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, get_settings
from .db import Database
from .ledger.audit import AuditHook, DatabaseAuditSink
from .ledger.service import StockLedger
from .ledger.store import LedgerStore
from .routers import auth, products, stock
from .seed import seed_initial_data

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    database = Database.from_settings(settings)
    database.init(create_schema=settings.create_schema)
    if settings.seed_default_users:
        with database.session() as db:
            seed_initial_data(db)

    executor = None
    if settings.audit_async:
        executor = ThreadPoolExecutor(max_workers=settings.audit_workers, thread_name_prefix="stock-audit")
    audit_hook = AuditHook(
        DatabaseAuditSink(database),
        executor=executor,
        failed_queue_size=settings.audit_failed_queue_size,
    )
    store = LedgerStore(database, lock_timeout_seconds=settings.lock_timeout_seconds)

    app.state.database = database
    app.state.audit_hook = audit_hook
    app.state.ledger = StockLedger.from_settings(store, settings, audit_hook)
    try:
        yield
    finally:
        if executor is not None:
            executor.shutdown(wait=True)
        if audit_hook.failed:
            logger.warning("%s audit facts were never delivered", len(audit_hook.failed))
        database.dispose()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(title="Stockroom API", lifespan=lifespan)
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth.router)
    app.include_router(products.router)
    app.include_router(stock.router)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


app = create_app()
