import os

# Settings are read at import time by several modules.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("ENV", "dev")

import pytest

from leadreport.services.orchestrator import ReportOrchestrator
from leadreport.services.report_store import ReportStore

from tests.fixtures.report_fixtures import (
    RecordingDispatcher,
    StubEnrichment,
    StubGenerator,
    StubWriter,
)


@pytest.fixture
def store():
    store = ReportStore.from_url("sqlite://", create_tables=True)
    yield store
    store.dispose()


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def make_orchestrator(store, dispatcher):
    def _make(enrichment=None, writer=None, generator=None, news=None):
        return ReportOrchestrator(
            store=store,
            dispatcher=dispatcher,
            enrichment=enrichment or StubEnrichment(),
            writer=writer or StubWriter(),
            generator=generator or StubGenerator(),
            news=news,
        )

    return _make
