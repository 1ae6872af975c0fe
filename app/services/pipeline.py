import logging
import threading
from contextlib import contextmanager
from enum import Enum
from typing import Dict, Iterator, List, Optional

from sqlmodel import Session

from app.core.config import Settings
from app.core.errors import PipelineStateError
from app.models.requirement import Requirement
from app.schemas.requirement import ExtractionResult
from app.services.concurrency_gate import ConcurrencyGate
from app.services.extraction import ExtractionStage
from app.services.extraction_cache import ExtractionCache
from app.services.mockup import MockupStage
from app.utils.completion_client import CompletionClient

logger = logging.getLogger(__name__)


class RecordState(str, Enum):
    CREATED = "created"
    EXTRACTED = "in_process"
    COMPLETED = "completed"


def has_extraction(record: Requirement) -> bool:
    return bool(record.app_name) or bool(record.raos)


def record_state(record: Requirement) -> RecordState:
    if record.mockup_markup:
        return RecordState.COMPLETED
    if has_extraction(record):
        return RecordState.EXTRACTED
    return RecordState.CREATED


def extraction_fields(record: Requirement) -> ExtractionResult:
    return ExtractionResult(
        app_name=record.app_name or "",
        entities=list(record.entities or []),
        roles=list(record.roles or []),
        features=list(record.features or []),
        raos=list(record.raos or []),
    )


class RecordLocks:
    """One lock per record id, so check-then-run on a record is never interleaved.

    Entries only live while some thread holds or waits on them.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[int, List] = {}  # record id -> [lock, users]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, record_id: Optional[int]) -> Iterator[None]:
        with self._guard:
            entry = self._locks.setdefault(record_id, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[record_id]


class PipelineOrchestrator:
    """Runs the two pipeline stages against a persisted requirement.

    Created -> Extracted -> Completed. Each transition writes its field group
    in a single commit; a failing stage leaves the record untouched and its
    error propagates unchanged.
    """

    def __init__(
        self,
        extraction: ExtractionStage,
        mockup: MockupStage,
        gate: ConcurrencyGate,
        locks: Optional[RecordLocks] = None,
    ):
        self.extraction = extraction
        self.mockup = mockup
        self.gate = gate
        self.locks = locks or RecordLocks()

    def run_extraction(self, session: Session, record: Requirement) -> ExtractionResult:
        with self.locks.hold(record.id):
            session.refresh(record)
            if has_extraction(record):
                return extraction_fields(record)

            with self.gate.permit():
                result = self.extraction.extract(record.description)

            record.app_name = result.app_name
            record.entities = list(result.entities)
            record.roles = list(result.roles)
            record.features = list(result.features)
            record.raos = [item.model_dump() for item in result.raos]
            self._commit(session, record)
            logger.info("Requirement %s extracted as %r", record.id, record.app_name)
            return result

    def run_mockup(self, session: Session, record: Requirement) -> str:
        with self.locks.hold(record.id):
            session.refresh(record)
            if record.mockup_markup:
                return record.mockup_markup
            if not has_extraction(record):
                raise PipelineStateError(f"Requirement {record.id} has no extracted RAOS yet")

            with self.gate.permit():
                html = self.mockup.generate_mockup(record.app_name or "", list(record.raos or []))

            record.mockup_markup = html
            self._commit(session, record)
            logger.info("Requirement %s mockup generated (%d chars)", record.id, len(html))
            return html

    @staticmethod
    def _commit(session: Session, record: Requirement) -> None:
        try:
            session.add(record)
            session.commit()
        except Exception:
            session.rollback()
            raise
        session.refresh(record)


settings = Settings()
_orchestrator: Optional[PipelineOrchestrator] = None
_orchestrator_lock = threading.Lock()


def build_orchestrator(settings: Settings) -> PipelineOrchestrator:
    client = CompletionClient.from_settings(settings)
    return PipelineOrchestrator(
        extraction=ExtractionStage(client, ExtractionCache()),
        mockup=MockupStage(client),
        gate=ConcurrencyGate(settings.pipeline_max_concurrent),
    )


def get_orchestrator() -> PipelineOrchestrator:
    """FastAPI dependency returning the process-wide orchestrator."""
    global _orchestrator
    with _orchestrator_lock:
        if _orchestrator is None:
            _orchestrator = build_orchestrator(settings)
        return _orchestrator
