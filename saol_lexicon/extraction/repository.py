from __future__ import annotations

from copy import deepcopy
from typing import Dict, Iterable, List, Optional

from sqlalchemy import Column, DateTime, Enum, Integer, String, create_engine, select, update
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .models import FailureRecord, PipelineStage, RunRecord, RunState

Base = declarative_base()


class RunModel(Base):
    __tablename__ = "runs"
    id = Column(String, primary_key=True)
    stage = Column(Enum(PipelineStage))
    input_path = Column(String)
    output_path = Column(String)
    state = Column(Enum(RunState))
    dispatched = Column(Integer)
    processed = Column(Integer)
    failed = Column(Integer)
    skipped = Column(Integer)
    records = Column(Integer)
    error_message = Column(String)
    started_at = Column(DateTime)
    created_at = Column(DateTime)
    updated_at = Column(DateTime)


class FailureModel(Base):
    __tablename__ = "failures"
    id = Column(Integer, primary_key=True, autoincrement=True)
    run_id = Column(String, index=True)
    document_index = Column(Integer)
    worker_id = Column(Integer)
    reason = Column(String)
    created_at = Column(DateTime)


class RunRepository:
    """
    Persistence boundary for run bookkeeping. The pipeline itself never reads
    from it; it only reports run state and per-document failures.
    """

    def get_run(self, run_id: str) -> Optional[RunRecord]:
        raise NotImplementedError

    def save_run(self, run: RunRecord) -> None:
        raise NotImplementedError

    def update_run(
        self,
        run_id: str,
        state: Optional[RunState] = None,
        dispatched: Optional[int] = None,
        processed: Optional[int] = None,
        failed: Optional[int] = None,
        skipped: Optional[int] = None,
        records: Optional[int] = None,
        error_message: Optional[str] = None,
    ) -> None:
        raise NotImplementedError

    def add_failures(self, failures: Iterable[FailureRecord]) -> None:
        raise NotImplementedError

    def list_failures(self, run_id: str) -> List[FailureRecord]:
        raise NotImplementedError


class InMemoryRunRepository(RunRepository):
    """
    In-memory store for local runs and tests. Keeps copies of dataclasses to
    avoid cross-mutation between calls.
    """

    def __init__(self):
        self.runs: Dict[str, RunRecord] = {}
        self.failures: List[FailureRecord] = []

    def _clone(self, obj):
        return deepcopy(obj)

    def get_run(self, run_id: str) -> Optional[RunRecord]:
        run = self.runs.get(run_id)
        return self._clone(run) if run else None

    def save_run(self, run: RunRecord) -> None:
        self.runs[run.id] = self._clone(run)

    def update_run(
        self,
        run_id: str,
        state: Optional[RunState] = None,
        dispatched: Optional[int] = None,
        processed: Optional[int] = None,
        failed: Optional[int] = None,
        skipped: Optional[int] = None,
        records: Optional[int] = None,
        error_message: Optional[str] = None,
    ) -> None:
        run = self.runs.get(run_id)
        if not run:
            return
        values = {
            "state": state,
            "dispatched": dispatched,
            "processed": processed,
            "failed": failed,
            "skipped": skipped,
            "records": records,
            "error_message": error_message,
        }
        for name, value in values.items():
            if value is not None:
                setattr(run, name, value)
        self.runs[run_id] = self._clone(run)

    def add_failures(self, failures: Iterable[FailureRecord]) -> None:
        self.failures.extend(self._clone(f) for f in failures)

    def list_failures(self, run_id: str) -> List[FailureRecord]:
        matching = [self._clone(f) for f in self.failures if f.run_id == run_id]
        return sorted(matching, key=lambda f: f.document_index)


class SqlAlchemyRunRepository(RunRepository):
    """
    SQL-backed run ledger using SQLAlchemy. Works with SQLite/Postgres URLs.
    """

    def __init__(self, database_url: str):
        self.engine = create_engine(database_url, future=True)
        Base.metadata.create_all(self.engine)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False, future=True)

    def _session(self) -> Session:
        return self.SessionLocal()

    def get_run(self, run_id: str) -> Optional[RunRecord]:
        with self._session() as session:
            model = session.get(RunModel, run_id)
            if not model:
                return None
            return RunRecord(
                id=model.id,
                stage=model.stage,
                input_path=model.input_path,
                output_path=model.output_path,
                state=model.state,
                dispatched=model.dispatched or 0,
                processed=model.processed or 0,
                failed=model.failed or 0,
                skipped=model.skipped or 0,
                records=model.records or 0,
                error_message=model.error_message,
                started_at=model.started_at,
                created_at=model.created_at,
                updated_at=model.updated_at,
            )

    def save_run(self, run: RunRecord) -> None:
        with self._session() as session:
            model = RunModel(
                id=run.id,
                stage=run.stage,
                input_path=run.input_path,
                output_path=run.output_path,
                state=run.state,
                dispatched=run.dispatched,
                processed=run.processed,
                failed=run.failed,
                skipped=run.skipped,
                records=run.records,
                error_message=run.error_message,
                started_at=run.started_at,
                created_at=run.created_at,
                updated_at=run.updated_at,
            )
            session.merge(model)
            session.commit()

    def update_run(
        self,
        run_id: str,
        state: Optional[RunState] = None,
        dispatched: Optional[int] = None,
        processed: Optional[int] = None,
        failed: Optional[int] = None,
        skipped: Optional[int] = None,
        records: Optional[int] = None,
        error_message: Optional[str] = None,
    ) -> None:
        values = {
            "state": state,
            "dispatched": dispatched,
            "processed": processed,
            "failed": failed,
            "skipped": skipped,
            "records": records,
            "error_message": error_message,
        }
        values = {name: value for name, value in values.items() if value is not None}
        if not values:
            return
        with self._session() as session:
            session.execute(update(RunModel).where(RunModel.id == run_id).values(**values))
            session.commit()

    def add_failures(self, failures: Iterable[FailureRecord]) -> None:
        with self._session() as session:
            for failure in failures:
                session.add(
                    FailureModel(
                        run_id=failure.run_id,
                        document_index=failure.document_index,
                        worker_id=failure.worker_id,
                        reason=failure.reason,
                        created_at=failure.created_at,
                    )
                )
            session.commit()

    def list_failures(self, run_id: str) -> List[FailureRecord]:
        with self._session() as session:
            stmt = select(FailureModel).where(FailureModel.run_id == run_id).order_by(FailureModel.document_index)
            models = session.execute(stmt).scalars().all()
            return [
                FailureRecord(
                    run_id=m.run_id,
                    document_index=m.document_index,
                    worker_id=m.worker_id,
                    reason=m.reason,
                    created_at=m.created_at,
                )
                for m in models
            ]
