from __future__ import annotations

from dataclasses import dataclass

from redis import Redis
from rq import Queue, Worker

from .config import PipelineConfig
from .pipeline import BatchPipeline
from .repository import SqlAlchemyRunRepository


@dataclass
class QueuedRunSettings:
    database_url: str
    config: PipelineConfig


def run_batch_job(run_id: str, settings: QueuedRunSettings) -> None:
    """
    RQ task entrypoint. Creates the run ledger and pipeline, then executes the run.
    """
    repo = SqlAlchemyRunRepository(settings.database_url)
    pipeline = BatchPipeline(settings.config, repository=repo)
    pipeline.run(run_id)


class RQJobQueue:
    """
    Redis-backed queue of batch runs using RQ. Workers are started by calling
    `work()` in a dedicated process.
    """

    def __init__(self, redis_url: str = "redis://localhost:6379/0", queue_name: str = "saol-runs"):
        self.redis = Redis.from_url(redis_url)
        self.queue = Queue(queue_name, connection=self.redis)

    def enqueue_run(self, run_id: str, settings: QueuedRunSettings):
        """
        Enqueue a batch run. RQ job_id is set to the run id for idempotency.
        """
        return self.queue.enqueue(run_batch_job, run_id, settings, job_id=run_id, job_timeout=-1)

    def work(self):
        worker = Worker([self.queue], connection=self.redis)
        worker.work(with_scheduler=True)
