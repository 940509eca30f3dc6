"""
Job queue decoupling document acceptance from document processing.

Delivery is at-least-once: handlers must be idempotent. The job id doubles as
the deduplication key, so enqueueing the same document twice while its job is
still pending is absorbed instead of creating a second job.
"""
import json
import logging
import threading
import time
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional, Set

from google.api_core.exceptions import AlreadyExists, GoogleAPICallError
from google.cloud import tasks_v2
from google.protobuf import timestamp_pb2

from docchat.core.config import settings
from docchat.core.exceptions import EnqueueError, NotFoundError, RetryableJobError

logger = logging.getLogger(__name__)

PROCESS_DOCUMENT = "process_document"
PROCESS_DOCUMENT_FOR_REVIEW = "process_document_for_review"


@dataclass
class Job:
    name: str
    payload: Dict[str, Any]
    job_id: str
    attempt: int = 1
    max_attempts: int = 1

    @property
    def is_last_attempt(self) -> bool:
        return self.attempt >= self.max_attempts


JobHandler = Callable[[Job], None]
ExhaustedHook = Callable[[Job, BaseException], None]


@dataclass
class JobRegistry:
    """Maps job names to the handlers that consume them."""

    handlers: Dict[str, JobHandler] = field(default_factory=dict)
    exhausted_hooks: Dict[str, ExhaustedHook] = field(default_factory=dict)

    def register(self, name: str, handler: JobHandler, on_exhausted: Optional[ExhaustedHook] = None) -> None:
        self.handlers[name] = handler
        if on_exhausted is not None:
            self.exhausted_hooks[name] = on_exhausted
        logger.info(f"Registered job handler '{name}'")

    def dispatch(self, job: Job) -> None:
        handler = self.handlers.get(job.name)
        if handler is None:
            raise NotFoundError(f"No handler registered for job '{job.name}'")
        logger.info(f"Running job {job.name}:{job.job_id} (attempt {job.attempt}/{job.max_attempts})")
        handler(job)

    def exhausted(self, job: Job, error: BaseException) -> None:
        logger.error(f"Job {job.name}:{job.job_id} gave up after {job.attempt} attempts: {error}")
        hook = self.exhausted_hooks.get(job.name)
        if hook is not None:
            hook(job, error)


class TaskQueue(ABC):
    """Producer side of the job queue."""

    @abstractmethod
    def enqueue(self, job_name: str, payload: Dict[str, Any], job_id: str) -> bool:
        """
        Hand a job to the queue.

        Returns:
            True if a new job was created, False if an existing one absorbed it

        Raises:
            EnqueueError: If the queue could not accept the job
        """

    def shutdown(self) -> None:
        """Release queue resources."""


class LocalTaskQueue(TaskQueue):
    """
    In-process queue backed by a thread pool.

    ``eager=True`` runs each job inline inside ``enqueue`` (local development
    and tests); otherwise ``concurrency`` workers consume jobs in parallel.
    Failed attempts are retried with exponential backoff.
    """

    def __init__(
        self,
        registry: JobRegistry,
        concurrency: int = settings.QUEUE_CONCURRENCY,
        max_attempts: int = settings.JOB_MAX_ATTEMPTS,
        backoff_seconds: float = settings.JOB_RETRY_BACKOFF_SECONDS,
        eager: bool = False,
    ):
        self.registry = registry
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.eager = eager
        self._executor = None if eager else ThreadPoolExecutor(
            max_workers=concurrency, thread_name_prefix="docchat-job"
        )
        self._lock = threading.Lock()
        self._active: Set[str] = set()
        self._futures: Set[Future] = set()

    def enqueue(self, job_name: str, payload: Dict[str, Any], job_id: str) -> bool:
        with self._lock:
            if job_id in self._active:
                logger.info(f"Job {job_name}:{job_id} already pending, enqueue absorbed")
                return False
            self._active.add(job_id)

        job = Job(name=job_name, payload=payload, job_id=job_id, attempt=1, max_attempts=self.max_attempts)
        if self.eager:
            logger.info(f"LOCAL ENV: Running job {job_name}:{job_id} synchronously")
            self._run(job)
            return True

        try:
            future = self._executor.submit(self._run, job)
        except RuntimeError as e:
            with self._lock:
                self._active.discard(job_id)
            raise EnqueueError(f"Failed to enqueue job {job_id}", cause=e)
        with self._lock:
            self._futures.add(future)
        future.add_done_callback(self._forget)
        logger.info(f"Job {job_name}:{job_id} queued")
        return True

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._futures.discard(future)

    def _run(self, job: Job) -> None:
        try:
            while True:
                try:
                    self.registry.dispatch(job)
                    logger.info(f"Job {job.name}:{job.job_id} completed")
                    return
                except Exception as e:
                    if not isinstance(e, RetryableJobError):
                        logger.exception(f"Job {job.name}:{job.job_id} raised unexpectedly")
                    if job.is_last_attempt:
                        self.registry.exhausted(job, e)
                        return
                    delay = self.backoff_seconds * (2 ** (job.attempt - 1))
                    logger.warning(
                        f"Job {job.name}:{job.job_id} attempt {job.attempt} failed ({e}), retrying in {delay:.1f}s"
                    )
                    if delay > 0:
                        time.sleep(delay)
                    job = replace(job, attempt=job.attempt + 1)
        finally:
            with self._lock:
                self._active.discard(job.job_id)

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait for every queued job to finish."""
        with self._lock:
            pending = list(self._futures)
        if pending:
            wait(pending, timeout=timeout)

    def shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)


class CloudTasksQueue(TaskQueue):
    """
    Google Cloud Tasks queue.

    Each job becomes an HTTP task named after its job id, so Cloud Tasks itself
    rejects duplicates. Tasks are delivered to the internal job endpoint.
    """

    def __init__(
        self,
        project: str = settings.GCS_PROJECT_ID,
        location: str = settings.CLOUD_TASKS_LOCATION,
        queue: str = settings.CLOUD_TASKS_QUEUE,
        backend_url: str = settings.BACKEND_URL,
        client: Optional[tasks_v2.CloudTasksClient] = None,
    ):
        self.client = client or tasks_v2.CloudTasksClient()
        self.project = project
        self.location = location
        self.queue = queue
        self.backend_url = backend_url.rstrip("/")
        self.parent = self.client.queue_path(project, location, queue)

    def enqueue(self, job_name: str, payload: Dict[str, Any], job_id: str, delay_seconds: int = 0) -> bool:
        task = {
            "name": self.client.task_path(self.project, self.location, self.queue, job_id),
            "http_request": {
                "http_method": tasks_v2.HttpMethod.POST,
                "url": f"{self.backend_url}{settings.API_V1_PREFIX}/internal/jobs/{job_name}",
                "headers": {
                    "Content-Type": "application/json",
                },
                "body": json.dumps({"job_id": job_id, "payload": payload}).encode(),
            },
        }

        # Add delay if specified
        if delay_seconds > 0:
            d = datetime.now(timezone.utc) + timedelta(seconds=delay_seconds)
            timestamp = timestamp_pb2.Timestamp()
            timestamp.FromDatetime(d)
            task["schedule_time"] = timestamp

        try:
            response = self.client.create_task(request={"parent": self.parent, "task": task})
        except AlreadyExists:
            logger.info(f"Task for job {job_name}:{job_id} already exists, enqueue absorbed")
            return False
        except GoogleAPICallError as e:
            logger.error(f"Failed to create task for job {job_name}:{job_id}: {e}")
            raise EnqueueError(f"Failed to enqueue job {job_id}", cause=e)

        logger.info(f"Created task {response.name} for job {job_name}:{job_id}")
        return True
