"""Asynchronous submission through a job queue.

``SubmittableRequest.submit_later()`` records only the client name, the action
name and the action's arguments in a :class:`JobInvocation`. A worker later
replays the action to rebuild the request and submits it synchronously. Job
classes decide, through ``retry_on`` and ``after_perform``, what happens with
the response.
"""

from __future__ import annotations

import importlib
import logging
import random
import threading
import traceback
import uuid
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Iterable, Sequence

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import ConfigurationError, StatusMismatchError
from .security import parse_retry_after
from .status import StatusFilter, StatusSpec

if TYPE_CHECKING:
    from .response import Response

logger = logging.getLogger(__name__)


class JobStatus(Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    RETRYING = "retrying"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobInvocation(BaseModel):
    """Everything persisted between ``submit_later()`` and the worker."""

    model_config = ConfigDict(extra="forbid")

    job_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    job_class: str
    client: str
    action: str
    arguments: list[Any] = Field(default_factory=list)
    keyword_arguments: dict[str, Any] = Field(default_factory=dict)
    queue: str = "default"
    priority: int | None = None
    wait: float | None = None
    enqueued_at: datetime = Field(default_factory=_utcnow)
    scheduled_at: datetime | None = None
    executions: int = 0
    options: dict[str, Any] = Field(default_factory=dict)

    @property
    def call(self) -> tuple[str, str, list[Any], dict[str, Any]]:
        return (self.client, self.action, self.arguments, self.keyword_arguments)


@dataclass
class JobResult:
    job_id: str
    status: JobStatus
    invocation: JobInvocation
    error: str | None = None
    exception: BaseException | None = None
    retry_in: float | None = None

    @property
    def is_success(self) -> bool:
        return self.status == JobStatus.COMPLETED

    @property
    def is_failure(self) -> bool:
        return self.status == JobStatus.FAILED


class JobQueue(ABC):
    """Abstract queue of pending job invocations."""

    @abstractmethod
    def push(self, invocation: JobInvocation) -> None:
        pass

    @abstractmethod
    def pop(self) -> JobInvocation | None:
        pass

    @abstractmethod
    def peek(self) -> JobInvocation | None:
        pass

    @abstractmethod
    def size(self) -> int:
        pass

    @abstractmethod
    def clear(self) -> None:
        pass

    @abstractmethod
    def jobs(self, queue: str | None = None) -> list[JobInvocation]:
        pass


class MemoryQueue(JobQueue):
    """In-process FIFO queue; invocations are stored as JSON."""

    def __init__(self) -> None:
        self._queue: deque[str] = deque()
        self._lock = threading.Lock()

    def push(self, invocation: JobInvocation) -> None:
        with self._lock:
            self._queue.append(invocation.model_dump_json())

    def pop(self) -> JobInvocation | None:
        with self._lock:
            if self._queue:
                return JobInvocation.model_validate_json(self._queue.popleft())
            return None

    def peek(self) -> JobInvocation | None:
        with self._lock:
            if self._queue:
                return JobInvocation.model_validate_json(self._queue[0])
            return None

    def size(self) -> int:
        return len(self._queue)

    def clear(self) -> None:
        with self._lock:
            self._queue.clear()

    def jobs(self, queue: str | None = None) -> list[JobInvocation]:
        with self._lock:
            pending = [JobInvocation.model_validate_json(raw) for raw in self._queue]
        return [job for job in pending if queue is None or job.queue == queue]


@dataclass(frozen=True)
class RetryRule:
    error_kinds: tuple[type[BaseException], ...]
    status_filter: StatusFilter | None
    attempts: int = 5
    wait: float | Callable[[int], float] | None = None

    def handles(self, error: BaseException) -> bool:
        if isinstance(error, StatusMismatchError) and self.status_filter is not None:
            return self.status_filter.matches(error.response.status)
        return bool(self.error_kinds) and isinstance(error, self.error_kinds)


@dataclass(frozen=True)
class AfterPerformHook:
    hook: Callable[[Any], Any]
    status_filter: StatusFilter | None


_job_classes: dict[str, type[SubmissionJob]] = {}


def job_name(job_class: type) -> str:
    return f"{job_class.__module__}.{job_class.__qualname__}"


def lookup_job(name: str) -> type[SubmissionJob]:
    if name in _job_classes:
        return _job_classes[name]
    module_name, _, attribute = name.rpartition(".")
    try:
        target: Any = importlib.import_module(module_name)
        for part in attribute.split("."):
            target = getattr(target, part)
    except (ImportError, AttributeError, ValueError):
        raise ConfigurationError(f"unknown submission job {name!r}") from None
    if not (isinstance(target, type) and issubclass(target, SubmissionJob)):
        raise ConfigurationError(f"{name!r} is not a SubmissionJob")
    return target


class SubmissionJob:
    """Replay an action off the calling thread and submit it.

    Subclasses customise behaviour per client::

        class MetricsJob(SubmissionJob):
            pass

        MetricsJob.retry_on(httpx.TimeoutException, only_status=range(500, 600))
        MetricsJob.after_perform(record_failure, only_status=range(400, 600))
    """

    queue_adapter: JobQueue = MemoryQueue()
    queue_name = "default"
    retry_base_delay = 3.0
    retry_max_delay = 600.0
    jitter_range = 0.15

    after_perform_hooks: list[AfterPerformHook] = []
    retry_rules: list[RetryRule] = []

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        cls.after_perform_hooks = list(cls.after_perform_hooks)
        cls.retry_rules = list(cls.retry_rules)
        _job_classes[job_name(cls)] = cls

    def __init__(self, invocation: JobInvocation | None = None) -> None:
        self.invocation = invocation
        self.response: Response | None = None
        self.retry_requested = False
        self.retry_wait: float | None = None

    # -- declarations ---------------------------------------------------------

    @classmethod
    def after_perform(
        cls,
        hook: Callable[[Any], Any] | None = None,
        *,
        only_status: StatusSpec = None,
        except_status: StatusSpec = None,
    ) -> Any:
        """Run ``hook(job)`` after a successful perform whose status matches.

        Usable directly or as a decorator.
        """
        if only_status is None and except_status is None:
            status_filter = None
        else:
            status_filter = StatusFilter.from_options(only_status, except_status)

        def register(func: Callable[[Any], Any]) -> Callable[[Any], Any]:
            cls.after_perform_hooks.append(AfterPerformHook(func, status_filter))
            return func

        if hook is None:
            return register
        return register(hook)

    @classmethod
    def retry_on(
        cls,
        *error_kinds: type[BaseException],
        only_status: StatusSpec = None,
        except_status: StatusSpec = None,
        attempts: int = 5,
        wait: float | Callable[[int], float] | None = None,
    ) -> RetryRule:
        """Retry on the given errors, and on responses whose status matches the filter."""
        if only_status is None and except_status is None:
            status_filter = None
        else:
            status_filter = StatusFilter.from_options(only_status, except_status)
        if not error_kinds and status_filter is None:
            raise ConfigurationError("retry_on needs error classes, a status filter, or both")
        if attempts < 1:
            raise ConfigurationError("attempts must be at least 1")
        rule = RetryRule(tuple(error_kinds), status_filter, attempts, wait)
        cls.retry_rules.append(rule)
        return rule

    @classmethod
    def reset_callbacks(cls) -> None:
        cls.after_perform_hooks = []
        cls.retry_rules = []

    @classmethod
    def rule_for(cls, error: BaseException) -> RetryRule | None:
        for rule in cls.retry_rules:
            if rule.handles(error):
                return rule
        return None

    # -- enqueueing -----------------------------------------------------------

    @classmethod
    def enqueue(
        cls,
        client: str,
        action: str | None,
        arguments: Sequence[Any] = (),
        keyword_arguments: dict[str, Any] | None = None,
        *,
        queue: str | None = None,
        wait: float | None = None,
        priority: int | None = None,
        **options: Any,
    ) -> JobInvocation:
        if action is None:
            raise ConfigurationError("only requests built by an action can be submitted later")
        invocation = JobInvocation(
            job_class=job_name(cls),
            client=client,
            action=action,
            arguments=list(arguments),
            keyword_arguments=dict(keyword_arguments or {}),
            queue=queue or cls.queue_name,
            priority=priority,
            wait=wait,
            scheduled_at=_utcnow() + timedelta(seconds=wait) if wait else None,
            options=options,
        )
        # Round-trip through JSON so the job only ever sees what a real queue would.
        invocation = JobInvocation.model_validate_json(invocation.model_dump_json())
        if invocation.arguments != list(arguments) or invocation.keyword_arguments != dict(keyword_arguments or {}):
            raise ConfigurationError(
                f"arguments of {client}#{action} do not survive JSON serialization unchanged; "
                "pass JSON types (str, int, float, bool, None, list, dict with str keys)"
            )
        cls.queue_adapter.push(invocation)
        logger.info("enqueued %s#%s as %s on %s", client, action, invocation.job_id, invocation.queue)
        return invocation

    # -- performing -----------------------------------------------------------

    def perform(self, client_name: str, action_name: str, *arguments: Any, **keyword_arguments: Any) -> Response:
        from .client import lookup_client

        client_class = lookup_client(client_name)
        request = client_class.process(action_name, *arguments, **keyword_arguments)
        self.response = request.submit()
        return self.response

    def perform_now(self) -> Response:
        if self.invocation is None:
            raise ConfigurationError("perform_now() needs a job invocation")
        client, action, arguments, keyword_arguments = self.invocation.call
        response = self.perform(client, action, *arguments, **keyword_arguments)

        for rule in self.retry_rules:
            if rule.status_filter is not None and rule.status_filter.matches(response.status):
                raise StatusMismatchError(response)

        for entry in self.after_perform_hooks:
            if entry.status_filter is None or entry.status_filter.matches(response.status):
                entry.hook(self)
        return response

    def retry_job(self, wait: float | None = None) -> None:
        """Ask the worker to enqueue this job again once the current run ends."""
        self.retry_requested = True
        self.retry_wait = wait

    @classmethod
    def backoff(cls, executions: int, error: BaseException | None = None, rule: RetryRule | None = None) -> float:
        if rule is not None and rule.wait is not None:
            return rule.wait(executions) if callable(rule.wait) else float(rule.wait)
        if isinstance(error, StatusMismatchError):
            retry_after = parse_retry_after(error.response.headers.get("Retry-After"))
            if retry_after is not None:
                return min(retry_after, cls.retry_max_delay)
        base = cls.retry_base_delay * (2 ** max(0, executions - 1))
        jitter = random.uniform(0, cls.jitter_range * base)
        return min(cls.retry_max_delay, base + jitter)

    @classmethod
    def requeue(cls, invocation: JobInvocation, wait: float) -> JobInvocation:
        retried = invocation.model_copy(
            update={"wait": wait, "scheduled_at": _utcnow() + timedelta(seconds=wait)}
        )
        cls.queue_adapter.push(retried)
        return retried


_job_classes[job_name(SubmissionJob)] = SubmissionJob


class Worker:
    """Drain a queue, executing each job and applying its retry rules.

    Scheduling delays are ignored unless ``sleep`` is given; with
    ``sleep=time.sleep`` the worker waits until each job is due.
    """

    def __init__(self, queue: JobQueue | None = None, *, sleep: Callable[[float], Any] | None = None) -> None:
        self.queue = queue or SubmissionJob.queue_adapter
        self.sleep = sleep
        self.performed: list[JobResult] = []
        self.failed: list[JobResult] = []

    def execute(self, invocation: JobInvocation) -> JobResult:
        invocation = invocation.model_copy(update={"executions": invocation.executions + 1})
        job_class: type[SubmissionJob] | None = None
        try:
            job_class = lookup_job(invocation.job_class)
            job = job_class(invocation)
            job.perform_now()
        except Exception as exc:
            rule = job_class.rule_for(exc) if job_class is not None else None
            if rule is not None and invocation.executions < rule.attempts:
                wait = job_class.backoff(invocation.executions, exc, rule)
                job_class.requeue(invocation, wait)
                logger.warning(
                    "job %s failed with %s, retrying in %.2fs (execution %d of %d)",
                    invocation.job_id, type(exc).__name__, wait, invocation.executions, rule.attempts,
                )
                return JobResult(invocation.job_id, JobStatus.RETRYING, invocation, str(exc), exc, wait)
            logger.error("job %s failed: %s", invocation.job_id, exc, exc_info=exc)
            result = JobResult(
                invocation.job_id,
                JobStatus.FAILED,
                invocation,
                f"{type(exc).__name__}: {exc}\n{traceback.format_exc()}",
                exc,
            )
            self.failed.append(result)
            return result

        if job.retry_requested:
            wait = job.retry_wait if job.retry_wait is not None else job_class.backoff(invocation.executions)
            job_class.requeue(invocation, wait)
            return JobResult(invocation.job_id, JobStatus.RETRYING, invocation, retry_in=wait)
        return JobResult(invocation.job_id, JobStatus.COMPLETED, invocation)

    def _wait_until_due(self, invocation: JobInvocation) -> None:
        if self.sleep is None or invocation.scheduled_at is None:
            return
        delay = (invocation.scheduled_at - _utcnow()).total_seconds()
        if delay > 0:
            self.sleep(delay)

    def work_off(self, max_jobs: int | None = None) -> list[JobResult]:
        """Perform queued jobs, including retries they enqueue, until the queue is empty."""
        results: list[JobResult] = []
        while max_jobs is None or len(results) < max_jobs:
            invocation = self.queue.pop()
            if invocation is None:
                break
            self._wait_until_due(invocation)
            result = self.execute(invocation)
            results.append(result)
            self.performed.append(result)
        return results

    drain = work_off


def perform_enqueued_jobs(queue: JobQueue | None = None, *, max_jobs: int | None = 100) -> list[JobResult]:
    """Synchronously run everything enqueued so far; meant for tests and scripts."""
    return Worker(queue).work_off(max_jobs=max_jobs)


def enqueued_jobs(queue: JobQueue | None = None, *, queue_name: str | None = None) -> list[JobInvocation]:
    return (queue or SubmissionJob.queue_adapter).jobs(queue_name)


def clear_enqueued_jobs(queues: Iterable[JobQueue] = ()) -> None:
    for queue in queues or (SubmissionJob.queue_adapter,):
        queue.clear()
