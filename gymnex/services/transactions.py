"""Class-scoped units of work.

Every write that reads a class's booking or waitlist state and then decides
what to write runs inside :meth:`ClassTransactions.run`. The unit holds an
in-process lock for the class, re-reads the class row ``FOR UPDATE`` and
commits or rolls back as a whole. Side effects such as notifications are
queued with :meth:`ClassUnit.after_commit` and only run once the commit has
succeeded and the lock has been released.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TypeVar

from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from ..config import get_settings
from ..core.errors import ClassNotFound, DeadlineExceeded, TryAgain
from ..db import models

logger = logging.getLogger(__name__)

T = TypeVar("T")
PostCommitHook = Callable[[], None]


class ClassLockRegistry:
    """One lock per class id. Operations on different classes never contend."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[int, threading.Lock] = {}

    def lock_for(self, class_id: int) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(class_id)
            if lock is None:
                lock = self._locks[class_id] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, class_id: int, deadline: float | None = None) -> Iterator[None]:
        lock = self.lock_for(class_id)
        if deadline is None:
            acquired = lock.acquire()
        else:
            acquired = lock.acquire(timeout=max(deadline - time.monotonic(), 0))
        if not acquired:
            raise DeadlineExceeded("Timed out waiting for the class to become available")
        try:
            yield
        finally:
            lock.release()


@dataclass
class ClassUnit:
    db: Session
    class_session: models.ClassSession
    deadline: float | None = None
    hooks: list[PostCommitHook] = field(default_factory=list)

    @property
    def class_id(self) -> int:
        return self.class_session.id

    def after_commit(self, hook: PostCommitHook) -> None:
        self.hooks.append(hook)

    def check_deadline(self) -> None:
        if self.deadline is not None and time.monotonic() > self.deadline:
            raise DeadlineExceeded()


def _log_retry(retry_state) -> None:
    logger.warning(
        "Class transaction conflict, retrying",
        extra={
            "attempt": retry_state.attempt_number,
            "error": repr(retry_state.outcome.exception()),
        },
    )


class ClassTransactions:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        locks: ClassLockRegistry | None = None,
        *,
        max_attempts: int | None = None,
        backoff_max: float | None = None,
    ) -> None:
        settings = get_settings()
        self.session_factory = session_factory
        self.locks = locks or ClassLockRegistry()
        self.max_attempts = max_attempts or settings.enrollment_max_attempts
        self.backoff_max = (
            backoff_max if backoff_max is not None else settings.enrollment_backoff_max
        )

    def run(
        self,
        class_id: int,
        work: Callable[[ClassUnit], T],
        *,
        timeout: float | None = None,
    ) -> T:
        deadline = time.monotonic() + timeout if timeout is not None else None
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_random_exponential(multiplier=0.05, max=self.backoff_max),
            retry=retry_if_exception_type(OperationalError),
            before_sleep=_log_retry,
        )
        try:
            for attempt in retrying:
                with attempt:
                    result, hooks = self._attempt(class_id, work, deadline)
        except RetryError as exc:
            logger.error(
                "Class transaction kept conflicting",
                extra={"class_id": class_id, "attempts": self.max_attempts},
            )
            raise TryAgain() from exc.last_attempt.exception()
        self.run_hooks(hooks)
        return result

    def _attempt(
        self,
        class_id: int,
        work: Callable[[ClassUnit], T],
        deadline: float | None,
    ) -> tuple[T, list[PostCommitHook]]:
        with self.locks.hold(class_id, deadline):
            db = self.session_factory()
            try:
                class_session = db.execute(
                    select(models.ClassSession)
                    .where(models.ClassSession.id == class_id)
                    .with_for_update()
                ).scalar_one_or_none()
                if class_session is None:
                    raise ClassNotFound()
                unit = ClassUnit(db=db, class_session=class_session, deadline=deadline)
                result = work(unit)
                unit.check_deadline()
                db.commit()
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()
        return result, unit.hooks

    @staticmethod
    def run_hooks(hooks: list[PostCommitHook]) -> None:
        for hook in hooks:
            try:
                hook()
            except Exception:
                logger.exception(
                    "Post-commit hook failed",
                    extra={"hook": getattr(hook, "__name__", repr(hook))},
                )
