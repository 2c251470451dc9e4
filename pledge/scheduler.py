# -*- coding: utf-8 -*-

"""Schedulers used by the promises to defer the execution of callbacks.

A scheduler is any object with a ``schedule(fn)`` method. The method must
return immediately, and ``fn`` must be called later, without argument, in the
same order as the calls to ``schedule()``.

Two implementations are available:
- ``ManualScheduler`` keeps the tasks in a queue until they're explicitly run.
  It's mainly useful in tests, or when embedded in an existing event loop.
- ``ThreadScheduler`` executes the tasks, one at a time, in a worker thread.
"""

from collections import deque
from concurrent.futures import ThreadPoolExecutor
import logging
from threading import Lock

from . import config

_logger = logging.getLogger(__name__)


def _exec_task(task):
    try:
        task()
    except Exception:
        _logger.exception('Scheduled task %r raised an exception!', task)


class ManualScheduler(object):
    """FIFO scheduler whose tasks are executed only on demand.

    Tasks scheduled while the queue is being run are appended at the end of
    the queue, and so are executed by the same call to ``run()``.
    """

    def __init__(self):
        self._queue = deque()
        self._lock = Lock()

    def schedule(self, task):
        with self._lock:
            self._queue.append(task)

    def run_once(self):
        """Execute the oldest task of the queue.

        Returns:
            boolean: True if a task has been executed; False if the queue was
                empty.
        """
        with self._lock:
            if not self._queue:
                return False
            task = self._queue.popleft()
        _exec_task(task)
        return True

    def run(self, limit=None):
        """Execute the tasks until the queue is empty.

        Args:
            limit (int, optional): if set, maximum number of tasks executed.
        Returns:
            int: number of tasks executed.
        """
        count = 0
        while limit is None or count < limit:
            if not self.run_once():
                break
            count += 1
        return count

    def __len__(self):
        with self._lock:
            return len(self._queue)


class ThreadScheduler(object):
    """Execute the tasks in order, in a dedicated worker thread.

    The thread is started at the first scheduled task. A single worker is used
    so the tasks are never executed concurrently, and always in order.
    """

    def __init__(self, name='pledge'):
        """
        Args:
            name (str): prefix of the worker thread's name.
        """
        self._name = name
        self._executor = None
        self._lock = Lock()

    def schedule(self, task):
        with self._lock:
            if self._executor is None:
                _logger.debug('Start scheduler thread "%s"', self._name)
                self._executor = ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix=self._name)
            self._executor.submit(_exec_task, task)

    def shutdown(self, wait=True):
        """Stop the worker thread.

        Tasks already scheduled are executed before the thread stops. A task
        scheduled after the shutdown starts a new worker thread.

        Args:
            wait (boolean): if True, returns only when the worker thread is
                joined.
        """
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            _logger.debug('Stop scheduler thread "%s"', self._name)
            executor.shutdown(wait=wait)

    def __enter__(self):
        return self

    def __exit__(self, _type, _value, _tb):
        self.shutdown()


_default_scheduler = None
# True if _default_scheduler has been built from the config by this module.
_default_is_built = False
_default_lock = Lock()


def _build_scheduler(kind):
    if kind == 'thread':
        return ThreadScheduler()
    elif kind == 'manual':
        return ManualScheduler()
    raise ValueError('Unknown scheduler kind "%s". Expected "thread" or '
                     '"manual".' % kind)


def get_default_scheduler():
    """Returns the scheduler used by promises created without scheduler.

    It's created at the first call, from the 'scheduler' config entry.
    """
    global _default_scheduler, _default_is_built

    with _default_lock:
        if _default_scheduler is None:
            _default_scheduler = _build_scheduler(config.get('scheduler'))
            _default_is_built = True
        return _default_scheduler


def set_default_scheduler(scheduler):
    """Replace the default scheduler.

    Promises already created keep their own scheduler.

    If the previous default scheduler was built from the config, it's shut
    down; its pending tasks are still executed. A scheduler passed to this
    function stays owned by the caller, and is never shut down here.

    Args:
        scheduler: object with a `schedule()` method. If None, the default
            scheduler will be built again from the config at the next use.
    """
    global _default_scheduler, _default_is_built

    with _default_lock:
        previous, is_built = _default_scheduler, _default_is_built
        _default_scheduler = scheduler
        _default_is_built = False

    if is_built and previous is not scheduler:
        shutdown = getattr(previous, 'shutdown', None)
        if shutdown is not None:
            shutdown(wait=False)
