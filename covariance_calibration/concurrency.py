import abc
import logging
from concurrent.futures import ThreadPoolExecutor

logger = logging.getLogger(__name__)


def submission_order(number_of_tasks, priorities=None):
    """Indices of the tasks in the order they should be started.

    Lower priority values start first; ties keep their input order.
    """
    if priorities is None:
        return list(range(number_of_tasks))
    if len(priorities) != number_of_tasks:
        raise ValueError("Expected %d priorities, got %d." % (number_of_tasks, len(priorities)))
    return sorted(range(number_of_tasks), key=lambda i: priorities[i])


class TaskRunner(abc.ABC):
    """Runs a batch of zero-argument callables and returns their results.

    Results are always returned in the order of ``tasks``, whatever order the
    tasks were started or finished in.
    """

    @abc.abstractmethod
    def run(self, tasks, priorities=None):
        raise NotImplementedError

    def shutdown(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()
        return False


class InlineTaskRunner(TaskRunner):
    """Runs every task sequentially in the calling thread."""

    def run(self, tasks, priorities=None):
        tasks = list(tasks)
        results = [None] * len(tasks)
        for i in submission_order(len(tasks), priorities):
            results[i] = tasks[i]()
        return results


class ThreadPoolTaskRunner(TaskRunner):
    """Runs tasks on a :class:`concurrent.futures.ThreadPoolExecutor`.

    If the pool refuses work (for example because it has been shut down) the
    remaining tasks of the batch are run inline in the calling thread. The
    results are the same either way.

    Parameters
    ----------
    max_workers : int
        Size of the worker pool.
    executor : concurrent.futures.Executor or None
        Use an existing executor instead of creating one. A supplied executor
        is not shut down by :meth:`shutdown`.
    """

    def __init__(self, max_workers, executor=None):
        self.max_workers = int(max_workers)
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="calibration"
        )

    def run(self, tasks, priorities=None):
        tasks = list(tasks)
        results = [None] * len(tasks)
        futures = {}

        pool_available = True
        for i in submission_order(len(tasks), priorities):
            if pool_available:
                try:
                    futures[i] = self._executor.submit(tasks[i])
                    continue
                except RuntimeError as e:
                    logger.warning("Task pool unavailable (%s); running remaining tasks inline.", e)
                    pool_available = False
            results[i] = tasks[i]()

        for i, future in futures.items():
            results[i] = future.result()
        return results

    def shutdown(self):
        if self._owns_executor:
            self._executor.shutdown(wait=True)


def create_task_runner(number_of_threads):
    """Pool backed runner for a positive thread count, inline runner otherwise."""
    if number_of_threads is None or int(number_of_threads) <= 0:
        return InlineTaskRunner()
    return ThreadPoolTaskRunner(int(number_of_threads))
