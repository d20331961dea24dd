"""Bounded scatter-gather execution of one operation over many releases."""

import queue
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Sequence

from chartfleet.errors import ChartfleetError, ReleaseFailedError
from chartfleet.models import DefaultsConfig, Err, Ok, Outcome, ReleaseSpec, Result

Operation = Callable[[ReleaseSpec, int], Optional[Result]]

_DONE = object()


def collect_failures(outcomes: Sequence[Outcome]) -> List[ReleaseFailedError]:
    return [
        ReleaseFailedError(outcome.release, outcome.error) for outcome in outcomes if not outcome.ok
    ]


def resolve_concurrency(concurrency: int, items: int, exclusive: bool) -> int:
    """Returns the number of workers a pool run will start.

    Out-of-range values fall back to one worker per item. Exclusive access
    always wins and serializes the run, whatever the caller asked for.
    """
    if concurrency < 1 or concurrency > items:
        concurrency = items

    if exclusive:
        concurrency = 1

    return concurrency


class ScatterGatherPool:
    """Runs an operation over releases with a fixed number of worker threads.

    One producer feeds releases through a single-slot queue, the workers
    publish one outcome per release, and the calling thread aggregates exactly
    as many outcomes as there were releases. The call returns only after every
    worker thread has been joined.
    """

    THREAD_NAME_PREFIX = "chartfleet-pool"

    def __init__(self, logger, defaults: Optional[DefaultsConfig] = None):
        self.logger = logger
        self.defaults = defaults or DefaultsConfig()

    def requires_exclusive_access(self, releases: Sequence[ReleaseSpec]) -> bool:
        return any(release.requires_exclusive_access(self.defaults) for release in releases)

    def run(
        self,
        releases: Sequence[ReleaseSpec],
        concurrency: int,
        operation: Operation,
    ) -> List[ReleaseFailedError]:
        return collect_failures(self.scatter_gather(releases, concurrency, operation))

    def scatter_gather(
        self,
        releases: Sequence[ReleaseSpec],
        concurrency: int,
        operation: Operation,
    ) -> List[Outcome]:
        """Returns every outcome in completion order.

        An operation that raises a non-``Exception`` (``SystemExit``,
        ``KeyboardInterrupt``) still yields an outcome, the remaining releases
        are still attempted, and the first such exception is re-raised once
        every worker has been joined.
        """
        inputs = list(releases)
        if not inputs:
            return []

        concurrency = resolve_concurrency(
            concurrency,
            len(inputs),
            self.requires_exclusive_access(inputs),
        )

        jobs: "queue.Queue[object]" = queue.Queue(maxsize=1)
        results: "queue.Queue[Outcome]" = queue.Queue()
        outcomes: List[Outcome] = []
        interrupts: List[BaseException] = []

        with ThreadPoolExecutor(
            max_workers=concurrency + 1,
            thread_name_prefix=self.THREAD_NAME_PREFIX,
        ) as executor:
            futures = [executor.submit(self._produce, jobs, inputs, concurrency)]
            for worker_id in range(1, concurrency + 1):
                futures.append(
                    executor.submit(
                        self._work, worker_id, concurrency, jobs, results, operation, interrupts
                    )
                )

            for index in range(len(inputs)):
                self.logger.debug("receiving result %d", index)
                outcome = results.get()
                if outcome.ok:
                    self.logger.debug('received result for release "%s"', outcome.release.name)
                outcomes.append(outcome)
                self.logger.debug("received result for %d", index)

        # Leaving the executor joined every thread; surface failures of the
        # pool machinery itself rather than of an operation.
        for future in futures:
            future.result()

        if interrupts:
            raise interrupts[0]

        return outcomes

    def _produce(self, jobs: queue.Queue, inputs: List[ReleaseSpec], concurrency: int):
        for release in inputs:
            jobs.put(release)
        for _ in range(concurrency):
            jobs.put(_DONE)

    def _work(
        self,
        worker_id: int,
        concurrency: int,
        jobs: queue.Queue,
        results: queue.Queue,
        operation: Operation,
        interrupts: List[BaseException],
    ):
        self.logger.debug("worker %d/%d started", worker_id, concurrency)
        while True:
            release = jobs.get()
            if release is _DONE:
                break

            error = self._invoke(operation, release, worker_id, interrupts)
            self.logger.debug("sending result for release: %s", release.name)
            results.put(Outcome(release=release, worker_id=worker_id, error=error))
            self.logger.debug("sent result for release: %s", release.name)
        self.logger.debug("worker %d/%d finished", worker_id, concurrency)

    def _invoke(
        self,
        operation: Operation,
        release: ReleaseSpec,
        worker_id: int,
        interrupts: List[BaseException],
    ):
        try:
            result = operation(release, worker_id)
        except Exception as exc:
            self.logger.debug("operation raised for release %s: %s", release.id, exc)
            return exc
        except BaseException as exc:
            self.logger.debug("operation interrupted for release %s: %r", release.id, exc)
            interrupts.append(exc)
            return exc

        if result is None or isinstance(result, Ok):
            return None
        if isinstance(result, Err):
            if result.error is None:
                return ChartfleetError("operation failed without an error value")
            return result.error
        return ChartfleetError(f"operation returned an unsupported result: {result!r}")
