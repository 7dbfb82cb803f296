import logging, queue, threading
from typing import Callable, Iterable, List, Optional, TypeVar

T = TypeVar('T')
R = TypeVar('R')

log = logging.getLogger("engblogs.pool")

_STOP = object()


def run_pool(items: Iterable[T], handler: Callable[[T], R], workers: int,
             on_error: Optional[Callable[[T, BaseException], R]] = None) -> List[R]:
    """Run ``handler`` over ``items`` on at most ``workers`` threads.

    Items go through a bounded queue; each worker takes the next item as
    soon as it is free, so results come back in completion order. Returns
    once every item has been handled and all workers have exited.
    A handler that raises is logged and its item mapped through ``on_error``
    (or dropped when no ``on_error`` is given).
    """
    items = list(items)
    if not items:
        return []
    if workers < 1:
        raise ValueError("workers must be >= 1")

    n = min(workers, len(items))
    tasks: queue.Queue = queue.Queue(maxsize=2 * n)
    results: queue.Queue = queue.Queue()

    def worker():
        while True:
            item = tasks.get()
            try:
                if item is _STOP:
                    return
                try:
                    results.put(handler(item))
                except Exception as e:
                    log.exception("Worker failed on %r", item)
                    if on_error is not None:
                        results.put(on_error(item, e))
            finally:
                tasks.task_done()

    threads = [threading.Thread(target=worker, name=f"engblogs-worker-{i}", daemon=True) for i in range(n)]
    for t in threads:
        t.start()

    for item in items:
        tasks.put(item)
    for _ in threads:
        tasks.put(_STOP)
    for t in threads:
        t.join()

    out = []
    while not results.empty():
        out.append(results.get_nowait())
    return out
