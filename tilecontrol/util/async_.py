# This file is part of the TileControl project.
# Copyright (C) 2026 Omniscale <http://omniscale.de>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Concurrent execution of independent calls.

Runs the side effects of a layergroup creation (map view counter and
affected tables query) at the same time.
"""
import queue
import sys
import threading

import logging
log_system = logging.getLogger('tilecontrol.system')

MAX_ASYNC_THREADS = 8


class AsyncResult(object):
    """
    Outcome of one call: the return value, or the ``sys.exc_info()``
    tuple of the exception it raised.
    """
    def __init__(self, result=None, exception=None):
        self.result = result
        self.exception = exception

    def get(self):
        """
        Return the result or re-raise the exception of the call.
        """
        if self.exception is not None:
            _exc_class, exc, tb = self.exception
            raise exc.with_traceback(tb)
        return self.result

    def __repr__(self):
        return "<AsyncResult result='%s' exception='%s'>" % (
            self.result, self.exception)


def _call(func, args):
    try:
        return AsyncResult(func(*args))
    except Exception:
        return AsyncResult(exception=sys.exc_info())


class CallWorker(threading.Thread):
    """
    Takes ``(index, func, args)`` tasks from `tasks` until it is empty
    and stores the results at their index.
    """
    def __init__(self, tasks, results):
        threading.Thread.__init__(self)
        self.daemon = True
        self.tasks = tasks
        self.results = results

    def run(self):
        while True:
            try:
                idx, func, args = self.tasks.get_nowait()
            except queue.Empty:
                return
            self.results[idx] = _call(func, args)


class ThreadPool(object):
    """
    Run calls in up to `size` worker threads.
    With ``size < 2`` all calls run sequentially in the calling thread.
    """
    def __init__(self, size=4):
        self.size = size

    def call_all(self, calls):
        """
        Call each ``(func, *args)`` tuple of `calls` and return an
        `AsyncResult` for each, in call order.
        """
        calls = list(calls)
        if self.size < 2:
            return [_call(call[0], call[1:]) for call in calls]

        tasks = queue.Queue()
        for idx, call in enumerate(calls):
            tasks.put((idx, call[0], call[1:]))

        results = [None] * len(calls)
        workers = [CallWorker(tasks, results) for _ in range(min(self.size, len(calls)))]
        for worker in workers:
            worker.start()
        for worker in workers:
            worker.join()
        return results

    def starcall(self, calls, use_result_objects=False):
        """
        Call each ``(func, *args)`` tuple of `calls` concurrently.

        >>> ThreadPool(2).starcall([(max, 1, 2), (min, 1, 2)])
        [2, 1]

        :param use_result_objects: return `AsyncResult` objects instead
            of raising the first exception.
        """
        results = self.call_all(calls)
        if use_result_objects:
            return results
        return [result.get() for result in results]


def starcall(args, max_threads=MAX_ASYNC_THREADS, use_result_objects=False):
    """
    Call each ``(func, *args)`` tuple concurrently and return all results
    as a list, in call order.
    """
    if not args:
        return []
    pool = ThreadPool(min(len(args), max_threads))
    results = pool.starcall(args, use_result_objects=use_result_objects)
    log_system.debug('finished %d concurrent calls', len(results))
    return results
