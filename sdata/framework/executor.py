# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

"""Execution state of a request.

A request is ``IDLE`` until started, ``RUNNING`` while its exchange loop is
active and ``ABORTED`` from an abort until the loop unwinds. Transitions
are compare-and-set operations over a fixed table, so only one exchange
can be in flight per request.
"""

from __future__ import annotations

import threading
from enum import IntEnum

from .._errors import RequestInProgressError

__all__ = ("RequestState", "RequestStateMachine")


class RequestState(IntEnum):
    IDLE = 0
    RUNNING = 1
    ABORTED = 2


class RequestStateMachine:
    TRANSITIONS = frozenset(
        {
            (RequestState.IDLE, RequestState.RUNNING),
            (RequestState.RUNNING, RequestState.IDLE),
            (RequestState.RUNNING, RequestState.ABORTED),
            (RequestState.ABORTED, RequestState.IDLE),
        }
    )

    def __init__(self) -> None:
        self._state = RequestState.IDLE
        self._lock = threading.Lock()

    @property
    def state(self) -> RequestState:
        return self._state

    @property
    def aborted(self) -> bool:
        return self._state is RequestState.ABORTED

    def compare_and_set(self, expected: RequestState, new: RequestState) -> bool:
        """Move from ``expected`` to ``new``; False if the state was not
        ``expected``.
        """
        if (expected, new) not in self.TRANSITIONS:
            raise ValueError(f"Invalid transition {expected.name} -> {new.name}")
        with self._lock:
            if self._state is not expected:
                return False
            self._state = new
            return True

    def begin(self) -> None:
        if not self.compare_and_set(RequestState.IDLE, RequestState.RUNNING):
            raise RequestInProgressError()

    def abort(self) -> bool:
        return self.compare_and_set(RequestState.RUNNING, RequestState.ABORTED)

    def finish(self) -> None:
        with self._lock:
            if self._state is not RequestState.IDLE:
                self._state = RequestState.IDLE
