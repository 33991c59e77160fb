from __future__ import annotations

import asyncio
import os
import threading
import uuid
import weakref

_process_id = uuid.uuid4().hex
_thread_tokens = threading.local()
_task_tokens: "weakref.WeakKeyDictionary[asyncio.Task, str]" = weakref.WeakKeyDictionary()


def _regenerate_process_id() -> None:
    global _process_id
    _process_id = uuid.uuid4().hex


# a forked child is a different holder than its parent
if hasattr(os, "register_at_fork"):
    os.register_at_fork(after_in_child=_regenerate_process_id)


def _thread_token() -> str:
    # thread idents are reused once a thread exits; a random id per thread is not
    token = getattr(_thread_tokens, "token", None)
    if token is None:
        token = _thread_tokens.token = uuid.uuid4().hex[:16]
    return token


def _task_token() -> str | None:
    try:
        task = asyncio.current_task()
    except RuntimeError:
        # no running event loop in this thread
        return None
    if task is None:
        return None
    token = _task_tokens.get(task)
    if token is None:
        token = _task_tokens[task] = uuid.uuid4().hex[:16]
    return token


def new_owner() -> str:
    """Token for the calling thread (and asyncio task, if any) of this process.

    Repeated calls from the same thread/task return the same token, which is
    what makes a second acquisition reentrant instead of contended. A thread
    or task never inherits the token of one that has finished.
    """
    token = f"{_process_id}:{_thread_token()}"
    task_token = _task_token()
    if task_token is not None:
        token = f"{token}:{task_token}"
    return token


def process_id() -> str:
    return _process_id
