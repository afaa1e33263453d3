"""
Test doubles for Live Check tests: fake client, executors, match builders.
"""

import threading
from concurrent.futures import Executor, Future
from typing import List

from live_check.models import CheckResponse, Match


class FakeClient:
    """Stands in for LanguageToolClient; records every submission."""

    service_url = 'http://checker.test'

    def __init__(self, responder=None):
        self.submissions: List[str] = []
        self.called = threading.Event()
        self._responder = responder or (lambda text: CheckResponse())

    def check(self, text: str) -> CheckResponse:
        self.submissions.append(text)
        self.called.set()
        return self._responder(text)

    def close(self):
        pass


class ImmediateExecutor(Executor):
    """Runs submitted work inline and returns a completed future."""

    def submit(self, fn, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


class DeferredExecutor(Executor):
    """Holds submitted work until run_pending() is called."""

    def __init__(self):
        self.pending = []

    def submit(self, fn, *args, **kwargs):
        future = Future()
        self.pending.append((future, fn, args, kwargs))
        return future

    def run_pending(self):
        pending, self.pending = self.pending, []
        for future, fn, args, kwargs in pending:
            future.set_result(fn(*args, **kwargs))


def make_match(offset: int, length: int, message: str = "Possible issue",
               replacements=("fix",), issue_type: str = "grammar") -> Match:
    """Build a Match the way the service would report it."""
    return Match(
        offset=offset,
        length=length,
        message=message,
        short_message=message.split()[0],
        replacements=tuple(replacements),
        issue_type=issue_type,
        description=f"{issue_type} rule",
        rule_id="TEST_RULE",
    )


def match_word(word: str, message: str = "Possible issue", replacements=("fix",)):
    """Responder that reports every occurrence of word in the submission."""
    def responder(text: str) -> CheckResponse:
        matches = []
        start = text.find(word)
        while start != -1:
            matches.append(make_match(start, len(word), message, replacements))
            start = text.find(word, start + 1)
        return CheckResponse(matches=tuple(matches))
    return responder

