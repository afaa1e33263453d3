"""
Tests for Check Cycle Controller
================================
End-to-end cycles against a fake checking service.
"""

import pytest

from config_logging import CheckServiceError, SessionError
from live_check.batcher import BatchState
from live_check.controller import CheckCycleController, CheckManager
from live_check.document import TextDocument
from live_check.session import CheckState

from .helpers import FakeClient, match_word


def build_controller(document, client, config, executor, notices=None):
    controller = CheckCycleController(
        document,
        client,
        config=config,
        executor=executor,
        notify=(notices.append if notices is not None else None),
    )
    controller.enable(start_timer=False)
    return controller


class TestCycle:
    """Tests for a single document's cycles."""

    def test_first_cycle_submits_whole_small_document(self, config, immediate_executor):
        document = TextDocument("Fine line.\nTheir going home.\n", document_id='doc')
        client = FakeClient(match_word("Their"))
        controller = build_controller(document, client, config, immediate_executor)

        future = controller.run_cycle()

        assert future is not None
        assert client.submissions == ["Fine line.\nTheir going home.\n"]
        assert [a.text for a in controller.annotations] == ["Their"]
        assert controller.session.state == CheckState.IDLE
        assert controller.session.previous.text == document.get_text()

    def test_unchanged_document_sends_nothing(self, config, immediate_executor):
        document = TextDocument("One.\nTwo.\n")
        client = FakeClient()
        controller = build_controller(document, client, config, immediate_executor)

        controller.run_cycle()
        assert controller.run_cycle() is None
        assert len(client.submissions) == 1

    def test_only_changed_lines_are_resubmitted(self, config, immediate_executor):
        document = TextDocument("Alpha line.\nBeta line.\nGamma line.\n")
        client = FakeClient()
        controller = build_controller(document, client, config, immediate_executor)
        controller.run_cycle()

        start, end = document.line_span(2)
        document.replace(start, end, "Beta line changed.\n")
        controller.run_cycle()

        assert client.submissions[-1] == "Beta line changed.\n"
        assert controller.session.changes.deleted == (2,)
        assert controller.session.changes.added == (2,)
        assert controller.session.offset_map[0].line_number == 2

    def test_edited_line_loses_old_annotation(self, config, immediate_executor):
        document = TextDocument("Fine line.\nTheir going home.\n")
        client = FakeClient(match_word("going"))
        controller = build_controller(document, client, config, immediate_executor)
        controller.run_cycle()
        old = controller.annotations[0]

        start, end = document.line_span(2)
        document.replace(start + 5, start + 5, " are")
        controller.run_cycle()

        assert old not in controller.session.annotations
        assert [a.line_number for a in controller.annotations] == [2]
        assert controller.annotations[0].text == "going"

    def test_untouched_lines_keep_annotations(self, config, immediate_executor):
        """Test inserting a blank line elsewhere keeps existing annotations."""
        document = TextDocument("Title\nTheir going home.\n")
        client = FakeClient(match_word("going"))
        controller = build_controller(document, client, config, immediate_executor)
        controller.run_cycle()
        kept = controller.annotations[0]

        document.insert(len(document), "\n")
        controller.run_cycle()

        assert kept in controller.session.annotations
        assert len(controller.annotations) == 1

    def test_insert_above_then_edit_annotated_line(self, config, immediate_executor):
        """Test the annotation follows its line down and is replaced when that line changes."""
        document = TextDocument("Title\nTheir going home.\n")
        controller = build_controller(document, FakeClient(match_word("Their")),
                                      config, immediate_executor)
        controller.run_cycle()
        old = controller.annotations[0]

        document.insert(0, "Intro\n")
        controller.run_cycle()
        assert old.line_number == 3

        start, end = document.line_span(3)
        document.insert(start + 5, " are")
        controller.run_cycle()

        assert old not in controller.session.annotations
        assert [(a.line_number, a.text) for a in controller.annotations] == [(3, "Their")]
        assert len(document.spans) == 1

    def test_insert_above_then_edit_other_line(self, config, immediate_executor):
        """Test editing a shifted neighbour leaves the annotated line alone."""
        document = TextDocument("Title\nTheir going home.\n")
        controller = build_controller(document, FakeClient(match_word("Their")),
                                      config, immediate_executor)
        controller.run_cycle()
        kept = controller.annotations[0]

        document.insert(0, "Intro\n")
        controller.run_cycle()
        start, end = document.line_span(2)
        document.insert(end - 1, " page")
        controller.run_cycle()

        assert controller.annotations == [kept]
        assert kept.line_number == 3
        assert kept.is_live

    def test_delete_above_then_edit_other_line(self, config, immediate_executor):
        """Test a line removed above moves the annotation up before the next cleanup."""
        document = TextDocument("Intro\nTitle\nTheir going home.\n")
        controller = build_controller(document, FakeClient(match_word("Their")),
                                      config, immediate_executor)
        controller.run_cycle()
        kept = controller.annotations[0]
        assert kept.line_number == 3

        document.delete(*document.line_span(1))
        assert controller.run_cycle() is None
        assert kept.line_number == 2

        start, end = document.line_span(1)
        document.insert(end - 1, " page")
        controller.run_cycle()

        assert controller.annotations == [kept]
        assert kept.line_number == 2

    def test_deletion_without_additions_cleans_up(self, config, immediate_executor):
        """Test a cycle with only deleted lines removes annotations without a submission."""
        document = TextDocument("Keep this.\nTheir going home.\nKeep that.\n")
        client = FakeClient(match_word("going"))
        controller = build_controller(document, client, config, immediate_executor)
        controller.run_cycle()
        assert len(controller.annotations) == 1

        start, end = document.line_span(2)
        document.delete(start, end)
        assert controller.run_cycle() is None

        assert controller.annotations == []
        assert len(client.submissions) == 1

    def test_incremental_first_pass(self, config, immediate_executor):
        """Test a 2500 char document is submitted 1000 characters at a time."""
        line = "x" * 99 + "\n"
        document = TextDocument(line * 25)
        client = FakeClient()
        controller = build_controller(document, client, config, immediate_executor)
        batch = controller.session.batch

        controller.run_cycle()
        assert client.submissions[0] == line * 10
        assert batch == BatchState(block_count=2, first_pass_complete=False)

        controller.run_cycle()
        assert client.submissions[1] == line * 10
        assert batch == BatchState(block_count=3, first_pass_complete=False)

        controller.run_cycle()
        assert client.submissions[2] == line * 5
        assert batch.first_pass_complete is True

        assert controller.run_cycle() is None
        assert len(client.submissions) == 3
        assert controller.session.previous.text == document.get_text()


class TestFailures:
    """Tests for service failures and error isolation."""

    def test_service_error_keeps_annotations(self, config, immediate_executor):
        document = TextDocument("Fine line.\nTheir going home.\n")
        responses = [match_word("going")]

        def responder(text):
            if responses:
                return responses.pop()(text)
            raise CheckServiceError("Checking service timed out after 5.0s")

        notices = []
        client = FakeClient(responder)
        controller = build_controller(document, client, config, immediate_executor, notices)
        controller.run_cycle()
        kept = list(controller.annotations)

        document.insert(0, "New line.\n")
        controller.run_cycle()

        assert controller.annotations == kept
        assert controller.session.last_error == "Checking service timed out after 5.0s"
        assert notices == ["LiveCheck: Checking service timed out after 5.0s"]
        # The baseline still advanced, so the failed payload is not retried
        assert controller.run_cycle() is None
        assert controller.session.state == CheckState.IDLE

    def test_failed_check_still_renumbers(self, config, immediate_executor):
        """Test kept annotations move to the committed baseline even when the check fails."""
        document = TextDocument("Title\nTheir going home.\n")
        responses = [match_word("Their")]

        def responder(text):
            if responses:
                return responses.pop()(text)
            raise CheckServiceError("Checking service returned HTTP 503: busy")

        controller = build_controller(document, FakeClient(responder), config,
                                      immediate_executor, [])
        controller.run_cycle()
        kept = controller.annotations[0]

        document.insert(0, "Intro\n")
        controller.run_cycle()

        assert controller.annotations == [kept]
        assert kept.line_number == 3

    def test_unexpected_client_error_is_contained(self, config, immediate_executor):
        def responder(text):
            raise RuntimeError("boom")

        notices = []
        document = TextDocument("Text.\n")
        controller = build_controller(document, FakeClient(responder), config,
                                      immediate_executor, notices)
        controller.run_cycle()

        assert controller.session.last_error == "boom"
        assert controller.session.state == CheckState.IDLE
        assert len(notices) == 1

    def test_tick_survives_exceptions(self, config, immediate_executor):
        class BrokenDiffer:
            def diff_lines(self, previous, current):
                raise RuntimeError("diff exploded")

        document = TextDocument("Text.\n")
        controller = CheckCycleController(document, FakeClient(), config=config,
                                          differ=BrokenDiffer(), executor=immediate_executor)
        controller.enable(start_timer=False)

        controller._tick()

        assert controller.enabled
        assert controller.session.state == CheckState.IDLE


class TestConcurrency:
    """Tests for single-flight and generation guards."""

    def test_tick_skipped_while_awaiting_response(self, config, deferred_executor):
        document = TextDocument("Their going home.\n")
        client = FakeClient(match_word("going"))
        controller = build_controller(document, client, config, deferred_executor)

        future = controller.run_cycle()
        assert controller.session.state == CheckState.AWAITING_RESPONSE

        document.insert(len(document), "More text.\n")
        assert controller.run_cycle() is None
        assert len(deferred_executor.pending) == 1

        deferred_executor.run_pending()
        assert future.done()
        assert [a.text for a in controller.annotations] == ["going"]
        assert controller.session.state == CheckState.IDLE

        controller.run_cycle()
        deferred_executor.run_pending()
        assert client.submissions[-1] == "More text.\n"

    def test_stale_generation_is_discarded(self, config, deferred_executor):
        document = TextDocument("Their going home.\n")
        client = FakeClient(match_word("going"))
        controller = build_controller(document, client, config, deferred_executor)

        controller.run_cycle()
        controller.disable()
        controller.enable(start_timer=False)
        deferred_executor.run_pending()

        assert controller.annotations == []
        assert controller.session.state == CheckState.IDLE


class TestEnableDisable:
    """Tests for session lifecycle."""

    def test_disable_clears_everything(self, config, immediate_executor):
        document = TextDocument("Their going home.\n")
        controller = build_controller(document, FakeClient(match_word("going")),
                                      config, immediate_executor)
        controller.run_cycle()
        session = controller.session

        controller.disable()

        assert controller.session is None
        assert not controller.enabled
        assert len(session.annotations) == 0
        assert session.batch == BatchState()
        assert document.spans == []
        assert controller.run_cycle() is None

    def test_reenable_starts_fresh(self, config, immediate_executor):
        document = TextDocument("Their going home.\n")
        client = FakeClient(match_word("going"))
        controller = build_controller(document, client, config, immediate_executor)
        controller.run_cycle()
        first = controller.session
        controller.disable()

        second = controller.enable(start_timer=False)

        assert second is not first
        assert second.generation > first.generation
        assert second.previous.text == ""
        controller.run_cycle()
        assert len(client.submissions) == 2

    def test_enable_is_idempotent(self, config, immediate_executor):
        controller = build_controller(TextDocument("a\n"), FakeClient(), config, immediate_executor)
        assert controller.enable(start_timer=False) is controller.session

    def test_check_now_requires_session(self, config, immediate_executor):
        controller = CheckCycleController(TextDocument("a\n"), FakeClient(), config=config,
                                          executor=immediate_executor)
        with pytest.raises(SessionError):
            controller.check_now()

    def test_require_session_after_disable(self, config, immediate_executor):
        controller = build_controller(TextDocument("a\n"), FakeClient(), config, immediate_executor)
        assert controller.require_session() is controller.session
        controller.disable()
        with pytest.raises(SessionError) as excinfo:
            controller.require_session()
        assert excinfo.value.status_code == 409

    def test_check_now_returns_reconciled_session(self, config, immediate_executor):
        document = TextDocument("Their going home.\n")
        controller = build_controller(document, FakeClient(match_word("going")),
                                      config, immediate_executor)
        session = controller.check_now()
        assert session.cycle == 1
        assert len(session.annotations) == 1

    def test_timer_drives_cycles(self, config):
        """Test the periodic timer runs cycles on its own."""
        config.check_interval = 0.01
        document = TextDocument("Their going home.\n")
        client = FakeClient(match_word("going"))
        controller = CheckCycleController(document, client, config=config)
        try:
            controller.enable()
            assert client.called.wait(timeout=5.0)
        finally:
            controller.close()
        assert client.submissions[0] == "Their going home.\n"


class TestCheckManager:
    """Tests for the document registry."""

    def test_enable_and_disable(self, config, immediate_executor):
        manager = CheckManager(config=config, client=FakeClient(match_word("going")),
                               executor=immediate_executor)
        manager.open_document('notes', "Their going home.\n")

        controller = manager.enable('notes', start_timer=False)
        controller.run_cycle()
        assert manager.is_enabled('notes')
        assert manager.controller('notes') is controller
        assert len(controller.annotations) == 1

        manager.disable('notes')
        assert not manager.is_enabled('notes')
        with pytest.raises(SessionError):
            manager.controller('notes')
        assert manager.get_document('notes').spans == []

    def test_open_document_is_idempotent(self, config):
        manager = CheckManager(config=config, client=FakeClient())
        first = manager.open_document('a', "text")
        assert manager.open_document('a', "other") is first
        assert first.get_text() == "text"

    def test_unknown_document(self, config):
        manager = CheckManager(config=config, client=FakeClient())
        with pytest.raises(SessionError):
            manager.enable('missing')

    def test_shutdown(self, config, immediate_executor):
        manager = CheckManager(config=config, client=FakeClient(), executor=immediate_executor)
        for name in ('a', 'b'):
            manager.open_document(name, "text\n")
            manager.enable(name, start_timer=False)
        manager.shutdown()
        assert not manager.is_enabled('a')
        assert not manager.is_enabled('b')

    def test_client_built_from_config(self, config):
        manager = CheckManager(config=config)
        assert manager.client.check_url == 'http://checker.test/v2/check'
