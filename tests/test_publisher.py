"""
Unit tests for the event publisher.
"""

from sortify.events.publisher import EventPublisher, FILE_ORGANIZED, LOG_MESSAGE, SOURCE_MONITORING


class TestEventPublisher:
    """Tests for EventPublisher."""

    def test_publish_delivers_payload(self, tmp_path, move_engine, publisher, collector):
        source = tmp_path / "a.jpg"
        source.write_text("x")
        outcome = move_engine.move_to_category(source, tmp_path, "Images")

        event = publisher.publish(outcome, tmp_path, source=SOURCE_MONITORING)
        assert publisher.flush(timeout=5)

        payload = collector.organized[0]
        assert payload == event.to_dict()
        assert set(payload) == {
            "file_name", "actual_file_name", "category", "timestamp",
            "folder_path", "original_path", "moved_to_path", "source",
        }
        assert payload["source"] == "monitoring"

    def test_stats_updated_synchronously(self, tmp_path, move_engine, registry, publisher):
        watched = registry.add(str(tmp_path))
        source = tmp_path / "a.jpg"
        source.write_text("x")
        outcome = move_engine.move_to_category(source, tmp_path, "Images")

        publisher.publish(outcome, tmp_path, path_id=watched.id)

        # No flush: stats do not depend on event delivery
        assert registry.get(watched.id).stats.files_organized == 1

    def test_fifo_order(self, publisher, collector):
        for index in range(50):
            publisher.log(f"message {index}")
        publisher.flush(timeout=5)

        messages = [payload["message"] for payload in collector.of(LOG_MESSAGE)]
        assert messages == [f"message {index}" for index in range(50)]

    def test_failing_subscriber_isolated(self, publisher, collector):
        def broken(name, payload):
            raise RuntimeError("boom")

        publisher.subscribe(broken)
        publisher.log("first")
        publisher.log("second")
        publisher.flush(timeout=5)

        assert [p["message"] for p in collector.of(LOG_MESSAGE)] == ["first", "second"]

    def test_subscribers_get_independent_copies(self, publisher, collector):
        def mutating(name, payload):
            payload["message"] = "changed"

        publisher.subscribe(mutating)
        publisher.unsubscribe(collector)
        publisher.subscribe(collector)
        publisher.log("original")
        publisher.flush(timeout=5)

        assert collector.of(LOG_MESSAGE)[0]["message"] == "original"

    def test_log_extra_fields(self, publisher, collector):
        publisher.log("failed", "error", file_name="x.pdf")
        publisher.flush(timeout=5)

        payload = collector.of(LOG_MESSAGE)[0]
        assert payload["log_type"] == "error"
        assert payload["file_name"] == "x.pdf"
        assert "timestamp" in payload

    def test_stop_delivers_pending(self, collector):
        publisher = EventPublisher()
        publisher.subscribe(collector)
        publisher.emit(FILE_ORGANIZED, {"file_name": "a"})
        publisher.stop()

        assert collector.organized == [{"file_name": "a"}]
        assert publisher.is_running is False
