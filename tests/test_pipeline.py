"""End-to-end tests: log file -> pipeline -> publisher -> fake sink."""

import time

import pytest

from poe2_drpc.pipeline import PipelineConfig, PresencePipeline, scan_joined_players
from poe2_drpc.publisher import ConnectionState, PresencePublisher


class FakeMonitor:
    def __init__(self, running=True):
        self.running = running
        self.checks = 0

    def is_running(self):
        self.checks += 1
        return self.running


@pytest.fixture
def log_file(tmp_path):
    path = tmp_path / "Client.txt"
    path.write_bytes(b"")
    return path


def _append(path, *lines):
    with open(path, "a", encoding="utf-8") as f:
        for line in lines:
            f.write(line + "\n")


@pytest.fixture
def publisher(sink, clock):
    return PresencePublisher(sink, debounce_window=1.0, clock=clock)


@pytest.fixture
def pipeline(log_file, publisher, clock):
    p = PresencePipeline(PipelineConfig(log_path=log_file), publisher, clock=clock)
    return p


def _settle(pipeline, publisher, clock):
    pipeline.tick()
    clock.advance(2)
    publisher.process()


class TestScenarios:
    def test_scenarios_1_to_3(self, log_file, pipeline, publisher, sink, clock):
        _append(log_file, "Generating level 1 area Tutorial", "Character Foo, Class Witch, Level 1")
        _settle(pipeline, publisher, clock)
        status = pipeline.status
        assert (status.name, status.character_class, status.level, status.area) == \
            ("Foo", "Witch", 1, "Tutorial")

        _append(log_file, "Level up! You have reached Level 2")
        _settle(pipeline, publisher, clock)
        assert pipeline.status.level == 2
        assert pipeline.status.area == "Tutorial"

        _append(log_file, "Generating area The Riverbank")
        _settle(pipeline, publisher, clock)
        status = pipeline.status
        assert (status.name, status.character_class, status.level, status.area) == \
            ("Foo", "Witch", 2, "The Riverbank")

        assert [u.state for u in sink.updates] == ["Tutorial (1)", "Tutorial (1)", "The Riverbank"]
        assert sink.updates[1].large_text == "Witch (2)"

    def test_scenario_4_unreachable_sink(self, log_file, pipeline, publisher, sink, clock):
        sink.available = False
        _append(log_file, "Generating level 1 area Tutorial", "Character Foo, Class Witch, Level 1")
        _settle(pipeline, publisher, clock)
        _append(log_file, "Level up! You have reached Level 2")
        _settle(pipeline, publisher, clock)
        _append(log_file, "Generating area The Riverbank")
        _settle(pipeline, publisher, clock)
        assert publisher.state is ConnectionState.DISCONNECTED
        assert sink.updates == []

        sink.available = True
        clock.advance(60)
        publisher.process()
        assert publisher.state is ConnectionState.CONNECTED
        assert len(sink.updates) == 1
        assert sink.updates[0].state == "The Riverbank"
        assert sink.updates[0].details == "Foo"

        pipeline.tick()
        clock.advance(2)
        publisher.process()
        assert len(sink.updates) == 1


class TestPipelineBehaviour:
    def test_burst_in_one_poll_publishes_once(self, log_file, pipeline, publisher, sink, clock):
        _append(log_file, "Character Foo, Class Witch, Level 1",
                *[f"Level up! You have reached Level {n}" for n in range(2, 12)])
        consumed = pipeline.tick()
        assert consumed == 11
        clock.advance(2)
        publisher.process()
        assert len(sink.updates) == 1
        assert sink.updates[0].large_text == "Witch (11)"

    def test_irrelevant_lines_do_not_publish(self, log_file, pipeline, publisher, sink, clock):
        _append(log_file, "noise", "more noise")
        _settle(pipeline, publisher, clock)
        assert sink.connects == 0
        assert pipeline.source.position.offset == log_file.stat().st_size

    def test_rotation_keeps_status(self, log_file, pipeline, publisher, sink, clock):
        _append(log_file, "Character Foo, Class Witch, Level 5", "padding line to make it longer")
        _settle(pipeline, publisher, clock)
        log_file.write_text("Generating area The Riverbank\n", encoding="utf-8")
        _settle(pipeline, publisher, clock)
        assert pipeline.status.name == "Foo"
        assert pipeline.status.area == "The Riverbank"

    def test_read_errors_skip_the_poll(self, log_file, pipeline, monkeypatch):
        _append(log_file, "Character Foo, Class Witch, Level 5")

        def deny(offset, size):
            raise PermissionError("locked")

        monkeypatch.setattr(pipeline.source, "_read_chunk", deny)
        assert pipeline.tick() == 0
        monkeypatch.undo()
        assert pipeline.tick() == 1
        assert pipeline.status.name == "Foo"

    def test_party_member_level_before_join_is_not_identity(self, log_file, pipeline):
        _append(log_file,
                ": Foo (Witch) is now level 5",
                ": Bar (Warrior) is now level 10",
                ": Bar has joined the area.")
        pipeline.tick()
        assert pipeline.status.name == "Foo"
        assert pipeline.status.level == 5
        assert "Bar" in pipeline.status.other_players

    def test_scan_joined_players(self, log_file, tmp_path):
        _append(log_file, ": Bar has joined the area.", "noise", ": Baz has joined the area.")
        assert scan_joined_players(log_file) == {"Bar", "Baz"}
        assert scan_joined_players(tmp_path / "missing.txt") == frozenset()


class TestGameProcessGating:
    @pytest.fixture
    def monitor(self):
        return FakeMonitor(running=False)

    @pytest.fixture
    def gated(self, log_file, publisher, clock, monitor):
        p = PresencePipeline(PipelineConfig(log_path=log_file, process_check_interval=5.0),
                             publisher, process_monitor=monitor, clock=clock)
        return p

    def test_no_publish_while_game_closed(self, log_file, gated, publisher, sink, clock):
        _append(log_file, "Character Foo, Class Witch, Level 5")
        _settle(gated, publisher, clock)
        assert gated.status.name == "Foo"
        assert sink.updates == []
        assert sink.connects == 0

    def test_publish_when_game_starts_then_clear(self, log_file, gated, publisher, sink, clock,
                                                  monitor):
        _append(log_file, "Character Foo, Class Witch, Level 5")
        _settle(gated, publisher, clock)
        monitor.running = True
        clock.advance(5)
        _settle(gated, publisher, clock)
        assert len(sink.updates) == 1

        monitor.running = False
        clock.advance(5)
        _settle(gated, publisher, clock)
        assert sink.clears == 1

    def test_process_checks_are_throttled(self, gated, monitor, clock):
        gated.tick()
        gated.tick()
        assert monitor.checks == 1
        clock.advance(5)
        gated.tick()
        assert monitor.checks == 2


class TestLifecycle:
    def test_threads_publish_and_stop_cleanly(self, log_file, sink):
        _append(log_file, "Character Foo, Class Witch, Level 1", "Generating area The Riverbank")
        publisher = PresencePublisher(sink, debounce_window=0.01)
        pipeline = PresencePipeline(PipelineConfig(log_path=log_file, poll_interval=0.01),
                                    publisher)
        pipeline.start()
        try:
            deadline = time.monotonic() + 3
            while not sink.updates and time.monotonic() < deadline:
                time.sleep(0.01)
        finally:
            pipeline.stop()
        assert sink.updates[-1].state == "The Riverbank"
        assert sink.closed
        assert pipeline.source.position.offset == log_file.stat().st_size

    def test_no_replay_starts_at_end(self, log_file, sink):
        _append(log_file, "Character Old, Class Witch, Level 90")
        publisher = PresencePublisher(sink, debounce_window=0.01)
        pipeline = PresencePipeline(
            PipelineConfig(log_path=log_file, poll_interval=0.01, replay_history=False),
            publisher,
        )
        pipeline.start()
        try:
            _append(log_file, "Character New, Class Monk, Level 2")
            deadline = time.monotonic() + 3
            while not sink.updates and time.monotonic() < deadline:
                time.sleep(0.01)
        finally:
            pipeline.stop()
        assert [u.details for u in sink.updates] == ["New"]
