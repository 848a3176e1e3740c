"""Tests for Client.txt line parser."""

from datetime import datetime

import pytest

from poe2_drpc.events import AreaEntered, CharacterLoaded, LevelUp, PlayerJoined, Unrecognized
from poe2_drpc.parser import MATCHERS, parse_line, parse_timestamp

HEADER = "2024/12/10 19:23:45 3614468 cffb0734 [INFO Client 25876] "
HEADER_TS = datetime(2024, 12, 10, 19, 23, 45).timestamp()


class TestParseArea:
    """Test parsing area generation lines."""

    def test_real_area_line(self):
        line = '2024/12/10 19:23:45 3614468 cffb0734 [DEBUG Client 25876] Generating level 1 area "G1_1" with seed 2830548042'
        event = parse_line(line)
        assert isinstance(event, AreaEntered)
        assert event.area == "G1_1"
        assert event.area_level == 1
        assert event.seed == 2830548042
        assert event.timestamp == HEADER_TS
        assert not event.is_town

    def test_bare_area_with_level(self):
        event = parse_line("Generating level 1 area Tutorial", received_at=5.0)
        assert isinstance(event, AreaEntered)
        assert event.area == "Tutorial"
        assert event.area_level == 1
        assert event.timestamp == 5.0

    def test_bare_area_without_level(self):
        event = parse_line("Generating area The Riverbank", received_at=5.0)
        assert isinstance(event, AreaEntered)
        assert event.area == "The Riverbank"
        assert event.area_level is None

    def test_town_classified(self):
        event = parse_line(HEADER + 'Generating level 15 area "C_G1_town" with seed 1')
        assert event.is_town is True
        assert event.is_hideout is False

    def test_hideout_classified(self):
        event = parse_line(HEADER + 'Generating level 65 area "HideoutFelled" with seed 1')
        assert event.is_hideout is True


class TestParseCharacter:
    """Test parsing character identity lines."""

    def test_announcement_base_class(self):
        event = parse_line(HEADER + ": Foo (Witch) is now level 2")
        assert isinstance(event, CharacterLoaded)
        assert event.name == "Foo"
        assert event.level == 2
        assert event.character_class == "Witch"
        assert event.ascendancy is None

    def test_announcement_ascendancy(self):
        event = parse_line(HEADER + ": Foo (Infernalist) is now level 40")
        assert event.character_class == "Witch"
        assert event.ascendancy == "Infernalist"

    def test_announcement_ascendancy_without_spaces(self):
        event = parse_line(HEADER + ": Foo (BloodMage) is now level 41")
        assert event.character_class == "Witch"
        assert event.ascendancy == "Blood Mage"

    def test_unknown_class_kept_as_text(self):
        event = parse_line(HEADER + ": Foo (Druid) is now level 3")
        assert event.character_class == "Druid"
        assert event.ascendancy is None

    def test_character_line(self):
        event = parse_line("Character Foo, Class Witch, Level 1", received_at=1.0)
        assert isinstance(event, CharacterLoaded)
        assert event.name == "Foo"
        assert event.character_class == "Witch"
        assert event.level == 1

    def test_character_line_with_ascendancy(self):
        event = parse_line("Character Foo, Class Ranger, Ascendancy Deadeye, Level 33")
        assert event.character_class == "Ranger"
        assert event.ascendancy == "Deadeye"
        assert event.level == 33


class TestParseOther:
    def test_level_up(self):
        event = parse_line("Level up! You have reached Level 2", received_at=1.0)
        assert isinstance(event, LevelUp)
        assert event.level == 2

    def test_player_joined(self):
        event = parse_line(HEADER + ": Bar has joined the area.")
        assert isinstance(event, PlayerJoined)
        assert event.name == "Bar"


class TestParseEdgeCases:
    """Test edge cases in parsing."""

    @pytest.mark.parametrize("line", [
        "",
        "   ",
        "this is not a valid log line",
        HEADER + "[SHADER] Delay: ON",
        "Generating",
        "Character , Class , Level x",
        HEADER + ": (Witch) is now level",
        "\x00\xff garbage",
    ])
    def test_unmatched_is_unrecognized(self, line):
        event = parse_line(line, received_at=7.0)
        assert isinstance(event, Unrecognized)

    def test_chat_cannot_spoof_events(self):
        line = HEADER + '#Troll: Generating level 99 area "G1_town" with seed 1'
        assert isinstance(parse_line(line), Unrecognized)
        whisper = HEADER + "@From Troll: Foo (Witch) is now level 100"
        assert isinstance(parse_line(whisper), Unrecognized)
        local = HEADER + 'Troll: Generating level 99 area "G1_town" with seed 1'
        assert isinstance(parse_line(local), Unrecognized)

    @pytest.mark.parametrize("matcher, body", [
        ("area", 'Generating level 5 area "G1_3" with seed 1'),
        ("announcement", "Foo (Witch) is now level 2"),
        ("character", "Character Foo, Class Witch, Level 1"),
        ("level_up", "Level up! You have reached Level 3"),
        ("joined", "Bar has joined the area."),
    ])
    def test_local_chat_cannot_trigger_matchers(self, matcher, body):
        m = next(m for m in MATCHERS if m.name == matcher)
        assert m.match(body, 0.0) is not None
        assert m.match("Troll: " + body, 0.0) is None
        assert m.match("Troll: lol " + body, 0.0) is None
        assert isinstance(parse_line(HEADER + "Troll: " + body), Unrecognized)

    def test_local_chat_cases_cover_every_matcher(self):
        covered = {"area", "announcement", "character", "level_up", "joined"}
        assert {m.name for m in MATCHERS} == covered

    def test_timestamp_falls_back_to_received_at(self):
        assert parse_line("garbage", received_at=42.0).timestamp == 42.0

    def test_parse_timestamp(self):
        assert parse_timestamp(HEADER + "x") == HEADER_TS
        assert parse_timestamp("no timestamp") is None
        assert parse_timestamp("2024/13/45 99:99:99 bad") is None

    def test_trailing_newline_stripped(self):
        event = parse_line("Level up! You have reached Level 3\r\n", received_at=1.0)
        assert event == LevelUp(level=3, timestamp=1.0)

    def test_parse_is_deterministic(self):
        line = HEADER + ": Foo (Witch) is now level 2"
        assert parse_line(line) == parse_line(line)

    def test_matcher_names_unique(self):
        names = [m.name for m in MATCHERS]
        assert len(names) == len(set(names))
