import pytest

from pinboard.protocol import (
    BAD_SYNTAX,
    UNKNOWN_COMMAND,
    ClearCommand,
    DisconnectCommand,
    GetCommand,
    GetPinsCommand,
    LineFramer,
    PinCommand,
    PostCommand,
    ProtocolError,
    ShakeCommand,
    UnpinCommand,
    encode_lines,
    format_error,
    format_greeting,
    format_note,
    format_ok,
    format_pin,
    parse_command,
)


def _code(line):
    with pytest.raises(ProtocolError) as info:
        parse_command(line)
    return info.value.code


def test_post_keeps_message_spacing():
    cmd = parse_command("POST 10 20 Red  weekly   meeting notes ")
    assert cmd == PostCommand(10, 20, "red", "weekly   meeting notes")


def test_post_verb_case_insensitive_and_empty_message():
    assert parse_command("post 0 0 blue") == PostCommand(0, 0, "blue", "")


def test_post_missing_or_bad_fields():
    assert _code("POST 1 2") == BAD_SYNTAX
    assert _code("POST x 2 red hi") == BAD_SYNTAX
    assert _code("POST 1 2.5 red hi") == BAD_SYNTAX
    assert _code("POST") == BAD_SYNTAX


def test_negative_numbers_parse():
    assert parse_command("POST -5 3 red x") == PostCommand(-5, 3, "red", "x")


def test_get_without_filters():
    assert parse_command("GET") == GetCommand()


def test_get_all_filters():
    cmd = parse_command("GET color=red contains=5 6 refersTo=team meeting")
    assert cmd == GetCommand(color="red", contains=(5, 6), refers_to="team meeting")


def test_refers_to_stops_at_next_filter():
    cmd = parse_command("GET refersTo=big plan color=blue")
    assert cmd == GetCommand(color="blue", refers_to="big plan")


def test_contains_consumes_next_token():
    cmd = parse_command("get contains=3 4 color=white")
    assert cmd == GetCommand(color="white", contains=(3, 4))


def test_get_bad_filters():
    assert _code("GET contains=3") == BAD_SYNTAX
    assert _code("GET contains=a 4") == BAD_SYNTAX
    assert _code("GET contains=3 y") == BAD_SYNTAX
    assert _code("GET size=3") == BAD_SYNTAX
    assert _code("GET Color=red") == BAD_SYNTAX


def test_get_pins():
    assert parse_command("GET PINS") == GetPinsCommand()
    assert parse_command("get pins") == GetPinsCommand()
    assert _code("GET PINS color=red") == BAD_SYNTAX


def test_pin_and_unpin():
    assert parse_command("PIN 3 4") == PinCommand(3, 4)
    assert parse_command("unpin 3 4") == UnpinCommand(3, 4)
    assert _code("PIN 3") == BAD_SYNTAX
    assert _code("PIN 3 4 5") == BAD_SYNTAX
    assert _code("UNPIN a b") == BAD_SYNTAX


def test_no_argument_commands():
    assert parse_command("shake") == ShakeCommand()
    assert parse_command("CLEAR") == ClearCommand()
    assert parse_command("Disconnect") == DisconnectCommand()
    assert _code("CLEAR now") == BAD_SYNTAX


def test_unknown_and_blank():
    assert _code("DELETE 1 2") == UNKNOWN_COMMAND
    assert parse_command("   ") is None


def test_framer_splits_and_strips_cr():
    framer = LineFramer()
    assert framer.feed(b"GET\r\nPOST 1 ") == ["GET"]
    assert framer.feed(b"2 red hi\n") == ["POST 1 2 red hi"]
    assert framer.feed(b"") == []


def test_framer_marks_oversized_line_and_keeps_earlier_lines():
    framer = LineFramer(max_line_bytes=16)
    assert framer.feed(b"GET\n" + b"x" * 40) == ["GET"]
    assert framer.feed(b"x" * 40) == []
    assert framer.feed(b"xx\nGET PINS\n") == [None, "GET PINS"]


def test_framer_marks_oversized_line_in_one_chunk():
    framer = LineFramer(max_line_bytes=8)
    assert framer.feed(b"123456789\nSHAKE\n") == [None, "SHAKE"]


def test_framer_tolerates_invalid_utf8():
    assert LineFramer().feed(b"POST 1 1 red \xff\n") == ["POST 1 1 red \ufffd"]


def test_formatters():
    assert format_greeting(150, 100, 15, 10, ["red", "blue"]) == "BOARD 150 100 NOTES 15 10 COLORS red,blue"
    assert format_ok() == "OK"
    assert format_ok("NOTE_POSTED") == "OK NOTE_POSTED"
    assert format_error("PIN_ON_EDGE") == "ERROR PIN_ON_EDGE"
    assert format_note(1, 2, "red", "hello there", True) == "NOTE 1 2 red hello there PINNED=true"
    assert format_pin(7, 8) == "PIN 7 8"
    assert encode_lines(["OK 1", "PIN 7 8"]) == b"OK 1\nPIN 7 8\n"


def test_very_long_numbers_are_bad_syntax():
    huge = "1" * 5000
    assert _code(f"PIN {huge} 5") == BAD_SYNTAX
    assert _code(f"POST 0 {huge} red x") == BAD_SYNTAX
    assert _code(f"GET contains={huge} 1") == BAD_SYNTAX
    assert parse_command("PIN " + "9" * 18 + " 5") == PinCommand(int("9" * 18), 5)
    assert _code("UNPIN " + "9" * 19 + " 5") == BAD_SYNTAX
