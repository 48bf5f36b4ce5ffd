"""Tests for the subject/body envelope codec."""

from careportal.utils import envelope


def test_encode_format():
    assert envelope.encode("Pain update", "Feeling better") == "**Subject:** Pain update\n\nFeeling better"


def test_decode_round_trip():
    content = envelope.encode("Medication", "Take two tablets\nafter meals.\n\nThanks")
    parsed = envelope.decode(content)
    assert parsed.subject == "Medication"
    assert parsed.body == "Take two tablets\nafter meals.\n\nThanks"


def test_decode_without_marker_uses_default_subject():
    parsed = envelope.decode("plain legacy text")
    assert parsed.subject == envelope.NO_SUBJECT
    assert parsed.body == "plain legacy text"


def test_decode_empty_subject_falls_back():
    parsed = envelope.decode("**Subject:** \n\nbody only")
    assert parsed.subject == envelope.NO_SUBJECT
    assert parsed.body == "body only"


def test_decode_marker_without_body():
    parsed = envelope.decode("**Subject:** Hello")
    assert parsed.subject == "Hello"
    assert parsed.body == ""


def test_preview_is_first_hundred_characters():
    body = "x" * 150
    assert envelope.decode(envelope.encode("s", body)).preview == "x" * 100
    assert envelope.decode(envelope.encode("s", "short")).preview == "short"
