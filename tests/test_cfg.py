import pytest

from corekit.cfg import ConfigFormatError, Entry, iter_config

SAMPLE = (
    "# proxy port\n"
    "port 8125\n"
    "# proxy backend nodes\n"
    "node 127.0.0.1:8126\n"
    "node 127.0.0.1:8127\n"
    "node 127.0.0.1:8128\n"
)


def test_sample_pairs():
    pairs = [(e.key, e.val) for e in iter_config(SAMPLE)]
    assert pairs == [
        ("port", "8125"),
        ("node", "127.0.0.1:8126"),
        ("node", "127.0.0.1:8127"),
        ("node", "127.0.0.1:8128"),
    ]


def test_sample_line_numbers():
    linenos = [e.lineno for e in iter_config(SAMPLE)]
    assert linenos == [2, 4, 5, 6]


def test_entry_fields():
    entries = list(iter_config("port 8125\n"))
    assert entries == [Entry("port", "8125", 1)]


def test_empty_input_yields_nothing():
    assert list(iter_config("")) == []


def test_blank_and_comment_lines_only():
    assert list(iter_config("\n   \n# just a comment\n\t\n")) == []


def test_bytes_input():
    pairs = [(e.key, e.val) for e in iter_config(b"port 8125\n")]
    assert pairs == [("port", "8125")]


def test_tabs_and_extra_spaces():
    entries = list(iter_config("  key\t\t value  \t\n"))
    assert [(e.key, e.val) for e in entries] == [("key", "value")]


def test_trailing_comment_after_value():
    entries = list(iter_config("port 8125# the port\nhost localhost # h\n"))
    assert [(e.key, e.val) for e in entries] == [
        ("port", "8125"),
        ("host", "localhost"),
    ]


def test_last_line_without_newline_is_dropped():
    entries = list(iter_config("port 8125\nhost localhost"))
    assert [(e.key, e.val) for e in entries] == [("port", "8125")]


def test_single_word_line_raises():
    with pytest.raises(ConfigFormatError) as info:
        list(iter_config("port 8125\n\nlonely\n"))
    assert info.value.lineno == 3


def test_three_words_raise():
    with pytest.raises(ConfigFormatError) as info:
        list(iter_config("a b c\n"))
    assert info.value.lineno == 1


def test_key_then_comment_raises():
    with pytest.raises(ConfigFormatError):
        list(iter_config("key # no value\n"))


def test_entries_before_error_are_yielded():
    gen = iter_config("port 8125\nbad\n")
    first = next(gen)
    assert (first.key, first.val) == ("port", "8125")
    with pytest.raises(ConfigFormatError):
        next(gen)


def test_error_is_value_error():
    with pytest.raises(ValueError):
        list(iter_config("x\n"))