from streamchat.chat.service.reasoning import display_text, strip_reasoning


def test_display_closes_dangling_block():
    assert display_text("<think>weighing options") == "<think>weighing options</think>"


def test_display_leaves_closed_or_empty_blocks_alone():
    assert display_text("<think>a</think>answer") == "<think>a</think>answer"
    assert display_text("answer <think>") == "answer <think>"
    assert display_text("plain") == "plain"


def test_display_only_looks_at_last_block():
    raw = "<think>a</think>mid<think>b"
    assert display_text(raw) == raw + "</think>"


def test_strip_removes_complete_blocks():
    assert strip_reasoning("<think>musing</think>Quicksort Algorithm Overview") == "Quicksort Algorithm Overview"
    assert strip_reasoning("A<think>x\ny</think>B<think>z</think>C") == "ABC"


def test_strip_drops_everything_after_unclosed_block():
    assert strip_reasoning("Title<think>never closes") == "Title"
    assert strip_reasoning("stray</think>Title") == "strayTitle"
