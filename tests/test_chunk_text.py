import random

import pytest

from messenger_gateway.relay.outbound import chunk_text


def _assert_reconstructs(text: str, chunks: list[str]) -> None:
    cursor = 0
    for chunk in chunks:
        index = text.index(chunk, cursor)
        assert text[cursor:index].strip() == ""
        cursor = index + len(chunk)
    assert text[cursor:].strip() == ""


def _random_text(rng: random.Random) -> str:
    words = []
    for _ in range(rng.randint(1, 40)):
        length = rng.choice([1, 3, 5, 8, 13, 40])
        words.append("".join(rng.choice("abcxyz") for _ in range(length)))
    separators = [" ", "  ", "\n", " \n "]
    text = words[0]
    for word in words[1:]:
        text += rng.choice(separators) + word
    return text


def test_short_text_is_returned_as_is() -> None:
    assert chunk_text("hello world", 2000) == ["hello world"]
    assert chunk_text("exactly10!", 10) == ["exactly10!"]


def test_cuts_at_last_space_before_limit() -> None:
    assert chunk_text("aaaa bbbb cccc", 9) == ["aaaa bbbb", "cccc"]


def test_hard_cut_without_spaces() -> None:
    assert chunk_text("abcdefghij", 4) == ["abcd", "efgh", "ij"]


def test_default_limit_is_messenger_limit() -> None:
    text = ("word " * 500).strip()
    chunks = chunk_text(text)
    assert len(chunks) == 2
    assert all(len(c) <= 2000 for c in chunks)


@pytest.mark.parametrize("seed", range(25))
def test_chunks_respect_limit_and_reconstruct_text(seed: int) -> None:
    rng = random.Random(seed)
    for _ in range(20):
        text = _random_text(rng)
        limit = rng.randint(1, 60)
        chunks = chunk_text(text, limit)

        assert chunks
        assert all(chunk for chunk in chunks)
        assert all(len(chunk) <= limit for chunk in chunks)
        _assert_reconstructs(text, chunks)


def test_rejects_non_positive_limit() -> None:
    with pytest.raises(ValueError):
        chunk_text("abc", 0)
