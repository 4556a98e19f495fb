import pytest

from xvfs.keyboard import CAPSLOCK, KEY_UP, Keyboard


def test_plain_letters_and_digits():
    kb = Keyboard()
    assert kb.feed(0x1E) == ord("a")
    assert kb.feed(0x02) == ord("1")
    assert kb.feed(0x1C) == ord("\n")


def test_key_release_produces_nothing():
    kb = Keyboard()
    assert kb.feed(0x9E) == 0


def test_shift_press_and_release():
    kb = Keyboard()
    assert kb.feed(0x2A) == 0
    assert kb.feed(0x1E) == ord("A")
    assert kb.feed(0x02) == ord("!")
    assert kb.feed(0xAA) == 0
    assert kb.feed(0x1E) == ord("a")


def test_capslock_toggles():
    kb = Keyboard()
    kb.feed(0x3A)
    assert kb.shift & CAPSLOCK
    assert kb.feed(0x1E) == ord("A")
    assert kb.feed(0x02) == ord("1")
    kb.feed(0xBA)
    kb.feed(0x3A)
    assert not kb.shift & CAPSLOCK
    assert kb.feed(0x1E) == ord("a")


def test_capslock_with_shift_gives_lower_case():
    kb = Keyboard()
    kb.feed(0x3A)
    kb.feed(0x36)
    assert kb.feed(0x1E) == ord("a")


def test_control():
    kb = Keyboard()
    kb.feed(0x1D)
    assert kb.feed(0x1E) == ord("A") - ord("@")
    assert kb.feed(0x1C) == ord("\r")
    kb.feed(0x9D)
    assert kb.feed(0x1E) == ord("a")


def test_e0_prefix():
    kb = Keyboard()
    assert kb.feed(0xE0) == 0
    assert kb.feed(0x48) == KEY_UP
    assert kb.feed(0x48) == ord("8")
    kb.feed(0xE0)
    assert kb.feed(0x35) == ord("/")


def test_e0_right_control():
    kb = Keyboard()
    kb.feed(0xE0)
    kb.feed(0x1D)
    assert kb.feed(0x1E) == ord("A") - ord("@")
    kb.feed(0xE0)
    kb.feed(0x9D)
    assert kb.feed(0x1E) == ord("a")


@pytest.mark.parametrize("bad", [-1, 256])
def test_out_of_range(bad):
    with pytest.raises(ValueError):
        Keyboard().feed(bad)