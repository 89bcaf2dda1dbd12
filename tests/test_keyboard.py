import pytest

from bmkernel.keyboard import (
    BUFFER_SIZE,
    CAPS_LOCK_SC,
    CLEAR_SCREEN,
    EOF,
    L_CONTROL_SC,
    L_SHIFT_SC,
    R_SHIFT_SC,
    RELEASE_BIT,
    KeyAction,
    KeyboardDriver,
    classify,
)

A_SC = 0x1E
ONE_SC = 0x02
L_SC = 0x26
S_SC = 0x1F
C_SC = 0x2E
D_SC = 0x20
ESC_SC = 0x01


def drain(driver):
    codes = []
    while (code := driver.get_char()) is not None:
        codes.append(code)
    return codes


@pytest.mark.parametrize(
    "scan_code, expected",
    [
        (0x01, KeyAction.PRESSED),
        (0x3A, KeyAction.PRESSED),
        (0x81, KeyAction.RELEASED),
        (0xBA, KeyAction.RELEASED),
        (0x00, KeyAction.ERROR),
        (0x3B, KeyAction.ERROR),
        (0xFF, KeyAction.ERROR),
    ],
)
def test_classify(scan_code, expected):
    assert classify(scan_code) is expected


def test_plain_letter():
    driver = KeyboardDriver()
    assert driver.handle(A_SC) is KeyAction.PRESSED
    assert driver.get_char() == ord("a")
    assert driver.get_char() is None


def test_shift_and_release():
    driver = KeyboardDriver()
    driver.handle(L_SHIFT_SC)
    driver.handle(A_SC)
    driver.handle(ONE_SC)
    assert driver.handle(L_SHIFT_SC | RELEASE_BIT) is KeyAction.RELEASED
    driver.handle(A_SC)
    assert drain(driver) == [ord("A"), ord("!"), ord("a")]


def test_right_shift():
    driver = KeyboardDriver()
    driver.handle(R_SHIFT_SC)
    driver.handle(A_SC)
    driver.handle(R_SHIFT_SC | RELEASE_BIT)
    driver.handle(A_SC)
    assert drain(driver) == [ord("A"), ord("a")]


def test_caps_lock_affects_letters_only():
    driver = KeyboardDriver()
    driver.handle(CAPS_LOCK_SC)
    driver.handle(A_SC)
    driver.handle(ONE_SC)
    driver.handle(L_SHIFT_SC)
    driver.handle(A_SC)
    assert drain(driver) == [ord("A"), ord("1"), ord("a")]


def test_caps_lock_toggles_off():
    driver = KeyboardDriver()
    driver.handle(CAPS_LOCK_SC)
    driver.handle(CAPS_LOCK_SC)
    driver.handle(A_SC)
    assert drain(driver) == [ord("a")]


def test_release_codes_queue_nothing():
    driver = KeyboardDriver()
    driver.handle(A_SC | RELEASE_BIT)
    driver.handle(ESC_SC)
    assert drain(driver) == []


def test_ctrl_l_and_ctrl_d():
    driver = KeyboardDriver()
    driver.handle(L_CONTROL_SC)
    driver.handle(L_SC)
    driver.handle(D_SC)
    driver.handle(A_SC)
    driver.handle(L_CONTROL_SC | RELEASE_BIT)
    driver.handle(A_SC)
    assert drain(driver) == [CLEAR_SCREEN, EOF, ord("a")]


def test_ctrl_c_calls_interrupt():
    calls = []
    driver = KeyboardDriver(on_interrupt=lambda: calls.append("interrupt"))
    driver.handle(L_CONTROL_SC)
    driver.handle(C_SC)
    assert calls == ["interrupt"]
    assert drain(driver) == []


def test_ctrl_s_takes_snapshot():
    driver = KeyboardDriver()
    assert driver.snapshot() == [0] * 17
    frame = list(range(100, 120))
    driver.handle(L_CONTROL_SC)
    driver.handle(S_SC, frame)
    assert driver.snapshot() == frame[:16] + [frame[18]]
    assert drain(driver) == []


def test_ctrl_s_needs_stack_frame():
    driver = KeyboardDriver()
    driver.handle(L_CONTROL_SC)
    with pytest.raises(ValueError):
        driver.handle(S_SC, [1, 2, 3])


def test_buffer_is_bounded():
    driver = KeyboardDriver()
    for _ in range(BUFFER_SIZE + 10):
        driver.handle(A_SC)
    assert len(drain(driver)) == BUFFER_SIZE