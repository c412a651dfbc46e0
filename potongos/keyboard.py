"""Per-process key buffers and the classic PS/2 scan-code keyboard."""

from __future__ import annotations

from typing import Any, Callable

from .errors import KEYBOARD_BUFFER_SIZE, ErrorCode, KernelError

PS2_PORT = 0x64
PS2_COMMAND_ENABLE_FIRST_PORT = 0xAE

CLASSIC_KEYBOARD_KEY_RELEASED = 0x80
ISR_KEYBOARD_INTERRUPT = 0x21
KEYBOARD_INPUT_PORT = 0x60

CLASSIC_KEYBOARD_CAPSLOCK = 0x3A
CLASSIC_KEYBOARD_LSHIFT = 0x2A
CLASSIC_KEYBOARD_LSHIFT_R = 0xAA

_SCAN_SET_ONE = (
    "\x00\x1b1234567890-="
    "\x08\tQWERTYUIOP[]"
    "\r\x00ASDFGHJKL;'`"
    "\x00\\ZXCVBNM,./\x00*"
    "\x00 \x00\x00\x00\x00"
    "\x00\x00\x00\x00\x00\x00"
    "\x00789-456+1230."
)


class KeyboardBuffer:
    """A ring of typed characters read in the order they were pushed."""

    def __init__(self, size: int = KEYBOARD_BUFFER_SIZE) -> None:
        self._buffer = [""] * size
        self.tail = 0
        self.head = 0

    def push(self, ch: str) -> None:
        """Append ``ch``; a NUL is ignored."""
        if not ch or ch == "\0":
            return
        self._buffer[self.tail % len(self._buffer)] = ch
        self.tail += 1

    def pop(self) -> str | None:
        """The oldest unread character, or None if there is none."""
        index = self.head % len(self._buffer)
        ch = self._buffer[index]
        if not ch:
            return None
        self._buffer[index] = ""
        self.head += 1
        return ch

    def backspace(self) -> None:
        """Drop the most recently pushed character."""
        self.tail -= 1
        self._buffer[self.tail % len(self._buffer)] = ""


class ClassicKeyboard:
    """Translates scan-code set one into characters for ``sink``."""

    name = "Classic"

    def __init__(self, sink: Callable[[str], Any]) -> None:
        self.sink = sink
        self.capslock = False

    def init(self) -> int:
        """Reset the keyboard state; capslock starts off."""
        self.capslock = False
        return 0

    def scancode_to_char(self, scancode: int) -> str | None:
        """The character for a key press, or None if the key has none."""
        if not 0 <= scancode < len(_SCAN_SET_ONE):
            return None
        ch = _SCAN_SET_ONE[scancode]
        if ch == "\0":
            return None
        if not self.capslock and "A" <= ch <= "Z":
            ch = ch.lower()
        return ch

    def handle_scancode(self, scancode: int) -> None:
        """Process one scan code as the keyboard interrupt would."""
        if scancode & CLASSIC_KEYBOARD_KEY_RELEASED:
            if scancode == CLASSIC_KEYBOARD_LSHIFT_R:
                self.toggle_capslock()
            return
        if scancode in (CLASSIC_KEYBOARD_CAPSLOCK, CLASSIC_KEYBOARD_LSHIFT):
            self.toggle_capslock()
        ch = self.scancode_to_char(scancode)
        if ch:
            self.sink(ch)

    def toggle_capslock(self) -> None:
        self.capslock = not self.capslock


class KeyboardChain:
    """The registered keyboards, initialised as they are inserted."""

    def __init__(self) -> None:
        self.keyboards: list[Any] = []

    def insert(self, keyboard: Any) -> int:
        """Register ``keyboard`` and return the result of its ``init``."""
        init = getattr(keyboard, "init", None)
        if not callable(init):
            raise KernelError(ErrorCode.EINVARG, "keyboard has no init routine")
        self.keyboards.append(keyboard)
        return init()