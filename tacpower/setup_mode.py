"""Setup mode: a window in which sensitive configuration may be changed."""

from __future__ import annotations

from pathlib import Path

AUTHORIZED_KEYS_PATH = "/home/root/.ssh/authorized_keys"


class SetupMode:
    """Tracks setup mode and guards access to the authorized keys file.

    Clients may only ever leave setup mode, never enter it, as entering it
    would let them take over the device.
    """

    def __init__(
        self,
        path: str | Path = AUTHORIZED_KEYS_PATH,
        setup_mode: bool = True,
        show_help: bool = True,
    ) -> None:
        self.path = Path(path)
        self.setup_mode = setup_mode
        self.show_help = show_help

    def handle_leave_request(self, value: bool) -> None:
        """Leave setup mode if value is False; other values are ignored."""
        if not value:
            self.setup_mode = False

    def read_file(self) -> bytes:
        """Return the file content; only allowed in setup mode."""
        if not self.setup_mode:
            raise PermissionError("This file may only be read in setup mode")
        return self.path.read_bytes()

    def write_file(self, content: bytes | str) -> None:
        """Replace the file content; only allowed in setup mode."""
        if not self.setup_mode:
            raise PermissionError("This file may only be written in setup mode")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, str):
            content = content.encode()
        self.path.write_bytes(content)