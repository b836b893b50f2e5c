"""Progress reporting for paged retrievals.

The retriever talks to a ``ProgressReporter``; what the user sees is up to
the implementation. ``ConsoleProgress`` writes a one-line status to stderr,
``SilentProgress`` only logs.
"""

from __future__ import annotations

import logging
import sys
from typing import Protocol, TextIO

logger = logging.getLogger(__name__)


class ProgressReporter(Protocol):
    """Collaborator notified while a paged retrieval runs."""

    def set_label(self, label: str) -> None: ...

    def set_num_pages(self, num_pages: int) -> None: ...

    def set_page(self, page: int) -> None: ...

    def show(self) -> None: ...

    def hide(self) -> None: ...

    def modal_alert(self, message: str) -> None:
        """Tell the user something and wait until they have seen it."""
        ...


class SilentProgress:
    """Reporter for non-interactive use; alerts go to the log."""

    def set_label(self, label: str) -> None:
        pass

    def set_num_pages(self, num_pages: int) -> None:
        pass

    def set_page(self, page: int) -> None:
        pass

    def show(self) -> None:
        pass

    def hide(self) -> None:
        pass

    def modal_alert(self, message: str) -> None:
        logger.warning(message)


class ConsoleProgress:
    """Single-line progress on a terminal stream."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self.stream = stream or sys.stderr
        self.label = ""
        self.num_pages = 0
        self.page = 0
        self.visible = False

    def _render(self) -> None:
        if not self.visible:
            return
        line = f"Retrieving {self.label}: page {self.page}"
        if self.num_pages:
            line += f" of {self.num_pages}"
        self.stream.write(f"\r{line}")
        self.stream.flush()

    def set_label(self, label: str) -> None:
        self.label = label
        self._render()

    def set_num_pages(self, num_pages: int) -> None:
        self.num_pages = num_pages
        self._render()

    def set_page(self, page: int) -> None:
        self.page = page
        self._render()

    def show(self) -> None:
        self.visible = True
        self._render()

    def hide(self) -> None:
        if self.visible:
            self.stream.write("\n")
            self.stream.flush()
        self.visible = False

    def modal_alert(self, message: str) -> None:
        self.stream.write(f"\n{message}\n")
        self.stream.flush()
