"""Hash table mapping (file descriptor, page number) to buffer frames."""

from __future__ import annotations

from typing import Any

from .errors import ErrorCode, PFError

DEFAULT_TABLE_SIZE = 20


class PageTable:
    """Chained hash table locating the buffer frame that holds a page."""

    def __init__(self, size: int = DEFAULT_TABLE_SIZE) -> None:
        if size <= 0:
            raise ValueError("table size must be positive")
        self.size = size
        self._buckets: list[list[tuple[int, int, Any]]] = [[] for _ in range(size)]

    def bucket(self, fd: int, page: int) -> int:
        """Return the bucket index for a page of a file."""
        return (fd + page) % self.size

    def find(self, fd: int, page: int) -> Any | None:
        """Return the frame holding the page, or None if it is not buffered."""
        for entry_fd, entry_page, frame in self._buckets[self.bucket(fd, page)]:
            if entry_fd == fd and entry_page == page:
                return frame
        return None

    def insert(self, fd: int, page: int, frame: Any) -> None:
        """Record that the page is held in the given frame."""
        if self.find(fd, page) is not None:
            raise PFError(ErrorCode.HASHPAGEEXIST)
        self._buckets[self.bucket(fd, page)].insert(0, (fd, page, frame))

    def delete(self, fd: int, page: int) -> None:
        """Forget the frame holding the page."""
        entries = self._buckets[self.bucket(fd, page)]
        for position, (entry_fd, entry_page, _) in enumerate(entries):
            if entry_fd == fd and entry_page == page:
                del entries[position]
                return
        raise PFError(ErrorCode.HASHNOTFOUND)

    def clear(self) -> None:
        """Remove every entry."""
        for entries in self._buckets:
            entries.clear()

    def dump(self) -> str:
        """Return a listing of every bucket and its entries."""
        lines: list[str] = []
        for index, entries in enumerate(self._buckets):
            lines.append(f"bucket {index}")
            if not entries:
                lines.append("\tempty")
            for fd, page, frame in entries:
                lines.append(f"\tfd: {fd}, page: {page}, bpage: {frame!r}")
        return "\n".join(lines) + "\n"

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._buckets)

    def __contains__(self, key: tuple[int, int]) -> bool:
        fd, page = key
        return self.find(fd, page) is not None