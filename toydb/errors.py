"""Error codes and exceptions for the paged-file and record layers."""

from __future__ import annotations

from enum import IntEnum


class ErrorCode(IntEnum):
    """Numeric error codes used by the paged-file and record layers."""

    OK = 0
    NOMEM = -1
    NOBUF = -2
    PAGEFIXED = -3
    PAGENOTINBUF = -4
    UNIX = -5
    INCOMPLETEREAD = -6
    INCOMPLETEWRITE = -7
    HDRREAD = -8
    HDRWRITE = -9
    INVALIDPAGE = -10
    FILEOPEN = -11
    FTABFULL = -12
    FD = -13
    EOF = -14
    PAGEFREE = -15
    PAGEUNFIXED = -16
    PAGEINBUF = -17
    HASHNOTFOUND = -18
    HASHPAGEEXIST = -19
    RM_EOF = -100
    INVALID_RID = -101
    RECORD_DELETED = -102


_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.OK: "No error",
    ErrorCode.NOMEM: "No memory",
    ErrorCode.NOBUF: "No buffer space",
    ErrorCode.PAGEFIXED: "Page already fixed in buffer",
    ErrorCode.PAGENOTINBUF: "page to be unfixed is not in the buffer",
    ErrorCode.UNIX: "unix error",
    ErrorCode.INCOMPLETEREAD: "incomplete read of page from file",
    ErrorCode.INCOMPLETEWRITE: "incomplete write of page to file",
    ErrorCode.HDRREAD: "incomplete read of header from file",
    ErrorCode.HDRWRITE: "incomplete write of header to file",
    ErrorCode.INVALIDPAGE: "invalid page number",
    ErrorCode.FILEOPEN: "file already open",
    ErrorCode.FTABFULL: "file table full",
    ErrorCode.FD: "invalid file descriptor",
    ErrorCode.EOF: "end of file",
    ErrorCode.PAGEFREE: "page already free",
    ErrorCode.PAGEUNFIXED: "page already unfixed",
    ErrorCode.PAGEINBUF: "new page to be allocated already in buffer",
    ErrorCode.HASHNOTFOUND: "hash table entry not found",
    ErrorCode.HASHPAGEEXIST: "page already in hash table",
    ErrorCode.RM_EOF: "end of scan",
    ErrorCode.INVALID_RID: "invalid record id",
    ErrorCode.RECORD_DELETED: "record already deleted",
}


def error_message(code: int) -> str:
    """Return the human-readable message for an error code."""
    try:
        return _MESSAGES[ErrorCode(code)]
    except ValueError:
        raise ValueError(f"unknown error code {code}") from None


class PFError(Exception):
    """An error reported by the paged-file layer."""

    def __init__(self, code: int, context: str = "") -> None:
        self.code = ErrorCode(code)
        self.context = context
        super().__init__(str(self))

    def __str__(self) -> str:
        message = error_message(self.code)
        return f"{self.context}:{message}" if self.context else message


class RMError(PFError):
    """An error reported by the record-management layer."""


class InvalidRIDError(RMError):
    """The record id names a slot that does not exist on its page."""

    def __init__(self, context: str = "") -> None:
        super().__init__(ErrorCode.INVALID_RID, context)


class RecordDeletedError(RMError):
    """The record id names a slot whose record has been deleted."""

    def __init__(self, context: str = "") -> None:
        super().__init__(ErrorCode.RECORD_DELETED, context)