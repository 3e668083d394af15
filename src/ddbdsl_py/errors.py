from __future__ import annotations


class DdbdslPyError(Exception):
    pass


class ConditionFailedError(DdbdslPyError):
    pass


class NotFoundError(DdbdslPyError):
    pass


class ValidationError(DdbdslPyError):
    pass


class ItemDecodeError(DdbdslPyError):
    def __init__(self, *, table_name: str, reason: str) -> None:
        super().__init__(f"{table_name}: item could not be decoded ({reason})")
        self.table_name = table_name
        self.reason = reason


class BatchRetryExceededError(DdbdslPyError):
    def __init__(self, *, operation: str, unprocessed_count: int) -> None:
        super().__init__(f"{operation}: retry limit exceeded (unprocessed={unprocessed_count})")
        self.operation = operation
        self.unprocessed_count = unprocessed_count


class AwsError(DdbdslPyError):
    def __init__(self, *, code: str, message: str) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message
