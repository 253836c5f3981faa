from __future__ import annotations

from typing import Any


class StorageError(Exception):
    """Base error for the storage layer: which operation failed, why, and the driver error if any."""

    def __init__(self, operation: str, message: str, cause: BaseException | None = None) -> None:
        super().__init__(f"{operation}: {message}")
        self.operation = operation
        self.message = message
        self.cause = cause


class SchemaError(StorageError):
    pass


class TranslationError(StorageError):
    def __init__(self, node_kind: str, message: str) -> None:
        super().__init__("translate", f"unsupported {node_kind}: {message}")
        self.node_kind = node_kind


class NotFoundError(StorageError):
    def __init__(self, operation: str, entity: str, key: Any) -> None:
        super().__init__(operation, f"record not found for {entity} = {key}")
        self.entity = entity
        self.key = key


class AlreadyExistsError(StorageError):
    pass


class StorageConnectionError(StorageError):
    pass
