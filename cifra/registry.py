"""
Explicit operation registry.

Front ends address operations by ``(area, object, method)``, e.g.
``("crypt", "text", "encrypt")``.  The table is filled once at startup by
:func:`build_registry`; lookups never import or resolve code by name.
"""

from __future__ import annotations

import inspect
from typing import Any, Callable, Dict, Iterator, Optional, Tuple

from cifra.results import Error, Result
from cifra.service import CryptService

Operation = Callable[..., Result]
OperationKey = Tuple[str, str, str]

UNKNOWN_OPERATION = "UnknownOperation"
INVALID_ARGUMENTS = "InvalidArguments"


class OperationRegistry:
    def __init__(self) -> None:
        self._operations: Dict[OperationKey, Operation] = {}

    def register(self, area: str, obj: str, method: str, operation: Operation) -> None:
        key = (area, obj, method)
        if key in self._operations:
            raise ValueError(f"Operation {'/'.join(key)} is already registered.")
        self._operations[key] = operation

    def lookup(self, area: str, obj: str, method: str) -> Optional[Operation]:
        return self._operations.get((area, obj, method))

    def dispatch(self, area: str, obj: str, method: str, **kwargs: Any) -> Result:
        """Run a registered operation; unknown keys and bad arguments become errors."""
        operation = self.lookup(area, obj, method)
        if operation is None:
            return Error(UNKNOWN_OPERATION, f"No operation {area}/{obj}/{method}.")
        try:
            inspect.signature(operation).bind(**kwargs)
        except TypeError as exc:
            return Error(INVALID_ARGUMENTS, f"{area}/{obj}/{method}: {exc}")
        return operation(**kwargs)

    def __contains__(self, key: object) -> bool:
        return key in self._operations

    def __iter__(self) -> Iterator[OperationKey]:
        return iter(sorted(self._operations))

    def __len__(self) -> int:
        return len(self._operations)


def build_registry(service: CryptService) -> OperationRegistry:
    """Register every service operation under its route-style key."""
    registry = OperationRegistry()
    registry.register("keys", "pair", "generate", service.generate_key_pair)
    registry.register("keys", "secret", "generate", service.generate_secret_key)
    registry.register("crypt", "text", "encrypt", service.encrypt_text)
    registry.register("crypt", "text", "decrypt", service.decrypt_text)
    registry.register("crypt", "file", "encrypt", service.encrypt_file)
    registry.register("crypt", "file", "decrypt", service.decrypt_file)
    registry.register("crypt", "files", "encrypt", service.encrypt_files)
    registry.register("crypt", "files", "decrypt", service.decrypt_files)
    registry.register("symmetric", "text", "encrypt", service.symmetric_encrypt)
    registry.register("symmetric", "text", "decrypt", service.symmetric_decrypt)
    return registry
