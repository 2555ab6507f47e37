from __future__ import annotations

import importlib
import logging
from typing import Dict, Mapping

from supportdesk.dynamic_fields.base import FieldBackend

logger = logging.getLogger(__name__)


class BackendRegistrationError(RuntimeError):
    pass


class BackendRegistry:
    def __init__(self) -> None:
        self._backends: Dict[str, FieldBackend] = {}

    def register(self, field_type: str, backend: FieldBackend) -> None:
        self._backends[field_type] = backend

    def get(self, field_type: str) -> FieldBackend:
        if field_type not in self._backends:
            raise KeyError(f"backend not registered: {field_type}")
        return self._backends[field_type]

    def __contains__(self, field_type: object) -> bool:
        return field_type in self._backends

    def field_types(self) -> list[str]:
        return sorted(self._backends)


def _load_backend(field_type: str, reference: str) -> FieldBackend:
    module_path, _, class_name = reference.partition(":")
    if not module_path or not class_name:
        raise BackendRegistrationError(f"Registration for field type {field_type} is invalid!")

    try:
        module = importlib.import_module(module_path)
    except ImportError as e:
        raise BackendRegistrationError(
            f"Can't load dynamic field backend module for field type {field_type}!"
        ) from e

    backend_cls = getattr(module, class_name, None)
    if backend_cls is None:
        raise BackendRegistrationError(f"Can't load dynamic field backend module for field type {field_type}!")

    try:
        backend = backend_cls()
    except Exception as e:
        raise BackendRegistrationError(f"Couldn't create a backend object for field type {field_type}!") from e

    if getattr(backend, "field_type", None) != field_type:
        raise BackendRegistrationError(
            f"Backend object for field type {field_type} was not created successfully!"
        )
    return backend


def build_backend_registry(config: Mapping[str, str]) -> BackendRegistry:
    """Create every registered backend; any failure aborts the whole build."""
    if not config:
        logger.error("Dynamic field configuration is not valid!")
        raise BackendRegistrationError("Dynamic field configuration is not valid!")

    reg = BackendRegistry()
    for field_type in sorted(config):
        try:
            backend = _load_backend(field_type, config[field_type] or "")
        except BackendRegistrationError as e:
            logger.error("%s", e)
            raise
        reg.register(field_type, backend)
    return reg
