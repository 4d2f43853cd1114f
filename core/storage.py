from __future__ import annotations

import os
import re

from django.core.files.storage import default_storage


_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def sanitize_filename(filename: str) -> str:
    safe_name = os.path.basename(filename or "").strip()
    safe_name = _UNSAFE_CHARS.sub("_", safe_name).strip("._")
    return safe_name or "file"


def build_document_key(tenant_id: int, document_id: int, filename: str) -> str:
    return "/".join(["tenants", str(tenant_id), "documents", str(document_id), sanitize_filename(filename)])


class TenantStorage:
    """Object storage scoped to one tenant's key prefix."""

    def __init__(self, tenant_id: int, storage=None):
        self.tenant_id = tenant_id
        self.storage = storage or default_storage
        self.prefix = f"tenants/{tenant_id}/"

    def _check_key(self, key: str) -> str:
        if not key.startswith(self.prefix) or ".." in key.split("/"):
            raise PermissionError(f"Storage key outside tenant prefix: {key}")
        return key

    def save(self, key: str, content) -> str:
        return self.storage.save(self._check_key(key), content)

    def open(self, key: str, mode: str = "rb"):
        return self.storage.open(self._check_key(key), mode)

    def exists(self, key: str) -> bool:
        return self.storage.exists(self._check_key(key))

    def delete(self, key: str) -> None:
        self.storage.delete(self._check_key(key))


def get_storage(tenant_id: int) -> TenantStorage:
    return TenantStorage(tenant_id)
