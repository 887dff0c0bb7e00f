"""
Per-process service container.

Everything that must live for the whole process (the database handle, the
in-memory token slot) hangs off one Services object built at startup and
passed to whoever needs it. Tests build their own with fakes.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict

from toolgate.connector import ResilientConnector
from toolgate.ip_lookup import LookupCache
from toolgate.schemas import BackendKind
from toolgate.token_issuer import RemoteTokenIssuer
from toolgate.token_manager import TokenLifecycleManager
from toolgate.token_store import create_backend
from toolgate.uploader import Uploader
from toolgate.utils import default_db_uri, default_token_file


@dataclass
class Services:
    connector: ResilientConnector
    token_manager: TokenLifecycleManager
    lookup_cache: LookupCache
    token_file: Path
    default_backend_kind: BackendKind = BackendKind.DATABASE
    uploader_options: Dict = field(default_factory=dict)
    _backends: Dict[BackendKind, object] = field(default_factory=dict)

    def backend(self, kind=None):
        """Return the token store for a kind, creating it once."""
        kind = BackendKind.parse(kind) if kind else self.default_backend_kind
        if kind not in self._backends:
            self._backends.setdefault(kind, create_backend(
                kind, connector=self.connector, token_file=self.token_file
            ))
        return self._backends[kind]

    def get_token(self, kind=None) -> str:
        return self.token_manager.get_token(self.backend(kind))

    def uploader(self) -> Uploader:
        return Uploader(self.token_manager, self.backend(), **self.uploader_options)


def build_services(db_uri: str = None, token_file: Path = None, backend: str = None,
                   issuer: RemoteTokenIssuer = None, lookup_cache: LookupCache = None) -> Services:
    """Wire up the services from configuration. Nothing connects until first use."""
    connector = ResilientConnector(db_uri or default_db_uri())
    return Services(
        connector=connector,
        token_manager=TokenLifecycleManager(issuer or RemoteTokenIssuer()),
        lookup_cache=lookup_cache or LookupCache(connector),
        token_file=Path(token_file) if token_file else default_token_file(),
        default_backend_kind=BackendKind.parse(backend or os.getenv("TOKEN_BACKEND", "DATABASE")),
    )
