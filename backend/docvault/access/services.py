from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from flask import current_app

from .gateway import AccessGateway
from .hierarchy import HierarchyValidator
from .ports import Clock, SecretTokenGenerator, SystemClock, TokenGenerator
from .resolver import PermissionResolver
from .share_links import ShareLinkManager
from .stores import SqlDocumentStore, SqlGrantStore, SqlShareLinkStore, SqlUserStore


EXTENSION_KEY = "docvault.access"


@dataclass
class AccessCore:
    clock: Clock
    documents: SqlDocumentStore
    users: SqlUserStore
    resolver: PermissionResolver
    hierarchy: HierarchyValidator
    share_links: ShareLinkManager
    gateway: AccessGateway


def build_access_core(config: Mapping[str, Any], clock: Clock | None = None, tokens: TokenGenerator | None = None) -> AccessCore:
    clock = clock or config.get("ACCESS_CLOCK") or SystemClock()
    tokens = tokens or SecretTokenGenerator(config.get("SHARE_TOKEN_BYTES", 16))

    documents = SqlDocumentStore()
    resolver = PermissionResolver(
        documents,
        SqlGrantStore(),
        clock,
        batch_limit=config.get("PERMISSION_BATCH_LIMIT", 100),
    )
    share_links = ShareLinkManager(
        documents,
        SqlShareLinkStore(),
        resolver,
        clock,
        tokens,
        member_batch_limit=config.get("SHARE_MEMBER_BATCH_LIMIT", 50),
    )
    return AccessCore(
        clock=clock,
        documents=documents,
        users=SqlUserStore(),
        resolver=resolver,
        hierarchy=HierarchyValidator(),
        share_links=share_links,
        gateway=AccessGateway(documents, resolver, share_links),
    )


def access_core() -> AccessCore:
    return current_app.extensions[EXTENSION_KEY]
