"""
API-to-CDN Pipeline Components

This module provides the core pipeline architecture following the Source → Transform → Publish pattern.

Components:
- source: ApiSource for authenticated JSON retrieval
- transform: ModuleTransformer for rendering and persisting ES modules
- publish: KVPublisher for Cloudflare KV uploads and accessibility checks
- runner: SyncRunner sequencing the stages across endpoints
"""

from .publish import KVPublisher, collect_output_files
from .runner import SyncRunner
from .source import ApiSource
from .transform import ModuleTransformer, derive_identifier

__all__ = [
    "ApiSource", "ModuleTransformer", "KVPublisher", "SyncRunner",
    "collect_output_files", "derive_identifier",
]
