from __future__ import annotations

from app_bundler.stages.modules.bundle import STAGE as BUNDLE
from app_bundler.stages.modules.module_map import STAGE as MODULE_REGISTRY

__all_stages__ = [
    MODULE_REGISTRY,
    BUNDLE,
]
