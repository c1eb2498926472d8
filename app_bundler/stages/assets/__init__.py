from __future__ import annotations

from app_bundler.stages.assets.html import STAGE as HTML
from app_bundler.stages.assets.public import STAGE as PUBLIC
from app_bundler.stages.assets.style import STAGE as STYLE

__all_stages__ = [
    STYLE,
    HTML,
    PUBLIC,
]
