from __future__ import annotations

from app_bundler.stages.sources.script import STAGE as SCRIPT_COMPILE
from app_bundler.stages.sources.template import STAGE as TEMPLATE_COMPILE

__all_stages__ = [
    TEMPLATE_COMPILE,
    SCRIPT_COMPILE,
]
