"""
Configuration provider for model and image-generation credentials.

Resolution order (first complete source wins):
1. Environment variables (.env is loaded at import)
2. Persisted settings (JSON values stored under "ai" / "imageGen")

Preferences only come from persisted settings. A persisted value that is
not valid JSON is treated as absent.
"""
import json
import os
from typing import Awaitable, Callable, Mapping, Optional

import structlog
from dotenv import load_dotenv
from pydantic import ValidationError

from insightwriter.nodes.schemas import (
    AIConfig,
    DEFAULT_CHAT_MODEL,
    DEFAULT_IMAGE_MODEL,
    ImageGenConfig,
    WritingPreferences,
)

load_dotenv()

logger = structlog.get_logger()

AI_SETTING_KEY = "ai"
IMAGE_GEN_SETTING_KEY = "imageGen"
PREFERENCES_SETTING_KEY = "preferences"

SettingLookup = Callable[[str], Awaitable[Optional[str]]]


def env_int(name: str, default: int, environ: Optional[Mapping[str, str]] = None) -> int:
    """Read a positive int from the environment, falling back on junk."""
    env = os.environ if environ is None else environ
    raw = (env.get(name) or "").strip()
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


class ConfigProvider:
    """
    Explicit configuration source injected into the pipelines.

    Args:
        get_setting: awaitable lookup returning the raw persisted value for a key
        environ: environment mapping (defaults to os.environ)
    """

    def __init__(
        self,
        get_setting: Optional[SettingLookup] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._get_setting = get_setting
        self._environ = os.environ if environ is None else environ

    def _env(self, key: str) -> str:
        return (self._environ.get(key) or "").strip()

    async def _load_setting(self, key: str) -> Optional[dict]:
        if self._get_setting is None:
            return None
        raw = await self._get_setting(key)
        if not raw:
            return None
        try:
            value = json.loads(raw)
        except (TypeError, json.JSONDecodeError) as e:
            logger.warning("setting_not_json", key=key, error=str(e))
            return None
        if not isinstance(value, dict):
            logger.warning("setting_not_object", key=key)
            return None
        return value

    async def get_ai_config(self) -> Optional[AIConfig]:
        """Chat model config, or None when neither source provides one."""
        base_url = self._env("OPENAI_API_BASE_URL")
        api_key = self._env("OPENAI_API_KEY")
        if base_url and api_key:
            return AIConfig(
                base_url=base_url,
                api_key=api_key,
                model=self._env("OPENAI_MODEL") or DEFAULT_CHAT_MODEL,
            )

        stored = await self._load_setting(AI_SETTING_KEY)
        if stored is None:
            return None
        try:
            return AIConfig.model_validate(stored)
        except ValidationError as e:
            logger.warning("ai_setting_invalid", error=str(e))
            return None

    async def get_image_gen_config(self) -> Optional[ImageGenConfig]:
        """Image endpoint config, or None when neither source provides one."""
        base_url = self._env("IMAGE_GEN_API_URL")
        api_key = self._env("IMAGE_GEN_API_KEY")
        if base_url and api_key:
            return ImageGenConfig(
                base_url=base_url,
                api_key=api_key,
                model=self._env("IMAGE_GEN_MODEL") or DEFAULT_IMAGE_MODEL,
            )

        stored = await self._load_setting(IMAGE_GEN_SETTING_KEY)
        if stored is None:
            return None
        try:
            return ImageGenConfig.model_validate(stored)
        except ValidationError as e:
            logger.warning("image_gen_setting_invalid", error=str(e))
            return None

    async def get_preferences(self) -> WritingPreferences:
        stored = await self._load_setting(PREFERENCES_SETTING_KEY)
        if stored is None:
            return WritingPreferences()
        try:
            return WritingPreferences.model_validate(stored)
        except ValidationError as e:
            logger.warning("preferences_setting_invalid", error=str(e))
            return WritingPreferences()

    @property
    def model_timeout(self) -> int:
        return env_int("MODEL_TIMEOUT", 120, self._environ)

    @property
    def image_timeout(self) -> int:
        return env_int("IMAGE_TIMEOUT", 120, self._environ)

    @property
    def summary_concurrency(self) -> int:
        return env_int("SUMMARY_CONCURRENCY", 3, self._environ)
