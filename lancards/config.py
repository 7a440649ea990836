"""
Pipeline Configuration
=======================
Everything is read from the environment; nothing is required. With no
API keys set, the chain degrades to the offline provider.

    LANCARDS_DATA_PATH            destinations file (~/.lancards/destinations.json)
    LANCARDS_PROVIDER_CHAIN       comma list, tried in order (gemini,openai,offline)
    LANCARDS_APP_LANGUAGE         language of the app-side name card (English)
    LANCARDS_REASONING_EFFORT     low | medium | high (medium)
    LANCARDS_GENERATION_TIMEOUT   seconds for one generate() call (60)
    LANCARDS_SAMPLE_RATE          microphone sample rate (16000)
    LANCARDS_LEVEL_BARS           number of level bars (20)

    GEMINI_API_KEY / GOOGLE_API_KEY, OPENAI_API_KEY, ANTHROPIC_API_KEY, OLLAMA_BASE_URL
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from lancards.providers.base import ProviderConfig

logger = logging.getLogger(__name__)

DEFAULT_DATA_PATH = "~/.lancards/destinations.json"
DEFAULT_CHAIN = ("gemini", "openai", "offline")
REASONING_EFFORTS = ("low", "medium", "high")


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    value = env.get(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning("Ignoring %s=%r (not an integer)", name, value)
        return default


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    value = env.get(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning("Ignoring %s=%r (not a number)", name, value)
        return default


@dataclass
class PipelineConfig:
    data_path: Path = field(default_factory=lambda: Path(DEFAULT_DATA_PATH).expanduser())
    provider_chain: list[str] = field(default_factory=lambda: list(DEFAULT_CHAIN))
    app_language: str = "English"
    reasoning_effort: str = "medium"
    generation_timeout: float = 60.0
    sample_rate: int = 16000
    level_bars: int = 20
    api_keys: dict[str, str] = field(default_factory=dict)
    models: dict[str, str] = field(default_factory=dict)
    ollama_base_url: str = ""

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> PipelineConfig:
        env = os.environ if env is None else env

        chain = [p.strip().lower() for p in env.get("LANCARDS_PROVIDER_CHAIN", "").split(",") if p.strip()]
        effort = env.get("LANCARDS_REASONING_EFFORT", "medium").strip().lower()
        if effort not in REASONING_EFFORTS:
            logger.warning("Unknown reasoning effort %r; using medium", effort)
            effort = "medium"

        api_keys = {
            "gemini": env.get("GEMINI_API_KEY") or env.get("GOOGLE_API_KEY") or "",
            "openai": env.get("OPENAI_API_KEY", ""),
            "anthropic": env.get("ANTHROPIC_API_KEY", ""),
        }
        models = {
            name: env[f"LANCARDS_{name.upper()}_MODEL"]
            for name in ("gemini", "openai", "anthropic", "ollama")
            if env.get(f"LANCARDS_{name.upper()}_MODEL")
        }

        return cls(
            data_path=Path(env.get("LANCARDS_DATA_PATH") or DEFAULT_DATA_PATH).expanduser(),
            provider_chain=chain or list(DEFAULT_CHAIN),
            app_language=env.get("LANCARDS_APP_LANGUAGE") or "English",
            reasoning_effort=effort,
            generation_timeout=_float(env, "LANCARDS_GENERATION_TIMEOUT", 60.0),
            sample_rate=_int(env, "LANCARDS_SAMPLE_RATE", 16000),
            level_bars=_int(env, "LANCARDS_LEVEL_BARS", 20),
            api_keys={k: v for k, v in api_keys.items() if v},
            models=models,
            ollama_base_url=env.get("OLLAMA_BASE_URL", ""),
        )

    def provider_configs(self) -> list[ProviderConfig]:
        """One ProviderConfig per chain entry, always ending in offline."""
        chain = list(dict.fromkeys(self.provider_chain))
        if "offline" not in chain:
            chain.append("offline")
        configs = []
        for name in chain:
            configs.append(ProviderConfig(
                provider_name=name,
                model=self.models.get(name, ""),
                api_key=self.api_keys.get(name, ""),
                base_url=self.ollama_base_url if name == "ollama" else "",
                timeout=self.generation_timeout,
                reasoning_effort=self.reasoning_effort,
            ))
        return configs
