"""Configuration helpers for the capacity assessment interview."""

from __future__ import annotations

import os
from dataclasses import dataclass
from importlib import import_module
from pathlib import Path
from typing import Optional

DEFAULT_PERSONA = "morgan"
DEFAULT_RESPONDER_TIMEOUT = 60.0


@dataclass(slots=True)
class ModelSettings:
    """Holds model-related configuration for the responder."""

    provider: str
    model: str
    endpoint: Optional[str]
    api_key: str
    api_version: Optional[str]


@dataclass(slots=True)
class AppSettings:
    """Top-level application settings loaded from environment variables."""

    model: ModelSettings
    output_dir: Path
    consultation_log: Path
    redis_url: Optional[str]
    responder_timeout: Optional[float]
    persona_id: str = DEFAULT_PERSONA

    @classmethod
    def load(cls) -> "AppSettings":
        """Load settings from the environment or .env file."""
        _ensure_dotenv()
        provider = os.getenv("MAF_MODEL_PROVIDER", "azure-openai")
        model = os.getenv("MAF_MODEL")
        if not model:
            raise RuntimeError("MAF_MODEL environment variable is required.")
        endpoint = os.getenv("MAF_MODEL_ENDPOINT")
        api_key = os.getenv("MAF_MODEL_API_KEY")
        if not api_key:
            raise RuntimeError(
                "MAF_MODEL_API_KEY environment variable is required."
            )
        api_version = os.getenv("MAF_MODEL_API_VERSION")
        output_dir = Path(os.getenv("MAF_OUTPUT_DIR", "outputs"))
        output_dir.mkdir(parents=True, exist_ok=True)
        consultation_log = Path(
            os.getenv(
                "MAF_CONSULTATION_JSONL",
                str(output_dir / "consultations.jsonl"),
            )
        )
        consultation_log.parent.mkdir(parents=True, exist_ok=True)
        redis_url: Optional[str] = os.getenv(
            "MAF_REDIS_URL", "redis://localhost:6379/0"
        )
        if redis_url is not None and not redis_url.strip():
            redis_url = None
        responder_timeout = _parse_timeout(
            os.getenv("MAF_RESPONDER_TIMEOUT", str(DEFAULT_RESPONDER_TIMEOUT))
        )
        persona_id = _parse_persona(os.getenv("MAF_PERSONA", DEFAULT_PERSONA))
        return cls(
            model=ModelSettings(
                provider=provider,
                model=model,
                endpoint=endpoint,
                api_key=api_key,
                api_version=api_version,
            ),
            output_dir=output_dir,
            consultation_log=consultation_log,
            redis_url=redis_url,
            responder_timeout=responder_timeout,
            persona_id=persona_id,
        )


def _parse_timeout(raw: str) -> Optional[float]:
    try:
        value = float(raw)
    except ValueError as exc:
        raise RuntimeError("MAF_RESPONDER_TIMEOUT must be a number") from exc
    if value < 0:
        raise RuntimeError("MAF_RESPONDER_TIMEOUT must not be negative")
    if value == 0:
        return None
    return value


def _parse_persona(raw: str) -> str:
    from .prompts import PERSONAS

    persona_id = raw.strip().lower() or DEFAULT_PERSONA
    if persona_id not in PERSONAS:
        known = ", ".join(sorted(PERSONAS))
        raise RuntimeError(
            f"MAF_PERSONA must be one of: {known} (got '{raw}')"
        )
    return persona_id


def _ensure_dotenv() -> None:
    """Load dotenv variables and provide a helpful error if missing."""

    try:
        dotenv_module = import_module("dotenv")
    except ModuleNotFoundError as exc:  # pragma: no cover - optional dep
        raise RuntimeError(
            "python-dotenv is required. Install with `pip install "
            "python-dotenv`."
        ) from exc

    load_dotenv = getattr(dotenv_module, "load_dotenv")
    load_dotenv()
