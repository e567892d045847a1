"""
Credentials for the external services behind the passport API.

Keys come from environment variables only (optionally via the repository
``.env``). The status endpoint shows masked keys, never full ones.
"""

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv(dotenv_path=os.path.join(os.path.dirname(__file__), "..", ".env"))


PROVIDERS = {
    "anthropic": {"env_var": "ANTHROPIC_API_KEY", "label": "Anthropic"},
    "openai": {"env_var": "OPENAI_API_KEY", "label": "OpenAI"},
    "gemini": {"env_var": "GEMINI_API_KEY", "label": "Google Gemini"},
    "elevenlabs": {"env_var": "ELEVENLABS_API_KEY", "label": "ElevenLabs"},
    "ec3": {"env_var": "EC3_API_KEY", "label": "EC3 (Building Transparency)"},
}


class ApiKeyStatus(BaseModel):
    provider: str
    label: str
    configured: bool
    masked_key: Optional[str] = None


def mask_key(key: Optional[str]) -> Optional[str]:
    if not key:
        return None
    return f"{key[:4]}...{key[-4:]}" if len(key) > 8 else "***"


class ApiKeysManager:

    def get_key(self, provider: str) -> Optional[str]:
        """Key for ``provider``; unknown providers and blank values give None."""
        meta = PROVIDERS.get(provider)
        if meta is None:
            return None
        value = os.getenv(meta["env_var"], "").strip()
        return value or None

    def get_status(self) -> list[ApiKeyStatus]:
        statuses = []
        for provider, meta in PROVIDERS.items():
            key = self.get_key(provider)
            statuses.append(ApiKeyStatus(
                provider=provider,
                label=meta["label"],
                configured=key is not None,
                masked_key=mask_key(key),
            ))
        return statuses


api_keys_manager = ApiKeysManager()
