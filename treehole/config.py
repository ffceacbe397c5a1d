"""Configuration management for treehole."""

import os
from typing import Any

import yaml
from dotenv import load_dotenv

from treehole.llm.models import ProviderConfig, ProviderType

CONFIG_ENV_VAR = "TREEHOLE_CONFIG"

# Map provider names to environment variable names
PROVIDER_KEY_MAP = {
    "deepseek": "DEEPSEEK_API_KEY",
    "openai": "OPENAI_API_KEY",
    "openrouter": "OPENROUTER_API_KEY",
    "groq": "GROQ_API_KEY",
}


class Configuration:
    """Manages configuration and environment variables for treehole."""

    def __init__(self, config_path: str | None = None) -> None:
        """Initialize configuration from YAML and environment variables.

        Args:
            config_path: YAML file to load. Falls back to ``$TREEHOLE_CONFIG``
                and then to the ``config.yaml`` shipped with the package.
        """
        self.load_env()  # Load .env for API keys
        self.config_path = (
            config_path
            or os.getenv(CONFIG_ENV_VAR)
            or os.path.join(os.path.dirname(__file__), "config.yaml")
        )
        self._config = self._load_yaml_config(self.config_path)

    @staticmethod
    def load_env() -> None:
        """Load environment variables from .env file."""
        load_dotenv()

    @staticmethod
    def _load_yaml_config(config_path: str) -> dict[str, Any]:
        """Load configuration from YAML file."""
        with open(config_path) as file:
            config = yaml.safe_load(file)
            if not isinstance(config, dict):
                raise ValueError(
                    f"Config file must be YAML dict, got {type(config)}"
                )
            return config

    @property
    def active_provider(self) -> str:
        return self._config.get("llm", {}).get("active", "deepseek")

    @property
    def llm_api_key(self) -> str:
        """Get the API key for the active LLM provider.

        Returns:
            The API key as a string.

        Raises:
            ValueError: If the API key is not found in environment variables.
        """
        active_provider = self.active_provider

        env_key = PROVIDER_KEY_MAP.get(active_provider)
        if not env_key:
            raise ValueError(
                f"Unknown provider '{active_provider}' - no API key mapping found"
            )

        api_key = os.getenv(env_key)
        if not api_key:
            raise ValueError(
                f"API key '{env_key}' not found in environment variables "
                f"for provider '{active_provider}'"
            )

        return api_key

    def get_config_dict(self) -> dict[str, Any]:
        """Get the full configuration dictionary."""
        return self._config

    def get_llm_config(self) -> dict[str, Any]:
        """Get active LLM provider configuration from YAML.

        Returns:
            Active LLM provider configuration dictionary.

        Raises:
            ValueError: If the active provider or its required keys are missing.
        """
        providers = self._config.get("llm", {}).get("providers", {})
        active_provider = self.active_provider

        if active_provider not in providers:
            raise ValueError(
                f"Active provider '{active_provider}' not found in providers config"
            )

        provider_config = providers[active_provider]
        for key in ("base_url", "model"):
            if not provider_config.get(key):
                raise ValueError(
                    f"llm.providers.{active_provider}.{key} must be explicitly "
                    "configured in config.yaml"
                )

        return provider_config

    def get_http_client_config(self) -> dict[str, Any]:
        """Get HTTP client timeouts for the active LLM provider.

        Raises:
            ValueError: If a timeout is missing or not positive.
        """
        http_config = self.get_llm_config().get("http_client", {})

        required_keys = [
            "connect_timeout", "read_timeout", "write_timeout", "pool_timeout"
        ]
        for key in required_keys:
            if key not in http_config:
                raise ValueError(
                    f"http_client.{key} must be explicitly configured "
                    f"for provider '{self.active_provider}' in config.yaml"
                )
            if http_config[key] <= 0:
                raise ValueError(f"http_client.{key} must be positive")

        return http_config

    def get_chat_config(self) -> dict[str, Any]:
        """Get chat configuration from YAML."""
        return self._config.get("chat", {})

    def get_system_prompt(self) -> str:
        """Get the system prompt that opens every request.

        Raises:
            ValueError: If no system prompt is configured.
        """
        system_prompt = self.get_chat_config().get("system_prompt")
        if not isinstance(system_prompt, str) or not system_prompt.strip():
            raise ValueError(
                "chat.system_prompt must be explicitly configured in config.yaml"
            )
        return system_prompt.strip()

    def get_provider_config(self) -> ProviderConfig:
        """Build the provider parameter object injected into the chat client."""
        llm_config = self.get_llm_config()
        http_config = self.get_http_client_config()

        try:
            provider = ProviderType(self.active_provider)
        except ValueError as e:
            raise ValueError(
                f"Unsupported provider '{self.active_provider}'"
            ) from e

        return ProviderConfig(
            provider=provider,
            base_url=llm_config["base_url"],
            model=llm_config["model"],
            api_key=self.llm_api_key,
            system_prompt=self.get_system_prompt(),
            connect_timeout=float(http_config["connect_timeout"]),
            read_timeout=float(http_config["read_timeout"]),
            write_timeout=float(http_config["write_timeout"]),
            pool_timeout=float(http_config["pool_timeout"]),
        )

    def get_cards_config(self) -> dict[str, Any]:
        """Get card feed backend configuration.

        Raises:
            ValueError: If ``cards.base_url`` is missing.
        """
        cards_config = self._config.get("cards", {})
        if not cards_config.get("base_url"):
            raise ValueError(
                "cards.base_url must be explicitly configured in config.yaml"
            )
        return cards_config

    def get_logging_config(self) -> dict[str, Any]:
        """Get logging configuration from YAML."""
        return self._config.get("logging", {})
