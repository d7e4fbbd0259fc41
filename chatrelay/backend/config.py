from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Tuple

from chatrelay.backend import constants
from chatrelay.backend.errors import ConfigurationError


@dataclass(frozen=True)
class VendorSettings:
	api_key: str
	base_url: str = constants.DEFAULT_OPENAI_BASE_URL
	model: str = constants.DEFAULT_OPENAI_MODEL
	system_prompt: str = constants.DEFAULT_SYSTEM_PROMPT
	max_tokens: int = constants.DEFAULT_MAX_TOKENS
	temperature: float = constants.DEFAULT_TEMPERATURE
	top_p: float = constants.DEFAULT_TOP_P
	frequency_penalty: float = constants.DEFAULT_FREQUENCY_PENALTY
	presence_penalty: float = constants.DEFAULT_PRESENCE_PENALTY
	timeout_s: float = constants.DEFAULT_TIMEOUT_S


@dataclass(frozen=True)
class WebhookSettings:
	webhook_url: str
	timeout_s: float = constants.DEFAULT_TIMEOUT_S


def _str_env(name: str, default: str) -> str:
	raw = os.getenv(name)
	if raw is None:
		return default
	return raw.strip()


def _float_env(name: str, default: float, problems: List[str]) -> float:
	raw = os.getenv(name, "").strip()
	if not raw:
		return default
	try:
		return float(raw)
	except ValueError:
		problems.append(f"{name} must be numeric")
		return default


def _int_env(name: str, default: int, problems: List[str]) -> int:
	raw = os.getenv(name, "").strip()
	if not raw:
		return default
	try:
		return int(raw)
	except ValueError:
		problems.append(f"{name} must be an integer")
		return default


def backend_kind() -> str:
	kind = os.getenv("CHAT_BACKEND", constants.DEFAULT_BACKEND).strip().lower() or constants.DEFAULT_BACKEND
	if kind not in {constants.BACKEND_OPENAI, constants.BACKEND_N8N}:
		raise ConfigurationError(
			[f"CHAT_BACKEND must be one of: {constants.BACKEND_OPENAI}, {constants.BACKEND_N8N}"]
		)
	return kind


def load_vendor_settings() -> Tuple[VendorSettings, List[str]]:
	"""Read vendor settings from the environment.

	Parse problems (non-numeric values) are returned alongside the settings so
	the adapter can report them together with range problems.
	"""
	problems: List[str] = []
	settings = VendorSettings(
		api_key=_str_env("OPENAI_API_KEY", ""),
		base_url=_str_env("OPENAI_BASE_URL", constants.DEFAULT_OPENAI_BASE_URL).rstrip("/")
		or constants.DEFAULT_OPENAI_BASE_URL,
		model=_str_env("OPENAI_MODEL", constants.DEFAULT_OPENAI_MODEL),
		system_prompt=_str_env("SYSTEM_PROMPT", constants.DEFAULT_SYSTEM_PROMPT),
		max_tokens=_int_env("OPENAI_MAX_TOKENS", constants.DEFAULT_MAX_TOKENS, problems),
		temperature=_float_env("OPENAI_TEMPERATURE", constants.DEFAULT_TEMPERATURE, problems),
		top_p=_float_env("OPENAI_TOP_P", constants.DEFAULT_TOP_P, problems),
		frequency_penalty=_float_env(
			"OPENAI_FREQUENCY_PENALTY", constants.DEFAULT_FREQUENCY_PENALTY, problems
		),
		presence_penalty=_float_env(
			"OPENAI_PRESENCE_PENALTY", constants.DEFAULT_PRESENCE_PENALTY, problems
		),
		timeout_s=_float_env("OPENAI_TIMEOUT_S", constants.DEFAULT_TIMEOUT_S, problems),
	)
	return settings, problems


def load_webhook_settings() -> WebhookSettings:
	problems: List[str] = []
	settings = WebhookSettings(
		webhook_url=_str_env("N8N_WEBHOOK_URL", constants.DEFAULT_N8N_WEBHOOK_URL),
		timeout_s=_float_env("N8N_TIMEOUT_S", constants.DEFAULT_TIMEOUT_S, problems),
	)
	if problems:
		raise ConfigurationError(problems, prefix="n8n configuration errors")
	return settings


def vendor_settings_problems(settings: VendorSettings) -> List[str]:
	problems: List[str] = []
	if not settings.api_key:
		problems.append("OPENAI_API_KEY is required")
	elif not settings.api_key.startswith("sk-"):
		problems.append('OPENAI_API_KEY should start with "sk-"')
	if not settings.model:
		problems.append("OPENAI_MODEL is required")
	if not 0 <= settings.temperature <= 2:
		problems.append("OPENAI_TEMPERATURE must be between 0 and 2")
	if not 0 <= settings.top_p <= 1:
		problems.append("OPENAI_TOP_P must be between 0 and 1")
	if not -2 <= settings.frequency_penalty <= 2:
		problems.append("OPENAI_FREQUENCY_PENALTY must be between -2 and 2")
	if not -2 <= settings.presence_penalty <= 2:
		problems.append("OPENAI_PRESENCE_PENALTY must be between -2 and 2")
	if settings.max_tokens < 1:
		problems.append("OPENAI_MAX_TOKENS must be greater than 0")
	if settings.timeout_s <= 0:
		problems.append("OPENAI_TIMEOUT_S must be greater than zero")
	return problems


def is_supported_model(model: str) -> bool:
	return model in constants.SUPPORTED_MODELS


def log_level() -> str:
	level = os.getenv("CHATRELAY_LOG_LEVEL", "INFO").strip().upper() or "INFO"
	if level not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
		return "INFO"
	return level
