import os
from unittest import TestCase
from unittest.mock import patch

from chatrelay.backend import config, constants
from chatrelay.backend.errors import ConfigurationError


class BackendSelectionTests(TestCase):
	def test_defaults_to_webhook_backend(self) -> None:
		with patch.dict(os.environ, {}, clear=True):
			self.assertEqual(config.backend_kind(), constants.BACKEND_N8N)

	def test_backend_name_is_case_insensitive(self) -> None:
		with patch.dict(os.environ, {"CHAT_BACKEND": " OpenAI "}, clear=True):
			self.assertEqual(config.backend_kind(), constants.BACKEND_OPENAI)

	def test_unknown_backend_raises(self) -> None:
		with patch.dict(os.environ, {"CHAT_BACKEND": "smtp"}, clear=True):
			with self.assertRaises(ConfigurationError) as ctx:
				config.backend_kind()
		self.assertEqual(ctx.exception.code, "configuration_error")


class VendorSettingsTests(TestCase):
	def test_defaults(self) -> None:
		with patch.dict(os.environ, {"OPENAI_API_KEY": "sk-abc"}, clear=True):
			settings, problems = config.load_vendor_settings()
		self.assertEqual(problems, [])
		self.assertEqual(settings.model, "gpt-4o-mini")
		self.assertEqual(settings.max_tokens, 1000)
		self.assertEqual(settings.temperature, 0.7)
		self.assertEqual(config.vendor_settings_problems(settings), [])

	def test_overrides_and_trailing_slash(self) -> None:
		env = {
			"OPENAI_API_KEY": "sk-abc",
			"OPENAI_BASE_URL": "http://localhost:8080/v1/",
			"OPENAI_MAX_TOKENS": "64",
			"OPENAI_TOP_P": "0.5",
		}
		with patch.dict(os.environ, env, clear=True):
			settings, problems = config.load_vendor_settings()
		self.assertEqual(problems, [])
		self.assertEqual(settings.base_url, "http://localhost:8080/v1")
		self.assertEqual(settings.max_tokens, 64)
		self.assertEqual(settings.top_p, 0.5)

	def test_unparseable_numbers_are_collected(self) -> None:
		env = {"OPENAI_MAX_TOKENS": "lots", "OPENAI_PRESENCE_PENALTY": "none"}
		with patch.dict(os.environ, env, clear=True):
			settings, problems = config.load_vendor_settings()
		self.assertEqual(
			problems,
			["OPENAI_MAX_TOKENS must be an integer", "OPENAI_PRESENCE_PENALTY must be numeric"],
		)
		self.assertEqual(settings.max_tokens, constants.DEFAULT_MAX_TOKENS)

	def test_configuration_error_message_lists_problems(self) -> None:
		error = ConfigurationError(["a", "b"])
		self.assertEqual(error.problems, ["a", "b"])
		self.assertIn("a", error.message)
		self.assertIn("b", error.message)
		self.assertEqual(error.status_code, 500)


class WebhookSettingsTests(TestCase):
	def test_default_url(self) -> None:
		with patch.dict(os.environ, {}, clear=True):
			settings = config.load_webhook_settings()
		self.assertEqual(settings.webhook_url, constants.DEFAULT_N8N_WEBHOOK_URL)

	def test_bad_timeout_raises(self) -> None:
		with patch.dict(os.environ, {"N8N_TIMEOUT_S": "soon"}, clear=True):
			with self.assertRaises(ConfigurationError) as ctx:
				config.load_webhook_settings()
		self.assertEqual(ctx.exception.problems, ["N8N_TIMEOUT_S must be numeric"])


class LogLevelTests(TestCase):
	def test_unknown_level_falls_back_to_info(self) -> None:
		with patch.dict(os.environ, {"CHATRELAY_LOG_LEVEL": "chatty"}, clear=True):
			self.assertEqual(config.log_level(), "INFO")
		with patch.dict(os.environ, {"CHATRELAY_LOG_LEVEL": "debug"}, clear=True):
			self.assertEqual(config.log_level(), "DEBUG")
