import os
import tempfile
import textwrap
import unittest
from unittest import mock

import tomlkit

from llmcord.config.loader import get_config, get_config_path, write_default_config
from llmcord.config.models import ALPACA_TEMPLATE, Authentication, Configuration, Model
from llmcord.config.validator import ConfigError, validate_config


VALID_CONFIG = textwrap.dedent(
    """
    [model]
    path = "models/tiny.gguf"
    context_token_length = 4096
    architecture = "llama"
    prefer_mmap = false
    use_gpu = true
    gpu_layers = 12

    [authentication]
    discord_token = "file-token"
    client_id = "1122334455"
    """
)


class ConfigFileTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.path = os.path.join(self._tmp.name, "config.toml")
        env = mock.patch.dict(os.environ, {}, clear=False)
        env.start()
        self.addCleanup(env.stop)
        os.environ.pop("DISCORD_TOKEN", None)
        os.environ.pop("CONFIG_PATH", None)

    def write(self, text: str) -> None:
        with open(self.path, "w", encoding="utf-8") as f:
            f.write(text)


class TestGetConfig(ConfigFileTestCase):
    def test_fields_match_file(self):
        self.write(VALID_CONFIG)
        config = get_config(self.path)

        self.assertIsInstance(config, Configuration)
        self.assertEqual(config.model.path, "models/tiny.gguf")
        self.assertEqual(config.model.context_token_length, 4096)
        self.assertEqual(config.model.architecture, "llama")
        self.assertFalse(config.model.prefer_mmap)
        self.assertTrue(config.model.use_gpu)
        self.assertEqual(config.model.gpu_layers, 12)
        self.assertEqual(config.model.n_gpu_layers, 12)
        self.assertEqual(config.authentication.discord_token, "file-token")
        self.assertEqual(config.authentication.client_id, "1122334455")

    def test_defaults_for_optional_sections(self):
        self.write(VALID_CONFIG)
        config = get_config(self.path)

        self.assertEqual(config.inference.max_tokens, 512)
        self.assertTrue(config.inference.replace_newlines)
        self.assertEqual(set(config.enabled_commands), {"hallucinate", "alpaca"})
        self.assertEqual(config.commands["hallucinate"].prompt, "{{PROMPT}}")
        self.assertEqual(config.commands["alpaca"].prompt, ALPACA_TEMPLATE)

    def test_configuration_is_immutable(self):
        self.write(VALID_CONFIG)
        config = get_config(self.path)

        with self.assertRaises(AttributeError):
            config.model.path = "other.gguf"
        with self.assertRaises(TypeError):
            config.commands["new"] = config.commands["alpaca"]

    def test_inference_and_commands_sections(self):
        self.write(
            VALID_CONFIG
            + textwrap.dedent(
                """
                [inference]
                max_tokens = 0
                temperature = 0.2
                stop = ["###"]
                show_prompt_template = false

                [commands.hallucinate]
                prompt = "{{PROMPT}}"

                [commands.alpaca]
                enabled = false
                prompt = "### Instruction: {{PROMPT}}"
                """
            )
        )
        config = get_config(self.path)

        self.assertEqual(config.inference.max_tokens, 0)
        self.assertEqual(config.inference.temperature, 0.2)
        self.assertEqual(config.inference.stop, ("###",))
        self.assertFalse(config.inference.show_prompt_template)
        self.assertEqual(list(config.enabled_commands), ["hallucinate"])
        self.assertTrue(config.commands["hallucinate"].description)

    def test_integer_client_id_becomes_string(self):
        self.write(VALID_CONFIG.replace('client_id = "1122334455"', "client_id = 1122334455"))
        self.assertEqual(get_config(self.path).authentication.client_id, "1122334455")

    def test_architecture_is_case_insensitive(self):
        self.write(VALID_CONFIG.replace('"llama"', '"LLaMA"'))
        self.assertEqual(get_config(self.path).model.architecture, "llama")

    def test_env_token_overrides_file(self):
        self.write(VALID_CONFIG)
        with mock.patch.dict(os.environ, {"DISCORD_TOKEN": "env-token"}):
            config = get_config(self.path)
        self.assertEqual(config.authentication.discord_token, "env-token")

    def test_env_token_fills_missing_token(self):
        self.write(VALID_CONFIG.replace('discord_token = "file-token"\n', ""))
        with mock.patch.dict(os.environ, {"DISCORD_TOKEN": "env-token"}):
            config = get_config(self.path)
        self.assertEqual(config.authentication.discord_token, "env-token")

    def test_config_path_env_var(self):
        with mock.patch.dict(os.environ, {"CONFIG_PATH": self.path}):
            self.assertEqual(get_config_path(), self.path)
        self.assertEqual(get_config_path(), "config.toml")


class TestConfigErrors(ConfigFileTestCase):
    def assertConfigError(self, text: str) -> None:
        self.write(text)
        with self.assertLogs("llmcord.config.validator", level="ERROR"):
            with self.assertRaises(ConfigError):
                get_config(self.path)

    def test_missing_file_writes_default_and_fails(self):
        with self.assertLogs(level="ERROR"):
            with self.assertRaises(ConfigError):
                get_config(self.path)

        self.assertTrue(os.path.isfile(self.path))
        # The written default is valid TOML but still needs a token.
        with self.assertRaises(ConfigError):
            get_config(self.path)

    def test_malformed_toml(self):
        self.write("[model\npath = ")
        with self.assertLogs(level="ERROR"):
            with self.assertRaises(ConfigError):
                get_config(self.path)

    def test_missing_sections(self):
        self.assertConfigError('[model]\npath = "m.gguf"\n')

    def test_missing_required_fields(self):
        for field in ("path", "context_token_length", "architecture", "prefer_mmap", "use_gpu"):
            with self.subTest(field=field):
                lines = [l for l in VALID_CONFIG.splitlines() if not l.startswith(f"{field} ")]
                self.assertConfigError("\n".join(lines))

    def test_missing_client_id(self):
        self.assertConfigError(VALID_CONFIG.replace('client_id = "1122334455"', ""))

    def test_empty_token(self):
        self.assertConfigError(VALID_CONFIG.replace('"file-token"', '""'))

    def test_wrong_types(self):
        cases = {
            "context_token_length": ("4096", '"4096"'),
            "non-positive context": ("4096", "0"),
            "prefer_mmap": ("prefer_mmap = false", 'prefer_mmap = "no"'),
            "use_gpu": ("use_gpu = true", "use_gpu = 1"),
            "gpu_layers": ("gpu_layers = 12", "gpu_layers = -1"),
        }
        for name, (old, new) in cases.items():
            with self.subTest(case=name):
                self.assertConfigError(VALID_CONFIG.replace(old, new))

    def test_unknown_architecture(self):
        self.assertConfigError(VALID_CONFIG.replace('"llama"', '"transformer9000"'))

    def test_bad_inference_values(self):
        for bad in ("top_p = 1.5", "thread_count = 0", 'stop = "###"', "temperature = -1"):
            with self.subTest(value=bad):
                self.assertConfigError(VALID_CONFIG + f"\n[inference]\n{bad}\n")

    def test_bad_command_definitions(self):
        for bad in (
            '[commands.Alpaca]\nprompt = "{{PROMPT}}"',
            "[commands.alpaca]\nenabled = true",
            '[commands.alpaca]\nprompt = "{{PROMPT}}"\ndescription = "' + "x" * 101 + '"',
        ):
            with self.subTest(value=bad):
                self.assertConfigError(VALID_CONFIG + "\n" + bad + "\n")

    def test_non_table_root(self):
        with self.assertLogs("llmcord.config.validator", level="ERROR"):
            with self.assertRaises(ConfigError):
                validate_config(["not", "a", "table"])


class TestValidatorWarnings(unittest.TestCase):
    def test_unknown_keys_only_warn(self):
        cfg = tomlkit.parse(VALID_CONFIG + '\nextra = 1\n').unwrap()
        cfg["model"]["flash_attention"] = True
        with self.assertLogs("llmcord.config.validator", level="WARNING") as logs:
            validate_config(cfg)
        self.assertTrue(any("flash_attention" in line for line in logs.output))

    def test_prompt_without_placeholder_warns(self):
        cfg = tomlkit.parse(VALID_CONFIG).unwrap()
        cfg["commands"] = {"fixed": {"prompt": "Tell me a joke."}}
        with self.assertLogs("llmcord.config.validator", level="WARNING") as logs:
            validate_config(cfg)
        self.assertTrue(any("placeholder" in line for line in logs.output))


class TestDefaultConfig(unittest.TestCase):
    def test_default_config_round_trips(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "config.toml")
            write_default_config(path)
            with open(path, encoding="utf-8") as f:
                data = tomlkit.parse(f.read()).unwrap()

        self.assertEqual(data["model"]["architecture"], "llama")
        self.assertEqual(data["model"]["context_token_length"], 2048)
        self.assertEqual(data["commands"]["alpaca"]["prompt"], ALPACA_TEMPLATE)
        self.assertEqual(data["commands"]["hallucinate"]["prompt"], "{{PROMPT}}")
        self.assertEqual(data["inference"]["stop"], [])
        self.assertEqual(data["inference"]["response_timeout_seconds"], 0)

        data["authentication"]["discord_token"] = "token"
        data["authentication"]["client_id"] = "42"
        config = Configuration.from_dict(data)
        self.assertEqual(config.inference.repeat_penalty, 1.3)

    def test_configuration_defaults_to_builtin_commands(self):
        config = Configuration(
            model=Model("models/tiny.gguf", 2048, "llama", True, False),
            authentication=Authentication(discord_token="token", client_id="42"),
        )
        self.assertEqual(set(config.enabled_commands), {"hallucinate", "alpaca"})
        self.assertEqual(config.commands["alpaca"].prompt, ALPACA_TEMPLATE)
        with self.assertRaises(TypeError):
            config.commands["new"] = config.commands["alpaca"]


if __name__ == "__main__":
    unittest.main()
