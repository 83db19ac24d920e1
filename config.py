import os
import yaml
import keyring

from settings_schema import SettingsSchema, validate_settings

ENV_OVERRIDES = {
    "EXERCISE_API_KEY": "catalog_api_key",
    "CATALOG_BASE_URL": "catalog_base_url",
    "LOG_LEVEL": "log_level",
    "LOG_FORMAT": "log_format",
    "DB_PATH": "db_path",
    "RATE_LIMIT": "rate_limit",
}


class YamlConfig:
    """Load and save settings to a YAML file with optional encryption."""

    SENSITIVE_KEYS = {
        "catalog_api_key",
    }

    def __init__(self, path: str = "settings.yaml") -> None:
        self.path = path
        self.encrypt = os.environ.get("ENCRYPT_SETTINGS") == "1"
        self.service = "cycletrack"

    def load(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if self.encrypt:
            for key in list(data.keys()):
                if key in self.SENSITIVE_KEYS:
                    secret = keyring.get_password(self.service, key)
                    if secret is not None:
                        data[key] = secret
                    else:
                        data.pop(key, None)
        return data

    def save(self, data: dict) -> None:
        out = dict(data)
        if self.encrypt:
            for key in self.SENSITIVE_KEYS:
                if key in out:
                    keyring.set_password(self.service, key, str(out[key]))
                    out[key] = True
        with open(self.path, "w", encoding="utf-8") as f:
            yaml.safe_dump(out, f)


def load_settings(path: str = "settings.yaml", environ: dict | None = None) -> SettingsSchema:
    """Read ``path`` and apply environment overrides on top of it."""
    env = os.environ if environ is None else environ
    data = YamlConfig(path).load()
    for var, key in ENV_OVERRIDES.items():
        value = env.get(var)
        if value:
            data[key] = value
    return validate_settings(data)
