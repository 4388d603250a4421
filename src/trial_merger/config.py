import yaml
from pathlib import Path

CONFIG_PATH = Path(__file__).resolve().parents[2] / "config" / "trial_merger.yml"

DEFAULT_SPLIT_ID_LENGTH = 17
DEFAULT_ALIAS_DELIMITER = "|"


class TMConfig:
    def __init__(self, data):
        self.paths = data.get("paths", {}) or {}
        self.identity = data.get("identity", {}) or {}
        self.sources = data.get("sources", []) or []
        self.logging = data.get("logging", {}) or {}
        self.debug = data.get("debug", False)

    @property
    def split_id_length(self) -> int:
        return int(self.identity.get("split_id_length", DEFAULT_SPLIT_ID_LENGTH))

    @property
    def alias_delimiter(self) -> str:
        return str(self.identity.get("alias_delimiter", DEFAULT_ALIAS_DELIMITER))


def load_config(path: Path = CONFIG_PATH) -> 'TMConfig':
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    return TMConfig(data)

_config_cache = None

def get_config() -> 'TMConfig':
    global _config_cache
    if _config_cache is None:
        _config_cache = load_config()
    return _config_cache
