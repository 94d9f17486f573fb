# ===================================== IMPORTS ====================================== #

# Standard Library Imports
from pathlib import Path
from typing import Any, Dict, Union

# Third-Party Imports
import yaml

# Local Imports
from otu_eda import constants

# ==================================== FUNCTIONS ===================================== #

def resolve_relative_paths(config: Dict, config_dir: Path) -> Dict:
    """Converts any relative paths in the configuration to absolute paths based on
    the directory of the config file."""
    for key, value in config.items():
        if isinstance(value, str):
            if value.startswith("./") or value.startswith("../"):
                config[key] = (config_dir / value).resolve()
        elif isinstance(value, dict):
            config[key] = resolve_relative_paths(value, config_dir)
    return config


def get_config(
    config_path: Union[str, Path] = constants.DEFAULT_CONFIG_PATH
) -> Dict:
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "r") as file:
        config = yaml.safe_load(file) or {}
    if not isinstance(config, dict):
        raise ValueError(f"Config file must contain a mapping: {config_path}")

    config_dir = config_path.resolve().parent
    return resolve_relative_paths(config, config_dir)


def get_section(config: Dict, name: str) -> Dict[str, Any]:
    """Return a config section, treating a missing or null section as empty."""
    section = config.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"Config section '{name}' must be a mapping")
    return section


def is_enabled(section: Dict, default: bool = True) -> bool:
    return bool(section.get("enabled", default))
