# --- ptable_lib/config.py ---
"""
ptable_lib/config.py: Tunables of the clustering pipeline and their INI storage.
"""
import configparser
import logging
from dataclasses import asdict, dataclass, fields

log = logging.getLogger("ptable.config")

SECTION = "Cluster"


@dataclass
class ClusterConfig:
    """Configuration of the clustering pipeline."""

    # Two characters are on the same segment if closer than this * font size.
    max_character_distance: float = 0.9
    # Side of the square (in font sizes) searched for neighbors of a character.
    candidate_window: float = 2.0
    # Two segments are on the same block if closer than this * font size.
    block_line_distance: float = 1.7
    # Raise instead of logging when a prevent-binding is never consumed.
    strict_prevent_bindings: bool = False


def load_config(config_path: str) -> ClusterConfig:
    """Reads a ClusterConfig from an INI file, applying defaults for missing keys."""
    parser = configparser.ConfigParser()
    parser[SECTION] = {k: str(v) for k, v in asdict(ClusterConfig()).items()}
    if not parser.read(config_path):
        log.info("Config file not found at %s. Using defaults.", config_path)
    section = parser[SECTION]
    values = {}
    for f in fields(ClusterConfig):
        if f.type in (bool, "bool"):
            values[f.name] = section.getboolean(f.name)
        else:
            values[f.name] = section.getfloat(f.name)
    config = ClusterConfig(**values)
    log.debug("Loaded cluster config: %s", config)
    return config


def save_config(config: ClusterConfig, config_path: str):
    """Writes a ClusterConfig to an INI file."""
    parser = configparser.ConfigParser()
    parser[SECTION] = {k: str(v) for k, v in asdict(config).items()}
    with open(config_path, "w") as configfile:
        parser.write(configfile)
    log.info("Cluster config saved to %s", config_path)
