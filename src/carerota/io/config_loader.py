"""Rules configuration files (JSON), validated through pydantic."""
import json
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError

from carerota.models.rules import RulesConfig
from carerota.models.validated import ValidatedRulesConfig
from carerota.utils.logging_setup import get_logger, log_function_call

logger = get_logger("carerota.io.config_loader")

CONFIG_FILENAMES = ["carerota.json", "rules.json"]


@log_function_call
def load_rules_config(path: Union[str, Path]) -> RulesConfig:
    """
    Read and validate a rules file.

    Raises:
        FileNotFoundError: no such file
        ValueError: invalid JSON or values out of range (pydantic message kept)
    """
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"{path} is not valid JSON: {e}") from e
    try:
        validated = ValidatedRulesConfig(**data)
    except ValidationError as e:
        raise ValueError(f"Invalid rules configuration in {path}:\n{e}") from e
    logger.info(f"Loaded rules configuration from {path}")
    return validated.to_dataclass()


def find_rules_config(directory: Union[str, Path] = ".") -> Optional[Path]:
    """First known config filename present in ``directory``."""
    for name in CONFIG_FILENAMES:
        candidate = Path(directory) / name
        if candidate.exists():
            return candidate
    return None


def save_rules_config(config: RulesConfig, path: Union[str, Path]) -> Path:
    path = Path(path)
    ValidatedRulesConfig.from_dataclass(config)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(config.to_dict(), f, indent=2)
    return path
