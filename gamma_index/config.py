"""
Loads the analysis settings from a JSON file.

Example config.json:

    {"dd": 3, "dta": 3, "neighborhood_size": 5, "workers": 4}
"""
import json
import os
from dataclasses import dataclass, field, replace

from .errors import ConfigurationError
from .standard_data_model import GammaParameters
from .utils import logger

DEFAULT_CONFIG_PATH = "config.json"


@dataclass
class AnalysisConfig:
    parameters: GammaParameters = field(default_factory=GammaParameters)
    workers: int = 1
    vectorized: bool = True


def config_from_dict(values: dict) -> AnalysisConfig:
    """
    Builds the configuration from parsed JSON values.

    Values are taken as they are written in the file, without coercion.

    Raises:
        ConfigurationError: For values of the wrong type or out of range.
    """
    if not isinstance(values, dict):
        raise ConfigurationError(f"Configuration must be a JSON object, got {type(values).__name__}.")

    defaults = GammaParameters()
    parameters = GammaParameters(
        dose_criterion_percent=values.get("dd", defaults.dose_criterion_percent),
        distance_criterion_mm=values.get("dta", defaults.distance_criterion_mm),
        neighborhood_size=values.get("neighborhood_size", defaults.neighborhood_size),
    )
    parameters.validate()
    parameters = replace(
        parameters,
        dose_criterion_percent=float(parameters.dose_criterion_percent),
        distance_criterion_mm=float(parameters.distance_criterion_mm),
        neighborhood_size=int(parameters.neighborhood_size),
    )

    workers = values.get("workers", 1)
    if isinstance(workers, bool) or not isinstance(workers, int) or workers < 1:
        raise ConfigurationError(f"workers must be a positive integer, got {workers!r}.")

    vectorized = values.get("vectorized", True)
    if not isinstance(vectorized, bool):
        raise ConfigurationError(f"vectorized must be true or false, got {vectorized!r}.")

    return AnalysisConfig(parameters=parameters, workers=workers, vectorized=vectorized)


def load_config(path: str = DEFAULT_CONFIG_PATH, required: bool = False) -> AnalysisConfig:
    """
    Reads the configuration file.

    A missing file gives the defaults (3%, 3 mm, 3x3 neighborhood) unless
    `required` is set, in which case FileNotFoundError is raised.
    Invalid JSON raises json.JSONDecodeError, and values of the wrong type
    or out of range raise ConfigurationError.
    """
    if not os.path.exists(path):
        if required:
            raise FileNotFoundError(f"Configuration file not found: {path}")
        logger.info(f"No configuration file at {path}, using defaults.")
        return AnalysisConfig()

    with open(path, "r") as f:
        values = json.load(f)

    config = config_from_dict(values)
    p = config.parameters
    logger.info(
        f"Loaded configuration: dd={p.dose_criterion_percent}, dta={p.distance_criterion_mm}, "
        f"neighborhood_size={p.neighborhood_size}, workers={config.workers}")
    return config
