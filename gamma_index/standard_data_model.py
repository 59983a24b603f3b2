import numbers

import numpy as np
from dataclasses import dataclass, field
from typing import Dict, Any, Optional

from .errors import ConfigurationError


def _is_positive_number(value) -> bool:
    # bool is an int subclass; a flag is never a valid size or criterion
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        return False
    return bool(np.isfinite(value) and value > 0)


@dataclass(frozen=True)
class DoseGrid:
    """
    A standardized, read-only container for one 2D dose distribution.

    Every loader (DICOM, NumPy, CSV) returns this object so that the analysis
    only ever sees a plain numeric grid together with its pixel spacing.

    Attributes:
        data_grid (np.ndarray): 2D array of dose values, shape (height, width),
                                indexed as data_grid[y, x].
        pixel_width (float): Physical size of a pixel along x (columns), in mm.
        pixel_height (float): Physical size of a pixel along y (rows), in mm.
        metadata (Dict[str, Any]): Additional information such as the source
                                   filename or patient info.
    """
    data_grid: np.ndarray
    pixel_width: float = 1.0
    pixel_height: float = 1.0
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Perform validation checks after initialization."""
        grid = np.array(self.data_grid, dtype=np.float64)
        if grid.ndim != 2:
            raise ConfigurationError(f"data_grid must be a 2D array, but got {grid.ndim} dimensions.")

        if not (_is_positive_number(self.pixel_width) and _is_positive_number(self.pixel_height)):
            raise ConfigurationError(
                f"Pixel spacing must be positive and finite, got {self.pixel_width} x {self.pixel_height} mm.")

        if not np.all(np.isfinite(grid)):
            raise ConfigurationError("data_grid contains NaN or infinite dose values.")

        if np.any(grid < 0):
            raise ConfigurationError("data_grid contains negative dose values.")

        grid.setflags(write=False)
        object.__setattr__(self, 'data_grid', grid)
        object.__setattr__(self, 'pixel_width', float(self.pixel_width))
        object.__setattr__(self, 'pixel_height', float(self.pixel_height))

    @property
    def width(self) -> int:
        return self.data_grid.shape[1]

    @property
    def height(self) -> int:
        return self.data_grid.shape[0]

    @property
    def shape(self) -> tuple:
        return self.data_grid.shape

    @property
    def physical_extent(self) -> list[float]:
        """
        Returns the physical range [xmin, xmax, ymin, ymax] in mm, with the
        first pixel centered on the origin. Compatible with matplotlib's
        extent parameter.
        """
        return [
            -self.pixel_width / 2.0,
            (self.width - 0.5) * self.pixel_width,
            -self.pixel_height / 2.0,
            (self.height - 0.5) * self.pixel_height
        ]


@dataclass(frozen=True)
class GammaParameters:
    """
    Acceptance criteria for the gamma analysis.

    Attributes:
        dose_criterion_percent (float): Allowed relative dose difference in %
                                        of the planned dose (3.0 means 3%).
        distance_criterion_mm (float): Distance-to-agreement criterion in mm.
        neighborhood_size (int): Side length, in pixels, of the square search
                                 window. Must be odd (1, 3, 5, 7, ...).
    """
    dose_criterion_percent: float = 3.0
    distance_criterion_mm: float = 3.0
    neighborhood_size: int = 3

    def validate(self):
        """Raises ConfigurationError if the criteria cannot be used."""
        size = self.neighborhood_size
        if not (_is_positive_number(size) and float(size).is_integer()):
            raise ConfigurationError(
                f"Neighborhood size must be a positive integer, got {size!r}.")
        if size % 2 == 0:
            raise ConfigurationError(
                f"Neighborhood size must be odd, got {size}.")
        if not _is_positive_number(self.dose_criterion_percent):
            raise ConfigurationError(
                f"Dose criterion must be a positive number, got {self.dose_criterion_percent!r}.")
        if not _is_positive_number(self.distance_criterion_mm):
            raise ConfigurationError(
                f"Distance criterion must be a positive number, got {self.distance_criterion_mm!r}.")

    @property
    def half_window(self) -> int:
        return (int(self.neighborhood_size) - 1) // 2

    @property
    def dose_tolerance(self) -> float:
        return self.dose_criterion_percent / 100.0

    @property
    def distance_tolerance_sq(self) -> float:
        return self.distance_criterion_mm * self.distance_criterion_mm


@dataclass(frozen=True)
class GammaStatistics:
    """
    Summary of the defined cells of a gamma map.

    Attributes:
        mean (float): Mean gamma.
        min (float): Smallest gamma.
        max (float): Largest gamma.
        std_dev (float): Population standard deviation.
        pass_rate (float): Percentage of cells with gamma <= 1.0.
        total_points (int): Number of defined cells.
    """
    mean: float
    min: float
    max: float
    std_dev: float
    pass_rate: float
    total_points: int


@dataclass
class GammaResult:
    """
    Output of a gamma analysis run.

    Attributes:
        gamma_map (np.ndarray): Gamma per cell, same shape as the inputs.
                                Undefined cells (zero planned dose) hold 0.
        valid_mask (np.ndarray): True where the gamma value is defined.
        statistics (Optional[GammaStatistics]): None when no cell is defined.
        dd_map (np.ndarray): Dose term at the best matching offset (NaN where undefined).
        dta_map (np.ndarray): Distance term at the best matching offset (NaN where undefined).
        dd_stats (dict): mean/min/max/std/total_points of dd_map.
        dta_stats (dict): mean/min/max/std/total_points of dta_map.
        parameters (GammaParameters): Criteria used for the run.
    """
    gamma_map: np.ndarray
    valid_mask: np.ndarray
    statistics: Optional[GammaStatistics]
    dd_map: np.ndarray
    dta_map: np.ndarray
    dd_stats: Dict[str, float]
    dta_stats: Dict[str, float]
    parameters: GammaParameters

    @property
    def has_statistics(self) -> bool:
        return self.statistics is not None
