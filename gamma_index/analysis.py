"""
This module computes the gamma index between a planned and a measured dose
grid. Each planned pixel is compared against a square neighborhood of the
measured grid, and the resulting map is reduced to summary statistics.

The distance term of the combined gamma divides the squared distance by the
squared distance criterion without taking the square root first, so it grows
as (distance / DTA) ** 4 instead of the usual (distance / DTA) ** 2 of the
published gamma formula. It is kept as-is so that pass rates stay comparable
with previously reported results; treat it as a known defect of the formula.
"""
import math
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import numpy as np

from .errors import ConfigurationError, UndefinedStatisticsError
from .standard_data_model import DoseGrid, GammaParameters, GammaStatistics, GammaResult
from .utils import logger

PASS_THRESHOLD = 1.0


def _search_neighborhood(x: int, y: int, planned: DoseGrid, measured: DoseGrid,
                         params: GammaParameters) -> tuple[float, float, float]:
    """Returns (gamma, dose term, distance term) of the best matching offset."""
    planned_grid = planned.data_grid
    measured_grid = measured.data_grid
    height, width = planned_grid.shape

    half_window = params.half_window
    dose_tolerance = params.dose_tolerance
    distance_tolerance_sq = params.distance_tolerance_sq
    planned_value = planned_grid[y, x]

    best = (math.inf, math.nan, math.nan)
    for i in range(-half_window, half_window + 1):
        for j in range(-half_window, half_window + 1):
            new_x = x + i
            new_y = y + j
            if not (0 <= new_x < width and 0 <= new_y < height):
                continue

            measured_value = measured_grid[new_y, new_x]
            dose_diff = abs(measured_value - planned_value) / planned_value
            distance_sq = (i * planned.pixel_width) ** 2 + (j * planned.pixel_height) ** 2

            dose_term = dose_diff / dose_tolerance
            distance_term = distance_sq / distance_tolerance_sq
            combined_gamma = math.sqrt(dose_term ** 2 + distance_term ** 2)

            if combined_gamma < best[0]:
                best = (combined_gamma, dose_term, distance_term)
    return best


def evaluate_gamma_at_pixel(x: int, y: int, planned: DoseGrid, measured: DoseGrid,
                            params: GammaParameters) -> float:
    """
    Computes the gamma value of one planned pixel.

    Every offset (i, j) of the neighborhood_size x neighborhood_size window
    centered on (x, y) is tried against the measured grid; offsets falling
    outside the grid are skipped. The dose difference is always relative to
    the planned dose at (x, y), and distances use the planned pixel spacing.

    Args:
        x: Column index, 0 <= x < width.
        y: Row index, 0 <= y < height.
        planned: Planned dose grid. planned.data_grid[y, x] must be non-zero.
        measured: Measured dose grid of the same shape.
        params: Validated gamma criteria.

    Returns:
        The minimum combined gamma over the valid offsets.
    """
    return float(_search_neighborhood(x, y, planned, measured, params)[0])


def _gamma_rows_pixelwise(planned: DoseGrid, measured: DoseGrid, params: GammaParameters,
                          row_start: int, row_stop: int):
    width = planned.width
    rows = row_stop - row_start
    gamma = np.zeros((rows, width))
    dd = np.full((rows, width), np.nan)
    dta = np.full((rows, width), np.nan)

    for y in range(row_start, row_stop):
        for x in range(width):
            if planned.data_grid[y, x] == 0:
                continue
            gamma[y - row_start, x], dd[y - row_start, x], dta[y - row_start, x] = \
                _search_neighborhood(x, y, planned, measured, params)
    return gamma, dd, dta


def _gamma_rows_vectorized(planned: DoseGrid, measured: DoseGrid, params: GammaParameters,
                           row_start: int, row_stop: int):
    """
    Same result as the pixelwise search, but each offset of the window is
    evaluated for the whole band of rows at once and folded in with an
    element-wise minimum.
    """
    planned_grid = planned.data_grid
    measured_grid = measured.data_grid
    height, width = planned_grid.shape

    planned_rows = planned_grid[row_start:row_stop]
    defined = planned_rows != 0
    # Undefined cells are overwritten below; 1.0 only avoids dividing by zero.
    safe_planned = np.where(defined, planned_rows, 1.0)

    gamma = np.full(planned_rows.shape, np.inf)
    dd = np.full(planned_rows.shape, np.nan)
    dta = np.full(planned_rows.shape, np.nan)

    half_window = params.half_window
    dose_tolerance = params.dose_tolerance
    distance_tolerance_sq = params.distance_tolerance_sq

    for i in range(-half_window, half_window + 1):
        for j in range(-half_window, half_window + 1):
            # Destination cells whose candidate (x + i, y + j) stays inside the grid
            y0, y1 = max(row_start, -j), min(row_stop, height - j)
            x0, x1 = max(0, -i), min(width, width - i)
            if y0 >= y1 or x0 >= x1:
                continue

            target = (slice(y0 - row_start, y1 - row_start), slice(x0, x1))
            candidate = measured_grid[y0 + j:y1 + j, x0 + i:x1 + i]
            reference = safe_planned[target]

            dose_term = (np.abs(candidate - reference) / reference) / dose_tolerance
            distance_sq = (i * planned.pixel_width) ** 2 + (j * planned.pixel_height) ** 2
            distance_term = distance_sq / distance_tolerance_sq
            combined_gamma = np.sqrt(dose_term ** 2 + distance_term ** 2)

            gamma_view = gamma[target]
            improved = combined_gamma < gamma_view
            gamma_view[improved] = combined_gamma[improved]
            dd[target][improved] = dose_term[improved]
            dta[target][improved] = distance_term

    gamma[~defined] = 0.0
    dd[~defined] = np.nan
    dta[~defined] = np.nan
    return gamma, dd, dta


def _validate_inputs(planned: DoseGrid, measured: DoseGrid, params: GammaParameters):
    params.validate()

    if planned.shape != measured.shape:
        raise ConfigurationError(
            f"Planned grid {planned.shape} and measured grid {measured.shape} must have the same shape.")

    if (planned.pixel_width, planned.pixel_height) != (measured.pixel_width, measured.pixel_height):
        logger.warning(
            f"Pixel spacing differs: planned {planned.pixel_width} x {planned.pixel_height} mm, "
            f"measured {measured.pixel_width} x {measured.pixel_height} mm. Using the planned spacing.")


def _row_bands(height: int, workers: int) -> list[tuple[int, int]]:
    n_bands = max(1, min(workers, height))
    edges = np.linspace(0, height, n_bands + 1).astype(int)
    return [(int(start), int(stop)) for start, stop in zip(edges[:-1], edges[1:]) if stop > start]


def calculate_gamma_statistics(gamma_values) -> GammaStatistics:
    """
    Reduces defined gamma values to their summary statistics.

    Raises:
        UndefinedStatisticsError: If there are no values.
    """
    values = np.asarray(gamma_values, dtype=np.float64).ravel()
    if values.size == 0:
        raise UndefinedStatisticsError("No defined gamma values: every planned dose value is zero.")

    mean = float(np.mean(values))
    return GammaStatistics(
        mean=mean,
        min=float(np.min(values)),
        max=float(np.max(values)),
        std_dev=float(np.sqrt(np.mean((values - mean) ** 2))),
        pass_rate=float(100.0 * np.count_nonzero(values <= PASS_THRESHOLD) / values.size),
        total_points=int(values.size)
    )


def calculate_component_statistics(component_map: np.ndarray) -> dict:
    """
    Summarizes a dose or distance component map over its defined (finite)
    cells. An empty map gives zeros with total_points 0.
    """
    values = component_map[np.isfinite(component_map)]
    if values.size == 0:
        return {'mean': 0.0, 'min': 0.0, 'max': 0.0, 'std': 0.0, 'total_points': 0}
    return {
        'mean': float(np.mean(values)),
        'min': float(np.min(values)),
        'max': float(np.max(values)),
        'std': float(np.std(values)),
        'total_points': int(values.size),
    }


def perform_gamma_analysis(planned: DoseGrid, measured: DoseGrid, params: GammaParameters,
                           vectorized: bool = True, workers: int = 1) -> GammaResult:
    """
    Computes the gamma map of the planned grid against the measured grid.

    Pixels with a planned dose of exactly zero get the value 0 in the map and
    are left out of the statistics (valid_mask is False there).

    Args:
        planned: Planned dose grid; its pixel spacing is used for distances.
        measured: Measured dose grid with the same shape.
        params: Gamma criteria.
        vectorized: Evaluate the window offset by offset over whole row bands
                    with numpy. When False, every pixel is searched individually.
        workers: Number of threads; the grid is split into disjoint row bands.

    Returns:
        A GammaResult. Its statistics are None when no pixel is defined.

    Raises:
        ConfigurationError: Before any computation, for invalid inputs.
    """
    try:
        _validate_inputs(planned, measured, params)

        height, width = planned.shape
        gamma_map = np.zeros((height, width))
        dd_map = np.full((height, width), np.nan)
        dta_map = np.full((height, width), np.nan)
        valid_mask = planned.data_grid != 0

        compute_rows = _gamma_rows_vectorized if vectorized else _gamma_rows_pixelwise

        def process_band(band):
            start, stop = band
            gamma_map[start:stop], dd_map[start:stop], dta_map[start:stop] = \
                compute_rows(planned, measured, params, start, stop)

        logger.info(
            f"Starting gamma calculation for {int(np.count_nonzero(valid_mask))} of {height * width} pixels "
            f"({params.dose_criterion_percent}%/{params.distance_criterion_mm}mm, "
            f"neighborhood {params.neighborhood_size}x{params.neighborhood_size})...")

        bands = _row_bands(height, workers)
        if len(bands) > 1:
            with ThreadPoolExecutor(max_workers=len(bands)) as executor:
                list(executor.map(process_band, bands))
        else:
            for band in bands:
                process_band(band)

        statistics: Optional[GammaStatistics]
        try:
            statistics = calculate_gamma_statistics(gamma_map[valid_mask])
            logger.info(
                f"Gamma analysis complete: {statistics.total_points} points analyzed, "
                f"pass rate {statistics.pass_rate:.1f}%")
        except UndefinedStatisticsError as e:
            logger.warning(f"{e} Statistics are undefined.")
            statistics = None

        gamma_map.setflags(write=False)
        return GammaResult(
            gamma_map=gamma_map,
            valid_mask=valid_mask,
            statistics=statistics,
            dd_map=dd_map,
            dta_map=dta_map,
            dd_stats=calculate_component_statistics(dd_map),
            dta_stats=calculate_component_statistics(dta_map),
            parameters=params
        )

    except Exception as e:
        logger.error(f"Error during gamma analysis: {e}", exc_info=True)
        raise
