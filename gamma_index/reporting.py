"""
This module turns gamma analysis results into things a person can look at:
an 8-bit image of the gamma map, a statistics summary, a CSV export and a
report figure.
"""
import matplotlib.pyplot as plt
import numpy as np

from .standard_data_model import DoseGrid, GammaResult
from .utils import logger, save_map_to_csv


def gamma_to_display_image(gamma_map: np.ndarray) -> np.ndarray:
    """
    Maps gamma values to an 8-bit image: gamma * 255, clipped to [0, 255].

    A gamma of 1.0 and anything above it saturate to 255.
    """
    scaled = np.nan_to_num(np.asarray(gamma_map, dtype=np.float64) * 255.0, nan=0.0, posinf=255.0)
    return np.clip(scaled, 0, 255).astype(np.uint8)


def format_statistics(result: GammaResult, planned: DoseGrid = None, measured: DoseGrid = None) -> str:
    """Builds the plain text summary of a gamma analysis run."""
    p = result.parameters
    lines = []

    if planned is not None and measured is not None:
        lines += [
            "Pixel Size",
            f"  Planned: {planned.pixel_width} x {planned.pixel_height} mm",
            f"  Measured: {measured.pixel_width} x {measured.pixel_height} mm",
            "",
        ]

    lines += [
        "Acceptance Criteria:",
        f"  Dose Difference: {p.dose_criterion_percent} %",
        f"  DTA: {p.distance_criterion_mm} mm",
        f"  Neighborhood: {p.neighborhood_size} x {p.neighborhood_size}",
        "",
    ]

    stats = result.statistics
    if stats is None:
        lines.append("No defined samples: the planned dose is zero everywhere.")
        return "\n".join(lines)

    passed_points = int(round(stats.total_points * stats.pass_rate / 100))
    lines += [
        "Results:",
        f"  Mean Gamma: {stats.mean:.4f}",
        f"  Max Gamma: {stats.max:.4f}",
        f"  Min Gamma: {stats.min:.4f}",
        f"  Std Dev: {stats.std_dev:.4f}",
        f"  Passing Rate: {stats.pass_rate:.2f} %",
        f"  Analyzed Pixels: {stats.total_points}",
        f"  Passed Pixels: {passed_points}",
        f"  Failed Pixels: {stats.total_points - passed_points}",
    ]

    for title, component_stats in (("DD Analysis", result.dd_stats), ("DTA Analysis", result.dta_stats)):
        if component_stats:
            lines += [
                "",
                f"{title}:",
                f"  Mean: {component_stats.get('mean', 0):.4f}",
                f"  Max: {component_stats.get('max', 0):.4f}",
                f"  Min: {component_stats.get('min', 0):.4f}",
                f"  Std: {component_stats.get('std', 0):.4f}",
            ]
    return "\n".join(lines)


def save_gamma_csv(result: GammaResult, output_path: str):
    """Exports the defined cells of the gamma map as x, y, gamma rows."""
    save_map_to_csv(result.gamma_map, result.valid_mask, output_path, header=('x', 'y', 'gamma'))


def generate_report(output_path: str, planned: DoseGrid, measured: DoseGrid, result: GammaResult):
    """
    Saves a report figure with both dose planes, the gamma map and the
    statistics summary.

    Args:
        output_path (str): Report path. The format follows the extension
                           (jpg, jpeg, pdf or png); anything else is saved as JPEG.
        planned (DoseGrid): Planned dose grid.
        measured (DoseGrid): Measured dose grid.
        result (GammaResult): Output of perform_gamma_analysis.
    """
    fig = plt.figure(figsize=(12, 12))
    gs = fig.add_gridspec(2, 2)
    extent = planned.physical_extent

    filename = planned.metadata.get('filename', 'planned dose')
    fig.suptitle(f'Gamma Index: {filename}', fontsize=16)

    # 1. Dose planes
    ax_planned = fig.add_subplot(gs[0, 0])
    im_planned = ax_planned.imshow(planned.data_grid, cmap='jet', extent=extent, aspect='equal', origin='lower')
    fig.colorbar(im_planned, ax=ax_planned, label='Dose')
    ax_planned.set_title('Planned Dose')

    ax_measured = fig.add_subplot(gs[0, 1])
    im_measured = ax_measured.imshow(measured.data_grid, cmap='jet', extent=extent, aspect='equal', origin='lower')
    fig.colorbar(im_measured, ax=ax_measured, label='Dose')
    ax_measured.set_title('Measured Dose')

    # 2. Gamma map; undefined pixels are left blank
    ax_gamma = fig.add_subplot(gs[1, 0])
    gamma_display = np.where(result.valid_mask, result.gamma_map, np.nan)
    im_gamma = ax_gamma.imshow(gamma_display, cmap='coolwarm', extent=extent, vmin=0, vmax=2,
                               aspect='equal', origin='lower')
    fig.colorbar(im_gamma, ax=ax_gamma, label='Gamma Index')
    pass_rate = result.statistics.pass_rate if result.statistics else 0
    ax_gamma.set_title(f'Gamma Analysis (Pass: {pass_rate:.1f}%)')

    for ax in (ax_planned, ax_measured, ax_gamma):
        ax.set_xlabel('Position (mm)')
        ax.set_ylabel('Position (mm)')

    # 3. Statistics text
    ax_text = fig.add_subplot(gs[1, 1])
    ax_text.axis('off')
    ax_text.text(0.05, 0.95, format_statistics(result, planned, measured), transform=ax_text.transAxes,
                 fontsize=10, verticalalignment='top',
                 bbox=dict(boxstyle='round,pad=0.5', fc='aliceblue', alpha=0.5))

    plt.tight_layout(rect=[0, 0, 1, 0.96])
    file_format = output_path.split('.')[-1].lower()
    if file_format not in ['jpeg', 'jpg', 'pdf', 'png']:
        file_format = 'jpeg'

    plt.savefig(output_path, format=file_format, dpi=150)
    plt.close(fig)
    logger.info(f"Report saved to {output_path}")
