"""
Shared helpers: the package logger and small I/O utilities.
"""
import csv
import logging

import numpy as np

logger = logging.getLogger("gamma_index")


def setup_logging(level=logging.INFO, filename=None):
    """Configure logging for the command line tool."""
    logging.basicConfig(
        filename=filename,
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )


def save_map_to_csv(data_map, mask, output_path, header=('x', 'y', 'value')):
    """
    Writes the cells of a 2D map selected by `mask` as rows of x, y, value.

    Args:
        data_map (np.ndarray): 2D array indexed [y, x].
        mask (np.ndarray): Boolean array of the same shape selecting the rows to write.
        output_path (str): Destination CSV path.
        header (tuple): Column names.
    """
    ys, xs = np.nonzero(mask)
    with open(output_path, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(header)
        for x, y in zip(xs, ys):
            writer.writerow([int(x), int(y), f"{data_map[y, x]:.6f}"])
    logger.info(f"Saved {len(xs)} values to {output_path}")
