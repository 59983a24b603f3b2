"""
This module provides loader functions for the dose file formats accepted by
the gamma analysis. Each loader handles the specifics of its file type and
returns a consistent `DoseGrid` object.
"""
import os

import numpy as np
import pydicom

from .standard_data_model import DoseGrid
from .utils import logger

ARRAY_EXTENSIONS = ('.npy', '.csv', '.txt')
DICOM_EXTENSIONS = ('.dcm', '.dicom')


def load_dcm(filename: str) -> DoseGrid:
    """
    Reads a 2D DICOM RT Dose file and converts it into a DoseGrid.

    Pixel values are scaled by DoseGridScaling. DICOM PixelSpacing is stored
    as [row spacing, column spacing], i.e. [pixel height, pixel width].

    Args:
        filename (str): The path to the DICOM file.

    Returns:
        DoseGrid: The dose grid with its pixel spacing and metadata.
    """
    logger.info(f"Loading DICOM file: {filename}")
    try:
        dcm = pydicom.dcmread(filename)

        if dcm.Modality != 'RTDOSE':
            raise ValueError("File is not a DICOM RT Dose file.")

        pixel_data = dcm.pixel_array * float(dcm.get("DoseGridScaling", 1.0))
        if pixel_data.ndim == 3:
            if pixel_data.shape[0] != 1:
                raise ValueError(f"Only single-frame dose planes are supported, got {pixel_data.shape[0]} frames.")
            pixel_data = pixel_data[0]

        spacing_y, spacing_x = (float(v) for v in dcm.PixelSpacing)

        metadata = {
            "filename": filename,
            "patient_name": str(dcm.get("PatientName", "N/A")),
            "patient_id": dcm.get("PatientID", "N/A"),
            "institution": dcm.get("InstitutionName", "N/A"),
            "file_type": "DICOM",
        }

        return DoseGrid(pixel_data, pixel_width=spacing_x, pixel_height=spacing_y, metadata=metadata)

    except Exception as e:
        logger.error(f"Failed to load DICOM file {filename}: {e}", exc_info=True)
        raise


def load_array(filename: str, pixel_width: float = 1.0, pixel_height: float = 1.0) -> DoseGrid:
    """
    Reads a dose plane stored as a NumPy .npy file or a delimited text file.

    Plain arrays carry no calibration, so the pixel spacing (mm) is given by
    the caller.
    """
    logger.info(f"Loading array file: {filename}")
    try:
        extension = os.path.splitext(filename)[1].lower()
        if extension == '.npy':
            data = np.load(filename)
        elif extension == '.csv':
            data = np.loadtxt(filename, delimiter=',', ndmin=2)
        else:
            data = np.loadtxt(filename, ndmin=2)

        metadata = {"filename": filename, "file_type": extension.lstrip('.').upper()}
        return DoseGrid(data, pixel_width=pixel_width, pixel_height=pixel_height, metadata=metadata)

    except Exception as e:
        logger.error(f"Failed to load array file {filename}: {e}", exc_info=True)
        raise


def load_dose(filename: str, pixel_width: float = 1.0, pixel_height: float = 1.0) -> DoseGrid:
    """Picks the loader from the file extension."""
    extension = os.path.splitext(filename)[1].lower()
    if extension in DICOM_EXTENSIONS:
        return load_dcm(filename)
    if extension in ARRAY_EXTENSIONS:
        return load_array(filename, pixel_width, pixel_height)
    raise ValueError(f"Unsupported file type: {os.path.basename(filename)}")
