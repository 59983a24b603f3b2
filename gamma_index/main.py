import argparse
import json
import sys
from dataclasses import replace

from .config import DEFAULT_CONFIG_PATH, load_config
from .errors import ConfigurationError
from .loaders import load_dose
from .analysis import perform_gamma_analysis
from .reporting import format_statistics, generate_report, save_gamma_csv
from .utils import logger, setup_logging


def build_parser():
    parser = argparse.ArgumentParser(description="Run gamma index analysis on a planned and a measured dose plane.")
    parser.add_argument("--planned", type=str, required=True, help="Path to the planned dose file (DICOM RT Dose, .npy, .csv, .txt).")
    parser.add_argument("--measured", type=str, required=True, help="Path to the measured dose file.")
    parser.add_argument("--config", type=str, default=None, help=f"JSON configuration file (default: {DEFAULT_CONFIG_PATH} if present).")
    parser.add_argument("--dd", type=float, default=None, help="Dose difference criterion (%%).")
    parser.add_argument("--dta", type=float, default=None, help="Distance-to-agreement criterion (mm).")
    parser.add_argument("--neighborhood", type=int, default=None, help="Search window size in pixels (odd: 3, 5, 7, ...).")
    parser.add_argument("--pixel-width", type=float, default=1.0, help="Pixel width (mm) for files without calibration.")
    parser.add_argument("--pixel-height", type=float, default=1.0, help="Pixel height (mm) for files without calibration.")
    parser.add_argument("--workers", type=int, default=None, help="Number of worker threads.")
    parser.add_argument("--report", type=str, default=None, help="Save a report figure (.jpg, .pdf, .png).")
    parser.add_argument("--csv", type=str, default=None, help="Export the gamma values of the defined pixels to CSV.")
    return parser


def main(argv=None):
    """Main function to run the gamma analysis from the command line."""
    setup_logging()
    args = build_parser().parse_args(argv)

    logger.info("Starting gamma analysis with the following arguments:")
    logger.info(f"  Planned: {args.planned}")
    logger.info(f"  Measured: {args.measured}")

    # Load configuration
    try:
        if args.config:
            config = load_config(args.config, required=True)
        else:
            config = load_config(DEFAULT_CONFIG_PATH)
    except FileNotFoundError as e:
        logger.error(f"Error: {e}")
        sys.exit(1)
    except json.JSONDecodeError:
        logger.error("Error: Could not decode the configuration file. Please check its format.")
        sys.exit(1)
    except ValueError as e:
        logger.error(f"Error: Invalid configuration: {e}")
        sys.exit(1)

    params = config.parameters
    if args.dd is not None:
        params = replace(params, dose_criterion_percent=args.dd)
    if args.dta is not None:
        params = replace(params, distance_criterion_mm=args.dta)
    if args.neighborhood is not None:
        params = replace(params, neighborhood_size=args.neighborhood)
    workers = args.workers if args.workers is not None else config.workers

    try:
        params.validate()
        planned = load_dose(args.planned, args.pixel_width, args.pixel_height)
        measured = load_dose(args.measured, args.pixel_width, args.pixel_height)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Failed to load dose files: {e}")
        sys.exit(1)

    logger.info(f"Planned pixel size: {planned.pixel_width} x {planned.pixel_height} mm")
    logger.info(f"Measured pixel size: {measured.pixel_width} x {measured.pixel_height} mm")

    try:
        result = perform_gamma_analysis(planned, measured, params,
                                        vectorized=config.vectorized, workers=workers)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"An error occurred during gamma analysis: {e}", exc_info=True)
        sys.exit(1)

    print("Gamma Analysis Results:")
    print(format_statistics(result, planned, measured))

    try:
        if args.csv:
            save_gamma_csv(result, args.csv)
        if args.report:
            generate_report(args.report, planned, measured, result)
    except Exception as e:
        logger.error(f"Failed to save results: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
