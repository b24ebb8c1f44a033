#!/usr/bin/env python3
"""
Main control script for the χc / χb → J/ψ(Υ) γ conversion analysis

This script:
1. Opens the muon and conversion trees of every configured sample
2. Books the χ mass histograms per sample/beam category
3. Selects χ candidates and fills the histograms
4. Draws the histograms

Usage:
    # Run with the default configuration (hichi/config/analysis.toml)
    python -m hichi.main

    # Custom configuration, overlay all histograms
    hichi-plot --config my_analysis.toml --draw together
"""

import argparse
import logging
import sys

from hichi.modules.chi_selector import ChiSelector
from hichi.modules.data_handler import AnalysisConfig
from hichi.modules.exceptions import AnalysisError
from hichi.modules.histogram import HistogramStore
from hichi.utils.logging_config import setup_logging, suppress_warnings


def parse_args(argv=None):
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        description="χc / χb mass spectra from photon conversions in pPb collisions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Drawing modes:
  separate   one image per histogram (default)
  together   all histograms on one canvas
  <tag>      histograms whose category contains <tag>, e.g. pPb
        """
    )

    parser.add_argument(
        "--config",
        default=None,
        help="Analysis TOML file (default: hichi/config/analysis.toml)"
    )

    parser.add_argument(
        "--output-dir",
        default=None,
        help="Directory for the images (default: [render] output_dir)"
    )

    parser.add_argument(
        "--draw",
        default=None,
        help="Drawing mode (default: [render] mode)"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output"
    )

    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Main analysis function"""
    args = parse_args(argv)
    logger = setup_logging(args.verbose)
    suppress_warnings()

    try:
        config = AnalysisConfig(args.config)
        output_dir = args.output_dir or config.output_dir
        mode = config.render_mode if args.draw is None else args.draw

        logger.info("=" * 70)
        logger.info("χ → J/ψ(Υ) γ conversion analysis")
        logger.info("=" * 70)
        logger.info(f"  Samples: {config.files}")
        logger.info(f"  Histograms: {list(config.var_info)}")
        logger.info(f"  Output: {output_dir} (mode '{mode}')")
        logger.info("=" * 70)

        hist = HistogramStore(output_dir=output_dir, energy_text=config.energy_text)
        try:
            with ChiSelector(config, hist) as selector:
                selector.run()
            hist.render(mode)
        finally:
            hist.dispose()
    except AnalysisError as e:
        logger.error(f"Analysis stopped: {e}")
        return 1

    logger.info("Analysis complete! Check outputs in: " + str(output_dir))
    return 0


if __name__ == "__main__":
    sys.exit(main())
