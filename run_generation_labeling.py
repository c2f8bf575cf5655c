#!/usr/bin/env python3

import argparse
import logging
import math
from airway_generation.config import LabelingConfig, PARTICLE_DISTANCE_THRESHOLD, PARTICLE_ANGLE_THRESHOLD, \
    SCALE_RATIO_THRESHOLD
from airway_generation.pipeline import run_generation_labeling

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Assign airway generation labels to airway particles using a Hidden Markov Model. "
                    "The labels are stored in the ChestType array of the output particles."
    )
    parser.add_argument("-i", "--in-particles", required=True,
                        help="Input airway particles file")
    parser.add_argument("-o", "--out-particles", required=True,
                        help="Output particles file with airway generation labels")
    parser.add_argument("-a", "--atlas", action="append", required=True, dest="atlases",
                        help="Generation labeled atlas particles file (may be repeated). Atlases must "
                             "be in the input's coordinate frame")
    parser.add_argument("-e", "--emission-stats",
                        help="Emission probability statistics csv")
    parser.add_argument("--tp", dest="transition_probabilities",
                        help="Transition probabilities csv (11x11 grid)")
    parser.add_argument("--tps", dest="transition_stats",
                        help="Transition probability statistics csv")
    parser.add_argument("-d", "--dist-thresh", type=float, default=PARTICLE_DISTANCE_THRESHOLD,
                        help=f"Particle distance threshold (default: {PARTICLE_DISTANCE_THRESHOLD})")
    parser.add_argument("--angle-thresh", type=float, default=PARTICLE_ANGLE_THRESHOLD,
                        help=f"Particle angle threshold in degrees (default: {PARTICLE_ANGLE_THRESHOLD})")
    parser.add_argument("--scale-ratio-thresh", type=float, default=SCALE_RATIO_THRESHOLD,
                        help=f"Particle scale ratio threshold (default: {SCALE_RATIO_THRESHOLD})")
    parser.add_argument("--kde-roi", type=float, default=math.inf,
                        help="Kernel density estimation ROI radius (default: all atlas particles contribute)")
    parser.add_argument("--dice", action="store_true",
                        help="Print Dice scores against the input's existing labels")
    parser.add_argument("--log-file",
                        help="Also write the log to this file")
    return parser.parse_args(argv)

def main(argv=None):
    """Main entry point for airway generation labeling"""
    args = parse_args(argv)

    config = LabelingConfig(
        particle_distance_threshold=args.dist_thresh,
        particle_angle_threshold=args.angle_thresh,
        scale_ratio_threshold=args.scale_ratio_thresh,
        kde_roi_radius=args.kde_roi
    )

    logger.info("Starting airway generation labeling of: %s", args.in_particles)
    run_generation_labeling(
        input_file=args.in_particles,
        output_file=args.out_particles,
        atlas_files=args.atlases,
        emission_stats_file=args.emission_stats,
        transition_probabilities_file=args.transition_probabilities,
        transition_stats_file=args.transition_stats,
        config=config,
        print_dice=args.dice,
        log_file=args.log_file
    )
    logger.info("Results saved to: %s", args.out_particles)

if __name__ == "__main__":
    main()
