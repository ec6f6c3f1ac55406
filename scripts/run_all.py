#!/usr/bin/env python3
"""
Main script for reproducing the phantom array TCSF analysis.

Runs the preprocessing steps (visibility thresholds, individual fits,
literature dataset), renders the figures and, on request, the trial-by-trial
TCSF animation for selected participants.
"""

import argparse
import sys
from pathlib import Path

import matplotlib
matplotlib.use('Agg')
import numpy as np

# Add the package to the path
sys.path.append(str(Path(__file__).parent.parent))

from phantom_tcsf.analysis import (
    compute_individual_fits,
    compute_visibility_thresholds,
    create_literature_dataset,
    population_tcsf,
    save_individual_fits,
    save_literature_dataset,
    save_visibility_thresholds,
)
from phantom_tcsf.analysis.visibility_thresholds import THRESHOLDS_FILE
from phantom_tcsf.data_io import load_participant, participant_file, read_thresholds, save_participant
from phantom_tcsf.procedures import TcsfReplay
from phantom_tcsf.simulation import simulate_participant, tcsf_shaped_thresholds
from phantom_tcsf.utils import (
    FailureRecord,
    InsufficientData,
    MissingInput,
    StudyConfig,
    TcsfError,
    load_config,
)
from phantom_tcsf.utils.exceptions import warn_skipped
from phantom_tcsf.visualization import (
    build_tcsf_animation,
    plot_individual_tcsfs,
    plot_literature_comparison,
    plot_peak_distributions,
    plot_population_tcsf,
    plot_psychometric_grid,
)

STEPS = ('thresholds', 'individual', 'literature', 'figures')


def write_demo_data(config: StudyConfig, seed=42, n_trials_per_frequency=30):
    """Write synthetic participant files into the raw data directory."""
    rng = np.random.default_rng(seed)
    print(f"Writing {len(config.participant_ids)} synthetic participants to {config.raw_data_dir}")
    for participant_id in config.participant_ids:
        thresholds = tcsf_shaped_thresholds(
            config,
            peak_sensitivity=rng.uniform(1.3, 1.8),
            peak_frequency=rng.uniform(150, 400),
            jitter_db=1.0,
            random_state=rng.integers(2 ** 32))
        participant = simulate_participant(participant_id, thresholds, config,
                                           n_trials_per_frequency=n_trials_per_frequency,
                                           random_state=rng.integers(2 ** 32))
        save_participant(participant, participant_file(config.raw_data_dir, participant_id))


def load_available_participants(config: StudyConfig):
    participants = []
    for participant_id in config.participant_ids:
        try:
            participants.append(load_participant(participant_file(config.raw_data_dir, participant_id),
                                                 config, participant_id=participant_id))
        except MissingInput as e:
            print(f"Skipping participant {participant_id:02d} in figure 5: {e}")
    return participants


def run_pipeline(config: StudyConfig, steps, make_figures=True, animate=()):
    """Run the selected steps; returns the failure records collected on the way."""
    failures = []
    output_dir = Path(config.output_dir)

    if 'thresholds' in steps:
        print("\n=== Visibility thresholds ===")
        batch = compute_visibility_thresholds(config)
        save_visibility_thresholds(batch, config)
        failures.extend(batch.failures)
        threshold_table = batch.table
    else:
        threshold_table = read_thresholds(Path(config.processed_data_dir) / THRESHOLDS_FILE, config)

    fit_results = None
    if 'individual' in steps:
        print("\n=== Individual TCSF fits ===")
        fit_results = compute_individual_fits(threshold_table, config)
        save_individual_fits(fit_results, config)
        failures.extend(fit_results.failures)

    literature = None
    if 'literature' in steps:
        print("\n=== Literature dataset ===")
        literature = create_literature_dataset(threshold_table, config)
        save_literature_dataset(literature, config)
        failures.extend(literature.failures)

    if make_figures and 'figures' in steps:
        print("\n=== Figures ===")
        plot_psychometric_grid(load_available_participants(config), config,
                               save_path=output_dir / 'fig5_allParticipants.png')
        try:
            population = population_tcsf(threshold_table, config)
        except InsufficientData as e:
            failures.append(warn_skipped(FailureRecord.from_error("population TCSF (figure 6)", e)))
        else:
            plot_population_tcsf(population, config, save_path=output_dir / 'fig6_populationTcsf.png',
                                 report_path=output_dir / 'fig6_fitParameters.txt')
        if fit_results is None:
            fit_results = compute_individual_fits(threshold_table, config)
        plot_individual_tcsfs(threshold_table, fit_results, config,
                              save_path=output_dir / 'fig7_individualTcsf.png')
        if fit_results.fits:
            plot_peak_distributions(fit_results, save_path=output_dir / 'fig8_peakDistributions.png')
        if literature is None:
            literature = create_literature_dataset(threshold_table, config)
            failures.extend(literature.failures)
        plot_literature_comparison(literature, config,
                                   save_path=output_dir / 'fig10_literatureComparison.png')

    for participant_id in animate:
        print(f"\n=== Animation, participant {participant_id:02d} ===")
        participant = load_participant(participant_file(config.raw_data_dir, participant_id),
                                       config, participant_id=participant_id)
        build_tcsf_animation(TcsfReplay(participant, config),
                             output_dir / 'illustrations' / f'tcsfAnimation_p{participant_id:02d}.gif')

    return failures


def main(argv=None):
    parser = argparse.ArgumentParser(description='Run the phantom array TCSF analysis')
    parser.add_argument('--config', type=str,
                        default='configs/default.yaml',
                        help='Path to configuration file')
    parser.add_argument('--n-jobs', type=int,
                        help='Number of parallel jobs')
    parser.add_argument('--participants', type=int, nargs='+',
                        help='Participant ids to process')
    parser.add_argument('--steps', nargs='+', choices=STEPS, default=list(STEPS),
                        help='Pipeline steps to run')
    parser.add_argument('--animate', type=int, nargs='*', default=[],
                        help='Participant ids to render as a TCSF animation')
    parser.add_argument('--no-figures', action='store_true',
                        help='Skip figure rendering')
    parser.add_argument('--demo', action='store_true',
                        help='Write synthetic participants to the raw data directory first')
    parser.add_argument('--seed', type=int, default=42,
                        help='Random seed for --demo')

    args = parser.parse_args(argv)

    # Load configuration
    try:
        config = load_config(args.config)
    except FileNotFoundError:
        print(f"Configuration file {args.config} not found. Using defaults.")
        config = StudyConfig().resolve_paths(Path.cwd())

    # Override with command line arguments
    config = config.with_overrides(
        n_jobs=args.n_jobs,
        participant_ids=tuple(args.participants) if args.participants else None)

    if args.demo:
        write_demo_data(config, seed=args.seed)

    try:
        failures = run_pipeline(config, args.steps, make_figures=not args.no_figures,
                                animate=args.animate)
    except (TcsfError, FileNotFoundError) as e:
        print(f"Pipeline stopped: {e}")
        return 1

    print("\nAnalysis completed successfully!")
    if failures:
        print(f"\n{len(failures)} unit(s) were skipped:")
        for record in failures:
            print(f"  - {record}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
