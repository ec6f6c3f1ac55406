import math
from pathlib import Path

import numpy as np
import matplotlib.pyplot as plt
import seaborn as sns

from ..data_io.tables import PARTICIPANT_COLUMN, threshold_matrix
from ..procedures.psychometric_fit import fit_frequency_block
from ..procedures.trials import aggregate_trials
from ..utils.conversions import log_sensitivity
from ..utils.exceptions import FailureRecord, FitFailed, InsufficientData, warn_skipped

DEPTH_TICKS = [0.001, 0.005, 0.01, 0.02, 0.03, 0.04, 0.05, 0.1, 0.2, 0.3, 0.4, 0.5, 1]
FREQUENCY_AXIS_LIMITS = (np.log10(70), np.log10(2000))


def save_figure(fig, save_path, dpi=300):
    """Save a figure as PNG and close it."""
    save_path = Path(save_path)
    save_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(save_path, dpi=dpi, bbox_inches='tight')
    plt.close(fig)
    print(f"Figure saved to: {save_path}")
    return save_path


def format_frequency_axis(ax, frequency_list, label=True):
    """log10 frequency axis labelled in Hz."""
    ax.set_xlim(*FREQUENCY_AXIS_LIMITS)
    ax.set_xticks(np.log10(frequency_list))
    ax.set_xticklabels([str(f) for f in frequency_list], rotation=60)
    if label:
        ax.set_xlabel('Temporal Frequency (Hz)', fontweight='bold')


def add_depth_axis(ax, label=True):
    """
    Right-hand axis in modulation depth, aligned with a log10 sensitivity axis.

    Sensitivity is 1/depth, so a log-scaled axis with limits 10**-ylim runs
    in the opposite direction and lines up exactly with the left axis.
    """
    low, high = ax.get_ylim()
    depth_ax = ax.twinx()
    depth_ax.set_yscale('log')
    depth_ax.set_ylim(10 ** -low, 10 ** -high)
    ticks = [t for t in DEPTH_TICKS if 10 ** -low >= t >= 10 ** -high]
    depth_ax.set_yticks(ticks)
    depth_ax.set_yticklabels([f'{t:g}' for t in ticks])
    depth_ax.minorticks_off()
    if label:
        depth_ax.set_ylabel('Modulation Depth Visibility Threshold', fontweight='bold')
    return depth_ax


def plot_psychometric_grid(participants, config, save_path=None):
    """
    Psychometric functions of every participant, one panel per frequency.

    Marker opacity follows the number of trials at each stimulus level.

    Args:
        participants: Iterable of ParticipantData.
        config (StudyConfig): Study configuration.
        save_path (str or Path, optional): PNG destination; the figure is
            returned open when omitted.
    """
    participants = list(participants)
    n_freq = len(config.frequency_list)
    n_cols = min(5, n_freq)
    n_rows = math.ceil(n_freq / n_cols)
    fig, axes = plt.subplots(n_rows, n_cols, figsize=(3.5 * n_cols, 3.5 * n_rows),
                             sharey=True, squeeze=False)

    x_range = None
    for index, frequency in enumerate(config.frequency_list):
        ax = axes.flat[index]
        for participant in participants:
            block = participant.blocks.get(index)
            if block is None:
                continue
            try:
                fit = fit_frequency_block(block, participant.modulation_min_raw,
                                          participant.modulation_max_raw, config)
            except FitFailed as e:
                warn_skipped(FailureRecord.from_error(
                    f"participant {participant.participant_id:02d}, {frequency} Hz", e))
                continue
            x_range = config.stimulus_bounds(participant.modulation_min_raw,
                                             participant.modulation_max_raw)
            counts = aggregate_trials(block.sequence)
            colors = np.zeros((len(counts), 4))
            colors[:, 3] = counts.weights
            ax.scatter(counts.levels, counts.proportion_correct, s=30, c=colors, edgecolors=colors)
            stim_fine = np.linspace(*x_range, 100)
            ax.plot(stim_fine, fit.evaluate(stim_fine), '-', color='k', linewidth=1)

        if x_range is not None:
            ax.set_xlim(*x_range)
        ax.set_ylim(0, 1.05)
        ax.text(0.05, 0.2, f'{frequency} Hz', transform=ax.transAxes, fontsize=14, fontweight='bold')

    for ax in axes.flat[n_freq:]:
        ax.set_visible(False)
    fig.supxlabel('Modulation Depth (dB)', fontweight='bold')
    fig.supylabel('Proportion Correct', fontweight='bold')
    fig.tight_layout()

    if save_path is not None:
        save_figure(fig, save_path)
    return fig


def plot_population_tcsf(population, config, save_path=None, report_path=None):
    """Individual log sensitivities, the mean with 95% CI, and the polynomial fit of the mean."""
    fig, ax = plt.subplots(figsize=(7, 5))
    x = population.log_frequencies
    for row in population.log_sensitivity:
        ax.scatter(x, row, s=20, facecolors='none', edgecolors='k', alpha=0.3)
    ax.errorbar(x, population.mean_log_sensitivity, yerr=population.ci95, fmt='s',
                color='k', markerfacecolor='w', capsize=3, label='Mean ± 95% CI')

    x_fit = np.linspace(*config.frequency_search_interval, config.curve_samples)
    ax.plot(x_fit, population.curve_fit.evaluate(x_fit), 'k-', linewidth=1.5,
            label=f'Order-{population.curve_fit.degree} fit (R² = {population.curve_fit.r_squared:.3f})')

    finite = population.log_sensitivity[np.isfinite(population.log_sensitivity)]
    lower = min(0.0, float(finite.min()) - 0.1) if finite.size else 0.0
    ax.set_ylim(lower, 2.5)
    ax.set_ylabel('log$_{10}$(S)', fontweight='bold')
    format_frequency_axis(ax, config.frequency_list)
    add_depth_axis(ax)
    ax.legend(loc='lower left')
    fig.tight_layout()

    if report_path is not None:
        report_path = Path(report_path)
        report_path.parent.mkdir(parents=True, exist_ok=True)
        report_path.write_text(population.coefficient_report())
        print(f"Fit parameters saved to: {report_path}")
    if save_path is not None:
        save_figure(fig, save_path)
    return fig


def plot_individual_tcsfs(threshold_table, fit_results, config, save_path=None):
    """One panel per participant: log sensitivities, polynomial fit and its 95% band."""
    matrix = threshold_matrix(threshold_table, config)
    ids = [int(pid) for pid in threshold_table[PARTICIPANT_COLUMN]]
    n_cols = min(6, max(len(ids), 1))
    n_rows = max(1, math.ceil(len(ids) / n_cols))
    fig, axes = plt.subplots(n_rows, n_cols, figsize=(3 * n_cols, 2.6 * n_rows),
                             sharex=True, sharey=True, squeeze=False)
    x_fit = np.linspace(*config.frequency_search_interval, config.curve_samples)

    for ax, pid, row in zip(axes.flat, ids, matrix):
        ax.scatter(config.log_frequencies, log_sensitivity(row), s=15, color='k')
        fit = fit_results.fits.get(pid)
        if fit is not None:
            ax.plot(x_fit, fit.curve_fit.evaluate(x_fit), 'k-', linewidth=1)
            try:
                lower, upper = fit.curve_fit.prediction_band(x_fit, config.confidence_level)
                ax.fill_between(x_fit, lower, upper, color='gray', alpha=0.3, linewidth=0)
            except InsufficientData:
                pass
        ax.text(np.log10(80), 2.0, f'PID: {pid:02d}', fontsize=10)
        ax.set_ylim(0, 2.5)
        format_frequency_axis(ax, config.frequency_list, label=False)

    for ax in axes.flat[len(ids):]:
        ax.set_visible(False)
    fig.supxlabel('Temporal Frequency (Hz)', fontweight='bold')
    fig.supylabel('log$_{10}$(S)', fontweight='bold')
    fig.tight_layout()

    if save_path is not None:
        save_figure(fig, save_path)
    return fig


def plot_peak_distributions(fit_results, save_path=None, bins=10):
    """Sorted stem plots and histograms of peak sensitivity and peak frequency."""
    ids = np.array(list(fit_results.fits.keys()))
    panels = [
        ('Peak Sensitivity', 'log$_{10}$(S)', fit_results.peak_sensitivities, (0, 2)),
        ('Peak Frequency', 'Frequency (Hz)', fit_results.peak_frequencies, (100, 1000)),
    ]
    fig, axes = plt.subplots(2, 2, figsize=(12, 7), gridspec_kw={'width_ratios': [3, 1]})

    for (title, ylabel, values, ylim), (stem_ax, hist_ax) in zip(panels, axes):
        order = np.argsort(values)
        positions = np.arange(1, len(values) + 1)
        stem_ax.stem(positions, values[order], linefmt='k-', markerfmt='ko', basefmt=' ')
        stem_ax.axhline(np.mean(values), color='r', linestyle='--', linewidth=1)
        stem_ax.set_xticks(positions)
        stem_ax.set_xticklabels([str(i) for i in ids[order]])
        stem_ax.set_xlim(0, len(values) + 1)
        stem_ax.set_ylim(*ylim)
        stem_ax.set_title(title, fontweight='bold')
        stem_ax.set_xlabel('PID', fontweight='bold')
        stem_ax.set_ylabel(ylabel, fontweight='bold')

        sns.histplot(y=values, bins=bins, ax=hist_ax, color='0.8', edgecolor='k')
        hist_ax.axhline(np.mean(values), color='r', linestyle='--', linewidth=1,
                        label=f'Mean: {np.mean(values):.2f}')
        hist_ax.set_ylim(*ylim)
        hist_ax.set_yticks([])
        hist_ax.set_ylabel('')
        hist_ax.set_title(f'Histogram of\n{title}s', fontweight='bold')
        hist_ax.legend(loc='upper right', fontsize=8)

    fig.tight_layout()
    if save_path is not None:
        save_figure(fig, save_path)
    return fig


def plot_literature_comparison(literature, config, save_path=None):
    """This study's mean TCSF against every harmonized literature dataset."""
    datasets = literature.datasets
    others = [name for name in datasets if name != 'currentUserStudy']
    palette = sns.color_palette("deep", max(len(others), 1))

    fig, ax = plt.subplots(figsize=(8, 5.5))
    for name, color in zip(others, palette):
        dataset = datasets[name]
        label = dataset.citation_key or name
        ax.scatter(dataset.x_data, dataset.y_data, s=18, color=color, alpha=0.7)
        if dataset.curve_fit is not None:
            ax.plot(dataset.x_fit, dataset.y_fit, '-', color=color, linewidth=1.2, label=label)
        else:
            ax.plot([], [], 'o', color=color, label=label)

    current = datasets.get('currentUserStudy')
    if current is not None:
        ax.scatter(current.x_data, current.y_data, s=40, marker='s', color='k', label=current.citation_key)
        if current.curve_fit is not None:
            ax.plot(current.x_fit, current.y_fit, 'k-', linewidth=2)

    ax.set_ylim(0, 1.8)
    ax.set_xlim(np.log10(70), np.log10(5000))
    ticks = [80, 160, 300, 600, 1000, 2000, 5000]
    ax.set_xticks(np.log10(ticks))
    ax.set_xticklabels([str(t) for t in ticks])
    ax.set_xlabel('Temporal Frequency (Hz)', fontweight='bold')
    ax.set_ylabel('log$_{10}$(S)', fontweight='bold')
    add_depth_axis(ax)
    ax.legend(loc='upper right', fontsize=8)
    fig.tight_layout()

    if save_path is not None:
        save_figure(fig, save_path)
    return fig
