"""
Animated GIF of a session replay.

Left: staircase traces and psychometric functions for every frequency
(two tile rows per five frequencies). Right: the TCSF fitted from the
thresholds available so far, with its 95% band.
"""
from pathlib import Path

import numpy as np
import matplotlib.pyplot as plt
from matplotlib.animation import FuncAnimation, PillowWriter
from matplotlib.gridspec import GridSpec

from ..utils.conversions import log_sensitivity
from .tcsf_plots import add_depth_axis, format_frequency_axis

TILE_COLUMNS = 5


def _tile_positions(frequency_index):
    """(row, column) of the staircase tile; the psychometric tile sits one row below."""
    group, column = divmod(frequency_index, TILE_COLUMNS)
    return 2 * group, column


def build_tcsf_animation(replay, save_path, fps=20, dpi=80):
    """
    Render every snapshot of a :class:`TcsfReplay` into an animated GIF.

    Args:
        replay (TcsfReplay): The session replay; iterated once while saving.
        save_path (str or Path): Destination GIF.
        fps (int): Frames per second.
        dpi (int): Resolution of each frame.

    Returns:
        Path: The written GIF.
    """
    config = replay.config
    participant = replay.participant
    n_freq = len(config.frequency_list)
    n_groups = int(np.ceil(n_freq / TILE_COLUMNS))
    x_range = config.stimulus_bounds(participant.modulation_min_raw, participant.modulation_max_raw)
    stim_fine = np.linspace(*x_range, 100)
    max_trials = max(len(block.sequence) for block in participant.blocks.values())

    fig = plt.figure(figsize=(14, 3.5 * n_groups))
    grid = GridSpec(2 * n_groups, TILE_COLUMNS + 4, figure=fig, wspace=0.4, hspace=0.5)
    staircase_axes, pf_axes = {}, {}
    for index, frequency in enumerate(config.frequency_list):
        row, column = _tile_positions(index)
        staircase_axes[index] = fig.add_subplot(grid[row, column])
        pf_axes[index] = fig.add_subplot(grid[row + 1, column])
        staircase_axes[index].set_title(f'{frequency} Hz', fontsize=9, fontweight='bold')
    tcsf_ax = fig.add_subplot(grid[:, TILE_COLUMNS + 1:])

    def format_tiles(index):
        staircase_ax, pf_ax = staircase_axes[index], pf_axes[index]
        staircase_ax.set_xlim(0, max_trials + 2)
        staircase_ax.set_ylim(*x_range)
        staircase_ax.tick_params(labelsize=7)
        pf_ax.set_xlim(*x_range)
        pf_ax.set_ylim(0, 1.05)
        pf_ax.tick_params(labelsize=7)

    def format_tcsf():
        tcsf_ax.set_ylim(0, 2.5)
        tcsf_ax.set_ylabel('log$_{10}$(S)', fontweight='bold')
        format_frequency_axis(tcsf_ax, config.frequency_list)
        tcsf_ax.set_title(f'Participant {participant.participant_id:02d}', fontweight='bold')

    for index in range(n_freq):
        format_tiles(index)
    format_tcsf()
    add_depth_axis(tcsf_ax)

    def update(snapshot):
        index = snapshot.frequency_index
        n_seen = snapshot.trial_in_frequency
        sequence = participant.blocks[index].sequence.prefix(n_seen)

        staircase_ax, pf_ax = staircase_axes[index], pf_axes[index]
        staircase_ax.clear()
        pf_ax.clear()
        trial_numbers = np.arange(1, n_seen + 1)
        staircase_ax.plot(trial_numbers, sequence.stimulus_levels, '-', color='0.6', linewidth=0.8)
        staircase_ax.scatter(trial_numbers, sequence.stimulus_levels, s=8,
                             c=np.where(sequence.outcomes, 'g', 'r'))
        staircase_ax.set_title(f'{config.frequency_list[index]} Hz', fontsize=9, fontweight='bold')

        counts = snapshot.counts[index]
        colors = np.zeros((len(counts), 4))
        colors[:, 3] = counts.weights
        pf_ax.scatter(counts.levels, counts.proportion_correct, s=12, c=colors)
        fit = snapshot.fits.get(index)
        if fit is not None:
            pf_ax.plot(stim_fine, fit.evaluate(stim_fine), 'k-', linewidth=1)
        format_tiles(index)

        tcsf_ax.clear()
        valid = np.isfinite(snapshot.thresholds)
        tcsf_ax.scatter(config.log_frequencies[valid], log_sensitivity(snapshot.thresholds[valid]),
                        s=30, marker='s', color='k')
        if snapshot.tcsf_fit is not None:
            tcsf_ax.plot(snapshot.x_fit, snapshot.tcsf_fit.evaluate(snapshot.x_fit), 'k-', linewidth=1.5)
            if snapshot.band is not None:
                tcsf_ax.fill_between(snapshot.x_fit, *snapshot.band, color='gray', alpha=0.3, linewidth=0)
        format_tcsf()
        fig.suptitle(f'Trial {snapshot.trial_number}/{len(replay)}', fontsize=11)
        return []

    anim = FuncAnimation(fig, update, frames=lambda: iter(replay), save_count=len(replay),
                         cache_frame_data=False, blit=False, repeat=False)

    save_path = Path(save_path)
    save_path.parent.mkdir(parents=True, exist_ok=True)
    print(f"Generating the TCSF animation for participant {participant.participant_id:02d}...")
    anim.save(save_path, writer=PillowWriter(fps=fps), dpi=dpi)
    plt.close(fig)
    print(f"Animation saved to: {save_path}")
    return save_path
