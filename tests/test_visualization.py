import matplotlib.pyplot as plt
import pytest

from phantom_tcsf.analysis import compute_individual_fits, create_literature_dataset, population_tcsf
from phantom_tcsf.procedures import TcsfReplay
from phantom_tcsf.visualization import (
    build_tcsf_animation,
    plot_individual_tcsfs,
    plot_literature_comparison,
    plot_peak_distributions,
    plot_population_tcsf,
    plot_psychometric_grid,
)


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close('all')


def test_psychometric_grid(participant, config, tmp_path):
    fig = plot_psychometric_grid([participant], config)
    assert len([ax for ax in fig.axes if ax.get_visible()]) == 10
    path = tmp_path / 'fig5.png'
    plot_psychometric_grid([participant], config, save_path=path)
    assert path.exists()


def test_population_tcsf_writes_report(threshold_table, config, tmp_path):
    population = population_tcsf(threshold_table, config)
    report = tmp_path / 'fit.txt'
    plot_population_tcsf(population, config, save_path=tmp_path / 'fig6.png', report_path=report)
    assert (tmp_path / 'fig6.png').exists()
    assert report.read_text() == population.coefficient_report()


def test_depth_axis_aligned_with_sensitivity(threshold_table, config):
    fig = plot_population_tcsf(population_tcsf(threshold_table, config), config)
    left, right = fig.axes[0], fig.axes[1]
    low, high = left.get_ylim()
    assert right.get_ylim() == pytest.approx((10 ** -low, 10 ** -high))


def test_individual_and_peak_figures(threshold_table, config, tmp_path):
    results = compute_individual_fits(threshold_table, config)
    plot_individual_tcsfs(threshold_table, results, config, save_path=tmp_path / 'fig7.png')
    plot_peak_distributions(results, save_path=tmp_path / 'fig8.png')
    assert (tmp_path / 'fig7.png').exists()
    assert (tmp_path / 'fig8.png').exists()


def test_literature_comparison(threshold_table, config, tmp_path):
    literature = create_literature_dataset(threshold_table, config)
    plot_literature_comparison(literature, config, save_path=tmp_path / 'fig10.png')
    assert (tmp_path / 'fig10.png').exists()


def test_animation_gif(short_participant, config, tmp_path):
    replay = TcsfReplay(short_participant, config, max_trials=6)
    path = build_tcsf_animation(replay, tmp_path / 'anim' / 'replay.gif', fps=5, dpi=30)
    assert path.exists()
    assert path.stat().st_size > 0
