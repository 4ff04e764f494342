# src/phenodist/visualization/__init__.py

"""
visualization - Plots of nearest-neighbor relations

>>> from phenodist.visualization import nn_plot, nn_plot_mutual
>>> colors = {'CK+': 'cyan', 'CD8+': 'yellow'}
>>> fig = nn_plot(results[0], colors)
"""

from .nn_plots import nn_plot, nn_plot_mutual, spatial_distribution_plots

__all__ = [
    'nn_plot',
    'nn_plot_mutual',
    'spatial_distribution_plots',
]
