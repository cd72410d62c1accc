"""
Hardware communication module.

Provides the EBB socket transport and command set, and the plot-job
driver with pause/stop and progress reporting.
"""

from plotter_control.hardware.ebb_client import EBB, EBBTransport
from plotter_control.hardware.plotter import Plotter, PlotterState

__all__ = ["EBB", "EBBTransport", "Plotter", "PlotterState"]
