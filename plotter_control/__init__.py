"""
Plotter Control Package.

Drives an EBB-based pen plotter (AxiDraw class) from the maze geometry
produced by ``mazeface``.

Subpackages:
    hardware: EBB transport and command layer, plot-job driver
    job_ir: Plot segments in motor steps, transforms and time estimates
    configs: Plotter configuration loading and validation
    scripts: Command-line entry points
"""

__all__ = ["hardware", "job_ir", "configs"]
