"""Plot job IR: maze chains converted to step-space pen segments."""

from plotter_control.job_ir.segments import (
    PlotSegment,
    PlotTransform,
    estimate_plot_time,
    format_time,
    generate_plot_job,
    segments_to_strokes,
    step_rate_for_speed,
    stroke_to_height,
)

__all__ = [
    "PlotSegment",
    "PlotTransform",
    "estimate_plot_time",
    "format_time",
    "generate_plot_job",
    "segments_to_strokes",
    "step_rate_for_speed",
    "stroke_to_height",
]
