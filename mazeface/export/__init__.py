"""Vector export of ordered maze geometry."""

from .svg import SvgExporter

__all__ = ["SvgExporter"]
