"""SVG export of ordered maze walls (svgwrite).

Document layout::

    <svg width="{size}mm" height="..." viewBox="0 -m W H+2m">
      <rect .../>                 white background over the maze plane
      <g id="maze_walls">         one <path> per stroke-width run of a chain
      <g id="labels">             START / END (optional)
      <g id="markers">            entry/exit arrows (optional)

``m`` is a label margin above and below the plane, present only when labels
or markers are drawn.  Stroke widths are in plane units with two decimals;
path coordinates use ``ExportV1.precision`` decimals.

Usage::

    exporter = SvgExporter(job.export, job.shading)
    exporter.save("out/maze.svg", chains, partition)
"""

from __future__ import annotations

import io
import logging
from pathlib import Path

import svgwrite

from ..maze.optimizer import Chain
from ..maze.partition import Cell, Partition
from ..maze.walls import WallSegment, stroke_width
from ..utils import fs
from ..utils.validators import ExportV1, ShadingV1

logger = logging.getLogger(__name__)

MARGIN_RATIO = 0.05
FONT_RATIO = 0.0175
FONT_FAMILY = "Courier, monospace"


def _runs(chain: Chain, width_of) -> list[tuple[float, list[WallSegment]]]:
    """Split a chain into maximal runs of equal (2-decimal) stroke width."""
    runs: list[tuple[float, list[WallSegment]]] = []
    for seg in chain.segments:
        w = round(width_of(seg), 2)
        if runs and runs[-1][0] == w:
            runs[-1][1].append(seg)
        else:
            runs.append((w, [seg]))
    return runs


class SvgExporter:
    """Builds maze SVG documents.

    Parameters
    ----------
    export : ExportV1 | None
        Document size, precision and decoration switches.
    shading : ShadingV1 | None
        Stroke weight model.
    """

    def __init__(self, export: ExportV1 | None = None, shading: ShadingV1 | None = None) -> None:
        self.export = export or ExportV1()
        self.shading = shading or ShadingV1()

    def stroke_for(self, seg: WallSegment) -> float:
        return stroke_width(seg.brightness, self.shading.wall_thickness, self.shading.shading_intensity)

    def _fmt(self, value: float) -> str:
        return f"{value:.{self.export.precision}f}"

    def path_data(self, segments: list[WallSegment]) -> str:
        """``M x,y L x,y ...`` for a contiguous run of segments."""
        pts = [segments[0].start] + [s.end for s in segments]
        head, *rest = pts
        parts = [f"M{self._fmt(head[0])},{self._fmt(head[1])}"]
        parts.extend(f"L{self._fmt(x)},{self._fmt(y)}" for x, y in rest)
        return " ".join(parts)

    # ------------------------------------------------------------------
    # Document
    # ------------------------------------------------------------------

    def build(
        self,
        chains: list[Chain],
        width: float,
        height: float,
        entrance: Cell | None = None,
        exit_: Cell | None = None,
    ) -> svgwrite.Drawing:
        """Assemble the drawing for a ``width`` x ``height`` maze plane."""
        opts = self.export
        decorated = (opts.labels or opts.markers) and entrance is not None and exit_ is not None
        margin = height * MARGIN_RATIO if decorated else 0.0
        vb_h = height + 2 * margin

        size_w = opts.output_size_mm
        size_h = size_w * vb_h / width
        dwg = svgwrite.Drawing(size=(f"{size_w:g}mm", f"{size_h:g}mm"), profile="tiny", debug=False)
        dwg.viewbox(0, -margin if decorated else 0, width, vb_h)
        dwg.add(dwg.rect(insert=(0, 0), size=(width, height), fill="white"))

        walls = dwg.g(id="maze_walls", fill="none", stroke="black")
        n_paths = 0
        for chain in chains:
            for w, run in _runs(chain, self.stroke_for):
                walls.add(dwg.path(d=self.path_data(run), stroke_width=f"{w:.2f}", stroke_linecap="square"))
                n_paths += 1
        dwg.add(walls)

        if decorated:
            if opts.labels:
                dwg.add(self._labels(dwg, entrance, exit_, margin, height))
            if opts.markers:
                dwg.add(self._markers(dwg, entrance, exit_, margin))

        logger.debug("SVG: %d paths from %d chains, viewBox height %.2f", n_paths, len(chains), vb_h)
        return dwg

    def _labels(self, dwg: svgwrite.Drawing, entrance: Cell, exit_: Cell, margin: float, height: float):
        font = f"{height * FONT_RATIO:.2f}"
        group = dwg.g(id="labels", fill="black", font_family=FONT_FAMILY, font_weight="bold")
        for text, cell, y in (
            ("START", entrance, entrance.y - margin * 0.55),
            ("END", exit_, exit_.y2 + margin * 0.95),
        ):
            group.add(dwg.text(text, insert=(cell.center[0], y), font_size=font, text_anchor="middle"))
        return group

    def _markers(self, dwg: svgwrite.Drawing, entrance: Cell, exit_: Cell, margin: float):
        group = dwg.g(id="markers", fill="black", stroke="none")
        half = min(entrance.w, exit_.w, margin) * 0.25
        for cell, tip_y in ((entrance, entrance.y - margin * 0.05), (exit_, exit_.y2 + margin * 0.45)):
            cx = cell.center[0]
            base_y = tip_y - margin * 0.4
            group.add(dwg.polygon(points=[(cx - half, base_y), (cx + half, base_y), (cx, tip_y)]))
        return group

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def render(self, chains: list[Chain], partition: Partition) -> str:
        """SVG text for ``chains`` drawn over ``partition``'s plane."""
        entrance = exit_ = None
        if len(partition):
            entrance = partition.cells[partition.entrance]
            exit_ = partition.cells[partition.exit]
        dwg = self.build(chains, partition.width, partition.height, entrance, exit_)
        buf = io.StringIO()
        dwg.write(buf, pretty=True)
        return buf.getvalue()

    def save(self, path: str | Path, chains: list[Chain], partition: Partition) -> Path:
        """Render and write atomically; returns the path written."""
        path = Path(path)
        fs.atomic_write_text(path, self.render(chains, partition))
        logger.info("Wrote SVG %s (%s mm wide)", path, f"{self.export.output_size_mm:g}")
        return path
