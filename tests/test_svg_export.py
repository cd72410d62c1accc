"""Tests for SVG export.

Parses the rendered document and checks:
    - Physical size and viewBox (with and without the label margin)
    - One <path> per stroke-width run, widths with two decimals
    - Label and marker groups switch on/off
    - Atomic save
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from pathlib import Path

import pytest

from mazeface.export.svg import SvgExporter
from mazeface.maze.carver import CarveParams, carve_maze
from mazeface.maze.optimizer import Chain, optimize_segments
from mazeface.maze.partition import Partition
from mazeface.maze.walls import WallSegment, extract_walls
from mazeface.utils.validators import ExportV1, ShadingV1

NS = {"svg": "http://www.w3.org/2000/svg"}


def _parse(text: str) -> ET.Element:
    return ET.fromstring(text.encode("utf-8"))


def _group(root: ET.Element, gid: str) -> ET.Element | None:
    return root.find(f".//svg:g[@id='{gid}']", NS)


def _viewbox(root: ET.Element) -> list[float]:
    # svgwrite separates viewBox values with commas or spaces depending on version
    return [float(v) for v in re.split(r"[\s,]+", root.get("viewBox").strip())]


@pytest.fixture()
def tree_chains(grid4: Partition) -> list[Chain]:
    maze = carve_maze(grid4, CarveParams(seed=1, wall_removal_strength=0, extra_walls_strength=0))
    return optimize_segments(extract_walls(maze), stitch=False)


class TestDocument:
    def test_size_and_viewbox(self, grid4: Partition, tree_chains: list[Chain]) -> None:
        root = _parse(SvgExporter().render(tree_chains, grid4))
        assert root.get("width") == "150mm"
        assert float(root.get("height")[:-2]) == pytest.approx(165.0)
        viewbox = _viewbox(root)
        assert viewbox == pytest.approx([0.0, -0.2, 4.0, 4.4])

    def test_undecorated_has_no_margin(self, grid4: Partition, tree_chains: list[Chain]) -> None:
        export = ExportV1(labels=False, markers=False, output_size_mm=100)
        root = _parse(SvgExporter(export).render(tree_chains, grid4))
        viewbox = _viewbox(root)
        assert viewbox == pytest.approx([0.0, 0.0, 4.0, 4.0])
        assert root.get("height") == "100mm"
        assert _group(root, "labels") is None
        assert _group(root, "markers") is None

    def test_one_path_per_segment_unstitched(self, grid4: Partition, tree_chains: list[Chain]) -> None:
        root = _parse(SvgExporter().render(tree_chains, grid4))
        walls = _group(root, "maze_walls")
        paths = walls.findall("svg:path", NS)
        assert len(paths) == 23
        # flat mid-gray image -> one shared width
        assert {p.get("stroke-width") for p in paths} == {"2.40"}
        assert walls.get("fill") == "none"

    def test_blank_grid_round_trip(self, blank4: Partition) -> None:
        maze = carve_maze(blank4, CarveParams(seed=1, wall_removal_strength=0, extra_walls_strength=0))
        chains = optimize_segments(extract_walls(maze), stitch=False)
        root = _parse(SvgExporter().render(chains, blank4))
        paths = _group(root, "maze_walls").findall("svg:path", NS)
        assert len(paths) == 23
        # white image: every wall at the base thickness
        assert {p.get("stroke-width") for p in paths} == {"1.20"}

    def test_stitched_has_fewer_paths(self, grid4: Partition) -> None:
        chains = optimize_segments(extract_walls(carve_maze(grid4)))
        root = _parse(SvgExporter().render(chains, grid4))
        assert len(_group(root, "maze_walls").findall("svg:path", NS)) == len(chains)
        assert len(chains) < 23

    def test_labels_and_markers(self, grid4: Partition, tree_chains: list[Chain]) -> None:
        root = _parse(SvgExporter().render(tree_chains, grid4))
        texts = [t.text for t in _group(root, "labels").findall("svg:text", NS)]
        assert texts == ["START", "END"]
        assert len(_group(root, "markers").findall("svg:polygon", NS)) == 2

    def test_labels_only(self, grid4: Partition, tree_chains: list[Chain]) -> None:
        root = _parse(SvgExporter(ExportV1(markers=False)).render(tree_chains, grid4))
        assert _group(root, "labels") is not None
        assert _group(root, "markers") is None


class TestPaths:
    def test_runs_split_on_width(self) -> None:
        chain = Chain([
            WallSegment(0, 0, 1, 0, brightness=255),
            WallSegment(1, 0, 2, 0, brightness=255),
            WallSegment(2, 0, 3, 0, brightness=0),
        ])
        export = ExportV1(labels=False, markers=False)
        dwg = SvgExporter(export).build([chain], 3, 1)
        root = _parse(dwg.tostring())
        paths = _group(root, "maze_walls").findall("svg:path", NS)
        assert [p.get("stroke-width") for p in paths] == ["1.20", "3.60"]
        assert paths[0].get("d") == "M0.0000,0.0000 L1.0000,0.0000 L2.0000,0.0000"
        assert paths[1].get("d") == "M2.0000,0.0000 L3.0000,0.0000"

    def test_precision(self) -> None:
        exporter = SvgExporter(ExportV1(precision=1))
        assert exporter.path_data([WallSegment(0.25, 1, 2.5, 1)]) == "M0.2,1.0 L2.5,1.0"

    def test_shading_model(self) -> None:
        exporter = SvgExporter(shading=ShadingV1(wall_thickness=1.0, shading_intensity=0.0))
        assert exporter.stroke_for(WallSegment(0, 0, 1, 0, brightness=0)) == 1.0


class TestSave:
    def test_writes_file(self, tmp_path: Path, grid4: Partition, tree_chains: list[Chain]) -> None:
        out = SvgExporter().save(tmp_path / "nested" / "maze.svg", tree_chains, grid4)
        assert out.exists()
        text = out.read_text()
        assert text.startswith("<?xml")
        assert "maze_walls" in text
        assert not (tmp_path / "nested" / "maze.svg.tmp").exists()
