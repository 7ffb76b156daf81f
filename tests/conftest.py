"""
Shared fixtures: a small indexed project on disk.

Ranking for "add an area calculation method" over this index is exactly
Circle.area, Shape.area (tie at 24, broken by key) and Polygon.perimeter (3).
"""

import json
from pathlib import Path

import pytest

from codecontext.core.config import PipelineConfig, load_config
from codecontext.services.method_index import MethodIndex

SHAPES_PY = """class Shape:
    def area(self):
        return self.width * self.height

    def _cache(self):
        return {}


class Polygon(Shape):
    def perimeter(self):
        return sum(self.sides)
"""

CIRCLE_PY = """import math


class Circle:
    def area(self):
        return math.pi * self.radius ** 2
"""

METHODS = {
    "Shape.area": {
        "file": "src/shapes.py", "class": "Shape", "name": "area", "signature": "area(self)",
        "role": "core", "description": "Compute the area of the shape",
        "effects": {"reads": ["self.width", "self.height"]}, "consumers": ["Renderer.draw"],
        "line": 2, "endLine": 3,
    },
    "Circle.area": {
        "file": "src/circle.py", "class": "Circle", "name": "area", "signature": "area(self)",
        "role": "core", "description": "Area of a circle from its radius",
        "effects": {"reads": ["self.radius"]}, "consumers": [],
        "line": 5, "endLine": 6,
    },
    "Polygon.perimeter": {
        "file": "src/shapes.py", "class": "Polygon", "name": "perimeter", "signature": "perimeter(self)",
        "role": None, "description": "Perimeter calculation for polygons",
        "effects": {}, "consumers": [],
        "line": 10, "endLine": 11,
    },
    "Shape._cache": {
        "file": "src/shapes.py", "class": "Shape", "name": "_cache", "signature": "_cache(self)",
        "role": None, "description": "Internal area cache", "isPrivate": True,
        "line": 5, "endLine": 6,
    },
    "Logger.write": {
        "file": "src/log.py", "class": "Logger", "name": "write", "signature": "write(self, msg)",
        "role": "internal", "description": "Write method traces",
        "line": 1, "endLine": 2,
    },
    "Renderer.draw": {
        "file": "src/render.py", "class": "Renderer", "name": "draw", "signature": "draw(self)",
        "role": "util", "description": "Draw shapes on the canvas",
        "line": 1, "endLine": 4,
    },
}

CONFIG = {
    "project": {"name": "shapes"},
    "agents": {"cache": {"enabled": True}},
    "categories": {
        "geometry": {"keywords": ["area", "perimeter"]},
        "rendering": {"keywords": ["draw", "canvas"]},
    },
    "domain_terms": {"shape": "Base class for measurable shapes"},
    "synonyms": {"figure": "shape"},
}

SCENARIO_QUERY = "add an area calculation method"


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "shapes.py").write_text(SHAPES_PY, encoding="utf-8")
    (tmp_path / "src" / "circle.py").write_text(CIRCLE_PY, encoding="utf-8")
    (tmp_path / ".cache").mkdir()
    (tmp_path / ".cache" / "method-index.json").write_text(json.dumps({"methods": METHODS}), encoding="utf-8")
    (tmp_path / "codecontext.json").write_text(json.dumps(CONFIG), encoding="utf-8")
    return tmp_path


@pytest.fixture
def config(project_dir: Path) -> PipelineConfig:
    return load_config(project_dir / "codecontext.json")


@pytest.fixture
def index(config: PipelineConfig) -> MethodIndex:
    return MethodIndex.load(config.index_file, config.project.root_path)
