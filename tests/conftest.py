"""Pytest configuration for the bijection test suite."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import pytest

TESTS_DIR = Path(__file__).parent


def parse_test_file(path: Path) -> list[tuple[str, list[str], list[str]]]:
    """Parse a .tests file into (name, input_lines, expected_lines) tuples.

    Format:

        === test name
        input lines
        ---
        expected lines
        ---
    """
    lines = path.read_text().split("\n")
    result: list[tuple[str, list[str], list[str]]] = []
    i = 0
    while i < len(lines):
        line = lines[i]
        if line.startswith("=== "):
            test_name = line[4:].strip()
            i += 1
            input_lines: list[str] = []
            while i < len(lines) and not lines[i].startswith("---"):
                input_lines.append(lines[i])
                i += 1
            if i < len(lines) and lines[i] == "---":
                i += 1
            expected_lines: list[str] = []
            while i < len(lines) and not lines[i].startswith("---"):
                expected_lines.append(lines[i])
                i += 1
            if i < len(lines) and lines[i] == "---":
                i += 1
            result.append((test_name, input_lines, expected_lines))
        else:
            i += 1
    return result


def discover_tests(dirname: str) -> list[tuple[str, list[str], list[str]]]:
    """All cases under tests/<dirname>/*.tests, ids as <file stem>/<name>."""
    results = []
    for test_file in sorted((TESTS_DIR / dirname).glob("*.tests")):
        for name, input_lines, expected_lines in parse_test_file(test_file):
            results.append((f"{test_file.stem}/{name}", input_lines, expected_lines))
    return results


def make_namespace() -> dict[str, object]:
    """Fresh domain types; attaching converters mutates classes, so never share them."""

    class Foo(Enum):
        A = 1
        B = 2

    class Bar(Enum):
        X = "x"
        Y = "y"

    @dataclass
    class Point:
        x: int
        y: int

    @dataclass
    class PointFlipped:
        y: int
        x: int

    class Figure:
        @dataclass
        class Circle:
            radius: float

        @dataclass
        class Square:
            side: float

    @dataclass
    class Round:
        r: float

    @dataclass
    class Boxy:
        s: float

    class Void(Enum):
        pass

    class Never(Enum):
        pass

    return {
        "Foo": Foo,
        "Bar": Bar,
        "Point": Point,
        "PointFlipped": PointFlipped,
        "Figure": Figure,
        "Round": Round,
        "Boxy": Boxy,
        "Void": Void,
        "Never": Never,
    }


@pytest.fixture
def namespace() -> dict[str, object]:
    return make_namespace()
