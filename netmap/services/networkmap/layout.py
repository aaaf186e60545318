"""Layout invoker - runs Graphviz over a dot document and reads back positions.

The pipeline only sees ``LayoutEngine``: an engine takes the dot text and
the Graphviz program name and returns the ``-Tplain`` output as text.
Temp files live and die inside ``render()``, so nothing downstream (a
custom parser included) can leak them.

Parsing is a separate strategy (``LayoutOutputParser``) returning an
explicit ``ParseResult``; ``FallbackParser`` retries with the default
parser when a custom one gives up with ``CustomParserFailure``.

Plain output format::

    graph SCALE WIDTH HEIGHT
    node NAME X Y WIDTH HEIGHT LABEL STYLE SHAPE COLOR FILLCOLOR
    edge TAIL HEAD N X1 Y1 .. XN YN [LABEL XL YL] STYLE COLOR
    stop
"""

import logging
import ntpath
import os
import shlex
import subprocess
import sys
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

from netmap.config import AppConfig, settings
from .builder import GRAPHVIZ_RADIUS_CONVERSION_FACTOR
from .errors import CustomParserFailure, LayoutParseFailure, LayoutToolFailure, NetworkMapError
from .options import MapOptions

logger = logging.getLogger(__name__)


# ── Engines ───────────────────────────────────────────────────────────


class LayoutEngine(ABC):
    """Turns a dot document into Graphviz plain output."""

    @abstractmethod
    def render(self, dot: str, program: str) -> str:
        """Return the plain output text, or raise LayoutToolFailure."""
        ...


class GraphvizEngine(LayoutEngine):
    """Graphviz on POSIX hosts: programs found in ``bin_dir`` or on PATH."""

    def __init__(
        self,
        bin_dir: str = "",
        timeout: float = 30.0,
        temp_dir: Optional[str] = None,
    ):
        self.bin_dir = bin_dir
        self.timeout = timeout
        self.temp_dir = temp_dir or None

    def executable(self, program: str) -> str:
        if self.bin_dir:
            return os.path.join(self.bin_dir, program)
        return program

    def command(self, program: str, dot_path: str, plain_path: str) -> list[str]:
        return [self.executable(program), "-Tplain", "-o", plain_path, dot_path]

    def _temp_file(self, suffix: str) -> str:
        fd, path = tempfile.mkstemp(prefix="networkmap_", suffix=suffix, dir=self.temp_dir)
        os.close(fd)
        return path

    def render(self, dot: str, program: str) -> str:
        paths: list[str] = []
        try:
            dot_path = self._temp_file(".dot")
            paths.append(dot_path)
            plain_path = self._temp_file(".txt")
            paths.append(plain_path)

            with open(dot_path, "w", encoding="utf-8") as fh:
                fh.write(dot)

            cmd = self.command(program, dot_path, plain_path)
            logger.debug(f"Running layout tool: {' '.join(cmd)}")
            try:
                proc = subprocess.run(
                    cmd, check=False, capture_output=True, text=True, timeout=self.timeout
                )
            except subprocess.TimeoutExpired as e:
                raise LayoutToolFailure(
                    f"{program} timed out after {self.timeout:g}s", transient=True
                ) from e
            except FileNotFoundError as e:
                raise LayoutToolFailure(f"Layout program not found: {cmd[0]}") from e
            except OSError as e:
                raise LayoutToolFailure(f"Could not run {program}: {e}", transient=True) from e

            if proc.returncode != 0:
                stderr = (proc.stderr or "").strip()
                raise LayoutToolFailure(
                    f"{program} exited with status {proc.returncode}: {stderr[:500]}"
                )

            with open(plain_path, encoding="utf-8", errors="replace") as fh:
                plain = fh.read()
            if not plain.strip():
                raise LayoutToolFailure(f"{program} produced no output")
            return plain
        finally:
            for path in paths:
                try:
                    os.unlink(path)
                except FileNotFoundError:
                    pass


class WindowsGraphvizEngine(GraphvizEngine):
    """Graphviz on Windows hosts: ``<bin_dir>\\<program>.exe``."""

    def executable(self, program: str) -> str:
        exe = f"{program}.exe"
        if self.bin_dir:
            return ntpath.join(self.bin_dir, exe)
        return exe


def select_engine(config: AppConfig = settings, platform: str = sys.platform) -> LayoutEngine:
    """Pick the Graphviz engine for this host from configuration."""
    cls = WindowsGraphvizEngine if platform.startswith("win") else GraphvizEngine
    return cls(
        bin_dir=config.GRAPHVIZ_BIN_DIR,
        timeout=config.LAYOUT_TIMEOUT_SECONDS,
        temp_dir=config.LAYOUT_TEMP_DIR or None,
    )


# ── Parsed layout ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Layout:
    """Canvas size and pixel positions keyed by node id."""
    scale: float
    width: int
    height: int
    positions: dict[int, tuple[float, float]] = field(default_factory=dict)
    edges: tuple[tuple[str, str], ...] = ()


@dataclass(frozen=True)
class ParseResult:
    layout: Optional[Layout] = None
    error: Optional[NetworkMapError] = None

    @property
    def ok(self) -> bool:
        return self.layout is not None and self.error is None

    @classmethod
    def success(cls, layout: Layout) -> "ParseResult":
        return cls(layout=layout)

    @classmethod
    def failure(cls, error: NetworkMapError) -> "ParseResult":
        return cls(error=error)


class LayoutOutputParser(ABC):
    @abstractmethod
    def parse(self, plain: str, dot: str, options: MapOptions) -> ParseResult: ...


class PlainOutputParser(LayoutOutputParser):
    """Default parser for ``-Tplain`` output."""

    def parse(self, plain: str, dot: str, options: MapOptions) -> ParseResult:
        flt = options.map_filter
        offset = flt.rank_sep * GRAPHVIZ_RADIUS_CONVERSION_FACTOR
        scale: Optional[float] = None
        width = height = 0
        positions: dict[int, tuple[float, float]] = {}
        edges: list[tuple[str, str]] = []

        for lineno, line in enumerate(plain.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                fields = shlex.split(line)
            except ValueError as e:
                return ParseResult.failure(LayoutParseFailure(f"line {lineno}: {e}"))

            kind = fields[0]
            try:
                if kind == "graph":
                    scale = float(fields[1])
                    width = min(
                        int(float(fields[2]) * 10 * GRAPHVIZ_RADIUS_CONVERSION_FACTOR),
                        options.max_width,
                    )
                    height = min(
                        int(float(fields[3]) * 10 * GRAPHVIZ_RADIUS_CONVERSION_FACTOR),
                        options.max_width,
                    )
                elif kind == "node":
                    if scale is None:
                        return ParseResult.failure(
                            LayoutParseFailure(f"line {lineno}: node before graph header")
                        )
                    node_id = int(fields[1])
                    x = float(fields[2]) * scale * flt.node_radius - offset
                    y = float(fields[3]) * scale * flt.node_radius - offset
                    positions[node_id] = (x, y)
                elif kind == "edge":
                    edges.append((fields[1], fields[2]))
                elif kind == "stop":
                    break
            except (IndexError, ValueError) as e:
                return ParseResult.failure(
                    LayoutParseFailure(f"line {lineno}: malformed {kind} record ({e})")
                )

        if scale is None:
            return ParseResult.failure(LayoutParseFailure("missing graph header"))

        return ParseResult.success(
            Layout(scale=scale, width=width, height=height, positions=positions, edges=tuple(edges))
        )


class FallbackParser(LayoutOutputParser):
    """Try ``primary``; on CustomParserFailure hand the output to ``fallback``."""

    def __init__(self, primary: LayoutOutputParser, fallback: Optional[LayoutOutputParser] = None):
        self.primary = primary
        self.fallback = fallback or PlainOutputParser()

    def parse(self, plain: str, dot: str, options: MapOptions) -> ParseResult:
        result = self.primary.parse(plain, dot, options)
        if not result.ok and isinstance(result.error, CustomParserFailure):
            logger.info(f"Custom layout parser declined ({result.error}), using default parser")
            return self.fallback.parse(plain, dot, options)
        return result


# ── Invocation ────────────────────────────────────────────────────────


def _run_parser(
    parser: LayoutOutputParser, plain: str, dot: str, options: MapOptions
) -> ParseResult:
    try:
        return parser.parse(plain, dot, options)
    except NetworkMapError as e:
        return ParseResult.failure(e)
    except Exception as e:
        logger.exception("Layout output parser raised")
        return ParseResult.failure(LayoutToolFailure(f"Layout output parser failed: {e}"))


def invoke_layout(
    dot: str,
    options: MapOptions,
    engine: LayoutEngine,
    parser: Optional[LayoutOutputParser] = None,
    max_retries: Optional[int] = None,
) -> Layout:
    """Run the layout tool and parse its output.

    Transient tool failures are retried up to ``max_retries`` times; parse
    failures never are.  Raises LayoutToolFailure (or LayoutParseFailure).
    """
    if max_retries is None:
        max_retries = settings.LAYOUT_MAX_RETRIES
    program = options.layout.program

    attempt = 0
    while True:
        try:
            plain = engine.render(dot, program)
            break
        except LayoutToolFailure as e:
            if not e.transient or attempt >= max_retries:
                logger.warning(f"Layout with {program} failed: {e}")
                raise
            attempt += 1
            logger.warning(f"Layout with {program} failed ({e}), retry {attempt}/{max_retries}")

    result = _run_parser(parser or PlainOutputParser(), plain, dot, options)
    if result.ok:
        return result.layout

    error = result.error
    if isinstance(error, LayoutToolFailure):
        raise error
    # A custom parser gave up and no fallback was configured.
    raise LayoutToolFailure(str(error)) from error
