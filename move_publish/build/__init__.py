"""Move build invocation and output normalization."""

from .artifacts import BuildArtifacts, read_build_artifacts
from .builder import build_move_package, resolve_build_output
from .output import BuildOutput, parse_build_json, parse_json_payload

__all__ = [
    "BuildArtifacts",
    "BuildOutput",
    "build_move_package",
    "parse_build_json",
    "parse_json_payload",
    "read_build_artifacts",
    "resolve_build_output",
]
