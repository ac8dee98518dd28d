"""structgraph: static structural code graphs for Python projects."""

from structgraph.build import BuildState, CancelToken, ProjectBuilder, build_graph
from structgraph.config import BuildConfig
from structgraph.errors import (
    BuildCancelled,
    InvalidConfigError,
    ProjectRootNotFoundError,
    StructGraphError,
)
from structgraph.graph.model import BuildReport, CodeGraph

__version__ = "0.1.0"

__all__ = [
    "BuildCancelled",
    "BuildConfig",
    "BuildReport",
    "BuildState",
    "CancelToken",
    "CodeGraph",
    "InvalidConfigError",
    "ProjectBuilder",
    "ProjectRootNotFoundError",
    "StructGraphError",
    "__version__",
    "build_graph",
]
