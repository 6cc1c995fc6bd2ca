"""Build planning and driving: task factory, multi-release packager, builder."""

from .builder import Builder, BuildSummary
from .factory import BuildTaskFactory
from .multi_release import ArchiveLayer, ArchiveLayout, MultiReleasePackager

__all__ = [
    "ArchiveLayer",
    "ArchiveLayout",
    "BuildSummary",
    "BuildTaskFactory",
    "Builder",
    "MultiReleasePackager",
]
