"""Project model: realms, module units, declarations and library settings."""

from .declaration import parse_declaration, read_declaration
from .models import (
    Coordinate,
    Library,
    ModuleDeclaration,
    ModuleUnit,
    Project,
    Provision,
    Realm,
    Requirement,
    Source,
)
from .validation import validate_project
from .workspace import Workspace

__all__ = [
    "Coordinate",
    "Library",
    "ModuleDeclaration",
    "ModuleUnit",
    "Project",
    "Provision",
    "Realm",
    "Requirement",
    "Source",
    "Workspace",
    "parse_declaration",
    "read_declaration",
    "validate_project",
]
