"""Resolution of missing external modules."""

from .maven import Lookup, repository_uri
from .properties import parse_properties, read_properties
from .repository import RemoteRepository, Repository
from .resolver import FetchPlan, Resolver, ResolverState
from .survey import MissingModuleSet, ModuleSurvey

__all__ = [
    "FetchPlan",
    "Lookup",
    "MissingModuleSet",
    "ModuleSurvey",
    "RemoteRepository",
    "Repository",
    "Resolver",
    "ResolverState",
    "parse_properties",
    "read_properties",
    "repository_uri",
]
