"""Resolvers for transitions, metadata, variables and paths."""

from src.generator.resolvers.metadata_extractor import StateMetadata, extract_metadata
from src.generator.resolvers.path_resolver import PathResolver
from src.generator.resolvers.transition_resolver import (
    ExplicitTransition,
    ResolvedTransitions,
    TransitionResolver,
)
from src.generator.resolvers.variable_resolver import (
    ScopeChain,
    build_scope_chain,
    resolve_reference,
    resolve_value,
)

__all__ = [
    "ExplicitTransition",
    "PathResolver",
    "ResolvedTransitions",
    "ScopeChain",
    "StateMetadata",
    "TransitionResolver",
    "build_scope_chain",
    "extract_metadata",
    "resolve_reference",
    "resolve_value",
]
