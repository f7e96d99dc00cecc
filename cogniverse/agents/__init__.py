"""Agents: the shared message protocol plus role-specific handlers."""

from .agent import Agent, MessageSink, RoleHandler
from .handlers import (
    KnowledgeHandler,
    KnowledgeStoreError,
    MissingMetadataError,
    OptimizationHandler,
    PlanningHandler,
    ReasoningHandler,
    TranslationHandler,
)
from .roles import ROLE_CAPABILITIES, ROLE_NAMES, build_agent, build_handler

__all__ = [
    "Agent",
    "MessageSink",
    "RoleHandler",
    "KnowledgeHandler",
    "KnowledgeStoreError",
    "MissingMetadataError",
    "OptimizationHandler",
    "PlanningHandler",
    "ReasoningHandler",
    "TranslationHandler",
    "ROLE_CAPABILITIES",
    "ROLE_NAMES",
    "build_agent",
    "build_handler",
]
