"""Transition Engine - The brain of the system"""
from .engine import TransitionEngine
from .authorization_guard import AuthorizationGuard
from .transition_resolver import TransitionResolver
from .condition_evaluator import ConditionEvaluator
from .audit_writer import AuditWriter

__all__ = [
    "TransitionEngine",
    "AuthorizationGuard",
    "TransitionResolver",
    "ConditionEvaluator",
    "AuditWriter",
]
