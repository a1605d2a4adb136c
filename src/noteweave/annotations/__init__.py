"""Annotation markers and their reconciliation with stored records."""

from noteweave.annotations.markers import (
    AgentGrammar,
    ClozeGrammar,
    Cursor,
    LinkReference,
    Marker,
    TaskGrammar,
    parse_agent_config,
    scan_links,
)
from noteweave.annotations.reconciler import (
    AgentReconciler,
    AnnotationReconciler,
    ClozeReconciler,
    ReconcileResult,
    TaskReconciler,
)

__all__ = [
    "AgentGrammar",
    "AgentReconciler",
    "AnnotationReconciler",
    "ClozeGrammar",
    "ClozeReconciler",
    "Cursor",
    "LinkReference",
    "Marker",
    "ReconcileResult",
    "TaskGrammar",
    "TaskReconciler",
    "parse_agent_config",
    "scan_links",
]
