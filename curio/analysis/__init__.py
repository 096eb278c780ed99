"""Consensus analysis: triggers, merging, reasoning synthesis and orchestration."""

from curio.analysis.analyzer import ConsensusAnalyzer
from curio.analysis.consensus import merge_results
from curio.analysis.models import (
    DEFAULT_CONSENSUS_CONFIG,
    AgreementReport,
    AnalysisRecord,
    Annotation,
    AuthenticityRisk,
    ConsensusConfig,
    ConsensusOutcome,
    DomainCategory,
    MergeStrategy,
    ProgressEvent,
    TriggerEvaluation,
)
from curio.analysis.synthesis import SynthesisResult, reasoning_synthesis
from curio.analysis.triggers import evaluate_consensus_triggers, resolve_consensus_config

__all__ = [
    "DEFAULT_CONSENSUS_CONFIG",
    "AgreementReport",
    "AnalysisRecord",
    "Annotation",
    "AuthenticityRisk",
    "ConsensusAnalyzer",
    "ConsensusConfig",
    "ConsensusOutcome",
    "DomainCategory",
    "MergeStrategy",
    "ProgressEvent",
    "SynthesisResult",
    "TriggerEvaluation",
    "evaluate_consensus_triggers",
    "merge_results",
    "reasoning_synthesis",
    "resolve_consensus_config",
]
