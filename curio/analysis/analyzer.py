"""Main consensus analysis orchestrator."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from curio.analysis.consensus import merge_results
from curio.analysis.models import (
    AnalysisRecord,
    ConsensusConfig,
    ConsensusOutcome,
    MergeStrategy,
    ProgressEvent,
)
from curio.analysis.synthesis import ReasoningCall, reasoning_synthesis
from curio.analysis.triggers import evaluate_consensus_triggers, resolve_consensus_config
from curio.exceptions import AnalysisFailedError, ConsensusConfigError
from curio.llm.models import CapturedImage, normalize_images

logger = logging.getLogger(__name__)

AnalysisCall = Callable[[List[CapturedImage], Optional[float]], Awaitable[AnalysisRecord]]
EventEmitter = Callable[[ProgressEvent], None]

ImageInput = Union[str, List[Union[str, CapturedImage]]]


class ConsensusAnalyzer:
    """Runs analysis, decides whether to re-run, and reconciles the runs."""

    def __init__(
        self,
        analysis_call: Optional[AnalysisCall] = None,
        reasoning_call: Optional[ReasoningCall] = None,
        llm_manager=None,
    ):
        """Initialize analyzer.

        Either pass the two external calls directly, or an LLMManager that
        provides them. With neither, a default LLMManager is created.

        Args:
            analysis_call: Async ``(images, asking_price) -> AnalysisRecord``
            reasoning_call: Async ``(prompt, image, model) -> str``
            llm_manager: Provider manager supplying default calls
        """
        if analysis_call is None or reasoning_call is None:
            if llm_manager is None:
                from curio.llm.manager import LLMManager

                llm_manager = LLMManager()
            analysis_call = analysis_call or llm_manager.analyze_item
            reasoning_call = reasoning_call or llm_manager.reason

        self.analysis_call = analysis_call
        self.reasoning_call = reasoning_call

    @staticmethod
    def _emit(emit_event: Optional[EventEmitter], **event: Any) -> None:
        """Send a progress event; sink failures never affect the analysis."""
        if emit_event is None:
            return
        try:
            emit_event(ProgressEvent(**event))
        except Exception as e:
            logger.warning("Progress event sink failed: %s", e)

    async def analyze_with_consensus(
        self,
        images: ImageInput,
        asking_price: Optional[float] = None,
        config: Optional[Union[ConsensusConfig, Dict[str, Any]]] = None,
        force_multi_run: bool = False,
        emit_event: Optional[EventEmitter] = None,
    ) -> ConsensusOutcome:
        """Perform consensus analysis with conditional multi-run.

        Algorithm:
        1. Run the first analysis
        2. Evaluate re-run triggers; return early if none fire (unless forced)
        3. Run the remaining analyses sequentially, skipping failures
        4. Synthesize with the reasoning model or merge algorithmically
        5. Report agreement scores from the merge in either case

        Args:
            images: Primary image data URL, or list of captured images
            asking_price: Seller's asking price, if known
            config: ConsensusConfig or dict of overrides on the defaults
            force_multi_run: Run the suggested count even when no trigger fires
            emit_event: Optional progress callback

        Returns:
            ConsensusOutcome with the final record, all successful runs and
            the agreement report

        Raises:
            ConsensusConfigError: If the configuration is invalid
            AnalysisFailedError: If the first analysis run fails
        """
        config = resolve_consensus_config(config)
        if config.max_runs < 1:
            raise ConsensusConfigError(f"max_runs must be at least 1, got {config.max_runs}")

        images = normalize_images(images)
        if not images:
            raise ValueError("At least one image is required")

        self._emit(
            emit_event, type="stage:start", stage="consensus",
            message="Initial analysis...", progress=10,
        )
        try:
            first_result = await self.analysis_call(images, asking_price)
        except Exception as e:
            logger.error("Initial analysis failed: %s", e)
            self._emit(
                emit_event, type="error", stage="consensus",
                message="Initial analysis failed", progress=100,
            )
            raise AnalysisFailedError(f"Initial analysis failed: {e}") from e

        evaluation = evaluate_consensus_triggers(first_result, config)

        if not evaluation.should_rerun and not force_multi_run:
            logger.info(
                "First run meets confidence criteria - no consensus needed "
                "(confidence %.0f%%, value $%.0f - $%.0f)",
                first_result.confidence * 100,
                first_result.value_min,
                first_result.value_max,
            )
            return merge_results([first_result])

        total_runs = evaluation.suggested_runs
        if force_multi_run and total_runs < 2:
            total_runs = min(2, config.max_runs)

        logger.info("Triggering consensus analysis: %d total runs", total_runs)
        for reason in evaluation.reasons:
            logger.info("  -> %s", reason)
        # A forced extra run counts like a triggered one for the reasoning rule
        use_reasoning = config.use_reasoning_model and (evaluation.use_reasoning or total_runs > 1)
        if use_reasoning:
            logger.info("  -> Will use reasoning model (%s) for synthesis", config.reasoning_model)

        all_runs: List[AnalysisRecord] = [first_result]

        for run in range(2, total_runs + 1):
            logger.info("Running analysis %d/%d", run, total_runs)
            self._emit(
                emit_event, type="stage:start", stage="consensus",
                message=f"Consensus run {run}/{total_runs}...",
                progress=min(80, 10 + run * 25),
            )
            try:
                all_runs.append(await self.analysis_call(images, asking_price))
            except Exception as e:
                logger.warning("Run %d failed: %s", run, e)

        self._emit(
            emit_event, type="stage:start", stage="synthesis",
            message="Synthesizing results...", progress=85,
        )

        merged = merge_results(all_runs)
        final_result = merged.final_result
        strategy = merged.agreement.merge_strategy

        if use_reasoning and len(all_runs) > 1:
            synthesis = await reasoning_synthesis(
                all_runs, images, config, self.reasoning_call
            )
            final_result = synthesis.final_result
            if synthesis.synthesized:
                strategy = MergeStrategy.REASONING_MODEL_SYNTHESIS

        agreement = merged.agreement.model_copy(update={"merge_strategy": strategy})

        logger.info(
            "Consensus complete: runs=%d name_agreement=%.0f%% value_agreement=%.0f%% strategy=%s",
            len(all_runs),
            agreement.name_agreement * 100,
            agreement.value_agreement * 100,
            agreement.merge_strategy.value,
        )

        self._emit(
            emit_event, type="stage:complete", stage="consensus",
            message=f"Consensus from {len(all_runs)} analyses", progress=100,
        )

        return ConsensusOutcome(
            final_result=final_result,
            all_runs=all_runs,
            agreement=agreement,
        )

    def analyze(
        self,
        images: ImageInput,
        asking_price: Optional[float] = None,
        config: Optional[Union[ConsensusConfig, Dict[str, Any]]] = None,
        force_multi_run: bool = False,
        emit_event: Optional[EventEmitter] = None,
    ) -> ConsensusOutcome:
        """Synchronous wrapper around analyze_with_consensus."""
        return asyncio.run(
            self.analyze_with_consensus(
                images,
                asking_price=asking_price,
                config=config,
                force_multi_run=force_multi_run,
                emit_event=emit_event,
            )
        )
