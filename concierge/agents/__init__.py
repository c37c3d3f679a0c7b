from concierge.agents.claim_pipeline import ClaimPipeline, PipelineRun, PipelineStep, StepStatus
from concierge.agents.orchestrator import JourneyOrchestrator
from concierge.agents.scheduling_agent import SchedulingAgent
from concierge.agents.side_effects import SideEffectExecutor

__all__ = [
    "JourneyOrchestrator", "ClaimPipeline", "PipelineRun", "PipelineStep", "StepStatus",
    "SchedulingAgent", "SideEffectExecutor",
]
