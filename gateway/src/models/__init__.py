from gateway.src.models.run import PipelineRunResponse, StepResponse

__all__ = [
    "PipelineRunResponse",
    "StepResponse",
]
