from domain.steps.base import Step

__all__ = [
    "Step",
]
