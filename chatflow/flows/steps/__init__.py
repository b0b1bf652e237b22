"""
流程步骤模块

提供各种步骤类型的实现。
"""

from .base import (
    new_id,
    StepKind,
    StepStatus,
    Position,
    Choice,
    ConditionBranch,
    StepResult,
    FlowStep,
    StepFactory,
)

from .message import MessageStep, ImageStep, EndStep
from .question import OpenQuestionStep, ChoiceQuestionStep
from .condition import ConditionStep
from .variable import SetVariableStep, MathOpStep

StepFactory.ensure_complete()

__all__ = [
    # Base
    "new_id",
    "StepKind",
    "StepStatus",
    "Position",
    "Choice",
    "ConditionBranch",
    "StepResult",
    "FlowStep",
    "StepFactory",
    # Implementations
    "MessageStep",
    "ImageStep",
    "EndStep",
    "OpenQuestionStep",
    "ChoiceQuestionStep",
    "ConditionStep",
    "SetVariableStep",
    "MathOpStep",
]
