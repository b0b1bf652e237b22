"""
消息类步骤实现

文本消息、图片和结束步骤。
"""

from typing import TYPE_CHECKING, Any, Dict, Optional

from ..errors import FlowErrorCode
from .base import FlowStep, StepFactory, StepKind, StepResult, StepStatus

if TYPE_CHECKING:
    from ..context import RunContext


@StepFactory.register(StepKind.MESSAGE)
class MessageStep(FlowStep):
    """
    消息步骤

    插值后输出一条机器人消息，然后沿单一出口继续。
    """

    @classmethod
    def get_step_kind(cls) -> StepKind:
        return StepKind.MESSAGE

    def execute(self, run: "RunContext") -> StepResult:
        text = run.interpolate(self.content)
        run.say(text, step_id=self.id)
        return self._advance(text=text)


@StepFactory.register(StepKind.IMAGE)
class ImageStep(FlowStep):
    """
    图片步骤

    图片来源为远程 URL 或内联数据，二者互斥。

    Attributes:
        image_url: 图片 URL
        image_data: 内联图片数据（如 data:image/png;base64,...）
    """

    editable_fields = FlowStep.editable_fields + ("image_url", "image_data")

    def __init__(
        self,
        step_id: str = None,
        content: str = "",
        position=None,
        default_next: str = None,
        image_url: str = None,
        image_data: str = None,
    ):
        super().__init__(
            step_id=step_id,
            content=content,
            position=position,
            default_next=default_next,
        )
        self._image_url: Optional[str] = None
        self._image_data: Optional[str] = None
        if image_url:
            self.image_url = image_url
        elif image_data:
            self.image_data = image_data

    @classmethod
    def get_step_kind(cls) -> StepKind:
        return StepKind.IMAGE

    @property
    def image_url(self) -> Optional[str]:
        return self._image_url

    @image_url.setter
    def image_url(self, value: Optional[str]) -> None:
        self._image_url = value or None
        if self._image_url:
            self._image_data = None

    @property
    def image_data(self) -> Optional[str]:
        return self._image_data

    @image_data.setter
    def image_data(self, value: Optional[str]) -> None:
        self._image_data = value or None
        if self._image_data:
            self._image_url = None

    @property
    def image_source(self) -> Optional[str]:
        """当前图片来源"""
        return self._image_url or self._image_data

    def execute(self, run: "RunContext") -> StepResult:
        source = self.image_source
        if source:
            run.show_image(source, step_id=self.id)
        else:
            run.report_error(
                FlowErrorCode.MISSING_IMAGE,
                "图片步骤未设置图片",
                step_id=self.id,
            )
        return self._advance(has_image=bool(source))

    def _fields_to_dict(self) -> Dict[str, Any]:
        return {
            "image_url": self.image_url,
            "image_data": self.image_data,
        }

    @classmethod
    def _fields_from_dict(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "image_url": data.get("image_url"),
            "image_data": data.get("image_data"),
        }


@StepFactory.register(StepKind.END)
class EndStep(FlowStep):
    """
    结束步骤

    没有任何出口。内容非空时先输出最后一条消息，然后正常结束运行。
    """

    has_default_next = False

    @classmethod
    def get_step_kind(cls) -> StepKind:
        return StepKind.END

    def execute(self, run: "RunContext") -> StepResult:
        if self.content:
            run.say(run.interpolate(self.content), step_id=self.id)
        return self._result(StepStatus.COMPLETED)


__all__ = [
    "MessageStep",
    "ImageStep",
    "EndStep",
]
