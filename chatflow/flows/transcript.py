"""
对话记录模块

单次运行产生的有序、只追加的消息列表，顺序即渲染顺序。
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

from .errors import FlowErrorCode


class TranscriptRole(str, Enum):
    """消息角色"""
    BOT = "bot"
    USER = "user"
    IMAGE = "image"


@dataclass
class TranscriptEntry:
    """
    对话记录条目

    Attributes:
        id: 条目 ID（运行内按顺序编号）
        role: 角色
        text: 消息文本；图片条目为图片 URL 或内联数据
        step_id: 产生该条目的步骤
        error_code: 错误条目的错误代码
    """
    id: str
    role: TranscriptRole
    text: str
    step_id: Optional[str] = None
    error_code: Optional[FlowErrorCode] = None

    @property
    def is_error(self) -> bool:
        return self.error_code is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role.value,
            "text": self.text,
            "step_id": self.step_id,
            "error_code": self.error_code.value if self.error_code else None,
        }


class Transcript:
    """对话记录"""

    def __init__(self, id_prefix: str = "msg"):
        self._entries: List[TranscriptEntry] = []
        self._id_prefix = id_prefix

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[TranscriptEntry]:
        return iter(self._entries)

    def __getitem__(self, index: int) -> TranscriptEntry:
        return self._entries[index]

    @property
    def entries(self) -> List[TranscriptEntry]:
        return list(self._entries)

    def append(
        self,
        role: TranscriptRole,
        text: str,
        step_id: str = None,
        error_code: FlowErrorCode = None,
    ) -> TranscriptEntry:
        """追加条目"""
        entry = TranscriptEntry(
            id=f"{self._id_prefix}_{len(self._entries) + 1}",
            role=role,
            text=text,
            step_id=step_id,
            error_code=error_code,
        )
        self._entries.append(entry)
        return entry

    def since(self, index: int) -> List[TranscriptEntry]:
        """获取指定位置之后追加的条目"""
        return self._entries[index:]

    def errors(self) -> List[TranscriptEntry]:
        """获取所有错误条目"""
        return [e for e in self._entries if e.is_error]

    def to_list(self) -> List[Dict[str, Any]]:
        return [e.to_dict() for e in self._entries]


__all__ = [
    "TranscriptRole",
    "TranscriptEntry",
    "Transcript",
]
