# -*- coding: utf-8 -*-
"""
模型错误定义

所有在变更边界被拒绝的操作都抛出 ModelError
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class ModelError(Exception):
    """
    模型错误

    Attributes:
        code: 错误码，如 PROTECTED_LINE / CYCLE_DETECTED
        message: 可读消息
        details: 附加信息
    """
    code: str
    message: str
    details: Optional[Dict[str, Any]] = None

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "error": True,
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            payload["details"] = self.details
        return payload
