# -*- coding: utf-8 -*-
"""
引擎配置

默认配置 + 可选 JSON 覆盖文件
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .errors import ModelError


DEFAULT_ENGINE_CONFIG = {
    # 重算收敛容差与迭代上限
    "tolerance": 0.01,
    "max_iterations": 10,
    # 资产负债表平衡容差
    "balance_tolerance": 0.01,
    # 期间后缀（期间不在 meta 列表中时使用）
    "historical_suffix": "A",
    "projection_suffix": "E",
    "name_prefixes": {
        "IS": "IS",
        "BS": "BS",
        "CFS": "CFS",
        "historical": "HIST",
        "check": "CHECK",
    },
    "sheet_names": {
        "IS": "Income Statement",
        "BS": "Balance Sheet",
        "CFS": "Cash Flow",
        "historical": "Historicals",
        "schedule": "Schedules",
    },
    "first_period_column": 2,
}

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[1] / "data" / "engine_config.json"


def default_config() -> Dict[str, Any]:
    """默认配置的副本（嵌套字典也复制），模型和 Sink 各自持有"""
    return {
        key: dict(value) if isinstance(value, dict) else value
        for key, value in DEFAULT_ENGINE_CONFIG.items()
    }


def load_engine_config(path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    加载引擎配置

    Args:
        path: JSON 配置文件路径，默认 data/engine_config.json

    Returns:
        合并后的配置（嵌套字典按键合并）
    """
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH
    merged = default_config()
    if not config_path.exists():
        if path:
            raise ModelError("CONFIG_INVALID", f"配置文件不存在: {config_path}")
        return merged
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ModelError("CONFIG_INVALID", f"引擎配置JSON错误: {exc}") from exc
    if not isinstance(data, dict):
        raise ModelError("CONFIG_INVALID", "引擎配置必须为对象")

    for key, value in data.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key].update(value)
        else:
            merged[key] = value
    return merged
