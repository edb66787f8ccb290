# -*- coding: utf-8 -*-
"""
核心数据结构

- line: Line / Statement 及枚举
- model: Model / ModelMeta
- projection: 收入预测配置
- well_known: 保留 ID
- templates: 标准报表模板
"""

from .line import (
    CfsLink, IsLink, Line, LineKind, Statement, StatementKind, ValueType,
    Section, Category, Impact,
)
from .model import Model, ModelMeta
from .projection import ProductLineItem, Projection, ProjectionMethod
from .templates import create_model, build_statement

__all__ = [
    "CfsLink", "IsLink", "Line", "LineKind", "Statement", "StatementKind",
    "ValueType", "Section", "Category", "Impact",
    "Model", "ModelMeta", "ProductLineItem", "Projection", "ProjectionMethod",
    "create_model", "build_statement",
]
