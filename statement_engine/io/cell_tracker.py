# -*- coding: utf-8 -*-
"""
名称位置追踪器

记录定义名称绑定到的工作表单元格，供公式构建和导出时查询
"""

from typing import Dict, Optional, Tuple

from openpyxl.utils import absolute_coordinate, get_column_letter, quote_sheetname


class CellTracker:
    """
    名称位置追踪器

    记录名称 → (工作表, 行, 列) 的映射

    使用方法:
        tracker = CellTracker()

        tracker.set("IS_rev_B", "Income Statement", row=3, col=2)
        tracker.qualified("IS_rev_B")               # "'Income Statement'!$B$3"
    """

    def __init__(self):
        self.cell_map: Dict[str, Tuple[str, int, int]] = {}

    def set(self, name: str, sheet: str, row: int, col: int) -> None:
        """
        记录名称的单元格位置

        Args:
            name: 定义名称
            sheet: 工作表名
            row: 行号 (1-based)
            col: 列号 (1-based)
        """
        self.cell_map[name] = (sheet, row, col)

    def qualified(self, name: str) -> Optional[str]:
        """定义名称的目标文本，如 'Balance Sheet'!$C$5"""
        position = self.cell_map.get(name)
        if position is None:
            return None
        sheet, row, col = position
        return f"{quote_sheetname(sheet)}!{absolute_coordinate(f'{get_column_letter(col)}{row}')}"

    def has(self, name: str) -> bool:
        """检查名称是否已绑定"""
        return name in self.cell_map

    def clear(self):
        """清空所有记录"""
        self.cell_map.clear()

    def __contains__(self, name: str) -> bool:
        return name in self.cell_map

    def __len__(self) -> int:
        return len(self.cell_map)

    def __repr__(self):
        return f"CellTracker({len(self.cell_map)} names)"
