# -*- coding: utf-8 -*-
"""
分类与现金流处理推断
"""

from .classifier import (
    assign_categories, assign_sections, category_of, section_of, section_members,
    rows_for_category, insertion_index_for_category, sign_indicator,
)
from .catalogue import find_term_knowledge, find_cfi_item, find_cff_item, normalize_label
from .treatment import (
    TreatmentResult, TreatmentRule, DEFAULT_RULES, infer_treatment, validate_item,
    ItemValidation, CfoSuggestion, analyze_bs_items_for_cfo,
)

__all__ = [
    "assign_categories", "assign_sections", "category_of", "section_of", "section_members",
    "rows_for_category", "insertion_index_for_category", "sign_indicator",
    "find_term_knowledge", "find_cfi_item", "find_cff_item", "normalize_label",
    "TreatmentResult", "TreatmentRule", "DEFAULT_RULES", "infer_treatment", "validate_item",
    "ItemValidation", "CfoSuggestion", "analyze_bs_items_for_cfo",
]
