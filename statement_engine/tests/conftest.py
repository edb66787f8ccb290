# -*- coding: utf-8 -*-
"""
测试数据

样例模型（单位：百万）:
    期间: 2023A, 2024A（历史） / 2025E（预测）
    利润表: 收入 1000, 成本 400, SG&A 300, D&A 50, 所得税 60 -> 净利润 190
    资产负债表: 历史期资产 1500 = 负债 800 + 权益 700
                 2025E 应收 250, 应付 180, 留存收益 420 -> 资产 1550 = 负债 830 + 权益 720
    现金流量表: 资本开支 -80, 分红 -20；历史期营运资本变动录入 0
"""

import pytest

from statement_engine.core.templates import create_model
from statement_engine.engine.editor import ModelEditor
from statement_engine.engine.evaluator import recompute_model

HISTORICAL = ["2023A", "2024A"]
PROJECTED = ["2025E"]
PERIODS = HISTORICAL + PROJECTED

INCOME = {
    "rev": 1000, "cogs": 400, "sga": 300, "rd": 0, "other_opex": 0, "danda": 50,
    "interest_expense": 0, "interest_income": 0, "other_income": 0, "tax": 60,
}

BALANCE = {
    "cash": 100, "ar": 200, "inventory": 150, "other_ca": 50,
    "ppe": 800, "intangible_assets": 100, "other_assets": 100,
    "ap": 150, "st_debt": 100, "other_cl": 50,
    "lt_debt": 400, "other_liab": 100,
    "preferred_stock": 0, "common_stock": 200, "apic": 100, "treasury_stock": 0, "aoci": 0,
    "retained_earnings": 400,
}

BALANCE_2025E = {"ar": 250, "ap": 180, "retained_earnings": 420}

CASH_FLOW = {
    "other_operating": 0, "capex": -80, "other_investing": 0,
    "debt_issuance": 0, "debt_repayment": 0, "equity_issuance": 0, "dividends": -20,
}


def build_sample_model():
    """构建并重算样例模型"""
    model = create_model("Acme", HISTORICAL, PROJECTED)
    for period in PERIODS:
        for line_id, value in INCOME.items():
            model.income_statement.find(line_id).values[period] = float(value)
        for line_id, value in BALANCE.items():
            value = BALANCE_2025E.get(line_id, value) if period == "2025E" else value
            model.balance_sheet.find(line_id).values[period] = float(value)
        for line_id, value in CASH_FLOW.items():
            model.cash_flow.find(line_id).values[period] = float(value)
    for period in HISTORICAL:
        model.cash_flow.find("wc_change").values[period] = 0.0
    recompute_model(model)
    return model


@pytest.fixture
def sample_model():
    return build_sample_model()


@pytest.fixture
def editor(sample_model):
    return ModelEditor(sample_model)


def value(model, statement, line_id, period):
    """读取行的当前值"""
    return model.statement(statement).find(line_id).value(period)
