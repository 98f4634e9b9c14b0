"""
Prompt templates for the budget recommendation model.

The model's reply is parsed with nothing more than string cleaning, so these
prompts spell out the exact JSON shape expected back. Every builder is pure:
identical inputs always produce identical prompt text.
"""

from __future__ import annotations

import re
from typing import Sequence

from .budget_model import BudgetInput, ExpenseItem, GoalItem

_UNSAFE_PROMPT_CHARS = re.compile(r"[^\w\s\-.,()$%]")

ANALYSIS_PROMPT_TEMPLATE = """You are an AI financial advisor. Analyze the budget data and respond with ONLY a valid JSON object.

FINANCIAL DATA:
- Monthly Income: ${income:,.2f}
- Fixed Expenses: ${fixed_total:,.2f} ({fixed_ratio:.1f}% of income)
- Available for Allocation: ${remaining:,.2f}

FIXED EXPENSES:
{expense_section}

FINANCIAL GOALS:
{goal_section}

CRITICAL INSTRUCTIONS:
1. Respond with ONLY a JSON object - no explanatory text before or after
2. Do not include markdown formatting or code blocks
3. Ensure all numbers are valid (no NaN, null, or undefined)
4. Budget allocations in "budgetPlan" must total exactly ${remaining:.2f}
5. Use exactly the field names shown below: "budgetPlan", "insights", "warnings", "summary", and for each plan entry "category", "amount", "percent", "reasoning"
6. "percent" is the entry amount as a percentage of monthly income

Required JSON format:
{{
  "budgetPlan": [
    {{
      "category": "Savings",
      "amount": 600.00,
      "percent": 20.0,
      "reasoning": "Emergency fund and long-term goals"
    }}
  ],
  "insights": [
    "Your fixed expenses are {fixed_ratio:.1f}% of income, which is {ratio_assessment} recommended limits"
  ],
  "warnings": [
    "{warning_example}"
  ],
  "summary": "Overall budget assessment in 1-2 sentences"
}}"""

QUICK_TIPS_PROMPT_TEMPLATE = """As a financial advisor, provide 3-5 quick, actionable tips for someone with:
- Income: ${income:,.2f}
- Fixed expenses: ${fixed_total:,.2f}

Focus on practical advice they can implement immediately. Respond with ONLY a JSON array of strings, no other text:
["Tip 1", "Tip 2", "Tip 3"]"""

GOAL_REVIEW_PROMPT_TEMPLATE = """Evaluate these financial goals for someone earning ${income:,.2f}/month:

Goals:
{goal_section}

Total goal percentage: {total_percent:g}%

Assess if these goals are:
1. Mathematically possible
2. Realistic based on typical budget guidelines
3. Balanced across different life areas

Respond with ONLY a JSON object, no other text:
{{
  "feasible": true,
  "issues": ["Issue 1", "Issue 2"],
  "recommendations": ["Recommendation 1", "Recommendation 2"]
}}"""


def sanitize_prompt_input(text: str) -> str:
    """Drop characters that could break prompt structure from a user-entered label."""
    return _UNSAFE_PROMPT_CHARS.sub("", text).strip()


def _format_expense_section(expenses: Sequence[ExpenseItem]) -> str:
    if not expenses:
        return "- None listed"
    return "\n".join(f"- {sanitize_prompt_input(item.category)}: ${item.amount:,.2f}" for item in expenses)


def _format_goal_section(goals: Sequence[GoalItem]) -> str:
    if not goals:
        return "- None listed"
    return "\n".join(f"- {sanitize_prompt_input(goal.category)}: {goal.target_percent:g}% of income" for goal in goals)


def build_analysis_prompt(budget_input: BudgetInput, fixed_total: float, remaining: float) -> str:
    """
    Render the main budget analysis prompt.

    Args:
        budget_input: Submission whose expenses and goals are itemized in the prompt.
        fixed_total: Sum of fixed expenses, as computed by the caller.
        remaining: Income left after fixed expenses; the plan must add up to this.
    """
    fixed_ratio = fixed_total / budget_input.income * 100 if budget_input.income else 0.0
    return ANALYSIS_PROMPT_TEMPLATE.format(
        income=budget_input.income,
        fixed_total=fixed_total,
        fixed_ratio=fixed_ratio,
        remaining=remaining,
        expense_section=_format_expense_section(budget_input.fixed_expenses),
        goal_section=_format_goal_section(budget_input.goals),
        ratio_assessment="above" if fixed_ratio > 50 else "within",
        warning_example=(
            "Your fixed expenses exceed your income" if remaining < 0 else "No major warnings detected"
        ),
    )


def build_quick_tips_prompt(budget_input: BudgetInput) -> str:
    return QUICK_TIPS_PROMPT_TEMPLATE.format(
        income=budget_input.income,
        fixed_total=budget_input.total_fixed_expenses,
    )


def build_goal_review_prompt(income: float, goals: Sequence[GoalItem]) -> str:
    return GOAL_REVIEW_PROMPT_TEMPLATE.format(
        income=income,
        goal_section=_format_goal_section(goals),
        total_percent=sum(goal.target_percent for goal in goals),
    )
