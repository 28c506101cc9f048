"""
calculations.py
---------------
Derived figures shared by every endpoint: budget progress, goal progress
and milestones, and ledger totals.

All functions work on already-fetched records (model instances or any
object exposing the same attributes) and never touch the database.
Only ``check_milestones`` and ``add_amount`` mutate their argument; the
caller is responsible for committing.
"""

import calendar
import math
from datetime import datetime, timedelta

from errors import InvalidAmount, PreconditionFailed

DAY_SECONDS = 24 * 60 * 60

BUDGET_PERIODS = ('weekly', 'monthly', 'yearly')
DEFAULT_MILESTONES = (25, 50, 75, 100)

GOAL_STATUSES = ('active', 'paused', 'completed', 'cancelled')
# Explicit (user driven) status changes. completed/cancelled are terminal.
GOAL_TRANSITIONS = {
    'active': {'paused', 'completed', 'cancelled'},
    'paused': {'active', 'cancelled'},
    'completed': set(),
    'cancelled': set(),
}


def _now(now):
    return now if now is not None else datetime.utcnow()


# ==========================================
# BUDGETS
# ==========================================

def add_months(start, months):
    """Same day ``months`` calendar months later, clamped to the month's last day."""
    index = start.month - 1 + months
    year = start.year + index // 12
    month = index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)


def period_end_date(start, period):
    """End of a budget window that opens at ``start``."""
    if period == 'weekly':
        return start + timedelta(days=7)
    if period == 'monthly':
        return add_months(start, 1)
    if period == 'yearly':
        return add_months(start, 12)
    raise PreconditionFailed(f"Unknown budget period '{period}'")


def budget_covers(budget, transaction):
    """True when ``transaction`` counts against ``budget``."""
    return (
        transaction.type == 'expense'
        and transaction.category_id == budget.category_id
        and budget.start_date <= transaction.date <= budget.end_date
    )


def budget_progress(budget, expenses):
    """
    Spending progress of a budget.

    Args:
        budget: Record with an ``amount`` limit (always > 0).
        expenses: The expense transactions matching the budget window.

    Returns:
        dict with spent, budget, remaining, percentage and isOverBudget.
    """
    spent = 0
    for t in expenses or ():
        spent += abs(t.amount)

    percentage = spent / budget.amount * 100
    return {
        'spent': spent,
        'budget': budget.amount,
        'remaining': budget.amount - spent,
        'percentage': min(percentage, 100),
        'isOverBudget': spent > budget.amount,
    }


def budget_alert_triggered(progress, alert_threshold):
    return progress['percentage'] >= alert_threshold


# ==========================================
# GOALS
# ==========================================

def default_milestones():
    return [
        {'percentage': p, 'description': f'{p}% of the goal reached'}
        for p in DEFAULT_MILESTONES
    ]


def goal_progress(goal, now=None):
    """
    Progress of a savings goal at ``now`` (defaults to the current UTC time).

    ``daysRemaining`` is floored at zero; the raw value decides ``isOverdue``.
    """
    percentage = goal.current_amount / goal.target_amount * 100
    days_remaining = math.ceil((goal.target_date - _now(now)).total_seconds() / DAY_SECONDS)
    is_completed = goal.current_amount >= goal.target_amount

    return {
        'percentage': min(percentage, 100),
        'remaining': goal.target_amount - goal.current_amount,
        'daysRemaining': max(days_remaining, 0),
        'isCompleted': is_completed,
        'isOverdue': days_remaining < 0 and not is_completed,
    }


def check_milestones(goal, now=None):
    """
    Mark every milestone whose threshold has been reached.

    Achieved milestones are never touched again.

    Returns:
        The milestones achieved by this call.
    """
    now = _now(now)
    percentage = goal_progress(goal, now)['percentage']
    newly_achieved = []
    for milestone in goal.milestones or ():
        if not milestone.achieved and percentage >= milestone.percentage:
            milestone.achieved = True
            milestone.achieved_at = now
            newly_achieved.append(milestone)
    return newly_achieved


def add_amount(goal, amount, now=None):
    """
    Contribute ``amount`` to a goal.

    Completes an active goal once the target is reached. The caller must
    make sure the goal is active before contributing.

    Raises:
        InvalidAmount: If ``amount`` is not a positive finite number.

    Returns:
        The milestones achieved by this contribution.
    """
    if amount is None or not math.isfinite(amount) or amount <= 0:
        raise InvalidAmount()

    goal.current_amount += amount
    newly_achieved = check_milestones(goal, now)

    if goal.current_amount >= goal.target_amount and goal.status == 'active':
        goal.status = 'completed'

    return newly_achieved


def transition_status(goal, new_status):
    """Apply an explicit status change requested by the user."""
    if new_status == goal.status:
        return
    if new_status not in GOAL_TRANSITIONS.get(goal.status, set()):
        raise PreconditionFailed(f"Cannot change goal status from '{goal.status}' to '{new_status}'")
    goal.status = new_status


def goal_overview(goals, now=None):
    """Aggregate figures for the goals overview card."""
    now = _now(now)
    counts = {status: 0 for status in GOAL_STATUSES}
    total_target = 0
    total_saved = 0
    overdue = 0
    milestones_achieved = 0

    for g in goals or ():
        counts[g.status] = counts.get(g.status, 0) + 1
        total_target += g.target_amount
        total_saved += g.current_amount
        if g.status == 'active' and goal_progress(g, now)['isOverdue']:
            overdue += 1
        milestones_achieved += sum(1 for m in g.milestones or () if m.achieved)

    return {
        'total': sum(counts.values()),
        'byStatus': counts,
        'overdue': overdue,
        'totalTarget': total_target,
        'totalSaved': total_saved,
        'overallPercentage': min(total_saved / total_target * 100, 100) if total_target > 0 else 0,
        'milestonesAchieved': milestones_achieved,
    }


# ==========================================
# LEDGER
# ==========================================

def totals(transactions):
    income = 0
    expense = 0
    for t in transactions or ():
        if t.type == 'income':
            income += t.amount
        elif t.type == 'expense':
            expense += abs(t.amount)

    return {
        'totalIncome': income,
        'totalExpense': expense,
        'balance': income - expense,
    }


def monthly_totals(transactions, month, year):
    """Totals restricted to one calendar month (``month`` is 1-12)."""
    in_month = [
        t for t in transactions or ()
        if t.date.month == month and t.date.year == year
    ]
    result = totals(in_month)
    return {
        'monthlyIncome': result['totalIncome'],
        'monthlyExpense': result['totalExpense'],
        'monthlyBalance': result['balance'],
    }


def reserved_in_goals(goals):
    """Money set aside in active goals."""
    reserved = 0
    for g in goals or ():
        if g.status == 'active':
            reserved += g.current_amount
    return reserved


def available_balance(transactions, goals):
    """Spendable cash: income minus expenses minus money reserved in active goals."""
    result = totals(transactions)
    return result['totalIncome'] - result['totalExpense'] - reserved_in_goals(goals)
