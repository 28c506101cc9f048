"""
Request schemas for the REST API.

Each Pydantic model validates one JSON body (or query string). Field names
are snake_case in Python and camelCase on the wire.
"""

from datetime import datetime, timezone
from typing import Annotated, List, Literal, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


UtcDateTime = Annotated[datetime, AfterValidator(_naive_utc)]

EMAIL_PATTERN = r"^[\w.+-]+@[\w-]+(\.[\w-]+)*\.\w{2,}$"
COLOR_PATTERN = r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$"

EntryType = Literal['income', 'expense']
PaymentMethod = Literal['cash', 'credit_card', 'debit_card', 'pix', 'bank_transfer', 'other']
RecurringPattern = Literal['daily', 'weekly', 'monthly', 'yearly']
BudgetPeriod = Literal['weekly', 'monthly', 'yearly']
GoalType = Literal['savings', 'debt_payment', 'purchase', 'investment', 'other']
GoalPriority = Literal['low', 'medium', 'high', 'urgent']
GoalStatus = Literal['active', 'paused', 'completed', 'cancelled']


class Schema(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        allow_inf_nan=False,
    )


# ── Auth & settings ───────────────────────────────────────

class RegisterIn(Schema):
    name: str = Field(..., min_length=2, max_length=50)
    email: str = Field(..., pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=6)

    @field_validator('email')
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.lower()


class LoginIn(Schema):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)

    @field_validator('email')
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.lower()


class PreferencesIn(Schema):
    currency: Optional[Literal['BRL', 'USD', 'EUR']] = None
    language: Optional[Literal['pt-BR', 'en-US', 'es-ES']] = None
    theme: Optional[Literal['light', 'dark']] = None


class ProfileIn(Schema):
    name: Optional[str] = Field(None, min_length=2, max_length=50)
    avatar: Optional[str] = Field(None, max_length=255)
    preferences: Optional[PreferencesIn] = None


class PasswordChangeIn(Schema):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6)


class AccountDeleteIn(Schema):
    password: str = Field(..., min_length=1)


class LabelsIn(Schema):
    income: Optional[str] = Field(None, min_length=1, max_length=50)
    expense: Optional[str] = Field(None, min_length=1, max_length=50)
    balance: Optional[str] = Field(None, min_length=1, max_length=50)
    budget: Optional[str] = Field(None, min_length=1, max_length=50)
    goal: Optional[str] = Field(None, min_length=1, max_length=50)


class NotificationsIn(Schema):
    email: Optional[bool] = None
    push: Optional[bool] = None
    budget_alerts: Optional[bool] = None
    goal_milestones: Optional[bool] = None
    monthly_reports: Optional[bool] = None


class ImportIn(Schema):
    data: dict


# ── Categories ────────────────────────────────────────────

class CategoryIn(Schema):
    name: str = Field(..., min_length=1, max_length=50)
    type: EntryType
    icon: str = Field('📁', max_length=10)
    color: str = Field('#808080', pattern=COLOR_PATTERN)
    is_default: bool = False
    parent: Optional[int] = None


class CategoryUpdate(Schema):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    icon: Optional[str] = Field(None, max_length=10)
    color: Optional[str] = Field(None, pattern=COLOR_PATTERN)
    is_default: Optional[bool] = None
    sort_order: Optional[int] = Field(None, ge=0)


class CategoryQuery(Schema):
    type: Optional[EntryType] = None


# ── Transactions ──────────────────────────────────────────

class TransactionIn(Schema):
    type: EntryType
    amount: float
    description: str = Field(..., min_length=1, max_length=200)
    category: int
    date: Optional[UtcDateTime] = None
    payment_method: PaymentMethod = 'cash'
    tags: List[str] = Field(default_factory=list)
    location: Optional[str] = Field(None, max_length=200)
    notes: Optional[str] = Field(None, max_length=500)
    is_recurring: bool = False
    recurring_pattern: Optional[RecurringPattern] = None


class TransactionUpdate(Schema):
    type: Optional[EntryType] = None
    amount: Optional[float] = None
    description: Optional[str] = Field(None, min_length=1, max_length=200)
    category: Optional[int] = None
    date: Optional[UtcDateTime] = None
    payment_method: Optional[PaymentMethod] = None
    tags: Optional[List[str]] = None
    location: Optional[str] = Field(None, max_length=200)
    notes: Optional[str] = Field(None, max_length=500)
    is_recurring: Optional[bool] = None
    recurring_pattern: Optional[RecurringPattern] = None


class TransactionQuery(Schema):
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)
    type: Optional[EntryType] = None
    category: Optional[int] = None
    start_date: Optional[UtcDateTime] = None
    end_date: Optional[UtcDateTime] = None


class PeriodQuery(Schema):
    month: Optional[int] = Field(None, ge=1, le=12)
    year: Optional[int] = Field(None, ge=1970)


# ── Budgets ───────────────────────────────────────────────

class BudgetNotifications(Schema):
    email: bool = True
    push: bool = True


class BudgetIn(Schema):
    category: int
    amount: float
    period: BudgetPeriod = 'monthly'
    start_date: Optional[UtcDateTime] = None
    end_date: Optional[UtcDateTime] = None
    alert_threshold: float = Field(80, ge=0, le=100)
    notifications: Optional[BudgetNotifications] = None
    description: str = Field('', max_length=200)
    is_active: bool = True


class BudgetUpdate(Schema):
    amount: Optional[float] = None
    period: Optional[BudgetPeriod] = None
    start_date: Optional[UtcDateTime] = None
    end_date: Optional[UtcDateTime] = None
    alert_threshold: Optional[float] = Field(None, ge=0, le=100)
    notifications: Optional[BudgetNotifications] = None
    description: Optional[str] = Field(None, max_length=200)
    is_active: Optional[bool] = None


# ── Goals ─────────────────────────────────────────────────

class GoalNotifications(Schema):
    email: bool = True
    push: bool = True
    milestone: int = Field(25, ge=1, le=100)


class MilestoneIn(Schema):
    percentage: float = Field(..., ge=0, le=100)
    description: Optional[str] = Field(None, max_length=200)


class GoalIn(Schema):
    title: str = Field(..., min_length=1, max_length=100)
    description: str = Field('', max_length=500)
    target_amount: float
    current_amount: float = Field(0, ge=0)
    start_date: Optional[UtcDateTime] = None
    target_date: Optional[UtcDateTime] = None
    category: Optional[int] = None
    type: GoalType = 'savings'
    priority: GoalPriority = 'medium'
    is_recurring: bool = False
    recurring_amount: Optional[float] = Field(None, ge=0)
    notifications: Optional[GoalNotifications] = None
    milestones: Optional[List[MilestoneIn]] = None


class GoalUpdate(Schema):
    title: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    target_amount: Optional[float] = None
    start_date: Optional[UtcDateTime] = None
    target_date: Optional[UtcDateTime] = None
    category: Optional[int] = None
    type: Optional[GoalType] = None
    priority: Optional[GoalPriority] = None
    status: Optional[GoalStatus] = None
    is_recurring: Optional[bool] = None
    recurring_amount: Optional[float] = Field(None, ge=0)
    notifications: Optional[GoalNotifications] = None


class AddAmountIn(Schema):
    amount: float
