from flask_sqlalchemy import SQLAlchemy
from datetime import datetime

# Initialize the Database Manager
db = SQLAlchemy()


def _iso(value):
    return value.isoformat() if value else None


# 1. User Table
class User(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    avatar = db.Column(db.String(255), default='')

    # Preferences
    currency = db.Column(db.String(3), default='BRL')
    language = db.Column(db.String(5), default='pt-BR')
    theme = db.Column(db.String(10), default='light')

    # Custom display labels
    label_income = db.Column(db.String(50), default='Income')
    label_expense = db.Column(db.String(50), default='Expenses')
    label_balance = db.Column(db.String(50), default='Balance')
    label_budget = db.Column(db.String(50), default='Budget')
    label_goal = db.Column(db.String(50), default='Goal')

    # Notification toggles
    notify_email = db.Column(db.Boolean, default=True)
    notify_push = db.Column(db.Boolean, default=True)
    notify_budget_alerts = db.Column(db.Boolean, default=True)
    notify_goal_milestones = db.Column(db.Boolean, default=True)
    notify_monthly_reports = db.Column(db.Boolean, default=True)

    is_active = db.Column(db.Boolean, default=True)
    last_login = db.Column(db.DateTime, default=datetime.utcnow)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # Relationships (Link data to user)
    categories = db.relationship('Category', backref='user', lazy=True, cascade='all, delete-orphan')
    transactions = db.relationship('Transaction', backref='user', lazy=True, cascade='all, delete-orphan')
    budgets = db.relationship('Budget', backref='user', lazy=True, cascade='all, delete-orphan')
    goals = db.relationship('Goal', backref='user', lazy=True, cascade='all, delete-orphan')

    LABEL_FIELDS = ('income', 'expense', 'balance', 'budget', 'goal')
    NOTIFICATION_FIELDS = {
        'email': 'notify_email',
        'push': 'notify_push',
        'budgetAlerts': 'notify_budget_alerts',
        'goalMilestones': 'notify_goal_milestones',
        'monthlyReports': 'notify_monthly_reports',
    }

    def preferences(self):
        return {'currency': self.currency, 'language': self.language, 'theme': self.theme}

    def custom_labels(self):
        return {key: getattr(self, f'label_{key}') for key in self.LABEL_FIELDS}

    def notifications(self):
        return {key: getattr(self, attr) for key, attr in self.NOTIFICATION_FIELDS.items()}

    def wants_email(self, kind):
        """True when the user accepts email and the given notification kind."""
        return bool(self.notify_email and getattr(self, self.NOTIFICATION_FIELDS[kind]))

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'avatar': self.avatar,
            'preferences': self.preferences(),
            'customLabels': self.custom_labels(),
            'notifications': self.notifications(),
            'lastLogin': _iso(self.last_login),
            'createdAt': _iso(self.created_at),
        }


# 2. Category Table
class Category(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    name = db.Column(db.String(50), nullable=False)
    type = db.Column(db.String(10), nullable=False, default='expense')  # income | expense
    icon = db.Column(db.String(10), default='📁')
    color = db.Column(db.String(7), default='#808080')
    is_default = db.Column(db.Boolean, default=False)
    is_active = db.Column(db.Boolean, default=True)
    parent_id = db.Column(db.Integer, db.ForeignKey('category.id'), nullable=True)
    sort_order = db.Column(db.Integer, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def claim_default(self):
        """Make this the only default category of its user and type."""
        if self.id is None:
            db.session.add(self)
            db.session.flush()
        Category.query.filter(
            Category.user_id == self.user_id,
            Category.type == self.type,
            Category.id != self.id,
        ).update({'is_default': False}, synchronize_session='fetch')
        self.is_default = True

    def summary(self):
        return {'id': self.id, 'name': self.name, 'type': self.type, 'icon': self.icon, 'color': self.color}

    def to_dict(self):
        return {
            **self.summary(),
            'isDefault': bool(self.is_default),
            'isActive': bool(self.is_active),
            'parent': self.parent_id,
            'sortOrder': self.sort_order,
            'createdAt': _iso(self.created_at),
        }


# 3. Transaction Table
class Transaction(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    category_id = db.Column(db.Integer, db.ForeignKey('category.id'), nullable=False, index=True)
    type = db.Column(db.String(10), nullable=False, default='expense')  # income | expense
    amount = db.Column(db.Float, nullable=False)  # expenses negative, incomes positive
    description = db.Column(db.String(200), nullable=False)
    date = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)
    is_recurring = db.Column(db.Boolean, default=False)
    recurring_pattern = db.Column(db.String(10))
    tags = db.Column(db.JSON, default=list)
    location = db.Column(db.String(200))
    payment_method = db.Column(db.String(20), default='cash')
    notes = db.Column(db.String(500))
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    category = db.relationship('Category', lazy='joined')

    @staticmethod
    def signed_amount(type_, amount):
        """Store expenses as negative and incomes as positive numbers."""
        return -abs(amount) if type_ == 'expense' else abs(amount)

    def to_dict(self):
        return {
            'id': self.id,
            'type': self.type,
            'amount': self.amount,
            'absoluteAmount': abs(self.amount),
            'description': self.description,
            'category': self.category.summary() if self.category else None,
            'date': _iso(self.date),
            'isRecurring': bool(self.is_recurring),
            'recurringPattern': self.recurring_pattern,
            'tags': self.tags or [],
            'location': self.location,
            'paymentMethod': self.payment_method,
            'notes': self.notes,
            'isActive': bool(self.is_active),
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }


# 4. Budget Table
class Budget(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    category_id = db.Column(db.Integer, db.ForeignKey('category.id'), nullable=False, index=True)
    amount = db.Column(db.Float, nullable=False)
    period = db.Column(db.String(10), nullable=False, default='monthly')
    start_date = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    end_date = db.Column(db.DateTime, nullable=False)
    is_active = db.Column(db.Boolean, default=True)
    alert_threshold = db.Column(db.Float, default=80)
    notify_email = db.Column(db.Boolean, default=True)
    notify_push = db.Column(db.Boolean, default=True)
    description = db.Column(db.String(200), default='')
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    category = db.relationship('Category', lazy='joined')

    def is_active_period(self, now=None):
        now = now or datetime.utcnow()
        return bool(self.is_active) and self.start_date <= now <= self.end_date

    def to_dict(self):
        return {
            'id': self.id,
            'category': self.category.summary() if self.category else None,
            'amount': self.amount,
            'period': self.period,
            'startDate': _iso(self.start_date),
            'endDate': _iso(self.end_date),
            'isActive': bool(self.is_active),
            'alertThreshold': self.alert_threshold,
            'notifications': {'email': bool(self.notify_email), 'push': bool(self.notify_push)},
            'description': self.description,
            'createdAt': _iso(self.created_at),
        }


# 5. Goal Table
class Goal(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    category_id = db.Column(db.Integer, db.ForeignKey('category.id'), nullable=True)
    title = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(500), default='')
    target_amount = db.Column(db.Float, nullable=False)
    current_amount = db.Column(db.Float, nullable=False, default=0.0)
    start_date = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    target_date = db.Column(db.DateTime, nullable=False)
    type = db.Column(db.String(20), nullable=False, default='savings')
    priority = db.Column(db.String(10), default='medium')
    status = db.Column(db.String(10), nullable=False, default='active', index=True)
    is_recurring = db.Column(db.Boolean, default=False)
    recurring_amount = db.Column(db.Float)
    notify_email = db.Column(db.Boolean, default=True)
    notify_push = db.Column(db.Boolean, default=True)
    milestone_step = db.Column(db.Integer, default=25)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    category = db.relationship('Category', lazy='joined')
    milestones = db.relationship(
        'Milestone', backref='goal', lazy='selectin',
        order_by='Milestone.percentage', cascade='all, delete-orphan',
    )

    def to_dict(self):
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'targetAmount': self.target_amount,
            'currentAmount': self.current_amount,
            'startDate': _iso(self.start_date),
            'targetDate': _iso(self.target_date),
            'category': self.category.summary() if self.category else None,
            'type': self.type,
            'priority': self.priority,
            'status': self.status,
            'isRecurring': bool(self.is_recurring),
            'recurringAmount': self.recurring_amount,
            'notifications': {
                'email': bool(self.notify_email),
                'push': bool(self.notify_push),
                'milestone': self.milestone_step,
            },
            'milestones': [m.to_dict() for m in self.milestones],
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }


# 6. Milestone Table (ordered checkpoints of a goal)
class Milestone(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    goal_id = db.Column(db.Integer, db.ForeignKey('goal.id'), nullable=False, index=True)
    percentage = db.Column(db.Float, nullable=False)
    description = db.Column(db.String(200))
    achieved = db.Column(db.Boolean, nullable=False, default=False)
    achieved_at = db.Column(db.DateTime)

    def to_dict(self):
        return {
            'id': self.id,
            'percentage': self.percentage,
            'description': self.description,
            'achieved': bool(self.achieved),
            'achievedAt': _iso(self.achieved_at),
        }
