import csv
import io
import math
from datetime import datetime, timedelta
from functools import wraps

import jwt
from flask import Blueprint, request, jsonify, current_app, make_response, send_file
from flask_mail import Message
from pydantic import ValidationError
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas
from sqlalchemy import func
from werkzeug.security import generate_password_hash, check_password_hash

import calculations as calc
from errors import AuthError, FinanceError, InsufficientBalance, InvalidAmount, NotFound, PreconditionFailed
from extensions import mail
from logger import get_logger
from models import db, User, Category, Transaction, Budget, Goal, Milestone
from schemas import (
    AccountDeleteIn, AddAmountIn, BudgetIn, BudgetUpdate, CategoryIn, CategoryQuery, CategoryUpdate,
    GoalIn, GoalUpdate, ImportIn, LabelsIn, LoginIn, NotificationsIn, PasswordChangeIn, PeriodQuery,
    PreferencesIn, ProfileIn, RegisterIn, TransactionIn, TransactionQuery, TransactionUpdate,
)

logger = get_logger(__name__)

main = Blueprint('main', __name__)

STARTER_CATEGORIES = [
    {'name': 'Food', 'type': 'expense', 'icon': '🍽️', 'color': '#FF6B6B'},
    {'name': 'Transport', 'type': 'expense', 'icon': '🚗', 'color': '#4ECDC4'},
    {'name': 'Leisure', 'type': 'expense', 'icon': '🎬', 'color': '#45B7D1'},
    {'name': 'Health', 'type': 'expense', 'icon': '🏥', 'color': '#96CEB4'},
    {'name': 'Education', 'type': 'expense', 'icon': '📚', 'color': '#FFEAA7'},
    {'name': 'Salary', 'type': 'income', 'icon': '💰', 'color': '#6C5CE7'},
    {'name': 'Freelance', 'type': 'income', 'icon': '💼', 'color': '#A29BFE'},
    {'name': 'Investments', 'type': 'income', 'icon': '📈', 'color': '#FD79A8'},
]

# ==========================================
# 1. SECURITY & UTILS
# ==========================================

# Helper to send email without failing the request if SMTP is down
def send_async_email(subject, recipient, body):
    try:
        msg = Message(subject, recipients=[recipient])
        msg.body = body
        mail.send(msg)
    except Exception as e:
        logger.exception(f"Email Error: {e}")


def issue_token(user):
    return jwt.encode({
        'user_id': user.id,
        'exp': datetime.utcnow() + timedelta(days=current_app.config['JWT_EXPIRES_DAYS'])
    }, current_app.config['SECRET_KEY'], algorithm="HS256")


# Decorator to protect routes
def token_required(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        token = None
        auth_header = request.headers.get('Authorization', '')
        if auth_header.startswith('Bearer '):
            token = auth_header.split(" ", 1)[1]

        if not token:
            raise AuthError('Token is missing!')

        try:
            data = jwt.decode(token, current_app.config['SECRET_KEY'], algorithms=["HS256"])
        except jwt.ExpiredSignatureError:
            raise AuthError('Token has expired')
        except jwt.InvalidTokenError:
            raise AuthError('Token is invalid!')

        current_user = User.query.filter_by(id=data.get('user_id'), is_active=True).first()
        if not current_user:
            raise AuthError('User not found')

        return f(current_user, *args, **kwargs)
    return decorated


def _body(schema):
    return schema.model_validate(request.get_json(silent=True) or {})


def _owned(model, record_id, user, **filters):
    record = model.query.filter_by(id=record_id, user_id=user.id, **filters).first()
    if not record:
        raise NotFound(f'{model.__name__} not found')
    return record


def _active_category(user, category_id, type_=None):
    category = Category.query.filter_by(id=category_id, user_id=user.id, is_active=True).first()
    if not category:
        raise NotFound('Category not found')
    if type_ and category.type != type_:
        raise PreconditionFailed(f'Category must be of type {type_}')
    return category


def _not_in_future(when):
    if when > datetime.utcnow():
        raise PreconditionFailed('Date cannot be in the future')


def _ledger(user):
    transactions = Transaction.query.filter_by(user_id=user.id, is_active=True).all()
    goals = Goal.query.filter_by(user_id=user.id).all()
    return transactions, goals


def _ensure_available(user, amount):
    transactions, goals = _ledger(user)
    available = calc.available_balance(transactions, goals)
    if amount > available:
        raise InsufficientBalance(available)


# ==========================================
# 2. AUTHENTICATION & PROFILE
# ==========================================

@main.route('/api/auth/register', methods=['POST'])
def register():
    data = _body(RegisterIn)

    if User.query.filter_by(email=data.email).first():
        raise PreconditionFailed('A user with this email already exists')

    new_user = User(
        name=data.name,
        email=data.email,
        password_hash=generate_password_hash(data.password, method='pbkdf2:sha256'),
        currency=current_app.config['DEFAULT_CURRENCY'],
        language=current_app.config['DEFAULT_LANGUAGE'],
        theme=current_app.config['DEFAULT_THEME'],
    )
    db.session.add(new_user)
    db.session.flush()

    for order, starter in enumerate(STARTER_CATEGORIES):
        db.session.add(Category(user_id=new_user.id, sort_order=order, **starter))
    db.session.commit()
    logger.info(f"Registered user {new_user.id}")

    # [EMAIL TRIGGER 1] Welcome Email
    send_async_email(
        "Welcome to Ledgerly",
        new_user.email,
        f"Hi {new_user.name},\n\nWelcome to Ledgerly! Your account has been successfully created.\nStart tracking your finances today!"
    )

    return jsonify({'message': 'User created successfully', 'token': issue_token(new_user), 'user': new_user.to_dict()}), 201


@main.route('/api/auth/login', methods=['POST'])
def login():
    data = _body(LoginIn)
    user = User.query.filter_by(email=data.email, is_active=True).first()

    if not user or not check_password_hash(user.password_hash, data.password):
        raise AuthError('Invalid email or password')

    user.last_login = datetime.utcnow()
    db.session.commit()

    return jsonify({'message': 'Login successful', 'token': issue_token(user), 'user': user.to_dict()})


@main.route('/api/auth/me', methods=['GET'])
@token_required
def me(current_user):
    return jsonify({'user': current_user.to_dict()})


@main.route('/api/auth/profile', methods=['PUT'])
@token_required
def update_profile(current_user):
    data = _body(ProfileIn)
    if data.name: current_user.name = data.name
    if data.avatar is not None: current_user.avatar = data.avatar
    if data.preferences:
        for key, value in data.preferences.model_dump(exclude_none=True).items():
            setattr(current_user, key, value)
    db.session.commit()
    return jsonify({'message': 'Profile updated', 'user': current_user.to_dict()})


@main.route('/api/auth/password', methods=['PUT'])
@token_required
def update_password(current_user):
    data = _body(PasswordChangeIn)
    if not check_password_hash(current_user.password_hash, data.current_password):
        raise PreconditionFailed('Incorrect current password')

    current_user.password_hash = generate_password_hash(data.new_password, method='pbkdf2:sha256')
    db.session.commit()

    # [EMAIL TRIGGER 2] Password Change Alert
    send_async_email(
        "Security Alert: Password Changed",
        current_user.email,
        f"Hi {current_user.name},\n\nYour password was just changed. If this wasn't you, please contact support immediately."
    )

    return jsonify({'message': 'Password updated'})


@main.route('/api/auth/account', methods=['DELETE'])
@token_required
def delete_account(current_user):
    data = _body(AccountDeleteIn)
    if not check_password_hash(current_user.password_hash, data.password):
        raise PreconditionFailed('Incorrect password')

    current_user.is_active = False
    db.session.commit()
    logger.info(f"Deactivated user {current_user.id}")
    return jsonify({'message': 'Account deleted'})


# ==========================================
# 3. SETTINGS
# ==========================================

@main.route('/api/settings', methods=['GET'])
@token_required
def get_settings(current_user):
    return jsonify({
        'preferences': current_user.preferences(),
        'customLabels': current_user.custom_labels(),
        'notifications': current_user.notifications(),
    })


@main.route('/api/settings/preferences', methods=['PUT'])
@token_required
def update_preferences(current_user):
    data = _body(PreferencesIn)
    for key, value in data.model_dump(exclude_none=True).items():
        setattr(current_user, key, value)
    db.session.commit()
    return jsonify({'message': 'Preferences updated', 'preferences': current_user.preferences()})


@main.route('/api/settings/labels', methods=['PUT'])
@token_required
def update_labels(current_user):
    data = _body(LabelsIn)
    for key, value in data.model_dump(exclude_none=True).items():
        setattr(current_user, f'label_{key}', value)
    db.session.commit()
    return jsonify({'message': 'Custom labels updated', 'customLabels': current_user.custom_labels()})


@main.route('/api/settings/notifications', methods=['PUT'])
@token_required
def update_notifications(current_user):
    data = _body(NotificationsIn)
    for key, value in data.model_dump(by_alias=True, exclude_none=True).items():
        setattr(current_user, User.NOTIFICATION_FIELDS[key], value)
    db.session.commit()
    return jsonify({'message': 'Notification settings updated', 'notifications': current_user.notifications()})


# ==========================================
# 4. CATEGORIES
# ==========================================

def _name_taken(user, name, type_, exclude_id=None):
    query = Category.query.filter(
        Category.user_id == user.id,
        Category.type == type_,
        Category.is_active.is_(True),
        func.lower(Category.name) == name.lower(),
    )
    if exclude_id is not None:
        query = query.filter(Category.id != exclude_id)
    return query.first() is not None


def _build_category(user, data):
    if _name_taken(user, data.name, data.type):
        raise PreconditionFailed('A category with this name already exists')
    if data.parent is not None:
        _active_category(user, data.parent, data.type)

    last_order = db.session.query(func.max(Category.sort_order)).filter(
        Category.user_id == user.id, Category.type == data.type, Category.is_active.is_(True)
    ).scalar()

    category = Category(
        user_id=user.id, name=data.name, type=data.type, icon=data.icon, color=data.color,
        parent_id=data.parent, sort_order=0 if last_order is None else last_order + 1,
    )
    db.session.add(category)
    if data.is_default:
        category.claim_default()
    return category


@main.route('/api/categories', methods=['GET', 'POST'])
@token_required
def handle_categories(current_user):
    if request.method == 'POST':
        category = _build_category(current_user, _body(CategoryIn))
        db.session.commit()
        logger.info(f"Created category {category.id} for user {current_user.id}")
        return jsonify({'message': 'Category created', 'category': category.to_dict()}), 201

    params = CategoryQuery.model_validate(request.args.to_dict())
    query = Category.query.filter_by(user_id=current_user.id, is_active=True)
    if params.type: query = query.filter_by(type=params.type)
    cats = query.order_by(Category.sort_order, Category.name).all()
    return jsonify([c.to_dict() for c in cats])


@main.route('/api/categories/<int:id>', methods=['PUT', 'DELETE'])
@token_required
def handle_category(current_user, id):
    category = _owned(Category, id, current_user, is_active=True)

    if request.method == 'DELETE':
        if category.is_default:
            raise PreconditionFailed('Default categories cannot be deleted')
        in_use = Transaction.query.filter_by(user_id=current_user.id, category_id=category.id, is_active=True).count()
        if in_use > 0:
            raise PreconditionFailed(f'Cannot delete a category with {in_use} associated transaction(s)')
        category.is_active = False
        db.session.commit()
        logger.info(f"Deleted category {category.id}")
        return jsonify({'message': 'Category deleted'})

    data = _body(CategoryUpdate)
    if data.name and data.name != category.name and _name_taken(current_user, data.name, category.type, category.id):
        raise PreconditionFailed('A category with this name already exists')

    if data.name is not None: category.name = data.name
    if data.icon is not None: category.icon = data.icon
    if data.color is not None: category.color = data.color
    if data.sort_order is not None: category.sort_order = data.sort_order
    if data.is_default is True:
        category.claim_default()
    elif data.is_default is False:
        category.is_default = False
    db.session.commit()
    return jsonify({'message': 'Category updated', 'category': category.to_dict()})


# ==========================================
# 5. TRANSACTIONS
# ==========================================

def _build_transaction(user, data, check_balance=False):
    if data.amount is None or data.amount <= 0:
        raise InvalidAmount()
    category = _active_category(user, data.category, data.type)
    when = data.date or datetime.utcnow()
    _not_in_future(when)
    if check_balance and data.type == 'expense':
        _ensure_available(user, data.amount)

    transaction = Transaction(
        user_id=user.id, category_id=category.id, type=data.type,
        amount=Transaction.signed_amount(data.type, data.amount),
        description=data.description, date=when, payment_method=data.payment_method,
        tags=data.tags, location=data.location, notes=data.notes,
        is_recurring=data.is_recurring, recurring_pattern=data.recurring_pattern,
    )
    transaction.category = category
    db.session.add(transaction)
    return transaction


def _budget_expenses(budget):
    return Transaction.query.filter(
        Transaction.user_id == budget.user_id,
        Transaction.category_id == budget.category_id,
        Transaction.type == 'expense',
        Transaction.is_active.is_(True),
        Transaction.date >= budget.start_date,
        Transaction.date <= budget.end_date,
    ).all()


def _notify_budget_alerts(user, transaction):
    """Email every budget whose alert threshold this expense just crossed."""
    budgets = Budget.query.filter_by(user_id=user.id, category_id=transaction.category_id, is_active=True).all()
    for budget in budgets:
        if not calc.budget_covers(budget, transaction):
            continue
        expenses = _budget_expenses(budget)
        after = calc.budget_progress(budget, expenses)
        before = calc.budget_progress(budget, [t for t in expenses if t.id != transaction.id])
        if calc.budget_alert_triggered(before, budget.alert_threshold) or not calc.budget_alert_triggered(after, budget.alert_threshold):
            continue

        logger.info(f"Budget {budget.id} reached {after['percentage']:.0f}% of its limit")
        if budget.notify_email and user.wants_email('budgetAlerts'):
            send_async_email(
                f"Budget alert: {budget.category.name}",
                user.email,
                f"Hi {user.name},\n\nYou have used {after['percentage']:.0f}% of your {budget.period} "
                f"{budget.category.name} budget ({after['spent']:.2f} of {budget.amount:.2f})."
            )


@main.route('/api/transactions', methods=['GET', 'POST'])
@token_required
def handle_transactions(current_user):
    if request.method == 'POST':
        transaction = _build_transaction(current_user, _body(TransactionIn), check_balance=True)
        db.session.commit()
        logger.info(f"Created {transaction.type} {transaction.id} for user {current_user.id}")

        if transaction.type == 'expense':
            _notify_budget_alerts(current_user, transaction)
        return jsonify({'message': 'Transaction created', 'transaction': transaction.to_dict()}), 201

    params = TransactionQuery.model_validate(request.args.to_dict())
    query = Transaction.query.filter_by(user_id=current_user.id, is_active=True)
    if params.type: query = query.filter(Transaction.type == params.type)
    if params.category: query = query.filter(Transaction.category_id == params.category)
    if params.start_date: query = query.filter(Transaction.date >= params.start_date)
    if params.end_date: query = query.filter(Transaction.date <= params.end_date)

    rows = query.order_by(Transaction.date.desc(), Transaction.id.desc()).all()
    summary = calc.totals(rows)
    offset = (params.page - 1) * params.limit

    return jsonify({
        'transactions': [t.to_dict() for t in rows[offset:offset + params.limit]],
        'pagination': {
            'current': params.page,
            'pages': max(1, math.ceil(len(rows) / params.limit)),
            'total': len(rows),
            'limit': params.limit,
        },
        'summary': {
            'income': summary['totalIncome'],
            'expense': summary['totalExpense'],
            'balance': summary['balance'],
        },
    })


@main.route('/api/transactions/<int:id>', methods=['GET', 'PUT', 'DELETE'])
@token_required
def handle_transaction(current_user, id):
    transaction = _owned(Transaction, id, current_user, is_active=True)

    if request.method == 'GET':
        return jsonify(transaction.to_dict())

    if request.method == 'DELETE':
        transaction.is_active = False
        db.session.commit()
        logger.info(f"Deleted transaction {transaction.id}")
        return jsonify({'message': 'Transaction deleted'})

    data = _body(TransactionUpdate)
    new_type = data.type or transaction.type

    if data.amount is not None and data.amount <= 0:
        raise InvalidAmount()
    if data.category is not None or new_type != transaction.type:
        category = _active_category(current_user, data.category or transaction.category_id, new_type)
        transaction.category_id = category.id
        transaction.category = category
    if data.date is not None:
        _not_in_future(data.date)
        transaction.date = data.date

    magnitude = data.amount if data.amount is not None else transaction.amount
    transaction.type = new_type
    transaction.amount = Transaction.signed_amount(new_type, magnitude)

    for field in ('description', 'payment_method', 'tags', 'location', 'notes', 'is_recurring', 'recurring_pattern'):
        value = getattr(data, field)
        if value is not None:
            setattr(transaction, field, value)

    db.session.commit()
    return jsonify({'message': 'Transaction updated', 'transaction': transaction.to_dict()})


# ==========================================
# 6. BUDGETS
# ==========================================

def _budget_view(budget):
    progress = calc.budget_progress(budget, _budget_expenses(budget))
    return {
        **budget.to_dict(),
        'progress': progress,
        'alertTriggered': calc.budget_alert_triggered(progress, budget.alert_threshold),
    }


def _check_budget_window(budget):
    if budget.end_date <= budget.start_date:
        raise PreconditionFailed('End date must be after start date')


def _build_budget(user, data):
    if data.amount is None or data.amount <= 0:
        raise PreconditionFailed('Budget amount must be greater than zero')
    category = _active_category(user, data.category, 'expense')

    start = data.start_date or datetime.utcnow()
    budget = Budget(
        user_id=user.id, category_id=category.id, amount=data.amount, period=data.period,
        start_date=start, end_date=data.end_date or calc.period_end_date(start, data.period),
        alert_threshold=data.alert_threshold, description=data.description, is_active=data.is_active,
    )
    if data.notifications:
        budget.notify_email = data.notifications.email
        budget.notify_push = data.notifications.push
    _check_budget_window(budget)

    budget.category = category
    db.session.add(budget)
    return budget


@main.route('/api/budgets', methods=['GET', 'POST'])
@token_required
def handle_budgets(current_user):
    if request.method == 'POST':
        budget = _build_budget(current_user, _body(BudgetIn))
        db.session.commit()
        logger.info(f"Created budget {budget.id} for user {current_user.id}")
        return jsonify({'message': 'Budget created', 'budget': _budget_view(budget)}), 201

    budgets = Budget.query.filter_by(user_id=current_user.id).order_by(Budget.created_at.desc()).all()
    return jsonify([_budget_view(b) for b in budgets])


@main.route('/api/budgets/<int:id>', methods=['GET', 'PUT', 'DELETE'])
@token_required
def handle_budget(current_user, id):
    budget = _owned(Budget, id, current_user)

    if request.method == 'GET':
        return jsonify(_budget_view(budget))

    if request.method == 'DELETE':
        db.session.delete(budget)
        db.session.commit()
        logger.info(f"Deleted budget {id}")
        return jsonify({'message': 'Budget deleted'})

    data = _body(BudgetUpdate)
    if data.amount is not None:
        if data.amount <= 0:
            raise PreconditionFailed('Budget amount must be greater than zero')
        budget.amount = data.amount
    if data.period is not None: budget.period = data.period
    if data.start_date is not None: budget.start_date = data.start_date
    if data.end_date is not None:
        budget.end_date = data.end_date
    elif data.period is not None or data.start_date is not None:
        budget.end_date = calc.period_end_date(budget.start_date, budget.period)
    if data.alert_threshold is not None: budget.alert_threshold = data.alert_threshold
    if data.description is not None: budget.description = data.description
    if data.is_active is not None: budget.is_active = data.is_active
    if data.notifications:
        for channel, enabled in data.notifications.model_dump(exclude_unset=True).items():
            setattr(budget, f'notify_{channel}', enabled)

    _check_budget_window(budget)
    db.session.commit()
    return jsonify({'message': 'Budget updated', 'budget': _budget_view(budget)})


# ==========================================
# 7. GOALS
# ==========================================

def _goal_view(goal, now=None):
    return {**goal.to_dict(), **calc.goal_progress(goal, now)}


def _check_goal_window(goal):
    if goal.target_date <= goal.start_date:
        raise PreconditionFailed('Target date must be after start date')


def _build_goal(user, data, check_balance=False):
    if data.target_amount is None or data.target_amount <= 0:
        raise InvalidAmount('Target amount must be greater than zero')
    category = _active_category(user, data.category) if data.category is not None else None

    start = data.start_date or datetime.utcnow()
    goal = Goal(
        user_id=user.id, category_id=category.id if category else None,
        title=data.title, description=data.description,
        target_amount=data.target_amount, current_amount=data.current_amount,
        start_date=start,
        target_date=data.target_date or start + timedelta(days=current_app.config['DEFAULT_GOAL_DAYS']),
        type=data.type, priority=data.priority, status='active',
        is_recurring=data.is_recurring, recurring_amount=data.recurring_amount,
    )
    _check_goal_window(goal)
    if check_balance and data.current_amount > 0:
        _ensure_available(user, data.current_amount)
    if data.notifications:
        goal.notify_email = data.notifications.email
        goal.notify_push = data.notifications.push
        goal.milestone_step = data.notifications.milestone

    specs = [m.model_dump() for m in data.milestones] if data.milestones is not None else calc.default_milestones()
    goal.milestones = [Milestone(achieved=False, **spec) for spec in specs]
    calc.check_milestones(goal)

    goal.category = category
    db.session.add(goal)
    return goal


def _notify_milestones(user, goal, milestones):
    if not milestones:
        return
    logger.info(f"Goal {goal.id} reached milestones {[m.percentage for m in milestones]}")
    if goal.notify_email and user.wants_email('goalMilestones'):
        reached = ', '.join(f"{m.percentage:g}%" for m in milestones)
        send_async_email(
            f"Goal milestone: {goal.title}",
            user.email,
            f"Hi {user.name},\n\nYour goal '{goal.title}' just reached {reached}. "
            f"Saved so far: {goal.current_amount:.2f} of {goal.target_amount:.2f}."
        )


@main.route('/api/goals', methods=['GET', 'POST'])
@token_required
def handle_goals(current_user):
    if request.method == 'POST':
        goal = _build_goal(current_user, _body(GoalIn), check_balance=True)
        db.session.commit()
        logger.info(f"Created goal {goal.id} for user {current_user.id}")
        return jsonify({'message': 'Goal created', 'goal': _goal_view(goal)}), 201

    now = datetime.utcnow()
    goals = Goal.query.filter_by(user_id=current_user.id).order_by(Goal.created_at.desc()).all()
    return jsonify([_goal_view(g, now) for g in goals])


@main.route('/api/goals/stats/overview', methods=['GET'])
@token_required
def goals_overview(current_user):
    goals = Goal.query.filter_by(user_id=current_user.id).all()
    return jsonify(calc.goal_overview(goals))


@main.route('/api/goals/<int:id>', methods=['GET', 'PUT', 'DELETE'])
@token_required
def handle_goal(current_user, id):
    goal = _owned(Goal, id, current_user)

    if request.method == 'GET':
        return jsonify(_goal_view(goal))

    if request.method == 'DELETE':
        db.session.delete(goal)
        db.session.commit()
        logger.info(f"Deleted goal {id}")
        return jsonify({'message': 'Goal deleted'})

    data = _body(GoalUpdate)
    if data.target_amount is not None:
        if data.target_amount <= 0:
            raise InvalidAmount('Target amount must be greater than zero')
        goal.target_amount = data.target_amount
    if data.category is not None:
        goal.category_id = _active_category(current_user, data.category).id
    if data.status is not None:
        calc.transition_status(goal, data.status)
    if data.notifications:
        for key, value in data.notifications.model_dump(exclude_unset=True).items():
            setattr(goal, 'milestone_step' if key == 'milestone' else f'notify_{key}', value)

    for field in ('title', 'description', 'start_date', 'target_date', 'type', 'priority', 'is_recurring', 'recurring_amount'):
        value = getattr(data, field)
        if value is not None:
            setattr(goal, field, value)

    _check_goal_window(goal)
    reached = calc.check_milestones(goal)
    db.session.commit()
    _notify_milestones(current_user, goal, reached)
    return jsonify({'message': 'Goal updated', 'goal': _goal_view(goal)})


@main.route('/api/goals/<int:id>/add-amount', methods=['POST'])
@token_required
def add_goal_amount(current_user, id):
    goal = _owned(Goal, id, current_user)
    data = _body(AddAmountIn)

    if goal.status != 'active':
        raise PreconditionFailed('Only active goals can receive contributions')
    if data.amount <= 0:
        raise InvalidAmount()
    _ensure_available(current_user, data.amount)

    reached = calc.add_amount(goal, data.amount)
    db.session.commit()
    logger.info(f"Added {data.amount:.2f} to goal {goal.id} (status {goal.status})")

    _notify_milestones(current_user, goal, reached)
    return jsonify({'message': 'Amount added to goal', 'goal': _goal_view(goal)})


# ==========================================
# 8. DASHBOARD
# ==========================================

@main.route('/api/dashboard', methods=['GET'])
@token_required
def get_dashboard(current_user):
    params = PeriodQuery.model_validate(request.args.to_dict())
    today = datetime.utcnow()
    month = params.month or today.month
    year = params.year or today.year

    transactions, goals = _ledger(current_user)
    overall = calc.totals(transactions)
    reserved = calc.reserved_in_goals(goals)

    recent = sorted(transactions, key=lambda t: (t.date, t.id), reverse=True)[:5]

    return jsonify({
        **overall,
        'totalReservedInGoals': reserved,
        'availableBalance': calc.available_balance(transactions, goals),
        **calc.monthly_totals(transactions, month, year),
        'month': month,
        'year': year,
        'recentTransactions': [t.to_dict() for t in recent],
    })


# ==========================================
# 9. EXPORT & IMPORT
# ==========================================

@main.route('/api/settings/export', methods=['POST'])
@token_required
def export_json(current_user):
    transactions = Transaction.query.filter_by(user_id=current_user.id, is_active=True).order_by(Transaction.date.desc()).all()
    categories = Category.query.filter_by(user_id=current_user.id, is_active=True).order_by(Category.sort_order, Category.name).all()
    budgets = Budget.query.filter_by(user_id=current_user.id).order_by(Budget.start_date.desc()).all()
    goals = Goal.query.filter_by(user_id=current_user.id).order_by(Goal.target_date).all()

    return jsonify({
        'message': 'Data exported',
        'data': {
            'user': {
                'name': current_user.name,
                'email': current_user.email,
                'preferences': current_user.preferences(),
                'customLabels': current_user.custom_labels(),
                'exportDate': datetime.utcnow().isoformat(),
            },
            'transactions': [t.to_dict() for t in transactions],
            'categories': [c.to_dict() for c in categories],
            'budgets': [b.to_dict() for b in budgets],
            'goals': [g.to_dict() for g in goals],
        },
    })


def _category_named(user, name, type_=None):
    if not name:
        return None
    query = Category.query.filter_by(user_id=user.id, name=name, is_active=True)
    if type_: query = query.filter_by(type=type_)
    return query.first()


def _import_rows(rows, build):
    imported, skipped = 0, 0
    for row in rows if isinstance(rows, list) else []:
        try:
            if build(row) is None:
                skipped += 1
            else:
                imported += 1
        except (FinanceError, ValidationError, TypeError, ValueError) as e:
            logger.warning(f"Skipped imported row: {e}")
            skipped += 1
    return imported, skipped


@main.route('/api/settings/import', methods=['POST'])
@token_required
def import_json(current_user):
    data = _body(ImportIn).data
    report = {}

    profile = data.get('user') or {}
    if profile.get('preferences'):
        for key, value in PreferencesIn.model_validate(profile['preferences']).model_dump(exclude_none=True).items():
            setattr(current_user, key, value)
    if profile.get('customLabels'):
        for key, value in LabelsIn.model_validate(profile['customLabels']).model_dump(exclude_none=True).items():
            setattr(current_user, f'label_{key}', value)

    def import_category(row):
        if _category_named(current_user, row.get('name'), row.get('type')):
            return None
        return _build_category(current_user, CategoryIn.model_validate({**row, 'isDefault': False, 'parent': None}))

    def import_transaction(row):
        category = _category_named(current_user, (row.get('category') or {}).get('name'), row.get('type'))
        if not category:
            return None
        return _build_transaction(current_user, TransactionIn.model_validate(
            {**row, 'amount': abs(row.get('amount') or 0), 'category': category.id}))

    def import_budget(row):
        category = _category_named(current_user, (row.get('category') or {}).get('name'), 'expense')
        if not category:
            return None
        return _build_budget(current_user, BudgetIn.model_validate({**row, 'category': category.id}))

    def import_goal(row):
        category = _category_named(current_user, (row.get('category') or {}).get('name'))
        milestones = [{'percentage': m.get('percentage'), 'description': m.get('description')} for m in row.get('milestones') or []]
        goal = _build_goal(current_user, GoalIn.model_validate(
            {**row, 'category': category.id if category else None, 'milestones': milestones or None}))
        if row.get('status') in calc.GOAL_STATUSES:
            goal.status = row['status']
        return goal

    for key, build in (('categories', import_category), ('transactions', import_transaction),
                       ('budgets', import_budget), ('goals', import_goal)):
        imported, skipped = _import_rows(data.get(key), build)
        report[key] = {'imported': imported, 'skipped': skipped}
        db.session.flush()

    db.session.commit()
    logger.info(f"Imported data for user {current_user.id}: {report}")
    return jsonify({'message': 'Data imported', 'report': report})


@main.route('/api/export/<format_type>', methods=['GET'])
@token_required
def export_report(current_user, format_type):
    transactions = Transaction.query.filter_by(user_id=current_user.id, is_active=True).order_by(Transaction.date.desc()).all()

    if format_type == 'csv':
        si = io.StringIO()
        cw = csv.writer(si)
        cw.writerow(['Type', 'Category', 'Description', 'Amount', 'Date'])
        for t in transactions:
            cw.writerow([t.type, t.category.name if t.category else '', t.description, t.amount, t.date.strftime('%Y-%m-%d')])

        output = make_response(si.getvalue())
        output.headers["Content-Disposition"] = "attachment; filename=report.csv"
        output.headers["Content-type"] = "text/csv"
        return output

    if format_type == 'pdf':
        summary = calc.totals(transactions)
        buffer = io.BytesIO()
        p = canvas.Canvas(buffer, pagesize=letter)
        y = 750
        p.setFont("Helvetica-Bold", 16)
        p.drawString(50, y, f"Ledgerly Report - {current_user.name}")
        y -= 30
        p.setFont("Helvetica", 10)
        p.drawString(50, y, f"Income: {summary['totalIncome']:.2f} | Expenses: {summary['totalExpense']:.2f} | Balance: {summary['balance']:.2f} {current_user.currency}")
        y -= 25

        p.drawString(50, y, "TRANSACTIONS:")
        y -= 20
        for t in transactions:
            category = t.category.name if t.category else '-'
            p.drawString(50, y, f"{t.date.strftime('%Y-%m-%d')} | {category} | {t.description} | {t.amount:.2f}")
            y -= 15
            if y < 50:
                p.showPage()
                p.setFont("Helvetica", 10)
                y = 750

        p.save()
        buffer.seek(0)
        return send_file(buffer, as_attachment=True, download_name='report.pdf', mimetype='application/pdf')

    raise NotFound(f"Unsupported export format '{format_type}'")


# ==========================================
# 10. HEALTH
# ==========================================

@main.route('/api/test', methods=['GET'])
def health():
    return jsonify({'message': 'API is running'})
