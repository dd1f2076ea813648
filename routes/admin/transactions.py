"""
Admin transaction management routes
"""
from flask import Blueprint, request, jsonify, make_response
from utils.auth_utils import admin_required
from models import db
from models.transaction import PaymentTransaction
from models.user import User
from datetime import datetime
from sqlalchemy import func, or_
import csv
import io

transactions_bp = Blueprint('admin_transactions', __name__, url_prefix='/api/admin')


def _filtered_query():
    """Transaction query with the request's filters applied"""
    start_date = request.args.get('start_date', '').strip()
    end_date = request.args.get('end_date', '').strip()
    user_id = request.args.get('user', type=int)
    status_filter = request.args.get('status', '').strip()
    search_query = request.args.get('search', '').strip()

    query = PaymentTransaction.query

    # Compare date part of created_at (UTC) with selected dates
    if start_date:
        try:
            datetime.strptime(start_date, '%Y-%m-%d')  # validate
            query = query.filter(func.date(PaymentTransaction.created_at) >= start_date)
        except ValueError:
            pass

    if end_date:
        try:
            datetime.strptime(end_date, '%Y-%m-%d')  # validate
            query = query.filter(func.date(PaymentTransaction.created_at) <= end_date)
        except ValueError:
            pass

    if user_id:
        query = query.filter_by(user_id=user_id)

    if status_filter:
        query = query.filter_by(status=status_filter)

    if search_query:
        search_conditions = [
            User.full_name.ilike(f'%{search_query}%'),
            User.email.ilike(f'%{search_query}%'),
            PaymentTransaction.tx_ref.ilike(f'%{search_query}%'),
            PaymentTransaction.gateway_reference.ilike(f'%{search_query}%'),
        ]
        query = query.join(User, User.id == PaymentTransaction.user_id).filter(or_(*search_conditions))

    return query.order_by(PaymentTransaction.created_at.desc(), PaymentTransaction.id.desc())


@transactions_bp.route('/transactions', methods=['GET'])
@admin_required
def transactions():
    """Filtered transaction list with global summary"""
    page = max(request.args.get('page', 1, type=int), 1)
    per_page = min(max(request.args.get('per_page', 50, type=int), 1), 200)

    query = _filtered_query()
    total_filtered = query.count()
    transactions_list = query.offset((page - 1) * per_page).limit(per_page).all()

    # Summary statistics: always global (ignore filters)
    total_transactions = PaymentTransaction.query.count()
    total_revenue = db.session.query(func.sum(PaymentTransaction.amount)).filter(
        PaymentTransaction.status == 'completed'
    ).scalar() or 0
    completed_count = PaymentTransaction.query.filter_by(status='completed').count()
    success_rate = (completed_count / total_transactions * 100) if total_transactions > 0 else 0

    return jsonify({
        'success': True,
        'transactions': [t.to_dict() for t in transactions_list],
        'page': page,
        'per_page': per_page,
        'total': total_filtered,
        'summary': {
            'total_transactions': total_transactions,
            'total_revenue': float(total_revenue),
            'completed_transactions': completed_count,
            'success_rate': round(success_rate, 1),
        },
    })


@transactions_bp.route('/transactions/export/csv', methods=['GET'])
@admin_required
def export_csv():
    """Export transactions to CSV (same filters as the list)"""
    transactions = _filtered_query().all()

    output = io.StringIO()
    writer = csv.writer(output)

    writer.writerow([
        'Transaction ID', 'Date', 'Reference', 'Customer', 'Email', 'Plan',
        'Amount', 'Currency', 'Status', 'Gateway Reference', 'Completed'
    ])

    for transaction in transactions:
        customer_name = transaction.user.full_name if transaction.user else 'N/A'
        writer.writerow([
            transaction.id,
            transaction.created_at.strftime('%d-%m-%Y %H:%M') if transaction.created_at else 'N/A',
            transaction.tx_ref,
            customer_name,
            transaction.email,
            transaction.plan_name,
            f"{float(transaction.amount):.2f}",
            transaction.currency,
            transaction.status,
            transaction.gateway_reference or 'N/A',
            transaction.completed_at.strftime('%d-%m-%Y %H:%M') if transaction.completed_at else 'N/A',
        ])

    response = make_response(output.getvalue())
    response.headers['Content-Type'] = 'text/csv'
    response.headers['Content-Disposition'] = f'attachment; filename=transactions_{datetime.now().strftime("%Y%m%d_%H%M%S")}.csv'
    return response
