from decimal import Decimal

from django.db.models import Prefetch, Sum
from django.utils import timezone

from apps.finance.accounts.models import GLHead
from apps.finance.expenses.models import Expense
from apps.finance.fees.models import Invoice, InvoiceItem, Payment
from apps.finance.payroll.models import PayrollRun
from apps.finance.payroll.services import salary_description_prefix

FEE_COLLECTION_LABEL = 'Academic Fees Collection'


def _to_decimal(value) -> Decimal:
    return Decimal(str(value or '0'))


def _scoped(queryset, fiscal_year):
    if fiscal_year is None:
        return queryset
    return queryset.for_fiscal_year(fiscal_year)


def defaulters_report(class_name=None, search=''):
    invoices = Invoice.objects.exclude(
        status=Invoice.STATUS_PAID,
    ).select_related('student').order_by('created_at', 'id')

    defaulters = {}
    for invoice in invoices:
        row = defaulters.get(invoice.student_id)
        if row is None:
            row = {
                'student_id': invoice.student_id,
                'student_name': invoice.student_name,
                'class_name': invoice.student.class_name or 'Unassigned',
                'total_due': Decimal('0.00'),
                'invoices': [],
            }
            defaulters[invoice.student_id] = row
        row['total_due'] += _to_decimal(invoice.total_amount)
        row['invoices'].append(invoice)

    search = (search or '').strip().lower()
    rows = []
    for row in defaulters.values():
        if class_name and row['class_name'] != class_name:
            continue
        if search and search not in row['student_name'].lower():
            continue
        rows.append(row)
    return sorted(rows, key=lambda row: (row['student_name'].lower(), row['student_id']))


def student_ledger(student):
    """Invoices (debits) and payments (credits) of one student with a running balance."""
    entries = []
    for invoice in Invoice.objects.filter(student=student).order_by('created_at', 'id'):
        entries.append({
            'id': invoice.pk,
            'type': 'Invoice',
            'date': timezone.localdate(invoice.created_at),
            'particulars': f"Invoice #{invoice.invoice_number} - {invoice.month}".rstrip(' -'),
            'debit': _to_decimal(invoice.total_amount),
            'credit': Decimal('0.00'),
        })

    payments = Payment.objects.filter(invoice__student=student).order_by('payment_date', 'id')
    for payment in payments:
        reference = f" ({payment.transaction_reference})" if payment.transaction_reference else ''
        entries.append({
            'id': payment.pk,
            'type': 'Payment',
            'date': payment.payment_date,
            'particulars': f"Payment Receipt{reference}",
            'debit': Decimal('0.00'),
            'credit': _to_decimal(payment.amount),
        })

    entries.sort(key=lambda entry: (entry['date'], 0 if entry['type'] == 'Invoice' else 1, entry['id']))

    balance = Decimal('0.00')
    for entry in entries:
        balance += entry['debit'] - entry['credit']
        entry['balance'] = balance
    return entries


def profit_and_loss(fiscal_year=None):
    payments = _scoped(Payment.objects.all(), fiscal_year)

    income_items = []
    fee_total = _to_decimal(
        payments.filter(invoice__isnull=False).aggregate(total=Sum('amount'))['total']
    )
    if fee_total:
        income_items.append({'head_id': None, 'head_name': FEE_COLLECTION_LABEL, 'amount': fee_total})

    direct_income = payments.filter(
        invoice__isnull=True,
    ).values('income_head_id', 'income_head__name').annotate(total=Sum('amount')).order_by('-total')
    for row in direct_income:
        income_items.append({
            'head_id': row['income_head_id'],
            'head_name': row['income_head__name'] or 'Other Income',
            'amount': _to_decimal(row['total']),
        })

    expense_rows = _scoped(Expense.objects.all(), fiscal_year).values(
        'expense_head_id',
        'expense_head__name',
    ).annotate(total=Sum('amount')).order_by('-total', 'expense_head__name')
    expense_items = [
        {
            'head_id': row['expense_head_id'],
            'head_name': row['expense_head__name'],
            'amount': _to_decimal(row['total']),
        }
        for row in expense_rows
    ]

    total_income = sum((item['amount'] for item in income_items), Decimal('0.00'))
    total_expense = sum((item['amount'] for item in expense_items), Decimal('0.00'))
    return {
        'income_items': income_items,
        'expense_items': expense_items,
        'total_income': total_income,
        'total_expense': total_expense,
        'net_profit': total_income - total_expense,
    }


def cash_flow(fiscal_year=None):
    inflows = []
    for payment in _scoped(Payment.objects.all(), fiscal_year).order_by('-payment_date', '-id'):
        reference = f" ({payment.transaction_reference})" if payment.transaction_reference else ''
        inflows.append({
            'id': payment.pk,
            'type': 'Income',
            'date': payment.payment_date,
            'description': f"Fee Receipt{reference}" if payment.invoice_id else (payment.remarks or 'Direct Income'),
            'amount': _to_decimal(payment.amount),
        })

    outflows = []
    expenses = _scoped(Expense.objects.select_related('expense_head'), fiscal_year).order_by('-expense_date', '-id')
    for expense in expenses:
        outflows.append({
            'id': expense.pk,
            'type': 'Expense',
            'date': expense.expense_date,
            'description': f"{expense.expense_head.name} - {expense.description}".rstrip(' -'),
            'amount': _to_decimal(expense.amount),
        })

    total_inflow = sum((item['amount'] for item in inflows), Decimal('0.00'))
    total_outflow = sum((item['amount'] for item in outflows), Decimal('0.00'))
    transactions = sorted(inflows + outflows, key=lambda item: item['date'], reverse=True)
    return {
        'inflows': inflows,
        'outflows': outflows,
        'total_inflow': total_inflow,
        'total_outflow': total_outflow,
        'net_cash_flow': total_inflow - total_outflow,
        'transactions': transactions,
    }


def salary_sheet(run: PayrollRun):
    payslips = list(run.payslips.order_by('employee_name', 'id'))
    rows = [
        {
            'employee_id': payslip.employee_id,
            'employee_name': payslip.employee_name,
            'total_earnings': payslip.total_earnings,
            'total_deductions': payslip.total_deductions,
            'net_salary': payslip.net_salary,
            'status': payslip.status,
        }
        for payslip in payslips
    ]
    return {
        'run': run,
        'rows': rows,
        'total_earnings': sum((row['total_earnings'] for row in rows), Decimal('0.00')),
        'total_deductions': sum((row['total_deductions'] for row in rows), Decimal('0.00')),
        'total_net': sum((row['net_salary'] for row in rows), Decimal('0.00')),
    }


def _invoice_payment_postings(payment):
    """Split a fee payment across the invoice's item heads by item share."""
    items = payment.invoice.items.all()
    if not items:
        return [(payment.payment_mode_id, _to_decimal(payment.amount))]

    invoice_total = _to_decimal(payment.invoice.total_amount) or Decimal('1')
    ratio = _to_decimal(payment.amount) / invoice_total
    return [(item.gl_head_id, _to_decimal(item.amount) * ratio) for item in items]


def gl_head_report(start, end):
    """Totals posted to each GL head between ``start`` and ``end`` inclusive.

    Direct income counts against its income head, fee payments against the
    invoice's item heads in proportion to each item's amount, and expenses
    against their expense head. Heads with nothing posted are left out.
    """
    totals = {}

    payments = Payment.objects.filter(
        payment_date__gte=start,
        payment_date__lte=end,
    ).select_related('invoice').prefetch_related(
        Prefetch('invoice__items', queryset=InvoiceItem.objects.order_by('id')),
    )
    for payment in payments:
        if payment.invoice_id is None:
            postings = [(payment.income_head_id, _to_decimal(payment.amount))]
        else:
            postings = _invoice_payment_postings(payment)
        for head_id, amount in postings:
            if head_id is not None:
                totals[head_id] = totals.get(head_id, Decimal('0')) + amount

    expenses = Expense.objects.filter(
        expense_date__gte=start,
        expense_date__lte=end,
    ).values('expense_head_id').annotate(total=Sum('amount'))
    for row in expenses:
        head_id = row['expense_head_id']
        totals[head_id] = totals.get(head_id, Decimal('0')) + _to_decimal(row['total'])

    grand_total = sum(totals.values(), Decimal('0'))
    rows = []
    for head in GLHead.objects.filter(pk__in=totals.keys()):
        amount = totals[head.pk]
        if not amount:
            continue
        share = amount / grand_total * 100 if grand_total > 0 else Decimal('0')
        rows.append({
            'head_id': head.pk,
            'head_name': head.name,
            'code': head.code,
            'type': head.type,
            'amount': amount.quantize(Decimal('0.01')),
            'percentage': share.quantize(Decimal('0.01')),
        })
    rows.sort(key=lambda row: (-row['amount'], row['head_name']))

    return {
        'start': start,
        'end': end,
        'rows': rows,
        'total': grand_total.quantize(Decimal('0.01')),
    }


def staff_ledger(employee, fiscal_year):
    """Salary postings of one teacher or staff member within a fiscal year."""
    expenses = Expense.objects.for_fiscal_year(fiscal_year).filter(
        payroll_run__isnull=False,
        payroll_run__payslips__employee_id=employee.employee_id,
        description__startswith=salary_description_prefix(employee.full_name),
    ).select_related('payroll_run').distinct().order_by('expense_date', 'id')

    entries = [
        {
            'id': expense.pk,
            'date': expense.expense_date,
            'month': expense.payroll_run.month,
            'description': expense.description,
            'amount': _to_decimal(expense.amount),
        }
        for expense in expenses
    ]
    return {
        'employee': employee,
        'fiscal_year': fiscal_year,
        'entries': entries,
        'total_paid': sum((entry['amount'] for entry in entries), Decimal('0.00')),
    }
