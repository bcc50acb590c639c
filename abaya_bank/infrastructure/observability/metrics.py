"""Prometheus metrics for ledger activity, loan decisions and EMI collection"""

from prometheus_client import Counter, Histogram

# Ledger metrics
ledger_operation_counter = Counter(
    "abaya_ledger_operations_total",
    "Ledger operations attempted",
    ["operation", "outcome"],  # outcome: committed | rejected
)

money_moved_counter = Counter(
    "abaya_money_moved_cents_total",
    "Cents moved by committed ledger entries",
    ["transaction_type"],
)

# Loan metrics
loan_decision_counter = Counter(
    "abaya_loan_decisions_total",
    "Loan applications decided by admins",
    ["outcome"],  # approved | rejected
)

emi_deduction_counter = Counter(
    "abaya_emi_deductions_total",
    "EMI deduction attempts",
    ["outcome"],  # paid | overdue | failed
)

emi_job_duration_histogram = Histogram(
    "abaya_emi_job_duration_seconds",
    "EMI auto-deduction batch duration",
    buckets=[0.1, 0.5, 1.0, 5.0, 15.0, 60.0, 300.0],
)

# Audit
audit_write_failures_counter = Counter(
    "abaya_audit_write_failures_total",
    "Audit log entries that could not be persisted",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_ledger_operation(operation: str, committed: bool) -> None:
    outcome = "committed" if committed else "rejected"
    ledger_operation_counter.labels(operation=operation, outcome=outcome).inc()


def record_money_moved(transaction_type: str, amount_cents: int) -> None:
    money_moved_counter.labels(transaction_type=transaction_type).inc(amount_cents)
