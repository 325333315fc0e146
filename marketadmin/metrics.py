from prometheus_client import Counter

SUBSCRIPTION_OPERATIONS = Counter(
    "marketadmin_subscription_operations_total",
    "Subscription lifecycle operations by outcome",
    ["operation", "outcome"],
)
REFUNDED_CENTS = Counter(
    "marketadmin_refunded_cents_total",
    "Total amount refunded, in cents",
    ["processor"],
)
