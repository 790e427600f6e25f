from prometheus_client import Counter, Histogram


class RegistrationMetrics:
    """
    Registration engine metrics collector

    Tracks checkout saga outcomes, capacity pressure and the cleanup paths
    (compensation, expiry) that keep counters and holds in line.
    """

    def __init__(self) -> None:
        # ========== Checkout Saga ==========
        self.checkout_requests = Counter(
            'registration_checkout_requests_total',
            'Checkout attempts by outcome',
            ['result'],  # result: submitted/replayed/failed
        )

        self.checkout_duration = Histogram(
            'registration_checkout_duration_seconds',
            'Checkout saga duration',
            buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
        )

        self.capacity_rejections = Counter(
            'registration_capacity_rejections_total',
            'Capacity counter reservations refused',
            ['kind'],  # kind: seat/rv/stall/class_line
        )

        # ========== Compensation ==========
        self.compensations = Counter(
            'registration_compensations_total',
            'Compensating actions executed',
            ['result'],  # result: success/failed
        )

        # ========== Hold Lifecycle ==========
        self.holds_assigned = Counter(
            'registration_holds_assigned_total',
            'Per-resource holds created from block holds',
            ['item_type'],
        )

        self.registrations_expired = Counter(
            'registration_expired_total',
            'Submitted registrations cancelled by the expiration sweep',
        )

        # ========== Payment Webhook ==========
        self.webhook_events = Counter(
            'registration_webhook_events_total',
            'Payment webhook events processed',
            ['event_type', 'result'],  # result: applied/skipped/ignored
        )


# Global metrics instance
registration_metrics = RegistrationMetrics()
