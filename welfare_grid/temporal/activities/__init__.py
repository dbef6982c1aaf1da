from welfare_grid.temporal.activities.fraud_check_activities import (
    record_fraud_check_failure,
    run_fraud_check,
)

__all__ = ["run_fraud_check", "record_fraud_check_failure"]
