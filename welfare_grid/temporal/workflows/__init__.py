from welfare_grid.temporal.workflows.fraud_check import FraudCheckWorkflow

__all__ = ["FraudCheckWorkflow"]
