from .backoff import BackoffPolicy
from .kind_handlers import KIND_HANDLERS, KindHandler, desired_objects, managed_labels
from .plan_builder import PlanBuilder
from .plan_executor import ExecutionResult, PlanExecutor
from .operator_notifier import OperatorNotifier, LoggingOperatorNotifier, RedisOperatorNotifier
from .reconciliation_engine import ReconciliationEngine

__all__ = [
    "BackoffPolicy",
    "KIND_HANDLERS",
    "KindHandler",
    "desired_objects",
    "managed_labels",
    "PlanBuilder",
    "ExecutionResult",
    "PlanExecutor",
    "OperatorNotifier",
    "LoggingOperatorNotifier",
    "RedisOperatorNotifier",
    "ReconciliationEngine",
]
