from src.adapter.services.unit_of_work import SqlAlchemyUnitOfWork
from src.adapter.services.in_memory_log_client import InMemoryLogClient
from src.adapter.services.aiokafka_log_client import AIOKafkaLogClient
from src.adapter.services.croniter_cron_evaluator import CroniterCronEvaluator

__all__ = [
    "SqlAlchemyUnitOfWork",
    "InMemoryLogClient",
    "AIOKafkaLogClient",
    "CroniterCronEvaluator",
]
