"""billing_batch.services -- charge pipeline, batch processor, scheduler."""

from billing_batch.services.charge_pipeline import MAX_RETRIES, ChargePipeline
from billing_batch.services.processor import BillingProcessor
from billing_batch.services.scheduler import BillingScheduler

__all__ = [
    "MAX_RETRIES",
    "BillingProcessor",
    "BillingScheduler",
    "ChargePipeline",
]
