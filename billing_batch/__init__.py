"""
billing_batch -- Recurring invoice billing runs.

Once per billing cycle the scheduler fires, the processor pulls PENDING
invoices from the invoice store, and each invoice goes through the charge
pipeline as its own asyncio task.  Final statuses are written back to the
store, then the next cycle is armed.

Architecture:
    billing_batch/ imports from billing_kernel and billing_config.
    Nothing in billing_kernel imports from billing_batch.

    domain/    pure: throttle + failure counter, run DTOs, next-run math
    services/  ChargePipeline -> BillingProcessor -> BillingScheduler

Guarantees:
    - At most max_retries + 1 provider calls per invoice per run.
    - Every invoice leaving the pipeline has exactly one non-PENDING status.
    - Throttle level stays within [0, max_throttle].
    - Terminal invoices are never re-charged.
"""
