from __future__ import annotations

from typing import Optional

from django.conf import settings

DEFAULT_RECOVERY_CRON = "*/5 * * * *"
RECOVERY_SWEEP_ID = "reliability:recovery-sweep"


def _scheduler():
  from .queues import default_scheduler

  return default_scheduler


def _queue():
  from .queues import default_queue

  return default_queue


def enqueue_recovery_sweep(limit: Optional[int] = None) -> None:
  from .workers import run_recovery_sweep

  _queue().enqueue(run_recovery_sweep, limit)


def register_recovery_sweep(cron_expr: Optional[str] = None, limit: Optional[int] = None) -> str:
  cron_expr = (cron_expr or getattr(settings, "RELIABILITY_RECOVERY_CRON", DEFAULT_RECOVERY_CRON)).strip()
  cancel_recovery_sweep()
  _scheduler().cron(
      cron_expr,
      func=enqueue_recovery_sweep,
      args=[limit],
      id=RECOVERY_SWEEP_ID,
      repeat=None,
  )
  return cron_expr


def cancel_recovery_sweep() -> None:
  try:
    _scheduler().cancel(RECOVERY_SWEEP_ID)
  except ValueError:
    return
