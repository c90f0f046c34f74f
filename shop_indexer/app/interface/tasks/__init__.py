from __future__ import annotations

from collections.abc import Awaitable, Callable

from .sync_shop_events_task import sync_shop_events_task
from .watch_shop_events_task import watch_shop_events_task
from .shop_report_task import shop_report_task

TaskFn = Callable[..., Awaitable[object]]

TASKS: dict[str, TaskFn] = {
    "sync_shop_events_task": sync_shop_events_task,
    "watch_shop_events_task": watch_shop_events_task,
    "shop_report_task": shop_report_task,
}
