"""
Dispatch Module
===============

    - Dispatcher: single consumer loop per subscription
    - DispatchMetrics: counters surfaced on /metrics
"""

from message_shipper.dispatch.metrics import DispatchMetrics
from message_shipper.dispatch.dispatcher import Dispatcher


__all__ = [
    "Dispatcher",
    "DispatchMetrics",
]
