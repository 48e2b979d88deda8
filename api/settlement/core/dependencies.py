"""FastAPI dependencies for injection into route handlers.

The settlement components are built once in the app lifespan and kept on
app.state; tests swap them out there.
"""

from fastapi import Request

from settlement.services.review_queue import ManualReviewQueue
from settlement.services.settlement import SettlementCoordinator


def get_coordinator(request: Request) -> SettlementCoordinator:
    return request.app.state.coordinator


def get_review_queue(request: Request) -> ManualReviewQueue:
    return request.app.state.review_queue
