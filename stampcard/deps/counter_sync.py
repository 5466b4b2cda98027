from fastapi import Request

from stampcard.clients.user_service import CounterSync, build_counter_sync
from stampcard.config import settings


def get_counter_sync(request: Request) -> CounterSync:
    sync = getattr(request.app.state, "counter_sync", None)
    if sync is None:
        sync = build_counter_sync(settings)
        request.app.state.counter_sync = sync
    return sync
