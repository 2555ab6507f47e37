from __future__ import annotations

from supportdesk.dynamic_fields.dispatcher import DynamicFieldDispatcher, build_dispatcher
from supportdesk.postmaster.loop_protection import LoopProtection

# Built once at import; a broken backend registration aborts startup here.
dispatcher = build_dispatcher()
loop_protection = LoopProtection()


def get_dispatcher() -> DynamicFieldDispatcher:
    return dispatcher


def get_loop_protection() -> LoopProtection:
    return loop_protection
