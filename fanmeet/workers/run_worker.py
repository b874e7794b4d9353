from __future__ import annotations

import asyncio

from arq.worker import run_worker

from fanmeet.core.logging import configure_logging
from fanmeet.workers.arq_worker import WorkerSettings


def main() -> None:
    configure_logging()
    # arq resolves the loop with asyncio.get_event_loop(), which no longer creates one on 3.14.
    asyncio.set_event_loop(asyncio.new_event_loop())
    run_worker(WorkerSettings)


if __name__ == "__main__":
    main()
