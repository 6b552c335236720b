"""Run ARQ worker. Usage: python -m app.worker.run_worker"""

from arq import run_worker
from arq.cron import cron
from app.worker.tasks import check_order_timeouts, get_redis_settings, shutdown, startup


class WorkerSettings:
    redis_settings = get_redis_settings()
    functions = [check_order_timeouts]
    cron_jobs = [
        cron(check_order_timeouts, second=0, unique=True),  # every minute at :00
    ]
    on_startup = startup
    on_shutdown = shutdown


def main():
    run_worker(WorkerSettings)


if __name__ == "__main__":
    main()
