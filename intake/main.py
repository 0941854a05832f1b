from intake.config.settings import Settings
from intake.database.connection import close_pool, init_pool
from intake.logging.logger import Log
from intake.services import build_intake_services
from intake.worker.scheduler import Scheduler


def main() -> None:
    """Entry point: initialize pool -> build services -> start the recovery scheduler."""
    settings = Settings()
    Log.configure(settings.log_level)
    init_pool(settings)

    try:
        services = build_intake_services(settings)
        scheduler = Scheduler(services.sweep, settings)
        scheduler.run()
    finally:
        close_pool()


if __name__ == "__main__":
    main()
