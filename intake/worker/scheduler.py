import time

from intake.config.settings import Settings
from intake.logging.logger import Log
from intake.worker.sweeper import RecoverySweep


class Scheduler:
    """Sweep loop: sweep -> sleep."""

    def __init__(self, sweep: RecoverySweep, settings: Settings) -> None:
        self._sweep = sweep
        self._settings = settings

    def run(self, max_iterations: int | None = None) -> None:
        """Run the recovery sweep forever until interrupted.

        If max_iterations is set, stop after that many sweeps (for testing).
        """
        Log.info("Scheduler started")
        iterations = 0
        try:
            while max_iterations is None or iterations < max_iterations:
                self._try_sweep()
                iterations += 1
                if max_iterations is not None and iterations >= max_iterations:
                    break
                time.sleep(self._settings.sweep_interval_seconds)
        except KeyboardInterrupt:
            Log.info("Scheduler shutting down gracefully")

    def _try_sweep(self) -> None:
        """Run one sweep. Database errors are logged and retried next interval."""
        try:
            self._sweep.run_once()
        except Exception as exc:
            Log.warning(f"Recovery sweep failed, will retry: {exc}")
