"""Signal delivery for the kill menu."""

from dataclasses import dataclass

import psutil
import structlog

log = structlog.get_logger()


@dataclass(slots=True, frozen=True)
class SignalOutcome:
    """Result of a delivery attempt, already phrased for the status line."""

    ok: bool
    message: str


def deliver_signal(pid: int, signum: int) -> SignalOutcome:
    """Send ``signum`` to ``pid``.

    Failures are reported in the outcome, never raised.
    """
    try:
        psutil.Process(pid).send_signal(signum)
    except psutil.NoSuchProcess:
        reason = "no such process"
    except psutil.AccessDenied:
        reason = "permission denied"
    except (OSError, ValueError) as e:
        reason = str(e) or e.__class__.__name__
    else:
        log.info("signal_sent", pid=pid, signal=signum)
        return SignalOutcome(True, f"Sent signal {signum} to PID {pid}")

    log.warning("signal_failed", pid=pid, signal=signum, reason=reason)
    return SignalOutcome(False, f"Error killing {pid}: {reason}")
