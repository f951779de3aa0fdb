from __future__ import annotations
import enum
from typing import Callable, Iterable, List, Optional, Tuple

import structlog

log = structlog.get_logger(__name__)


class Decision(enum.Enum):
    CONTINUE = "continue"   # record the failure, move to the next attempt
    ABORT = "abort"         # re-raise as-is, no further attempts


class ChainExhausted(Exception):
    """Every attempt failed or came back empty."""

    def __init__(self, attempted: List[str], last_error: Optional[BaseException]):
        self.attempted = attempted
        self.last_error = last_error
        super().__init__(f"All attempts failed: {', '.join(attempted) or 'none'}")


Attempt = Tuple[str, Callable[[], str]]


class FallbackChain:
    """
    Ordered attempt list with classification-driven continue/abort.

    - first non-empty (trimmed) result wins, later attempts are never called
    - empty results move on without recording an error
    - classify(exc) decides CONTINUE vs ABORT for each failure
    - on_failure(label, exc) observes every CONTINUE'd failure
    """

    def __init__(
        self,
        classify: Callable[[BaseException], Decision],
        *,
        name: str = "chain",
        on_failure: Optional[Callable[[str, BaseException], None]] = None,
    ):
        self.classify = classify
        self.name = name
        self.on_failure = on_failure
        self.winner: Optional[str] = None

    def run(self, attempts: Iterable[Attempt]) -> str:
        attempted: List[str] = []
        last_error: Optional[BaseException] = None

        for label, call in attempts:
            attempted.append(label)
            try:
                result = call()
            except KeyboardInterrupt:
                raise
            except Exception as e:
                if self.classify(e) is Decision.ABORT:
                    raise
                last_error = e
                if self.on_failure is not None:
                    self.on_failure(label, e)
                continue

            if result and result.strip():
                self.winner = label
                return result
            log.info("fallback.empty_result", chain=self.name, attempt=label)

        raise ChainExhausted(attempted, last_error)
