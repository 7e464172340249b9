from collections import deque
from typing import Callable, Iterable, List, Optional, TypeVar

T = TypeVar("T")


class SerialStepQueue:
    """
    Runs deployment steps for a single deployer account one at a time, in order.

    Transactions from one account must be submitted with strictly increasing
    nonces, so a step is only started once the previous one is confirmed.
    Independent accounts would each get their own queue.

    A submitted step cannot be withdrawn; stopping only prevents the next
    step from being submitted.
    """

    def __init__(
        self,
        account: str,
        steps: Iterable[str],
        before_step: Optional[Callable[[str], bool]] = None,
    ):
        self.account = account
        self._pending = deque(steps)
        self._before_step = before_step
        self._stopped = False

    @property
    def pending(self) -> List[str]:
        return list(self._pending)

    @property
    def stopped(self) -> bool:
        return self._stopped

    def stop(self) -> None:
        self._stopped = True

    def run(self, worker: Callable[[str], T]) -> List[T]:
        results = list()
        while self._pending and not self._stopped:
            step = self._pending[0]
            if self._before_step is not None and not self._before_step(step):
                self.stop()
                break
            results.append(worker(step))
            self._pending.popleft()

        if self._pending:
            print(f"(i) Stopped with {len(self._pending)} step(s) not submitted: {self.pending}")
        return results
