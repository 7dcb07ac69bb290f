"""Fan-out/fan-in: run independent calls concurrently, then wait for all of them."""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, Sequence, TypeVar

from ..errors import PipelineError
from .retry import RetryExecutor

T = TypeVar("T")


@dataclass(frozen=True)
class BranchResult(Generic[T]):
    index: int
    label: str
    value: Optional[T] = None
    error: Optional[PipelineError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value


@dataclass(frozen=True)
class Branch:
    label: str
    call: Callable[[], Any]


def join_all(
    branches: Sequence[Branch],
    retry: RetryExecutor,
    max_workers: Optional[int] = None,
) -> list[BranchResult]:
    """Run every branch through the retry executor and return one result per branch.

    Results come back in input order. A branch that ends in a ``PipelineError``
    is reported in its slot and does not cancel its siblings; deciding whether
    partial success is enough is up to the caller.
    """
    if not branches:
        return []

    def run(index: int, branch: Branch) -> BranchResult:
        try:
            value = retry.invoke(branch.call, label=branch.label)
        except PipelineError as e:
            return BranchResult(index=index, label=branch.label, error=e)
        return BranchResult(index=index, label=branch.label, value=value)

    with ThreadPoolExecutor(max_workers=max_workers or len(branches)) as executor:
        futures = [executor.submit(run, i, b) for i, b in enumerate(branches)]
        return [f.result() for f in futures]
