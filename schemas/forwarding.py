from typing import List, Optional

from pydantic import BaseModel


class ForwardResult(BaseModel):
    destination: str
    success: bool
    status_code: Optional[int] = None
    error: Optional[str] = None
    attempts: int = 0


class ForwardOutcome(BaseModel):
    success: bool
    total: int = 0
    successful: int = 0
    failed: int = 0
    results: List[ForwardResult] = []
    error: Optional[str] = None

    @property
    def any_succeeded(self) -> bool:
        return self.successful > 0

    @classmethod
    def from_results(cls, results: List[ForwardResult]) -> "ForwardOutcome":
        successful = sum(1 for result in results if result.success)
        return cls(
            # Destinations are independent consumers: one success is enough.
            success=successful > 0,
            total=len(results),
            successful=successful,
            failed=len(results) - successful,
            results=results,
        )


class BatchOutcome(BaseModel):
    total: int
    successful: int
    failed: int
    outcomes: List[ForwardOutcome]
