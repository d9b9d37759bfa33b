"""Audit trail models for calculation transparency.

Every figure the core produces can be traced back through a list of
AuditEntry steps: what went in, what came out, and which rule or rate
table produced it.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict


class AuditEntry(BaseModel):
    """Single calculation step.

    Entries carry no timestamp so that two runs over identical inputs
    produce identical results.

    Attributes:
        step: Name of the calculation step (e.g., "cpp_contribution")
        input_value: Inputs to the step, rendered as text
        output_value: Result of the step, rendered as text
        source: Rule or rate table the step is based on
        notes: Additional context or explanation
    """

    model_config = ConfigDict(frozen=True)

    step: str
    input_value: str
    output_value: str
    source: str
    notes: Optional[str] = None

    def to_line(self) -> str:
        """Render the entry as a single human-readable line.

        Example: "cpp_contribution: (60000 capped at 71300) - 3500 -> 3361.75 [CPP 2025]"
        """
        line = f"{self.step}: {self.input_value} -> {self.output_value} [{self.source}]"
        if self.notes:
            line += f" ({self.notes})"
        return line
