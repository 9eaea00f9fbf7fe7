"""
Defines the records that flow through a conversion batch.

A `ConversionRequest` is created per input file by the batch pipeline and consumed
by the conversion executor, which answers with a `ConversionOutcome`. Outcomes are
folded into a `BatchSummary` that is handed to the UI layer at the end of the run.
`StatusUpdate` is the live progress message sent to the UI layer while a file is
being converted.
"""
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional


class MultiPageMode(str, Enum):
    """How a paginated document is turned into images."""

    SINGLE = "single"  # First page only.
    SEPARATE = "separate"  # One image per page, numbered.
    ANIMATED = "animated"  # All pages in one animated image.


@dataclass
class ConversionRequest:
    input_path: Path
    output_format: str
    current: int = 1
    total: int = 1
    page_mode: MultiPageMode = MultiPageMode.SINGLE
    # Directory receiving the output. Defaults to the input's directory;
    # archive members write next to their archive instead of into scratch.
    output_dir: Optional[Path] = None

    @property
    def display_name(self) -> str:
        return self.input_path.name

    @property
    def target_dir(self) -> Path:
        return self.output_dir if self.output_dir is not None else self.input_path.parent


@dataclass
class ConversionOutcome:
    input_path: Path
    succeeded: bool
    output_path: Optional[Path] = None
    failure_reason: str = ""
    # Outcomes of the extracted members when the input was an archive.
    members: List["ConversionOutcome"] = field(default_factory=list)

    @property
    def display_name(self) -> str:
        return self.input_path.name

    @classmethod
    def success(cls, input_path: Path, output_path: Optional[Path], members: Optional[List["ConversionOutcome"]] = None) -> "ConversionOutcome":
        return cls(input_path=input_path, succeeded=True, output_path=output_path, members=members or [])

    @classmethod
    def failure(cls, input_path: Path, reason: str, members: Optional[List["ConversionOutcome"]] = None) -> "ConversionOutcome":
        return cls(input_path=input_path, succeeded=False, failure_reason=reason, members=members or [])

    def to_dict(self) -> dict:
        data = {
            "input_file": str(self.input_path),
            "succeeded": self.succeeded,
            "output_file": str(self.output_path) if self.output_path else None,
            "failure_reason": self.failure_reason or None,
        }
        if self.members:
            data["members"] = [member.to_dict() for member in self.members]
        return data


@dataclass
class BatchSummary:
    """
    Aggregated result of a batch run.

    Built incrementally with `record()`. A batch in which some files failed is
    not itself a failure: it is a summary with a non-empty `failed_names` list.

    Attributes:
        total_count (int): Number of input files in the batch.
        succeeded_count (int): Number of inputs converted successfully.
        failed_names (List[str]): Display names (not full paths) of the failed
                                  inputs, in input order.
        outcomes (List[ConversionOutcome]): Every recorded outcome, in input order.
    """

    total_count: int
    succeeded_count: int = 0
    failed_names: List[str] = field(default_factory=list)
    outcomes: List[ConversionOutcome] = field(default_factory=list)

    def record(self, outcome: ConversionOutcome) -> None:
        self.outcomes.append(outcome)
        if outcome.succeeded:
            self.succeeded_count += 1
        else:
            self.failed_names.append(outcome.display_name)

    @property
    def failed_count(self) -> int:
        return len(self.failed_names)

    @property
    def all_succeeded(self) -> bool:
        return not self.failed_names and self.succeeded_count == self.total_count

    @property
    def is_partial(self) -> bool:
        return bool(self.failed_names)

    def message(self) -> str:
        if self.all_succeeded:
            return f"Successfully converted all {self.total_count} files."
        failed_list = "\n".join(self.failed_names)
        return (
            f"Converted {self.succeeded_count} of {self.total_count} files.\n\n"
            f"Failed files:\n{failed_list}"
        )

    def to_dict(self) -> dict:
        return {
            "total_count": self.total_count,
            "succeeded_count": self.succeeded_count,
            "failed_count": self.failed_count,
            "failed_files": list(self.failed_names),
            "outcomes": [outcome.to_dict() for outcome in self.outcomes],
        }


@dataclass(frozen=True)
class StatusUpdate:
    """A live status line for one file. `percentage` is None when progress is indeterminate."""

    name: str
    current: int
    total: int
    text: str
    percentage: Optional[int] = None

    def render(self) -> str:
        prefix = f"File {self.current} of {self.total}: {self.name}"
        if self.percentage is not None:
            return f"{prefix} ({self.percentage}%)"
        return f"{prefix} - {self.text}"
