"""Accumulator for required-field completion counts."""


class CompletedFieldCount:
    """Completed and required field counts for one or more instruments.

    Also remembers the first incomplete field found, and the instrument it
    belongs to. Once set, that pointer is never replaced, so merging counts
    along an Auto-Continue chain keeps the earliest incomplete field.
    """

    def __init__(
        self,
        completed_count: int = 0,
        required_count: int = 0,
        first_incomplete_instrument: str | None = None,
        first_incomplete_field: str | None = None,
    ) -> None:
        self.completed_count = completed_count
        self.required_count = required_count
        self.first_incomplete_instrument = first_incomplete_instrument
        self.first_incomplete_field = first_incomplete_field

    def set_counts(self, completed_count: int, required_count: int) -> None:
        self.completed_count = completed_count
        self.required_count = required_count

    def set_first_incomplete(self, instrument: str, field: str) -> None:
        if self.first_incomplete_field is None:
            self.first_incomplete_instrument = instrument
            self.first_incomplete_field = field

    def merge(self, other: "CompletedFieldCount") -> None:
        """Add another count into this one.

        Counts are summed. The incomplete pointer is copied from ``other``
        only while this count has none.
        """
        self.completed_count += other.completed_count
        self.required_count += other.required_count

        if self.first_incomplete_field is None:
            self.first_incomplete_instrument = other.first_incomplete_instrument
            self.first_incomplete_field = other.first_incomplete_field

    def has_incomplete_field(self) -> bool:
        return self.first_incomplete_field is not None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CompletedFieldCount):
            return NotImplemented
        return (
            self.completed_count == other.completed_count
            and self.required_count == other.required_count
            and self.first_incomplete_instrument == other.first_incomplete_instrument
            and self.first_incomplete_field == other.first_incomplete_field
        )

    def __repr__(self) -> str:
        return (
            f"CompletedFieldCount({self.completed_count}/{self.required_count}, "
            f"first_incomplete={self.first_incomplete_instrument}.{self.first_incomplete_field})"
        )
