"""Avatar drift tracking model."""

from pydantic import BaseModel, ConfigDict, Field, model_validator


class AvatarState(BaseModel):
    """Composite chain of one user avatar.

    ``current_ref`` equals ``original_ref`` exactly when ``change_count`` is 0.
    Instances are immutable; the ledger returns updated copies.
    """
    model_config = ConfigDict(frozen=True)

    user_id: str
    original_ref: str
    current_ref: str
    change_count: int = Field(default=0, ge=0)
    max_changes: int = Field(default=5, ge=1)
    reset_required: bool = False

    @model_validator(mode="after")
    def _check_chain(self) -> "AvatarState":
        if self.change_count == 0 and self.current_ref != self.original_ref:
            raise ValueError("current_ref must equal original_ref when change_count is 0")
        return self

    @classmethod
    def pristine(cls, user_id: str, original_ref: str, max_changes: int = 5) -> "AvatarState":
        """Fresh avatar with no composites applied."""
        return cls(
            user_id=user_id,
            original_ref=original_ref,
            current_ref=original_ref,
            max_changes=max_changes,
        )

    @property
    def remaining_changes(self) -> int:
        return max(self.max_changes - self.change_count, 0)
