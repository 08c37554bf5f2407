"""Request schemas for API endpoints."""

from pydantic import Field

from chatgate.llm.schemas import CamelModel


class SessionResetRequest(CamelModel):
    """Request schema for resetting a session."""

    summarize: bool = Field(
        default=False,
        description="Keep a summary of the history instead of deleting it",
    )
