"""Pydantic models for webhook endpoint responses."""

from pydantic import ConfigDict

from ._strict_base import StrictModel


class WebhookReceivedResponse(StrictModel):
    """Acknowledgement returned once a delivery reached a terminal outcome."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)
    received: bool = True


__all__ = ["WebhookReceivedResponse"]
