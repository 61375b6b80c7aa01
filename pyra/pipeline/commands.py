"""Tool-call contract between the conversational front-end and the pipeline.

The front-end sends one ``ToolCall`` shape; it is parsed into one of
three typed commands so each protocol step carries only its own payload.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Union

from pydantic import BaseModel, Field

from pyra.core.errors import ParseAmbiguity
from pyra.core.types import Action


class ToolStep(str, enum.Enum):
    VERIFY = "verify"
    CHECK = "check"
    EXECUTE = "execute"


class CommandStatus(str, enum.Enum):
    NEEDS_VERIFICATION = "NEEDS_VERIFICATION"
    PENDING = "PENDING"
    NEEDS_ACKNOWLEDGEMENT = "NEEDS_ACKNOWLEDGEMENT"
    CHECKS_PASSED = "CHECKS_PASSED"
    ABORTED = "ABORTED"
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"


class ToolCall(BaseModel):
    """Raw tool invocation as produced by the language model."""

    step: ToolStep
    action: str | None = None
    amount: str | None = Field(None, description='Amount with denomination, e.g. "1 ETH"')
    target: str | None = Field(None, description="Target address (0x...) or name (vault.eth)")
    utterance: str | None = Field(None, description="User's confirmation text, relayed verbatim")


class ToolResponse(BaseModel):
    """Status tag plus the sentence the front-end must speak verbatim."""

    status: CommandStatus
    message: str
    data: dict[str, Any] = Field(default_factory=dict)


@dataclass(frozen=True)
class VerifyCommand:
    action: Action
    amount: str
    target: str


@dataclass(frozen=True)
class CheckCommand:
    utterance: str | None = None


@dataclass(frozen=True)
class ExecuteCommand:
    utterance: str | None = None


GuardedCommand = Union[VerifyCommand, CheckCommand, ExecuteCommand]


def _parse_verify(call: ToolCall) -> VerifyCommand:
    try:
        action = Action((call.action or "").strip().lower())
    except ValueError as exc:
        raise ParseAmbiguity(
            f"I did not understand the action '{call.action}'. I can deposit, swap, send or invest."
        ) from exc
    amount = (call.amount or "").strip()
    target = (call.target or "").strip()
    if not amount:
        raise ParseAmbiguity("I did not catch the amount. How much should I use?")
    if not target:
        raise ParseAmbiguity("I did not catch the target address or name.")
    return VerifyCommand(action=action, amount=amount, target=target)


def parse_tool_call(call: ToolCall) -> GuardedCommand:
    """Turn a raw tool call into the typed command for its step."""
    parsers = {
        ToolStep.VERIFY: _parse_verify,
        ToolStep.CHECK: lambda c: CheckCommand(utterance=c.utterance),
        ToolStep.EXECUTE: lambda c: ExecuteCommand(utterance=c.utterance),
    }
    return parsers[call.step](call)
