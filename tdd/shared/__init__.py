# Cross-cutting test utilities shared across all test types

from .mocks import (
    FakeAccount,
    FakeAccounts,
    RecordingShell,
    console_output,
)

__all__ = [
    "FakeAccount",
    "FakeAccounts",
    "RecordingShell",
    "console_output",
]
