"""Deterministic sampling of outgoing messages for distributed tracing."""

import math
import random
import string
import time
from typing import Callable, Optional

from ..config.constants import DIAGNOSTIC_ID_LENGTH, DIAGNOSTIC_SAMPLING_WINDOW
from ..errors import ArgumentError
from ..models.message import DiagnosticPropertyData, Message

DIAGNOSTIC_ID_ALPHABET = string.digits + string.ascii_uppercase + string.ascii_lowercase


class DiagnosticSampler:
    """
    Decides which outgoing messages carry diagnostic data.

    Samples are spread evenly over each window of 100 messages: with a
    percentage of 50, every other message is sampled. Changing the
    percentage restarts the window.
    """

    def __init__(
        self,
        percentage: int = 0,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._rng = rng or random.Random()
        self._clock = clock
        self._percentage = 0
        self._message_number = 0
        self.percentage = percentage

    @property
    def percentage(self) -> int:
        return self._percentage

    @percentage.setter
    def percentage(self, value: int) -> None:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ArgumentError("Sampling percentage only accepts numbers")
        if value % 1 != 0:
            raise ArgumentError("Sampling percentage should be an integer")
        if value < 0 or value > 100:
            raise ArgumentError("Sampling percentage should be in [0, 100]")
        self._percentage = int(value)
        self._message_number = 0

    def should_sample(self) -> bool:
        if self._percentage <= 0:
            return False

        if self._message_number == DIAGNOSTIC_SAMPLING_WINDOW:
            self._message_number = 0
        self._message_number += 1

        i, p = self._message_number, self._percentage
        return math.floor((i - 2) * p / 100) < math.floor((i - 1) * p / 100)

    def generate_diagnostic_id(self) -> str:
        return "".join(
            self._rng.choice(DIAGNOSTIC_ID_ALPHABET) for _ in range(DIAGNOSTIC_ID_LENGTH)
        )

    def current_time_utc(self) -> str:
        """Seconds since the epoch with millisecond precision, e.g. ``1700000000.123``."""
        return f"{self._clock():.3f}"

    def add_diagnostic_info_if_necessary(self, message: Message) -> bool:
        """
        Attach diagnostic data to ``message`` when it is selected.

        Returns:
            True if the message was sampled
        """
        if not self.should_sample():
            return False
        message.diagnostic_property_data = DiagnosticPropertyData(
            diagnostic_id=self.generate_diagnostic_id(),
            creation_time_utc=self.current_time_utc(),
        )
        return True
