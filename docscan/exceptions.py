"""Exceptions raised by docscan."""


class ScanCancelled(RuntimeError):
    """Raised when a caller-supplied cancellation check fires between stages.

    Attributes:
        stage: Name of the stage that was about to run
    """

    def __init__(self, stage: str):
        super().__init__(f"Scan cancelled before {stage}")
        self.stage = stage
