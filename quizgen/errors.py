class PipelineError(Exception):
    pass


class NothingParsedError(PipelineError):
    """Raised when neither JSON nor table parsing produced a single question."""

    def __init__(self, sample: str):
        self.sample = sample
        super().__init__(f"No questions could be parsed from model output. Sample: {sample!r}")
