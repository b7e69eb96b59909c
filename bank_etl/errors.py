class SkippableError(Exception):
    kind = "skip"

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class ValidationError(SkippableError):
    kind = "validation"


class WriteError(SkippableError):
    kind = "write"


class MalformedLineError(SkippableError):
    kind = "read"

    def __init__(self, reason: str, *, line_number: int, fields: list[str]) -> None:
        super().__init__(reason)
        self.line_number = line_number
        self.fields = fields


class SourceFormatError(RuntimeError):
    pass


class SkipBudgetExceeded(RuntimeError):
    def __init__(self, skip_count: int, skip_limit: int) -> None:
        super().__init__(f"skip limit exceeded: {skip_count} skipped rows, limit is {skip_limit}")
        self.skip_count = skip_count
        self.skip_limit = skip_limit
