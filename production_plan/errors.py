"""Exceptions raised while building a production plan workbook."""


class ProductionPlanError(Exception):
    """Base class for all production plan errors."""


class ProjectDataError(ProductionPlanError, ValueError):
    """The project description handed over by the planner is unusable."""


class InvalidDateRangeError(ProjectDataError):
    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field


class WorkbookRenderError(ProductionPlanError):
    """A sheet could not be rendered or the workbook could not be serialized."""

    def __init__(self, stage: str, cause: BaseException):
        super().__init__(f"Failed to render {stage}: {cause}")
        self.stage = stage
        self.cause = cause
