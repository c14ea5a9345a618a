class PromptError(Exception):
    """Base class for prompt template errors."""


class TemplateNotFoundError(PromptError):
    pass


class TemplateExistsError(PromptError):
    pass


class TemplateValidationError(PromptError):
    """Template path or content is invalid."""


class TemplateRenderError(PromptError):
    """Variable substitution failed (syntax error or undefined variable)."""
