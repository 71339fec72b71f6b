"""Job template rendering, packaging and the templates repo."""

from bosh_micro.templatescompiler.job_renderer import JobRenderer, RenderError
from bosh_micro.templatescompiler.templates_compiler import TemplatesCompiler
from bosh_micro.templatescompiler.templates_repo import TemplateRecord, TemplatesRepo, TemplatesRepoError

__all__ = [
    "JobRenderer",
    "RenderError",
    "TemplateRecord",
    "TemplatesCompiler",
    "TemplatesRepo",
    "TemplatesRepoError",
]
