"""Update plan construction and rendering"""

from app.services.pipeline.emitter import PROJECT_STAGES, PlanEmitter
from app.services.pipeline.paths import WorkFiles
from app.services.pipeline.planner import TagFilterPlanner, count_expression
from app.services.pipeline.render import PlanRenderer

__all__ = [
    "PROJECT_STAGES",
    "PlanEmitter",
    "PlanRenderer",
    "TagFilterPlanner",
    "WorkFiles",
    "count_expression",
]
