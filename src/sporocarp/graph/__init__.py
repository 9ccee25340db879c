from .core import (
    DEFAULT_TRAVERSAL_LIMIT,
    Event,
    to_event,
    Step,
    Path,
    Plan,
    Behavior,
    SimpleBehavior,
    TraversalOptions,
    PlanGenerator,
    replay,
    get_shortest_plans,
    get_simple_plans,
    get_shortest_plans_to,
    get_simple_plans_to,
    deduplicate_paths_in_plan,
    deduplicate_plans,
)

__all__ = [
    "DEFAULT_TRAVERSAL_LIMIT",
    # Model
    "Event",
    "to_event",
    "Step",
    "Path",
    "Plan",
    # Behavior contract
    "Behavior",
    "SimpleBehavior",
    "TraversalOptions",
    "PlanGenerator",
    "replay",
    # Generators
    "get_shortest_plans",
    "get_simple_plans",
    "get_shortest_plans_to",
    "get_simple_plans_to",
    # Deduplication
    "deduplicate_paths_in_plan",
    "deduplicate_plans",
]
