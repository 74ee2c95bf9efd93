from bootforge.config.types import ConfigError


class GraphError(ConfigError):
    def __init__(self, *args: object) -> None:
        super().__init__(*args)


class UnknownDependency(GraphError):
    def __init__(self, task: str, dependency: str):
        super().__init__(f"Task '{task}' has unknown dependency '{dependency}'")
        self.task = task
        self.dependency = dependency


class DependencyExcluded(GraphError):
    def __init__(self, task: str, dependency: str):
        super().__init__(
            f"Task '{task}' requires '{dependency}', which is not selected for this run"
        )
        self.task = task
        self.dependency = dependency


class CyclicDependency(GraphError):
    def __init__(self, cycle: list[str]):
        super().__init__("Cycle detected: " + " -> ".join(cycle))
        self.cycle = cycle
