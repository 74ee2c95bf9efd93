from .base import TaskLibrary, parse_option_list, parse_options
from .defaults import DefaultsLibrary
from .generate_git import GenerateGitLibrary
from .git import GitLibrary
from .link import LinkLibrary
from .update_self import UpdateSelfLibrary

LIBRARIES: dict[str, TaskLibrary] = {
    lib.name: lib
    for lib in (
        LinkLibrary(),
        GitLibrary(),
        DefaultsLibrary(),
        UpdateSelfLibrary(),
        GenerateGitLibrary(),
    )
}

__all__ = [
    "LIBRARIES",
    "TaskLibrary",
    "parse_option_list",
    "parse_options",
    "DefaultsLibrary",
    "GenerateGitLibrary",
    "GitLibrary",
    "LinkLibrary",
    "UpdateSelfLibrary",
]
